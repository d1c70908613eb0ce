"""
Pydantic schemas for the oral-exam session API.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class StartSessionRequest(BaseModel):
    """Body for session start."""

    mode: str = Field(..., description="Certificate mode: PPL, IR, or CPL")


class StartSessionResponse(BaseModel):
    session_id: uuid.UUID


class NextPromptRequest(BaseModel):
    """Body for next prompt. force_new_base skips any pending probe."""

    session_id: uuid.UUID
    force_new_base: bool = False


class PromptSchema(BaseModel):
    """Prompt as shown to the examinee."""

    id: str
    stem: str
    skill_task_code: str
    area_label: str


class PromptMeta(BaseModel):
    kind: str
    probe_count: int = 0
    max_probes: int = 0
    base_question_id: Optional[str] = None


class NextPromptResponse(BaseModel):
    question: PromptSchema
    meta: PromptMeta


class SubmitAnswerRequest(BaseModel):
    """Body for answer submit. question_id may be a probe id."""

    session_id: uuid.UUID
    question_id: str = Field(..., min_length=1, max_length=128)
    answer: str = Field(..., min_length=1, max_length=20000)


class VerdictResponse(BaseModel):
    """Graded verdict for one answer."""

    outcome: str
    confidence: float
    feedback: str
    missing_points: List[str] = []
    probe_question: Optional[str] = None
    skill_task_code: str
    attempt_id: uuid.UUID
    mastery: float
    mastery_delta: float
    probe_count: int


class OutcomeCountsSchema(BaseModel):
    total: int = 0
    pass_count: int = 0
    probe_count: int = 0
    remediate_count: int = 0
    fail_count: int = 0


class SkillSchema(BaseModel):
    """Per-skill mastery row."""

    skill_task_code: str
    area_label: Optional[str] = None
    mastery: float
    attempts: int
    passes: int
    fails: int


class ProbedSkillSchema(BaseModel):
    skill_task_code: str
    area_label: Optional[str] = None
    probes: int


class AttemptSchema(BaseModel):
    id: uuid.UUID
    created_at: Optional[datetime] = None
    outcome: str
    skill_task_code: str
    question_id: str
    area_label: Optional[str] = None
    stem: Optional[str] = None


class SessionHeaderSchema(BaseModel):
    id: uuid.UUID
    mode: str
    status: str
    created_at: Optional[datetime] = None


class SessionResultsResponse(BaseModel):
    """Aggregate results for one session."""

    session: SessionHeaderSchema
    counts: OutcomeCountsSchema
    weakest: List[SkillSchema] = []
    strongest: List[SkillSchema] = []
    most_probed: List[ProbedSkillSchema] = []
    attempts: List[AttemptSchema] = []


class SessionSummarySchema(BaseModel):
    """One row in the caller's session list."""

    id: uuid.UUID
    mode: str
    status: str
    created_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    counts: OutcomeCountsSchema


class SessionListResponse(BaseModel):
    sessions: List[SessionSummarySchema] = []
