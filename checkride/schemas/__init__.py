"""
Pydantic schemas for API request/response validation.
"""

from checkride.schemas.common import ErrorResponse, HealthResponse
from checkride.schemas.session import (
    AttemptSchema,
    NextPromptRequest,
    NextPromptResponse,
    OutcomeCountsSchema,
    ProbedSkillSchema,
    PromptMeta,
    PromptSchema,
    SessionHeaderSchema,
    SessionListResponse,
    SessionResultsResponse,
    SessionSummarySchema,
    SkillSchema,
    StartSessionRequest,
    StartSessionResponse,
    SubmitAnswerRequest,
    VerdictResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "AttemptSchema",
    "NextPromptRequest",
    "NextPromptResponse",
    "OutcomeCountsSchema",
    "ProbedSkillSchema",
    "PromptMeta",
    "PromptSchema",
    "SessionHeaderSchema",
    "SessionListResponse",
    "SessionResultsResponse",
    "SessionSummarySchema",
    "SkillSchema",
    "StartSessionRequest",
    "StartSessionResponse",
    "SubmitAnswerRequest",
    "VerdictResponse",
]
