"""
Session endpoints - start, next prompt, results, list.
"""

import uuid

from fastapi import APIRouter, Query, status

from checkride.api.deps import CurrentExaminee, Orchestrator
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
)

router = APIRouter()


def _counts(c) -> OutcomeCountsSchema:
    return OutcomeCountsSchema(
        total=c.total,
        pass_count=c.pass_count,
        probe_count=c.probe_count,
        remediate_count=c.remediate_count,
        fail_count=c.fail_count,
    )


def _skill(row) -> SkillSchema:
    return SkillSchema(
        skill_task_code=row.skill_task_code,
        area_label=row.area_label,
        mastery=round(row.mastery, 4),
        attempts=row.attempts,
        passes=row.passes,
        fails=row.fails,
    )


@router.post("/start", response_model=StartSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    body: StartSessionRequest,
    examinee: CurrentExaminee,
    orchestrator: Orchestrator,
):
    """Start an oral-exam session for a certificate mode."""
    exam_session = await orchestrator.start_session(examinee, body.mode)
    return StartSessionResponse(session_id=exam_session.id)


@router.post("/next", response_model=NextPromptResponse)
async def next_prompt(
    body: NextPromptRequest,
    examinee: CurrentExaminee,
    orchestrator: Orchestrator,
):
    """Next prompt: a pending probe, or a fresh base question."""
    prompt = await orchestrator.next_prompt(examinee, body.session_id, body.force_new_base)
    return NextPromptResponse(
        question=PromptSchema(
            id=prompt.question_id,
            stem=prompt.stem,
            skill_task_code=prompt.skill_task_code,
            area_label=prompt.area_label,
        ),
        meta=PromptMeta(
            kind=prompt.kind.value,
            probe_count=prompt.probe_count,
            max_probes=prompt.max_probes,
            base_question_id=prompt.base_question_id,
        ),
    )


@router.get("/results", response_model=SessionResultsResponse)
async def session_results(
    examinee: CurrentExaminee,
    orchestrator: Orchestrator,
    session_id: uuid.UUID = Query(...),
):
    results = await orchestrator.session_results(examinee, session_id)
    return SessionResultsResponse(
        session=SessionHeaderSchema(
            id=results.session_id,
            mode=results.mode,
            status=results.status,
            created_at=results.created_at,
        ),
        counts=_counts(results.counts),
        weakest=[_skill(r) for r in results.weakest],
        strongest=[_skill(r) for r in results.strongest],
        most_probed=[
            ProbedSkillSchema(skill_task_code=r.skill_task_code, area_label=r.area_label, probes=r.probes)
            for r in results.most_probed
        ],
        attempts=[
            AttemptSchema(
                id=a.id,
                created_at=a.created_at,
                outcome=a.outcome,
                skill_task_code=a.skill_task_code,
                question_id=a.question_id,
                area_label=a.area_label,
                stem=a.stem,
            )
            for a in results.attempts
        ],
    )


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    examinee: CurrentExaminee,
    orchestrator: Orchestrator,
):
    """Caller's sessions, most recently active first."""
    summaries = await orchestrator.list_sessions(examinee)
    return SessionListResponse(
        sessions=[
            SessionSummarySchema(
                id=s.id,
                mode=s.mode,
                status=s.status,
                created_at=s.created_at,
                last_attempt_at=s.last_attempt_at,
                counts=_counts(s.counts),
            )
            for s in summaries
        ]
    )
