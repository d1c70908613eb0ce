"""
FastAPI dependencies for database sessions, examinee identity, and the orchestrator.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from checkride.config import get_settings
from checkride.database import get_db
from checkride.engines.oral.evaluator import EvaluationPipeline, build_evaluation_pipeline
from checkride.kernel.exam_store import ExamStore
from checkride.orchestration.session_orchestrator import SessionOrchestrator, session_locks

EXAMINEE_HEADER = "X-Examinee-ID"

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_examinee(
    x_examinee_id: Annotated[Optional[str], Header(alias=EXAMINEE_HEADER)] = None,
) -> str:
    """Caller identity from X-Examinee-ID; falls back to the configured default examinee."""
    if x_examinee_id and x_examinee_id.strip():
        return x_examinee_id.strip()
    return get_settings().default_examinee_id


CurrentExaminee = Annotated[str, Depends(get_current_examinee)]


# Built once per process; holds the oracle client and its connection pool.
_pipeline: Optional[EvaluationPipeline] = None


def get_evaluation_pipeline() -> EvaluationPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_evaluation_pipeline(get_settings())
    return _pipeline


async def get_orchestrator(
    db: DbSession,
    pipeline: Annotated[EvaluationPipeline, Depends(get_evaluation_pipeline)],
) -> SessionOrchestrator:
    return SessionOrchestrator(ExamStore(db), pipeline, locks=session_locks)


Orchestrator = Annotated[SessionOrchestrator, Depends(get_orchestrator)]
