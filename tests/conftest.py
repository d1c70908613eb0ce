"""
Pytest fixtures for the oral examiner tests.

Every test database is a throwaway SQLite file (in-memory SQLite is
per-connection, and the app opens several).
"""

import json
import os
import tempfile
from typing import AsyncGenerator, Iterable, Optional
from unittest.mock import AsyncMock

# Point the app at a scratch database and the stub oracle before anything
# imports checkride.config / checkride.database.
_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmp.name}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["EVALUATOR_DEADLINE_SECONDS"] = "10"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from checkride.config import get_settings

get_settings.cache_clear()

from checkride.engines.oral.evaluator import EvaluationPipeline, RetryPolicy
from checkride.engines.oral.question_bank import seed_question_bank
from checkride.kernel.exam_store import ExamStore
from checkride.kernel.models import Base, Question, QuestionMode
from checkride.orchestration.session_orchestrator import SessionLockRegistry, SessionOrchestrator

EXAMINEE = "examinee-1"
OTHER_EXAMINEE = "examinee-2"


def verdict_reply(
    outcome: str = "PASS",
    confidence: float = 0.8,
    feedback: str = "Good answer.",
    missing_points: Optional[list] = None,
    probe_question: Optional[str] = None,
    skill_task_code: str = "ECHOED.CODE",
) -> str:
    """Oracle reply text in the shape the grading prompt asks for."""
    return json.dumps(
        {
            "outcome": outcome,
            "confidence": confidence,
            "feedback": feedback,
            "missing_points": missing_points or [],
            "probe_question": probe_question,
            "skill_task_code": skill_task_code,
        }
    )


def scripted_oracle(replies: Iterable) -> AsyncMock:
    """Oracle double whose complete() returns (or raises) each item in turn."""
    oracle = AsyncMock()
    oracle.complete.side_effect = list(replies)
    return oracle


def make_question(qid: str, code: str, modes=("PPL",), stem: Optional[str] = None, area: str = "Area") -> Question:
    return Question(
        id=qid,
        stem=stem or f"Stem for {qid}",
        skill_task_code=code,
        area_label=area,
        modes=[QuestionMode(mode=m) for m in modes],
    )


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    """Fresh SQLite file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def store(db_session: AsyncSession) -> ExamStore:
    return ExamStore(db_session)


@pytest_asyncio.fixture
async def seeded_store(store: ExamStore) -> ExamStore:
    """Store with the bundled sample question bank loaded."""
    await seed_question_bank(store)
    await store.commit()
    return store


def make_orchestrator(store: ExamStore, oracle, max_attempts: int = 3) -> SessionOrchestrator:
    pipeline = EvaluationPipeline(oracle, RetryPolicy(max_attempts=max_attempts, deadline_seconds=5.0))
    return SessionOrchestrator(store, pipeline, locks=SessionLockRegistry(), max_probe_depth=2)
