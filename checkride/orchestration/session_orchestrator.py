"""
Session Orchestrator - the two exam operations ("next prompt" and "grade
answer") plus session start and the read-only views.

Every mutating operation on a session runs under that session's lock, loads
the session row FOR UPDATE, and ends in exactly one commit. Grading writes
(attempt, mastery, session) therefore apply together or not at all.
The caller's identity is always an explicit argument.
"""

import asyncio
import uuid
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Awaitable, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from checkride.config import get_settings
from checkride.engines.oral.evaluator import EvaluationPipeline
from checkride.engines.oral.mastery_tracker import apply_verdict, counter_increments
from checkride.engines.oral.probe_controller import (
    ProbeState,
    PromptKind,
    decide_next,
    next_probe_count,
    probe_area_label,
    resolve_base_prompt_id,
)
from checkride.engines.oral.question_selector import QuestionSelector
from checkride.engines.oral.verdict import Verdict
from checkride.kernel.errors import (
    ExamError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    PersistenceFailure,
)
from checkride.kernel.exam_store import (
    AttemptRow,
    ExamStore,
    OutcomeCounts,
    ProbedSkillRow,
    SessionSummary,
    SkillRow,
)
from checkride.kernel.models.exam import (
    Attempt,
    CertificateMode,
    ExamSession,
    Outcome,
    SessionStatus,
)
from checkride.logging_config import exam_session_context, get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class ServedPrompt:
    """A prompt handed to the examinee, base or probe."""

    question_id: str
    stem: str
    skill_task_code: str
    area_label: str
    kind: PromptKind
    probe_count: int = 0
    max_probes: int = 0
    base_question_id: Optional[str] = None


@dataclass
class GradedAnswer:
    attempt_id: uuid.UUID
    verdict: Verdict
    mastery: float
    mastery_delta: float
    probe_count: int


@dataclass
class SessionResults:
    session_id: uuid.UUID
    mode: str
    status: str
    created_at: Optional[datetime]
    counts: OutcomeCounts
    weakest: List[SkillRow] = field(default_factory=list)
    strongest: List[SkillRow] = field(default_factory=list)
    most_probed: List[ProbedSkillRow] = field(default_factory=list)
    attempts: List[AttemptRow] = field(default_factory=list)


class SessionLockRegistry:
    """One asyncio.Lock per session id; locks vanish once nobody holds them."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, session_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock


# Process-wide registry shared by every orchestrator instance
session_locks = SessionLockRegistry()


def _enum_val(e) -> str:
    """Safely get enum value (SQLite may return str)."""
    return e.value if hasattr(e, "value") else str(e)


class SessionOrchestrator:
    """Composes selector, probe controller, evaluator, and mastery tracker over the store."""

    def __init__(
        self,
        store: ExamStore,
        pipeline: EvaluationPipeline,
        selector: Optional[QuestionSelector] = None,
        locks: Optional[SessionLockRegistry] = None,
        max_probe_depth: Optional[int] = None,
        persistence_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.store = store
        self.pipeline = pipeline
        self.selector = selector or QuestionSelector(store, recent_limit=settings.recent_question_limit)
        self.locks = locks or session_locks
        self.max_probe_depth = settings.default_max_probe_depth if max_probe_depth is None else max_probe_depth
        self.persistence_timeout = (
            settings.persistence_timeout_seconds if persistence_timeout is None else persistence_timeout
        )

    # -- plumbing ---------------------------------------------------------

    async def _bounded(self, awaitable: Awaitable[T], operation: str) -> T:
        """Await a store call, failing with PersistenceFailure past the timeout."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.persistence_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Persistence timed out during %s after %.1fs",
                operation,
                self.persistence_timeout,
                extra={"operation": operation},
            )
            raise PersistenceFailure(f"Could not complete {operation}; the database did not respond") from None

    @asynccontextmanager
    async def _unit_of_work(self, operation: str) -> AsyncIterator[None]:
        """Commit once on success; roll back on any failure."""
        try:
            yield
            await self._bounded(self.store.commit(), operation)
        except ExamError:
            await self.store.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.store.rollback()
            logger.error("Persistence failure during %s: %s", operation, exc, extra={"operation": operation})
            raise PersistenceFailure(f"Could not complete {operation}; nothing was saved") from exc

    @asynccontextmanager
    async def _exclusive(self, session_id: uuid.UUID, operation: str) -> AsyncIterator[None]:
        async with self.locks.lock_for(session_id):
            with exam_session_context(session_id):
                async with self._unit_of_work(operation):
                    yield

    async def _load_owned(
        self,
        examinee_id: str,
        session_id: uuid.UUID,
        *,
        for_update: bool = False,
        require_active: bool = True,
    ) -> ExamSession:
        exam_session = await self._bounded(
            self.store.load_session(session_id, for_update=for_update), "load_session"
        )
        if exam_session is None:
            raise NotFoundError("Session not found")
        if exam_session.examinee_id != examinee_id:
            raise ForbiddenError("Forbidden")
        if require_active and _enum_val(exam_session.status) != SessionStatus.ACTIVE.value:
            raise InvalidStateError("Session is not active")
        return exam_session

    # -- operations -------------------------------------------------------

    async def start_session(self, examinee_id: str, mode: str) -> ExamSession:
        """Create an active session for mode (PPL, IR, or CPL)."""
        try:
            cert_mode = CertificateMode(mode)
        except ValueError:
            raise InvalidStateError("Invalid mode. Use PPL, IR, or CPL.") from None

        async with self._unit_of_work("start_session"):
            exam_session = await self.store.add_session(
                ExamSession(
                    examinee_id=examinee_id,
                    mode=cert_mode.value,
                    status=SessionStatus.ACTIVE.value,
                    probe_count=0,
                    max_probe_depth=self.max_probe_depth,
                    recent_question_ids=[],
                )
            )
        logger.info(
            "Exam session started",
            extra={"exam_session": str(exam_session.id), "mode": cert_mode.value, "examinee_id": examinee_id},
        )
        return exam_session

    async def next_prompt(
        self,
        examinee_id: str,
        session_id: uuid.UUID,
        force_new_base: bool = False,
    ) -> ServedPrompt:
        """Serve the follow-up probe if one is due, otherwise a fresh base question."""
        async with self._exclusive(session_id, "next_prompt"):
            exam_session = await self._load_owned(examinee_id, session_id, for_update=True)

            decision = decide_next(
                ProbeState(
                    last_outcome=Outcome(exam_session.last_outcome) if exam_session.last_outcome else None,
                    probe_count=exam_session.probe_count,
                    max_probe_depth=exam_session.max_probe_depth,
                    current_question_id=exam_session.current_question_id,
                    last_probe_question=exam_session.last_probe_question,
                ),
                force_new_base=force_new_base,
            )

            if decision.kind is PromptKind.PROBE:
                base = await self.store.load_question(decision.base_question_id)
                if base is not None:
                    logger.info(
                        "Serving probe",
                        extra={"question_id": base.id, "probe_count": decision.probe_count},
                    )
                    return ServedPrompt(
                        question_id=decision.probe_question_id,
                        stem=decision.probe_stem,
                        skill_task_code=base.skill_task_code,
                        area_label=probe_area_label(base.area_label),
                        kind=PromptKind.PROBE,
                        probe_count=decision.probe_count,
                        max_probes=exam_session.max_probe_depth,
                        base_question_id=base.id,
                    )
                # Base question vanished from the bank; fall through to a new one

            question, recent = await self.selector.select_base(
                exam_session.mode, ExamStore.recent_question_ids(exam_session)
            )
            exam_session.current_question_id = question.id
            exam_session.current_skill_task_code = question.skill_task_code
            exam_session.probe_count = 0
            ExamStore.set_recent_question_ids(exam_session, recent)
            await self.store.save_session(exam_session)

            logger.info("Serving base question", extra={"question_id": question.id})
            return ServedPrompt(
                question_id=question.id,
                stem=question.stem,
                skill_task_code=question.skill_task_code,
                area_label=question.area_label,
                kind=PromptKind.BASE,
                probe_count=0,
                max_probes=exam_session.max_probe_depth,
                base_question_id=question.id,
            )

    async def grade_answer(
        self,
        examinee_id: str,
        session_id: uuid.UUID,
        prompt_id: str,
        answer_text: str,
    ) -> GradedAnswer:
        """Grade an answer, log the attempt, update mastery, and advance the probe loop."""
        async with self._exclusive(session_id, "grade_answer"):
            exam_session = await self._load_owned(examinee_id, session_id, for_update=True)

            base_id = resolve_base_prompt_id(prompt_id)
            question = await self.store.load_question(base_id)
            if question is None:
                raise NotFoundError("Question not found")

            is_probe = base_id != prompt_id
            prompt_text = question.stem
            if is_probe and exam_session.last_probe_question:
                prompt_text = exam_session.last_probe_question
            code = question.skill_task_code

            verdict = await self.pipeline.evaluate(prompt_text, answer_text, code)

            attempt = await self.store.insert_attempt(
                Attempt(
                    session_id=exam_session.id,
                    examinee_id=examinee_id,
                    question_id=base_id,
                    skill_task_code=code,
                    answer_text=answer_text,
                    outcome=verdict.outcome.value,
                    feedback=verdict.feedback,
                    missing_count=len(verdict.missing_points),
                    red_flag_count=1 if verdict.outcome is Outcome.FAIL else 0,
                    confidence=verdict.confidence,
                )
            )

            current = await self.store.get_skill_mastery(examinee_id, code)
            new_score, delta = apply_verdict(current.score if current else 0.0, verdict)
            await self.store.upsert_skill_mastery(
                examinee_id, code, new_score, counter_increments(verdict.outcome)
            )

            exam_session.last_outcome = verdict.outcome.value
            exam_session.last_feedback = verdict.feedback
            exam_session.last_probe_question = verdict.probe_question
            exam_session.current_question_id = base_id
            exam_session.current_skill_task_code = code
            exam_session.probe_count = next_probe_count(
                verdict.outcome, exam_session.probe_count, exam_session.max_probe_depth
            )
            await self.store.save_session(exam_session)

            logger.info(
                "Answer graded",
                extra={
                    "question_id": base_id,
                    "probe": is_probe,
                    "outcome": verdict.outcome.value,
                    "confidence": verdict.confidence,
                    "mastery_delta": round(delta, 4),
                    "probe_count": exam_session.probe_count,
                },
            )
            return GradedAnswer(
                attempt_id=attempt.id,
                verdict=verdict,
                mastery=new_score,
                mastery_delta=delta,
                probe_count=exam_session.probe_count,
            )

    async def list_sessions(self, examinee_id: str, limit: int = 50) -> List[SessionSummary]:
        try:
            return await self.store.list_sessions(examinee_id, limit=limit)
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not load sessions") from exc

    async def session_results(self, examinee_id: str, session_id: uuid.UUID) -> SessionResults:
        """Aggregate view of one session; available for completed sessions too."""
        try:
            exam_session = await self._load_owned(examinee_id, session_id, require_active=False)
            return SessionResults(
                session_id=exam_session.id,
                mode=_enum_val(exam_session.mode),
                status=_enum_val(exam_session.status),
                created_at=exam_session.created_at,
                counts=await self.store.outcome_counts(session_id),
                weakest=await self.store.skills_by_mastery(examinee_id, weakest=True),
                strongest=await self.store.skills_by_mastery(examinee_id, weakest=False),
                most_probed=await self.store.most_probed_skills(session_id),
                attempts=await self.store.recent_attempts(session_id),
            )
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Could not load session results") from exc
