"""
Exam Store - persistence adapter for sessions, questions, attempts, mastery.

All writes go through the caller's AsyncSession and are only flushed here;
the caller commits once, so an Attempt insert, the mastery upsert, and the
session update land in a single transaction or not at all.
JSON columns are exposed as typed values: nothing outside this module
needs to know how recent_question_ids is serialized.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from checkride.kernel.models.exam import (
    Attempt,
    ExamSession,
    Outcome,
    Question,
    QuestionMode,
    SkillMastery,
)

if TYPE_CHECKING:
    from checkride.engines.oral.mastery_tracker import CounterIncrements


@dataclass
class OutcomeCounts:
    total: int = 0
    pass_count: int = 0
    probe_count: int = 0
    remediate_count: int = 0
    fail_count: int = 0


@dataclass
class SessionSummary:
    id: uuid.UUID
    mode: str
    status: str
    created_at: Optional[datetime]
    last_attempt_at: Optional[datetime]
    counts: OutcomeCounts


@dataclass
class SkillRow:
    skill_task_code: str
    area_label: Optional[str]
    mastery: float
    attempts: int
    passes: int
    fails: int


@dataclass
class ProbedSkillRow:
    skill_task_code: str
    area_label: Optional[str]
    probes: int


@dataclass
class AttemptRow:
    id: uuid.UUID
    created_at: Optional[datetime]
    outcome: str
    skill_task_code: str
    question_id: str
    area_label: Optional[str]
    stem: Optional[str]


def _num(value) -> int:
    return int(value or 0)


def _outcome_sums():
    """SUM(outcome = X) columns, in OutcomeCounts order."""
    return [
        func.count(Attempt.id),
        *[
            func.sum(case((Attempt.outcome == o.value, 1), else_=0))
            for o in (Outcome.PASS, Outcome.PROBE, Outcome.REMEDIATE, Outcome.FAIL)
        ],
    ]


def _area_by_code():
    """Subquery: one area label per skill-task code."""
    return (
        select(
            Question.skill_task_code.label("code"),
            func.max(Question.area_label).label("area_label"),
        )
        .group_by(Question.skill_task_code)
        .subquery()
    )


class ExamStore:
    """Storage operations used by the session orchestrator."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- sessions ---------------------------------------------------------

    async def load_session(self, session_id: uuid.UUID, for_update: bool = False) -> Optional[ExamSession]:
        """Load a session; for_update takes a row lock where the backend supports it."""
        q = select(ExamSession).where(ExamSession.id == session_id)
        if for_update:
            q = q.with_for_update()
        result = await self.session.execute(q)
        return result.scalar_one_or_none()

    async def add_session(self, exam_session: ExamSession) -> ExamSession:
        self.session.add(exam_session)
        await self.session.flush()
        await self.session.refresh(exam_session)
        return exam_session

    async def save_session(self, exam_session: ExamSession) -> None:
        self.session.add(exam_session)
        await self.session.flush()

    @staticmethod
    def recent_question_ids(exam_session: ExamSession) -> List[str]:
        """recent_question_ids as a clean list of ids (bad legacy values read as empty)."""
        value = exam_session.recent_question_ids
        if not isinstance(value, list):
            return []
        return [str(v) for v in value if isinstance(v, (str, int))]

    @staticmethod
    def set_recent_question_ids(exam_session: ExamSession, ids: Sequence[str]) -> None:
        # Assign a fresh list so the JSON column is marked dirty
        exam_session.recent_question_ids = list(ids)

    # -- questions --------------------------------------------------------

    async def load_question(self, question_id: str) -> Optional[Question]:
        result = await self.session.execute(select(Question).where(Question.id == question_id))
        return result.scalar_one_or_none()

    async def query_questions_for_mode(
        self,
        mode: str,
        exclude_ids: Iterable[str] = (),
    ) -> List[Question]:
        """Questions tagged with mode, minus exclude_ids."""
        q = (
            select(Question)
            .join(QuestionMode, QuestionMode.question_id == Question.id)
            .where(QuestionMode.mode == str(getattr(mode, "value", mode)))
        )
        exclude = list(exclude_ids)
        if exclude:
            q = q.where(Question.id.not_in(exclude))
        result = await self.session.execute(q.order_by(Question.id))
        return list(result.scalars().unique().all())

    async def count_questions(self) -> int:
        result = await self.session.execute(select(func.count(Question.id)))
        return _num(result.scalar_one())

    async def add_questions(self, questions: Iterable[Question]) -> int:
        items = list(questions)
        self.session.add_all(items)
        await self.session.flush()
        return len(items)

    # -- attempts & mastery -----------------------------------------------

    async def insert_attempt(self, attempt: Attempt) -> Attempt:
        self.session.add(attempt)
        await self.session.flush()
        return attempt

    async def get_skill_mastery(self, examinee_id: str, skill_task_code: str) -> Optional[SkillMastery]:
        q = (
            select(SkillMastery)
            .where(
                SkillMastery.examinee_id == examinee_id,
                SkillMastery.skill_task_code == skill_task_code,
            )
            .with_for_update()
        )
        result = await self.session.execute(q)
        return result.scalar_one_or_none()

    async def upsert_skill_mastery(
        self,
        examinee_id: str,
        skill_task_code: str,
        new_score: float,
        increments: "CounterIncrements",
        seen_at: Optional[datetime] = None,
    ) -> SkillMastery:
        """Create or update the mastery row, adding increments to its counters."""
        seen_at = seen_at or datetime.now(timezone.utc)
        row = await self.get_skill_mastery(examinee_id, skill_task_code)
        if row is None:
            row = SkillMastery(
                examinee_id=examinee_id,
                skill_task_code=skill_task_code,
                score=new_score,
                last_seen_at=seen_at,
                attempts=increments.attempts,
                passes=increments.passes,
                fails=increments.fails,
            )
            self.session.add(row)
        else:
            row.score = new_score
            row.last_seen_at = seen_at
            row.attempts += increments.attempts
            row.passes += increments.passes
            row.fails += increments.fails
        await self.session.flush()
        return row

    # -- unit of work -----------------------------------------------------

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    # -- read models ------------------------------------------------------

    async def outcome_counts(self, session_id: uuid.UUID) -> OutcomeCounts:
        result = await self.session.execute(
            select(*_outcome_sums()).where(Attempt.session_id == session_id)
        )
        total, passes, probes, remediates, fails = result.one()
        return OutcomeCounts(
            total=_num(total),
            pass_count=_num(passes),
            probe_count=_num(probes),
            remediate_count=_num(remediates),
            fail_count=_num(fails),
        )

    async def list_sessions(self, examinee_id: str, limit: int = 50) -> List[SessionSummary]:
        """Examinee's sessions with per-session counts, most recently active first."""
        per_session = (
            select(
                Attempt.session_id.label("session_id"),
                *[
                    col.label(name)
                    for col, name in zip(
                        _outcome_sums(),
                        ("total", "pass_count", "probe_count", "remediate_count", "fail_count"),
                    )
                ],
                func.max(Attempt.created_at).label("last_attempt_at"),
            )
            .group_by(Attempt.session_id)
            .subquery()
        )
        last_activity = func.coalesce(per_session.c.last_attempt_at, ExamSession.created_at)
        q = (
            select(
                ExamSession,
                per_session.c.total,
                per_session.c.pass_count,
                per_session.c.probe_count,
                per_session.c.remediate_count,
                per_session.c.fail_count,
                last_activity.label("last_activity"),
            )
            .outerjoin(per_session, per_session.c.session_id == ExamSession.id)
            .where(ExamSession.examinee_id == examinee_id)
            .order_by(last_activity.desc())
            .limit(limit)
        )
        result = await self.session.execute(q)
        summaries = []
        for row in result.all():
            s = row[0]
            m = row._mapping
            summaries.append(
                SessionSummary(
                    id=s.id,
                    mode=str(getattr(s.mode, "value", s.mode)),
                    status=str(getattr(s.status, "value", s.status)),
                    created_at=s.created_at,
                    last_attempt_at=m["last_activity"],
                    counts=OutcomeCounts(
                        total=_num(m["total"]),
                        pass_count=_num(m["pass_count"]),
                        probe_count=_num(m["probe_count"]),
                        remediate_count=_num(m["remediate_count"]),
                        fail_count=_num(m["fail_count"]),
                    ),
                )
            )
        return summaries

    async def skills_by_mastery(self, examinee_id: str, weakest: bool = True, limit: int = 8) -> List[SkillRow]:
        """Weakest (or strongest) skills; ties go to the most-attempted skill."""
        areas = _area_by_code()
        order = SkillMastery.score.asc() if weakest else SkillMastery.score.desc()
        q = (
            select(SkillMastery, areas.c.area_label)
            .outerjoin(areas, areas.c.code == SkillMastery.skill_task_code)
            .where(SkillMastery.examinee_id == examinee_id)
            .order_by(order, SkillMastery.attempts.desc(), SkillMastery.skill_task_code)
            .limit(limit)
        )
        result = await self.session.execute(q)
        return [
            SkillRow(
                skill_task_code=sm.skill_task_code,
                area_label=area,
                mastery=float(sm.score or 0.0),
                attempts=_num(sm.attempts),
                passes=_num(sm.passes),
                fails=_num(sm.fails),
            )
            for sm, area in result.all()
        ]

    async def most_probed_skills(self, session_id: uuid.UUID, limit: int = 8) -> List[ProbedSkillRow]:
        areas = _area_by_code()
        probes = func.count(Attempt.id)
        q = (
            select(Attempt.skill_task_code, func.max(areas.c.area_label), probes.label("probes"))
            .outerjoin(areas, areas.c.code == Attempt.skill_task_code)
            .where(Attempt.session_id == session_id, Attempt.outcome == Outcome.PROBE.value)
            .group_by(Attempt.skill_task_code)
            .order_by(probes.desc(), Attempt.skill_task_code)
            .limit(limit)
        )
        result = await self.session.execute(q)
        return [ProbedSkillRow(skill_task_code=code, area_label=area, probes=_num(n)) for code, area, n in result.all()]

    async def recent_attempts(self, session_id: uuid.UUID, limit: int = 30) -> List[AttemptRow]:
        q = (
            select(Attempt, Question.area_label, Question.stem)
            .outerjoin(Question, Question.id == Attempt.question_id)
            .where(Attempt.session_id == session_id)
            .order_by(Attempt.created_at.desc(), Attempt.id)
            .limit(limit)
        )
        result = await self.session.execute(q)
        return [
            AttemptRow(
                id=a.id,
                created_at=a.created_at,
                outcome=str(getattr(a.outcome, "value", a.outcome)),
                skill_task_code=a.skill_task_code,
                question_id=a.question_id,
                area_label=area,
                stem=stem,
            )
            for a, area, stem in result.all()
        ]
