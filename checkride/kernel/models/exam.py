"""
Oral exam models - sessions, question bank, attempt log, per-skill mastery.

Enum-valued columns are stored as plain strings (String(50)); SQLite hands
them back as str, so readers coerce with the enum constructor.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from checkride.kernel.models.base import Base, TimestampMixin, generate_uuid


class CertificateMode(str, Enum):
    """Certificate the examinee is preparing for."""

    PPL = "PPL"  # Private Pilot
    IR = "IR"    # Instrument Rating
    CPL = "CPL"  # Commercial Pilot


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class Outcome(str, Enum):
    """Grading outcome, in ascending severity."""

    PASS = "PASS"
    PROBE = "PROBE"
    REMEDIATE = "REMEDIATE"
    FAIL = "FAIL"

    @property
    def is_pass(self) -> bool:
        return self is Outcome.PASS


class Question(Base):
    """
    A question in the bank. Immutable from the examiner's point of view;
    the content pipeline owns it.
    """

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    stem: Mapped[str] = mapped_column(Text, nullable=False)
    skill_task_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    area_label: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    modes: Mapped[List["QuestionMode"]] = relationship(
        back_populates="question",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def mode_tags(self) -> List[str]:
        return sorted(m.mode for m in self.modes)


class QuestionMode(Base):
    """Certificate-mode tag on a question (one row per question/mode)."""

    __tablename__ = "question_modes"

    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    mode: Mapped[str] = mapped_column(String(16), primary_key=True)

    question: Mapped["Question"] = relationship(back_populates="modes")

    __table_args__ = (Index("ix_question_modes_mode", "mode"),)


class ExamSession(Base, TimestampMixin):
    """
    One oral exam attempt for one examinee and one certificate mode.

    Invariant: 0 <= probe_count <= max_probe_depth.
    recent_question_ids is most-recent-first and never longer than the
    configured recent-question limit.
    """

    __tablename__ = "exam_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    examinee_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    mode: Mapped[CertificateMode] = mapped_column(String(16), nullable=False)
    status: Mapped[SessionStatus] = mapped_column(
        String(50),
        default=SessionStatus.ACTIVE,
        nullable=False,
    )

    current_question_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    current_skill_task_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    recent_question_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    probe_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_probe_depth: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    last_outcome: Mapped[Optional[Outcome]] = mapped_column(String(50), nullable=True)
    last_feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_probe_question: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Attempt(Base):
    """Append-only record of one graded answer."""

    __tablename__ = "attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("exam_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    examinee_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    question_id: Mapped[str] = mapped_column(String(64), nullable=False)
    skill_task_code: Mapped[str] = mapped_column(String(64), nullable=False)

    answer_text: Mapped[str] = mapped_column(Text, nullable=False)
    outcome: Mapped[Outcome] = mapped_column(String(50), nullable=False)
    feedback: Mapped[str] = mapped_column(Text, nullable=False, default="")
    missing_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    red_flag_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_attempts_session_outcome", "session_id", "outcome"),
    )


class SkillMastery(Base):
    """Running [0, 5] competence score per examinee and skill-task code."""

    __tablename__ = "skill_mastery"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    examinee_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    skill_task_code: Mapped[str] = mapped_column(String(64), nullable=False)

    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_seen_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    passes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fails: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("examinee_id", "skill_task_code", name="uq_skill_mastery_examinee_code"),
    )
