"""
Kernel Data Models

SQLAlchemy models for oral exam sessions, the question bank, the attempt
log, and per-skill mastery.
"""

from checkride.kernel.models.base import Base, TimestampMixin, generate_uuid
from checkride.kernel.models.exam import (
    Attempt,
    CertificateMode,
    ExamSession,
    Outcome,
    Question,
    QuestionMode,
    SessionStatus,
    SkillMastery,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    # Exam
    "Attempt",
    "CertificateMode",
    "ExamSession",
    "Outcome",
    "Question",
    "QuestionMode",
    "SessionStatus",
    "SkillMastery",
]
