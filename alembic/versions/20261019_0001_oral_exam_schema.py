"""Oral exam schema - questions, sessions, attempts, skill mastery

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Question bank (content owned by the import pipeline)
    op.create_table(
        "questions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("stem", sa.Text(), nullable=False),
        sa.Column("skill_task_code", sa.String(64), nullable=False, index=True),
        sa.Column("area_label", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "question_modes",
        sa.Column("question_id", sa.String(64), sa.ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("mode", sa.String(16), primary_key=True),
    )
    op.create_index("ix_question_modes_mode", "question_modes", ["mode"])

    op.create_table(
        "exam_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("examinee_id", sa.String(255), nullable=False, index=True),
        sa.Column("mode", sa.String(16), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("current_question_id", sa.String(64), nullable=True),
        sa.Column("current_skill_task_code", sa.String(64), nullable=True),
        sa.Column("recent_question_ids", sa.JSON(), nullable=False),
        sa.Column("probe_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_probe_depth", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("last_outcome", sa.String(50), nullable=True),
        sa.Column("last_feedback", sa.Text(), nullable=True),
        sa.Column("last_probe_question", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Attempts are append-only
    op.create_table(
        "attempts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("session_id", sa.Uuid(), sa.ForeignKey("exam_sessions.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("examinee_id", sa.String(255), nullable=False, index=True),
        sa.Column("question_id", sa.String(64), nullable=False),
        sa.Column("skill_task_code", sa.String(64), nullable=False),
        sa.Column("answer_text", sa.Text(), nullable=False),
        sa.Column("outcome", sa.String(50), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=False, server_default=""),
        sa.Column("missing_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("red_flag_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_attempts_session_outcome", "attempts", ["session_id", "outcome"])

    op.create_table(
        "skill_mastery",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("examinee_id", sa.String(255), nullable=False, index=True),
        sa.Column("skill_task_code", sa.String(64), nullable=False),
        sa.Column("score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("passes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("fails", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("examinee_id", "skill_task_code", name="uq_skill_mastery_examinee_code"),
    )


def downgrade() -> None:
    op.drop_table("skill_mastery")
    op.drop_index("ix_attempts_session_outcome", table_name="attempts")
    op.drop_table("attempts")
    op.drop_table("exam_sessions")
    op.drop_index("ix_question_modes_mode", table_name="question_modes")
    op.drop_table("question_modes")
    op.drop_table("questions")
