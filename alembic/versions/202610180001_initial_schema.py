"""Initial schema

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18

- user_contexts: latest stated context per user
- recommendations: every generated recommendation
- progress_records: append-only completion log with action snapshot
- feedback_entries: feedback submitted outside a completion
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "202610180001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

EXPERIENCE_LEVEL = postgresql.ENUM(
    "beginner", "intermediate", "advanced", name="experience_level", create_type=False
)
ACTION_TYPE = postgresql.ENUM(
    "learn", "read", "practice", "build", name="action_type", create_type=False
)
RESOURCE_TYPE = postgresql.ENUM(
    "tutorial",
    "course",
    "article",
    "documentation",
    "challenge",
    "project",
    name="resource_type",
    create_type=False,
)
FEEDBACK_RATING = postgresql.ENUM(
    "helpful", "not_helpful", "irrelevant", name="feedback_rating", create_type=False
)
ENUMS = (EXPERIENCE_LEVEL, ACTION_TYPE, RESOURCE_TYPE, FEEDBACK_RATING)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "user_contexts",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("role_goals", sa.JSON, nullable=False),
        sa.Column("experience_level", EXPERIENCE_LEVEL, nullable=False),
        sa.Column("time_availability_hours_per_week", sa.Float, nullable=False),
        sa.Column("challenges", sa.Text, nullable=True),
        sa.Column("interests", sa.Text, nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_table(
        "recommendations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("action_type", ACTION_TYPE, nullable=False),
        sa.Column("resource_type", RESOURCE_TYPE, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("resource_url", sa.Text, nullable=True),
        sa.Column("explanation", sa.JSON, nullable=False),
        sa.Column("priority", sa.Integer, nullable=False),
        sa.Column("estimated_time_minutes", sa.Integer, nullable=False),
        sa.Column("skill_gaps_addressed", sa.JSON, nullable=False),
        sa.Column("categories", sa.JSON, nullable=False),
        sa.Column("fingerprint", sa.String(64), nullable=False),
        sa.Column("score", sa.Float, nullable=False, server_default="0"),
        sa.Column("explanation_degraded", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("exceeds_time_budget", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_recommendations_user_id", "recommendations", ["user_id"])
    op.create_index("ix_recommendations_fingerprint", "recommendations", ["fingerprint"])

    op.create_table(
        "progress_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column(
            "recommendation_id",
            sa.String(36),
            sa.ForeignKey("recommendations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("action_type", ACTION_TYPE, nullable=False),
        sa.Column("skills", sa.JSON, nullable=False),
        sa.Column("categories", sa.JSON, nullable=False),
        sa.Column("fingerprint", sa.String(64), nullable=False),
        sa.Column("feedback_rating", FEEDBACK_RATING, nullable=True),
        sa.Column("feedback_comment", sa.Text, nullable=True),
        sa.UniqueConstraint("user_id", "recommendation_id", name="uq_progress_recommendation"),
    )
    op.create_index("ix_progress_records_user_id", "progress_records", ["user_id"])

    op.create_table(
        "feedback_entries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column(
            "recommendation_id",
            sa.String(36),
            sa.ForeignKey("recommendations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("rating", FEEDBACK_RATING, nullable=False),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_feedback_entries_user_id", "feedback_entries", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_feedback_entries_user_id", table_name="feedback_entries")
    op.drop_table("feedback_entries")
    op.drop_index("ix_progress_records_user_id", table_name="progress_records")
    op.drop_table("progress_records")
    op.drop_index("ix_recommendations_fingerprint", table_name="recommendations")
    op.drop_index("ix_recommendations_user_id", table_name="recommendations")
    op.drop_table("recommendations")
    op.drop_table("user_contexts")

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
