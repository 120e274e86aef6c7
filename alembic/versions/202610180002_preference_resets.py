"""Preference resets

Revision ID: 202610180002
Revises: 202610180001
Create Date: 2026-10-18

- preference_resets: last preference reset per user; feedback stored before
  it is no longer replayed into the preference table
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "202610180002"
down_revision: str | None = "202610180001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "preference_resets",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("reset_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("preference_resets")
