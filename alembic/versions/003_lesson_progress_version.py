"""Compare-and-set counter for the watched-video set.

Revision ID: 003_lesson_progress_version
Revises: 002_shop_tables
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "003_lesson_progress_version"
down_revision: str | None = "002_shop_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("ALTER TABLE lesson_progress ADD COLUMN IF NOT EXISTS version INTEGER NOT NULL DEFAULT 1")


def downgrade() -> None:
    op.execute("ALTER TABLE lesson_progress DROP COLUMN IF EXISTS version")
