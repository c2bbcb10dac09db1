"""Gem shop: purchasable items and the purchase log.

Revision ID: 002_shop_tables
Revises: 001_baseline
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_shop_tables"
down_revision: str | None = "001_baseline"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS shop_items (
            id BIGSERIAL PRIMARY KEY,
            code VARCHAR(64) NOT NULL UNIQUE,
            item_type VARCHAR(32) NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            price_gems INTEGER NOT NULL CHECK (price_gems >= 0),
            effect_config JSONB NOT NULL DEFAULT '{}',
            stock_limit INTEGER NOT NULL DEFAULT -1,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_shop_items_type_active ON shop_items(item_type, is_active)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS purchases (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL,
            shop_item_id BIGINT NOT NULL REFERENCES shop_items(id),
            gems_spent INTEGER NOT NULL CHECK (gems_spent >= 0),
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_purchases_user_created ON purchases(user_id, created_at)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_purchases_shop_item_id ON purchases(shop_item_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS purchases CASCADE")
    op.execute("DROP TABLE IF EXISTS shop_items CASCADE")
