"""Create subscribers table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `subscribers` ledger with its unique email index and the
       two supporting indexes used by search and stats.

Rollback: downgrade() drops the table (destructive, all subscribers lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "subscribers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "email",
            sa.String(320),
            nullable=False,
            comment="Normalized (trimmed, lowercase) email address",
        ),
        sa.Column(
            "subscribed_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When the address first subscribed (UTC)",
        ),
        sa.Column(
            "status",
            sa.String(20),
            server_default=sa.text("'active'"),
            nullable=False,
            comment="Subscription state: active, unsubscribed",
        ),
        sa.Column(
            "source",
            sa.String(100),
            server_default=sa.text("'footer'"),
            nullable=False,
            comment="Where the subscription came from",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('active', 'unsubscribed')",
            name="ck_subscribers_status",
        ),
    )

    # The unique index is what arbitrates concurrent first-time subscribes
    op.create_index("uq_subscribers_email", "subscribers", ["email"], unique=True)
    op.create_index("idx_subscribers_status", "subscribers", ["status"])
    op.create_index(
        "idx_subscribers_subscribed_at",
        "subscribers",
        [sa.text("subscribed_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_subscribers_subscribed_at", table_name="subscribers")
    op.drop_index("idx_subscribers_status", table_name="subscribers")
    op.drop_index("uq_subscribers_email", table_name="subscribers")
    op.drop_table("subscribers")
