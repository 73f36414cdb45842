"""
Newsletter Backend — Subscriber SQLAlchemy Model
==================================================

What:  ORM model for the `subscribers` table (one row per unique email).
Why:   The unique index on `email` is the sole arbiter between concurrent
       first-time subscribes for the same address; no application lock exists.

Table Design:
    - email: normalized (trimmed, lowercase) before it ever reaches the model
    - subscribed_at: set once at creation, never touched by resubscription
    - status: 'active' | 'unsubscribed', enforced by a CHECK constraint
    - source: provenance tag ("footer", "blog-cta", ...)

    Rows are never deleted; unsubscribe flips `status`.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from newsletter.database import Base

STATUS_ACTIVE = "active"
STATUS_UNSUBSCRIBED = "unsubscribed"
STATUSES = (STATUS_ACTIVE, STATUS_UNSUBSCRIBED)

# 320 = 64 (local part) + 1 + 255 (domain)
EMAIL_MAX_LENGTH = 320


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subscriber(Base):
    """
    A newsletter subscriber.

    Lifecycle:
        absent → active (first subscribe)
        active → unsubscribed (unsubscribe)
        unsubscribed → active (resubscribe; source overwritten, subscribed_at kept)
    """

    __tablename__ = "subscribers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    email: Mapped[str] = mapped_column(
        String(EMAIL_MAX_LENGTH),
        nullable=False,
        comment="Normalized (trimmed, lowercase) email address",
    )

    subscribed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When the address first subscribed (UTC)",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=STATUS_ACTIVE,
        server_default=text("'active'"),
        comment="Subscription state: active, unsubscribed",
    )

    source: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="footer",
        server_default=text("'footer'"),
        comment="Where the subscription came from",
    )

    __table_args__ = (
        Index("uq_subscribers_email", "email", unique=True),
        Index("idx_subscribers_status", "status"),
        Index("idx_subscribers_subscribed_at", subscribed_at.desc()),
        CheckConstraint(
            "status IN ('active', 'unsubscribed')",
            name="ck_subscribers_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Subscriber(email='{self.email}', status='{self.status}')>"
