"""
Newsletter Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models for the ledger's inputs and the `{success, message,
       ...}` envelopes every service operation returns.
Why:   Services return envelopes, not ORM rows, so the HTTP layer only maps
       `success`/`reason` to a status code and serializes the body.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, field_validator


# ══════════════════════════════════════════════════════════════════════════
# Inputs
# ══════════════════════════════════════════════════════════════════════════


class SubscriptionMetadata(BaseModel):
    """
    Named metadata accepted by subscribe().

    source: provenance tag. When omitted, a new record gets the configured
            default ("footer") and a resubscription keeps its current source.
    """
    source: Optional[str] = Field(default=None, max_length=100)

    @field_validator("source")
    @classmethod
    def blank_source_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class SubscribeRequest(BaseModel):
    # Plain str: shape validation belongs to the state machine so the
    # envelope message is the same for HTTP and in-process callers
    email: str = Field(default="", description="Email address to subscribe")
    source: Optional[str] = Field(default=None, max_length=100)


class UnsubscribeRequest(BaseModel):
    email: str = Field(default="", description="Email address to unsubscribe")


class PublishedContent(BaseModel):
    """The content-published event that triggers a fan-out."""
    title: str = Field(min_length=1, description="Article title (used in subject)")
    slug: Optional[str] = Field(default=None, description="Article slug for the link")
    excerpt: Optional[str] = Field(default=None, description="Short teaser text")
    image: Optional[str] = Field(default=None, description="Absolute URL of the cover image")


@dataclass(frozen=True)
class NotificationJob:
    """One fan-out: the resolved recipients and what to tell them. Not persisted."""
    recipients: FrozenSet[str]
    content: PublishedContent


# ══════════════════════════════════════════════════════════════════════════
# Records and envelopes
# ══════════════════════════════════════════════════════════════════════════


class SubscriberRecord(BaseModel):
    id: uuid.UUID
    email: str
    subscribed_at: datetime
    status: str
    source: str

    model_config = {"from_attributes": True}


class OperationResult(BaseModel):
    """
    Base envelope.

    reason is a machine code (`invalid_email`, `not_found`, ...) and is
    only set when success is False.
    """
    success: bool
    message: str
    reason: Optional[str] = None


class SubscribeResult(OperationResult):
    created: bool = False
    subscriber: Optional[SubscriberRecord] = None


class UnsubscribeResult(OperationResult):
    subscriber: Optional[SubscriberRecord] = None


class SubscriptionStatusResult(OperationResult):
    subscribed: bool = False
    subscriber: Optional[SubscriberRecord] = None


class Pagination(BaseModel):
    current: int = Field(description="1-indexed page number")
    pages: int = Field(description="Total number of pages")
    total: int = Field(description="Records matching the filter")
    page_size: int


class SearchResult(OperationResult):
    subscribers: List[SubscriberRecord] = Field(default_factory=list)
    pagination: Pagination


class SubscriberStats(BaseModel):
    total: int
    active: int
    unsubscribed: int
    breakdown: Dict[str, int] = Field(
        default_factory=dict,
        description="Per-status counts from a single GROUP BY",
    )


class StatsResult(OperationResult):
    stats: SubscriberStats


class ActiveSubscribersResult(OperationResult):
    subscribers: List[SubscriberRecord] = Field(default_factory=list)
    count: int = 0


class NotificationResult(OperationResult):
    recipient_count: int = 0
    batches_sent: int = 0


# ══════════════════════════════════════════════════════════════════════════
# HTTP-only models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str
    database: str = Field(description="connected | disconnected")
    transport: str = Field(description="configured | unconfigured")
    uptime_seconds: float
