"""
Newsletter Backend — Subscriber Query Service
===============================================

What:  Administrative read access: search with pagination, stats, and the
       list of active subscribers.
Why:   Kept apart from the state machine; nothing here writes.

Pagination Strategy (offset-based):
    The admin table jumps to arbitrary pages and shows "page 2 of 3", which
    needs a total count anyway. Ties on the sort column are broken by id in
    the store so consecutive pages never overlap.

Consistency Note:
    stats() takes two independent counts (total, active) without a shared
    snapshot. `unsubscribed` is derived as total - active, so
    active + unsubscribed == total always holds, but under concurrent writes
    the split can be momentarily stale until the next call.
"""

import logging
import math
from typing import Optional

from newsletter.config import settings
from newsletter.models.subscriber import STATUS_ACTIVE
from newsletter.schemas.subscriber import (
    ActiveSubscribersResult,
    Pagination,
    SearchResult,
    StatsResult,
    SubscriberRecord,
    SubscriberStats,
)
from newsletter.services.subscriber_store import SubscriberFilter, SubscriberStore

logger = logging.getLogger(__name__)


class QueryService:
    """Read-only views over the subscriber ledger."""

    def __init__(self, store: SubscriberStore):
        self.store = store

    async def search(
        self,
        query: Optional[str] = None,
        page: int = 1,
        page_size: int = 10,
        status: str = "active",
        sort_field: str = "subscribed_at",
        sort_order: str = "desc",
    ) -> SearchResult:
        """
        Case-insensitive substring search on email, filtered by status.

        Args:
            query: substring to match; None or blank matches everything
            page, page_size: 1-indexed, clamped to >= 1 (page_size also
                capped at settings.search_max_page_size)
            status: 'active', 'unsubscribed' or 'all'

        Raises:
            ValidationError: unknown status, sort_field or sort_order
        """
        page = max(1, page)
        page_size = min(max(1, page_size), settings.search_max_page_size)

        subscriber_filter = SubscriberFilter(
            email_contains=query,
            status=None if status == "all" else status,
        )
        records, total = await self.store.query(
            subscriber_filter,
            page=page,
            page_size=page_size,
            sort_field=sort_field,
            sort_order=sort_order,
        )

        return SearchResult(
            success=True,
            message=f"Found {total} subscribers",
            subscribers=[SubscriberRecord.model_validate(r) for r in records],
            pagination=Pagination(
                current=page,
                pages=math.ceil(total / page_size),
                total=total,
                page_size=page_size,
            ),
        )

    async def stats(self) -> StatsResult:
        total = await self.store.count()
        active = await self.store.count(STATUS_ACTIVE)
        breakdown = await self.store.count_by_status()
        return StatsResult(
            success=True,
            message="Subscription statistics",
            stats=SubscriberStats(
                total=total,
                active=active,
                unsubscribed=total - active,
                breakdown=breakdown,
            ),
        )

    async def active_subscribers(self) -> ActiveSubscribersResult:
        """All active subscribers, newest first."""
        records = await self.store.active()
        return ActiveSubscribersResult(
            success=True,
            message=f"{len(records)} active subscribers",
            subscribers=[SubscriberRecord.model_validate(r) for r in records],
            count=len(records),
        )
