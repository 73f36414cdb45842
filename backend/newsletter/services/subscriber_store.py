"""
Newsletter Backend — Subscriber Store
======================================

What:  Async persistence for subscriber records on top of `Database`.
Why:   Owns the uniqueness invariant on email. The invariant lives in the
       unique index, not in application code: two concurrent inserts of the
       same email race, one commits, the other gets `DuplicateKeyError`.
How:   Each operation opens its own session (one bounded transaction) and
       translates SQLAlchemy failures:
           IntegrityError on insert  → DuplicateKeyError (a signal)
           any other SQLAlchemyError → StoreUnavailableError (fatal, not retried)

Query plans:
    find_by_email    → uq_subscribers_email (unique B-tree)
    count / search   → idx_subscribers_status + idx_subscribers_subscribed_at
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import asc, desc, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from newsletter.database import Database
from newsletter.exceptions import DuplicateKeyError, StoreUnavailableError, ValidationError
from newsletter.models.subscriber import STATUS_ACTIVE, STATUSES, Subscriber, utcnow

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "subscribed_at": Subscriber.subscribed_at,
    "email": Subscriber.email,
    "status": Subscriber.status,
    "source": Subscriber.source,
}


def normalize_email(email: Optional[str]) -> str:
    """Trim and lowercase. The only form in which emails are stored or looked up."""
    return (email or "").strip().lower()


def _check_status(status: str) -> None:
    # On insert a CHECK violation would surface as IntegrityError, i.e. a false duplicate
    if status not in STATUSES:
        raise ValidationError(message=f"Invalid status '{status}'", field="status")


class SubscriberFilter:
    """
    Filter for `SubscriberStore.query`.

    email_contains: case-insensitive substring of the email, or None
    status:         'active', 'unsubscribed', or None for every status
    """

    def __init__(self, email_contains: Optional[str] = None, status: Optional[str] = None):
        if status is not None and status not in STATUSES:
            raise ValidationError(
                message=f"Invalid status '{status}'. Must be one of: {', '.join(STATUSES)}, all",
                field="status",
            )
        self.email_contains = (email_contains or "").strip().lower() or None
        self.status = status

    def apply(self, stmt):
        if self.email_contains:
            stmt = stmt.where(Subscriber.email.contains(self.email_contains, autoescape=True))
        if self.status:
            stmt = stmt.where(Subscriber.status == self.status)
        return stmt


class SubscriberStore:
    """
    Persistent table of subscriber records.

    Operations:
        insert()         create a record; DuplicateKeyError on unique violation
        find_by_email()  record or None
        update_status()  flip status (and optionally source); None when absent
        count()          total, or per single status
        count_by_status() {status: count} from one GROUP BY
        query()          filtered, sorted, paginated page + total
        active_emails()  recipient projection for the fan-out
    """

    def __init__(self, database: Database):
        self.database = database

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self.database.session() as session:
                yield session
        except (DuplicateKeyError, ValidationError):
            raise
        except SQLAlchemyError as e:
            logger.error("Subscriber store %s failed: %s", operation, str(e), exc_info=True)
            raise StoreUnavailableError(
                context={"operation": operation, "error_type": type(e).__name__},
            ) from e

    async def insert(
        self,
        email: str,
        source: str,
        status: str = STATUS_ACTIVE,
        subscribed_at: Optional[datetime] = None,
    ) -> Subscriber:
        _check_status(status)
        email = normalize_email(email)
        record = Subscriber(
            email=email,
            source=source,
            status=status,
            subscribed_at=subscribed_at or utcnow(),
        )
        async with self._session("insert") as session:
            session.add(record)
            try:
                await session.flush()
            except IntegrityError as e:
                # Rolled back by the session scope on the way out
                raise DuplicateKeyError(email) from e
        return record

    async def find_by_email(self, email: str) -> Optional[Subscriber]:
        async with self._session("find_by_email") as session:
            result = await session.execute(
                select(Subscriber).where(Subscriber.email == normalize_email(email))
            )
            return result.scalar_one_or_none()

    async def update_status(
        self,
        email: str,
        status: str,
        source: Optional[str] = None,
    ) -> Optional[Subscriber]:
        _check_status(status)
        async with self._session("update_status") as session:
            result = await session.execute(
                select(Subscriber).where(Subscriber.email == normalize_email(email))
            )
            record = result.scalar_one_or_none()
            if record is None:
                return None
            record.status = status
            if source:
                record.source = source
            await session.flush()
            return record

    async def count(self, status: Optional[str] = None) -> int:
        stmt = select(func.count(Subscriber.id))
        if status is not None:
            stmt = stmt.where(Subscriber.status == status)
        async with self._session("count") as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def count_by_status(self) -> Dict[str, int]:
        stmt = select(Subscriber.status, func.count(Subscriber.id)).group_by(Subscriber.status)
        async with self._session("count_by_status") as session:
            result = await session.execute(stmt)
            return {status: count for status, count in result.all()}

    async def query(
        self,
        filter: SubscriberFilter,
        page: int = 1,
        page_size: int = 10,
        sort_field: str = "subscribed_at",
        sort_order: str = "desc",
    ) -> Tuple[List[Subscriber], int]:
        """
        Return one page of matching records and the total match count.

        page is 1-indexed. Ties on the sort column are broken by id so that
        pages never overlap when many rows share a timestamp.
        """
        column = SORT_COLUMNS.get(sort_field)
        if column is None:
            raise ValidationError(
                message=f"Invalid sort field '{sort_field}'. Must be one of: {', '.join(SORT_COLUMNS)}",
                field="sort_field",
            )
        if sort_order not in ("asc", "desc"):
            raise ValidationError(
                message=f"Invalid sort order '{sort_order}'. Must be 'asc' or 'desc'",
                field="sort_order",
            )
        direction = desc if sort_order == "desc" else asc

        stmt = (
            filter.apply(select(Subscriber))
            .order_by(direction(column), direction(Subscriber.id))
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        count_stmt = filter.apply(select(func.count(Subscriber.id)))

        async with self._session("query") as session:
            result = await session.execute(stmt)
            records = list(result.scalars().all())
            count_result = await session.execute(count_stmt)
            total = count_result.scalar() or 0
        return records, total

    async def active(self) -> Sequence[Subscriber]:
        stmt = (
            select(Subscriber)
            .where(Subscriber.status == STATUS_ACTIVE)
            .order_by(desc(Subscriber.subscribed_at))
        )
        async with self._session("active") as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def active_emails(self) -> List[str]:
        stmt = select(Subscriber.email).where(Subscriber.status == STATUS_ACTIVE)
        async with self._session("active_emails") as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
