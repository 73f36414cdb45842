"""
Newsletter Backend — Subscription State Machine
=================================================

What:  subscribe / unsubscribe / is_subscribed over the SubscriberStore.
Why:   Keeps the lifecycle rules in one place, independent of HTTP.
How:   Each call is a bounded read-then-write against the store. There is no
       in-process lock; correctness for concurrent first-time subscribes of
       the same email rests on the store's unique index.

State Machine:
    ┌────────┐ subscribe  ┌────────┐ unsubscribe ┌──────────────┐
    │ absent │───────────▶│ active │────────────▶│ unsubscribed │
    └────────┘            └────────┘◀────────────└──────────────┘
                                      subscribe

    subscribe on active       → no write, created=False ("already subscribed")
    subscribe on unsubscribed → status=active, source overwritten, created=False
    insert loses a race       → DuplicateKeyError → re-read, same as "active"
    unsubscribe on absent     → success=False, reason=not_found
    unsubscribe on unsubscribed → success=False, reason=already_unsubscribed

Error Handling Strategy:
    Validation / not-found / already-unsubscribed come back as envelopes
    with success=False. StoreUnavailableError propagates to the caller.
"""

import logging
import re
from typing import Optional

from newsletter.config import settings
from newsletter.exceptions import (
    AlreadyUnsubscribedError,
    DuplicateKeyError,
    InvalidEmailError,
    NotFoundError,
)
from newsletter.models.subscriber import EMAIL_MAX_LENGTH, STATUS_ACTIVE, STATUS_UNSUBSCRIBED
from newsletter.schemas.subscriber import (
    SubscribeResult,
    SubscriberRecord,
    SubscriptionMetadata,
    SubscriptionStatusResult,
    UnsubscribeResult,
)
from newsletter.services.subscriber_store import SubscriberStore, normalize_email

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MSG_CREATED = "Successfully subscribed to our newsletter! Welcome aboard!"
MSG_ALREADY_ACTIVE = "Email already subscribed to our newsletter!"
MSG_RESUBSCRIBED = "Welcome back! You have been resubscribed to our newsletter."
MSG_UNSUBSCRIBED = "Successfully unsubscribed from our newsletter."


def validate_email(email: Optional[str]) -> str:
    """
    Normalize and check the `local@domain.tld` shape and the column length.

    Returns the normalized email; raises InvalidEmailError otherwise.
    """
    normalized = normalize_email(email)
    if not normalized:
        raise InvalidEmailError("Email address is required.")
    if len(normalized) > EMAIL_MAX_LENGTH:
        raise InvalidEmailError(
            f"Email address must be at most {EMAIL_MAX_LENGTH} characters."
        )
    if not EMAIL_PATTERN.match(normalized):
        raise InvalidEmailError()
    return normalized


def _record(subscriber) -> Optional[SubscriberRecord]:
    return SubscriberRecord.model_validate(subscriber) if subscriber is not None else None


class SubscriptionService:
    """Lifecycle operations for a single email address."""

    def __init__(self, store: SubscriberStore):
        self.store = store

    async def subscribe(
        self,
        email: str,
        metadata: Optional[SubscriptionMetadata] = None,
    ) -> SubscribeResult:
        """
        Converge `email` to an active subscription.

        Returns:
            SubscribeResult with created=True only when this call inserted
            the record. Every non-validation path reports success=True.

        Raises:
            StoreUnavailableError: the store failed (fatal, not retried)
        """
        metadata = metadata or SubscriptionMetadata()
        try:
            email = validate_email(email)
        except InvalidEmailError as e:
            return SubscribeResult(success=False, message=e.message, reason=e.code)

        existing = await self.store.find_by_email(email)

        if existing is not None and existing.status == STATUS_ACTIVE:
            return SubscribeResult(
                success=True,
                message=MSG_ALREADY_ACTIVE,
                created=False,
                subscriber=_record(existing),
            )

        if existing is not None:
            updated = await self.store.update_status(
                email, STATUS_ACTIVE, source=metadata.source
            )
            logger.info("Newsletter resubscribed: %s (source=%s)", email, updated.source if updated else None)
            return SubscribeResult(
                success=True,
                message=MSG_RESUBSCRIBED,
                created=False,
                subscriber=_record(updated),
            )

        try:
            created = await self.store.insert(
                email,
                source=metadata.source or settings.default_source,
            )
        except DuplicateKeyError:
            # A concurrent request inserted the same email first
            logger.info("Concurrent subscribe for %s lost the insert race", email)
            winner = await self.store.find_by_email(email)
            return SubscribeResult(
                success=True,
                message=MSG_ALREADY_ACTIVE,
                created=False,
                subscriber=_record(winner),
            )

        logger.info("New newsletter subscriber: %s (source=%s)", email, created.source)
        return SubscribeResult(
            success=True,
            message=MSG_CREATED,
            created=True,
            subscriber=_record(created),
        )

    async def unsubscribe(self, email: str) -> UnsubscribeResult:
        """
        Flip an active subscription to unsubscribed.

        Not found and already-unsubscribed are reported with success=False;
        subscribed_at is never modified.
        """
        try:
            email = validate_email(email)
        except InvalidEmailError as e:
            return UnsubscribeResult(success=False, message=e.message, reason=e.code)

        existing = await self.store.find_by_email(email)
        if existing is None:
            err = NotFoundError()
            return UnsubscribeResult(success=False, message=err.message, reason=err.code)

        if existing.status == STATUS_UNSUBSCRIBED:
            err = AlreadyUnsubscribedError()
            return UnsubscribeResult(
                success=False,
                message=err.message,
                reason=err.code,
                subscriber=_record(existing),
            )

        updated = await self.store.update_status(email, STATUS_UNSUBSCRIBED)
        logger.info("Newsletter unsubscribed: %s", email)
        return UnsubscribeResult(
            success=True,
            message=MSG_UNSUBSCRIBED,
            subscriber=_record(updated),
        )

    async def is_subscribed(self, email: str) -> SubscriptionStatusResult:
        """Report whether `email` currently receives notifications."""
        try:
            email = validate_email(email)
        except InvalidEmailError as e:
            return SubscriptionStatusResult(success=False, message=e.message, reason=e.code)

        existing = await self.store.find_by_email(email)
        subscribed = existing is not None and existing.status == STATUS_ACTIVE
        return SubscriptionStatusResult(
            success=True,
            message="Email is subscribed." if subscribed else "Email is not subscribed.",
            subscribed=subscribed,
            subscriber=_record(existing),
        )
