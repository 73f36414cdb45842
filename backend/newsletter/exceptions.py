"""
Newsletter Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the subscription ledger.
Why:   Typed exceptions let the services decide which failures become
       `success=false` envelopes and which are fatal, and let the global
       FastAPI handlers map the fatal ones to status codes.
How:   Each exception carries a user-safe `message`, a machine `code` and an
       optional `context` dict (logged, never returned for server errors).

Exception Hierarchy:
    NewsletterError (base)
    ├── ValidationError              → 400 Bad Request
    │   └── InvalidEmailError        → 400 (reason: invalid_email)
    ├── NotFoundError                → 404 (reason: not_found)
    ├── AlreadyUnsubscribedError     → 400 (reason: already_unsubscribed)
    ├── DuplicateKeyError            → store signal, absorbed by the state machine
    ├── StoreUnavailableError        → 500 Internal Server Error
    └── TransportError               → 503 (absorbed by the dispatcher)
"""

from typing import Any, Dict, Optional


class NewsletterError(Exception):
    """
    Base exception for all ledger errors.

    Attributes:
        message:  User-facing description (safe to return in an API response)
        code:     Machine-readable reason code used in envelopes
        context:  Additional debug info (logged but NOT returned to client)
    """

    code = "newsletter_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NewsletterError):
    """Raised when client input fails validation (user-correctable, never retried)."""

    code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class InvalidEmailError(ValidationError):
    """The email is empty or does not have a `local@domain.tld` shape."""

    code = "invalid_email"

    def __init__(self, message: str = "Please provide a valid email address."):
        super().__init__(message=message, field="email")


class NotFoundError(NewsletterError):
    """No subscriber record exists for the given email."""

    code = "not_found"

    def __init__(
        self,
        message: str = "Email not found in our newsletter database.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AlreadyUnsubscribedError(NewsletterError):
    """Unsubscribe was requested for a record that is already unsubscribed."""

    code = "already_unsubscribed"

    def __init__(self, message: str = "Email is already unsubscribed from our newsletter."):
        super().__init__(message=message)


class DuplicateKeyError(NewsletterError):
    """
    The unique index on `subscribers.email` rejected an insert.

    This is a concurrency signal, not a failure: another request inserted
    the same email between our lookup and our insert. The state machine
    turns it into the "already subscribed" outcome.
    """

    code = "duplicate_key"

    def __init__(self, email: str):
        super().__init__(
            message="This email is already subscribed to our newsletter.",
            context={"email": email},
        )
        self.email = email


class StoreUnavailableError(NewsletterError):
    """
    The subscriber store could not complete an operation.

    Fatal to the current operation and never retried. The client only sees a
    generic message; driver details stay in `context` and the server log.
    """

    code = "store_unavailable"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TransportError(NewsletterError):
    """The email transport refused or failed to deliver a message."""

    code = "transport_error"

    def __init__(
        self,
        message: str = "Failed to send notification",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
