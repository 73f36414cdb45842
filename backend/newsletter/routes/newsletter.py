"""
Newsletter Backend — Newsletter Route Handlers
================================================

What:  HTTP surface of the subscription ledger under /api/newsletter.
How:   Each handler calls one service operation and maps the envelope's
       `reason` to a status code. Store failures are raised as
       StoreUnavailableError and handled globally (500).

Endpoints:
    POST /api/newsletter/subscribe          subscribe (idempotent)
    POST /api/newsletter/unsubscribe        unsubscribe
    GET  /api/newsletter/status             is an email subscribed?
    GET  /api/newsletter/stats              totals per status (admin)
    GET  /api/newsletter/subscribers        search + pagination (admin)
    GET  /api/newsletter/subscribers/active all active subscribers (admin)
    POST /api/newsletter/notify             fan-out hook for the publishing flow
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from newsletter.dependencies import (
    get_notification_service,
    get_query_service,
    get_subscription_service,
)
from newsletter.schemas.subscriber import (
    ActiveSubscribersResult,
    ErrorResponse,
    NotificationResult,
    OperationResult,
    PublishedContent,
    SearchResult,
    StatsResult,
    SubscribeRequest,
    SubscribeResult,
    SubscriptionMetadata,
    SubscriptionStatusResult,
    UnsubscribeRequest,
    UnsubscribeResult,
)
from newsletter.services.notification_service import NotificationService
from newsletter.services.query_service import QueryService
from newsletter.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/newsletter", tags=["Newsletter"])

# Envelope reason → HTTP status; anything unlisted with success=False is 400
REASON_STATUS = {
    "invalid_email": 400,
    "not_found": 404,
    "already_unsubscribed": 400,
    "no_recipients": 200,
    "transport_error": 503,
}


def _apply_status(response: Response, result: OperationResult) -> None:
    if not result.success:
        response.status_code = REASON_STATUS.get(result.reason or "", 400)


@router.post(
    "/subscribe",
    response_model=SubscribeResult,
    responses={400: {"model": SubscribeResult}, 500: {"model": ErrorResponse}},
    summary="Subscribe an email to the newsletter",
)
async def subscribe(
    payload: SubscribeRequest,
    response: Response,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscribeResult:
    result = await service.subscribe(
        payload.email,
        SubscriptionMetadata(source=payload.source),
    )
    _apply_status(response, result)
    return result


@router.post(
    "/unsubscribe",
    response_model=UnsubscribeResult,
    responses={
        400: {"model": UnsubscribeResult},
        404: {"model": UnsubscribeResult},
        500: {"model": ErrorResponse},
    },
    summary="Unsubscribe an email from the newsletter",
)
async def unsubscribe(
    payload: UnsubscribeRequest,
    response: Response,
    service: SubscriptionService = Depends(get_subscription_service),
) -> UnsubscribeResult:
    result = await service.unsubscribe(payload.email)
    _apply_status(response, result)
    return result


@router.get(
    "/status",
    response_model=SubscriptionStatusResult,
    summary="Check whether an email is subscribed",
)
async def subscription_status(
    response: Response,
    email: str = Query(default="", description="Email address to check"),
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResult:
    result = await service.is_subscribed(email)
    _apply_status(response, result)
    return result


@router.get(
    "/stats",
    response_model=StatsResult,
    summary="Subscriber counts (admin)",
)
async def stats(service: QueryService = Depends(get_query_service)) -> StatsResult:
    return await service.stats()


@router.get(
    "/subscribers",
    response_model=SearchResult,
    responses={400: {"model": ErrorResponse}},
    summary="Search subscribers with pagination (admin)",
    description=(
        "Case-insensitive substring search on email. `page` and `limit` are "
        "1-indexed and clamped to at least 1. `status=all` disables the status filter."
    ),
)
async def list_subscribers(
    page: int = Query(default=1, description="1-indexed page number"),
    limit: int = Query(default=10, description="Records per page"),
    status: str = Query(default="active", description="active | unsubscribed | all"),
    search: Optional[str] = Query(default=None, description="Substring of the email"),
    sort_by: str = Query(default="subscribed_at", description="subscribed_at | email | status | source"),
    sort_order: str = Query(default="desc", description="asc | desc"),
    service: QueryService = Depends(get_query_service),
) -> SearchResult:
    return await service.search(
        search,
        page=page,
        page_size=limit,
        status=status,
        sort_field=sort_by,
        sort_order=sort_order,
    )


@router.get(
    "/subscribers/active",
    response_model=ActiveSubscribersResult,
    summary="All active subscribers, newest first (admin)",
)
async def active_subscribers(
    service: QueryService = Depends(get_query_service),
) -> ActiveSubscribersResult:
    return await service.active_subscribers()


@router.post(
    "/notify",
    response_model=NotificationResult,
    responses={503: {"model": NotificationResult}},
    summary="Notify active subscribers about published content",
    description=(
        "Called by the content-publishing flow after an article is stored as "
        "published. Sends one message with every active subscriber in Bcc."
    ),
)
async def notify(
    content: PublishedContent,
    response: Response,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationResult:
    result = await service.notify_subscribers(content)
    _apply_status(response, result)
    return result
