"""
Newsletter Backend — FastAPI Dependencies
===========================================

What:  Builds services for a request from the resources on `app.state`.
Why:   The lifespan owns the Database and the EmailTransport; routes get
       ready-made services through Depends() and never see globals.
"""

from fastapi import Request

from newsletter.database import Database
from newsletter.services.notification_service import NotificationService
from newsletter.services.query_service import QueryService
from newsletter.services.subscriber_store import SubscriberStore
from newsletter.services.subscription_service import SubscriptionService
from newsletter.services.transport_base import EmailTransport


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_transport(request: Request) -> EmailTransport:
    return request.app.state.transport


def get_store(request: Request) -> SubscriberStore:
    return SubscriberStore(get_database(request))


def get_subscription_service(request: Request) -> SubscriptionService:
    return SubscriptionService(get_store(request))


def get_query_service(request: Request) -> QueryService:
    return QueryService(get_store(request))


def get_notification_service(request: Request) -> NotificationService:
    return NotificationService(get_store(request), get_transport(request))
