# Services package init
"""
Newsletter Backend — Services Layer
=====================================

Service Inventory:
    - SubscriberStore:      async persistence, owns email uniqueness
    - SubscriptionService:  subscribe / unsubscribe state machine
    - QueryService:         search, stats, active subscriber listing
    - NotificationService:  fan-out of published content to active subscribers
    - EmailTransport (abstract) / SMTPTransport: outbound mail

Services take their collaborators in the constructor (store, transport), so
tests wire them to an isolated database and a fake transport.
"""
