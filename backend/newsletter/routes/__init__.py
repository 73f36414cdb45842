# Routes package init
"""
Newsletter Backend — API Routes Package
=========================================

Route Inventory:
    - newsletter.py:  /api/newsletter/*  (subscribe, unsubscribe, status,
                                          stats, subscribers, notify)
    - health.py:      GET /health        (service health check)

Routes are thin: they call one service operation and translate the
envelope's `reason` into a status code. Business rules live in services.
"""
