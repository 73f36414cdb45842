"""
Newsletter Backend — Application Package Initializer
=====================================================

What: Marks the `newsletter` directory as a Python package.
Why:  Enables imports like `from newsletter.config import settings`.
Who:  Used by Alembic, pytest, and uvicorn (`uvicorn newsletter.main:app`).

Architecture Note:
    The subscription ledger follows a layered layout:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (State Machine, Query,   │  ← Business rules, fan-out
    │   Dispatcher, Email Transport)      │
    ├─────────────────────────────────────┤
    │   Subscriber Store + Models         │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes never touch the store directly; every outcome the HTTP layer sees
    is a `{success, message, ...}` envelope produced by a service.
"""

__version__ = "1.0.0"
