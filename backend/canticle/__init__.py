"""
Canticle Backend — Application Package Initializer
===================================================

What: Marks the `canticle` directory as a Python package.
Who:  Imported by uvicorn (`canticle.main:app`), pytest and the service layer.

Architecture Note:
    The backend follows the same layered split for both content areas
    (Bible and songbook):

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Queries, search execution
    ├─────────────────────────────────────┤
    │   Domain cores (pure functions)     │  ← Transposer, search ranker
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The domain cores (`canticle.services.transposer`, `canticle.search`) do
    no I/O and hold no shared state; everything above them may be swapped
    without touching chord or ranking semantics.
"""

__version__ = "1.0.0"
