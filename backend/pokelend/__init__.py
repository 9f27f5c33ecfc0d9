"""
PokeLend Backend — Application Package Initializer
===================================================

What: Marks the `pokelend` directory as a Python package.
Who:  Imported by uvicorn (`pokelend.main:app`), Alembic, and pytest.

Architecture Note:
    The backend is layered the same way top to bottom:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Lending Engine (services layer)   │  ← validation, orchestration
    │   ├── Group coordinator             │  ← one transaction per batch
    │   └── Version-guarded mutator       │  ← sole status transition path
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Storage adapter / Database        │  ← async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Every item status change goes through the mutator, inside a transaction
    opened by the storage adapter. Routes never touch the database for
    writes.
"""

__version__ = "1.0.0"
