"""
FontFlow Backend — Application Package Initializer
====================================================

What: Marks the `fontflow` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Detection, transcoding, orchestration
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database + Object Storage (I/O)   │  ← Async sessions, S3 / local disk
    └─────────────────────────────────────┘

    Font detection and transcoding are pure functions over in-memory buffers;
    only the orchestrating FontService touches storage and the database.
"""

__version__ = "1.0.0"
