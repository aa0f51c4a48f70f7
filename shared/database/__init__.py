"""
Database Connection and Utilities

Entity Store contracts, the in-memory store, and async SQLAlchemy helpers.
"""

from shared.database.memory import (
    InMemoryCourseDiscountRepository,
    InMemoryRepository,
    InMemorySemesterRepository,
    create_in_memory_store,
)
from shared.database.postgres import (
    Base,
    close_db,
    create_engine,
    create_session_factory,
    init_db,
    session_scope,
)
from shared.database.repository import (
    CourseDiscountRepository,
    EntityStore,
    Repository,
    SemesterRepository,
)

__all__ = [
    "Repository",
    "SemesterRepository",
    "CourseDiscountRepository",
    "EntityStore",
    "InMemoryRepository",
    "InMemorySemesterRepository",
    "InMemoryCourseDiscountRepository",
    "create_in_memory_store",
    "Base",
    "create_engine",
    "create_session_factory",
    "session_scope",
    "init_db",
    "close_db",
]
