"""Shared fixtures: an in-memory Entity Store seeded with a small catalog."""

import pytest

from shared.config import Settings
from shared.database.memory import create_in_memory_store
from shared.database.repository import EntityStore
from shared.domain.entities import Semester, Student
from shared.logging_config import configure_logging
from tests.factories import make_student


@pytest.fixture
def store() -> EntityStore:
    return create_in_memory_store()


@pytest.fixture
async def student(store: EntityStore) -> Student:
    return await store.students.add(make_student())


@pytest.fixture
async def semesters(store: EntityStore) -> list[Semester]:
    """Semesters 1, 2 and 3 requiring 5, 10 and 5 credits."""
    return [
        await store.semesters.add(Semester(number=1, min_credits=5)),
        await store.semesters.add(Semester(number=2, min_credits=10)),
        await store.semesters.add(Semester(number=3, min_credits=5)),
    ]


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    configure_logging(Settings(log_format="text", log_level="WARNING"), force=True)
