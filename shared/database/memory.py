"""
In-Memory Entity Store

Dict-backed repositories. Reads hand out copies, so a caller that mutates an
entity must call ``update`` for the change to stick, same as with a real
database session.
"""

from typing import Generic

import structlog

from shared.database.repository import (
    CourseDiscountRepository,
    EntityStore,
    EntityT,
    Repository,
    SemesterRepository,
)
from shared.domain.entities import (
    CourseDiscount,
    Semester,
)
from shared.domain.exceptions import EntityNotFoundError

logger = structlog.get_logger(__name__)


class InMemoryRepository(Repository[EntityT], Generic[EntityT]):
    """Repository keeping entities in a dict keyed by id."""

    def __init__(self, entity_type: str):
        """
        Initialize repository.

        Args:
            entity_type: Name used in log lines and not-found errors
        """
        self.entity_type = entity_type
        self._rows: dict[int, EntityT] = {}
        self._next_id = 1

    async def get_by_id(self, entity_id: int) -> EntityT | None:
        row = self._rows.get(entity_id)
        return row.model_copy(deep=True) if row is not None else None

    async def get_all(self) -> list[EntityT]:
        return [row.model_copy(deep=True) for row in self._rows.values()]

    async def add(self, entity: EntityT) -> EntityT:
        if entity.id is None:
            entity.id = self._next_id
        self._next_id = max(self._next_id, entity.id + 1)

        self._rows[entity.id] = entity.model_copy(deep=True)
        logger.debug(f"{self.entity_type} added", entity_id=entity.id)
        return entity

    async def update(self, entity: EntityT) -> None:
        if entity.id is None or entity.id not in self._rows:
            raise EntityNotFoundError(self.entity_type, entity.id)

        self._rows[entity.id] = entity.model_copy(deep=True)
        logger.debug(f"{self.entity_type} updated", entity_id=entity.id)

    async def delete(self, entity_id: int) -> None:
        if self._rows.pop(entity_id, None) is None:
            logger.warning(f"{self.entity_type} not found for delete", entity_id=entity_id)
            return
        logger.debug(f"{self.entity_type} deleted", entity_id=entity_id)


class InMemorySemesterRepository(InMemoryRepository[Semester], SemesterRepository):
    """Semester repository with number lookup."""

    def __init__(self) -> None:
        super().__init__("Semester")

    async def get_by_number(self, number: int) -> Semester | None:
        for row in self._rows.values():
            if row.number == number:
                return row.model_copy(deep=True)
        return None


class InMemoryCourseDiscountRepository(InMemoryRepository[CourseDiscount], CourseDiscountRepository):
    """Discount repository with group queries."""

    def __init__(self) -> None:
        super().__init__("CourseDiscount")

    async def exists_group_id(self, group_id: int) -> bool:
        return any(row.group_id == group_id for row in self._rows.values())

    async def get_course_ids_by_group_id(self, group_id: int) -> list[int]:
        return [row.course_id for row in self._rows.values() if row.group_id == group_id]


def create_in_memory_store() -> EntityStore:
    """
    Create an empty in-memory Entity Store.

    Returns:
        EntityStore: Fresh repositories for every entity type
    """
    return EntityStore(
        students=InMemoryRepository("Student"),
        courses=InMemoryRepository("Course"),
        semesters=InMemorySemesterRepository(),
        course_semesters=InMemoryRepository("CourseSemester"),
        prerequisites=InMemoryRepository("CoursePrerequisite"),
        enrollments=InMemoryRepository("Enrollment"),
        exams=InMemoryRepository("Exam"),
        discounts=InMemoryCourseDiscountRepository(),
    )
