"""
Entity Store Interfaces

Async repository contracts the policy engines consume. Implementations live in
``shared.database.memory`` (in-process) and
``services.academic_service.repository`` (SQLAlchemy).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

from shared.domain.entities import (
    AbstractEntity,
    Course,
    CourseDiscount,
    CoursePrerequisite,
    CourseSemester,
    Enrollment,
    Exam,
    Semester,
    Student,
)

EntityT = TypeVar("EntityT", bound=AbstractEntity)


class Repository(ABC, Generic[EntityT]):
    """CRUD contract for one entity type."""

    @abstractmethod
    async def get_by_id(self, entity_id: int) -> EntityT | None:
        """Return the entity or None."""

    @abstractmethod
    async def get_all(self) -> list[EntityT]:
        """Return every entity, in insertion order."""

    @abstractmethod
    async def add(self, entity: EntityT) -> EntityT:
        """Persist a new entity and assign its id."""

    @abstractmethod
    async def update(self, entity: EntityT) -> None:
        """
        Persist changes to an existing entity.

        Raises:
            EntityNotFoundError: If no entity has this id
        """

    @abstractmethod
    async def delete(self, entity_id: int) -> None:
        """Remove the entity; a missing id is logged, not raised."""


class SemesterRepository(Repository[Semester], ABC):
    """Semester store with lookup by sequential number."""

    @abstractmethod
    async def get_by_number(self, number: int) -> Semester | None:
        """Return the semester with this number or None."""


class CourseDiscountRepository(Repository[CourseDiscount], ABC):
    """Discount store with group queries."""

    @abstractmethod
    async def exists_group_id(self, group_id: int) -> bool:
        """Return True if any discount row carries this group id."""

    @abstractmethod
    async def get_course_ids_by_group_id(self, group_id: int) -> list[int]:
        """Return the course ids belonging to a discount group."""


@dataclass
class EntityStore:
    """One repository per entity type, handed to every service."""

    students: Repository[Student]
    courses: Repository[Course]
    semesters: SemesterRepository
    course_semesters: Repository[CourseSemester]
    prerequisites: Repository[CoursePrerequisite]
    enrollments: Repository[Enrollment]
    exams: Repository[Exam]
    discounts: CourseDiscountRepository
