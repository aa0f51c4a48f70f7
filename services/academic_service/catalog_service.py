"""
Catalog Services

Validated CRUD for students, courses, semesters and course offerings.
Structural rules run before anything touches the store.
"""

from typing import Generic

import structlog

from services.academic_service.queries import get_or_raise
from shared.database.repository import EntityStore, EntityT, Repository
from shared.domain.entities import Course, CourseSemester, Semester, Student
from shared.domain.exceptions import RejectionReason, ValidationError

logger = structlog.get_logger(__name__)


class CatalogService(Generic[EntityT]):
    """
    Base CRUD service over one repository.

    Subclasses extend ``validate`` with rules that need the store.
    """

    entity_type: str = "Entity"

    def __init__(self, store: EntityStore, repository: Repository[EntityT]):
        self.store = store
        self.repository = repository

    async def get_by_id(self, entity_id: int) -> EntityT | None:
        logger.info(f"Fetching {self.entity_type.lower()}", entity_id=entity_id)
        return await self.repository.get_by_id(entity_id)

    async def get_all(self) -> list[EntityT]:
        return await self.repository.get_all()

    async def create(self, entity: EntityT) -> EntityT:
        """
        Validate and persist a new entity.

        Raises:
            ValidationError: If a structural rule fails
            EntityNotFoundError: If a referenced entity is missing
        """
        await self.validate(entity)
        await self.repository.add(entity)
        logger.info(f"{self.entity_type} created", entity_id=entity.id)
        return entity

    async def update(self, entity: EntityT) -> None:
        await self.validate(entity)
        await self.repository.update(entity)
        logger.info(f"{self.entity_type} updated", entity_id=entity.id)

    async def delete(self, entity_id: int) -> None:
        logger.info(f"Deleting {self.entity_type.lower()}", entity_id=entity_id)
        await self.repository.delete(entity_id)

    async def validate(self, entity: EntityT) -> None:
        entity.validate_business_rules()


class StudentService(CatalogService[Student]):
    entity_type = "Student"

    def __init__(self, store: EntityStore):
        super().__init__(store, store.students)


class CourseService(CatalogService[Course]):
    entity_type = "Course"

    def __init__(self, store: EntityStore):
        super().__init__(store, store.courses)


class SemesterService(CatalogService[Semester]):
    """Semesters are numbered uniquely."""

    entity_type = "Semester"

    def __init__(self, store: EntityStore):
        super().__init__(store, store.semesters)

    async def validate(self, entity: Semester) -> None:
        await super().validate(entity)

        existing = await self.store.semesters.get_by_number(entity.number)
        if existing is not None and existing.id != entity.id:
            raise ValidationError(
                "Semester number must be unique",
                field="number",
                value=entity.number,
                reason=RejectionReason.DUPLICATE_SEMESTER_NUMBER,
            )


class CourseSemesterService(CatalogService[CourseSemester]):
    """Course offerings; both sides must exist and a pair is offered once."""

    entity_type = "CourseSemester"

    def __init__(self, store: EntityStore):
        super().__init__(store, store.course_semesters)

    async def validate(self, entity: CourseSemester) -> None:
        await super().validate(entity)
        await get_or_raise(self.store.courses, entity.course_id, "Course")
        await get_or_raise(self.store.semesters, entity.semester_id, "Semester")

        for offering in await self.store.course_semesters.get_all():
            if offering.id == entity.id:
                continue
            if offering.course_id == entity.course_id and offering.semester_id == entity.semester_id:
                raise ValidationError(
                    "Course is already offered in this semester",
                    field="semester_id",
                    value=entity.semester_id,
                    reason=RejectionReason.DUPLICATE_COURSE_SEMESTER,
                )
