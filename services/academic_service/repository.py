"""
Academic Service Repository

Database access layer implementing the Entity Store on async SQLAlchemy.
Rows are translated to pydantic entities on the way out, so services never
hold session-bound objects.
"""

from typing import Generic

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from services.academic_service.models import (
    CourseDiscountModel,
    CourseModel,
    CoursePrerequisiteModel,
    CourseSemesterModel,
    EnrollmentModel,
    ExamModel,
    SemesterModel,
    StudentModel,
)
from shared.database.postgres import Base
from shared.database.repository import (
    CourseDiscountRepository,
    EntityStore,
    EntityT,
    Repository,
    SemesterRepository,
)
from shared.domain.entities import (
    Course,
    CourseDiscount,
    CoursePrerequisite,
    CourseSemester,
    Enrollment,
    Exam,
    Semester,
    Student,
)
from shared.domain.exceptions import EntityNotFoundError

logger = structlog.get_logger(__name__)


class SqlAlchemyRepository(Repository[EntityT], Generic[EntityT]):
    """Repository mapping one table model to one entity type."""

    def __init__(self, session: AsyncSession, model: type[Base], entity_cls: type[EntityT]):
        """
        Initialize repository.

        Args:
            session: Database session
            model: SQLAlchemy table model
            entity_cls: Pydantic entity returned to callers
        """
        self.session = session
        self.model = model
        self.entity_cls = entity_cls

    def _to_entity(self, row: Base) -> EntityT:
        return self.entity_cls.model_validate(row)

    async def get_by_id(self, entity_id: int) -> EntityT | None:
        """
        Get entity by ID.

        Args:
            entity_id: Primary key

        Returns:
            Entity or None
        """
        row = await self.session.get(self.model, entity_id)
        return self._to_entity(row) if row is not None else None

    async def get_all(self) -> list[EntityT]:
        result = await self.session.execute(select(self.model).order_by(self.model.id))
        return [self._to_entity(row) for row in result.scalars().all()]

    async def add(self, entity: EntityT) -> EntityT:
        """
        Insert a new row and copy the generated id back onto the entity.

        Args:
            entity: Entity to persist

        Returns:
            The same entity with its id set
        """
        data = entity.model_dump(exclude={"id"} if entity.id is None else set())
        row = self.model(**data)

        self.session.add(row)
        await self.session.flush()

        entity.id = row.id
        logger.info(f"{self.entity_cls.__name__} created", entity_id=entity.id)
        return entity

    async def update(self, entity: EntityT) -> None:
        row = await self.session.get(self.model, entity.id) if entity.id is not None else None
        if row is None:
            raise EntityNotFoundError(self.entity_cls.__name__, entity.id)

        updates = entity.model_dump(exclude={"id"})
        for key, value in updates.items():
            setattr(row, key, value)

        await self.session.flush()
        logger.info(
            f"{self.entity_cls.__name__} updated", entity_id=entity.id, fields=list(updates.keys())
        )

    async def delete(self, entity_id: int) -> None:
        row = await self.session.get(self.model, entity_id)
        if row is None:
            logger.warning(f"{self.entity_cls.__name__} not found for delete", entity_id=entity_id)
            return

        await self.session.delete(row)
        await self.session.flush()
        logger.info(f"{self.entity_cls.__name__} deleted", entity_id=entity_id)


class SqlAlchemySemesterRepository(SqlAlchemyRepository[Semester], SemesterRepository):
    """Repository for semesters."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, SemesterModel, Semester)

    async def get_by_number(self, number: int) -> Semester | None:
        """Get semester by its sequential number."""
        result = await self.session.execute(
            select(SemesterModel).where(SemesterModel.number == number)
        )
        row = result.scalar_one_or_none()
        return self._to_entity(row) if row is not None else None


class SqlAlchemyCourseDiscountRepository(SqlAlchemyRepository[CourseDiscount], CourseDiscountRepository):
    """Repository for discount group memberships."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, CourseDiscountModel, CourseDiscount)

    async def exists_group_id(self, group_id: int) -> bool:
        result = await self.session.execute(
            select(CourseDiscountModel.id).where(CourseDiscountModel.group_id == group_id).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def get_course_ids_by_group_id(self, group_id: int) -> list[int]:
        result = await self.session.execute(
            select(CourseDiscountModel.course_id)
            .where(CourseDiscountModel.group_id == group_id)
            .order_by(CourseDiscountModel.id)
        )
        return list(result.scalars().all())


def create_sqlalchemy_store(session: AsyncSession) -> EntityStore:
    """
    Create an Entity Store bound to one database session.

    Args:
        session: Session whose transaction spans the business operation

    Returns:
        EntityStore
    """
    return EntityStore(
        students=SqlAlchemyRepository(session, StudentModel, Student),
        courses=SqlAlchemyRepository(session, CourseModel, Course),
        semesters=SqlAlchemySemesterRepository(session),
        course_semesters=SqlAlchemyRepository(session, CourseSemesterModel, CourseSemester),
        prerequisites=SqlAlchemyRepository(session, CoursePrerequisiteModel, CoursePrerequisite),
        enrollments=SqlAlchemyRepository(session, EnrollmentModel, Enrollment),
        exams=SqlAlchemyRepository(session, ExamModel, Exam),
        discounts=SqlAlchemyCourseDiscountRepository(session),
    )
