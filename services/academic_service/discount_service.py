"""
Discount Service

Aggregates group discounts over a student's enrollments and applies the best
percentage per course to the stored course cost.
"""

import structlog

from services.academic_service.queries import enrollments_for_student, get_or_raise
from shared.database.repository import EntityStore
from shared.domain.entities import CourseDiscount, Student, build_entity
from shared.domain.exceptions import (
    BusinessRuleViolationError,
    DomainException,
    RejectionReason,
)

logger = structlog.get_logger(__name__)


class DiscountService:
    """
    Service owning course discount groups.

    A group qualifies for a student when the student is enrolled in every
    course of the group. Applying discounts mutates ``Course.cost`` directly,
    so calling it twice for the same student compounds the reduction.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    async def apply_discounts(self, student: Student) -> dict[int, float]:
        """
        Apply the best qualifying discount to each of the student's courses.

        Courses already discounted in this call stay discounted if a later
        course update fails; there is no rollback across courses.

        Args:
            student: Student whose enrollments decide the qualifying groups

        Returns:
            dict[int, float]: course id -> percentage applied
        """
        logger.info("Applying discounts", student_id=student.id)

        enrollments = await enrollments_for_student(self.store, student.id)
        if not enrollments:
            logger.info("No enrollments, no discounts applied", student_id=student.id)
            return {}

        enrolled_course_ids = {e.course_id for e in enrollments}
        best: dict[int, CourseDiscount] = {}

        for group_id, percentage in (await self._group_percentages()).items():
            course_ids = await self.store.discounts.get_course_ids_by_group_id(group_id)
            if not course_ids or not set(course_ids) <= enrolled_course_ids:
                continue

            group = await self._valid_group(group_id, course_ids[0], percentage)
            if group is None:
                continue

            for course_id in course_ids:
                current = best.get(course_id)
                if current is None or group.discount_percentage > current.discount_percentage:
                    best[course_id] = group

        for course_id, group in best.items():
            course = await self.store.courses.get_by_id(course_id)
            if course is None:
                logger.warning("Discounted course not found", course_id=course_id)
                continue

            old_cost = course.cost
            course.cost = course.cost * group.multiplier
            await self.store.courses.update(course)

            logger.info(
                "Discount applied",
                student_id=student.id,
                course_id=course_id,
                percentage=group.discount_percentage,
                old_cost=str(old_cost),
                new_cost=str(course.cost),
            )

        return {course_id: group.discount_percentage for course_id, group in best.items()}

    async def _group_percentages(self) -> dict[int, float]:
        """Percentage of each distinct group, taken from its first row."""
        percentages: dict[int, float] = {}
        for discount in await self.store.discounts.get_all():
            percentages.setdefault(discount.group_id, discount.discount_percentage)
        return percentages

    async def _valid_group(
        self, group_id: int, course_id: int, percentage: float
    ) -> CourseDiscount | None:
        """Structurally check a representative record of the group; log and skip on failure."""
        try:
            group = build_entity(
                CourseDiscount,
                group_id=group_id,
                course_id=course_id,
                discount_percentage=percentage,
            )
            await get_or_raise(self.store.courses, course_id, "Course")
        except DomainException as e:
            logger.warning(
                "Skipping invalid discount group",
                group_id=group_id,
                course_id=course_id,
                error=e.message,
            )
            return None
        return group

    # CRUD

    async def get_by_id(self, discount_id: int) -> CourseDiscount | None:
        logger.info("Fetching discount", discount_id=discount_id)
        return await self.store.discounts.get_by_id(discount_id)

    async def get_all(self) -> list[CourseDiscount]:
        return await self.store.discounts.get_all()

    async def create(self, discount: CourseDiscount) -> CourseDiscount:
        """
        Persist a discount row.

        Raises:
            EntityNotFoundError: If the course does not exist
            BusinessRuleViolationError: If the row conflicts with its group
        """
        await self._ensure_valid(discount)
        await self.store.discounts.add(discount)
        logger.info("Discount created", discount_id=discount.id, group_id=discount.group_id)
        return discount

    async def update(self, discount: CourseDiscount) -> None:
        """
        Update a discount row.

        A new percentage is written to every row of the group so the group
        keeps a single percentage.

        Raises:
            EntityNotFoundError: If the course does not exist
            BusinessRuleViolationError: If the course is already in the group
        """
        await self._ensure_valid(discount, check_percentage=False)
        await self.store.discounts.update(discount)

        siblings = [
            other
            for other in await self.store.discounts.get_all()
            if other.group_id == discount.group_id
            and other.id != discount.id
            and other.discount_percentage != discount.discount_percentage
        ]
        for other in siblings:
            other.discount_percentage = discount.discount_percentage
            await self.store.discounts.update(other)

        logger.info(
            "Discount updated",
            discount_id=discount.id,
            group_id=discount.group_id,
            group_rows_repriced=len(siblings),
        )

    async def delete(self, discount_id: int) -> None:
        logger.info("Deleting discount", discount_id=discount_id)
        await self.store.discounts.delete(discount_id)

    async def _ensure_valid(self, discount: CourseDiscount, check_percentage: bool = True) -> None:
        """One row per (group, course) and, unless disabled, one percentage per group."""
        await get_or_raise(self.store.courses, discount.course_id, "Course")

        if not await self.store.discounts.exists_group_id(discount.group_id):
            return

        for other in await self.store.discounts.get_all():
            if other.group_id != discount.group_id or other.id == discount.id:
                continue

            if other.course_id == discount.course_id:
                raise BusinessRuleViolationError(
                    f"Course {discount.course_id} is already in discount group {discount.group_id}",
                    reason=RejectionReason.DISCOUNT_GROUP_CONFLICT,
                    violated_rules=["unique_group_course"],
                )
            if check_percentage and other.discount_percentage != discount.discount_percentage:
                raise BusinessRuleViolationError(
                    f"Discount group {discount.group_id} already has percentage "
                    f"{other.discount_percentage}",
                    reason=RejectionReason.DISCOUNT_GROUP_CONFLICT,
                    violated_rules=["single_group_percentage"],
                )
