"""Tests for services/academic_service/discount_service.py"""

from decimal import Decimal

import pytest

from services.academic_service.discount_service import DiscountService
from shared.database.memory import InMemoryRepository
from shared.domain.entities import Course, CourseDiscount
from shared.domain.exceptions import (
    BusinessRuleViolationError,
    EntityNotFoundError,
    RejectionReason,
)
from tests.factories import add_course, add_enrollment


@pytest.fixture
def service(store):
    return DiscountService(store)


async def add_discount(store, group_id: int, course, percentage: float) -> CourseDiscount:
    return await store.discounts.add(
        CourseDiscount(group_id=group_id, course_id=course.id, discount_percentage=percentage)
    )


async def cost_of(store, course) -> Decimal:
    return (await store.courses.get_by_id(course.id)).cost


class FailingCourseRepository(InMemoryRepository[Course]):
    """Course repository whose update fails for one course id."""

    def __init__(self, failing_id: int):
        super().__init__("Course")
        self.failing_id = failing_id

    async def update(self, entity: Course) -> None:
        if entity.id == self.failing_id:
            raise RuntimeError("course table unavailable")
        await super().update(entity)


class TestApplyDiscounts:
    async def test_single_course_group(self, store, student, semesters, service):
        # Pad ids so the discounted course is course 7
        for n in range(6):
            await add_course(store, name=f"Filler {n}")
        course = await add_course(
            store, semesters[0], cost=Decimal("200"), min_cost_per_credit=Decimal("10")
        )
        assert course.id == 7
        await add_enrollment(store, student, course, semesters[0])
        await add_discount(store, 1, course, 25)

        applied = await service.apply_discounts(student)

        assert applied == {7: 25}
        assert await cost_of(store, course) == Decimal("150")

    async def test_maximum_percentage_wins(self, store, student, semesters, service):
        course = await add_course(store, semesters[0], cost=Decimal("1000"))
        partner = await add_course(store, semesters[0], name="Partner")
        await add_enrollment(store, student, course, semesters[0])
        await add_enrollment(store, student, partner, semesters[0])
        await add_discount(store, 1, course, 10)
        await add_discount(store, 2, course, 20)
        await add_discount(store, 2, partner, 20)

        await service.apply_discounts(student)

        assert await cost_of(store, course) == Decimal("800")
        assert await cost_of(store, partner) == Decimal("400")

    async def test_group_requires_every_course(self, store, student, semesters, service):
        taken = await add_course(store, semesters[0], name="Taken")
        skipped = await add_course(store, semesters[0], name="Skipped")
        await add_enrollment(store, student, taken, semesters[0])
        await add_discount(store, 3, taken, 50)
        await add_discount(store, 3, skipped, 50)

        applied = await service.apply_discounts(student)

        assert applied == {}
        assert await cost_of(store, taken) == Decimal("500")

    async def test_no_enrollments_is_noop(self, store, student, semesters, service):
        course = await add_course(store, semesters[0])
        await add_discount(store, 1, course, 30)

        assert await service.apply_discounts(student) == {}
        assert await cost_of(store, course) == Decimal("500")

    async def test_repeated_application_compounds(self, store, student, semesters, service):
        course = await add_course(store, semesters[0], cost=Decimal("400"))
        await add_enrollment(store, student, course, semesters[0])
        await add_discount(store, 1, course, 50)

        await service.apply_discounts(student)
        await service.apply_discounts(student)

        assert await cost_of(store, course) == Decimal("100")

    async def test_group_with_deleted_course_is_skipped(self, store, student, semesters, service):
        course = await add_course(store, semesters[0])
        await add_enrollment(store, student, course, semesters[0])
        await add_discount(store, 1, course, 40)
        await store.courses.delete(course.id)

        assert await service.apply_discounts(student) == {}

    async def test_partial_failure_keeps_earlier_courses(self, store, student, semesters, service):
        store.courses = FailingCourseRepository(failing_id=2)
        first = await add_course(store, semesters[0], name="First", cost=Decimal("400"))
        second = await add_course(store, semesters[0], name="Second", cost=Decimal("400"))
        assert second.id == 2
        await add_enrollment(store, student, first, semesters[0])
        await add_enrollment(store, student, second, semesters[0])
        await add_discount(store, 1, first, 50)
        await add_discount(store, 1, second, 50)

        with pytest.raises(RuntimeError):
            await service.apply_discounts(student)

        assert await cost_of(store, first) == Decimal("200")
        assert await cost_of(store, second) == Decimal("400")


class TestDiscountCrud:
    async def test_create_requires_course(self, service):
        with pytest.raises(EntityNotFoundError):
            await service.create(CourseDiscount(group_id=1, course_id=99, discount_percentage=10))

    async def test_group_may_span_courses(self, store, semesters, service):
        a = await add_course(store, name="A")
        b = await add_course(store, name="B")

        await service.create(CourseDiscount(group_id=1, course_id=a.id, discount_percentage=15))
        await service.create(CourseDiscount(group_id=1, course_id=b.id, discount_percentage=15))

        assert sorted(await store.discounts.get_course_ids_by_group_id(1)) == [a.id, b.id]
        assert await store.discounts.exists_group_id(1) is True
        assert await store.discounts.exists_group_id(2) is False

    async def test_group_percentage_conflict(self, store, service):
        a = await add_course(store, name="A")
        b = await add_course(store, name="B")
        await service.create(CourseDiscount(group_id=1, course_id=a.id, discount_percentage=15))

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.create(CourseDiscount(group_id=1, course_id=b.id, discount_percentage=20))

        assert exc_info.value.reason == RejectionReason.DISCOUNT_GROUP_CONFLICT

    async def test_duplicate_group_course(self, store, service):
        a = await add_course(store, name="A")
        await service.create(CourseDiscount(group_id=1, course_id=a.id, discount_percentage=15))

        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.create(CourseDiscount(group_id=1, course_id=a.id, discount_percentage=15))

        assert exc_info.value.violated_rules == ["unique_group_course"]

    async def test_update_own_row(self, store, service):
        a = await add_course(store, name="A")
        discount = await service.create(
            CourseDiscount(group_id=1, course_id=a.id, discount_percentage=15)
        )

        discount.discount_percentage = 35
        await service.update(discount)

        assert (await service.get_by_id(discount.id)).discount_percentage == 35

    async def test_delete(self, store, service):
        a = await add_course(store, name="A")
        discount = await service.create(
            CourseDiscount(group_id=1, course_id=a.id, discount_percentage=15)
        )

        await service.delete(discount.id)

        assert await service.get_all() == []

    async def test_update_reprices_whole_group(self, store, service):
        a = await add_course(store, name="A")
        b = await add_course(store, name="B")
        other = await add_course(store, name="Other")
        first = await service.create(
            CourseDiscount(group_id=1, course_id=a.id, discount_percentage=15)
        )
        await service.create(CourseDiscount(group_id=1, course_id=b.id, discount_percentage=15))
        await service.create(CourseDiscount(group_id=2, course_id=other.id, discount_percentage=5))

        first.discount_percentage = 40
        await service.update(first)

        percentages = {(d.group_id, d.course_id): d.discount_percentage for d in await service.get_all()}
        assert percentages == {(1, a.id): 40, (1, b.id): 40, (2, other.id): 5}

    async def test_update_onto_course_in_group_rejected(self, store, service):
        a = await add_course(store, name="A")
        b = await add_course(store, name="B")
        await service.create(CourseDiscount(group_id=1, course_id=a.id, discount_percentage=15))
        moved = await service.create(
            CourseDiscount(group_id=1, course_id=b.id, discount_percentage=15)
        )

        moved.course_id = a.id
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.update(moved)

        assert exc_info.value.violated_rules == ["unique_group_course"]
        assert (await service.get_by_id(moved.id)).course_id == b.id
