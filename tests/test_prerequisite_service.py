"""Tests for the prerequisite graph validator and service."""

import pytest

from services.academic_service.prerequisite_service import (
    PrerequisiteGraphValidator,
    PrerequisiteService,
)
from shared.domain.entities import CoursePrerequisite
from shared.domain.exceptions import BusinessRuleViolationError, RejectionReason
from shared.verification import assert_acyclic
from tests.factories import add_course


def edge(course_id: int, prereq_id: int, **kwargs) -> CoursePrerequisite:
    return CoursePrerequisite(course_id=course_id, prereq_id=prereq_id, **kwargs)


class TestPrerequisiteGraphValidator:
    """Checks run in a fixed order and the first failure is reported"""

    @pytest.fixture
    def validator(self, store):
        return PrerequisiteGraphValidator(store)

    async def test_valid_edge_is_allowed(self, store, semesters, validator):
        sem1, sem2, _ = semesters
        intro = await add_course(store, sem1, name="Intro")
        advanced = await add_course(store, sem2, name="Advanced")

        result = await validator.validate(edge(advanced.id, intro.id))

        assert result.allowed is True
        assert result.reason_code is None

    async def test_self_prerequisite_rejected_first(self, validator):
        # Neither course exists; the self check still wins
        result = await validator.validate(edge(42, 42, min_grade=7))

        assert result.allowed is False
        assert result.reason_code == RejectionReason.SELF_PREREQUISITE

    async def test_missing_course_rejected(self, store, semesters, validator):
        intro = await add_course(store, semesters[0])

        result = await validator.validate(edge(99, intro.id))

        assert result.reason_code == RejectionReason.COURSE_NOT_FOUND

    async def test_missing_prerequisite_rejected(self, store, semesters, validator):
        advanced = await add_course(store, semesters[1])

        result = await validator.validate(edge(advanced.id, 99))

        assert result.reason_code == RejectionReason.COURSE_NOT_FOUND

    async def test_unscheduled_course_rejected(self, store, semesters, validator):
        intro = await add_course(store, semesters[0])
        unscheduled = await add_course(store, name="Floating")

        result = await validator.validate(edge(unscheduled.id, intro.id))

        assert result.reason_code == RejectionReason.UNSCHEDULED_COURSE

    async def test_course_offered_in_first_semester_rejected(self, store, semesters, validator):
        sem1, sem2, sem3 = semesters
        intro = await add_course(store, sem1)
        # Offered in semester 3 and also semester 1: every offering must be >= 2
        mixed = await add_course(store, sem3, sem1)

        result = await validator.validate(edge(mixed.id, intro.id))

        assert result.reason_code == RejectionReason.MINIMUM_SEMESTER_NOT_MET

    async def test_prerequisite_not_earlier_rejected(self, store, semesters, validator):
        _, sem2, sem3 = semesters
        advanced = await add_course(store, sem2)
        later = await add_course(store, sem3)

        result = await validator.validate(edge(advanced.id, later.id))

        assert result.reason_code == RejectionReason.PREREQUISITE_NOT_EARLIER

    async def test_same_semester_is_not_earlier(self, store, semesters, validator):
        sem2 = semesters[1]
        a = await add_course(store, sem2, name="A")
        b = await add_course(store, sem2, name="B")

        result = await validator.validate(edge(a.id, b.id))

        assert result.reason_code == RejectionReason.PREREQUISITE_NOT_EARLIER

    async def test_some_earlier_offering_is_enough(self, store, semesters, validator):
        sem1, sem2, sem3 = semesters
        course = await add_course(store, sem2)
        prereq = await add_course(store, sem3, sem1)

        result = await validator.validate(edge(course.id, prereq.id))

        assert result.allowed is True

    async def test_cycle_rejected(self, store, semesters, validator):
        _, sem2, sem3 = semesters
        a = await add_course(store, sem2, sem3, name="A")
        b = await add_course(store, sem2, sem3, name="B")
        await store.prerequisites.add(edge(a.id, b.id))

        result = await validator.validate(edge(b.id, a.id))

        assert result.reason_code == RejectionReason.CIRCULAR_DEPENDENCY

    async def test_updated_edge_excluded_from_graph(self, store, semesters, validator):
        _, sem2, sem3 = semesters
        a = await add_course(store, sem2, sem3, name="A")
        b = await add_course(store, sem2, sem3, name="B")
        stored = await store.prerequisites.add(edge(a.id, b.id))

        # Reversing the stored edge in place does not conflict with itself
        result = await validator.validate(edge(b.id, a.id, id=stored.id))

        assert result.allowed is True


class TestPrerequisiteService:
    @pytest.fixture
    def service(self, store):
        return PrerequisiteService(store)

    async def test_create_persists_valid_edge(self, store, semesters, service):
        sem1, sem2, _ = semesters
        intro = await add_course(store, sem1)
        advanced = await add_course(store, sem2)

        created = await service.create(edge(advanced.id, intro.id, min_grade=6))

        assert created.id is not None
        stored = await service.get_by_id(created.id)
        assert stored.min_grade == 6
        assert len(await service.get_all()) == 1

    async def test_create_rejection_writes_nothing(self, store, service):
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.create(edge(3, 3))

        assert exc_info.value.reason == RejectionReason.SELF_PREREQUISITE
        assert exc_info.value.violated_rules == ["no_self_prerequisite"]
        assert await store.prerequisites.get_all() == []

    async def test_graph_stays_acyclic_after_inserts(self, store, semesters, service):
        _, sem2, sem3 = semesters
        courses = [await add_course(store, sem2, sem3, name=f"C{i}") for i in range(4)]

        accepted = []
        for course in courses:
            for prereq in courses:
                try:
                    await service.create(edge(course.id, prereq.id))
                    accepted.append((course.id, prereq.id))
                except BusinessRuleViolationError:
                    pass

        assert accepted
        assert assert_acyclic(accepted)

    async def test_update_revalidates(self, store, semesters, service):
        sem1, sem2, sem3 = semesters
        intro = await add_course(store, sem1)
        advanced = await add_course(store, sem2)
        created = await service.create(edge(advanced.id, intro.id))

        created.prereq_id = advanced.id
        with pytest.raises(BusinessRuleViolationError) as exc_info:
            await service.update(created)

        assert exc_info.value.reason == RejectionReason.SELF_PREREQUISITE

    async def test_delete_removes_edge(self, store, semesters, service):
        sem1, sem2, _ = semesters
        intro = await add_course(store, sem1)
        advanced = await add_course(store, sem2)
        created = await service.create(edge(advanced.id, intro.id))

        await service.delete(created.id)

        assert await service.get_by_id(created.id) is None
