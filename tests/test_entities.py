"""Tests for shared/domain/entities.py and shared/domain/exceptions.py"""

from datetime import datetime
from decimal import Decimal

import pydantic
import pytest

from shared.domain.entities import CourseDiscount, Exam, build_entity
from shared.domain.exceptions import (
    BusinessRuleViolationError,
    EntityNotFoundError,
    ErrorCode,
    IllegalStateError,
    RejectionReason,
    ValidationError,
    is_rejection,
)
from tests.factories import make_course, make_student


class TestStudent:
    def test_valid_student(self):
        student = make_student()
        assert student.full_name == "Ana Popescu"
        assert student.validate_business_rules() is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"first_name": ""},
            {"last_name": "x" * 51},
            {"cnp": "123"},
            {"cnp": "50101011234ab"},
            {"univ_code": "U" * 21},
            {"emails": ["not-an-email"]},
            {"phone_numbers": ["0822 123456"]},
            {"phone_numbers": ["+40722123456"]},
        ],
    )
    def test_field_rules(self, overrides):
        with pytest.raises(pydantic.ValidationError):
            make_student(**overrides)

    def test_phone_space_is_optional(self):
        assert make_student(phone_numbers=["0722123456"]).phone_numbers == ["0722123456"]

    def test_contact_required(self):
        student = make_student(emails=[], phone_numbers=[])

        with pytest.raises(ValidationError) as exc_info:
            student.validate_business_rules()

        assert exc_info.value.reason == RejectionReason.MISSING_CONTACT

    def test_assignment_is_validated(self):
        student = make_student()
        with pytest.raises(pydantic.ValidationError):
            student.cnp = "short"


class TestCourse:
    def test_bounds(self):
        course = make_course()
        assert course.cost_bounds() == (Decimal("250"), Decimal("1000"))
        assert course.validate_business_rules() is True

    def test_cost_must_be_positive(self):
        with pytest.raises(ValidationError) as exc_info:
            make_course(cost=Decimal("0")).validate_business_rules()

        assert exc_info.value.field == "cost"

    def test_min_above_max(self):
        course = make_course(min_cost_per_credit=Decimal("300"), max_cost_per_credit=Decimal("200"))

        with pytest.raises(ValidationError) as exc_info:
            course.validate_business_rules()

        assert exc_info.value.reason == RejectionReason.INVALID_COST_BOUNDS

    def test_cost_outside_range(self):
        with pytest.raises(ValidationError) as exc_info:
            make_course(cost=Decimal("1000.01")).validate_business_rules()

        assert exc_info.value.reason == RejectionReason.COST_OUT_OF_RANGE

    def test_zero_credits_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            make_course(credits=0)


class TestExamAndDiscount:
    def test_exam_day_and_passing(self):
        exam = Exam(student_id=1, course_id=1, date=datetime(2024, 1, 15, 23, 59), grade=5)
        assert exam.exam_day.isoformat() == "2024-01-15"
        assert exam.is_passing() is True
        assert exam.is_passing(passing_grade=6) is False

    def test_discount_multiplier(self):
        discount = CourseDiscount(group_id=1, course_id=1, discount_percentage=12.5)
        assert discount.multiplier == Decimal("0.875")

    @pytest.mark.parametrize("percentage", [-1, 100.5])
    def test_discount_percentage_range(self, percentage):
        with pytest.raises(pydantic.ValidationError):
            CourseDiscount(group_id=1, course_id=1, discount_percentage=percentage)


class TestBuildEntity:
    def test_translates_pydantic_error(self):
        with pytest.raises(ValidationError) as exc_info:
            build_entity(CourseDiscount, group_id=0, course_id=1, discount_percentage=10)

        assert exc_info.value.field == "group_id"
        assert exc_info.value.reason == RejectionReason.INVALID_ENTITY
        assert isinstance(exc_info.value.cause, pydantic.ValidationError)

    def test_exam_grade_maps_to_invalid_grade(self):
        with pytest.raises(ValidationError) as exc_info:
            build_entity(Exam, student_id=1, course_id=1, date=datetime(2024, 1, 1), grade=11)

        assert exc_info.value.reason == RejectionReason.INVALID_GRADE


class TestExceptions:
    def test_rejections_and_precondition_failures(self):
        assert is_rejection(ValidationError("bad"))
        assert is_rejection(
            BusinessRuleViolationError("no", reason=RejectionReason.ALREADY_ENROLLED)
        )
        assert not is_rejection(EntityNotFoundError("Student", 1))
        assert not is_rejection(
            IllegalStateError("no", reason=RejectionReason.NOT_ENROLLED)
        )

    def test_to_dict(self):
        error = EntityNotFoundError("Course", 7)

        assert error.to_dict() == {
            "error": ErrorCode.ENTITY_NOT_FOUND.value,
            "message": "Course not found (ID: 7)",
            "type": "EntityNotFoundError",
            "reason": "not_found",
            "context": {"entity_type": "Course", "entity_id": 7},
        }
        assert error.status_code == 404
