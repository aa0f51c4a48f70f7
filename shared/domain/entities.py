"""
Core Academic Entities

Pydantic models for every record the policy engines read or write:
Student, Course, Semester, CourseSemester, CoursePrerequisite, Enrollment,
Exam and CourseDiscount.

Single-field rules are declared on the fields and checked by pydantic on
construction and on every assignment. Rules that span several fields live in
``validate_business_rules`` so a stored entity may drift out of them (a
discounted course cost, for instance) without the model refusing the write.
"""

import re
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.domain.exceptions import RejectionReason, ValidationError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^07\d{2}\s?\d{6}$")

EntityT = TypeVar("EntityT", bound="AbstractEntity")


class AbstractEntity(BaseModel, ABC):
    """
    Base entity providing an integer identity.

    ``id`` stays ``None`` until the Entity Store assigns one on ``add``.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        from_attributes=True,
    )

    id: int | None = Field(default=None, gt=0, description="Store-assigned identifier")

    @abstractmethod
    def validate_business_rules(self) -> bool:
        """
        Validate entity-specific business rules.

        Returns:
            bool: True if all business rules are satisfied

        Raises:
            ValidationError: If business rules are violated
        """


class Student(AbstractEntity):
    """Student with identity and at least one contact point."""

    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    cnp: str = Field(..., pattern=r"^\d{13}$", description="13-digit national identification number")
    address: str = Field(..., min_length=1)
    univ_code: str = Field(..., min_length=1, max_length=20)
    emails: list[str] = Field(default_factory=list)
    phone_numbers: list[str] = Field(default_factory=list)

    @field_validator("emails")
    @classmethod
    def validate_emails(cls, v: list[str]) -> list[str]:
        """Each e-mail must look like local@domain.tld."""
        for email in v:
            if not EMAIL_PATTERN.match(email):
                raise ValueError(f"Invalid e-mail address: {email}")
        return v

    @field_validator("phone_numbers")
    @classmethod
    def validate_phone_numbers(cls, v: list[str]) -> list[str]:
        """Each phone must follow the 07XX XXXXXX mobile format."""
        for phone in v:
            if not PHONE_PATTERN.match(phone):
                raise ValueError(f"Invalid phone number: {phone}")
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def validate_business_rules(self) -> bool:
        """A student must be reachable by e-mail or phone."""
        if not self.emails and not self.phone_numbers:
            raise ValidationError(
                "At least one phone number or one email address must be provided",
                field="emails",
                reason=RejectionReason.MISSING_CONTACT,
            )
        return True


class Course(AbstractEntity):
    """
    Course with a credit value and a price bounded per credit.

    The cost must lie in ``[min_cost_per_credit * credits,
    max_cost_per_credit * credits]`` when the course is created or edited.
    Discounts may later push it below the lower bound, which enrollment
    re-checks.
    """

    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    credits: int = Field(..., gt=0)
    cost: Decimal = Field(..., ge=0)
    min_cost_per_credit: Decimal = Field(..., gt=0)
    max_cost_per_credit: Decimal = Field(..., gt=0)

    def cost_bounds(self) -> tuple[Decimal, Decimal]:
        """Return the allowed (minimum, maximum) total cost."""
        return (
            self.min_cost_per_credit * self.credits,
            self.max_cost_per_credit * self.credits,
        )

    def cost_within_bounds(self) -> bool:
        minimum, maximum = self.cost_bounds()
        return minimum <= self.cost <= maximum

    def validate_business_rules(self) -> bool:
        if self.cost <= 0:
            raise ValidationError("Cost must be positive", field="cost", value=self.cost)

        if self.min_cost_per_credit > self.max_cost_per_credit:
            raise ValidationError(
                "Minimum cost per credit must be less than or equal to maximum cost per credit",
                field="min_cost_per_credit",
                value=self.min_cost_per_credit,
                reason=RejectionReason.INVALID_COST_BOUNDS,
            )

        if not self.cost_within_bounds():
            minimum, maximum = self.cost_bounds()
            raise ValidationError(
                f"Cost must be in range [{minimum}, {maximum}]",
                field="cost",
                value=self.cost,
                reason=RejectionReason.COST_OUT_OF_RANGE,
            )

        return True


class Semester(AbstractEntity):
    """Numbered semester with the credits required to leave it."""

    number: int = Field(..., ge=1)
    min_credits: int = Field(..., ge=0)

    def validate_business_rules(self) -> bool:
        return True


class CourseSemester(AbstractEntity):
    """Offering of a course in a semester."""

    course_id: int = Field(..., gt=0)
    semester_id: int = Field(..., gt=0)

    def validate_business_rules(self) -> bool:
        return True


class CoursePrerequisite(AbstractEntity):
    """Directed edge: ``course_id`` requires ``prereq_id`` passed with ``min_grade``."""

    course_id: int = Field(..., gt=0)
    prereq_id: int = Field(..., gt=0)
    min_grade: int = Field(default=5, ge=1, le=10)

    def validate_business_rules(self) -> bool:
        return True


class Enrollment(AbstractEntity):
    """Student enrolled in a course for a semester, with the amount paid so far."""

    student_id: int = Field(..., gt=0)
    course_id: int = Field(..., gt=0)
    semester_id: int = Field(..., gt=0)
    amount_paid: Decimal = Field(default=Decimal("0"), ge=0)

    def validate_business_rules(self) -> bool:
        return True


class Exam(AbstractEntity):
    """Graded exam attempt on a given day."""

    student_id: int = Field(..., gt=0)
    course_id: int = Field(..., gt=0)
    date: datetime
    grade: int = Field(..., ge=1, le=10)

    @property
    def exam_day(self) -> date:
        """Calendar day of the exam, used by the one-exam-per-day rule."""
        return self.date.date()

    def is_passing(self, passing_grade: int = 5) -> bool:
        return self.grade >= passing_grade

    def validate_business_rules(self) -> bool:
        return True


class CourseDiscount(AbstractEntity):
    """Membership of a course in a discount group, with the group's percentage."""

    group_id: int = Field(..., gt=0)
    course_id: int = Field(..., gt=0)
    discount_percentage: float = Field(..., ge=0, le=100)

    @property
    def multiplier(self) -> Decimal:
        """Factor applied to a course cost, e.g. 0.75 for a 25% discount."""
        return 1 - Decimal(str(self.discount_percentage)) / 100

    def validate_business_rules(self) -> bool:
        return True


def build_entity(entity_cls: type[EntityT], **data: Any) -> EntityT:
    """
    Construct an entity, translating pydantic errors into a domain ValidationError.

    Args:
        entity_cls: Entity class to build
        **data: Field values

    Returns:
        The validated entity

    Raises:
        ValidationError: With the path of the first failing field
    """
    try:
        return entity_cls(**data)
    except pydantic.ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        reason = RejectionReason.INVALID_ENTITY
        if entity_cls is Exam and field == "grade":
            reason = RejectionReason.INVALID_GRADE
        raise ValidationError(
            f"{entity_cls.__name__} is invalid: {first['msg']}",
            field=field,
            value=first.get("input"),
            reason=reason,
            cause=e,
        ) from e
