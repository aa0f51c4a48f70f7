"""
Academic Domain Models

Entities, exceptions and the policy engine shared by every registrar service.

Relationships (by id, never by object reference):
- Course is offered in Semester through CourseSemester (many-to-many)
- CoursePrerequisite links a Course to the Course it depends on
- Enrollment ties Student, Course and Semester together
- Exam records a graded attempt of a Student at a Course
- CourseDiscount places a Course in a discount group
"""

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
    build_entity,
)
from shared.domain.exceptions import (
    BusinessRuleViolationError,
    DomainException,
    EntityNotFoundError,
    ErrorCode,
    IllegalStateError,
    RejectionReason,
    ValidationError,
    is_rejection,
)
from shared.domain.policies import AcademicPolicy, PolicyEngine, PolicyResult

__all__ = [
    # Entities
    "AbstractEntity",
    "Student",
    "Course",
    "Semester",
    "CourseSemester",
    "CoursePrerequisite",
    "Enrollment",
    "Exam",
    "CourseDiscount",
    "build_entity",
    # Exceptions
    "DomainException",
    "ErrorCode",
    "RejectionReason",
    "ValidationError",
    "BusinessRuleViolationError",
    "EntityNotFoundError",
    "IllegalStateError",
    "is_rejection",
    # Policies
    "AcademicPolicy",
    "PolicyEngine",
    "PolicyResult",
]
