"""
Rich Domain Exceptions

Exception hierarchy for academic policy errors.
Supports structured error information, stable reason codes, and context.

Two families are raised by the services:
- rejections (ValidationError, BusinessRuleViolationError): the input or the
  requested action is not allowed; the caller fixes it and resubmits.
- precondition failures (EntityNotFoundError, IllegalStateError): a referenced
  entity or relationship is missing; the caller's logic is wrong.
"""

from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class ErrorCode(str, Enum):
    """Standard error codes for domain exceptions."""

    DOMAIN_VALIDATION_ERROR = "DOMAIN_VALIDATION_ERROR"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    ILLEGAL_STATE = "ILLEGAL_STATE"


class RejectionReason(str, Enum):
    """Stable, machine-checkable reasons attached to every failure."""

    # Prerequisite graph
    SELF_PREREQUISITE = "self_prerequisite"
    COURSE_NOT_FOUND = "course_not_found"
    UNSCHEDULED_COURSE = "unscheduled_course"
    MINIMUM_SEMESTER_NOT_MET = "minimum_semester_not_met"
    PREREQUISITE_NOT_EARLIER = "prerequisite_not_earlier"
    CIRCULAR_DEPENDENCY = "circular_dependency"

    # Enrollment
    NOT_FOUND = "not_found"
    COURSE_NOT_IN_SEMESTER = "course_not_in_semester"
    COST_OUT_OF_RANGE = "cost_out_of_range"
    ALREADY_ENROLLED = "already_enrolled"
    INSUFFICIENT_SEMESTER_CREDITS = "insufficient_semester_credits"

    # Exams
    NOT_ENROLLED = "not_enrolled"
    ALREADY_PASSED = "already_passed"
    MAX_ATTEMPTS_REACHED = "max_attempts_reached"
    INVALID_GRADE = "invalid_grade"
    MULTIPLE_EXAMS_SAME_DAY = "multiple_exams_same_day"

    # Promotion
    NO_ENROLLMENTS = "no_enrollments"
    NO_NEXT_SEMESTER = "no_next_semester"
    INSUFFICIENT_CREDITS = "insufficient_credits"

    # Catalog
    INVALID_ENTITY = "invalid_entity"
    MISSING_CONTACT = "missing_contact"
    INVALID_COST_BOUNDS = "invalid_cost_bounds"
    DUPLICATE_SEMESTER_NUMBER = "duplicate_semester_number"
    DUPLICATE_COURSE_SEMESTER = "duplicate_course_semester"
    DISCOUNT_GROUP_CONFLICT = "discount_group_conflict"


class DomainException(Exception):
    """
    Base class for all domain exceptions.

    Provides structured error information with error codes, reasons, and context.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        reason: RejectionReason | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            error_code: Standard error code
            status_code: HTTP status code a transport layer should map this to
            reason: Stable reason code for the failed rule
            context: Additional context data
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.reason = reason
        self.context = context or {}
        self.cause = cause

        logger.warning(
            "Domain exception raised",
            error_code=error_code.value,
            reason=reason.value if reason else None,
            message=message,
            context=context,
            exception_type=type(self).__name__,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error": self.error_code.value,
            "message": self.message,
            "type": type(self).__name__,
        }
        if self.reason:
            result["reason"] = self.reason.value
        if self.context:
            result["context"] = self.context
        return result


class ValidationError(DomainException):
    """Raised when an entity fails a structural rule."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        reason: RejectionReason = RejectionReason.INVALID_ENTITY,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)

        super().__init__(
            message=message,
            error_code=ErrorCode.DOMAIN_VALIDATION_ERROR,
            status_code=400,
            reason=reason,
            context=context,
            **kwargs
        )
        self.field = field


class BusinessRuleViolationError(DomainException):
    """Raised when an academic policy rejects the requested action."""

    def __init__(
        self,
        message: str,
        reason: RejectionReason,
        violated_rules: list[str] | None = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if violated_rules:
            context["violated_rules"] = violated_rules

        super().__init__(
            message=message,
            error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
            status_code=400,
            reason=reason,
            context=context,
            **kwargs
        )
        self.violated_rules = violated_rules or []


class EntityNotFoundError(DomainException):
    """Raised when an entity is not found."""

    def __init__(
        self,
        entity_type: str,
        entity_id: int | None = None,
        **kwargs
    ):
        message = kwargs.pop("message", None) or f"{entity_type} not found"
        if entity_id is not None:
            message += f" (ID: {entity_id})"

        context = kwargs.pop("context", {})
        context["entity_type"] = entity_type
        if entity_id is not None:
            context["entity_id"] = entity_id

        super().__init__(
            message=message,
            error_code=ErrorCode.ENTITY_NOT_FOUND,
            status_code=404,
            reason=RejectionReason.NOT_FOUND,
            context=context,
            **kwargs
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class IllegalStateError(DomainException):
    """Raised when a relationship the action depends on does not exist."""

    def __init__(
        self,
        message: str,
        reason: RejectionReason,
        **kwargs
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.ILLEGAL_STATE,
            status_code=409,
            reason=reason,
            **kwargs
        )


def is_rejection(exc: Exception) -> bool:
    """Return True for recoverable rejections, False for precondition failures."""
    return isinstance(exc, (ValidationError, BusinessRuleViolationError))
