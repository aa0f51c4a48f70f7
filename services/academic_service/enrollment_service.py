"""
Enrollment Service

Core enrollment business logic with policy engine.
"""

from decimal import Decimal
from typing import Any

import structlog

from services.academic_service.queries import (
    enrollments_for_student,
    get_or_raise,
    is_offered_in,
)
from shared.database.repository import EntityStore
from shared.domain.entities import Course, Enrollment, Semester, build_entity
from shared.domain.exceptions import (
    BusinessRuleViolationError,
    IllegalStateError,
    RejectionReason,
)
from shared.domain.policies import (
    DuplicateEnrollmentPolicy,
    PolicyEngine,
    create_enrollment_policy_engine,
)

logger = structlog.get_logger(__name__)


class EnrollmentService:
    """
    Service orchestrating student enrollment with policy enforcement.

    Implements:
    - Precondition checks (entities exist, course offered in the semester)
    - Policy-driven eligibility (cost range, duplicates, semester credits)
    - Validated CRUD for enrollment records
    """

    def __init__(self, store: EntityStore, policy_engine: PolicyEngine | None = None):
        """
        Initialize enrollment service.

        Args:
            store: Entity Store
            policy_engine: Policy engine for enrollment validation
        """
        self.store = store
        self.policy_engine = policy_engine or create_enrollment_policy_engine()
        self.record_engine = PolicyEngine("enrollment_record")
        self.record_engine.register_policy(DuplicateEnrollmentPolicy())

    async def enroll_student(
        self,
        student_id: int,
        course_id: int,
        semester_id: int,
        initial_payment: Decimal,
    ) -> Enrollment:
        """
        Enroll a student in a course for a semester.

        Process:
        1. Fetch student, course and semester
        2. Check the course is offered in the semester
        3. Build policy evaluation context
        4. Execute enrollment policies (cost range, duplicate, semester credits)
        5. Persist the enrollment with the initial payment

        Args:
            student_id: Student id
            course_id: Course id
            semester_id: Semester id
            initial_payment: Amount paid up front

        Returns:
            Enrollment: Created enrollment

        Raises:
            EntityNotFoundError: If student, course or semester is missing
            IllegalStateError: If the course is not offered in the semester
            BusinessRuleViolationError: If a policy rejects the enrollment
            ValidationError: If the payment is negative
        """
        logger.info(
            "Starting enrollment process",
            student_id=student_id,
            course_id=course_id,
            semester_id=semester_id,
            initial_payment=str(initial_payment),
        )

        await get_or_raise(self.store.students, student_id, "Student")
        course = await get_or_raise(self.store.courses, course_id, "Course")
        semester = await get_or_raise(self.store.semesters, semester_id, "Semester")

        if not await is_offered_in(self.store, course_id, semester_id):
            raise IllegalStateError(
                "Course does not belong to the specified semester",
                reason=RejectionReason.COURSE_NOT_IN_SEMESTER,
                context={"course_id": course_id, "semester_id": semester_id},
            )

        context = await self._build_policy_context(student_id, course, semester)

        allowed, policy_results = await self.policy_engine.evaluate_all(context)
        if not allowed:
            failed_result = policy_results[-1]
            logger.warning(
                "Enrollment denied by policy",
                student_id=student_id,
                course_id=course_id,
                reason=failed_result.reason,
            )
            raise BusinessRuleViolationError(
                failed_result.reason,
                reason=failed_result.reason_code,
                violated_rules=failed_result.violated_rules,
                context=dict(failed_result.metadata),
            )

        enrollment = build_entity(
            Enrollment,
            student_id=student_id,
            course_id=course_id,
            semester_id=semester_id,
            amount_paid=initial_payment,
        )
        await self.store.enrollments.add(enrollment)

        logger.info(
            "Enrollment completed",
            enrollment_id=enrollment.id,
            student_id=student_id,
            course_id=course_id,
            semester_id=semester_id,
        )
        return enrollment

    async def _build_policy_context(
        self, student_id: int, course: Course, semester: Semester
    ) -> dict[str, Any]:
        """
        Build context for policy evaluation.

        Credits already enrolled in the semester are summed from the courses
        of the student's enrollments there.
        """
        enrollments = await enrollments_for_student(self.store, student_id)

        semester_credits = 0
        for enrollment in enrollments:
            if enrollment.semester_id != semester.id:
                continue
            enrolled_course = await self.store.courses.get_by_id(enrollment.course_id)
            if enrolled_course is not None:
                semester_credits += enrolled_course.credits

        return {
            "course": course,
            "semester": semester,
            "student_course_ids": {e.course_id for e in enrollments},
            "semester_credits": semester_credits,
        }

    # CRUD

    async def get_by_id(self, enrollment_id: int) -> Enrollment | None:
        logger.info("Fetching enrollment", enrollment_id=enrollment_id)
        return await self.store.enrollments.get_by_id(enrollment_id)

    async def get_all(self) -> list[Enrollment]:
        return await self.store.enrollments.get_all()

    async def create(self, enrollment: Enrollment) -> Enrollment:
        """Persist an enrollment after checking its references and that the course is not already taken."""
        await self._ensure_references(enrollment)
        await self.store.enrollments.add(enrollment)
        logger.info("Enrollment created", enrollment_id=enrollment.id)
        return enrollment

    async def update(self, enrollment: Enrollment) -> None:
        await self._ensure_references(enrollment)
        await self.store.enrollments.update(enrollment)
        logger.info("Enrollment updated", enrollment_id=enrollment.id)

    async def delete(self, enrollment_id: int) -> None:
        logger.info("Deleting enrollment", enrollment_id=enrollment_id)
        await self.store.enrollments.delete(enrollment_id)

    async def _ensure_references(self, enrollment: Enrollment) -> None:
        """Referenced entities exist and the (student, course) pair is not taken by another row."""
        await get_or_raise(self.store.students, enrollment.student_id, "Student")
        course = await get_or_raise(self.store.courses, enrollment.course_id, "Course")
        await get_or_raise(self.store.semesters, enrollment.semester_id, "Semester")

        others = [
            e
            for e in await enrollments_for_student(self.store, enrollment.student_id)
            if enrollment.id is None or e.id != enrollment.id
        ]
        context = {"course": course, "student_course_ids": {e.course_id for e in others}}

        result = await self.record_engine.evaluate(context)
        if not result.allowed:
            raise BusinessRuleViolationError(
                result.reason,
                reason=result.reason_code,
                violated_rules=result.violated_rules,
                context={"student_id": enrollment.student_id, "course_id": enrollment.course_id},
            )
