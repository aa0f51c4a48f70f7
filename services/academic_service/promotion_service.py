"""
Promotion Service

Computes earned credits and moves students on to the next semester.
"""

from typing import Any

import structlog

from services.academic_service.queries import (
    enrollments_for_student,
    exams_for_student,
    get_or_raise,
)
from shared.config import get_settings
from shared.database.repository import EntityStore
from shared.domain.entities import Enrollment, Exam
from shared.domain.exceptions import (
    BusinessRuleViolationError,
    IllegalStateError,
    RejectionReason,
)
from shared.domain.policies import PolicyEngine, create_promotion_policy_engine

logger = structlog.get_logger(__name__)


class PromotionService:
    """
    Service deciding semester advancement.

    The current semester is the semester of the first enrollment the store
    returns for the student.
    """

    def __init__(
        self,
        store: EntityStore,
        passing_grade: int | None = None,
        policy_engine: PolicyEngine | None = None,
    ):
        self.store = store
        self.passing_grade = passing_grade if passing_grade is not None else get_settings().passing_grade
        self.policy_engine = policy_engine or create_promotion_policy_engine()

    async def promote_student(self, student_id: int) -> int:
        """
        Promote a student to the next semester number.

        Every enrollment of the student in the current semester is moved to
        the next semester when the credits earned there reach its minimum.

        Args:
            student_id: Student id

        Returns:
            int: Number of the semester the student was promoted to

        Raises:
            EntityNotFoundError: If the student or the current semester is missing
            IllegalStateError: If the student has no enrollments
            BusinessRuleViolationError: If credits are insufficient or no next semester exists
        """
        logger.info("Promotion requested", student_id=student_id)

        await get_or_raise(self.store.students, student_id, "Student")

        enrollments = await enrollments_for_student(self.store, student_id)
        if not enrollments:
            raise IllegalStateError(
                f"Student with ID {student_id} has no enrollments",
                reason=RejectionReason.NO_ENROLLMENTS,
            )

        current_semester = await get_or_raise(
            self.store.semesters, enrollments[0].semester_id, "Semester"
        )
        current_enrollments = [e for e in enrollments if e.semester_id == current_semester.id]
        exams = await exams_for_student(self.store, student_id)

        earned_credits = 0
        for enrollment in current_enrollments:
            earned_credits += await self._earned_credits_for(enrollment, exams)

        context: dict[str, Any] = {
            "student_id": student_id,
            "earned_credits": earned_credits,
            "current_semester": current_semester,
            "next_semester": await self.store.semesters.get_by_number(current_semester.number + 1),
        }

        result = await self.policy_engine.evaluate(context)
        if not result.allowed:
            raise BusinessRuleViolationError(
                result.reason,
                reason=result.reason_code,
                violated_rules=result.violated_rules,
                context=dict(result.metadata),
            )

        next_semester = context["next_semester"]
        for enrollment in current_enrollments:
            enrollment.semester_id = next_semester.id
            await self.store.enrollments.update(enrollment)

        logger.info(
            "Student promoted",
            student_id=student_id,
            from_semester=current_semester.number,
            to_semester=next_semester.number,
            earned_credits=earned_credits,
            moved_enrollments=len(current_enrollments),
        )
        return next_semester.number

    async def get_credit_report(self, student_id: int) -> dict[int, int]:
        """
        Earned credits grouped by semester number.

        Enrollments whose semester or course no longer resolves are skipped.

        Args:
            student_id: Student id

        Returns:
            dict[int, int]: semester number -> earned credits

        Raises:
            EntityNotFoundError: If the student is missing
            IllegalStateError: If the student has no enrollments
        """
        await get_or_raise(self.store.students, student_id, "Student")

        enrollments = await enrollments_for_student(self.store, student_id)
        if not enrollments:
            raise IllegalStateError(
                f"Student with ID {student_id} has no enrollments",
                reason=RejectionReason.NO_ENROLLMENTS,
            )

        exams = await exams_for_student(self.store, student_id)
        report: dict[int, int] = {}

        for enrollment in enrollments:
            semester = await self.store.semesters.get_by_id(enrollment.semester_id)
            if semester is None:
                continue

            credits = await self._earned_credits_for(enrollment, exams)
            if credits:
                report[semester.number] = report.get(semester.number, 0) + credits

        return report

    async def _earned_credits_for(self, enrollment: Enrollment, exams: list[Exam]) -> int:
        """Course credits if some exam for the enrolled course has a passing grade."""
        passed = any(
            exam.course_id == enrollment.course_id and exam.is_passing(self.passing_grade)
            for exam in exams
        )
        if not passed:
            return 0

        course = await self.store.courses.get_by_id(enrollment.course_id)
        return course.credits if course else 0
