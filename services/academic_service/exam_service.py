"""
Exam Service

Enforces the retake policy when a student sits an exam and refunds part of
the enrollment payment after a failed attempt.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

import structlog

from services.academic_service.queries import exams_for_student, get_or_raise
from shared.config import get_settings
from shared.database.repository import EntityStore
from shared.domain.entities import Enrollment, Exam, build_entity
from shared.domain.exceptions import (
    BusinessRuleViolationError,
    IllegalStateError,
    RejectionReason,
)
from shared.domain.policies import (
    ExamGradePolicy,
    OneExamPerDayPolicy,
    PolicyEngine,
    PolicyResult,
    create_exam_policy_engine,
    refund_for_failed_exam,
)

logger = structlog.get_logger(__name__)


class ExamService:
    """
    Service recording exam attempts.

    Retake policy per (student, course):
    - no attempt after a passing grade
    - at most ``max_failed_attempts`` failures
    - one exam per student per calendar day, across all courses
    """

    def __init__(
        self,
        store: EntityStore,
        max_failed_attempts: int | None = None,
        passing_grade: int | None = None,
        refund_ratio: Decimal | None = None,
    ):
        """
        Initialize exam service.

        Args:
            store: Entity Store
            max_failed_attempts: Failures allowed per course (defaults to settings)
            passing_grade: Lowest passing grade (defaults to settings)
            refund_ratio: Share of the current payment refunded on failure (defaults to settings)
        """
        app_settings = get_settings()
        self.store = store
        self.max_failed_attempts = (
            max_failed_attempts
            if max_failed_attempts is not None
            else app_settings.max_failed_exam_attempts
        )
        self.passing_grade = passing_grade if passing_grade is not None else app_settings.passing_grade
        self.refund_ratio = (
            refund_ratio if refund_ratio is not None else app_settings.failed_exam_refund_ratio
        )

        self.policy_engine = create_exam_policy_engine(
            max_failed_attempts=self.max_failed_attempts, passing_grade=self.passing_grade
        )
        self.record_engine = PolicyEngine("exam_record")
        self.record_engine.register_policy(ExamGradePolicy(priority=80))
        self.record_engine.register_policy(OneExamPerDayPolicy(priority=70))

    async def take_exam(
        self, student_id: int, course_id: int, grade: int, exam_date: date | datetime
    ) -> Exam:
        """
        Record an exam attempt for an enrolled student.

        Steps:
        1. The student must hold an enrollment for the course
        2. Load prior attempts for the pair, oldest first
        3. Run retake, grade and same-day policies
        4. Persist the exam
        5. On a failing grade, refund ``refund_ratio`` of the current payment

        Args:
            student_id: Student id
            course_id: Course id
            grade: Grade on the 1-10 scale
            exam_date: When the exam took place; a plain date means midnight

        Returns:
            Exam: The persisted exam

        Raises:
            IllegalStateError: If the student is not enrolled in the course
            BusinessRuleViolationError: If a retake or structural rule rejects the attempt
        """
        logger.info(
            "Exam attempt requested",
            student_id=student_id,
            course_id=course_id,
            grade=grade,
            date=exam_date.isoformat(),
        )

        taken_at = (
            exam_date if isinstance(exam_date, datetime) else datetime.combine(exam_date, time.min)
        )

        enrollment = await self._find_enrollment(student_id, course_id)
        if enrollment is None:
            raise IllegalStateError(
                "Student is not enrolled in this course, cannot take exam",
                reason=RejectionReason.NOT_ENROLLED,
                context={"student_id": student_id, "course_id": course_id},
            )

        student_exams = await exams_for_student(self.store, student_id)
        attempts = sorted(
            (e for e in student_exams if e.course_id == course_id), key=lambda e: e.date
        )

        context: dict[str, Any] = {
            "attempts": attempts,
            "grade": grade,
            "exam_day": taken_at.date(),
            "student_exams": student_exams,
            "exam_id": None,
        }
        self._raise_if_rejected(await self.policy_engine.evaluate(context))

        exam = build_entity(Exam, student_id=student_id, course_id=course_id, grade=grade, date=taken_at)
        await self.store.exams.add(exam)
        logger.info("Exam saved", exam_id=exam.id, grade=grade)

        if not exam.is_passing(self.passing_grade):
            await self._refund(enrollment)

        return exam

    async def _refund(self, enrollment: Enrollment) -> None:
        """Refund a share of the current balance; repeated failures keep halving it."""
        refund = refund_for_failed_exam(enrollment.amount_paid, self.refund_ratio)
        enrollment.amount_paid = enrollment.amount_paid - refund
        await self.store.enrollments.update(enrollment)

        logger.info(
            "Student failed exam, refund issued",
            enrollment_id=enrollment.id,
            refund=str(refund),
            amount_paid=str(enrollment.amount_paid),
        )

    async def _find_enrollment(self, student_id: int, course_id: int) -> Enrollment | None:
        for enrollment in await self.store.enrollments.get_all():
            if enrollment.student_id == student_id and enrollment.course_id == course_id:
                return enrollment
        return None

    def _raise_if_rejected(self, result: PolicyResult) -> None:
        if not result.allowed:
            raise BusinessRuleViolationError(
                result.reason,
                reason=result.reason_code,
                violated_rules=result.violated_rules,
            )

    # CRUD

    async def get_by_id(self, exam_id: int) -> Exam | None:
        logger.info("Fetching exam", exam_id=exam_id)
        return await self.store.exams.get_by_id(exam_id)

    async def get_all(self) -> list[Exam]:
        return await self.store.exams.get_all()

    async def schedule_exam(self, exam: Exam) -> Exam:
        """Record an exam directly, without the retake policy."""
        await self._ensure_valid_record(exam)
        await self.store.exams.add(exam)
        logger.info("Exam scheduled", exam_id=exam.id)
        return exam

    async def update(self, exam: Exam) -> None:
        await self._ensure_valid_record(exam)
        await self.store.exams.update(exam)
        logger.info("Exam updated", exam_id=exam.id)

    async def delete(self, exam_id: int) -> None:
        logger.info("Deleting exam", exam_id=exam_id)
        await self.store.exams.delete(exam_id)

    async def _ensure_valid_record(self, exam: Exam) -> None:
        await get_or_raise(self.store.students, exam.student_id, "Student")
        await get_or_raise(self.store.courses, exam.course_id, "Course")

        context = {
            "grade": exam.grade,
            "exam_day": exam.exam_day,
            "student_exams": await exams_for_student(self.store, exam.student_id),
            "exam_id": exam.id,
        }
        self._raise_if_rejected(await self.record_engine.evaluate(context))
