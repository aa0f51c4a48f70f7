"""
Policy Engine & Academic Policies

Implements Strategy pattern for pluggable academic policies.
Every policy is a side-effect-free predicate over a context dict that the
owning service assembles from Entity Store reads, so policies can be
exercised with plain in-memory data.

Policies run in a fixed order (higher priority first) and the engine stops at
the first rejection, which is the reason reported to the caller.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from shared.domain.entities import Course, Exam, Semester
from shared.domain.exceptions import RejectionReason
from shared.verification.prerequisite_graph import PrerequisiteGraph

logger = structlog.get_logger(__name__)


class PolicyResult(BaseModel):
    """Result of policy evaluation."""

    model_config = ConfigDict(frozen=True)

    allowed: bool = Field(..., description="Whether action is allowed")
    reason: str = Field(..., description="Human-readable reason")
    reason_code: RejectionReason | None = Field(default=None, description="Stable rejection code")
    violated_rules: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, reason: str, **metadata: Any) -> "PolicyResult":
        return cls(allowed=True, reason=reason, metadata=metadata)


class AcademicPolicy(ABC):
    """
    Abstract base class for academic policies (Strategy pattern).

    Each concrete policy implements one rule and owns one rejection reason.
    """

    reason_code: RejectionReason

    def __init__(self, name: str, priority: int = 0):
        """
        Initialize policy.

        Args:
            name: Policy identifier
            priority: Execution priority (higher = earlier)
        """
        self.name = name
        self.priority = priority

    @abstractmethod
    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """
        Evaluate if the action is allowed.

        Args:
            context: Data gathered by the owning service

        Returns:
            PolicyResult: Evaluation result
        """

    def reject(self, reason: str, **metadata: Any) -> PolicyResult:
        """Build a rejection carrying this policy's reason code."""
        return PolicyResult(
            allowed=False,
            reason=reason,
            reason_code=self.reason_code,
            violated_rules=[self.name],
            metadata=metadata,
        )

    def __lt__(self, other: "AcademicPolicy") -> bool:
        """Compare policies by priority for sorting."""
        return self.priority > other.priority  # Higher priority first


# ---------------------------------------------------------------------------
# Prerequisite graph
# ---------------------------------------------------------------------------


class SelfPrerequisitePolicy(AcademicPolicy):
    """A course cannot require itself."""

    reason_code = RejectionReason.SELF_PREREQUISITE

    def __init__(self, priority: int = 100):
        super().__init__("no_self_prerequisite", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """
        Context should include:
        - course_id: int
        - prereq_id: int
        """
        if context["course_id"] == context["prereq_id"]:
            return self.reject(
                "Course cannot be a prerequisite of itself", course_id=context["course_id"]
            )
        return PolicyResult.ok("Distinct course and prerequisite")


class ScheduledCoursesPolicy(AcademicPolicy):
    """
    Both ends of the edge must exist and be offered in at least one semester.

    Reports COURSE_NOT_FOUND for a missing course and UNSCHEDULED_COURSE for a
    course without offerings.
    """

    reason_code = RejectionReason.COURSE_NOT_FOUND

    def __init__(self, priority: int = 90):
        super().__init__("scheduled_courses", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """
        Context should include:
        - course_exists / prereq_exists: bool
        - course_semester_numbers / prereq_semester_numbers: list[int]
        """
        for label, key in (("Course", "course"), ("Prerequisite course", "prereq")):
            if not context[f"{key}_exists"]:
                return self.reject(f"{label} must exist", course_id=context[f"{key}_id"])

        for label, key in (("Course", "course"), ("Prerequisite course", "prereq")):
            if not context[f"{key}_semester_numbers"]:
                return PolicyResult(
                    allowed=False,
                    reason=f"{label} is not scheduled in any semester",
                    reason_code=RejectionReason.UNSCHEDULED_COURSE,
                    violated_rules=[self.name],
                    metadata={"course_id": context[f"{key}_id"]},
                )

        return PolicyResult.ok("Both courses exist and are scheduled")


class MinimumSemesterPolicy(AcademicPolicy):
    """Only courses offered exclusively from a minimum semester on may have prerequisites."""

    reason_code = RejectionReason.MINIMUM_SEMESTER_NOT_MET

    def __init__(self, min_semester: int = 2, priority: int = 80):
        super().__init__("minimum_semester", priority)
        self.min_semester = min_semester

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        numbers: list[int] = context["course_semester_numbers"]

        if not all(number >= self.min_semester for number in numbers):
            return self.reject(
                f"Only courses from semester {self.min_semester} or higher can have prerequisites",
                course_semester_numbers=sorted(numbers),
            )
        return PolicyResult.ok("Course is offered late enough to have prerequisites")


class PrerequisiteEarlierPolicy(AcademicPolicy):
    """Some offering of the prerequisite must come before some offering of the course."""

    reason_code = RejectionReason.PREREQUISITE_NOT_EARLIER

    def __init__(self, priority: int = 70):
        super().__init__("prerequisite_earlier", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        course_numbers: list[int] = context["course_semester_numbers"]
        prereq_numbers: list[int] = context["prereq_semester_numbers"]

        if not any(p < c for p in prereq_numbers for c in course_numbers):
            return self.reject(
                "Prerequisite course must be in an earlier semester than the course",
                course_semester_numbers=sorted(course_numbers),
                prereq_semester_numbers=sorted(prereq_numbers),
            )
        return PolicyResult.ok("Prerequisite is offered earlier")


class AcyclicPrerequisitePolicy(AcademicPolicy):
    """Adding the candidate edge must keep the prerequisite graph acyclic."""

    reason_code = RejectionReason.CIRCULAR_DEPENDENCY

    def __init__(self, priority: int = 60):
        super().__init__("acyclic_prerequisites", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """
        Context should include:
        - prerequisite_graph: PrerequisiteGraph of existing edges
        """
        graph: PrerequisiteGraph = context["prerequisite_graph"]
        candidate = graph.with_edge(context["course_id"], context["prereq_id"])

        if candidate.has_cycle():
            return self.reject(
                "Adding this prerequisite would create a circular dependency",
                edge_count=candidate.edge_count,
            )
        return PolicyResult.ok("Prerequisite graph stays acyclic")


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


class CostRangePolicy(AcademicPolicy):
    """The course price must still lie within its per-credit bounds."""

    reason_code = RejectionReason.COST_OUT_OF_RANGE

    def __init__(self, priority: int = 100):
        super().__init__("cost_range", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        course: Course = context["course"]
        minimum, maximum = course.cost_bounds()

        if not course.cost_within_bounds():
            return self.reject(
                f"Course cost is out of allowed range: [{minimum}, {maximum}]",
                cost=str(course.cost),
                min_cost=str(minimum),
                max_cost=str(maximum),
            )
        return PolicyResult.ok("Course cost within range")


class DuplicateEnrollmentPolicy(AcademicPolicy):
    """A student enrolls in a course at most once, whatever the semester."""

    reason_code = RejectionReason.ALREADY_ENROLLED

    def __init__(self, priority: int = 90):
        super().__init__("no_duplicate_enrollment", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """
        Context should include:
        - student_course_ids: set of course ids the student is enrolled in
        """
        if context["course"].id in context["student_course_ids"]:
            return self.reject("Student is already enrolled in this course")
        return PolicyResult.ok("No existing enrollment for this course")


class SemesterCreditMinimumPolicy(AcademicPolicy):
    """Credits enrolled in the semester, including the new course, must reach its minimum."""

    reason_code = RejectionReason.INSUFFICIENT_SEMESTER_CREDITS

    def __init__(self, priority: int = 80):
        super().__init__("semester_credit_minimum", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """
        Context should include:
        - semester_credits: int already enrolled by the student in the semester
        """
        course: Course = context["course"]
        semester: Semester = context["semester"]
        total_credits = context["semester_credits"] + course.credits

        if total_credits < semester.min_credits:
            return self.reject(
                f"Insufficient credits. Need at least {semester.min_credits} "
                f"in semester {semester.number}",
                total_credits=total_credits,
                min_credits=semester.min_credits,
            )
        return PolicyResult.ok(
            f"Semester credits satisfied ({total_credits}/{semester.min_credits})",
            total_credits=total_credits,
        )


# ---------------------------------------------------------------------------
# Exams
# ---------------------------------------------------------------------------


class AlreadyPassedPolicy(AcademicPolicy):
    """No further attempts once a passing grade is recorded."""

    reason_code = RejectionReason.ALREADY_PASSED

    def __init__(self, passing_grade: int = 5, priority: int = 100):
        super().__init__("pass_once", priority)
        self.passing_grade = passing_grade

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """
        Context should include:
        - attempts: list[Exam] for the student and course, oldest first
        """
        attempts: list[Exam] = context["attempts"]

        if any(exam.is_passing(self.passing_grade) for exam in attempts):
            return self.reject("Student already passed this course. No further attempts allowed")
        return PolicyResult.ok("Course not passed yet")


class MaxFailedAttemptsPolicy(AcademicPolicy):
    """A course may be failed at most ``max_attempts`` times."""

    reason_code = RejectionReason.MAX_ATTEMPTS_REACHED

    def __init__(self, max_attempts: int = 3, passing_grade: int = 5, priority: int = 90):
        super().__init__("max_failed_attempts", priority)
        self.max_attempts = max_attempts
        self.passing_grade = passing_grade

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        attempts: list[Exam] = context["attempts"]
        failed = sum(1 for exam in attempts if not exam.is_passing(self.passing_grade))

        if failed >= self.max_attempts:
            return self.reject(
                f"Student has reached max attempts ({self.max_attempts}). "
                "Must choose another course",
                failed_attempts=failed,
            )
        return PolicyResult.ok(
            f"Attempt {failed + 1} of {self.max_attempts}", failed_attempts=failed
        )


class ExamGradePolicy(AcademicPolicy):
    """Grades live on the 1 to 10 scale."""

    reason_code = RejectionReason.INVALID_GRADE

    def __init__(self, priority: int = 80):
        super().__init__("grade_range", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        grade: int = context["grade"]

        if not 1 <= grade <= 10:
            return self.reject("Grade must be between 1 and 10", grade=grade)
        return PolicyResult.ok("Grade within scale")


class OneExamPerDayPolicy(AcademicPolicy):
    """A student sits at most one exam per calendar day, across all courses."""

    reason_code = RejectionReason.MULTIPLE_EXAMS_SAME_DAY

    def __init__(self, priority: int = 70):
        super().__init__("one_exam_per_day", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """
        Context should include:
        - exam_day: date of the candidate exam
        - student_exams: list[Exam] of every exam of the student
        - exam_id: id of the exam being updated, or None
        """
        exam_day: date = context["exam_day"]
        exam_id: int | None = context.get("exam_id")

        for exam in context["student_exams"]:
            if exam.exam_day == exam_day and (exam_id is None or exam.id != exam_id):
                return self.reject(
                    "A student cannot have multiple exams on the same day",
                    conflicting_exam_id=exam.id,
                    exam_day=exam_day.isoformat(),
                )
        return PolicyResult.ok("No other exam that day")


# ---------------------------------------------------------------------------
# Promotion
# ---------------------------------------------------------------------------


class EarnedCreditsPolicy(AcademicPolicy):
    """Earned credits in the current semester must reach its minimum."""

    reason_code = RejectionReason.INSUFFICIENT_CREDITS

    def __init__(self, priority: int = 100):
        super().__init__("earned_credits", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """
        Context should include:
        - earned_credits: int
        - current_semester: Semester
        """
        earned: int = context["earned_credits"]
        semester: Semester = context["current_semester"]

        if earned < semester.min_credits:
            return self.reject(
                f"Student {context['student_id']} has not earned enough credits "
                f"({earned}/{semester.min_credits}) for promotion",
                earned_credits=earned,
                min_credits=semester.min_credits,
            )
        return PolicyResult.ok(
            f"Earned {earned}/{semester.min_credits} credits", earned_credits=earned
        )


class NextSemesterPolicy(AcademicPolicy):
    """There must be a semester to be promoted into."""

    reason_code = RejectionReason.NO_NEXT_SEMESTER

    def __init__(self, priority: int = 90):
        super().__init__("next_semester_exists", priority)

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        if context.get("next_semester") is None:
            return self.reject(
                "No next semester available for promotion",
                current_number=context["current_semester"].number,
            )
        return PolicyResult.ok("Next semester exists")


class PolicyEngine:
    """
    Policy evaluation engine that coordinates multiple policies.

    Executes policies in priority order and stops at the first rejection.
    """

    def __init__(self, name: str = "default"):
        """Initialize policy engine."""
        self.name = name
        self.policies: list[AcademicPolicy] = []

    def register_policy(self, policy: AcademicPolicy) -> None:
        """
        Register a policy with the engine.

        Args:
            policy: Policy to register
        """
        self.policies.append(policy)
        self.policies.sort()  # Sort by priority
        logger.debug(
            "Policy registered", engine=self.name, policy_name=policy.name, priority=policy.priority
        )

    def unregister_policy(self, policy_name: str) -> bool:
        """
        Unregister a policy.

        Args:
            policy_name: Name of policy to remove

        Returns:
            bool: True if policy was found and removed
        """
        initial_count = len(self.policies)
        self.policies = [p for p in self.policies if p.name != policy_name]
        return len(self.policies) < initial_count

    async def evaluate_all(self, context: dict[str, Any]) -> tuple[bool, list[PolicyResult]]:
        """
        Evaluate all registered policies.

        Args:
            context: Evaluation context

        Returns:
            Tuple of (all_allowed, list of results)
        """
        results: list[PolicyResult] = []

        for policy in self.policies:
            result = await policy.evaluate(context)
            results.append(result)

            # Stop on first failure (fail-fast)
            if not result.allowed:
                logger.info(
                    "Policy evaluation failed",
                    engine=self.name,
                    policy=policy.name,
                    reason_code=result.reason_code.value if result.reason_code else None,
                    reason=result.reason,
                )
                return False, results

        return True, results

    async def evaluate(self, context: dict[str, Any]) -> PolicyResult:
        """Evaluate all policies and collapse them into one verdict."""
        allowed, results = await self.evaluate_all(context)
        if not allowed:
            return first_failure(results)
        return PolicyResult.ok(f"All {self.name} policies satisfied")

    def get_registered_policies(self) -> list[str]:
        """Get list of registered policy names."""
        return [p.name for p in self.policies]


def first_failure(results: list[PolicyResult]) -> PolicyResult:
    """Return the first rejecting result."""
    return next(r for r in results if not r.allowed)


def create_prerequisite_policy_engine(min_semester: int = 2) -> PolicyEngine:
    """
    Create policy engine validating a new prerequisite edge.

    Returns:
        PolicyEngine: Configured engine with the graph rules in order
    """
    engine = PolicyEngine("prerequisite")

    engine.register_policy(SelfPrerequisitePolicy(priority=100))
    engine.register_policy(ScheduledCoursesPolicy(priority=90))
    engine.register_policy(MinimumSemesterPolicy(min_semester=min_semester, priority=80))
    engine.register_policy(PrerequisiteEarlierPolicy(priority=70))
    engine.register_policy(AcyclicPrerequisitePolicy(priority=60))

    return engine


def create_enrollment_policy_engine() -> PolicyEngine:
    """Create policy engine deciding enrollment eligibility."""
    engine = PolicyEngine("enrollment")

    engine.register_policy(CostRangePolicy(priority=100))
    engine.register_policy(DuplicateEnrollmentPolicy(priority=90))
    engine.register_policy(SemesterCreditMinimumPolicy(priority=80))

    return engine


def create_exam_policy_engine(max_failed_attempts: int = 3, passing_grade: int = 5) -> PolicyEngine:
    """Create policy engine enforcing the exam retake rules."""
    engine = PolicyEngine("exam")

    engine.register_policy(AlreadyPassedPolicy(passing_grade=passing_grade, priority=100))
    engine.register_policy(
        MaxFailedAttemptsPolicy(
            max_attempts=max_failed_attempts, passing_grade=passing_grade, priority=90
        )
    )
    engine.register_policy(ExamGradePolicy(priority=80))
    engine.register_policy(OneExamPerDayPolicy(priority=70))

    return engine


def create_promotion_policy_engine() -> PolicyEngine:
    """Create policy engine deciding semester promotion."""
    engine = PolicyEngine("promotion")

    engine.register_policy(EarnedCreditsPolicy(priority=100))
    engine.register_policy(NextSemesterPolicy(priority=90))

    return engine


def refund_for_failed_exam(amount_paid: Decimal, ratio: Decimal = Decimal("0.5")) -> Decimal:
    """Refund owed after a failed exam, computed on the current balance."""
    return amount_paid * ratio
