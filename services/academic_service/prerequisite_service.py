"""
Prerequisite Service

Validates and persists prerequisite edges. The graph of all existing edges is
re-read on every validation, augmented with the candidate, and checked for
cycles before anything is written.
"""

from typing import Any

import structlog

from services.academic_service.queries import semester_numbers_for_course
from shared.config import get_settings
from shared.database.repository import EntityStore
from shared.domain.entities import CoursePrerequisite
from shared.domain.exceptions import BusinessRuleViolationError
from shared.domain.policies import (
    PolicyEngine,
    PolicyResult,
    create_prerequisite_policy_engine,
)
from shared.verification.prerequisite_graph import PrerequisiteGraph

logger = structlog.get_logger(__name__)


class PrerequisiteGraphValidator:
    """
    Checks the structural legality of a prerequisite edge.

    Rules, in order (the first failure is the reported reason):
    1. the course is not its own prerequisite
    2. both courses exist and are scheduled in at least one semester
    3. every offering of the course is in the minimum semester or later
    4. some prerequisite offering precedes some course offering
    5. the edge does not close a cycle
    """

    def __init__(self, store: EntityStore, policy_engine: PolicyEngine | None = None):
        """
        Initialize validator.

        Args:
            store: Entity Store to read courses, offerings and edges from
            policy_engine: Engine with the graph rules (defaults to the standard order)
        """
        self.store = store
        self.policy_engine = policy_engine or create_prerequisite_policy_engine(
            min_semester=get_settings().min_prerequisite_semester
        )

    async def validate(self, edge: CoursePrerequisite) -> PolicyResult:
        """
        Validate a candidate edge against live data.

        When ``edge.id`` is set the stored edge with that id is left out of the
        graph, so an update is checked against the graph it would replace.

        Args:
            edge: Candidate edge

        Returns:
            PolicyResult: allowed, or the first rejection with its reason code
        """
        context = await self._build_context(edge)
        result = await self.policy_engine.evaluate(context)

        if not result.allowed:
            logger.warning(
                "Prerequisite rejected",
                course_id=edge.course_id,
                prereq_id=edge.prereq_id,
                reason_code=result.reason_code.value if result.reason_code else None,
            )
        return result

    async def _build_context(self, edge: CoursePrerequisite) -> dict[str, Any]:
        """Gather the courses, their offerings and the existing edges."""
        context: dict[str, Any] = {
            "course_id": edge.course_id,
            "prereq_id": edge.prereq_id,
        }

        for key, course_id in (("course", edge.course_id), ("prereq", edge.prereq_id)):
            course = await self.store.courses.get_by_id(course_id)
            context[f"{key}_exists"] = course is not None
            context[f"{key}_semester_numbers"] = (
                await semester_numbers_for_course(self.store, course_id) if course else []
            )

        existing = await self.store.prerequisites.get_all()
        context["prerequisite_graph"] = PrerequisiteGraph.from_edges(
            (e.course_id, e.prereq_id)
            for e in existing
            if edge.id is None or e.id != edge.id
        )
        return context


class PrerequisiteService:
    """Service owning the prerequisite edges."""

    def __init__(self, store: EntityStore, validator: PrerequisiteGraphValidator | None = None):
        self.store = store
        self.validator = validator or PrerequisiteGraphValidator(store)

    async def get_by_id(self, edge_id: int) -> CoursePrerequisite | None:
        logger.info("Fetching prerequisite", edge_id=edge_id)
        return await self.store.prerequisites.get_by_id(edge_id)

    async def get_all(self) -> list[CoursePrerequisite]:
        return await self.store.prerequisites.get_all()

    async def create(self, edge: CoursePrerequisite) -> CoursePrerequisite:
        """
        Validate and persist a new edge.

        Raises:
            BusinessRuleViolationError: If any graph rule rejects the edge
        """
        logger.info("Creating prerequisite", course_id=edge.course_id, prereq_id=edge.prereq_id)

        await self._ensure_valid(edge)
        await self.store.prerequisites.add(edge)

        logger.info("Prerequisite created", edge_id=edge.id)
        return edge

    async def update(self, edge: CoursePrerequisite) -> None:
        logger.info("Updating prerequisite", edge_id=edge.id)

        await self._ensure_valid(edge)
        await self.store.prerequisites.update(edge)

    async def delete(self, edge_id: int) -> None:
        logger.info("Deleting prerequisite", edge_id=edge_id)
        await self.store.prerequisites.delete(edge_id)

    async def _ensure_valid(self, edge: CoursePrerequisite) -> None:
        result = await self.validator.validate(edge)
        if not result.allowed:
            raise BusinessRuleViolationError(
                result.reason,
                reason=result.reason_code,
                violated_rules=result.violated_rules,
                context=dict(result.metadata),
            )
