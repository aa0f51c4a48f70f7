"""
Shared Entity Store reads used by several academic services.
"""

from shared.database.repository import EntityStore, EntityT, Repository
from shared.domain.entities import Enrollment, Exam
from shared.domain.exceptions import EntityNotFoundError


async def get_or_raise(repository: Repository[EntityT], entity_id: int, entity_type: str) -> EntityT:
    """
    Fetch an entity or raise a not-found precondition failure.

    Raises:
        EntityNotFoundError: If the id does not resolve
    """
    entity = await repository.get_by_id(entity_id)
    if entity is None:
        raise EntityNotFoundError(entity_type, entity_id)
    return entity


async def semester_numbers_for_course(store: EntityStore, course_id: int) -> list[int]:
    """Semester numbers the course is offered in; offerings with a dangling semester are skipped."""
    numbers = []
    for offering in await store.course_semesters.get_all():
        if offering.course_id != course_id:
            continue
        semester = await store.semesters.get_by_id(offering.semester_id)
        if semester is not None:
            numbers.append(semester.number)
    return numbers


async def is_offered_in(store: EntityStore, course_id: int, semester_id: int) -> bool:
    return any(
        offering.course_id == course_id and offering.semester_id == semester_id
        for offering in await store.course_semesters.get_all()
    )


async def enrollments_for_student(store: EntityStore, student_id: int) -> list[Enrollment]:
    """Student's enrollments in store order."""
    return [e for e in await store.enrollments.get_all() if e.student_id == student_id]


async def exams_for_student(store: EntityStore, student_id: int) -> list[Exam]:
    return [e for e in await store.exams.get_all() if e.student_id == student_id]
