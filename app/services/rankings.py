"""Student score rankings within main center and course."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.student import Student
from app.services.errors import StudentNotFoundError

UNKNOWN = "Unknown"


def _course_of(student: Student) -> str:
    return student.course or student.grade or UNKNOWN


def _rank(students: list[Student], student_id: int) -> tuple[int | None, int | None]:
    ordered = sorted(students, key=lambda s: s.score or 0, reverse=True)
    position = next((i for i, s in enumerate(ordered, start=1) if s.id == student_id), None)
    return position, (len(ordered) or None)


async def student_rankings(db: AsyncSession, student_id: int) -> dict:
    """Rank *student_id* by score among peers sharing its center and course.

    Ties keep the database order; students with no score are not ranked.
    """
    result = await db.execute(select(Student).order_by(Student.id))
    students = result.scalars().all()

    student = next((s for s in students if s.id == student_id), None)
    if student is None:
        raise StudentNotFoundError(student_id)

    center = student.main_center or UNKNOWN
    course = _course_of(student)
    ranked = [s for s in students if s.score is not None]

    center_rank, center_total = _rank(
        [s for s in ranked if (s.main_center or UNKNOWN) == center], student_id
    )
    course_rank, course_total = _rank(
        [s for s in ranked if _course_of(s) == course], student_id
    )
    return {
        "center_rank": center_rank,
        "center_total": center_total,
        "course_rank": course_rank,
        "course_total": course_total,
        "main_center": center,
        "course": course,
    }
