"""Ordered lesson catalog that defines curriculum adjacency."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.curriculum_lesson import CurriculumLesson

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Curriculum:
    version: str
    lessons: tuple[str, ...]
    _positions: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self, "_positions", {name: i for i, name in enumerate(self.lessons)}
        )

    def index(self, lesson: str) -> int | None:
        """Position of *lesson* in the catalog, or None when not listed."""
        return self._positions.get(lesson)

    def __contains__(self, lesson: str) -> bool:
        return lesson in self._positions

    def __len__(self) -> int:
        return len(self.lessons)


async def load_curriculum(db: AsyncSession, version: str) -> Curriculum:
    """Load one catalog version ordered by position."""
    result = await db.execute(
        select(CurriculumLesson.name)
        .where(CurriculumLesson.version == version)
        .order_by(CurriculumLesson.position)
    )
    lessons = tuple(result.scalars().all())
    if not lessons:
        logger.warning("Curriculum version %s has no lessons; streak bonuses disabled", version)
    return Curriculum(version=version, lessons=lessons)
