"""Condition store access for per event type scoring configuration."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.scoring_condition import ScoringCondition
from app.services.errors import ConditionNotFoundError
from app.services.events import ScoringEvent
from app.services.rules import Condition


async def load_condition(db: AsyncSession, event: ScoringEvent) -> Condition:
    """Return the condition for *event*; a missing row is a configuration error."""
    query = select(ScoringCondition).where(ScoringCondition.type == event.condition_type)
    if event.with_degree is not None:
        query = query.where(ScoringCondition.with_degree == event.with_degree)
    result = await db.execute(query.order_by(ScoringCondition.id).limit(1))
    row = result.scalar_one_or_none()
    if row is None:
        raise ConditionNotFoundError(event.type, event.with_degree)
    return Condition.from_row(row)


async def list_conditions(db: AsyncSession) -> list[ScoringCondition]:
    result = await db.execute(
        select(ScoringCondition).order_by(ScoringCondition.type, ScoringCondition.with_degree)
    )
    return list(result.scalars().all())
