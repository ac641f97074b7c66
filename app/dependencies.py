"""FastAPI dependencies for route handlers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.scoring import ScoringEngine


async def get_scoring_engine(db: AsyncSession = Depends(get_db)) -> ScoringEngine:
    """Scoring engine bound to the request's database session."""
    return ScoringEngine(db)
