"""Scoring API routes for applying events and reading the ledger."""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_scoring_engine
from app.models.scoring_history import ScoringHistory
from app.services.conditions import list_conditions
from app.services.errors import (
    ConditionNotFoundError,
    InvalidScoringEventError,
    LedgerWriteError,
    ScoreConflictError,
    StudentNotFoundError,
)
from app.services.events import build_event
from app.services.ledger import HistoryLedger
from app.services.rankings import student_rankings
from app.services.scoring import ScoringEngine, get_student
from app.utils import decode_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scoring", tags=["scoring"])


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScoringData(CamelModel):
    status: str | None = None
    previous_status: str | None = None
    percentage: int | float | None = None
    previous_percentage: int | float | None = None
    hw_done: bool | str | None = None
    previous_hw_done: bool | str | None = None
    reverse_only: bool = False
    auto_reverse_homework: bool = True
    auto_reverse_quiz: bool = True


class ScoringRequest(CamelModel):
    student_id: int
    type: Literal["attendance", "homework", "quiz", "mock_exam"]
    lesson: str | None = None
    data: ScoringData = Field(default_factory=ScoringData)


class ScoringResponse(CamelModel):
    success: bool = True
    points_added: int
    base_points: int
    bonus_points: int
    previous_score: int
    new_score: int
    process_id: str | None
    message: str | None = None


class HistoryItem(CamelModel):
    student_id: int
    process_id: str
    process_name: str | None
    process_lesson: str | None
    type: str
    data: dict
    score_before: int
    score_added: int
    score_after: int
    base_points: int | None
    bonus_points: int
    bonus_lessons: list[str]
    timestamp: str

    @classmethod
    def from_entry(cls, entry: ScoringHistory) -> "HistoryItem":
        context = f"scoring_history id={entry.id}"
        return cls(
            student_id=entry.student_id,
            process_id=entry.process_id,
            process_name=entry.process_name,
            process_lesson=entry.process_lesson,
            type=entry.type,
            data=decode_json(entry.data, {}, context=context),
            score_before=entry.score_before,
            score_added=entry.score_added,
            score_after=entry.score_after,
            base_points=entry.base_points,
            bonus_points=entry.bonus_points,
            bonus_lessons=decode_json(entry.bonus_lessons, [], context=context),
            timestamp=entry.timestamp.isoformat(),
        )


class RankingResponse(CamelModel):
    success: bool = True
    center_rank: int | None
    center_total: int | None
    course_rank: int | None
    course_total: int | None
    main_center: str
    course: str


class ConditionItem(CamelModel):
    type: str
    with_degree: bool | None
    rules: list
    bonus_rules: list


@router.post("/calculate", response_model=ScoringResponse)
async def calculate_score(
    body: ScoringRequest,
    engine: ScoringEngine = Depends(get_scoring_engine),
):
    """Apply one scoring event and return the net change."""
    try:
        event = build_event(body.type, body.data.model_dump())
    except InvalidScoringEventError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = await engine.apply(body.student_id, event, body.lesson)
    except StudentNotFoundError:
        raise HTTPException(status_code=404, detail="Student not found")
    except ConditionNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ScoreConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LedgerWriteError as e:
        logger.error("Rejected %s event for student %s: %s", body.type, body.student_id, e)
        raise HTTPException(status_code=503, detail="Scoring history unavailable")

    return ScoringResponse(
        points_added=result.points_added,
        base_points=result.base_points,
        bonus_points=result.bonus_points,
        previous_score=result.previous_score,
        new_score=result.new_score,
        process_id=result.process_id,
        message=None if engine.enabled else "Scoring system is disabled",
    )


@router.get("/history/last", response_model=HistoryItem)
async def last_history(
    student_id: int,
    type: str,
    lesson: str | None = None,
    engine: ScoringEngine = Depends(get_scoring_engine),
):
    """Most recent ledger entry for a student/type, optionally lesson-scoped."""
    entry = await engine.last_history(student_id, type, lesson)
    if entry is None:
        raise HTTPException(status_code=404, detail="No scoring history found")
    return HistoryItem.from_entry(entry)


@router.get("/students/{student_id}/history", response_model=list[HistoryItem])
async def student_history(
    student_id: int,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Return the student's scoring ledger, newest first."""
    try:
        await get_student(db, student_id)
    except StudentNotFoundError:
        raise HTTPException(status_code=404, detail="Student not found")
    entries = await HistoryLedger(db).entries(student_id, limit=limit, offset=offset)
    return [HistoryItem.from_entry(e) for e in entries]


@router.get("/students/{student_id}/rankings", response_model=RankingResponse)
async def rankings(student_id: int, db: AsyncSession = Depends(get_db)):
    """Rank the student by score within main center and course."""
    try:
        ranking = await student_rankings(db, student_id)
    except StudentNotFoundError:
        raise HTTPException(status_code=404, detail="Student not found")
    return RankingResponse(**ranking)


@router.get("/conditions", response_model=list[ConditionItem])
async def conditions(db: AsyncSession = Depends(get_db)):
    """Read-only view of the configured scoring conditions."""
    rows = await list_conditions(db)
    return [
        ConditionItem(
            type=row.type,
            with_degree=row.with_degree,
            rules=decode_json(row.rules, [], context=f"scoring_condition id={row.id}"),
            bonus_rules=decode_json(row.bonus_rules, [], context=f"scoring_condition id={row.id}"),
        )
        for row in rows
    ]
