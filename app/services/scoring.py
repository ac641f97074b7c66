"""Scoring engine: applies one graded event to a student's score.

Pipeline per event: load student, condition and curriculum; compute the net
delta (``ReversalCalculator``); clamp and persist it with its ledger entries
(``ScoreAccumulator``). Requests for one student run one at a time, and a
score write that loses a compare-and-set race retries the whole cycle.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.scoring_history import ScoringHistory
from app.models.student import Student
from app.services.accumulator import ScoreAccumulator, ScoreResult
from app.services.conditions import load_condition
from app.services.curriculum import load_curriculum
from app.services.errors import ScoreConflictError, StudentNotFoundError
from app.services.events import ScoringEvent
from app.services.ledger import HistoryLedger
from app.services.locks import KeyedLock, student_locks
from app.services.reversal import ReversalCalculator

logger = logging.getLogger(__name__)


async def get_student(db: AsyncSession, student_id: int) -> Student:
    """Load a student with a fresh score, bypassing the identity map."""
    result = await db.execute(
        select(Student)
        .where(Student.id == student_id)
        .execution_options(populate_existing=True)
    )
    student = result.scalar_one_or_none()
    if student is None:
        raise StudentNotFoundError(student_id)
    return student


class ScoringEngine:
    def __init__(
        self,
        db: AsyncSession,
        *,
        enabled: bool | None = None,
        curriculum_version: str | None = None,
        strict_ledger: bool | None = None,
        max_retries: int | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._db = db
        self.enabled = settings.SCORING_ENABLED if enabled is None else enabled
        self.curriculum_version = curriculum_version or settings.CURRICULUM_VERSION
        self.strict_ledger = settings.LEDGER_STRICT if strict_ledger is None else strict_ledger
        self.max_retries = max(1, max_retries or settings.SCORE_MAX_RETRIES)
        self._locks = locks or student_locks

    async def apply(
        self, student_id: int, event: ScoringEvent, lesson: str | None = None
    ) -> ScoreResult:
        """Apply *event* for the student and return the committed outcome."""
        if not self.enabled:
            logger.info("Scoring disabled; ignoring %s event for student %s", event.type, student_id)
            return ScoreResult.disabled()

        async with self._locks.hold(student_id):
            for attempt in range(1, self.max_retries + 1):
                try:
                    return await self._apply_once(student_id, event, lesson)
                except ScoreConflictError:
                    await self._db.rollback()
                    logger.warning(
                        "Score conflict for student %s (attempt %d/%d), retrying",
                        student_id, attempt, self.max_retries,
                    )
                except Exception:
                    await self._db.rollback()
                    raise
        raise ScoreConflictError(
            f"Gave up scoring student {student_id} after {self.max_retries} conflicting attempts"
        )

    async def _apply_once(
        self, student_id: int, event: ScoringEvent, lesson: str | None
    ) -> ScoreResult:
        student = await get_student(self._db, student_id)
        condition = await load_condition(self._db, event)
        curriculum = await load_curriculum(self._db, self.curriculum_version)

        ledger = HistoryLedger(self._db)
        calculator = ReversalCalculator(ledger, curriculum)
        decision = await calculator.calculate(student, condition, event, lesson)

        accumulator = ScoreAccumulator(self._db, ledger, strict=self.strict_ledger)
        return await accumulator.commit(student, event, lesson, decision)

    async def last_history(
        self, student_id: int, event_type: str, lesson: str | None = None
    ) -> ScoringHistory | None:
        return await HistoryLedger(self._db).last_entry(student_id, event_type, lesson)
