"""Score accumulation: clamp the new score and persist it with its ledger entries."""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.scoring_history import ScoringHistory
from app.models.student import Student
from app.services.errors import LedgerWriteError, ScoreConflictError
from app.services.events import ScoringEvent
from app.services.ledger import HistoryLedger
from app.services.reversal import CascadeReversal, ScoreDecision
from app.utils import decode_json, encode_json

logger = logging.getLogger(__name__)

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass
class ScoreResult:
    points_added: int
    base_points: int
    bonus_points: int
    previous_score: int
    new_score: int
    process_id: str | None

    @classmethod
    def disabled(cls) -> "ScoreResult":
        return cls(0, 0, 0, 0, 0, None)


def make_process_id(student_id: int, kind: str) -> str:
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"{student_id}_{kind}_{int(time.time() * 1000)}_{suffix}"


def clamp(score: int) -> int:
    return max(0, score)


class ScoreAccumulator:
    def __init__(self, db: AsyncSession, ledger: HistoryLedger, *, strict: bool = True) -> None:
        self._db = db
        self._ledger = ledger
        self._strict = strict

    async def commit(
        self,
        student: Student,
        event: ScoringEvent,
        lesson: str | None,
        decision: ScoreDecision,
    ) -> ScoreResult:
        previous_score = student.score or 0
        main_delta = decision.points + decision.bonus_points
        score = clamp(previous_score + main_delta)

        process_id = make_process_id(student.id, event.type)
        data = event.payload()
        data["bonusLessons"] = decision.bonus_lessons
        entries = [ScoringHistory(
            student_id=student.id,
            process_id=process_id,
            process_name=event.describe(),
            process_lesson=lesson,
            type=event.type,
            data=encode_json(data),
            score_before=previous_score,
            score_added=main_delta,
            score_after=score,
            base_points=decision.base_points,
            bonus_points=decision.bonus_points,
            bonus_lessons=encode_json(decision.bonus_lessons),
            bonus_runs=encode_json(decision.bonus_runs),
            timestamp=datetime.now(timezone.utc),
        )]

        for cascade in decision.cascades:
            before = score
            score = clamp(score + cascade.points)
            entries.append(self._cascade_entry(student, event, cascade, before, score))

        if self._strict:
            await self._append_all(entries)
            await self._write_score(student.id, student.version, score)
            await self._db.commit()
        else:
            await self._write_score(student.id, student.version, score)
            await self._db.commit()
            await self._append_best_effort(entries)

        total = main_delta + sum(c.points for c in decision.cascades)
        logger.info(
            "Student %s %s%s: %d -> %d (%+d points)",
            student.id, event.type, f" [{lesson}]" if lesson else "",
            previous_score, score, total,
        )
        return ScoreResult(
            points_added=total,
            base_points=decision.base_points,
            bonus_points=decision.bonus_points,
            previous_score=previous_score,
            new_score=score,
            process_id=process_id,
        )

    def _cascade_entry(
        self,
        student: Student,
        event: ScoringEvent,
        cascade: CascadeReversal,
        before: int,
        after: int,
    ) -> ScoringHistory:
        source = cascade.source
        data = decode_json(source.data, {}, context=f"scoring_history id={source.id}")
        data.update(reverseOnly=True, autoReversedBy=event.type)
        return ScoringHistory(
            student_id=student.id,
            process_id=make_process_id(student.id, f"{cascade.type}_auto_reverse"),
            process_name=f"{cascade.type.capitalize()} (auto-reverse from {event.type})",
            process_lesson=cascade.lesson,
            type=cascade.type,
            data=encode_json(data),
            score_before=before,
            score_added=cascade.points,
            score_after=after,
            base_points=0,
            bonus_points=0,
            bonus_lessons="[]",
            bonus_runs="[]",
            timestamp=datetime.now(timezone.utc),
        )

    async def _append_all(self, entries: list[ScoringHistory]) -> None:
        try:
            for entry in entries:
                await self._ledger.append(entry)
        except SQLAlchemyError as exc:
            raise LedgerWriteError(f"Ledger append failed: {exc}") from exc

    async def _append_best_effort(self, entries: list[ScoringHistory]) -> None:
        try:
            for entry in entries:
                await self._ledger.append(entry)
            await self._db.commit()
        except SQLAlchemyError:
            await self._db.rollback()
            logger.exception(
                "Error saving scoring history; score already committed. Entries: %s",
                [entry.process_id for entry in entries],
            )

    async def _write_score(self, student_id: int, expected_version: int, new_score: int) -> None:
        """Compare-and-set the score against the version read with the student."""
        result = await self._db.execute(
            update(Student)
            .where(Student.id == student_id, Student.version == expected_version)
            .values(score=new_score, version=Student.version + 1)
        )
        if result.rowcount != 1:
            raise ScoreConflictError(
                f"Student {student_id} was updated during scoring (expected version {expected_version})"
            )
