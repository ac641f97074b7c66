"""Append-only scoring ledger.

Every scoring decision becomes one ``ScoringHistory`` row that is never
updated or deleted. ``LedgerHead`` rows index the newest entry per
(student, type, lesson) so reversals read "what was last applied" with a
key lookup instead of a sort over the whole history.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.scoring_history import LedgerHead, ScoringHistory
from app.services.bonus import BonusRun
from app.utils import decode_json

logger = logging.getLogger(__name__)

# Head keys: entries without a lesson, and "newest of any lesson"
NO_LESSON = ""
ANY_LESSON = "*"


def lesson_key(lesson: str | None) -> str:
    return NO_LESSON if lesson is None else lesson


class HistoryLedger:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def append(self, entry: ScoringHistory) -> ScoringHistory:
        """Insert *entry* and advance its heads. Errors propagate to the caller."""
        self._db.add(entry)
        await self._db.flush()
        await self._advance_head(entry, lesson_key(entry.process_lesson))
        await self._advance_head(entry, ANY_LESSON)
        await self._db.flush()
        logger.debug(
            "Ledger append %s: student=%s type=%s lesson=%s added=%+d",
            entry.process_id, entry.student_id, entry.type,
            entry.process_lesson, entry.score_added,
        )
        return entry

    async def _advance_head(self, entry: ScoringHistory, key: str) -> None:
        result = await self._db.execute(
            select(LedgerHead).where(
                LedgerHead.student_id == entry.student_id,
                LedgerHead.type == entry.type,
                LedgerHead.lesson_key == key,
            )
        )
        head = result.scalar_one_or_none()
        if head is None:
            self._db.add(LedgerHead(
                student_id=entry.student_id,
                type=entry.type,
                lesson_key=key,
                entry_id=entry.id,
            ))
        else:
            head.entry_id = entry.id

    async def _head_entry(self, student_id: int, event_type: str, key: str) -> ScoringHistory | None:
        result = await self._db.execute(
            select(ScoringHistory)
            .join(LedgerHead, LedgerHead.entry_id == ScoringHistory.id)
            .where(
                LedgerHead.student_id == student_id,
                LedgerHead.type == event_type,
                LedgerHead.lesson_key == key,
            )
        )
        return result.scalar_one_or_none()

    async def last_entry(
        self, student_id: int, event_type: str, lesson: str | None = None
    ) -> ScoringHistory | None:
        """Newest entry for the key, falling back to any lesson of that type."""
        entry = None
        if lesson is not None:
            entry = await self._head_entry(student_id, event_type, lesson)
            logger.debug(
                "Ledger lookup student=%s type=%s lesson=%s: %s",
                student_id, event_type, lesson, "found" if entry else "not found",
            )
        if entry is None:
            entry = await self._head_entry(student_id, event_type, ANY_LESSON)
        return entry

    async def last_entry_for_lesson(
        self, student_id: int, event_type: str, lesson: str
    ) -> ScoringHistory | None:
        """Newest entry for exactly this lesson, without the unscoped fallback."""
        return await self._head_entry(student_id, event_type, lesson)

    async def held_bonus_runs(self, student_id: int, event_type: str) -> dict[tuple, BonusRun]:
        """Streak runs whose signed awards across the ledger still net positive."""
        result = await self._db.execute(
            select(ScoringHistory.id, ScoringHistory.bonus_runs).where(
                ScoringHistory.student_id == student_id,
                ScoringHistory.type == event_type,
                ScoringHistory.bonus_runs != "[]",
            )
        )
        totals: dict[tuple, int] = {}
        runs: dict[tuple, BonusRun] = {}
        for entry_id, raw in result.all():
            for item in decode_json(raw, [], context=f"scoring_history id={entry_id}"):
                try:
                    run = BonusRun.from_dict(item)
                except (KeyError, TypeError, ValueError):
                    logger.warning("Malformed bonus run in scoring_history id=%s", entry_id)
                    continue
                totals[run.key] = totals.get(run.key, 0) + run.points
                if run.points > 0:
                    runs[run.key] = run
        return {key: runs[key] for key, total in totals.items() if total > 0 and key in runs}

    async def entries(
        self, student_id: int, *, limit: int = 50, offset: int = 0
    ) -> list[ScoringHistory]:
        """A student's ledger, newest first."""
        result = await self._db.execute(
            select(ScoringHistory)
            .where(ScoringHistory.student_id == student_id)
            .order_by(ScoringHistory.timestamp.desc(), ScoringHistory.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())
