"""Net delta calculation for a scoring event.

Every event carries a new state and optionally the state it replaces. The
calculator decides how much to add so that whatever was applied before is
cancelled exactly, using the ledger as memory of what was actually applied:

* apply: ``evaluate(new) - evaluate(previous)``
* reverse-only: minus the ledger's recorded ``base_points`` for the key
  (then ``score_added``, then a re-evaluation of the previous state)
* "never happened" sentinels (``hwDone=False``, quiz/mock 0%) never apply
  their own penalty on a transition from a real state, and a prior 0% is
  never reversed
* streak bonuses are granted on new-state application only and reversed by
  negating what the undone ledger entry recorded
* reversing attendance cascades into the lesson's homework and quiz entries
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from app.models.scoring_history import ScoringHistory
from app.models.student import Student
from app.services import bonus
from app.services.bonus import BonusRun
from app.services.curriculum import Curriculum
from app.services.events import (
    HomeworkByStatusEvent,
    PercentageEvent,
    ScoringEvent,
)
from app.services.ledger import HistoryLedger
from app.services.rules import Condition, evaluate, hw_key
from app.utils import decode_json

logger = logging.getLogger(__name__)

# hwDone states that earned points and may therefore be reversed
SCORED_HW_STATES = (hw_key(True), hw_key("Not Completed"))
# Event types whose graded value is a percentage with a 0% "didn't attend" sentinel
ZERO_SENTINEL_TYPES = ("quiz", "mock_exam")


@dataclass(frozen=True)
class CascadeRule:
    """Reversing *source_type* also reverses the lesson's *target_type* entry.

    *flag* names the event attribute that lets a caller opt out.
    """

    source_type: str
    target_type: str
    flag: str


CASCADE_RULES: tuple[CascadeRule, ...] = (
    CascadeRule("attendance", "homework", "auto_reverse_homework"),
    CascadeRule("attendance", "quiz", "auto_reverse_quiz"),
)


@dataclass
class CascadeReversal:
    type: str
    lesson: str
    points: int
    source: ScoringHistory


@dataclass
class ScoreDecision:
    points: int = 0
    base_points: int = 0
    bonus_points: int = 0
    bonus_lessons: list[str] = field(default_factory=list)
    bonus_runs: list[dict] = field(default_factory=list)
    cascades: list[CascadeReversal] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.points + self.bonus_points + sum(c.points for c in self.cascades)


def _student_percentages(student: Student, event_type: str) -> dict:
    context = f"student id={student.id}"
    return bonus.lesson_percentages(
        event_type,
        decode_json(student.lessons, {}, context=context),
        decode_json(student.online_homeworks, [], context=context),
        decode_json(student.online_quizzes, [], context=context),
        decode_json(student.online_mock_exams, [], context=context),
    )


class ReversalCalculator:
    def __init__(
        self,
        ledger: HistoryLedger,
        curriculum: Curriculum,
        cascade_rules: tuple[CascadeRule, ...] = CASCADE_RULES,
    ) -> None:
        self._ledger = ledger
        self._curriculum = curriculum
        self._cascade_rules = cascade_rules

    async def calculate(
        self,
        student: Student,
        condition: Condition,
        event: ScoringEvent,
        lesson: str | None = None,
    ) -> ScoreDecision:
        if event.reverse_only:
            decision = await self._reverse(student, condition, event, lesson)
            if lesson is not None:
                decision.cascades = await self._cascades(student, event, lesson)
            return decision
        if isinstance(event, HomeworkByStatusEvent):
            return self._apply_homework_status(condition, event)
        if isinstance(event, PercentageEvent):
            return await self._apply_percentage(student, condition, event, lesson)
        return self._apply_plain(condition, event)

    # -- new-state application ------------------------------------------

    def _apply_plain(self, condition: Condition, event: ScoringEvent) -> ScoreDecision:
        new_points = evaluate(condition, event.current)
        previous_points = evaluate(condition, event.previous)
        points = new_points - previous_points
        logger.info(
            "%s: %s -> %+d points (new: %d, previous: %d)",
            event.type, event.current, points, new_points, previous_points,
        )
        return ScoreDecision(points=points, base_points=new_points)

    def _apply_homework_status(
        self, condition: Condition, event: HomeworkByStatusEvent
    ) -> ScoreDecision:
        hw_done, previous = event.hw_done, event.previous_hw_done
        previous_scored = previous is not None and hw_key(previous) in SCORED_HW_STATES

        if hw_done is False:
            if previous is None:
                # Homework that was never assigned carries no penalty
                logger.info("Homework: hwDone=False with no previous state -> 0 points")
                return ScoreDecision()
            if previous_scored:
                previous_points = evaluate(condition, previous)
                logger.info(
                    "Homework: %s -> False, only reversing %d points", previous, previous_points
                )
                return ScoreDecision(points=-previous_points)

        new_points = evaluate(condition, hw_done)
        previous_points = evaluate(condition, previous) if previous_scored else 0
        points = new_points - previous_points
        logger.info(
            "Homework: hwDone=%s -> %+d points (new: %d, previous: %d)",
            hw_done, points, new_points, previous_points,
        )
        return ScoreDecision(points=points, base_points=new_points)

    async def _apply_percentage(
        self,
        student: Student,
        condition: Condition,
        event: PercentageEvent,
        lesson: str | None,
    ) -> ScoreDecision:
        percentage, previous = event.percentage, event.previous_percentage
        if percentage is None:
            return ScoreDecision()
        guarded = event.type in ZERO_SENTINEL_TYPES

        if guarded and percentage == 0 and previous is not None and previous > 0:
            previous_points = evaluate(condition, previous)
            logger.info(
                "%s: %s%% -> 0%%, only reversing %d points", event.type, previous, previous_points
            )
            decision = ScoreDecision(points=-previous_points)
            # A streak that needed this lesson no longer qualifies
            await self._apply_bonus(decision, student, condition, event, lesson, award=False)
            return decision

        new_points = evaluate(condition, percentage)
        if guarded and previous == 0 and percentage > 0:
            # The 0% penalty is not treated as a real prior state
            points = new_points
        else:
            points = new_points - evaluate(condition, previous)
        logger.info(
            "%s: %s%% -> %+d points (new: %d, previous: %s%%)",
            event.type, percentage, points, new_points, previous,
        )

        decision = ScoreDecision(points=points, base_points=new_points)
        await self._apply_bonus(decision, student, condition, event, lesson)
        return decision

    async def _apply_bonus(
        self,
        decision: ScoreDecision,
        student: Student,
        condition: Condition,
        event: PercentageEvent,
        lesson: str | None,
        *,
        award: bool = True,
    ) -> None:
        """Revoke held runs the edit broke, then award new runs when *award*."""
        if not condition.bonus_rules:
            return
        percentages = _student_percentages(student, event.type)
        if lesson is not None:
            percentages[lesson] = event.percentage

        held = await self._ledger.held_bonus_runs(student.id, event.type)
        revoked: list[BonusRun] = []
        if lesson is not None:
            revoked = [
                run for run in held.values()
                if lesson in run.lessons
                and not bonus.still_qualifies(run, percentages, self._curriculum)
            ]
        for run in revoked:
            logger.info(
                "Revoking streak bonus %d for lessons %s", run.points, ", ".join(run.lessons)
            )

        found = bonus.BonusResult()
        if award:
            kept = [run for run in held.values() if run not in revoked]
            found = bonus.detect(
                condition.bonus_rules, percentages, self._curriculum,
                focus_lesson=lesson, held=kept,
            )

        decision.bonus_points = found.points - sum(run.points for run in revoked)
        decision.bonus_runs = (
            [run.to_dict() for run in found.runs]
            + [run.to_dict(sign=-1) for run in revoked]
        )
        lessons = list(found.lessons)
        for run in revoked:
            lessons.extend(name for name in run.lessons if name not in lessons)
        decision.bonus_lessons = lessons

    # -- reversal ---------------------------------------------------------

    async def _reverse(
        self,
        student: Student,
        condition: Condition,
        event: ScoringEvent,
        lesson: str | None,
    ) -> ScoreDecision:
        last = await self._ledger.last_entry(student.id, event.type, lesson)

        if last is not None and last.base_points is not None:
            previous_points, source = last.base_points, "ledger base_points"
        elif last is not None and last.score_added:
            previous_points, source = last.score_added, "ledger score_added"
        else:
            previous_points, source = evaluate(condition, event.previous), "rule evaluation"
        logger.info(
            "%s reverse-only: previous %s -> %+d points (reversing %d from %s)",
            event.type, event.previous, -previous_points, previous_points, source,
        )

        decision = ScoreDecision(points=-previous_points)
        if last is not None and last.bonus_points:
            await self._reverse_bonus(decision, student, event, last)
        return decision

    async def _reverse_bonus(
        self,
        decision: ScoreDecision,
        student: Student,
        event: ScoringEvent,
        last: ScoringHistory,
    ) -> None:
        context = f"scoring_history id={last.id}"
        recorded = decode_json(last.bonus_runs, [], context=context)
        if not recorded:
            # Entry predates run tracking: negate the recorded total as-is
            decision.bonus_points = -last.bonus_points
            decision.bonus_lessons = decode_json(last.bonus_lessons, [], context=context)
            return

        held = await self._ledger.held_bonus_runs(student.id, event.type)
        for item in recorded:
            run = BonusRun.from_dict(item)
            # Only undo awards that are still held, so a run already revoked
            # by a later edit is not taken away twice
            if run.points > 0 and run.key in held:
                decision.bonus_points -= run.points
                decision.bonus_runs.append(run.to_dict(sign=-1))
                decision.bonus_lessons.extend(
                    name for name in run.lessons if name not in decision.bonus_lessons
                )
        if decision.bonus_points:
            logger.info(
                "Reversing %s bonus %+d for lessons %s",
                event.type, decision.bonus_points, ", ".join(decision.bonus_lessons),
            )

    async def _cascades(
        self, student: Student, event: ScoringEvent, lesson: str
    ) -> list[CascadeReversal]:
        cascades = []
        for rule in self._cascade_rules:
            if rule.source_type != event.type or not getattr(event, rule.flag, True):
                continue
            entry = await self._ledger.last_entry_for_lesson(student.id, rule.target_type, lesson)
            if entry is None or not entry.base_points:
                continue
            logger.info(
                "Auto-reversing %s for lesson %s from %s reversal (%+d)",
                rule.target_type, lesson, event.type, -entry.base_points,
            )
            cascades.append(CascadeReversal(
                type=rule.target_type, lesson=lesson, points=-entry.base_points, source=entry,
            ))
        return cascades
