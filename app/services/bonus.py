"""Streak bonus detection.

A streak is ``lastN`` lessons that sit next to each other in the curriculum
order and all scored exactly the rule's percentage. Adjacency is always
judged by curriculum position, never by submission time.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from app.services.curriculum import Curriculum
from app.services.rules import BonusRule

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"^(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)$")

QUIZ_SENTINELS = ("Didn't Attend The Quiz", "No Quiz")


@dataclass(frozen=True)
class BonusRun:
    lessons: tuple[str, ...]
    last_n: int
    percentage: int | float
    points: int

    @property
    def key(self) -> tuple:
        return (self.last_n, self.percentage, self.lessons)

    def to_dict(self, sign: int = 1) -> dict:
        return {
            "lessons": list(self.lessons),
            "lastN": self.last_n,
            "percentage": self.percentage,
            "points": sign * self.points,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "BonusRun":
        return cls(
            lessons=tuple(raw["lessons"]),
            last_n=int(raw["lastN"]),
            percentage=raw["percentage"],
            points=int(raw["points"]),
        )


@dataclass
class BonusResult:
    points: int = 0
    lessons: list[str] = field(default_factory=list)
    runs: list[BonusRun] = field(default_factory=list)


def parse_fraction(text) -> int | None:
    """Turn "obtained/total" into a rounded percentage; 0 when total is 0."""
    if not isinstance(text, str):
        return None
    match = _FRACTION.match(text.strip())
    if not match:
        return None
    obtained, total = float(match.group(1)), float(match.group(2))
    if total <= 0:
        return 0
    return round(obtained / total * 100)


def _parse_percent_label(text) -> int | None:
    """Mock exam results are stored as "85%" strings."""
    try:
        return int(str(text).replace("%", "").strip())
    except ValueError:
        return None


def lesson_percentages(
    event_type: str,
    lessons: dict,
    online_homeworks: list,
    online_quizzes: list,
    online_mock_exams: list,
) -> dict[str, int | float]:
    """Map lesson name -> percentage for one event type.

    Lesson-record degrees are read first, then online submissions overwrite
    them since submissions are the ground truth.
    """
    percentages: dict[str, int | float] = {}

    if event_type == "homework":
        for name, record in lessons.items():
            if isinstance(record, dict):
                value = parse_fraction(record.get("homework_degree"))
                if value is not None:
                    percentages[name] = value
        for submission in online_homeworks:
            if isinstance(submission, dict) and submission.get("lesson"):
                value = parse_fraction(submission.get("result"))
                if value is not None:
                    percentages[submission["lesson"]] = value

    elif event_type == "quiz":
        for name, record in lessons.items():
            if isinstance(record, dict) and record.get("quizDegree") not in QUIZ_SENTINELS:
                value = parse_fraction(record.get("quizDegree"))
                if value is not None:
                    percentages[name] = value
        for submission in online_quizzes:
            if isinstance(submission, dict) and submission.get("lesson"):
                value = parse_fraction(submission.get("result"))
                if value is not None:
                    percentages[submission["lesson"]] = value

    elif event_type == "mock_exam":
        for submission in online_mock_exams:
            if isinstance(submission, dict) and submission.get("lesson") and submission.get("percentage"):
                value = _parse_percent_label(submission["percentage"])
                if value is not None:
                    percentages[submission["lesson"]] = value

    return percentages


def _is_consecutive(group: list[str], curriculum: Curriculum) -> bool:
    positions = [curriculum.index(name) for name in group]
    return all(b == a + 1 for a, b in zip(positions, positions[1:]))


def detect(
    bonus_rules: tuple[BonusRule, ...] | list[BonusRule],
    percentages: dict[str, int | float],
    curriculum: Curriculum,
    focus_lesson: str | None = None,
    held: Iterable[BonusRun] = (),
) -> BonusResult:
    """Find at most one qualifying run per rule.

    With a *focus_lesson* the run must contain it. A window sharing any
    lesson with a *held* run of the same rule never qualifies, so a lesson
    earns a given streak bonus at most once.
    """
    result = BonusResult()
    held = list(held)

    for rule in bonus_rules:
        taken = {
            name
            for run in held
            if run.last_n == rule.last_n and run.percentage == rule.percentage
            for name in run.lessons
        }
        matching = sorted(
            (
                name for name, value in percentages.items()
                if value == rule.percentage and name in curriculum
            ),
            key=curriculum.index,
        )
        for i in range(len(matching) - rule.last_n + 1):
            group = matching[i:i + rule.last_n]
            if not _is_consecutive(group, curriculum):
                continue
            if focus_lesson is not None and focus_lesson not in group:
                continue
            if taken.intersection(group):
                continue
            run = BonusRun(
                lessons=tuple(group),
                last_n=rule.last_n,
                percentage=rule.percentage,
                points=rule.points,
            )
            result.points += rule.points
            result.runs.append(run)
            for name in group:
                if name not in result.lessons:
                    result.lessons.append(name)
            logger.info(
                "Streak bonus +%d for lessons %s (all %s%%)",
                rule.points, ", ".join(group), rule.percentage,
            )
            break

    return result


def still_qualifies(
    run: BonusRun, percentages: dict[str, int | float], curriculum: Curriculum
) -> bool:
    """Whether every lesson of a previously awarded run still meets its rule."""
    if any(percentages.get(name) != run.percentage for name in run.lessons):
        return False
    if any(name not in curriculum for name in run.lessons):
        return False
    return _is_consecutive(list(run.lessons), curriculum)
