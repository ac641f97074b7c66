"""Rule evaluation: converts a graded value into base points.

A ``Condition`` is the parsed form of one ``scoring_conditions`` row. Its
rules are checked in configured order and the first match wins; no match
scores 0. Evaluation never raises, whatever the input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.models.scoring_condition import ScoringCondition
from app.utils import decode_json

logger = logging.getLogger(__name__)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def hw_key(value) -> str:
    """Normalise a hwDone value so True, "true" and "True" compare equal."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip().lower()


@dataclass(frozen=True)
class StatusRule:
    """Attendance rule: exact match on the status key."""

    key: str
    points: int

    def matches(self, value) -> bool:
        return value is not None and value == self.key


@dataclass(frozen=True)
class RangeRule:
    """Percentage rule: min <= value <= max, inclusive at both ends."""

    min: float
    max: float
    points: int

    def matches(self, value) -> bool:
        return _is_number(value) and self.min <= value <= self.max


@dataclass(frozen=True)
class HomeworkStatusRule:
    """Boolean-graded homework rule: equality on the hwDone tri-state."""

    hw_done: bool | str
    points: int

    def matches(self, value) -> bool:
        return value is not None and hw_key(value) == hw_key(self.hw_done)


@dataclass(frozen=True)
class BonusRule:
    last_n: int
    percentage: int | float
    points: int


@dataclass(frozen=True)
class Condition:
    type: str
    with_degree: bool | None
    rules: tuple
    bonus_rules: tuple[BonusRule, ...] = ()

    @classmethod
    def from_row(cls, row: ScoringCondition) -> "Condition":
        context = f"scoring_condition id={row.id}"
        raw_rules = decode_json(row.rules, [], context=context)
        raw_bonus = decode_json(row.bonus_rules, [], context=context)
        return cls(
            type=row.type,
            with_degree=row.with_degree,
            rules=tuple(parse_rules(row.type, row.with_degree, raw_rules)),
            bonus_rules=tuple(parse_bonus_rules(raw_bonus)),
        )


def parse_rules(condition_type: str, with_degree: bool | None, raw_rules: list) -> list:
    """Build typed rules from the stored JSON list, skipping malformed entries."""
    rules = []
    for raw in raw_rules:
        if not isinstance(raw, dict):
            logger.warning("Skipping non-object %s rule: %r", condition_type, raw)
            continue
        try:
            points = int(raw["points"])
            if condition_type == "attendance":
                key = raw.get("key", raw.get("status"))
                if key is None:
                    raise KeyError("key")
                rules.append(StatusRule(key=str(key), points=points))
            elif condition_type == "homework" and with_degree is False:
                rules.append(HomeworkStatusRule(hw_done=raw["hwDone"], points=points))
            else:
                rules.append(RangeRule(min=float(raw["min"]), max=float(raw["max"]), points=points))
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed %s rule: %r", condition_type, raw)
    return rules


def parse_bonus_rules(raw_rules: list) -> list[BonusRule]:
    """Accept both ``{condition: {lastN, percentage}, points}`` and flat rules."""
    bonus_rules = []
    for raw in raw_rules:
        if not isinstance(raw, dict):
            continue
        shape = raw.get("condition") if isinstance(raw.get("condition"), dict) else raw
        try:
            last_n = int(shape["lastN"])
            percentage = shape["percentage"]
            points = int(raw["points"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed bonus rule: %r", raw)
            continue
        if last_n < 1 or not _is_number(percentage) or not percentage:
            logger.warning("Skipping unusable bonus rule: %r", raw)
            continue
        bonus_rules.append(BonusRule(last_n=last_n, percentage=percentage, points=points))
    return bonus_rules


def evaluate(condition: Condition, value) -> int:
    """Return the points of the first rule matching *value*, or 0."""
    if value is None:
        return 0
    for rule in condition.rules:
        if rule.matches(value):
            return rule.points
    return 0
