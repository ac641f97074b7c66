"""Typed scoring events.

The request payload is a loose ``data`` dict whose fields change meaning per
event type. ``build_event`` turns it into exactly one of the event classes
below so the engine never has to probe for optional keys.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import ClassVar

from app.services.errors import InvalidScoringEventError

EVENT_TYPES = ("attendance", "homework", "quiz", "mock_exam")

# hwDone is a tri-state: True / False / a status string such as "Not Completed"
HwDone = bool | str


@dataclass(frozen=True)
class ScoringEvent(ABC):
    reverse_only: bool = False

    type: ClassVar[str]
    # Row type in scoring_conditions (mock_exam is stored as "mock-exam")
    condition_type: ClassVar[str]
    with_degree: ClassVar[bool | None] = None

    @property
    @abstractmethod
    def current(self):
        ...

    @property
    @abstractmethod
    def previous(self):
        ...

    @abstractmethod
    def describe(self) -> str:
        ...

    @abstractmethod
    def payload(self) -> dict:
        """Raw event data as recorded in the ledger."""


@dataclass(frozen=True)
class AttendanceEvent(ScoringEvent):
    status: str | None = None
    previous_status: str | None = None
    auto_reverse_homework: bool = True
    auto_reverse_quiz: bool = True

    type: ClassVar[str] = "attendance"
    condition_type: ClassVar[str] = "attendance"

    @property
    def current(self):
        return self.status

    @property
    def previous(self):
        return self.previous_status

    def describe(self) -> str:
        return f"Attendance: {self.status or 'unknown'}"

    def payload(self) -> dict:
        return {
            "status": self.status,
            "previousStatus": self.previous_status,
            "reverseOnly": self.reverse_only,
            "autoReverseHomework": self.auto_reverse_homework,
            "autoReverseQuiz": self.auto_reverse_quiz,
        }


@dataclass(frozen=True)
class PercentageEvent(ScoringEvent):
    percentage: int | float | None = None
    previous_percentage: int | float | None = None

    label: ClassVar[str] = ""

    @property
    def current(self):
        return self.percentage

    @property
    def previous(self):
        return self.previous_percentage

    def describe(self) -> str:
        return f"{self.label}: {self.percentage or 0}%"

    def payload(self) -> dict:
        return {
            "percentage": self.percentage,
            "previousPercentage": self.previous_percentage,
            "reverseOnly": self.reverse_only,
        }


@dataclass(frozen=True)
class HomeworkByDegreeEvent(PercentageEvent):
    type: ClassVar[str] = "homework"
    condition_type: ClassVar[str] = "homework"
    with_degree: ClassVar[bool | None] = True
    label: ClassVar[str] = "Homework (with degree)"


@dataclass(frozen=True)
class QuizEvent(PercentageEvent):
    type: ClassVar[str] = "quiz"
    condition_type: ClassVar[str] = "quiz"
    label: ClassVar[str] = "Quiz"


@dataclass(frozen=True)
class MockExamEvent(PercentageEvent):
    type: ClassVar[str] = "mock_exam"
    condition_type: ClassVar[str] = "mock-exam"
    label: ClassVar[str] = "Mock Exam"


@dataclass(frozen=True)
class HomeworkByStatusEvent(ScoringEvent):
    hw_done: HwDone | None = None
    previous_hw_done: HwDone | None = None

    type: ClassVar[str] = "homework"
    condition_type: ClassVar[str] = "homework"
    with_degree: ClassVar[bool | None] = False

    @property
    def current(self):
        return self.hw_done

    @property
    def previous(self):
        return self.previous_hw_done

    def describe(self) -> str:
        value = "unknown" if self.hw_done is None else self.hw_done
        return f"Homework (without degree): {value}"

    def payload(self) -> dict:
        return {
            "hwDone": self.hw_done,
            "previousHwDone": self.previous_hw_done,
            "reverseOnly": self.reverse_only,
        }


def build_event(event_type: str, data: Mapping) -> ScoringEvent:
    """Build the typed event for *event_type* from a snake_case data mapping.

    Homework is percentage-graded when the payload carries a current or
    previous percentage, and status-graded otherwise.
    """
    reverse_only = bool(data.get("reverse_only", False))

    if event_type == "attendance":
        return AttendanceEvent(
            reverse_only=reverse_only,
            status=data.get("status"),
            previous_status=data.get("previous_status"),
            auto_reverse_homework=data.get("auto_reverse_homework", True) is not False,
            auto_reverse_quiz=data.get("auto_reverse_quiz", True) is not False,
        )

    if event_type == "homework":
        if data.get("percentage") is not None or data.get("previous_percentage") is not None:
            if data.get("hw_done") is not None:
                raise InvalidScoringEventError(
                    "Homework event cannot carry both percentage and hwDone"
                )
            return HomeworkByDegreeEvent(
                reverse_only=reverse_only,
                percentage=_percentage(data.get("percentage")),
                previous_percentage=_percentage(data.get("previous_percentage")),
            )
        return HomeworkByStatusEvent(
            reverse_only=reverse_only,
            hw_done=data.get("hw_done"),
            previous_hw_done=data.get("previous_hw_done"),
        )

    if event_type in ("quiz", "mock_exam"):
        if data.get("hw_done") is not None or data.get("status") is not None:
            raise InvalidScoringEventError(f"{event_type} events only accept percentages")
        cls = QuizEvent if event_type == "quiz" else MockExamEvent
        return cls(
            reverse_only=reverse_only,
            percentage=_percentage(data.get("percentage")),
            previous_percentage=_percentage(data.get("previous_percentage")),
        )

    raise InvalidScoringEventError(f"Unknown event type: {event_type}")


def _percentage(value):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidScoringEventError(f"Percentage must be a number, got {value!r}")
    return value
