"""Domain errors raised by the scoring engine.

Routers translate these into HTTP responses; the engine itself never
imports FastAPI.
"""


class ScoringError(Exception):
    """Base class for scoring engine errors."""


class StudentNotFoundError(ScoringError):
    def __init__(self, student_id: int):
        super().__init__(f"Student {student_id} not found")
        self.student_id = student_id


class ConditionNotFoundError(ScoringError):
    def __init__(self, event_type: str, with_degree: bool | None = None):
        variant = "" if with_degree is None else f" (withDegree={with_degree})"
        super().__init__(f"No scoring condition found for type: {event_type}{variant}")
        self.event_type = event_type
        self.with_degree = with_degree


class InvalidScoringEventError(ScoringError):
    """The event payload does not fit the requested event type."""


class ScoreConflictError(ScoringError):
    """The stored score changed between read and compare-and-set write."""


class LedgerWriteError(ScoringError):
    """A ledger append failed while the ledger is transactional with the score."""
