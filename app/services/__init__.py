"""Service layer - the scoring engine and its collaborators."""

from app.services.accumulator import ScoreAccumulator, ScoreResult
from app.services.ledger import HistoryLedger
from app.services.reversal import ReversalCalculator, ScoreDecision
from app.services.scoring import ScoringEngine

__all__ = [
    "HistoryLedger",
    "ReversalCalculator",
    "ScoreAccumulator",
    "ScoreDecision",
    "ScoreResult",
    "ScoringEngine",
]
