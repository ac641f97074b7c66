"""ORM models package - exports all models and Base."""

from app.database import Base
from app.models.student import Student
from app.models.scoring_condition import ScoringCondition
from app.models.curriculum_lesson import CurriculumLesson
from app.models.scoring_history import LedgerHead, ScoringHistory

__all__ = [
    "Base",
    "Student",
    "ScoringCondition",
    "CurriculumLesson",
    "ScoringHistory",
    "LedgerHead",
]
