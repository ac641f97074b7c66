"""Scoring ledger ORM models: append-only history plus a latest-entry index."""

from datetime import datetime, timezone

from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class ScoringHistory(Base):
    __tablename__ = "scoring_history"
    __table_args__ = (
        Index("ix_scoring_history_student_type", "student_id", "type", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id"), nullable=False
    )
    process_id: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    process_name: Mapped[str | None] = mapped_column(String, nullable=True)
    process_lesson: Mapped[str | None] = mapped_column(String, nullable=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    score_before: Mapped[int] = mapped_column(Integer, nullable=False)
    score_added: Mapped[int] = mapped_column(Integer, nullable=False)
    score_after: Mapped[int] = mapped_column(Integer, nullable=False)
    # NULL only on rows imported without it; reversal then falls back to score_added
    base_points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bonus_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bonus_lessons: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    # Signed streak awards: [{lessons, lastN, percentage, points}]
    bonus_runs: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    student: Mapped["Student"] = relationship("Student", back_populates="scoring_history")


class LedgerHead(Base):
    """Newest ledger entry per (student, type, lesson key)."""

    __tablename__ = "scoring_ledger_heads"
    __table_args__ = (
        UniqueConstraint("student_id", "type", "lesson_key", name="uq_ledger_head_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id"), nullable=False
    )
    type: Mapped[str] = mapped_column(String, nullable=False)
    lesson_key: Mapped[str] = mapped_column(String, nullable=False)
    entry_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("scoring_history.id"), nullable=False
    )

    entry: Mapped["ScoringHistory"] = relationship("ScoringHistory")
