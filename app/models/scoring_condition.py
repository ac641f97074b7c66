"""ScoringCondition ORM model."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Integer, String, Text, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ScoringCondition(Base):
    __tablename__ = "scoring_conditions"
    __table_args__ = (
        UniqueConstraint("type", "with_degree", name="uq_condition_type_degree"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # attendance | homework | quiz | mock-exam
    type: Mapped[str] = mapped_column(String, nullable=False)
    with_degree: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    rules: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    bonus_rules: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
