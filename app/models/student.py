"""Student ORM model."""

from datetime import datetime, timezone

from sqlalchemy import Integer, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Student(Base):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Bumped on every score write; the compare-and-set key
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    main_center: Mapped[str | None] = mapped_column(String, nullable=True)
    course: Mapped[str | None] = mapped_column(String, nullable=True)
    grade: Mapped[str | None] = mapped_column(String, nullable=True)
    # JSON object: lesson name -> {attended, hwDone, homework_degree, quizDegree}
    lessons: Mapped[str | None] = mapped_column(Text, nullable=True)
    # JSON arrays of {lesson, result} / {lesson, percentage}
    online_homeworks: Mapped[str | None] = mapped_column(Text, nullable=True)
    online_quizzes: Mapped[str | None] = mapped_column(Text, nullable=True)
    online_mock_exams: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    scoring_history: Mapped[list["ScoringHistory"]] = relationship(
        "ScoringHistory", back_populates="student"
    )
