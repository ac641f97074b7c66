"""CurriculumLesson ORM model, one row per lesson in a catalog version."""

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class CurriculumLesson(Base):
    __tablename__ = "curriculum_lessons"
    __table_args__ = (
        UniqueConstraint("version", "position", name="uq_curriculum_version_position"),
        UniqueConstraint("version", "name", name="uq_curriculum_version_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    version: Mapped[str] = mapped_column(String, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
