"""Seed the database with scoring conditions and the curriculum.

Usage: uv run python scripts/seed_data.py
"""

import asyncio
import json
import sys
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from app.config import settings
from app.database import init_db, async_session
from app.models.curriculum_lesson import CurriculumLesson
from app.models.scoring_condition import ScoringCondition


SEED_CONDITIONS = [
    {
        "type": "attendance",
        "with_degree": None,
        "rules": [
            {"key": "attend", "points": 10},
            {"key": "late", "points": 5},
            {"key": "absent", "points": -10},
        ],
        "bonus_rules": [],
    },
    {
        "type": "homework",
        "with_degree": True,
        "rules": [
            {"min": 0, "max": 49, "points": -5},
            {"min": 50, "max": 79, "points": 5},
            {"min": 80, "max": 100, "points": 10},
        ],
        "bonus_rules": [
            {"condition": {"lastN": 3, "percentage": 100}, "points": 15},
        ],
    },
    {
        "type": "homework",
        "with_degree": False,
        "rules": [
            {"hwDone": True, "points": 20},
            {"hwDone": "Not Completed", "points": 10},
            {"hwDone": False, "points": -20},
        ],
        "bonus_rules": [],
    },
    {
        "type": "quiz",
        "with_degree": None,
        "rules": [
            {"min": 0, "max": 0, "points": -25},
            {"min": 1, "max": 49, "points": 0},
            {"min": 50, "max": 69, "points": 2},
            {"min": 70, "max": 89, "points": 5},
            {"min": 90, "max": 100, "points": 10},
        ],
        "bonus_rules": [
            {"condition": {"lastN": 3, "percentage": 100}, "points": 15},
        ],
    },
    {
        "type": "mock-exam",
        "with_degree": None,
        "rules": [
            {"min": 0, "max": 0, "points": -25},
            {"min": 1, "max": 59, "points": 5},
            {"min": 60, "max": 84, "points": 15},
            {"min": 85, "max": 100, "points": 25},
        ],
        "bonus_rules": [
            {"condition": {"lastN": 2, "percentage": 100}, "points": 30},
        ],
    },
]

CURRICULUM_V1 = [
    "Subject and Verb Agreement",
    "Verb Tenses",
    "if conditionals and Pronouns",
    "Comparison and Superlative and Parallel Structure",
    "Modifiers",
    "Transition Words",
    "Punctuation Marks Part 1",
    "Punctuation Marks Part 2",
    "Rhetorical Synthesis",
    "Main Ideas",
    "Making Inferences",
    "Command of Evidence - Graphs",
    "Command of Evidence - Support and Weaken",
    "Cross-Text Connections",
    "Text, Structure, and Purpose",
    "Words in Context - Gap Filling - Synonyms",
    "Supporting Evidence and Examples, Topic, Conclusion, and Transition Sentences",
    "Sentence Placement",
    "Relevance and Purpose",
    "Boundaries",
    "Form, Structure, and Sense",
    "Details Question",
    "Main Purpose",
    "Overall Structure",
    "Underlined Purpose",
    *[f"DSAT Exam {i}" for i in range(1, 11)],
    *[f"EST Exam {i}" for i in range(1, 11)],
    *[f"Revision {i}" for i in range(1, 6)],
]


async def seed_conditions(session) -> None:
    for condition in SEED_CONDITIONS:
        values = {
            "type": condition["type"],
            "with_degree": condition["with_degree"],
            "rules": json.dumps(condition["rules"]),
            "bonus_rules": json.dumps(condition["bonus_rules"]),
        }
        # Check if condition already exists (idempotent)
        query = select(ScoringCondition).where(ScoringCondition.type == condition["type"])
        if condition["with_degree"] is None:
            query = query.where(ScoringCondition.with_degree.is_(None))
        else:
            query = query.where(ScoringCondition.with_degree == condition["with_degree"])
        existing = (await session.execute(query)).scalar_one_or_none()
        label = f"{condition['type']} (withDegree={condition['with_degree']})"
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            print(f"  Updated: {label}")
        else:
            session.add(ScoringCondition(**values))
            print(f"  Inserted: {label}")


async def seed_curriculum(session, version: str, lessons: list[str]) -> None:
    # A version is replaced as a whole so positions stay contiguous
    await session.execute(delete(CurriculumLesson).where(CurriculumLesson.version == version))
    for position, name in enumerate(lessons):
        session.add(CurriculumLesson(version=version, position=position, name=name))
    print(f"  Curriculum {version}: {len(lessons)} lessons")


async def seed() -> None:
    # Ensure data directory exists
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)

    # Create tables
    await init_db()
    print("Database tables created.")

    async with async_session() as session:
        await seed_conditions(session)
        await seed_curriculum(session, "v1", CURRICULUM_V1)
        await session.commit()

    print("Seed data complete.")


if __name__ == "__main__":
    asyncio.run(seed())
