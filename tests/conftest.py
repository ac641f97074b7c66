"""Shared pytest fixtures for the Tutorscore test suite."""

import json
from collections.abc import AsyncGenerator

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import Base, get_db
from app.models.curriculum_lesson import CurriculumLesson
from app.models.scoring_condition import ScoringCondition
from app.models.student import Student
from app.services.locks import KeyedLock
from app.services.scoring import ScoringEngine
from main import app

# ---------------------------------------------------------------------------
# Async engine & session fixtures (in-memory SQLite)
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def async_engine():
    """Create a fresh in-memory async engine per test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide an async session that rolls back after each test."""
    session_factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTPX async client wired to the FastAPI app with test DB override."""

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture()
def engine(db_session: AsyncSession) -> ScoringEngine:
    """Scoring engine with strict ledger and its own lock registry."""
    return ScoringEngine(
        db_session,
        enabled=True,
        curriculum_version="v1",
        strict_ledger=True,
        max_retries=3,
        locks=KeyedLock(),
    )


# ---------------------------------------------------------------------------
# Convenience / data fixtures
# ---------------------------------------------------------------------------

ATTENDANCE_RULES = [
    {"key": "attend", "points": 10},
    {"key": "absent", "points": -10},
]

HOMEWORK_DEGREE_RULES = [
    {"min": 0, "max": 49, "points": -5},
    {"min": 50, "max": 79, "points": 5},
    {"min": 80, "max": 100, "points": 10},
]

HOMEWORK_STATUS_RULES = [
    {"hwDone": True, "points": 20},
    {"hwDone": "Not Completed", "points": 10},
    {"hwDone": False, "points": -20},
]

QUIZ_RULES = [
    {"min": 0, "max": 0, "points": -25},
    {"min": 1, "max": 69, "points": 0},
    {"min": 70, "max": 89, "points": 5},
    {"min": 90, "max": 100, "points": 10},
]

STREAK_BONUS = [{"condition": {"lastN": 3, "percentage": 100}, "points": 15}]

CURRICULUM = ["L1", "L2", "L3", "L4", "L5"]


@pytest.fixture()
def make_student(db_session: AsyncSession):
    """Factory: insert a student, JSON-encoding the lesson/submission fields."""

    async def _make(student_id: int = 1, score: int = 0, **fields) -> Student:
        for key in ("lessons", "online_homeworks", "online_quizzes", "online_mock_exams"):
            if key in fields and not isinstance(fields[key], str):
                fields[key] = json.dumps(fields[key])
        student = Student(id=student_id, name=fields.pop("name", f"Student {student_id}"),
                          score=score, **fields)
        db_session.add(student)
        await db_session.commit()
        return student

    return _make


@pytest.fixture()
def make_condition(db_session: AsyncSession):
    """Factory: insert one scoring condition row."""

    async def _make(type_: str, rules: list, *, with_degree=None, bonus_rules=None):
        row = ScoringCondition(
            type=type_,
            with_degree=with_degree,
            rules=json.dumps(rules),
            bonus_rules=json.dumps(bonus_rules or []),
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _make


@pytest.fixture()
async def scoring_config(db_session: AsyncSession, make_condition):
    """Default conditions for every event type plus curriculum v1 = L1..L5."""
    await make_condition("attendance", ATTENDANCE_RULES)
    await make_condition("homework", HOMEWORK_DEGREE_RULES, with_degree=True,
                         bonus_rules=STREAK_BONUS)
    await make_condition("homework", HOMEWORK_STATUS_RULES, with_degree=False)
    await make_condition("quiz", QUIZ_RULES, bonus_rules=STREAK_BONUS)
    await make_condition("mock-exam", QUIZ_RULES)
    for position, name in enumerate(CURRICULUM):
        db_session.add(CurriculumLesson(version="v1", position=position, name=name))
    await db_session.commit()
