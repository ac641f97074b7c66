"""Async SQLAlchemy engine, session factory and schema setup for the scoring store."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


engine = create_async_engine(settings.DATABASE_URL, echo=settings.APP_DEBUG)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


if _is_sqlite(settings.DATABASE_URL):

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        # Ledger rows reference students; concurrent writers wait instead of failing
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create the student, condition, curriculum and ledger tables."""
    import app.models  # noqa: F401  (registers every model on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """FastAPI dependency yielding one session per request."""
    async with async_session() as session:
        yield session
