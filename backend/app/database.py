"""Database engine, session factory, and declarative base.

  - Base       → every production table (jobs, stations, QC, job logs)
  - get_db()   → FastAPI dependency; commits on success, rolls back on error
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

_engine_options: dict = {"echo": settings.echo_sql}
if not settings.database_url.startswith("sqlite"):
    _engine_options.update(pool_size=20, max_overflow=10, pool_pre_ping=True)

engine = create_async_engine(settings.database_url, **_engine_options)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Declarative base for all Threadline models."""
    pass


async def get_db() -> AsyncSession:
    """Yield a session scoped to one request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create any missing tables (no-op for existing ones)."""
    import app.models  # noqa: F401  registers every mapper on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
