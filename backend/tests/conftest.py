"""Pytest configuration and fixtures for Threadline tests.

Provides a throwaway SQLite database per test, a pinned clock, the
production scheduler wired to both, and an HTTP client bound to the app.
"""

import os

# Settings are read at import time; keep the app engine off Postgres.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite:///:memory:")

import uuid
from datetime import datetime
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.auth.deps import get_clock
from app.config import settings
from app.database import Base, get_db
from app.main import app
from app.models.production.job import ProductionJob
from app.models.production.qc import QCCheckpointTemplate
from app.models.production.station import Station
from app.services.production.clock import FixedClock
from app.services.production.repository import SqlAlchemyJobRepository
from app.services.production.scheduler import JobScheduler
import app.models as _models  # noqa: F401  register every mapper

NOW = datetime(2026, 3, 2, 9, 0)


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """File-backed SQLite so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'threadline.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def repo(db_session) -> SqlAlchemyJobRepository:
    return SqlAlchemyJobRepository(db_session)


@pytest.fixture
def scheduler(repo, clock) -> JobScheduler:
    return JobScheduler(repo, clock, settings.station_required_set)


@pytest_asyncio.fixture
async def client(session_factory, clock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client; each request gets its own committed session."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def actor_headers() -> dict:
    return {"X-Actor-Id": "user-floor-01"}


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest.fixture
def make_station(repo, clock):
    async def _make(
        code: str = "DTF-01",
        work_type_codes: list[str] | None = None,
        status: str = "active",
    ) -> Station:
        station = Station(
            id=str(uuid.uuid4()),
            code=code,
            name=f"Station {code}",
            department="printing",
            work_type_codes=work_type_codes or ["dtf_printing"],
            status=status,
            capacity_per_day=500,
            created_at=clock.now(),
            updated_at=clock.now(),
        )
        return await repo.save_station(station)

    return _make


@pytest.fixture
def make_job(scheduler):
    async def _make(**overrides) -> ProductionJob:
        params = {
            "work_type_code": "dtf_printing",
            "ordered_qty": 100,
            "actor": "user-planner",
            "description": "Front logo, 100 tees",
            "order_id": "order-001",
            "order_number": "SO-2026-0001",
            "customer_name": "Acme Apparel",
        }
        params.update(overrides)
        result = await scheduler.create_job(**params)
        assert result.ok, result.error
        return result.value

    return _make


@pytest.fixture
def make_template(repo, clock):
    async def _make(
        checkpoint_name: str,
        work_type_code: str = "dtf_printing",
        is_required: bool = True,
        sort_order: int = 0,
        is_active: bool = True,
    ) -> QCCheckpointTemplate:
        template = QCCheckpointTemplate(
            id=str(uuid.uuid4()),
            work_type_code=work_type_code,
            checkpoint_name=checkpoint_name,
            is_required=is_required,
            sort_order=sort_order,
            is_active=is_active,
            created_at=clock.now(),
        )
        return await repo.save_checkpoint_template(template)

    return _make


@pytest.fixture
def job_in_qc(scheduler, make_job, make_station):
    """Drive a fresh job to qc_check with ``produced`` units made."""

    async def _make(produced: int = 100, **overrides) -> ProductionJob:
        job = await make_job(**overrides)
        station = await make_station(
            code=f"ST-{job.job_number[-4:]}",
            work_type_codes=[job.work_type_code],
        )
        assert (await scheduler.assign_station(job.id, station.id, actor="lead")).ok
        assert (await scheduler.change_status(job.id, "in_progress", actor="op")).ok
        if produced:
            assert (await scheduler.log_production(job.id, produced, actor="op")).ok
        assert (await scheduler.change_status(job.id, "qc_check", actor="op")).ok
        return job

    return _make


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: HTTP API tests")
