"""Persistence boundary for the production scheduler.

``JobRepository`` is the interface the domain components depend on;
``SqlAlchemyJobRepository`` is the shipped adapter over an ``AsyncSession``.
Every write flushes immediately so row locks, version checks and FK order
are resolved inside the caller's transaction.  Commit/rollback belongs to
the caller (``get_db`` for HTTP, the CLI or a test fixture otherwise).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Protocol, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.models.production.job import ProductionJob
from app.models.production.job_log import ProductionJobLog
from app.models.production.qc import QCCheckpointResult, QCCheckpointTemplate
from app.models.production.station import Station
from app.utils.numbering import generate_job_number


class ConcurrentModificationError(Exception):
    """Raised when a job row changed underneath the current write."""

    def __init__(self, job_id: str | None):
        self.job_id = job_id
        super().__init__(f"Job {job_id} was modified by another transaction")


@dataclass
class JobFilter:
    statuses: Sequence[str] | None = None
    work_type_code: str | None = None
    station_id: str | None = None
    order_id: str | None = None
    original_job_id: str | None = None
    is_rework: bool | None = None


@dataclass
class CheckpointRecord:
    """One evaluated checkpoint, ready to persist."""
    checkpoint_name: str
    checkpoint_order: int
    passed: bool
    notes: str | None = None


class JobRepository(Protocol):
    async def get_job(self, job_id: str, *, for_update: bool = False) -> ProductionJob | None: ...

    async def list_jobs(self, job_filter: JobFilter | None = None) -> list[ProductionJob]: ...

    async def save_job(self, job: ProductionJob) -> ProductionJob: ...

    async def append_event(
        self,
        job_id: str,
        action: str,
        *,
        at: datetime,
        actor: str | None = None,
        from_status: str | None = None,
        to_status: str | None = None,
        produced_qty: int | None = None,
        notes: str | None = None,
        details: dict | None = None,
    ) -> ProductionJobLog: ...

    async def list_events(self, job_id: str) -> list[ProductionJobLog]: ...

    async def get_station(self, station_id: str, *, for_update: bool = False) -> Station | None: ...

    async def list_stations(
        self, *, active_only: bool = False, work_type_code: str | None = None
    ) -> list[Station]: ...

    async def save_station(self, station: Station) -> Station: ...

    async def list_checkpoint_templates(
        self, work_type_code: str | None = None, *, active_only: bool = True
    ) -> list[QCCheckpointTemplate]: ...

    async def save_checkpoint_template(self, template: QCCheckpointTemplate) -> QCCheckpointTemplate: ...

    async def save_checkpoint_results(
        self,
        job_id: str,
        qc_round: int,
        records: Iterable[CheckpointRecord],
        *,
        actor: str | None,
        at: datetime,
    ) -> list[QCCheckpointResult]: ...

    async def list_checkpoint_results(self, job_id: str) -> list[QCCheckpointResult]: ...

    async def next_job_number(self, today: date) -> str: ...

    async def rollback(self) -> None: ...


class SqlAlchemyJobRepository:
    def __init__(self, session: AsyncSession, job_number_format: str | None = None):
        self.session = session
        self.job_number_format = job_number_format

    # ── Jobs ─────────────────────────────────────────────────

    async def get_job(self, job_id: str, *, for_update: bool = False) -> ProductionJob | None:
        stmt = select(ProductionJob).where(ProductionJob.id == job_id)
        if for_update:
            # Row lock only; the identity-map copy keeps the version this
            # transaction read, so a concurrent writer still surfaces as a
            # stale version at flush.
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_jobs(self, job_filter: JobFilter | None = None) -> list[ProductionJob]:
        f = job_filter or JobFilter()
        stmt = select(ProductionJob)
        if f.statuses:
            stmt = stmt.where(ProductionJob.status.in_(list(f.statuses)))
        if f.work_type_code:
            stmt = stmt.where(ProductionJob.work_type_code == f.work_type_code)
        if f.station_id:
            stmt = stmt.where(ProductionJob.station_id == f.station_id)
        if f.order_id:
            stmt = stmt.where(ProductionJob.order_id == f.order_id)
        if f.original_job_id:
            stmt = stmt.where(ProductionJob.original_job_id == f.original_job_id)
        if f.is_rework is not None:
            stmt = stmt.where(ProductionJob.is_rework == f.is_rework)
        stmt = stmt.order_by(ProductionJob.created_at, ProductionJob.job_number)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _flush(self, job_id: str | None) -> None:
        # A failed flush rolls the transaction back and expires every
        # instance, so the id must be known before flushing.
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError(job_id) from exc

    async def save_job(self, job: ProductionJob) -> ProductionJob:
        job_id = job.id
        self.session.add(job)
        await self._flush(job_id)
        return job

    # ── Event log ────────────────────────────────────────────

    async def append_event(
        self,
        job_id: str,
        action: str,
        *,
        at: datetime,
        actor: str | None = None,
        from_status: str | None = None,
        to_status: str | None = None,
        produced_qty: int | None = None,
        notes: str | None = None,
        details: dict | None = None,
    ) -> ProductionJobLog:
        # Callers hold the job row, so max+1 cannot race within one job
        result = await self.session.execute(
            select(func.coalesce(func.max(ProductionJobLog.sequence), 0))
            .where(ProductionJobLog.job_id == job_id)
        )
        entry = ProductionJobLog(
            job_id=job_id,
            sequence=result.scalar() + 1,
            action=action,
            from_status=from_status,
            to_status=to_status,
            produced_qty=produced_qty,
            notes=notes,
            details=details,
            performed_by=actor,
            performed_at=at,
        )
        self.session.add(entry)
        await self._flush(job_id)
        return entry

    async def list_events(self, job_id: str) -> list[ProductionJobLog]:
        result = await self.session.execute(
            select(ProductionJobLog)
            .where(ProductionJobLog.job_id == job_id)
            .order_by(ProductionJobLog.sequence)
        )
        return list(result.scalars().all())

    # ── Stations ─────────────────────────────────────────────

    async def get_station(self, station_id: str, *, for_update: bool = False) -> Station | None:
        stmt = select(Station).where(Station.id == station_id)
        if for_update:
            # Refresh from the row, not the identity map: the commit-time
            # check must see the latest station status.
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_stations(
        self, *, active_only: bool = False, work_type_code: str | None = None
    ) -> list[Station]:
        stmt = select(Station).order_by(Station.code)
        if active_only:
            stmt = stmt.where(Station.status == "active")
        result = await self.session.execute(stmt)
        stations = list(result.scalars().all())
        if work_type_code:
            # JSON containment differs per backend; filter in Python
            stations = [s for s in stations if s.supports(work_type_code)]
        return stations

    async def save_station(self, station: Station) -> Station:
        self.session.add(station)
        await self.session.flush()
        return station

    # ── QC checkpoints ───────────────────────────────────────

    async def list_checkpoint_templates(
        self, work_type_code: str | None = None, *, active_only: bool = True
    ) -> list[QCCheckpointTemplate]:
        stmt = select(QCCheckpointTemplate)
        if work_type_code:
            stmt = stmt.where(QCCheckpointTemplate.work_type_code == work_type_code)
        if active_only:
            stmt = stmt.where(QCCheckpointTemplate.is_active == True)  # noqa: E712
        stmt = stmt.order_by(
            QCCheckpointTemplate.work_type_code,
            QCCheckpointTemplate.sort_order,
            QCCheckpointTemplate.checkpoint_name,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def save_checkpoint_template(self, template: QCCheckpointTemplate) -> QCCheckpointTemplate:
        self.session.add(template)
        await self.session.flush()
        return template

    async def save_checkpoint_results(
        self,
        job_id: str,
        qc_round: int,
        records: Iterable[CheckpointRecord],
        *,
        actor: str | None,
        at: datetime,
    ) -> list[QCCheckpointResult]:
        rows = [
            QCCheckpointResult(
                job_id=job_id,
                qc_round=qc_round,
                checkpoint_name=r.checkpoint_name,
                checkpoint_order=r.checkpoint_order,
                passed=r.passed,
                notes=r.notes,
                checked_by=actor,
                checked_at=at,
            )
            for r in records
        ]
        self.session.add_all(rows)
        await self._flush(job_id)
        return rows

    async def list_checkpoint_results(self, job_id: str) -> list[QCCheckpointResult]:
        result = await self.session.execute(
            select(QCCheckpointResult)
            .where(QCCheckpointResult.job_id == job_id)
            .order_by(QCCheckpointResult.qc_round, QCCheckpointResult.checkpoint_order)
        )
        return list(result.scalars().all())

    # ── Misc ─────────────────────────────────────────────────

    async def next_job_number(self, today: date) -> str:
        return await generate_job_number(self.session, today, self.job_number_format)

    async def rollback(self) -> None:
        await self.session.rollback()
