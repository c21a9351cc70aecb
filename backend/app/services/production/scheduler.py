"""JobScheduler: command surface and queue view over production jobs.

The scheduler is stateless.  Each command loads what it needs from the
repository, delegates the rule checks to the state machine / assignor /
QC evaluator / rework spawner and returns a ``Result``.  A stale write
(another transaction changed the job first) is rolled back and reported
as ``ConcurrentModification``; commands never retry on their own.

Usage:
    scheduler = JobScheduler(SqlAlchemyJobRepository(db), SystemClock())
    result = await scheduler.assign_station(job_id, station_id, actor=user_id)
    if not result.ok:
        ...
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Awaitable, Callable, Iterable, Sequence, TypeVar

from app.config import settings
from app.models.production.enums import EventAction, JobPriority, JobStatus, WorkType
from app.models.production.job import ProductionJob
from app.models.production.job_log import ProductionJobLog
from app.models.production.qc import QCCheckpointResult
from app.models.production.station import Station
from app.services.production.assignment import StationAssignor
from app.services.production.clock import Clock, SystemClock
from app.services.production.errors import ErrorKind, Result
from app.services.production.qc import CheckpointInput, QCEvaluator
from app.services.production.queue import (
    QueueEntry, QueueFilters, build_queue, group_by_status, queue_stats,
)
from app.services.production.repository import (
    ConcurrentModificationError, JobRepository,
)
from app.services.production.rework import ReworkSpawner
from app.services.production.status_machine import StatusStateMachine

logger = logging.getLogger("threadline.production")

T = TypeVar("T")

# Planning fields editable after creation
UPDATABLE_FIELDS = ("priority", "due_date", "description", "production_notes", "estimated_hours")


def _parse_priority(value) -> Result[JobPriority]:
    try:
        return Result.success(JobPriority(int(value)))
    except (TypeError, ValueError):
        return Result.failure(
            ErrorKind.PRECONDITION_FAILED, f"Unknown priority: {value}", priority=value
        )


def _check_estimated_hours(value) -> Result[None]:
    if value is not None and (not isinstance(value, (int, float)) or value <= 0):
        return Result.failure(
            ErrorKind.INVALID_QUANTITY,
            "Estimated hours must be positive",
            estimated_hours=value,
        )
    return Result.success()


def _json_value(value):
    return value.isoformat() if isinstance(value, date) else value


class JobScheduler:
    def __init__(
        self,
        repo: JobRepository,
        clock: Clock | None = None,
        station_required_work_types: Iterable[str] | None = None,
    ):
        self.repo = repo
        self.clock = clock or SystemClock()
        if station_required_work_types is None:
            station_required_work_types = settings.station_required_set
        self.state_machine = StatusStateMachine(repo, self.clock, station_required_work_types)
        self.assignor = StationAssignor(repo, self.clock, self.state_machine)
        self.qc = QCEvaluator(repo, self.clock, self.state_machine)
        self.rework = ReworkSpawner(repo, self.clock)

    # ── Helpers ──────────────────────────────────────────────

    async def _load(self, job_id: str, *, for_update: bool = True) -> Result[ProductionJob]:
        job = await self.repo.get_job(job_id, for_update=for_update)
        if job is None:
            return Result.failure(ErrorKind.NOT_FOUND, f"Job {job_id} not found", job_id=job_id)
        return Result.success(job)

    async def _guarded(
        self,
        job_id: str,
        command: str,
        op: Callable[[ProductionJob], Awaitable[Result[T]]],
    ) -> Result[T]:
        """Load the job under lock, run ``op`` and map stale writes."""
        try:
            loaded = await self._load(job_id)
            if not loaded.ok:
                return Result(error=loaded.error)
            result = await op(loaded.value)
        except ConcurrentModificationError:
            await self.repo.rollback()
            logger.warning("%s on job %s lost a concurrent update", command, job_id)
            return Result.failure(
                ErrorKind.CONCURRENT_MODIFICATION,
                f"Job {job_id} was modified concurrently, reload and retry",
                job_id=job_id,
            )
        if not result.ok:
            logger.info("%s rejected for job %s: %s", command, job_id, result.error)
        return result

    # ── Commands ─────────────────────────────────────────────

    async def create_job(
        self,
        *,
        work_type_code: str,
        ordered_qty: int,
        actor: str | None,
        description: str | None = None,
        priority: int = JobPriority.NORMAL,
        due_date: date | None = None,
        order_id: str | None = None,
        order_number: str | None = None,
        customer_name: str | None = None,
        production_notes: str | None = None,
        estimated_hours: float | None = None,
        queued: bool = False,
    ) -> Result[ProductionJob]:
        """Create a job from an order work item, or standalone when no order_id."""
        try:
            work_type = WorkType(work_type_code)
        except ValueError:
            return Result.failure(
                ErrorKind.PRECONDITION_FAILED,
                f"Unknown work type: {work_type_code}",
                work_type_code=work_type_code,
            )
        parsed = _parse_priority(priority)
        if not parsed.ok:
            return Result(error=parsed.error)
        priority = parsed.value
        if not isinstance(ordered_qty, int) or ordered_qty <= 0:
            return Result.failure(
                ErrorKind.INVALID_QUANTITY,
                "Ordered quantity must be positive",
                ordered_qty=ordered_qty,
            )
        checked_hours = _check_estimated_hours(estimated_hours)
        if not checked_hours.ok:
            return Result(error=checked_hours.error)

        now = self.clock.now()
        status = JobStatus.QUEUED if queued else JobStatus.PENDING
        job = ProductionJob(
            id=str(uuid.uuid4()),
            job_number=await self.repo.next_job_number(now.date()),
            order_id=order_id,
            order_number=order_number if order_id else None,
            customer_name=customer_name,
            work_type_code=work_type.value,
            description=description,
            production_notes=production_notes,
            estimated_hours=estimated_hours,
            status=status.value,
            priority=int(priority),
            ordered_qty=ordered_qty,
            produced_qty=0,
            passed_qty=0,
            failed_qty=0,
            rework_qty=0,
            station_id=None,
            assigned_user_id=None,
            due_date=due_date,
            qc_rounds=0,
            is_rework=False,
            rework_count=0,
            original_job_id=None,
            created_by=actor,
            created_at=now,
            updated_at=now,
        )
        await self.repo.save_job(job)
        await self.repo.append_event(
            job.id,
            EventAction.CREATED.value,
            at=now,
            actor=actor,
            to_status=job.status,
            details={"order_id": order_id} if order_id else None,
        )
        logger.info("Created job %s (%s x%d)", job.job_number, job.work_type_code, ordered_qty)
        return Result.success(job)

    async def update_job(
        self,
        job_id: str,
        changes: dict,
        *,
        actor: str | None,
        notes: str | None = None,
    ) -> Result[ProductionJob]:
        """Edit the planning fields of an open job.

        ``changes`` maps field names from ``UPDATABLE_FIELDS`` to new values;
        ``due_date``, ``description``, ``production_notes`` and
        ``estimated_hours`` may be cleared with ``None``.  Only fields whose
        value actually changes are written, and one ``updated`` event lists
        them with their old and new values.  A request that changes nothing
        writes nothing.
        """
        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        if unknown:
            return Result.failure(
                ErrorKind.PRECONDITION_FAILED,
                f"Field(s) cannot be updated: {', '.join(unknown)}",
                fields=unknown,
            )
        changes = dict(changes)
        if "priority" in changes:
            parsed = _parse_priority(changes["priority"])
            if not parsed.ok:
                return Result(error=parsed.error)
            changes["priority"] = int(parsed.value)
        if "estimated_hours" in changes:
            checked = _check_estimated_hours(changes["estimated_hours"])
            if not checked.ok:
                return Result(error=checked.error)

        async def _update(job: ProductionJob) -> Result[ProductionJob]:
            if JobStatus(job.status).is_terminal:
                return Result.failure(
                    ErrorKind.INVALID_STATE,
                    f"Job {job.job_number} is {job.status} and can no longer be edited",
                    status=job.status,
                )
            diff = {
                field: {"from": _json_value(getattr(job, field)), "to": _json_value(value)}
                for field, value in changes.items()
                if getattr(job, field) != value
            }
            if not diff:
                return Result.success(job)

            now = self.clock.now()
            for field in diff:
                setattr(job, field, changes[field])
            job.updated_at = now
            await self.repo.save_job(job)
            await self.repo.append_event(
                job.id,
                EventAction.UPDATED.value,
                at=now,
                actor=actor,
                from_status=job.status,
                to_status=job.status,
                notes=notes,
                details={"changes": diff},
            )
            logger.info("Job %s updated: %s", job.job_number, sorted(diff))
            return Result.success(job)

        return await self._guarded(job_id, "update_job", _update)

    async def assign_station(
        self,
        job_id: str,
        station_id: str,
        *,
        actor: str | None,
        notes: str | None = None,
        assigned_user_id: str | None = None,
    ) -> Result[ProductionJob]:
        return await self._guarded(
            job_id,
            "assign_station",
            lambda job: self.assignor.assign(
                job, station_id, actor=actor, notes=notes, assigned_user_id=assigned_user_id
            ),
        )

    async def change_status(
        self,
        job_id: str,
        target: JobStatus | str,
        *,
        actor: str | None,
        notes: str | None = None,
    ) -> Result[ProductionJob]:
        return await self._guarded(
            job_id,
            "change_status",
            lambda job: self.state_machine.transition(job, target, actor=actor, notes=notes),
        )

    async def log_production(
        self,
        job_id: str,
        qty: int,
        *,
        actor: str | None,
        notes: str | None = None,
    ) -> Result[ProductionJob]:
        """Record ``qty`` finished units against an in-progress job."""

        async def _produce(job: ProductionJob) -> Result[ProductionJob]:
            if job.status != JobStatus.IN_PROGRESS.value:
                return Result.failure(
                    ErrorKind.INVALID_STATE,
                    f"Job {job.job_number} is {job.status}, production requires in_progress",
                    status=job.status,
                )
            if qty <= 0 or job.produced_qty + qty > job.ordered_qty:
                return Result.failure(
                    ErrorKind.INVALID_QUANTITY,
                    f"Produced quantity must stay between 1 and {job.ordered_qty - job.produced_qty}",
                    qty=qty,
                    remaining=job.ordered_qty - job.produced_qty,
                )
            now = self.clock.now()
            job.produced_qty += qty
            job.updated_at = now
            if notes:
                job.production_notes = notes
            await self.repo.save_job(job)
            await self.repo.append_event(
                job.id,
                EventAction.PRODUCED.value,
                at=now,
                actor=actor,
                from_status=job.status,
                to_status=job.status,
                produced_qty=qty,
                notes=notes,
            )
            return Result.success(job)

        return await self._guarded(job_id, "log_production", _produce)

    async def perform_qc_check(
        self,
        job_id: str,
        checkpoints: Sequence[CheckpointInput],
        overall_passed: bool,
        *,
        actor: str | None,
        notes: str | None = None,
        passed_qty: int | None = None,
        failed_qty: int | None = None,
    ) -> Result[ProductionJob]:
        return await self._guarded(
            job_id,
            "perform_qc_check",
            lambda job: self.qc.perform_check(
                job,
                checkpoints,
                overall_passed,
                actor=actor,
                notes=notes,
                passed_qty=passed_qty,
                failed_qty=failed_qty,
            ),
        )

    async def create_rework_job(
        self,
        job_id: str,
        quantity: int,
        reason: str | None,
        *,
        actor: str | None,
        priority: int | None = None,
        due_date: date | None = None,
    ) -> Result[str]:
        return await self._guarded(
            job_id,
            "create_rework_job",
            lambda job: self.rework.create_rework(
                job, quantity, reason, actor=actor, priority=priority, due_date=due_date
            ),
        )

    # ── Reads ────────────────────────────────────────────────

    async def get_job(self, job_id: str) -> Result[ProductionJob]:
        return await self._load(job_id, for_update=False)

    async def compute_queue(self, filters: QueueFilters | None = None) -> list[QueueEntry]:
        jobs = await self.repo.list_jobs()
        return build_queue(jobs, self.clock.now(), filters)

    async def queue_board(self, filters: QueueFilters | None = None) -> dict[str, list[QueueEntry]]:
        return group_by_status(await self.compute_queue(filters))

    async def stats(self, filters: QueueFilters | None = None) -> dict:
        entries = await self.compute_queue(filters)
        stations = await self.repo.list_stations()
        return queue_stats(entries, self.clock.now(), stations)

    async def job_history(self, job_id: str) -> Result[list[ProductionJobLog]]:
        loaded = await self._load(job_id, for_update=False)
        if not loaded.ok:
            return Result(error=loaded.error)
        return Result.success(await self.repo.list_events(job_id))

    async def checkpoint_results(self, job_id: str) -> Result[list[QCCheckpointResult]]:
        loaded = await self._load(job_id, for_update=False)
        if not loaded.ok:
            return Result(error=loaded.error)
        return Result.success(await self.repo.list_checkpoint_results(job_id))

    async def list_compatible_stations(self, job_id: str) -> Result[list[Station]]:
        loaded = await self._load(job_id, for_update=False)
        if not loaded.ok:
            return Result(error=loaded.error)
        stations = await self.repo.list_stations(active_only=True)
        return Result.success(self.assignor.compatible_stations(loaded.value, stations))
