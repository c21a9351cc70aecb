"""Production job status lifecycle.

    pending/queued ─▶ assigned ─▶ in_progress ─▶ qc_check ─▶ qc_passed ─▶ completed
          │              │             │             │
          └──────────────┴─────────────┴─▶ cancelled └─▶ qc_failed ─▶ rework ─▶ in_progress
                                                              └─▶ cancelled

Every accepted transition mutates the job, appends exactly one event to the
job log and saves the job.  Rejected transitions change nothing.
"""

from __future__ import annotations

import logging
from typing import Iterable

from app.models.production.enums import EventAction, JobStatus, StationStatus
from app.models.production.job import ProductionJob
from app.services.production.clock import Clock
from app.services.production.errors import ErrorKind, Result
from app.services.production.repository import JobRepository

logger = logging.getLogger("threadline.production.status")

S = JobStatus

TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    S.PENDING: frozenset({S.ASSIGNED, S.IN_PROGRESS, S.CANCELLED}),
    S.QUEUED: frozenset({S.ASSIGNED, S.IN_PROGRESS, S.CANCELLED}),
    S.ASSIGNED: frozenset({S.IN_PROGRESS, S.CANCELLED}),
    S.IN_PROGRESS: frozenset({S.QC_CHECK, S.CANCELLED}),
    S.QC_CHECK: frozenset({S.QC_PASSED, S.QC_FAILED}),
    S.QC_PASSED: frozenset({S.COMPLETED}),
    S.QC_FAILED: frozenset({S.REWORK, S.CANCELLED}),
    S.REWORK: frozenset({S.IN_PROGRESS}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}

# Sources from which entering in_progress requires a bound station
_STATION_GUARDED_SOURCES = frozenset({S.PENDING, S.QUEUED, S.ASSIGNED})


def allowed_targets(status: JobStatus | str) -> list[JobStatus]:
    """Statuses reachable from ``status`` in one step, in lifecycle order."""
    reachable = TRANSITIONS[JobStatus(status)]
    return [s for s in JobStatus if s in reachable]


def can_transition(source: JobStatus | str, target: JobStatus | str) -> bool:
    return JobStatus(target) in TRANSITIONS[JobStatus(source)]


class StatusStateMachine:
    def __init__(
        self,
        repo: JobRepository,
        clock: Clock,
        station_required_work_types: Iterable[str] = (),
    ):
        self.repo = repo
        self.clock = clock
        self.station_required = frozenset(station_required_work_types)

    allowed_targets = staticmethod(allowed_targets)
    can_transition = staticmethod(can_transition)

    def validate(self, job: ProductionJob, target: JobStatus) -> Result[None]:
        """Check the pair and the guards without touching anything."""
        source = JobStatus(job.status)
        if target not in TRANSITIONS[source]:
            return Result.failure(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot move job {job.job_number} from {source.value} to {target.value}",
                from_status=source.value,
                to_status=target.value,
                allowed=[s.value for s in allowed_targets(source)],
            )
        if (
            target is S.IN_PROGRESS
            and source in _STATION_GUARDED_SOURCES
            and job.station_id is None
            and job.work_type_code in self.station_required
        ):
            return Result.failure(
                ErrorKind.PRECONDITION_FAILED,
                f"Work type {job.work_type_code} needs a station before production starts",
                work_type_code=job.work_type_code,
            )
        return Result.success()

    async def _check_bound_station(self, job: ProductionJob) -> Result[None]:
        """The bound station must still be active and still run the job's work type."""
        station = await self.repo.get_station(job.station_id, for_update=True)
        if station is None or station.status != StationStatus.ACTIVE.value:
            return Result.failure(
                ErrorKind.STATION_INACTIVE,
                f"Station {job.station_id} is no longer active, reassign job {job.job_number}",
                station_id=job.station_id,
            )
        if not station.supports(job.work_type_code):
            return Result.failure(
                ErrorKind.INCOMPATIBLE_STATION,
                f"Station {station.code} no longer runs {job.work_type_code}",
                station_id=station.id,
                work_type_code=job.work_type_code,
            )
        return Result.success()

    async def transition(
        self,
        job: ProductionJob,
        target: JobStatus | str,
        *,
        actor: str | None,
        notes: str | None = None,
        action: EventAction = EventAction.STATUS_CHANGED,
        details: dict | None = None,
    ) -> Result[ProductionJob]:
        """Move ``job`` to ``target``.

        Side effects on success:
          - started_at set on the first entry into in_progress
          - completed_at set on entry into completed
          - assigned_at set on entry into assigned when not already set
          - one job-log row carrying from/to status and ``action``
        """
        try:
            target = JobStatus(target)
        except ValueError:
            return Result.failure(
                ErrorKind.INVALID_TRANSITION, f"Unknown status: {target}", to_status=str(target)
            )
        check = self.validate(job, target)
        if not check.ok:
            return Result(error=check.error)
        if target is S.IN_PROGRESS and job.station_id is not None:
            check = await self._check_bound_station(job)
            if not check.ok:
                return Result(error=check.error)

        now = self.clock.now()
        source = job.status
        job.status = target.value
        job.updated_at = now
        if target is S.IN_PROGRESS and job.started_at is None:
            job.started_at = now
        elif target is S.COMPLETED:
            job.completed_at = now
        elif target is S.ASSIGNED and job.assigned_at is None:
            job.assigned_at = now

        await self.repo.save_job(job)
        await self.repo.append_event(
            job.id,
            action.value,
            at=now,
            actor=actor,
            from_status=source,
            to_status=target.value,
            notes=notes,
            details=details,
        )
        logger.info("Job %s: %s -> %s", job.job_number, source, target.value)
        return Result.success(job)
