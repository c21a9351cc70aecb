"""Station matching and assignment.

A station is compatible with a job when it is active and lists the job's
work type.  Compatibility is decided on the read snapshot; the station row
is then re-read under lock so a station deactivated in between is caught
before the job is written.  Stations have no capacity limit.
"""

from __future__ import annotations

import logging
from typing import Iterable

from app.models.production.enums import EventAction, JobStatus, StationStatus
from app.models.production.job import ProductionJob
from app.models.production.station import Station
from app.services.production.clock import Clock
from app.services.production.errors import ErrorKind, Result
from app.services.production.repository import JobRepository
from app.services.production.status_machine import StatusStateMachine

logger = logging.getLogger("threadline.production.assignment")


def compatible_stations(job: ProductionJob, stations: Iterable[Station]) -> list[Station]:
    return [
        s for s in stations
        if s.status == StationStatus.ACTIVE.value and s.supports(job.work_type_code)
    ]


class StationAssignor:
    def __init__(self, repo: JobRepository, clock: Clock, state_machine: StatusStateMachine):
        self.repo = repo
        self.clock = clock
        self.state_machine = state_machine

    compatible_stations = staticmethod(compatible_stations)

    async def assign(
        self,
        job: ProductionJob,
        station_id: str,
        *,
        actor: str | None,
        notes: str | None = None,
        assigned_user_id: str | None = None,
    ) -> Result[ProductionJob]:
        status = JobStatus(job.status)
        if status.is_terminal:
            return Result.failure(
                ErrorKind.PRECONDITION_FAILED,
                f"Job {job.job_number} is {status.value} and cannot be assigned",
                status=status.value,
            )

        snapshot = await self.repo.list_stations()
        if not any(s.id == station_id for s in snapshot):
            return Result.failure(
                ErrorKind.NOT_FOUND, f"Station {station_id} not found", station_id=station_id
            )
        if not any(s.id == station_id for s in compatible_stations(job, snapshot)):
            return Result.failure(
                ErrorKind.INCOMPATIBLE_STATION,
                f"Station {station_id} cannot run {job.work_type_code}",
                station_id=station_id,
                work_type_code=job.work_type_code,
            )

        # Commit-time re-validation under a row lock
        station = await self.repo.get_station(station_id, for_update=True)
        if station is None or station.status != StationStatus.ACTIVE.value:
            return Result.failure(
                ErrorKind.STATION_INACTIVE,
                f"Station {station_id} was deactivated",
                station_id=station_id,
            )

        job.station_id = station.id
        if assigned_user_id is not None:
            job.assigned_user_id = assigned_user_id
        details = {"station_id": station.id, "station_code": station.code}

        if status.is_initial:
            return await self.state_machine.transition(
                job,
                JobStatus.ASSIGNED,
                actor=actor,
                notes=notes,
                action=EventAction.ASSIGNED,
                details=details,
            )

        # Re-binding a job already past the initial states keeps its status
        now = self.clock.now()
        job.assigned_at = now
        job.updated_at = now
        await self.repo.save_job(job)
        await self.repo.append_event(
            job.id,
            EventAction.ASSIGNED.value,
            at=now,
            actor=actor,
            from_status=job.status,
            to_status=job.status,
            notes=notes,
            details=details,
        )
        logger.info("Job %s re-bound to station %s", job.job_number, station.code)
        return Result.success(job)
