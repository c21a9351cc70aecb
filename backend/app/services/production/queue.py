"""Read-side queue view: filter, score, order, bucket and summarise jobs.

Nothing here writes; the queue is recomputed from the repository on every
read, so calling these twice with the same jobs and ``now`` gives the same
answer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from app.models.production.enums import JobStatus
from app.models.production.job import ProductionJob
from app.models.production.station import Station
from app.services.production.scoring import ScoreBreakdown, breakdown

S = JobStatus

# Kanban columns in display order
KANBAN_BUCKETS: dict[str, tuple[JobStatus, ...]] = {
    "waiting": (S.PENDING, S.QUEUED),
    "assigned": (S.ASSIGNED,),
    "in_progress": (S.IN_PROGRESS,),
    "qc_check": (S.QC_CHECK,),
    "qc_passed": (S.QC_PASSED,),
    "rework": (S.QC_FAILED, S.REWORK),
    "completed": (S.COMPLETED,),
    "cancelled": (S.CANCELLED,),
}

_BUCKET_OF = {
    status.value: bucket
    for bucket, statuses in KANBAN_BUCKETS.items()
    for status in statuses
}


@dataclass
class QueueFilters:
    work_type_code: str | None = None
    priority: int | None = None
    statuses: Sequence[str] = field(default_factory=tuple)
    station_id: str | None = None
    is_rework: bool | None = None
    search: str | None = None

    def matches(self, job: ProductionJob) -> bool:
        if self.work_type_code and job.work_type_code != self.work_type_code:
            return False
        if self.priority is not None and job.priority != self.priority:
            return False
        if self.statuses and job.status not in self.statuses:
            return False
        if self.station_id and job.station_id != self.station_id:
            return False
        if self.is_rework is not None and bool(job.is_rework) != self.is_rework:
            return False
        if self.search:
            needle = self.search.strip().lower()
            haystack = (job.job_number, job.order_number, job.customer_name)
            if not any(needle in (value or "").lower() for value in haystack):
                return False
        return True


@dataclass(frozen=True)
class QueueEntry:
    job: ProductionJob
    score: int
    breakdown: ScoreBreakdown
    position: int


def build_queue(
    jobs: Iterable[ProductionJob],
    now: datetime,
    filters: QueueFilters | None = None,
) -> list[QueueEntry]:
    """Filter, score and order jobs: score desc, created_at asc, input order."""
    filters = filters or QueueFilters()
    entries = []
    for position, job in enumerate(jobs):
        if not filters.matches(job):
            continue
        parts = breakdown(job, now)
        entries.append(QueueEntry(job=job, score=parts.total, breakdown=parts, position=position))
    entries.sort(key=lambda e: (-e.score, e.job.created_at or datetime.min, e.position))
    return entries


def group_by_status(entries: Sequence[QueueEntry]) -> dict[str, list[QueueEntry]]:
    """Split an ordered queue into kanban buckets, keeping queue order."""
    board: dict[str, list[QueueEntry]] = {bucket: [] for bucket in KANBAN_BUCKETS}
    for entry in entries:
        board[_BUCKET_OF[entry.job.status]].append(entry)
    return board


def is_overdue(job: ProductionJob, now: datetime) -> bool:
    if job.due_date is None:
        return False
    if job.status in (S.COMPLETED.value, S.CANCELLED.value):
        return False
    due = job.due_date.date() if isinstance(job.due_date, datetime) else job.due_date
    return due < now.date()


def queue_stats(
    entries: Sequence[QueueEntry],
    now: datetime,
    stations: Sequence[Station] = (),
) -> dict:
    jobs = [e.job for e in entries]
    by_status = {status.value: 0 for status in JobStatus}
    for job in jobs:
        by_status[job.status] += 1

    workloads = []
    for station in stations:
        open_jobs = [
            j for j in jobs
            if j.station_id == station.id and not JobStatus(j.status).is_terminal
        ]
        workloads.append({
            "station_id": station.id,
            "station_code": station.code,
            "station_name": station.name,
            "status": station.status,
            "capacity_per_day": station.capacity_per_day,
            "open_jobs": len(open_jobs),
            "remaining_qty": sum(max(j.ordered_qty - j.produced_qty, 0) for j in open_jobs),
        })

    return {
        "total": len(jobs),
        "waiting": by_status[S.PENDING.value] + by_status[S.QUEUED.value],
        "in_progress": by_status[S.IN_PROGRESS.value],
        "overdue": sum(1 for j in jobs if is_overdue(j, now)),
        "average_score": round(sum(e.score for e in entries) / len(entries), 1) if entries else 0.0,
        "by_status": by_status,
        "station_workloads": workloads,
    }
