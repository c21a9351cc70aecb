"""Progress and completion estimates for production jobs."""

from __future__ import annotations

from datetime import datetime, timedelta

from app.models.production.enums import JobStatus
from app.models.production.job import ProductionJob


def job_progress(job: ProductionJob) -> int:
    return job.progress_pct


def estimate_completion(job: ProductionJob, now: datetime) -> datetime | None:
    """Expected finish time of the remaining units at the planned rate.

    The planned rate is ``estimated_hours / ordered_qty``.  No estimate is
    given for a job without planned hours, one that has not started yet, or
    one that is already closed.  A started job with nothing left to make is
    expected now.
    """
    if not job.estimated_hours or not job.ordered_qty:
        return None
    if job.started_at is None or JobStatus(job.status).is_terminal:
        return None
    remaining = max(job.ordered_qty - job.produced_qty, 0)
    hours_per_unit = job.estimated_hours / job.ordered_qty
    return now + timedelta(hours=remaining * hours_per_unit)
