"""Production models: jobs, stations, QC checkpoints and the job event log."""

from app.models.production.enums import (
    EventAction, JobPriority, JobStatus, StationStatus, WorkType,
)
from app.models.production.station import Station
from app.models.production.job import ProductionJob
from app.models.production.job_log import ProductionJobLog
from app.models.production.qc import QCCheckpointResult, QCCheckpointTemplate

__all__ = [
    "EventAction", "JobPriority", "JobStatus", "StationStatus", "WorkType",
    "Station", "ProductionJob", "ProductionJobLog",
    "QCCheckpointTemplate", "QCCheckpointResult",
]
