"""Aggregate model imports for Alembic auto-detection."""

from app.models.production.station import Station  # noqa: F401
from app.models.production.job import ProductionJob  # noqa: F401
from app.models.production.job_log import ProductionJobLog  # noqa: F401
from app.models.production.qc import QCCheckpointResult, QCCheckpointTemplate  # noqa: F401
