"""Pydantic schemas for production jobs, QC and the queue."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from app.models.production.enums import JobStatus, WorkType


# ── Create ───────────────────────────────────────────────────

class JobCreate(BaseModel):
    """Payload for POST /api/production/jobs.

    With ``order_id`` the job is tied to an order work item and carries a
    snapshot of the order number and customer; without it the job is a
    standalone (walk-in) job.
    """
    work_type_code: WorkType
    ordered_qty: int = Field(..., gt=0)
    priority: int = Field(0, ge=0, le=3)
    due_date: date | None = None
    description: str | None = None
    production_notes: str | None = None
    estimated_hours: float | None = Field(None, gt=0)

    # Order snapshot
    order_id: str | None = None
    order_number: str | None = Field(None, max_length=50)
    customer_name: str | None = Field(None, max_length=200)

    # Start in "queued" instead of "pending"
    queued: bool = False


# ── Commands ─────────────────────────────────────────────────

class JobUpdate(BaseModel):
    """Payload for PATCH /api/production/jobs/{job_id}.

    Only the fields present in the request are applied; ``null`` clears an
    optional field.  ``notes`` goes to the job log, not the job.
    """
    priority: int | None = Field(None, ge=0, le=3)
    due_date: date | None = None
    description: str | None = None
    production_notes: str | None = None
    estimated_hours: float | None = Field(None, gt=0)
    notes: str | None = None


class AssignStationRequest(BaseModel):
    station_id: str
    assigned_user_id: str | None = None
    notes: str | None = None


class StatusChangeRequest(BaseModel):
    status: JobStatus
    notes: str | None = None


class ProduceRequest(BaseModel):
    qty: int
    notes: str | None = None


class CheckpointIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    passed: bool
    notes: str | None = None


class QCCheckRequest(BaseModel):
    checkpoints: list[CheckpointIn] = []
    overall_passed: bool
    notes: str | None = None
    # Omit both to credit every unevaluated produced unit to the verdict
    passed_qty: int | None = None
    failed_qty: int | None = None


class ReworkRequest(BaseModel):
    quantity: int
    reason: str | None = None
    priority: int | None = Field(None, ge=0, le=3)
    due_date: date | None = None


# ── Response ─────────────────────────────────────────────────

class JobOut(BaseModel):
    id: str
    job_number: str
    order_id: str | None
    order_number: str | None
    customer_name: str | None
    work_type_code: str
    description: str | None
    production_notes: str | None
    estimated_hours: float | None
    status: str
    priority: int
    ordered_qty: int
    produced_qty: int
    passed_qty: int
    failed_qty: int
    rework_qty: int
    progress_pct: int
    station_id: str | None
    assigned_user_id: str | None
    assigned_at: datetime | None
    due_date: date | None
    started_at: datetime | None
    completed_at: datetime | None
    qc_notes: str | None
    qc_by: str | None
    qc_at: datetime | None
    qc_rounds: int
    is_rework: bool
    rework_count: int
    original_job_id: str | None
    rework_reason: str | None
    created_by: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class JobEventOut(BaseModel):
    id: str
    sequence: int
    action: str
    from_status: str | None
    to_status: str | None
    produced_qty: int | None
    notes: str | None
    details: dict | None
    performed_by: str | None
    performed_at: datetime

    model_config = {"from_attributes": True}


class QCResultOut(BaseModel):
    id: str
    qc_round: int
    checkpoint_name: str
    checkpoint_order: int
    passed: bool
    notes: str | None
    checked_by: str | None
    checked_at: datetime

    model_config = {"from_attributes": True}


class ScoreOut(BaseModel):
    tier: int
    urgency: int
    wait: int
    small_batch: int
    total: int


class JobDetailOut(JobOut):
    """Single job with its score, completion estimate, allowed next statuses, history and QC results."""
    score: ScoreOut
    estimated_completion: datetime | None = None
    allowed_transitions: list[str] = []
    history: list[JobEventOut] = []
    qc_results: list[QCResultOut] = []


class ReworkResponse(BaseModel):
    rework_job: JobOut
    original_job: JobOut


class QueueEntryOut(BaseModel):
    job: JobOut
    score: int
    breakdown: ScoreOut
    overdue: bool


class StationWorkload(BaseModel):
    station_id: str
    station_code: str
    station_name: str
    status: str
    capacity_per_day: int | None
    open_jobs: int
    remaining_qty: int


class QueueStats(BaseModel):
    total: int
    waiting: int
    in_progress: int
    overdue: int
    average_score: float
    by_status: dict[str, int]
    station_workloads: list[StationWorkload]
