"""Production router: jobs, shop-floor commands, QC and the queue.

Endpoints:
    POST   /api/production/jobs                 Create a job (order work item or standalone)
    GET    /api/production/jobs                 List jobs (with filters)
    GET    /api/production/jobs/{job_id}        Job detail with score, history, QC results
    PATCH  /api/production/jobs/{job_id}        Edit planning fields (priority, due date, notes, hours)
    GET    /api/production/jobs/{job_id}/qr     QR job ticket (SVG)
    GET    /api/production/jobs/{job_id}/stations  Compatible active stations
    POST   /api/production/jobs/{job_id}/assign    Bind a station
    POST   /api/production/jobs/{job_id}/status    Status transition
    POST   /api/production/jobs/{job_id}/produce   Log produced units
    POST   /api/production/jobs/{job_id}/qc        Record a QC check
    POST   /api/production/jobs/{job_id}/rework    Spawn a rework job
    GET    /api/production/queue                Scored, ordered queue
    GET    /api/production/queue/board          Queue grouped into kanban buckets
    GET    /api/production/stats                Dashboard counters and station workloads
"""

import io
import json
from datetime import datetime

import segno
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from app.auth.deps import get_actor, get_clock, get_scheduler
from app.middleware.exceptions import DomainRuleError
from app.models.production.enums import JobStatus, WorkType
from app.schemas.common import PaginatedResponse
from app.schemas.production import (
    AssignStationRequest,
    JobCreate,
    JobDetailOut,
    JobEventOut,
    JobOut,
    JobUpdate,
    ProduceRequest,
    QCCheckRequest,
    QCResultOut,
    QueueEntryOut,
    QueueStats,
    ReworkRequest,
    ReworkResponse,
    ScoreOut,
    StatusChangeRequest,
)
from app.schemas.station import StationOut
from app.services.production.clock import Clock
from app.services.production.errors import Result
from app.services.production.qc import CheckpointInput
from app.services.production.queue import QueueEntry, QueueFilters, is_overdue
from app.services.production.progress import estimate_completion
from app.services.production.scheduler import JobScheduler
from app.services.production.scoring import breakdown
from app.services.production.status_machine import allowed_targets

router = APIRouter()

_OPEN_STATUSES = tuple(s.value for s in JobStatus if not s.is_terminal)


def _unwrap(result: Result):
    if not result.ok:
        raise DomainRuleError.from_error(result.error)
    return result.value


def _entry_out(entry: QueueEntry, now: datetime) -> QueueEntryOut:
    return QueueEntryOut(
        job=JobOut.model_validate(entry.job),
        score=entry.score,
        breakdown=ScoreOut(**entry.breakdown.as_dict()),
        overdue=is_overdue(entry.job, now),
    )


def _queue_filters(
    work_type_code: WorkType | None = Query(None),
    priority: int | None = Query(None, ge=0, le=3),
    job_status: list[JobStatus] | None = Query(None, alias="status"),
    station_id: str | None = Query(None),
    is_rework: bool | None = Query(None),
    search: str | None = Query(None),
) -> QueueFilters:
    return QueueFilters(
        work_type_code=work_type_code.value if work_type_code else None,
        priority=priority,
        statuses=tuple(s.value for s in job_status or ()),
        station_id=station_id,
        is_rework=is_rework,
        search=search,
    )


# ── Jobs ─────────────────────────────────────────────────────

@router.post("/jobs", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    body: JobCreate,
    scheduler: JobScheduler = Depends(get_scheduler),
    actor: str = Depends(get_actor),
):
    """Create a production job in ``pending`` (or ``queued``)."""
    job = _unwrap(await scheduler.create_job(
        work_type_code=body.work_type_code.value,
        ordered_qty=body.ordered_qty,
        actor=actor,
        description=body.description,
        priority=body.priority,
        due_date=body.due_date,
        order_id=body.order_id,
        order_number=body.order_number,
        customer_name=body.customer_name,
        production_notes=body.production_notes,
        estimated_hours=body.estimated_hours,
        queued=body.queued,
    ))
    return JobOut.model_validate(job)


@router.get("/jobs", response_model=PaginatedResponse[JobOut])
async def list_jobs(
    filters: QueueFilters = Depends(_queue_filters),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    scheduler: JobScheduler = Depends(get_scheduler),
):
    """Jobs newest first, filtered like the queue."""
    jobs = [j for j in await scheduler.repo.list_jobs() if filters.matches(j)]
    jobs.sort(key=lambda j: j.created_at, reverse=True)
    return PaginatedResponse[JobOut](
        items=[JobOut.model_validate(j) for j in jobs[offset:offset + limit]],
        total=len(jobs),
        limit=limit,
        offset=offset,
    )


@router.get("/jobs/{job_id}", response_model=JobDetailOut)
async def get_job(
    job_id: str,
    scheduler: JobScheduler = Depends(get_scheduler),
    clock: Clock = Depends(get_clock),
):
    job = _unwrap(await scheduler.get_job(job_id))
    history = _unwrap(await scheduler.job_history(job_id))
    qc_results = _unwrap(await scheduler.checkpoint_results(job_id))
    return JobDetailOut(
        **JobOut.model_validate(job).model_dump(),
        score=ScoreOut(**breakdown(job, clock.now()).as_dict()),
        estimated_completion=estimate_completion(job, clock.now()),
        allowed_transitions=[s.value for s in allowed_targets(job.status)],
        history=[JobEventOut.model_validate(e) for e in history],
        qc_results=[QCResultOut.model_validate(r) for r in qc_results],
    )


@router.patch("/jobs/{job_id}", response_model=JobOut)
async def update_job(
    job_id: str,
    body: JobUpdate,
    scheduler: JobScheduler = Depends(get_scheduler),
    actor: str = Depends(get_actor),
):
    """Partial update of an open job's planning fields; reshapes its queue position."""
    changes = body.model_dump(exclude_unset=True)
    notes = changes.pop("notes", None)
    job = _unwrap(await scheduler.update_job(job_id, changes, actor=actor, notes=notes))
    return JobOut.model_validate(job)


@router.get("/jobs/{job_id}/qr")
async def get_job_qr(
    job_id: str,
    scheduler: JobScheduler = Depends(get_scheduler),
):
    """Return an SVG QR code for the printed job ticket."""
    job = _unwrap(await scheduler.get_job(job_id))

    qr_data = json.dumps({
        "job_id": job.id,
        "job_number": job.job_number,
        "work_type": job.work_type_code,
        "qty": job.ordered_qty,
        "order_number": job.order_number,
        "due_date": job.due_date.isoformat() if job.due_date else None,
        "rework": job.is_rework,
    }, separators=(",", ":"))

    qr = segno.make(qr_data)
    buf = io.BytesIO()
    qr.save(buf, kind="svg", scale=4, dark="#1e3a8a")
    return Response(content=buf.getvalue(), media_type="image/svg+xml")


@router.get("/jobs/{job_id}/stations", response_model=list[StationOut])
async def compatible_stations(
    job_id: str,
    scheduler: JobScheduler = Depends(get_scheduler),
):
    stations = _unwrap(await scheduler.list_compatible_stations(job_id))
    return [StationOut.model_validate(s) for s in stations]


# ── Commands ─────────────────────────────────────────────────

@router.post("/jobs/{job_id}/assign", response_model=JobOut)
async def assign_station(
    job_id: str,
    body: AssignStationRequest,
    scheduler: JobScheduler = Depends(get_scheduler),
    actor: str = Depends(get_actor),
):
    job = _unwrap(await scheduler.assign_station(
        job_id,
        body.station_id,
        actor=actor,
        notes=body.notes,
        assigned_user_id=body.assigned_user_id,
    ))
    return JobOut.model_validate(job)


@router.post("/jobs/{job_id}/status", response_model=JobOut)
async def change_status(
    job_id: str,
    body: StatusChangeRequest,
    scheduler: JobScheduler = Depends(get_scheduler),
    actor: str = Depends(get_actor),
):
    job = _unwrap(await scheduler.change_status(
        job_id, body.status, actor=actor, notes=body.notes
    ))
    return JobOut.model_validate(job)


@router.post("/jobs/{job_id}/produce", response_model=JobOut)
async def log_production(
    job_id: str,
    body: ProduceRequest,
    scheduler: JobScheduler = Depends(get_scheduler),
    actor: str = Depends(get_actor),
):
    job = _unwrap(await scheduler.log_production(
        job_id, body.qty, actor=actor, notes=body.notes
    ))
    return JobOut.model_validate(job)


@router.post("/jobs/{job_id}/qc", response_model=JobOut)
async def perform_qc_check(
    job_id: str,
    body: QCCheckRequest,
    scheduler: JobScheduler = Depends(get_scheduler),
    actor: str = Depends(get_actor),
):
    job = _unwrap(await scheduler.perform_qc_check(
        job_id,
        [CheckpointInput(cp.name, cp.passed, cp.notes) for cp in body.checkpoints],
        body.overall_passed,
        actor=actor,
        notes=body.notes,
        passed_qty=body.passed_qty,
        failed_qty=body.failed_qty,
    ))
    return JobOut.model_validate(job)


@router.post(
    "/jobs/{job_id}/rework",
    response_model=ReworkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_rework_job(
    job_id: str,
    body: ReworkRequest,
    scheduler: JobScheduler = Depends(get_scheduler),
    actor: str = Depends(get_actor),
):
    rework_id = _unwrap(await scheduler.create_rework_job(
        job_id,
        body.quantity,
        body.reason,
        actor=actor,
        priority=body.priority,
        due_date=body.due_date,
    ))
    rework_job = _unwrap(await scheduler.get_job(rework_id))
    original_job = _unwrap(await scheduler.get_job(job_id))
    return ReworkResponse(
        rework_job=JobOut.model_validate(rework_job),
        original_job=JobOut.model_validate(original_job),
    )


# ── Queue ────────────────────────────────────────────────────

@router.get("/queue", response_model=list[QueueEntryOut])
async def get_queue(
    filters: QueueFilters = Depends(_queue_filters),
    include_closed: bool = Query(False),
    scheduler: JobScheduler = Depends(get_scheduler),
    clock: Clock = Depends(get_clock),
):
    """Jobs ordered by priority score (highest first).

    Completed and cancelled jobs are left out unless ``include_closed`` is
    set or a status filter asks for them.
    """
    if not filters.statuses and not include_closed:
        filters.statuses = _OPEN_STATUSES
    now = clock.now()
    return [_entry_out(e, now) for e in await scheduler.compute_queue(filters)]


@router.get("/queue/board", response_model=dict[str, list[QueueEntryOut]])
async def get_queue_board(
    filters: QueueFilters = Depends(_queue_filters),
    scheduler: JobScheduler = Depends(get_scheduler),
    clock: Clock = Depends(get_clock),
):
    now = clock.now()
    board = await scheduler.queue_board(filters)
    return {
        bucket: [_entry_out(e, now) for e in entries]
        for bucket, entries in board.items()
    }


@router.get("/stats", response_model=QueueStats)
async def get_stats(
    scheduler: JobScheduler = Depends(get_scheduler),
):
    return await scheduler.stats()
