"""Stations router: production stations and QC checkpoint templates.

Endpoints:
    GET    /api/stations/                 List stations
    POST   /api/stations/                 Create station
    PATCH  /api/stations/{station_id}     Update station (incl. activate/deactivate)
    GET    /api/stations/qc-templates     List QC checkpoint templates
    POST   /api/stations/qc-templates     Create QC checkpoint template
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status

from app.auth.deps import get_actor, get_clock, get_repository
from app.middleware.exceptions import ResourceNotFoundError
from app.models.production.enums import WorkType
from app.models.production.qc import QCCheckpointTemplate
from app.models.production.station import Station
from app.schemas.station import (
    QCTemplateCreate,
    QCTemplateOut,
    StationCreate,
    StationOut,
    StationUpdate,
)
from app.services.production.clock import Clock
from app.services.production.repository import SqlAlchemyJobRepository

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Stations ─────────────────────────────────────────────────

@router.get("/", response_model=list[StationOut])
async def list_stations(
    active_only: bool = Query(False),
    work_type_code: WorkType | None = Query(None),
    repo: SqlAlchemyJobRepository = Depends(get_repository),
):
    stations = await repo.list_stations(
        active_only=active_only,
        work_type_code=work_type_code.value if work_type_code else None,
    )
    return [StationOut.model_validate(s) for s in stations]


@router.post("/", response_model=StationOut, status_code=status.HTTP_201_CREATED)
async def create_station(
    body: StationCreate,
    repo: SqlAlchemyJobRepository = Depends(get_repository),
    clock: Clock = Depends(get_clock),
    actor: str = Depends(get_actor),
):
    now = clock.now()
    station = Station(
        id=str(uuid.uuid4()),
        code=body.code,
        name=body.name,
        department=body.department,
        work_type_codes=[w.value for w in body.work_type_codes],
        status=body.status.value,
        capacity_per_day=body.capacity_per_day,
        created_at=now,
        updated_at=now,
    )
    await repo.save_station(station)
    logger.info("Station %s created by %s", station.code, actor)
    return StationOut.model_validate(station)


@router.patch("/{station_id}", response_model=StationOut)
async def update_station(
    station_id: str,
    body: StationUpdate,
    repo: SqlAlchemyJobRepository = Depends(get_repository),
    clock: Clock = Depends(get_clock),
    actor: str = Depends(get_actor),
):
    """Partial update.

    Jobs already bound to a station keep the binding; they cannot enter
    in_progress until the station is active again or they are reassigned.
    """
    station = await repo.get_station(station_id, for_update=True)
    if not station:
        raise ResourceNotFoundError("Station", station_id)

    updates = body.model_dump(exclude_unset=True)
    if "work_type_codes" in updates and updates["work_type_codes"] is not None:
        updates["work_type_codes"] = [WorkType(w).value for w in updates["work_type_codes"]]
    if updates.get("status") is not None:
        updates["status"] = updates["status"].value
    for field, value in updates.items():
        setattr(station, field, value)
    station.updated_at = clock.now()

    await repo.save_station(station)
    logger.info("Station %s updated by %s: %s", station.code, actor, sorted(updates))
    return StationOut.model_validate(station)


# ── QC checkpoint templates ─────────────────────────────────

@router.get("/qc-templates", response_model=list[QCTemplateOut])
async def list_qc_templates(
    work_type_code: WorkType | None = Query(None),
    include_inactive: bool = Query(False),
    repo: SqlAlchemyJobRepository = Depends(get_repository),
):
    templates = await repo.list_checkpoint_templates(
        work_type_code.value if work_type_code else None,
        active_only=not include_inactive,
    )
    return [QCTemplateOut.model_validate(t) for t in templates]


@router.post("/qc-templates", response_model=QCTemplateOut, status_code=status.HTTP_201_CREATED)
async def create_qc_template(
    body: QCTemplateCreate,
    repo: SqlAlchemyJobRepository = Depends(get_repository),
    clock: Clock = Depends(get_clock),
    actor: str = Depends(get_actor),
):
    template = QCCheckpointTemplate(
        id=str(uuid.uuid4()),
        work_type_code=body.work_type_code.value,
        checkpoint_name=body.checkpoint_name,
        description=body.description,
        is_required=body.is_required,
        sort_order=body.sort_order,
        is_active=body.is_active,
        created_at=clock.now(),
    )
    await repo.save_checkpoint_template(template)
    logger.info(
        "QC checkpoint '%s' added for %s by %s",
        template.checkpoint_name, template.work_type_code, actor,
    )
    return QCTemplateOut.model_validate(template)
