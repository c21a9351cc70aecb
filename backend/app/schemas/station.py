"""Pydantic schemas for stations and QC checkpoint templates."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.models.production.enums import StationStatus, WorkType


class StationCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=100)
    department: str | None = Field(None, max_length=50)
    work_type_codes: list[WorkType] = Field(..., min_length=1)
    status: StationStatus = StationStatus.ACTIVE
    capacity_per_day: int | None = Field(None, ge=1)


class StationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    department: str | None = None
    work_type_codes: list[WorkType] | None = None
    status: StationStatus | None = None
    capacity_per_day: int | None = Field(None, ge=1)


class StationOut(BaseModel):
    id: str
    code: str
    name: str
    department: str | None
    work_type_codes: list[str]
    status: str
    capacity_per_day: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class QCTemplateCreate(BaseModel):
    work_type_code: WorkType
    checkpoint_name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    is_required: bool = True
    sort_order: int = Field(0, ge=0)
    is_active: bool = True


class QCTemplateOut(BaseModel):
    id: str
    work_type_code: str
    checkpoint_name: str
    description: str | None
    is_required: bool
    sort_order: int
    is_active: bool

    model_config = {"from_attributes": True}
