"""QC checkpoint templates (per work type) and recorded checkpoint results."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class QCCheckpointTemplate(Base):
    __tablename__ = "qc_checkpoint_templates"
    __table_args__ = (
        UniqueConstraint("work_type_code", "checkpoint_name", name="uq_qc_template_name"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    work_type_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # e.g. "color accuracy", "stitch quality"
    checkpoint_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_required: Mapped[bool] = mapped_column(Boolean, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class QCCheckpointResult(Base):
    __tablename__ = "qc_checkpoint_results"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("production_jobs.id"), nullable=False, index=True
    )
    # One result per checkpoint per QC pass; rounds count from 1
    qc_round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    checkpoint_name: Mapped[str] = mapped_column(String(100), nullable=False)
    checkpoint_order: Mapped[int] = mapped_column(Integer, default=0)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    checked_by: Mapped[str | None] = mapped_column(String(36))
    checked_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
