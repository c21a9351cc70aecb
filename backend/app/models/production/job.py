"""ProductionJob: one unit of shop-floor work for a single work type.

A job is created from an order's work item, as a standalone walk-in job, or
as a rework job spawned from a job that failed QC.  It moves through the
status lifecycle enforced by ``StatusStateMachine`` and is never deleted.

Lifecycle:  pending/queued → assigned → in_progress → qc_check
            → qc_passed → completed   (or qc_failed → rework → in_progress)
"""

import math
import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ProductionJob(Base):
    __tablename__ = "production_jobs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Human-readable job number, e.g. PJ-20260302-0007
    job_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )

    # ── Order snapshot (read-only, owned by the order module) ─
    order_id: Mapped[str | None] = mapped_column(String(36), index=True)
    order_number: Mapped[str | None] = mapped_column(String(50))
    customer_name: Mapped[str | None] = mapped_column(String(200))

    # ── Work ─────────────────────────────────────────────────
    work_type_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    production_notes: Mapped[str | None] = mapped_column(Text)
    # Planned hours for the whole ordered quantity
    estimated_hours: Mapped[float | None] = mapped_column(Float)

    # ── Status ───────────────────────────────────────────────
    # see app.models.production.enums.JobStatus
    status: Mapped[str] = mapped_column(String(30), default="pending", index=True)
    # 0 normal | 1 rush | 2 urgent | 3 emergency
    priority: Mapped[int] = mapped_column(Integer, default=0, index=True)

    # ── Quantities ───────────────────────────────────────────
    ordered_qty: Mapped[int] = mapped_column(Integer, nullable=False)
    produced_qty: Mapped[int] = mapped_column(Integer, default=0)
    passed_qty: Mapped[int] = mapped_column(Integer, default=0)
    failed_qty: Mapped[int] = mapped_column(Integer, default=0)
    # Failed units already handed to rework jobs
    rework_qty: Mapped[int] = mapped_column(Integer, default=0)

    # ── Assignment ───────────────────────────────────────────
    station_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("production_stations.id"), index=True
    )
    assigned_user_id: Mapped[str | None] = mapped_column(String(36))
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Timing ───────────────────────────────────────────────
    due_date: Mapped[date | None] = mapped_column(Date, index=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    # ── QC ───────────────────────────────────────────────────
    qc_notes: Mapped[str | None] = mapped_column(Text)
    qc_by: Mapped[str | None] = mapped_column(String(36))
    qc_at: Mapped[datetime | None] = mapped_column(DateTime)
    qc_rounds: Mapped[int] = mapped_column(Integer, default=0)

    # ── Rework lineage ───────────────────────────────────────
    is_rework: Mapped[bool] = mapped_column(Boolean, default=False)
    rework_count: Mapped[int] = mapped_column(Integer, default=0)
    original_job_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("production_jobs.id"), index=True
    )
    rework_reason: Mapped[str | None] = mapped_column(Text)

    # ── Metadata ─────────────────────────────────────────────
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    # Set by the writer from its clock
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    # Optimistic-lock token: every UPDATE checks and bumps it
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def unevaluated_qty(self) -> int:
        """Produced units that have not been through QC yet."""
        return self.produced_qty - self.passed_qty - self.failed_qty

    @property
    def reworkable_qty(self) -> int:
        return self.failed_qty - self.rework_qty

    @property
    def progress_pct(self) -> int:
        """Produced share of the ordered quantity, rounded to a whole percent."""
        if not self.ordered_qty:
            return 0
        # half-up, 12.5 -> 13
        return math.floor(self.produced_qty * 100 / self.ordered_qty + 0.5)

    def __repr__(self) -> str:
        return f"<ProductionJob {self.job_number} status={self.status}>"
