"""ProductionJobLog: immutable event log for production jobs.

Every mutating command appends exactly one row per job it touches.  This
table is the only audit trail for a job; rows are never updated or deleted
(enforced by the mapper listeners below).
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, event,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ProductionJobLog(Base):
    __tablename__ = "production_job_logs"
    __table_args__ = (
        UniqueConstraint("job_id", "sequence", name="uq_job_log_sequence"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    job_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("production_jobs.id"), nullable=False, index=True
    )
    # 1, 2, 3 ... per job; history order
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # ── Event classification ─────────────────────────────────
    # created | status_changed | assigned | produced | qc_passed | qc_failed | rework_created
    action: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    from_status: Mapped[str | None] = mapped_column(String(30))
    to_status: Mapped[str | None] = mapped_column(String(30))

    # ── Event data ───────────────────────────────────────────
    # Units produced in this step (action=produced only)
    produced_qty: Mapped[int | None] = mapped_column(Integer)
    notes: Mapped[str | None] = mapped_column(Text)
    # Flexible payload, e.g. {"station_id": ...} or {"rework_job_id": ...}
    details: Mapped[dict | None] = mapped_column(JSON)

    performed_by: Mapped[str | None] = mapped_column(String(36))
    performed_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )


@event.listens_for(ProductionJobLog, "before_update")
def _reject_update(mapper, connection, target):
    raise ValueError("production job log entries are immutable")


@event.listens_for(ProductionJobLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise ValueError("production job log entries cannot be deleted")
