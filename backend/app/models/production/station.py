"""Station: a production resource able to run one or more work types.

Stations have no modelled capacity limit: several jobs may be bound to the
same station at once.  ``capacity_per_day`` is informational.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Station(Base):
    __tablename__ = "production_stations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    code: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # printing | embroidery | sewing | cutting | packing
    department: Mapped[str | None] = mapped_column(String(50))
    # Work type codes this station can run, e.g. ["dtf_printing", "dtg_printing"]
    work_type_codes: Mapped[list] = mapped_column(JSON, default=list)
    # active | inactive
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    capacity_per_day: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    # Set by the writer from its clock
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def supports(self, work_type_code: str) -> bool:
        return work_type_code in (self.work_type_codes or [])
