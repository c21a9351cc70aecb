"""Closed vocabularies for production jobs, stations and job events.

Every code stored in a ``String`` column is one of these values; anything
else is rejected at the API boundary (pydantic) or by the enum constructor.
"""

import enum


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    QUEUED = "queued"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    QC_CHECK = "qc_check"
    QC_PASSED = "qc_passed"
    QC_FAILED = "qc_failed"
    REWORK = "rework"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.CANCELLED)

    @property
    def is_initial(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.QUEUED)


class JobPriority(enum.IntEnum):
    NORMAL = 0
    RUSH = 1
    URGENT = 2
    EMERGENCY = 3


class WorkType(str, enum.Enum):
    DTF_PRINTING = "dtf_printing"
    DTG_PRINTING = "dtg_printing"
    SILKSCREEN = "silkscreen"
    SUBLIMATION = "sublimation"
    EMBROIDERY = "embroidery"
    SEWING = "sewing"
    PACKING = "packing"
    FOLDING = "folding"


class StationStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class EventAction(str, enum.Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    PRODUCED = "produced"
    QC_PASSED = "qc_passed"
    QC_FAILED = "qc_failed"
    REWORK_CREATED = "rework_created"
    UPDATED = "updated"
