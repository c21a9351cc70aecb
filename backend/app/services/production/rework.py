"""Rework job creation for jobs that failed QC."""

from __future__ import annotations

import logging
import uuid
from datetime import date

from app.models.production.enums import EventAction, JobStatus
from app.models.production.job import ProductionJob
from app.services.production.clock import Clock
from app.services.production.errors import ErrorKind, Result
from app.services.production.repository import JobRepository

logger = logging.getLogger("threadline.production.rework")

REWORK_PREFIX = "[REWORK]"


def rework_description(description: str | None) -> str:
    if not description:
        return REWORK_PREFIX
    if description.startswith(REWORK_PREFIX):
        return description
    return f"{REWORK_PREFIX} {description}"


class ReworkSpawner:
    def __init__(self, repo: JobRepository, clock: Clock):
        self.repo = repo
        self.clock = clock

    async def create_rework(
        self,
        original: ProductionJob,
        quantity: int,
        reason: str | None,
        *,
        actor: str | None,
        priority: int | None = None,
        due_date: date | None = None,
    ) -> Result[str]:
        """Spawn a rework job for ``quantity`` failed units of ``original``.

        The new job starts in ``rework`` and re-enters production through
        in_progress.  The original only records how many of its failed
        units have been handed over (``rework_qty``).

        Returns:
            Result carrying the new job's id.
        """
        if original.status != JobStatus.QC_FAILED.value:
            return Result.failure(
                ErrorKind.INVALID_STATE,
                f"Job {original.job_number} is {original.status}, rework requires qc_failed",
                status=original.status,
            )

        available = original.failed_qty - (original.rework_qty or 0)
        if quantity <= 0 or quantity > available:
            return Result.failure(
                ErrorKind.INVALID_QUANTITY,
                f"Rework quantity must be between 1 and {available}",
                quantity=quantity,
                available=available,
            )

        if not reason or not reason.strip():
            return Result.failure(ErrorKind.MISSING_REASON, "A rework reason is required")
        reason = reason.strip()

        now = self.clock.now()
        job_number = await self.repo.next_job_number(now.date())
        rework = ProductionJob(
            id=str(uuid.uuid4()),
            job_number=job_number,
            order_id=original.order_id,
            order_number=original.order_number,
            customer_name=original.customer_name,
            work_type_code=original.work_type_code,
            description=rework_description(original.description),
            production_notes=None,
            status=JobStatus.REWORK.value,
            priority=original.priority if priority is None else int(priority),
            ordered_qty=quantity,
            produced_qty=0,
            passed_qty=0,
            failed_qty=0,
            rework_qty=0,
            station_id=None,
            assigned_user_id=None,
            due_date=original.due_date if due_date is None else due_date,
            qc_rounds=0,
            is_rework=True,
            rework_count=(original.rework_count or 0) + 1,
            original_job_id=original.id,
            rework_reason=reason,
            created_by=actor,
            created_at=now,
            updated_at=now,
        )
        await self.repo.save_job(rework)
        await self.repo.append_event(
            rework.id,
            EventAction.CREATED.value,
            at=now,
            actor=actor,
            to_status=rework.status,
            notes=f"Rework of {original.job_number}: {reason}",
            details={"original_job_id": original.id, "quantity": quantity},
        )

        original.rework_qty = (original.rework_qty or 0) + quantity
        original.updated_at = now
        await self.repo.save_job(original)
        await self.repo.append_event(
            original.id,
            EventAction.REWORK_CREATED.value,
            at=now,
            actor=actor,
            from_status=original.status,
            to_status=original.status,
            notes=f"Rework job {job_number} created: {reason}",
            details={
                "rework_job_id": rework.id,
                "rework_job_number": job_number,
                "quantity": quantity,
            },
        )
        logger.info(
            "Rework %s spawned from %s for %d unit(s)", job_number, original.job_number, quantity
        )
        return Result.success(rework.id)
