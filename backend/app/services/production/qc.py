"""Quality-control evaluation for jobs sitting in ``qc_check``.

A QC pass (round) records one result per checkpoint, credits the evaluated
units to ``passed_qty`` or ``failed_qty`` and moves the job to ``qc_passed``
or ``qc_failed``.  When the work type has active checkpoint templates the
submitted checkpoints are validated against them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from app.models.production.enums import EventAction, JobStatus
from app.models.production.job import ProductionJob
from app.services.production.clock import Clock
from app.services.production.errors import ErrorKind, Result
from app.services.production.repository import CheckpointRecord, JobRepository
from app.services.production.status_machine import StatusStateMachine

logger = logging.getLogger("threadline.production.qc")


@dataclass(frozen=True)
class CheckpointInput:
    name: str
    passed: bool
    notes: str | None = None


class QCEvaluator:
    def __init__(self, repo: JobRepository, clock: Clock, state_machine: StatusStateMachine):
        self.repo = repo
        self.clock = clock
        self.state_machine = state_machine

    async def _validate_checkpoints(
        self,
        job: ProductionJob,
        checkpoints: Sequence[CheckpointInput],
        overall_passed: bool,
    ) -> Result[list[CheckpointRecord]]:
        seen: set[str] = set()
        for cp in checkpoints:
            if cp.name in seen:
                return Result.failure(
                    ErrorKind.PRECONDITION_FAILED,
                    f"Checkpoint '{cp.name}' submitted twice",
                    checkpoint=cp.name,
                )
            seen.add(cp.name)

        templates = await self.repo.list_checkpoint_templates(job.work_type_code)
        if not templates:
            # No checklist configured: accept whatever the inspector recorded
            return Result.success([
                CheckpointRecord(cp.name, index, cp.passed, cp.notes)
                for index, cp in enumerate(checkpoints)
            ])

        by_name = {t.checkpoint_name: t for t in templates}
        unknown = [cp.name for cp in checkpoints if cp.name not in by_name]
        if unknown:
            return Result.failure(
                ErrorKind.NOT_FOUND,
                f"Unknown checkpoint(s) for {job.work_type_code}: {', '.join(unknown)}",
                unknown=unknown,
            )

        required = [t.checkpoint_name for t in templates if t.is_required]
        missing = [name for name in required if name not in seen]
        if missing:
            return Result.failure(
                ErrorKind.PRECONDITION_FAILED,
                f"Required checkpoint(s) not evaluated: {', '.join(missing)}",
                missing=missing,
            )

        failed_required = [
            cp.name for cp in checkpoints
            if not cp.passed and by_name[cp.name].is_required
        ]
        if overall_passed and failed_required:
            return Result.failure(
                ErrorKind.PRECONDITION_FAILED,
                "Cannot pass QC with failed required checkpoint(s): "
                + ", ".join(failed_required),
                failed_required=failed_required,
            )

        return Result.success([
            CheckpointRecord(cp.name, by_name[cp.name].sort_order, cp.passed, cp.notes)
            for cp in checkpoints
        ])

    async def perform_check(
        self,
        job: ProductionJob,
        checkpoints: Sequence[CheckpointInput],
        overall_passed: bool,
        *,
        actor: str | None,
        notes: str | None = None,
        passed_qty: int | None = None,
        failed_qty: int | None = None,
    ) -> Result[ProductionJob]:
        if job.status != JobStatus.QC_CHECK.value:
            return Result.failure(
                ErrorKind.INVALID_STATE,
                f"Job {job.job_number} is {job.status}, QC requires qc_check",
                status=job.status,
            )

        validated = await self._validate_checkpoints(job, checkpoints, overall_passed)
        if not validated.ok:
            return Result(error=validated.error)

        # Quantity policy: explicit deltas win; otherwise every produced unit
        # not yet evaluated goes to the side of the overall verdict.
        if passed_qty is None and failed_qty is None:
            pending = max(job.unevaluated_qty, 0)
            passed_delta, failed_delta = (pending, 0) if overall_passed else (0, pending)
        else:
            passed_delta, failed_delta = passed_qty or 0, failed_qty or 0

        if passed_delta < 0 or failed_delta < 0:
            return Result.failure(
                ErrorKind.INVALID_QUANTITY,
                "QC quantities cannot be negative",
                passed_qty=passed_delta,
                failed_qty=failed_delta,
            )
        evaluated = job.passed_qty + job.failed_qty + passed_delta + failed_delta
        if evaluated > job.produced_qty:
            return Result.failure(
                ErrorKind.INVALID_QUANTITY,
                f"Evaluated quantity {evaluated} exceeds produced quantity {job.produced_qty}",
                evaluated=evaluated,
                produced_qty=job.produced_qty,
            )

        now = self.clock.now()
        qc_round = (job.qc_rounds or 0) + 1
        await self.repo.save_checkpoint_results(
            job.id, qc_round, validated.value, actor=actor, at=now
        )

        job.passed_qty += passed_delta
        job.failed_qty += failed_delta
        job.qc_rounds = qc_round
        job.qc_notes = notes
        job.qc_by = actor
        job.qc_at = now

        target, action = (
            (JobStatus.QC_PASSED, EventAction.QC_PASSED)
            if overall_passed
            else (JobStatus.QC_FAILED, EventAction.QC_FAILED)
        )
        result = await self.state_machine.transition(
            job,
            target,
            actor=actor,
            notes=notes,
            action=action,
            details={
                "qc_round": qc_round,
                "passed_qty": passed_delta,
                "failed_qty": failed_delta,
                "checkpoints": [
                    {"name": r.checkpoint_name, "passed": r.passed} for r in validated.value
                ],
            },
        )
        if result.ok:
            logger.info(
                "QC round %d on %s: %s (+%d passed, +%d failed)",
                qc_round, job.job_number, target.value, passed_delta, failed_delta,
            )
        return result
