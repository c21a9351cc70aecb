"""Rework job spawning tests: guards, quantity bound, lineage."""

from datetime import date

import pytest

from app.services.production.errors import ErrorKind
from app.services.production.queue import QueueFilters


@pytest.mark.integration
@pytest.mark.asyncio
class TestReworkGuards:

    async def test_requires_qc_failed(self, scheduler, job_in_qc):
        job = await job_in_qc(produced=20)
        result = await scheduler.create_rework_job(job.id, 5, "smudged", actor="qc")
        assert result.error.kind is ErrorKind.INVALID_STATE

    async def test_quantity_checked_before_reason(self, scheduler, job_in_qc):
        job = await job_in_qc(produced=8)
        await scheduler.perform_qc_check(job.id, [], False, actor="qc")
        assert job.failed_qty == 8

        too_many = await scheduler.create_rework_job(job.id, 10, "", actor="qc")
        assert too_many.error.kind is ErrorKind.INVALID_QUANTITY

        no_reason = await scheduler.create_rework_job(job.id, 8, "", actor="qc")
        assert no_reason.error.kind is ErrorKind.MISSING_REASON

        blank_reason = await scheduler.create_rework_job(job.id, 8, "   ", actor="qc")
        assert blank_reason.error.kind is ErrorKind.MISSING_REASON
        assert job.rework_qty == 0

    @pytest.mark.parametrize("quantity", [0, -2])
    async def test_non_positive_quantity(self, scheduler, job_in_qc, quantity):
        job = await job_in_qc(produced=8)
        await scheduler.perform_qc_check(job.id, [], False, actor="qc")
        result = await scheduler.create_rework_job(job.id, quantity, "bad ink", actor="qc")
        assert result.error.kind is ErrorKind.INVALID_QUANTITY


@pytest.mark.integration
@pytest.mark.asyncio
class TestReworkSpawn:

    async def test_lineage_and_inheritance(self, scheduler, job_in_qc):
        job = await job_in_qc(produced=100, priority=1, due_date=date(2026, 3, 6))
        await scheduler.perform_qc_check(job.id, [], False, actor="qc", passed_qty=88, failed_qty=12)

        result = await scheduler.create_rework_job(job.id, 12, " print cracked ", actor="qc-2")

        assert result.ok
        rework = (await scheduler.get_job(result.value)).value
        assert rework.status == "rework"
        assert rework.is_rework is True
        assert rework.original_job_id == job.id
        assert rework.rework_count == job.rework_count + 1 == 1
        assert rework.rework_reason == "print cracked"
        assert rework.ordered_qty == 12
        assert (rework.produced_qty, rework.passed_qty, rework.failed_qty) == (0, 0, 0)
        assert rework.work_type_code == job.work_type_code
        assert (rework.order_id, rework.order_number, rework.customer_name) == (
            job.order_id, job.order_number, job.customer_name,
        )
        assert rework.description == "[REWORK] Front logo, 100 tees"
        assert (rework.priority, rework.due_date) == (1, date(2026, 3, 6))
        assert rework.station_id is None
        assert rework.job_number != job.job_number

    async def test_original_records_handover_only(self, scheduler, job_in_qc):
        job = await job_in_qc(produced=100)
        await scheduler.perform_qc_check(job.id, [], False, actor="qc", passed_qty=90, failed_qty=10)

        rework_id = (await scheduler.create_rework_job(job.id, 10, "misprint", actor="qc")).value

        assert job.status == "qc_failed"
        assert (job.passed_qty, job.failed_qty, job.rework_qty) == (90, 10, 10)
        last = (await scheduler.job_history(job.id)).value[-1]
        assert last.action == "rework_created"
        assert last.details["rework_job_id"] == rework_id
        assert last.notes.startswith("Rework job PJ-20260302-")

        rework_history = (await scheduler.job_history(rework_id)).value
        assert [e.action for e in rework_history] == ["created"]
        assert rework_history[0].to_status == "rework"

    async def test_partial_reworks_bounded_by_failed_qty(self, scheduler, job_in_qc):
        job = await job_in_qc(produced=30)
        await scheduler.perform_qc_check(job.id, [], False, actor="qc")

        assert (await scheduler.create_rework_job(job.id, 20, "batch A", actor="qc")).ok
        assert (await scheduler.create_rework_job(job.id, 10, "batch B", actor="qc")).ok
        over = await scheduler.create_rework_job(job.id, 1, "batch C", actor="qc")

        assert over.error.kind is ErrorKind.INVALID_QUANTITY
        assert over.error.details["available"] == 0
        assert job.rework_qty == job.failed_qty == 30

    async def test_overrides_and_nested_rework(self, scheduler, job_in_qc):
        job = await job_in_qc(produced=10, work_type_code="packing")
        await scheduler.perform_qc_check(job.id, [], False, actor="qc")
        first_id = (await scheduler.create_rework_job(
            job.id, 10, "torn bags", actor="qc", priority=3, due_date=date(2026, 3, 3)
        )).value
        first = (await scheduler.get_job(first_id)).value
        assert (first.priority, first.due_date) == (3, date(2026, 3, 3))

        await scheduler.change_status(first_id, "in_progress", actor="op")
        await scheduler.log_production(first_id, 10, actor="op")
        await scheduler.change_status(first_id, "qc_check", actor="op")
        await scheduler.perform_qc_check(first_id, [], False, actor="qc")
        second_id = (await scheduler.create_rework_job(first_id, 4, "still torn", actor="qc")).value

        second = (await scheduler.get_job(second_id)).value
        assert second.rework_count == 2
        assert second.original_job_id == first_id
        assert second.description.count("[REWORK]") == 1

    async def test_rework_jobs_flagged_in_queue_filter(self, scheduler, job_in_qc):
        job = await job_in_qc(produced=5)
        await scheduler.perform_qc_check(job.id, [], False, actor="qc")
        rework_id = (await scheduler.create_rework_job(job.id, 5, "blurred", actor="qc")).value

        entries = await scheduler.compute_queue(QueueFilters(is_rework=True))
        assert [e.job.id for e in entries] == [rework_id]
