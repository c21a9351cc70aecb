"""Job event log tests: append-only, ordered per job."""

import pytest


@pytest.mark.integration
@pytest.mark.asyncio
class TestJobLog:

    async def test_entries_cannot_be_updated(self, scheduler, make_job, db_session):
        job = await make_job()
        entry = (await scheduler.job_history(job.id)).value[0]
        entry.notes = "rewritten"
        with pytest.raises(ValueError, match="immutable"):
            await db_session.flush()

    async def test_entries_cannot_be_deleted(self, scheduler, make_job, db_session):
        job = await make_job()
        entry = (await scheduler.job_history(job.id)).value[0]
        await db_session.delete(entry)
        with pytest.raises(ValueError, match="cannot be deleted"):
            await db_session.flush()

    async def test_sequence_numbers_per_job(self, scheduler, make_job):
        first = await make_job(work_type_code="packing")
        second = await make_job(work_type_code="packing")
        await scheduler.change_status(first.id, "in_progress", actor="op")
        await scheduler.log_production(first.id, 5, actor="op", notes="shift A")

        first_history = (await scheduler.job_history(first.id)).value
        second_history = (await scheduler.job_history(second.id)).value
        assert [e.sequence for e in first_history] == [1, 2, 3]
        assert [e.sequence for e in second_history] == [1]
        produced = first_history[-1]
        assert (produced.action, produced.produced_qty, produced.notes) == ("produced", 5, "shift A")
        assert produced.performed_by == "op"

    async def test_history_of_unknown_job(self, scheduler):
        result = await scheduler.job_history("missing")
        assert not result.ok
