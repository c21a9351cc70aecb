"""Management CLI for the production database.

Usage:
    python -m app.cli init-db              # Create missing production tables
    python -m app.cli show-queue           # Print the open queue, highest score first
    python -m app.cli show-queue --all     # Include completed / cancelled jobs
"""

import asyncio
import sys
from typing import Sequence

from app.database import async_session, create_tables
from app.models.production.enums import JobStatus
from app.services.production.clock import SystemClock
from app.services.production.queue import QueueEntry, QueueFilters
from app.services.production.repository import SqlAlchemyJobRepository
from app.services.production.scheduler import JobScheduler


def format_queue(entries: Sequence[QueueEntry]) -> str:
    if not entries:
        return "Queue is empty."
    header = f"{'#':>3}  {'JOB':<18} {'WORK TYPE':<14} {'STATUS':<12} {'QTY':>5} {'SCORE':>5}"
    lines = [header, "-" * len(header)]
    for rank, entry in enumerate(entries, start=1):
        job = entry.job
        marker = " R" if job.is_rework else ""
        lines.append(
            f"{rank:>3}  {job.job_number:<18} {job.work_type_code:<14} "
            f"{job.status:<12} {job.ordered_qty:>5} {entry.score:>5}{marker}"
        )
    lines.append(f"\n{len(entries)} job(s)")
    return "\n".join(lines)


async def show_queue(include_closed: bool = False) -> str:
    filters = QueueFilters()
    if not include_closed:
        filters.statuses = tuple(s.value for s in JobStatus if not s.is_terminal)
    async with async_session() as db:
        scheduler = JobScheduler(SqlAlchemyJobRepository(db), SystemClock())
        entries = await scheduler.compute_queue(filters)
    return format_queue(entries)


def init_db():
    asyncio.run(create_tables())
    print("Production tables created.")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "init-db":
        init_db()
    elif cmd == "show-queue":
        print(asyncio.run(show_queue(include_closed="--all" in sys.argv[2:])))
    else:
        print("Usage: python -m app.cli [init-db|show-queue [--all]]")
