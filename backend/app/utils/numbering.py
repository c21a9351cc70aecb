"""Job number generation.

Format tokens:
  {date}       → YYYYMMDD of the supplied day
  {seq:N}      → zero-padded sequence number, N digits, resets daily per prefix

Default format (``settings.job_number_format``):
  PJ-{date}-{seq:4}      e.g. PJ-20260302-0007
"""

import re
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.production.job import ProductionJob

_SEQ_RE = re.compile(r"\{seq:(\d+)\}")


def _build_prefix(fmt: str, today_str: str) -> str:
    """Everything before {seq:N}, with {date} filled in.

    Existing numbers sharing this prefix are counted to find the next seq.
    """
    prefix = fmt.replace("{date}", today_str)
    return re.sub(r"\{seq:\d+\}.*$", "", prefix)


def format_code(fmt: str, today: date, seq_num: int) -> str:
    today_str = today.strftime("%Y%m%d")
    seq_match = _SEQ_RE.search(fmt)
    seq_width = int(seq_match.group(1)) if seq_match else 3
    code = fmt.replace("{date}", today_str)
    return _SEQ_RE.sub(f"{seq_num:0{seq_width}d}", code)


async def generate_job_number(
    db: AsyncSession,
    today: date,
    fmt: str | None = None,
) -> str:
    """Generate the next sequential job number for ``today``.

    Args:
        db: Database session
        today: Business day the number belongs to (from the injected clock)
        fmt: Override for ``settings.job_number_format``

    Returns:
        Generated job number, e.g. "PJ-20260302-0001"
    """
    fmt = fmt or settings.job_number_format
    prefix = _build_prefix(fmt, today.strftime("%Y%m%d"))

    result = await db.execute(
        select(func.count(ProductionJob.id)).where(
            ProductionJob.job_number.like(f"{prefix}%")
        )
    )
    count = result.scalar() or 0
    return format_code(fmt, today, count + 1)
