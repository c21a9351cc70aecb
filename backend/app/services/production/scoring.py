"""Priority score for the production queue.

Higher score = picked up sooner.  The score is the sum of four factors:

  tier        normal 0 | rush 25 | urgent 50 | emergency 100
  urgency     days until due (ceil): ≤0 → 50, 1 → 40, 2-3 → 30, 4-7 → 15
  wait        +2 per full day since creation, capped at 20
  small batch +5 when ordered_qty ≤ 50

Pure functions: nothing here reads the clock or the database.
"""

import math
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta

TIER_SCORES = {0: 0, 1: 25, 2: 50, 3: 100}

# (max days until due, bonus), checked in order
URGENCY_STEPS = ((0, 50), (1, 40), (3, 30), (7, 15))

WAIT_POINTS_PER_DAY = 2
WAIT_CAP = 20
SMALL_BATCH_QTY = 50
SMALL_BATCH_BONUS = 5

_DAY = timedelta(days=1)


@dataclass(frozen=True)
class ScoreBreakdown:
    tier: int
    urgency: int
    wait: int
    small_batch: int

    @property
    def total(self) -> int:
        return self.tier + self.urgency + self.wait + self.small_batch

    def as_dict(self) -> dict:
        return {**asdict(self), "total": self.total}


def _as_datetime(value: date | datetime) -> datetime:
    # A bare due date means the start of that day
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def tier_score(priority: int) -> int:
    return TIER_SCORES.get(int(priority), 0)


def urgency_score(due_date: date | datetime | None, now: datetime) -> int:
    if due_date is None:
        return 0
    days_until_due = math.ceil((_as_datetime(due_date) - now) / _DAY)
    for max_days, bonus in URGENCY_STEPS:
        if days_until_due <= max_days:
            return bonus
    return 0


def wait_score(created_at: datetime | None, now: datetime) -> int:
    if created_at is None:
        return 0
    days_waiting = math.floor((now - created_at) / _DAY)
    return max(0, min(days_waiting * WAIT_POINTS_PER_DAY, WAIT_CAP))


def small_batch_score(ordered_qty: int) -> int:
    return SMALL_BATCH_BONUS if ordered_qty <= SMALL_BATCH_QTY else 0


def breakdown(job, now: datetime) -> ScoreBreakdown:
    """Per-factor score for ``job`` at ``now`` (for display in the queue)."""
    return ScoreBreakdown(
        tier=tier_score(job.priority or 0),
        urgency=urgency_score(job.due_date, now),
        wait=wait_score(job.created_at, now),
        small_batch=small_batch_score(job.ordered_qty),
    )


def score(job, now: datetime) -> int:
    return breakdown(job, now).total
