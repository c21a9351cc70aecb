"""FastAPI dependencies for request identity and the production scheduler.

Dependencies:
  get_actor        → opaque actor id from the X-Actor-Id header (401 if absent)
  get_clock        → time source (overridden in tests with a FixedClock)
  get_scheduler    → JobScheduler bound to the request's DB session

Authentication itself lives in the identity service in front of this API;
by the time a request arrives here the caller is already known.
"""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.services.production.clock import Clock, SystemClock
from app.services.production.repository import SqlAlchemyJobRepository
from app.services.production.scheduler import JobScheduler

_system_clock = SystemClock()


async def get_actor(
    x_actor_id: str | None = Header(None, alias="X-Actor-Id"),
) -> str:
    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Actor-Id header",
        )
    return x_actor_id.strip()


def get_clock() -> Clock:
    return _system_clock


async def get_repository(
    db: AsyncSession = Depends(get_db),
) -> SqlAlchemyJobRepository:
    return SqlAlchemyJobRepository(db, settings.job_number_format)


async def get_scheduler(
    repo: SqlAlchemyJobRepository = Depends(get_repository),
    clock: Clock = Depends(get_clock),
) -> JobScheduler:
    return JobScheduler(repo, clock, settings.station_required_set)
