import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import create_tables
from app.middleware.exceptions import register_exception_handlers
from app.routers import health, production, stations

logger = logging.getLogger("threadline")


def configure_logging() -> None:
    """Apply LOG_LEVEL to the root logger (no-op if handlers already exist)."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.auto_create_tables:
        await create_tables()
        logger.info("Production tables ensured")
    yield


app = FastAPI(
    title="Threadline",
    description="Garment production job scheduling & QC tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(production.router, prefix="/api/production", tags=["production"])
app.include_router(stations.router, prefix="/api/stations", tags=["stations"])
