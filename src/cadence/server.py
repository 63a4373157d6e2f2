import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from cadence.application.config import resolve_config
from cadence.application.scheduling import Scheduler, select_due
from cadence.consts import VERSION
from cadence.domain.scheduling import Grade, InvalidGrade

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cadence.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Cadence Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("Cadence Server shutting down...")


app = FastAPI(
    title="Cadence Server",
    description="Stateless spaced-repetition scheduling API.",
    version=VERSION,
    lifespan=lifespan,
)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


# Records and settings are passed through as plain mappings; the engine
# completes anything missing with defaults.
class PreviewRequest(BaseModel):
    progress: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None
    now_ms: int | None = None


class PreviewResponse(BaseModel):
    stage: int
    labels: dict[str, str]


class GradeRequest(BaseModel):
    progress: dict[str, Any] | None = None
    grade: str
    settings: dict[str, Any] | None = None
    latency_ms: int | None = None
    now_ms: int | None = None


class DueRequest(BaseModel):
    records: dict[str, dict[str, Any]]
    now_ms: int | None = None
    limit: int | None = Field(default=None, ge=0)


class DueResponse(BaseModel):
    due: list[str]
    total: int


def _scheduler(settings: dict[str, Any] | None) -> Scheduler:
    config = resolve_config()
    return Scheduler(config.scheduler_settings(settings), tz=config.zone_info())


@app.post("/preview", response_model=PreviewResponse)
async def preview(req: PreviewRequest):
    """Labels for all four grade buttons."""
    scheduler = _scheduler(req.settings)
    labels = scheduler.preview_all(req.progress, now=req.now_ms)
    return PreviewResponse(
        stage=scheduler.stage_for(req.progress),
        labels={g.value: label for g, label in labels.items()},
    )


@app.post("/grade")
async def grade(req: GradeRequest):
    """
    Apply a grade and return the updated record for the caller to store.
    """
    try:
        parsed = Grade.parse(req.grade)
    except InvalidGrade as e:
        raise HTTPException(status_code=422, detail=str(e)) from None

    scheduler = _scheduler(req.settings)
    updated = scheduler.apply(req.progress, parsed, req.latency_ms, now=req.now_ms)
    logger.info(f"Graded {parsed.value}: due {updated.due_date_key}")
    return {"progress": updated.to_dict()}


@app.post("/due", response_model=DueResponse)
async def due(req: DueRequest):
    """IDs of due records, earliest first."""
    tz = resolve_config().zone_info()
    return DueResponse(
        due=select_due(req.records, now=req.now_ms, limit=req.limit, tz=tz),
        total=len(req.records),
    )
