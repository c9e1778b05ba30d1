import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import settings
from app.container import build_orchestrator
from app.fitness.cache import run_sweeper
from app.fitness.router import router as fitness_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    orchestrator = build_orchestrator(settings)
    ensure_schema = getattr(orchestrator.store, "ensure_schema", None)
    if ensure_schema is not None:
        await ensure_schema()
    app.state.orchestrator = orchestrator
    sweeper = asyncio.create_task(run_sweeper(orchestrator.cache, settings.cache_check_period_seconds))
    logger.info("FitMetrics started (store=%s)", settings.store_backend)
    try:
        yield
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        orchestrator.cache.close()


app = FastAPI(title="FitMetrics", version="0.1.0", lifespan=lifespan)
app.include_router(fitness_router)


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "users": {
            "profile": "/users/{user_id}/profile",
            "goal": "/users/{user_id}/goal",
            "metrics": "/users/{user_id}/metrics",
            "projection": "/users/{user_id}/projection",
            "onboarding": "/users/{user_id}/onboarding",
            "onboarding_step": "/users/{user_id}/onboarding/{step_id}",
        },
        "onboarding_steps": "/onboarding/steps",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
