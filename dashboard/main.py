"""FastAPI application setup for the weather dashboard."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import close_dashboard_sessions, router as api_router, start_session_sweeper
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="dashboard/main")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    start_session_sweeper()
    yield
    # refresh timers must not outlive the server
    await close_dashboard_sessions()
    logger.info("Dashboard controllers closed")


app = FastAPI(title="Weather Dashboard", lifespan=lifespan)


@app.get("/healthz")
def healthz():
    """Liveness check."""
    return {"status": "ok"}


# API routes
app.include_router(api_router, prefix="/v1")
