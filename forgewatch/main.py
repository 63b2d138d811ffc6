"""FastAPI application entry point."""

import asyncio
import logging

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from forgewatch.api import dashboard, health
from forgewatch.config import EngineConfig, settings
from forgewatch.middleware.exception_handlers import (
    forgejo_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from forgewatch.services.forgejo.exceptions import ForgejoError
from forgewatch.tasks.scheduler import MonitorScheduler


def configure_logging(env: str) -> None:
    """ENV=dev: INFO with timestamps and logger names. Anything else: WARNING, terse."""
    verbose = env.lower() == "dev"
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format=(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
            if verbose
            else "%(levelname)s | %(message)s"
        ),
        datefmt="%H:%M:%S",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


configure_logging(settings.ENV)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Forgejo Actions Monitor API",
    description="Discovers Forgejo Actions runs across repositories and reports their status",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ForgejoError, forgejo_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(dashboard.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
    }


@app.on_event("startup")
async def start_monitor():
    """Create the monitor and kick off the first discovery in the background."""
    scheduler = MonitorScheduler(EngineConfig.from_settings(settings))
    app.state.scheduler = scheduler
    app.state.discovery_task = None

    if not settings.FORGEJO_BASE_URL:
        logger.warning("FORGEJO_BASE_URL is not set; discovery is disabled until configured")
        return

    if settings.DISCOVER_ON_STARTUP:
        app.state.discovery_task = asyncio.create_task(scheduler.discover())
        logger.info(
            f"Initial discovery started for {len(settings.FORGEJO_ORGANIZATIONS)} organizations"
        )


@app.on_event("shutdown")
async def stop_monitor():
    """Stop polling and release the HTTP client."""
    discovery_task = getattr(app.state, "discovery_task", None)
    if discovery_task is not None and not discovery_task.done():
        discovery_task.cancel()
        try:
            await discovery_task
        except asyncio.CancelledError:
            pass

    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        await scheduler.shutdown()
        app.state.scheduler = None
