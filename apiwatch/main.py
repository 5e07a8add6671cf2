"""
FastAPI application entry point.

This is where:
- The FastAPI app is created
- Routes and exception handlers are registered
- Background jobs (and the delivery queue, in queue mode) are started and
  stopped with the app
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from apiwatch.api.responses import register_exception_handlers
from apiwatch.api.routes_admin import router as admin_router
from apiwatch.api.routes_alert_rules import router as alert_rules_router
from apiwatch.api.routes_alerts import router as alerts_router
from apiwatch.api.routes_channels import router as notifications_router
from apiwatch.core.config import settings
from apiwatch.core.logging_config import setup_logging
from apiwatch.services import queue
from apiwatch.services.consumer import start_consumer
from apiwatch.services.jobs import job_manager

logger = logging.getLogger(__name__)


# =============================================================================
# LIFESPAN MANAGEMENT
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Handle application startup and shutdown.

    Startup: logging, delivery queue (queue mode), background jobs
    Shutdown: the reverse; in-flight sweeps are not interrupted
    """
    # --- STARTUP ---
    setup_logging()
    logger.info("🚀 Starting apiwatch alert engine...")

    consumer_task = None
    if settings.delivery_mode == "queue":
        await queue.connect()
        consumer_task = asyncio.create_task(start_consumer(job_manager.dispatcher))

    if settings.jobs_enabled:
        job_manager.start()

    yield

    # --- SHUTDOWN ---
    if job_manager.is_running:
        job_manager.stop()
    await job_manager.wait_for_inflight(timeout=settings.shutdown_grace_seconds)

    if consumer_task is not None:
        consumer_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer_task
        await queue.disconnect()

    logger.info("👋 apiwatch stopped")


# =============================================================================
# CREATE APPLICATION
# =============================================================================


app = FastAPI(
    title="apiwatch",
    description="Alert rule evaluation and notification delivery for API usage monitoring",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

register_exception_handlers(app)


# =============================================================================
# REGISTER ROUTERS
# =============================================================================

app.include_router(alert_rules_router, prefix="/api/v1")  # /api/v1/alert-rules
app.include_router(alerts_router, prefix="/api/v1")  # /api/v1/alerts
app.include_router(notifications_router, prefix="/api/v1")  # /api/v1/notifications/...
app.include_router(admin_router, prefix="/api/v1")  # /api/v1/admin/jobs


# =============================================================================
# HEALTH CHECK
# =============================================================================


@app.get(
    "/api/v1/health",
    tags=["Health"],
    summary="Health check",
)
async def health_check():
    """
    Check if the service is running.

    Returns:
        Envelope with service status and whether background jobs are scheduled
    """
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "service": "apiwatch",
            "jobs_running": job_manager.is_running,
            "delivery_mode": settings.delivery_mode,
        },
    }
