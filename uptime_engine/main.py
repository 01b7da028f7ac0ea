"""FastAPI application entry point for Uptime Engine."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from uptime_engine import __version__
from uptime_engine.api import health
from uptime_engine.api.metrics import metrics_endpoint
from uptime_engine.config import Config, load_config
from uptime_engine.core.alerts import AlertDispatcher
from uptime_engine.core.check_runner import CheckRunner
from uptime_engine.core.incidents import IncidentDetector
from uptime_engine.core.scheduler import MonitoringScheduler, set_scheduler
from uptime_engine.database.base import Base
from uptime_engine.database.session import async_session, engine
from uptime_engine.database.store import MonitorStore
from uptime_engine.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

# Upper bound for waiting on in-flight alert dispatches at shutdown
SHUTDOWN_DRAIN_TIMEOUT_SECONDS = 15.0

app_config: Optional[Config] = None

# Load configuration at module level so route registration can use it
try:
    app_config = load_config()
except Exception as e:
    logger.error(f"Failed to load configuration: {e}")


async def create_tables() -> None:
    """Create database tables if they do not exist yet."""
    if "sqlite" in str(engine.url):
        Path("data").mkdir(exist_ok=True)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    except Exception as e:
        # Another worker may have created them concurrently
        if "already exists" in str(e).lower():
            logger.info("Database tables already exist")
        else:
            raise


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Lifespan context manager for FastAPI application.

    Wires store, dispatcher, incident detector, check runner and scheduler
    together on startup and tears them down in reverse order.
    """
    config = app_config or load_config()
    app.state.config = config

    setup_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        log_file=config.logging.file,
        console=config.logging.console
    )

    logger.info("Starting Uptime Engine")

    if config.database.create_tables:
        logger.info("Creating database tables")
        await create_tables()

    store = MonitorStore(async_session)
    threshold = config.engine.consecutive_failures_threshold

    dispatcher = AlertDispatcher(store, config.alerts, threshold=threshold)
    incident_detector = IncidentDetector(store, dispatcher, threshold=threshold)
    check_runner = CheckRunner(store, incident_detector, config.engine)
    scheduler = MonitoringScheduler(config.engine, store, check_runner)

    app.state.alert_dispatcher = dispatcher
    app.state.incident_detector = incident_detector
    app.state.scheduler = scheduler
    set_scheduler(scheduler)

    await scheduler.start()

    logger.info(
        "Uptime Engine started successfully",
        extra={
            "version": __version__,
            "database": config.database.type,
            "region": config.engine.region,
            "threshold": threshold
        }
    )

    yield

    logger.info("Shutting down Uptime Engine")

    await scheduler.stop()
    set_scheduler(None)

    drained = await incident_detector.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT_SECONDS)
    if not drained:
        logger.warning("Shutting down with alert dispatches still in flight")

    await dispatcher.close()
    await engine.dispose()

    logger.info("Uptime Engine shut down successfully")


# Create FastAPI application
app = FastAPI(
    title="Uptime Engine",
    description="Monitor execution engine: scheduled HTTP probes, incident detection and alert fan-out",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.exception(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc)
        }
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


# Include routers
app.include_router(health.router, tags=["Health"])

if app_config is None or app_config.prometheus.enabled:
    app.add_api_route(
        app_config.prometheus.path if app_config else "/metrics",
        metrics_endpoint,
        methods=["GET"],
        include_in_schema=False
    )


if __name__ == "__main__":
    import uvicorn

    if not app_config:
        app_config = load_config()

    uvicorn.run(
        "uptime_engine.main:app",
        host=app_config.api.host,
        port=app_config.api.port,
        log_level=app_config.logging.level.lower()
    )
