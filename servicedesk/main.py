"""
Service Desk Engine - Main Application
======================================

Ticket lifecycle, SLA, routing and escalation engine.

Modules:
- Tickets: state machine, history, comments, notification outbox
- SLA: deadlines and the periodic escalation scanner
- Assignment: rule-based routing with load-balanced round robin
- Approval: multi-stage approval gate
- Rulebook: administrator-authored rules with hot reload

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, scheduler, webhook relay
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

# Configuration and Core
from servicedesk.config import settings
from servicedesk.core import ApplicationException

# Infrastructure
from servicedesk.infrastructure.database import close_database, create_tables, get_session_context, init_database
from servicedesk.infrastructure.database.unit_of_work import SQLAlchemyUnitOfWork
from servicedesk.rulebook.infrastructure import RulebookManager
from servicedesk.sla.infrastructure import ServiceDeskScheduler
from servicedesk.tickets.infrastructure import WebhookNotificationRelay

# Engine
from servicedesk.engine import ServiceDeskEngine

# Module Routers
from servicedesk.approval.interfaces import approvals_router
from servicedesk.rulebook.interfaces import rulebook_router
from servicedesk.sla.interfaces import sla_router
from servicedesk.tickets.interfaces import notifications_router, tickets_router

# Middleware
from servicedesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    application_exception_handler,
    global_exception_handler,
)

# Logging
from servicedesk.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load the rulebook and watch it for changes
    4. Wire the engine
    5. Start the escalation scan and notification delivery jobs

    SHUTDOWN:
    1. Stop the scheduler
    2. Stop the rulebook watcher
    3. Close the webhook client
    4. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment, settings.app_name)
    logger.info("Starting Service Desk Engine", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use Alembic in production)
    logger.info("Creating database tables")
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    # An invalid rulebook aborts startup
    logger.info("Loading rulebook")
    rulebook_manager = RulebookManager()
    rulebook_manager.load(settings.rulebook_path)
    rulebook_manager.start_watching()

    engine = ServiceDeskEngine.from_settings(SQLAlchemyUnitOfWork, rulebook_manager, settings)

    relay = WebhookNotificationRelay(
        settings.notification_webhook_url,
        timeout_seconds=settings.notification_webhook_timeout_seconds,
    )

    async def escalation_job():
        await engine.run_escalation_scan()

    async def delivery_job():
        await engine.deliver_notifications(relay, settings.notification_delivery_batch_size)

    scheduler = ServiceDeskScheduler()
    scheduler.add_interval_job(
        escalation_job,
        seconds=settings.escalation_scan_interval_seconds,
        job_id="escalation_scan",
        name="Escalation Scan Job",
    )
    if relay.enabled:
        scheduler.add_interval_job(
            delivery_job,
            seconds=settings.notification_delivery_interval_seconds,
            job_id="notification_delivery",
            name="Notification Delivery Job",
        )
    else:
        logger.info("Notification webhook not configured - outbox will not be delivered")
    await scheduler.start()

    # Store services in app state for dependency injection
    app.state.engine = engine
    app.state.rulebook_manager = rulebook_manager
    app.state.scheduler = scheduler

    logger.info("Service Desk Engine started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Service Desk Engine")

    await scheduler.stop()
    rulebook_manager.stop_watching()
    await relay.close()
    await close_database()

    logger.info("Service Desk Engine shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Service Desk Engine API",
    description="""
    ## Ticket Lifecycle, SLA, Routing and Escalation Engine

    ### Tickets
    - `POST /tickets` - Create a ticket (deadline, auto-assignment, approval gate)
    - `PATCH /tickets/{id}` - Change status, priority, assignment or fields
    - `GET /tickets/{id}/history` - Audit trail

    ### Approvals
    - `POST /approvals/{id}/respond` - approve / reject / need_more_info
    - `GET /approvals/pending` - Requests waiting on you

    ### SLA & Escalation
    - `GET /sla/policies`, `GET /sla/deadline`
    - `POST /sla/escalations/scan` - Run an escalation pass now

    ### Rulebook
    - `GET /rulebook`, `POST /rulebook/reload`

    The acting user is identified by the `X-Acting-User` header.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(CorrelationIDMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(tickets_router)
app.include_router(notifications_router)
app.include_router(approvals_router)
app.include_router(sla_router)
app.include_router(rulebook_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service health",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "rulebook": "loaded",
                        "scheduler": "running",
                        "escalation_scan": "idle"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports database connectivity, rulebook state and scheduler state.
    """
    state = request.app.state
    checks = {}

    try:
        async with get_session_context() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except Exception as e:
        checks["database"] = f"error: {type(e).__name__}"

    manager = getattr(state, "rulebook_manager", None)
    if manager is None:
        checks["rulebook"] = "not_loaded"
    else:
        checks["rulebook"] = "loaded" if manager.last_error is None else "stale (last reload failed)"

    scheduler = getattr(state, "scheduler", None)
    checks["scheduler"] = "running" if scheduler and scheduler.is_running else "stopped"

    engine = getattr(state, "engine", None)
    checks["escalation_scan"] = "running" if engine and engine.scanner.is_running else "idle"

    healthy = checks["database"] == "connected" and manager is not None
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": ["tickets", "approvals", "sla", "rulebook"]
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "servicedesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
