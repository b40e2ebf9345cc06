"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA policies and the escalation scanner.

Controllers are thin - they delegate to application services.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from servicedesk.config import Priority, settings
from servicedesk.engine import ServiceDeskEngine
from servicedesk.shared.api.dependencies import get_engine
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.sla.application import (
    DeadlinePreviewResponse,
    ScannerStatusResponse,
    ScanReportResponse,
    SLAPolicyResponse,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA & Escalation"])


# ========== Example payloads for Swagger ==========

SCAN_REPORT_EXAMPLE = {
    "started_at": "2024-01-15T10:05:00Z",
    "finished_at": "2024-01-15T10:05:00.420Z",
    "skipped": False,
    "rules_evaluated": 2,
    "tickets_scanned": 37,
    "fired_count": 1,
    "failure_count": 0,
    "duration_ms": 420.0,
    "fired": [
        {
            "rule_id": "critical-overdue",
            "rule_name": "Critical overdue",
            "ticket_id": "123e4567-e89b-12d3-a456-426614174000",
            "actions": ["notify", "reassign", "add_comment"]
        }
    ],
    "failures": []
}


# ========== Route Handlers ==========

@router.get(
    "/policies",
    response_model=List[SLAPolicyResponse],
    summary="SLA policies of the current rulebook",
)
async def list_policies(engine: ServiceDeskEngine = Depends(get_engine)):
    return [SLAPolicyResponse.model_validate(p) for p in engine.sla.list_policies()]


@router.get(
    "/deadline",
    response_model=DeadlinePreviewResponse,
    summary="Preview an SLA deadline",
    description="""
    The deadline a ticket would get if it were given `priority` at `at`
    (default: now). `sla_deadline` is null when no enabled policy covers
    the priority.
    """,
)
async def preview_deadline(
    priority: Priority = Query(..., description="Ticket priority"),
    at: Optional[datetime] = Query(None, description="Reference time (ISO 8601, timezone-aware)"),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    return engine.sla.preview_deadline(priority, at)


@router.post(
    "/escalations/scan",
    response_model=ScanReportResponse,
    summary="Run an escalation scan now",
    description="""
    Runs one escalation pass immediately, outside the schedule.

    If a pass is already in flight the call returns at once with
    `skipped: true`. Per-ticket failures are listed in `failures` and do not
    stop the pass.
    """,
    responses={200: {"content": {"application/json": {"example": SCAN_REPORT_EXAMPLE}}}},
)
async def run_scan(engine: ServiceDeskEngine = Depends(get_engine)):
    logger.info("Manual escalation scan requested")
    report = await engine.run_escalation_scan()
    return ScanReportResponse.from_report(report)


@router.get(
    "/escalations/status",
    response_model=ScannerStatusResponse,
    summary="Escalation scanner status",
)
async def scanner_status(request: Request, engine: ServiceDeskEngine = Depends(get_engine)):
    scheduler = getattr(request.app.state, "scheduler", None)
    last_report = engine.scanner.last_report
    return ScannerStatusResponse(
        running=engine.scanner.is_running,
        fire_mode=engine.scanner.fire_mode,
        interval_seconds=settings.escalation_scan_interval_seconds,
        scheduler_running=bool(scheduler and scheduler.is_running),
        last_report=ScanReportResponse.from_report(last_report) if last_report else None,
    )
