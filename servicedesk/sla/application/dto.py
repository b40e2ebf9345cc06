"""
SLA Application DTOs
=====================

Response models for the SLA API layer.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from servicedesk.config import EscalationFireMode, Priority
from servicedesk.sla.domain import ScanReport


class SLAPolicyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    priority: Priority
    response_time: int = Field(..., description="Minutes")
    resolution_time: int = Field(..., description="Minutes")
    enabled: bool


class DeadlinePreviewResponse(BaseModel):
    """What deadline a ticket would receive for a priority at a point in time."""
    priority: Priority
    computed_at: datetime
    policy_name: Optional[str] = None
    resolution_time: Optional[int] = None
    sla_deadline: Optional[datetime] = Field(None, description="Null when no enabled policy covers the priority")


class FiredEscalationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rule_id: str
    rule_name: str
    ticket_id: str
    actions: List[str]


class ScanFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ticket_id: str
    error_type: str
    error: str


class ScanReportResponse(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime]
    skipped: bool
    rules_evaluated: int
    tickets_scanned: int
    fired_count: int
    failure_count: int
    duration_ms: Optional[float]
    fired: List[FiredEscalationResponse]
    failures: List[ScanFailureResponse]

    @classmethod
    def from_report(cls, report: ScanReport) -> "ScanReportResponse":
        return cls(
            started_at=report.started_at,
            finished_at=report.finished_at,
            skipped=report.skipped,
            rules_evaluated=report.rules_evaluated,
            tickets_scanned=report.tickets_scanned,
            fired_count=report.fired_count,
            failure_count=report.failure_count,
            duration_ms=report.duration_ms,
            fired=[FiredEscalationResponse.model_validate(f) for f in report.fired],
            failures=[ScanFailureResponse.model_validate(f) for f in report.failures],
        )


class ScannerStatusResponse(BaseModel):
    running: bool
    fire_mode: EscalationFireMode
    interval_seconds: int
    scheduler_running: bool
    last_report: Optional[ScanReportResponse] = None
