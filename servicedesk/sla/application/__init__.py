"""
SLA Application Layer
=====================

Contains:
- Services: SLAService, EscalationScanner
- Repository interface for escalation firing markers
- DTOs: API response models
"""

from servicedesk.sla.application.dto import (
    DeadlinePreviewResponse,
    FiredEscalationResponse,
    ScanFailureResponse,
    ScannerStatusResponse,
    ScanReportResponse,
    SLAPolicyResponse,
)
from servicedesk.sla.application.services import (
    EscalationScanner,
    IEscalationFiringRepository,
    SLAService,
)

__all__ = [
    # DTOs
    "DeadlinePreviewResponse",
    "FiredEscalationResponse",
    "ScanFailureResponse",
    "ScannerStatusResponse",
    "ScanReportResponse",
    "SLAPolicyResponse",
    # Services
    "EscalationScanner",
    "SLAService",
    # Repository Interfaces
    "IEscalationFiringRepository",
]
