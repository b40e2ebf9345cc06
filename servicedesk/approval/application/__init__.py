"""
Approval Application Layer
==========================

Contains:
- Services: ApprovalWorkflow
- Repository interface for approval requests
- DTOs: decision payloads and request responses
"""

from servicedesk.approval.application.dto import (
    ApprovalRequestResponse,
    ApprovalResponseDTO,
    ApprovalResubmitDTO,
    ApproverReassignDTO,
)
from servicedesk.approval.application.services import (
    ApprovalWorkflow,
    IApprovalRequestRepository,
)

__all__ = [
    # DTOs
    "ApprovalRequestResponse",
    "ApprovalResponseDTO",
    "ApprovalResubmitDTO",
    "ApproverReassignDTO",
    # Services
    "ApprovalWorkflow",
    # Repository Interfaces
    "IApprovalRequestRepository",
]
