"""
Approval Infrastructure Layer
=============================
"""

from servicedesk.approval.infrastructure.models import ApprovalRequestModel
from servicedesk.approval.infrastructure.repositories import SQLAlchemyApprovalRequestRepository

__all__ = ["ApprovalRequestModel", "SQLAlchemyApprovalRequestRepository"]
