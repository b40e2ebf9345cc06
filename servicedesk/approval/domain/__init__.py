"""
Approval Domain Layer
=====================

Contains:
- Value Objects: ApprovalStage (authored on forms)
- Entities: ApprovalRequest (one per ticket and stage)
"""

from servicedesk.approval.domain.entities import ApprovalRequest
from servicedesk.approval.domain.value_objects import ApprovalStage, ordered_stages

__all__ = ["ApprovalRequest", "ApprovalStage", "ordered_stages"]
