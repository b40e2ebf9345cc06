"""
Approval Domain Entities
========================

Per-ticket, per-stage approval requests.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from servicedesk.config import ApprovalRequestStatus, ApproverType


@dataclass
class ApprovalRequest:
    """
    One request per (ticket, stage).

    All requests exist from the moment the ticket enters approval, each with
    a copy of its stage's approver definition (``approver_type`` and the
    user id, role name or team id in ``approver_ref``) and of ``is_required``.
    A request is dormant until its predecessor resolves; ``activated_at``
    marks the moment its approver was resolved and notified.
    """

    id: str
    ticket_id: str
    stage_id: str
    stage_name: str
    stage_order: int
    approver_type: ApproverType
    approver_ref: str
    requested_at: datetime
    is_required: bool = True
    status: ApprovalRequestStatus = ApprovalRequestStatus.PENDING
    approver_id: Optional[str] = None
    comments: Optional[str] = None
    activated_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = ApprovalRequestStatus(self.status)
        self.approver_type = ApproverType(self.approver_type)

    @property
    def is_dormant(self) -> bool:
        return self.activated_at is None and self.status == ApprovalRequestStatus.PENDING

    @property
    def is_awaiting_response(self) -> bool:
        """Active and waiting on the approver."""
        return self.activated_at is not None and self.status == ApprovalRequestStatus.PENDING

    @property
    def is_unassigned(self) -> bool:
        """Active with no resolvable approver; needs an administrator."""
        return self.is_awaiting_response and self.approver_id is None

    def resolve(self, status: ApprovalRequestStatus, at: datetime, comments: Optional[str] = None) -> None:
        self.status = status
        self.responded_at = at
        if comments is not None:
            self.comments = comments
