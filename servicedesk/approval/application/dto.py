"""
Approval Application DTOs
=========================
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from servicedesk.config import ApprovalDecision, ApprovalRequestStatus, ApproverType


# ========== Request DTOs ==========

class ApprovalResponseDTO(BaseModel):
    decision: ApprovalDecision = Field(..., description="approve, reject or need_more_info")
    comments: Optional[str] = Field(None, max_length=5000, description="Required for need_more_info")


class ApprovalResubmitDTO(BaseModel):
    comments: Optional[str] = Field(None, max_length=5000, description="Answer to the approver's question")


class ApproverReassignDTO(BaseModel):
    approver_id: str = Field(..., min_length=1, description="User who should approve this stage")


# ========== Response DTOs ==========

class ApprovalRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    stage_id: str
    stage_name: str
    stage_order: int
    approver_type: ApproverType
    approver_ref: str
    is_required: bool
    approver_id: Optional[str]
    status: ApprovalRequestStatus
    comments: Optional[str]
    requested_at: datetime
    activated_at: Optional[datetime]
    responded_at: Optional[datetime]
