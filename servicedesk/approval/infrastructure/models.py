"""
Approval Infrastructure Models
==============================

SQLAlchemy ORM model for approval requests.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from servicedesk.config import ApprovalRequestStatus
from servicedesk.infrastructure.database import Base


class ApprovalRequestModel(Base):
    """
    Database model for ApprovalRequest entity.

    Maps to the 'approval_requests' table. The approver definition of the
    stage is copied in, so rulebook edits never reroute a running approval.
    """
    __tablename__ = "approval_requests"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("tickets.id"), nullable=False, index=True)

    # Stage snapshot
    stage_id: Mapped[str] = mapped_column(String(64), nullable=False)
    stage_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stage_order: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_type: Mapped[str] = mapped_column(String(20), nullable=False)
    approver_ref: Mapped[str] = mapped_column(String(255), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Decision
    status: Mapped[ApprovalRequestStatus] = mapped_column(
        String(50), nullable=False, default=ApprovalRequestStatus.PENDING
    )
    approver_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    activated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_approval_requests_approver_status", "approver_id", "status"),
    )
