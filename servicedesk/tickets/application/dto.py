"""
Ticket Application DTOs
=======================

Data Transfer Objects for ticket operations.

These Pydantic models handle serialization/deserialization and validation
for engine calls and API requests/responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from servicedesk.config import (
    ApprovalStatus,
    NotificationType,
    Priority,
    TicketStatus,
    TicketType,
    Urgency,
)


# ========== Request DTOs ==========

class TicketCreateDTO(BaseModel):
    """Fields accepted at ticket intake."""
    title: str = Field(..., min_length=1, max_length=500, description="Ticket title")
    description: str = Field(default="", description="Ticket description")
    type: TicketType = Field(default=TicketType.INCIDENT, description="Ticket type")
    priority: Priority = Field(default=Priority.MEDIUM, description="Ticket priority (drives SLA)")
    urgency: Urgency = Field(default=Urgency.MEDIUM, description="Ticket urgency")
    category: str = Field(default="General", min_length=1, max_length=255, description="Category matched by rules")
    created_by: str = Field(..., min_length=1, description="Requesting user ID")
    assigned_to: Optional[str] = Field(default=None, description="Explicit assignee; skips assignment rules")
    form_id: Optional[str] = Field(default=None, description="Intake form; its approval stages gate the ticket")
    form_data: Dict[str, Any] = Field(default_factory=dict, description="Opaque form payload")

    @field_validator("title", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class TicketUpdateDTO(BaseModel):
    """
    Partial ticket update.

    Only fields present in the payload are applied. ``assigned_to: null``
    explicitly unassigns.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    urgency: Optional[Urgency] = None
    category: Optional[str] = Field(None, min_length=1, max_length=255)
    assigned_to: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=1000, description="Recorded in history")

    def provided(self) -> Dict[str, Any]:
        """Fields explicitly set by the caller, excluding ``reason``."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "reason"
        }


class AssignTicketDTO(BaseModel):
    assignee_id: str = Field(..., min_length=1, description="User to assign")


class CommentCreateDTO(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)


class TicketListQueryDTO(BaseModel):
    status: Optional[TicketStatus] = None
    priority: Optional[Priority] = None
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    def filters(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"limit", "offset"}, exclude_none=True)


# ========== Result / Response DTOs ==========

class TicketUpdateResult(BaseModel):
    """What an update actually changed. Empty ``changed_fields`` = nothing to do."""
    ticket_id: str
    changed_fields: List[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changed_fields)


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    type: TicketType
    status: TicketStatus
    priority: Priority
    urgency: Urgency
    category: str
    created_by: str
    assigned_to: Optional[str]
    sla_deadline: Optional[datetime]
    resolved_at: Optional[datetime]
    requires_approval: bool
    approval_status: ApprovalStatus
    form_id: Optional[str]
    form_data: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


class TicketCreatedResponse(BaseModel):
    ticket_id: str


class HistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    actor_id: str
    action: str
    old_value: Any = None
    new_value: Any = None
    reason: Optional[str] = None
    created_at: datetime


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    author_id: str
    content: str
    is_system: bool
    created_at: datetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    ticket_id: Optional[str]
    read: bool
    created_at: datetime
