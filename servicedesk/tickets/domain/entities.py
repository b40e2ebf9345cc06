"""
Ticket Domain Entities
======================

Pure Python domain entities for the ticket lifecycle.

Following Domain-Driven Design principles, these entities contain
business rules and are free of infrastructure concerns. Status, priority
and assignment are only ever changed through the TicketStateMachine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from servicedesk.config import (
    ApprovalStatus,
    NotificationType,
    Priority,
    RESOLVED_STATUSES,
    TERMINAL_SCAN_STATUSES,
    TicketStatus,
    TicketType,
    Urgency,
)


@dataclass
class Ticket:
    """
    Ticket entity representing a service desk ticket.

    Invariants:
    - ``resolved_at`` is set iff status is resolved or closed
    - ``approval_status`` is pending iff status is need_approval
    """

    # Core attributes
    id: str
    title: str
    description: str
    type: TicketType
    status: TicketStatus
    priority: Priority
    urgency: Urgency
    category: str
    created_by: str

    # Timestamps
    created_at: datetime
    updated_at: datetime

    # Ownership and SLA
    assigned_to: Optional[str] = None
    sla_deadline: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    # Approval gate
    requires_approval: bool = False
    approval_status: ApprovalStatus = ApprovalStatus.NOT_REQUIRED

    # Intake form
    form_id: Optional[str] = None
    form_data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Coerce enum fields and validate invariants on initialization."""
        self.type = TicketType(self.type)
        self.status = TicketStatus(self.status)
        self.priority = Priority(self.priority)
        self.urgency = Urgency(self.urgency)
        self.approval_status = ApprovalStatus(self.approval_status)

        problems = self.invariant_violations()
        if problems:
            raise ValueError("; ".join(problems))

    def invariant_violations(self) -> List[str]:
        problems = []
        if (self.resolved_at is not None) != (self.status in RESOLVED_STATUSES):
            problems.append(
                f"resolved_at must be set exactly when status is resolved/closed (status={self.status.value})"
            )
        if (self.approval_status == ApprovalStatus.PENDING) != (self.status == TicketStatus.NEED_APPROVAL):
            problems.append(
                "approval_status must be pending exactly when status is need_approval "
                f"(status={self.status.value}, approval_status={self.approval_status.value})"
            )
        return problems

    @property
    def is_open(self) -> bool:
        """Still eligible for escalation."""
        return self.status not in TERMINAL_SCAN_STATUSES

    @property
    def is_resolved(self) -> bool:
        return self.status in RESOLVED_STATUSES

    @property
    def awaiting_approval(self) -> bool:
        return self.status == TicketStatus.NEED_APPROVAL


@dataclass
class TicketHistoryEntry:
    """Immutable audit record of one change."""

    id: Optional[str]
    ticket_id: str
    actor_id: str
    action: str
    created_at: datetime
    old_value: Any = None
    new_value: Any = None
    reason: Optional[str] = None


@dataclass
class TicketComment:
    id: Optional[str]
    ticket_id: str
    author_id: str
    content: str
    created_at: datetime
    is_system: bool = False


@dataclass
class Notification:
    """
    Notification request written to the outbox.

    Delivery is owned by the notification relay; ``delivered`` only tracks
    whether the relay has picked it up.
    """

    id: Optional[str]
    user_id: str
    type: NotificationType
    title: str
    message: str
    created_at: datetime
    ticket_id: Optional[str] = None
    read: bool = False
    delivered: bool = False
    delivered_at: Optional[datetime] = None

    def __post_init__(self):
        self.type = NotificationType(self.type)

    def mark_delivered(self, at: datetime) -> None:
        self.delivered = True
        self.delivered_at = at
