"""
Ticket Value Objects
====================

Transition table, notification wording and notification settings.
"""

from enum import Enum
from typing import Dict, FrozenSet, List

from pydantic import BaseModel, Field

from servicedesk.config import Priority, TicketStatus, TicketType


# ========== Status transitions ==========

# Statuses only the approval workflow may set
SYSTEM_ONLY_STATUSES: FrozenSet[TicketStatus] = frozenset({
    TicketStatus.NEED_APPROVAL,
    TicketStatus.REJECTED,
})

# User-initiated transitions accepted when enforcement is on
ALLOWED_TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
    TicketStatus.NEW: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.ON_HOLD,
        TicketStatus.RESOLVED, TicketStatus.CLOSED,
    }),
    TicketStatus.IN_PROGRESS: frozenset({
        TicketStatus.ON_HOLD, TicketStatus.RESOLVED, TicketStatus.CLOSED,
    }),
    TicketStatus.ON_HOLD: frozenset({
        TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED,
    }),
    TicketStatus.RESOLVED: frozenset({
        TicketStatus.CLOSED, TicketStatus.IN_PROGRESS,
    }),
    TicketStatus.NEED_APPROVAL: frozenset(),
    TicketStatus.CLOSED: frozenset(),
    TicketStatus.REJECTED: frozenset(),
}

STATUS_PHRASES: Dict[TicketStatus, str] = {
    TicketStatus.NEW: "is now New",
    TicketStatus.NEED_APPROVAL: "is awaiting approval",
    TicketStatus.IN_PROGRESS: "is now In Progress",
    TicketStatus.ON_HOLD: "is now On Hold",
    TicketStatus.RESOLVED: "has been Resolved",
    TicketStatus.CLOSED: "has been Closed",
    TicketStatus.REJECTED: "has been Rejected",
}


# ========== Notification settings ==========

class TicketEvent(str, Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    PRIORITY_CHANGED = "priority_changed"


class Recipient(str, Enum):
    CREATOR = "creator"
    ASSIGNEE = "assignee"


class NotificationSettings(BaseModel):
    """
    Switches for lifecycle notifications.

    Approval and escalation notifications are always sent; these settings
    only gate the four ticket events.
    """

    enabled: bool = True

    notify_on_ticket_created: bool = True
    notify_on_ticket_created_for_creator: bool = True
    notify_on_ticket_created_for_assignee: bool = True

    notify_on_status_change: bool = True
    status_change_targets: List[TicketStatus] = Field(default_factory=lambda: list(TicketStatus))

    notify_on_assignment: bool = True
    notify_on_assignment_to_assignee: bool = True
    notify_on_assignment_to_creator: bool = True

    notify_on_priority_change: bool = True
    priority_change_targets: List[Priority] = Field(default_factory=lambda: list(Priority))

    ticket_types: List[TicketType] = Field(default_factory=lambda: list(TicketType))

    notify_creator: bool = True
    notify_assignee: bool = True

    def allows(self, event: TicketEvent, recipient: Recipient, ticket_type: TicketType, new_value=None) -> bool:
        """Whether ``recipient`` should hear about ``event`` on a ticket of ``ticket_type``."""
        if not self.enabled or ticket_type not in self.ticket_types:
            return False
        if recipient == Recipient.CREATOR and not self.notify_creator:
            return False
        if recipient == Recipient.ASSIGNEE and not self.notify_assignee:
            return False

        if event == TicketEvent.CREATED:
            if not self.notify_on_ticket_created:
                return False
            if recipient == Recipient.CREATOR:
                return self.notify_on_ticket_created_for_creator
            return self.notify_on_ticket_created_for_assignee

        if event == TicketEvent.STATUS_CHANGED:
            return self.notify_on_status_change and new_value in self.status_change_targets

        if event == TicketEvent.ASSIGNED:
            if not self.notify_on_assignment:
                return False
            if recipient == Recipient.CREATOR:
                return self.notify_on_assignment_to_creator
            return self.notify_on_assignment_to_assignee

        if event == TicketEvent.PRIORITY_CHANGED:
            return self.notify_on_priority_change and new_value in self.priority_change_targets

        return False
