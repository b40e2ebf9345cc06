"""
Ticket Domain Layer
===================

Domain layer for the ticket lifecycle.

Contains:
- Entities: Ticket, TicketHistoryEntry, TicketComment, Notification
- Value Objects: transition table, status phrases, NotificationSettings

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from servicedesk.tickets.domain.entities import (
    Notification,
    Ticket,
    TicketComment,
    TicketHistoryEntry,
)
from servicedesk.tickets.domain.value_objects import (
    ALLOWED_TRANSITIONS,
    NotificationSettings,
    Recipient,
    STATUS_PHRASES,
    SYSTEM_ONLY_STATUSES,
    TicketEvent,
)

__all__ = [
    # Entities
    "Notification",
    "Ticket",
    "TicketComment",
    "TicketHistoryEntry",
    # Value Objects
    "ALLOWED_TRANSITIONS",
    "NotificationSettings",
    "Recipient",
    "STATUS_PHRASES",
    "SYSTEM_ONLY_STATUSES",
    "TicketEvent",
]
