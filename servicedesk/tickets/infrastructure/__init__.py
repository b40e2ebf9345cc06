"""
Ticket Infrastructure Layer
===========================

Infrastructure implementations for the ticket lifecycle:
- Models: tickets, history, comments, notification outbox
- Repositories: SQLAlchemy data access
- External: webhook relay for queued notifications
"""

from servicedesk.tickets.infrastructure.external import CircuitBreaker, CircuitState, WebhookNotificationRelay
from servicedesk.tickets.infrastructure.models import (
    NotificationModel,
    TicketCommentModel,
    TicketHistoryModel,
    TicketModel,
)
from servicedesk.tickets.infrastructure.repositories import (
    SQLAlchemyNotificationRepository,
    SQLAlchemyTicketCommentRepository,
    SQLAlchemyTicketHistoryRepository,
    SQLAlchemyTicketRepository,
)

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "WebhookNotificationRelay",
    "NotificationModel",
    "TicketCommentModel",
    "TicketHistoryModel",
    "TicketModel",
    "SQLAlchemyNotificationRepository",
    "SQLAlchemyTicketCommentRepository",
    "SQLAlchemyTicketHistoryRepository",
    "SQLAlchemyTicketRepository",
]
