"""
Ticket Application Layer
========================

Contains:
- State machine: the only writer of status / priority / assignment
- Services: repository interfaces and the notification dispatcher
- DTOs: request and response models

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from servicedesk.tickets.application.dto import (
    AssignTicketDTO,
    CommentCreateDTO,
    CommentResponse,
    HistoryEntryResponse,
    NotificationResponse,
    TicketCreateDTO,
    TicketCreatedResponse,
    TicketListQueryDTO,
    TicketResponse,
    TicketUpdateDTO,
    TicketUpdateResult,
)
from servicedesk.tickets.application.services import (
    INotificationRepository,
    ITicketCommentRepository,
    ITicketHistoryRepository,
    ITicketRepository,
    NotificationDispatcher,
)
from servicedesk.tickets.application.state_machine import EDITABLE_FIELDS, TicketStateMachine

__all__ = [
    # DTOs
    "AssignTicketDTO",
    "CommentCreateDTO",
    "CommentResponse",
    "HistoryEntryResponse",
    "NotificationResponse",
    "TicketCreateDTO",
    "TicketCreatedResponse",
    "TicketListQueryDTO",
    "TicketResponse",
    "TicketUpdateDTO",
    "TicketUpdateResult",
    # Services
    "NotificationDispatcher",
    "TicketStateMachine",
    "EDITABLE_FIELDS",
    # Repository Interfaces
    "INotificationRepository",
    "ITicketCommentRepository",
    "ITicketHistoryRepository",
    "ITicketRepository",
]
