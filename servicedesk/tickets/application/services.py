"""
Ticket Application Services
===========================

Repository interfaces for the ticket aggregate and its satellites, plus the
notification dispatcher that writes to the outbox.

Following SOLID principles:
- Dependency Inversion: services depend on these ABCs, not on SQLAlchemy
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from servicedesk.config import NotificationType
from servicedesk.directory.application import IDirectory, resolve_team_recipients
from servicedesk.shared.infrastructure.clock import Clock
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.tickets.domain import (
    Notification,
    NotificationSettings,
    Recipient,
    Ticket,
    TicketComment,
    TicketEvent,
    TicketHistoryEntry,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def add(self, ticket: Ticket) -> Ticket:
        """Persist a new ticket."""

    @abstractmethod
    async def get(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID (no lock)."""

    @abstractmethod
    async def get_for_update(self, ticket_id: str) -> Optional[Ticket]:
        """Get ticket by ID, locking its row until the unit of work ends."""

    @abstractmethod
    async def save(self, ticket: Ticket) -> None:
        """Write back a mutated ticket."""

    @abstractmethod
    async def list(
        self,
        filters: dict,
        limit: int = 100,
        offset: int = 0
    ) -> List[Ticket]:
        """List tickets, newest first. Filters: status, priority, assigned_to, created_by."""

    @abstractmethod
    async def list_open_ids(self) -> List[str]:
        """IDs of tickets not resolved, closed or rejected, oldest first."""

    @abstractmethod
    async def count_open_assigned(self, user_ids: Iterable[str]) -> Dict[str, int]:
        """
        Open-ticket load per user, where open means status is neither
        resolved nor closed. Every requested user is present in the result.
        """

    @abstractmethod
    async def delete(self, ticket_id: str) -> None:
        """Remove the ticket row."""


class ITicketHistoryRepository(ABC):
    """Interface for the append-only ticket history."""

    @abstractmethod
    async def add(self, entry: TicketHistoryEntry) -> TicketHistoryEntry:
        """Append an entry."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[TicketHistoryEntry]:
        """Entries oldest first."""

    @abstractmethod
    async def delete_for_ticket(self, ticket_id: str) -> int:
        """Purge support. Returns rows removed."""


class ITicketCommentRepository(ABC):
    """Interface for ticket comments."""

    @abstractmethod
    async def add(self, comment: TicketComment) -> TicketComment:
        """Append a comment."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[TicketComment]:
        """Comments oldest first."""

    @abstractmethod
    async def delete_for_ticket(self, ticket_id: str) -> int:
        """Purge support. Returns rows removed."""


class INotificationRepository(ABC):
    """Interface for the notification outbox."""

    @abstractmethod
    async def add(self, notification: Notification) -> Notification:
        """Enqueue a notification."""

    @abstractmethod
    async def list_undelivered(self, limit: int = 100) -> List[Notification]:
        """Oldest undelivered notifications first."""

    @abstractmethod
    async def mark_delivered(self, notification_id: str, delivered_at: datetime) -> None:
        """Mark a notification as handed to the delivery channel."""

    @abstractmethod
    async def list_for_user(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        """Notifications addressed to a user, newest first."""

    @abstractmethod
    async def delete_for_ticket(self, ticket_id: str) -> int:
        """Purge support. Returns rows removed."""


# ========== Application Services ==========

class NotificationDispatcher:
    """
    Writes notification requests to the outbox.

    Fire-and-forget from the engine's point of view: delivery is handled by
    the notification relay job.
    """

    def __init__(
        self,
        repository: INotificationRepository,
        directory: IDirectory,
        settings: NotificationSettings,
        clock: Clock,
    ):
        self._repository = repository
        self._directory = directory
        self._settings = settings
        self._clock = clock

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        ticket_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            id=str(uuid4()),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            ticket_id=ticket_id,
            created_at=self._clock(),
        )
        await self._repository.add(notification)
        logger.debug(
            "Notification queued",
            extra={"user_id": user_id, "notification_type": notification.type.value, "ticket_id": ticket_id},
        )
        return notification

    async def notify_team(
        self,
        team_id: str,
        type: NotificationType,
        title: str,
        message: str,
        ticket_id: Optional[str] = None,
        exclude: Iterable[str] = (),
    ) -> List[Notification]:
        """Expands the team to its leader and members, one notification each."""
        skip = set(exclude)
        recipients = await resolve_team_recipients(self._directory, team_id)
        if not recipients:
            logger.info("Team has no recipients", extra={"team_id": team_id, "ticket_id": ticket_id})
        return [
            await self.notify(user_id, type, title, message, ticket_id)
            for user_id in recipients
            if user_id not in skip
        ]

    async def notify_ticket_parties(
        self,
        ticket: Ticket,
        event: TicketEvent,
        type: NotificationType,
        title: str,
        messages: Dict[Recipient, str],
        new_value=None,
    ) -> List[Notification]:
        """
        Notify the creator and/or current assignee of a lifecycle event.

        ``messages`` holds the text per recipient role; a role without a
        message is not notified. A user who is both creator and assignee
        gets one notification: the creator text, or the assignee text when
        creators are not notified.
        """
        sent: List[Notification] = []
        seen = set()
        parties = [
            (Recipient.CREATOR, ticket.created_by),
            (Recipient.ASSIGNEE, ticket.assigned_to),
        ]
        for recipient, user_id in parties:
            if not user_id or user_id in seen or recipient not in messages:
                continue
            if not self._settings.allows(event, recipient, ticket.type, new_value):
                continue
            seen.add(user_id)
            sent.append(await self.notify(user_id, type, title, messages[recipient], ticket.id))
        return sent
