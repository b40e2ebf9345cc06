"""
Unit of Work
============

Transactional scope shared by every bounded context.

One unit of work spans a single ticket mutation (or a single read). On a
clean exit it commits; on an exception it rolls back and re-raises.

Usage:
    async with uow_factory() as uow:
        ticket = await uow.tickets.get_for_update(ticket_id)
        ...
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from servicedesk.approval.application.services import IApprovalRequestRepository
    from servicedesk.directory.application.services import IDirectory
    from servicedesk.sla.application.services import IEscalationFiringRepository
    from servicedesk.tickets.application.services import (
        ITicketRepository,
        ITicketHistoryRepository,
        ITicketCommentRepository,
        INotificationRepository,
    )


class IUnitOfWork(ABC):
    """Repositories bound to one transaction."""

    tickets: "ITicketRepository"
    history: "ITicketHistoryRepository"
    comments: "ITicketCommentRepository"
    notifications: "INotificationRepository"
    approvals: "IApprovalRequestRepository"
    firings: "IEscalationFiringRepository"
    directory: "IDirectory"

    async def __aenter__(self) -> "IUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        """Persist all changes made in this scope."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard all changes made in this scope."""


UnitOfWorkFactory = Callable[[], IUnitOfWork]
