"""
SQLAlchemy Unit of Work
=======================

One AsyncSession per unit of work, with every repository bound to it.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from servicedesk.approval.infrastructure.repositories import SQLAlchemyApprovalRequestRepository
from servicedesk.core.unit_of_work import IUnitOfWork
from servicedesk.directory.infrastructure.repositories import SQLAlchemyDirectory
from servicedesk.infrastructure.database import get_session_maker
from servicedesk.sla.infrastructure.repositories import SQLAlchemyEscalationFiringRepository
from servicedesk.tickets.infrastructure.repositories import (
    SQLAlchemyNotificationRepository,
    SQLAlchemyTicketCommentRepository,
    SQLAlchemyTicketHistoryRepository,
    SQLAlchemyTicketRepository,
)


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """Opens a session on enter; commits or rolls back and closes on exit."""

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_maker = session_maker
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        session_maker = self._session_maker or get_session_maker()
        self._session = session_maker()

        self.tickets = SQLAlchemyTicketRepository(self._session)
        self.history = SQLAlchemyTicketHistoryRepository(self._session)
        self.comments = SQLAlchemyTicketCommentRepository(self._session)
        self.notifications = SQLAlchemyNotificationRepository(self._session)
        self.approvals = SQLAlchemyApprovalRequestRepository(self._session)
        self.firings = SQLAlchemyEscalationFiringRepository(self._session)
        self.directory = SQLAlchemyDirectory(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
