"""
Ticket Infrastructure Repositories
==================================

Concrete implementations of the ticket repository interfaces using
SQLAlchemy.

This layer contains the data access logic - how we store and retrieve
entities from the database. Domain ids are strings; primary keys are
UUIDs, so a malformed id simply finds nothing.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.config import CLOSED_FOR_LOAD_STATUSES, TERMINAL_SCAN_STATUSES
from servicedesk.core.exceptions import RepositoryException
from servicedesk.tickets.application.services import (
    INotificationRepository,
    ITicketCommentRepository,
    ITicketHistoryRepository,
    ITicketRepository,
)
from servicedesk.tickets.domain import Notification, Ticket, TicketComment, TicketHistoryEntry
from servicedesk.tickets.infrastructure.models import (
    NotificationModel,
    TicketCommentModel,
    TicketHistoryModel,
    TicketModel,
)


def to_uuid(value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _values(statuses) -> List[str]:
    return [s.value for s in statuses]


# ========== Mapping ==========

def _to_ticket(model: TicketModel) -> Ticket:
    return Ticket(
        id=str(model.id),
        title=model.title,
        description=model.description,
        type=model.type,
        status=model.status,
        priority=model.priority,
        urgency=model.urgency,
        category=model.category,
        created_by=model.created_by,
        assigned_to=model.assigned_to,
        sla_deadline=model.sla_deadline,
        resolved_at=model.resolved_at,
        requires_approval=model.requires_approval,
        approval_status=model.approval_status,
        form_id=model.form_id,
        form_data=dict(model.form_data or {}),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _apply_ticket(model: TicketModel, ticket: Ticket) -> None:
    model.title = ticket.title
    model.description = ticket.description
    model.type = ticket.type.value
    model.status = ticket.status.value
    model.priority = ticket.priority.value
    model.urgency = ticket.urgency.value
    model.category = ticket.category
    model.created_by = ticket.created_by
    model.assigned_to = ticket.assigned_to
    model.sla_deadline = ticket.sla_deadline
    model.resolved_at = ticket.resolved_at
    model.requires_approval = ticket.requires_approval
    model.approval_status = ticket.approval_status.value
    model.form_id = ticket.form_id
    model.form_data = dict(ticket.form_data)
    model.created_at = ticket.created_at
    model.updated_at = ticket.updated_at


# ========== Repositories ==========

class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Handles persistence of Ticket entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, ticket: Ticket) -> Ticket:
        model = TicketModel(id=to_uuid(ticket.id) or uuid4())
        _apply_ticket(model, ticket)
        self._session.add(model)
        await self._session.flush()
        ticket.id = str(model.id)
        return ticket

    async def get(self, ticket_id: str) -> Optional[Ticket]:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return None
        model = await self._session.get(TicketModel, ticket_uuid)
        return _to_ticket(model) if model else None

    async def get_for_update(self, ticket_id: str) -> Optional[Ticket]:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return None

        stmt = (
            select(TicketModel)
            .where(TicketModel.id == ticket_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_ticket(model) if model else None

    async def save(self, ticket: Ticket) -> None:
        model = await self._session.get(TicketModel, to_uuid(ticket.id))
        if model is None:
            raise RepositoryException(f"Ticket {ticket.id} not found")
        _apply_ticket(model, ticket)
        await self._session.flush()

    async def list(
        self,
        filters: dict,
        limit: int = 100,
        offset: int = 0
    ) -> List[Ticket]:
        stmt = select(TicketModel)

        conditions = []
        for name in ("status", "priority", "assigned_to", "created_by"):
            if name not in filters:
                continue
            value = filters[name]
            value = getattr(value, "value", value)
            conditions.append(getattr(TicketModel, name) == value)

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(TicketModel.created_at.desc()).limit(limit).offset(offset)
        result = await self._session.execute(stmt)
        return [_to_ticket(m) for m in result.scalars().all()]

    async def list_open_ids(self) -> List[str]:
        stmt = (
            select(TicketModel.id)
            .where(TicketModel.status.not_in(_values(TERMINAL_SCAN_STATUSES)))
            .order_by(TicketModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [str(ticket_id) for ticket_id in result.scalars().all()]

    async def count_open_assigned(self, user_ids: Iterable[str]) -> Dict[str, int]:
        user_ids = list(user_ids)
        counts = {user_id: 0 for user_id in user_ids}
        if not user_ids:
            return counts

        stmt = (
            select(TicketModel.assigned_to, func.count(TicketModel.id))
            .where(
                TicketModel.assigned_to.in_(user_ids),
                TicketModel.status.not_in(_values(CLOSED_FOR_LOAD_STATUSES)),
            )
            .group_by(TicketModel.assigned_to)
        )
        result = await self._session.execute(stmt)
        for user_id, count in result.all():
            counts[user_id] = count
        return counts

    async def delete(self, ticket_id: str) -> None:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return
        await self._session.execute(delete(TicketModel).where(TicketModel.id == ticket_uuid))


class SQLAlchemyTicketHistoryRepository(ITicketHistoryRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, entry: TicketHistoryEntry) -> TicketHistoryEntry:
        model = TicketHistoryModel(
            id=to_uuid(entry.id) or uuid4(),
            ticket_id=to_uuid(entry.ticket_id),
            actor_id=entry.actor_id,
            action=entry.action,
            old_value=entry.old_value,
            new_value=entry.new_value,
            reason=entry.reason,
            created_at=entry.created_at,
        )
        self._session.add(model)
        await self._session.flush()
        entry.id = str(model.id)
        return entry

    async def list_for_ticket(self, ticket_id: str) -> List[TicketHistoryEntry]:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return []
        stmt = (
            select(TicketHistoryModel)
            .where(TicketHistoryModel.ticket_id == ticket_uuid)
            .order_by(TicketHistoryModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [
            TicketHistoryEntry(
                id=str(m.id),
                ticket_id=str(m.ticket_id),
                actor_id=m.actor_id,
                action=m.action,
                old_value=m.old_value,
                new_value=m.new_value,
                reason=m.reason,
                created_at=m.created_at,
            )
            for m in result.scalars().all()
        ]

    async def delete_for_ticket(self, ticket_id: str) -> int:
        result = await self._session.execute(
            delete(TicketHistoryModel).where(TicketHistoryModel.ticket_id == to_uuid(ticket_id))
        )
        return result.rowcount or 0


class SQLAlchemyTicketCommentRepository(ITicketCommentRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, comment: TicketComment) -> TicketComment:
        model = TicketCommentModel(
            id=to_uuid(comment.id) or uuid4(),
            ticket_id=to_uuid(comment.ticket_id),
            author_id=comment.author_id,
            content=comment.content,
            is_system=comment.is_system,
            created_at=comment.created_at,
        )
        self._session.add(model)
        await self._session.flush()
        comment.id = str(model.id)
        return comment

    async def list_for_ticket(self, ticket_id: str) -> List[TicketComment]:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return []
        stmt = (
            select(TicketCommentModel)
            .where(TicketCommentModel.ticket_id == ticket_uuid)
            .order_by(TicketCommentModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [
            TicketComment(
                id=str(m.id),
                ticket_id=str(m.ticket_id),
                author_id=m.author_id,
                content=m.content,
                is_system=m.is_system,
                created_at=m.created_at,
            )
            for m in result.scalars().all()
        ]

    async def delete_for_ticket(self, ticket_id: str) -> int:
        result = await self._session.execute(
            delete(TicketCommentModel).where(TicketCommentModel.ticket_id == to_uuid(ticket_id))
        )
        return result.rowcount or 0


def _to_notification(model: NotificationModel) -> Notification:
    return Notification(
        id=str(model.id),
        user_id=model.user_id,
        type=model.type,
        title=model.title,
        message=model.message,
        ticket_id=str(model.ticket_id) if model.ticket_id else None,
        read=model.read,
        delivered=model.delivered,
        created_at=model.created_at,
        delivered_at=model.delivered_at,
    )


class SQLAlchemyNotificationRepository(INotificationRepository):
    """The notification outbox table."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, notification: Notification) -> Notification:
        model = NotificationModel(
            id=to_uuid(notification.id) or uuid4(),
            user_id=notification.user_id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            ticket_id=to_uuid(notification.ticket_id),
            read=notification.read,
            delivered=notification.delivered,
            created_at=notification.created_at,
            delivered_at=notification.delivered_at,
        )
        self._session.add(model)
        await self._session.flush()
        notification.id = str(model.id)
        return notification

    async def list_undelivered(self, limit: int = 100) -> List[Notification]:
        stmt = (
            select(NotificationModel)
            .where(NotificationModel.delivered == False)  # noqa: E712
            .order_by(NotificationModel.created_at.asc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_to_notification(m) for m in result.scalars().all()]

    async def mark_delivered(self, notification_id: str, delivered_at: datetime) -> None:
        await self._session.execute(
            update(NotificationModel)
            .where(NotificationModel.id == to_uuid(notification_id))
            .values(delivered=True, delivered_at=delivered_at)
        )

    async def list_for_user(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        stmt = select(NotificationModel).where(NotificationModel.user_id == user_id)
        if unread_only:
            stmt = stmt.where(NotificationModel.read == False)  # noqa: E712
        stmt = stmt.order_by(NotificationModel.created_at.desc())
        result = await self._session.execute(stmt)
        return [_to_notification(m) for m in result.scalars().all()]

    async def delete_for_ticket(self, ticket_id: str) -> int:
        result = await self._session.execute(
            delete(NotificationModel).where(NotificationModel.ticket_id == to_uuid(ticket_id))
        )
        return result.rowcount or 0
