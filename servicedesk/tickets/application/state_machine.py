"""
Ticket State Machine
====================

The single authoritative path for changing a ticket's status, priority or
assignment. Interactive updates, the approval workflow and the escalation
scanner all go through it.

Every change, inside the caller's unit of work:
1. appends an immutable history entry (old value, new value, actor)
2. recomputes the SLA deadline when the priority changed
3. queues notifications for the creator and, where relevant, the assignee
4. keeps ``resolved_at`` and ``approval_status`` consistent with the status

Callers load the ticket with ``get_for_update`` while holding the per-ticket
lock, then hand it to these methods.
"""

from typing import Any, Optional
from uuid import uuid4

from servicedesk.config import (
    ApprovalStatus,
    NotificationType,
    Priority,
    RESOLVED_STATUSES,
    TicketStatus,
    Urgency,
)
from servicedesk.core.exceptions import DomainException, InvalidTransitionException, ValidationException
from servicedesk.core.unit_of_work import IUnitOfWork
from servicedesk.rulebook.domain import Rulebook
from servicedesk.shared.infrastructure.clock import Clock
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.sla.domain import DeadlineCalculator
from servicedesk.tickets.application.services import NotificationDispatcher
from servicedesk.tickets.domain import (
    ALLOWED_TRANSITIONS,
    Recipient,
    STATUS_PHRASES,
    SYSTEM_ONLY_STATUSES,
    Ticket,
    TicketComment,
    TicketEvent,
    TicketHistoryEntry,
)

logger = get_logger(__name__)

# Plain fields editable through update_ticket; they get history but no notifications
EDITABLE_FIELDS = ("title", "description", "urgency", "category")


def _history_value(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return value


class TicketStateMachine:
    """Applies lifecycle changes to one ticket inside one unit of work."""

    def __init__(
        self,
        uow: IUnitOfWork,
        rulebook: Rulebook,
        clock: Clock,
        enforce_transitions: bool = True,
    ):
        self._uow = uow
        self._policies = rulebook.policy_table()
        self._clock = clock
        self._enforce_transitions = enforce_transitions
        self.notifier = NotificationDispatcher(
            uow.notifications, uow.directory, rulebook.notification_settings, clock
        )

    # ========== Status ==========

    async def change_status(
        self,
        ticket: Ticket,
        new_status: TicketStatus,
        actor: str,
        reason: Optional[str] = None,
    ) -> bool:
        """
        User-initiated status change.

        Returns False when the ticket already has that status.

        Raises:
            InvalidTransitionException: target or source is approval-owned,
                or the move is outside the transition table while enforcement is on
        """
        new_status = TicketStatus(new_status)
        if new_status == ticket.status:
            return False

        if new_status in SYSTEM_ONLY_STATUSES or ticket.status in SYSTEM_ONLY_STATUSES:
            raise InvalidTransitionException(ticket.id, ticket.status.value, new_status.value)
        if self._enforce_transitions and new_status not in ALLOWED_TRANSITIONS[ticket.status]:
            raise InvalidTransitionException(ticket.id, ticket.status.value, new_status.value)

        return await self._apply_status(ticket, new_status, actor, reason)

    async def enter_approval(self, ticket: Ticket, actor: str, reason: str) -> bool:
        """Gate the ticket behind its approval stages."""
        ticket.requires_approval = True
        ticket.approval_status = ApprovalStatus.PENDING
        return await self._apply_status(ticket, TicketStatus.NEED_APPROVAL, actor, reason)

    async def resolve_approval(self, ticket: Ticket, approved: bool, actor: str, reason: str) -> bool:
        """Leave need_approval: in_progress when approved, rejected (terminal) otherwise."""
        if ticket.status != TicketStatus.NEED_APPROVAL:
            raise InvalidTransitionException(
                ticket.id,
                ticket.status.value,
                TicketStatus.IN_PROGRESS.value if approved else TicketStatus.REJECTED.value,
            )
        ticket.approval_status = ApprovalStatus.APPROVED if approved else ApprovalStatus.REJECTED
        target = TicketStatus.IN_PROGRESS if approved else TicketStatus.REJECTED
        return await self._apply_status(ticket, target, actor, reason)

    async def _apply_status(
        self,
        ticket: Ticket,
        new_status: TicketStatus,
        actor: str,
        reason: Optional[str],
    ) -> bool:
        old_status = ticket.status
        if old_status == new_status:
            return False

        now = self._clock()
        ticket.status = new_status
        if new_status in RESOLVED_STATUSES:
            # Set once: resolved -> closed keeps the original resolution time
            if ticket.resolved_at is None:
                ticket.resolved_at = now
        else:
            ticket.resolved_at = None
        ticket.updated_at = now

        await self._persist(ticket)
        await self.record(ticket, actor, "updated_status", old_status, new_status, reason)

        phrase = STATUS_PHRASES[new_status]
        await self.notifier.notify_ticket_parties(
            ticket,
            TicketEvent.STATUS_CHANGED,
            NotificationType.STATUS_CHANGED,
            "Ticket Status Updated",
            {
                Recipient.CREATOR: f'Your ticket "{ticket.title}" {phrase}',
                Recipient.ASSIGNEE: f'Ticket "{ticket.title}" {phrase}',
            },
            new_value=new_status,
        )

        logger.info(
            "Ticket status changed",
            extra={
                "ticket_id": ticket.id,
                "from_status": old_status.value,
                "to_status": new_status.value,
                "actor": actor,
            },
        )
        return True

    # ========== Priority ==========

    async def change_priority(
        self,
        ticket: Ticket,
        new_priority: Priority,
        actor: str,
        reason: Optional[str] = None,
    ) -> bool:
        """Change priority and restart the SLA clock from now."""
        new_priority = Priority(new_priority)
        old_priority = ticket.priority
        if new_priority == old_priority:
            return False

        now = self._clock()
        old_deadline = ticket.sla_deadline
        ticket.priority = new_priority
        ticket.sla_deadline = DeadlineCalculator.compute_deadline(new_priority, self._policies, now)
        ticket.updated_at = now

        await self._persist(ticket)
        await self.record(ticket, actor, "updated_priority", old_priority, new_priority, reason)
        if old_deadline != ticket.sla_deadline:
            await self.record(ticket, actor, "updated_sla_deadline", old_deadline, ticket.sla_deadline)

        message = (
            f'Ticket "{ticket.title}" priority has been updated '
            f"from {old_priority.value} to {new_priority.value}"
        )
        await self.notifier.notify_ticket_parties(
            ticket,
            TicketEvent.PRIORITY_CHANGED,
            NotificationType.PRIORITY_CHANGED,
            "Ticket Priority Updated",
            {Recipient.CREATOR: message, Recipient.ASSIGNEE: message},
            new_value=new_priority,
        )

        logger.info(
            "Ticket priority changed",
            extra={
                "ticket_id": ticket.id,
                "from_priority": old_priority.value,
                "to_priority": new_priority.value,
                "sla_deadline": ticket.sla_deadline.isoformat() if ticket.sla_deadline else None,
                "actor": actor,
            },
        )
        return True

    # ========== Assignment ==========

    async def assign(
        self,
        ticket: Ticket,
        assignee_id: Optional[str],
        actor: str,
        reason: Optional[str] = None,
    ) -> bool:
        """Set (or clear, with None) the assignee."""
        old_assignee = ticket.assigned_to
        if assignee_id == old_assignee:
            return False

        ticket.assigned_to = assignee_id
        ticket.updated_at = self._clock()

        await self._persist(ticket)
        action = "assigned" if assignee_id else "unassigned"
        await self.record(ticket, actor, action, old_assignee, assignee_id, reason)

        if assignee_id:
            assignee = await self._uow.directory.get_user(assignee_id)
            assignee_name = assignee.name if assignee else assignee_id
            await self.notifier.notify_ticket_parties(
                ticket,
                TicketEvent.ASSIGNED,
                NotificationType.ASSIGNED,
                "Ticket Assigned",
                {
                    Recipient.ASSIGNEE: f'You have been assigned to ticket: "{ticket.title}"',
                    Recipient.CREATOR: f'Your ticket "{ticket.title}" has been assigned to {assignee_name}',
                },
            )

        logger.info(
            "Ticket assignment changed",
            extra={"ticket_id": ticket.id, "from_assignee": old_assignee, "to_assignee": assignee_id, "actor": actor},
        )
        return True

    # ========== Other fields ==========

    async def update_field(self, ticket: Ticket, field: str, value: Any, actor: str) -> bool:
        if field not in EDITABLE_FIELDS:
            raise ValidationException(f"Field '{field}' cannot be updated directly")
        if field == "urgency":
            value = Urgency(value)

        old_value = getattr(ticket, field)
        if old_value == value:
            return False

        setattr(ticket, field, value)
        ticket.updated_at = self._clock()
        await self._persist(ticket)
        await self.record(ticket, actor, f"updated_{field}", old_value, value)
        return True

    async def record_creation(self, ticket: Ticket, actor: str) -> None:
        await self.record(
            ticket,
            actor,
            "created",
            None,
            {
                "status": ticket.status.value,
                "priority": ticket.priority.value,
                "sla_deadline": _history_value(ticket.sla_deadline),
                "assigned_to": ticket.assigned_to,
            },
        )
        message = f'A new ticket has been created: "{ticket.title}"'
        await self.notifier.notify_ticket_parties(
            ticket,
            TicketEvent.CREATED,
            NotificationType.TICKET_CREATED,
            "New Ticket Created",
            {Recipient.CREATOR: message, Recipient.ASSIGNEE: message},
        )

    async def add_comment(self, ticket: Ticket, author: str, content: str, is_system: bool = False) -> TicketComment:
        if not content or not content.strip():
            raise ValidationException("Comment content cannot be empty")
        comment = TicketComment(
            id=str(uuid4()),
            ticket_id=ticket.id,
            author_id=author,
            content=content.strip(),
            created_at=self._clock(),
            is_system=is_system,
        )
        return await self._uow.comments.add(comment)

    async def record(
        self,
        ticket: Ticket,
        actor: str,
        action: str,
        old_value: Any = None,
        new_value: Any = None,
        reason: Optional[str] = None,
    ) -> TicketHistoryEntry:
        """Append one history entry."""
        entry = TicketHistoryEntry(
            id=str(uuid4()),
            ticket_id=ticket.id,
            actor_id=actor,
            action=action,
            old_value=_history_value(old_value),
            new_value=_history_value(new_value),
            reason=reason,
            created_at=self._clock(),
        )
        return await self._uow.history.add(entry)

    async def _persist(self, ticket: Ticket) -> None:
        problems = ticket.invariant_violations()
        if problems:
            raise DomainException(
                f"Ticket {ticket.id} would violate its invariants",
                {"ticket_id": ticket.id, "problems": problems},
            )
        await self._uow.tickets.save(ticket)
