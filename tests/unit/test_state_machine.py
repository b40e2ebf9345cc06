"""
Unit tests for the TicketStateMachine.

Tests:
- Status transitions, approval-owned statuses and enforcement toggle
- resolved_at bookkeeping
- Priority changes restart the SLA clock
- Assignment notifications and de-duplication
- History is written for every change
"""

from datetime import timedelta

import pytest

from servicedesk.config import NotificationType, Priority, TicketStatus
from servicedesk.core.exceptions import DomainException, InvalidTransitionException, ValidationException
from servicedesk.tickets.application import TicketStateMachine
from servicedesk.tickets.domain import NotificationSettings
from tests.factories import T0, make_rulebook, make_ticket


class TestStatusChanges:
    """change_status()."""

    @pytest.mark.asyncio
    async def test_status_change_writes_history_and_notifies_creator(self, uow, machine_factory, stored_ticket):
        ticket = await uow.tickets.get_for_update(stored_ticket.id)

        changed = await machine_factory(uow).change_status(ticket, TicketStatus.IN_PROGRESS, "u-admin", "Picked up")

        assert changed is True
        assert ticket.status == TicketStatus.IN_PROGRESS
        history = await uow.history.list_for_ticket(ticket.id)
        assert [(h.action, h.old_value, h.new_value, h.actor_id, h.reason) for h in history] == [
            ("updated_status", "new", "in_progress", "u-admin", "Picked up"),
        ]
        notifications = await uow.notifications.list_for_user("u-alice")
        assert len(notifications) == 1
        assert notifications[0].type == NotificationType.STATUS_CHANGED
        assert notifications[0].message == 'Your ticket "Printer jammed" is now In Progress'

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, uow, machine_factory, stored_ticket):
        ticket = await uow.tickets.get_for_update(stored_ticket.id)

        assert await machine_factory(uow).change_status(ticket, TicketStatus.NEW, "u-admin") is False
        assert await uow.history.list_for_ticket(ticket.id) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target", [TicketStatus.NEED_APPROVAL, TicketStatus.REJECTED])
    async def test_approval_owned_statuses_cannot_be_set_by_users(self, uow, machine_factory, stored_ticket, target):
        ticket = await uow.tickets.get_for_update(stored_ticket.id)

        with pytest.raises(InvalidTransitionException):
            await machine_factory(uow, enforce_transitions=False).change_status(ticket, target, "u-admin")
        assert ticket.status == TicketStatus.NEW

    @pytest.mark.asyncio
    async def test_ticket_in_approval_cannot_be_moved_by_users(self, uow, machine_factory):
        ticket = make_ticket(status=TicketStatus.NEED_APPROVAL, approval_status="pending", requires_approval=True)
        await uow.tickets.add(ticket)

        with pytest.raises(InvalidTransitionException):
            await machine_factory(uow, enforce_transitions=False).change_status(
                ticket, TicketStatus.IN_PROGRESS, "u-admin"
            )

    @pytest.mark.asyncio
    async def test_closed_is_terminal_when_enforced(self, uow, machine_factory):
        ticket = make_ticket(status=TicketStatus.CLOSED, resolved_at=T0)
        await uow.tickets.add(ticket)

        with pytest.raises(InvalidTransitionException) as exc_info:
            await machine_factory(uow).change_status(ticket, TicketStatus.IN_PROGRESS, "u-admin")
        assert exc_info.value.from_status == "closed"

    @pytest.mark.asyncio
    async def test_enforcement_can_be_switched_off(self, uow, machine_factory):
        ticket = make_ticket(status=TicketStatus.CLOSED, resolved_at=T0)
        await uow.tickets.add(ticket)

        await machine_factory(uow, enforce_transitions=False).change_status(ticket, TicketStatus.IN_PROGRESS, "u-admin")

        assert ticket.status == TicketStatus.IN_PROGRESS
        assert ticket.resolved_at is None


class TestResolvedAt:
    """resolved_at is set on resolve, kept on close, cleared on reopen."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, uow, machine_factory, stored_ticket, clock):
        machine = machine_factory(uow)
        ticket = await uow.tickets.get_for_update(stored_ticket.id)

        await machine.change_status(ticket, TicketStatus.IN_PROGRESS, "u-x")
        clock.advance(minutes=10)
        await machine.change_status(ticket, TicketStatus.RESOLVED, "u-x")
        resolved_at = ticket.resolved_at
        assert resolved_at == T0 + timedelta(minutes=10)

        clock.advance(minutes=10)
        await machine.change_status(ticket, TicketStatus.CLOSED, "u-x")
        assert ticket.resolved_at == resolved_at

    @pytest.mark.asyncio
    async def test_reopen_clears_resolved_at(self, uow, machine_factory, stored_ticket):
        machine = machine_factory(uow)
        ticket = await uow.tickets.get_for_update(stored_ticket.id)

        await machine.change_status(ticket, TicketStatus.RESOLVED, "u-x")
        await machine.change_status(ticket, TicketStatus.IN_PROGRESS, "u-alice", "Still broken")

        assert ticket.resolved_at is None
        assert ticket.invariant_violations() == []


class TestPriorityChanges:
    """change_priority()."""

    @pytest.mark.asyncio
    async def test_deadline_restarts_from_the_change(self, uow, machine_factory, stored_ticket, clock):
        ticket = await uow.tickets.get_for_update(stored_ticket.id)
        clock.advance(minutes=30)

        await machine_factory(uow).change_priority(ticket, Priority.CRITICAL, "u-admin")

        assert ticket.priority == Priority.CRITICAL
        assert ticket.sla_deadline == T0 + timedelta(minutes=30 + 240)
        actions = [h.action for h in await uow.history.list_for_ticket(ticket.id)]
        assert actions == ["updated_priority", "updated_sla_deadline"]

    @pytest.mark.asyncio
    async def test_priority_without_policy_clears_deadline(self, uow, clock, stored_ticket):
        rulebook = make_rulebook(sla_policies=[])
        ticket = await uow.tickets.get_for_update(stored_ticket.id)
        ticket.sla_deadline = T0

        await TicketStateMachine(uow, rulebook, clock).change_priority(ticket, Priority.HIGH, "u-admin")

        assert ticket.sla_deadline is None

    @pytest.mark.asyncio
    async def test_priority_notification_honours_settings(self, uow, clock, stored_ticket):
        rulebook = make_rulebook(
            notification_settings=NotificationSettings(priority_change_targets=[Priority.CRITICAL]).model_dump()
        )
        machine = TicketStateMachine(uow, rulebook, clock)
        ticket = await uow.tickets.get_for_update(stored_ticket.id)

        await machine.change_priority(ticket, Priority.HIGH, "u-admin")
        assert await uow.notifications.list_for_user("u-alice") == []

        await machine.change_priority(ticket, Priority.CRITICAL, "u-admin")
        [notification] = await uow.notifications.list_for_user("u-alice")
        assert notification.message == 'Ticket "Printer jammed" priority has been updated from high to critical'


class TestAssignment:
    """assign()."""

    @pytest.mark.asyncio
    async def test_assignee_and_creator_are_notified(self, uow, machine_factory, stored_ticket):
        ticket = await uow.tickets.get_for_update(stored_ticket.id)

        await machine_factory(uow).assign(ticket, "u-y", "u-admin")

        [to_assignee] = await uow.notifications.list_for_user("u-y")
        [to_creator] = await uow.notifications.list_for_user("u-alice")
        assert to_assignee.message == 'You have been assigned to ticket: "Printer jammed"'
        assert to_creator.message == 'Your ticket "Printer jammed" has been assigned to Yara'

    @pytest.mark.asyncio
    async def test_creator_who_is_also_assignee_gets_one_notification(self, uow, machine_factory, stored_ticket):
        ticket = await uow.tickets.get_for_update(stored_ticket.id)

        await machine_factory(uow).assign(ticket, "u-alice", "u-admin")

        assert len(await uow.notifications.list_for_user("u-alice")) == 1

    @pytest.mark.asyncio
    async def test_self_assigned_creator_still_hears_as_assignee(self, uow, clock):
        rulebook = make_rulebook(notification_settings=NotificationSettings(notify_creator=False).model_dump())
        ticket = make_ticket(assigned_to="u-alice")
        await uow.tickets.add(ticket)

        await TicketStateMachine(uow, rulebook, clock).change_status(ticket, TicketStatus.IN_PROGRESS, "u-admin")

        [notification] = await uow.notifications.list_for_user("u-alice")
        assert notification.message == 'Ticket "Printer jammed" is now In Progress'

    @pytest.mark.asyncio
    async def test_unassign_records_history_without_notifications(self, uow, machine_factory):
        ticket = make_ticket(assigned_to="u-x")
        await uow.tickets.add(ticket)

        assert await machine_factory(uow).assign(ticket, None, "u-admin") is True

        [entry] = await uow.history.list_for_ticket(ticket.id)
        assert (entry.action, entry.old_value, entry.new_value) == ("unassigned", "u-x", None)
        assert await uow.notifications.list_for_user("u-x") == []


class TestFieldsAndInvariants:

    @pytest.mark.asyncio
    async def test_plain_field_update_is_recorded(self, uow, machine_factory, stored_ticket):
        ticket = await uow.tickets.get_for_update(stored_ticket.id)

        await machine_factory(uow).update_field(ticket, "category", "Network", "u-admin")

        [entry] = await uow.history.list_for_ticket(ticket.id)
        assert (entry.action, entry.old_value, entry.new_value) == ("updated_category", "General", "Network")

    @pytest.mark.asyncio
    async def test_status_cannot_be_set_as_a_plain_field(self, uow, machine_factory, stored_ticket):
        ticket = await uow.tickets.get_for_update(stored_ticket.id)
        with pytest.raises(ValidationException):
            await machine_factory(uow).update_field(ticket, "status", "closed", "u-admin")

    @pytest.mark.asyncio
    async def test_inconsistent_ticket_is_never_saved(self, uow, machine_factory, stored_ticket):
        ticket = await uow.tickets.get_for_update(stored_ticket.id)
        ticket.status = TicketStatus.RESOLVED  # resolved_at left unset

        with pytest.raises(DomainException):
            await machine_factory(uow).assign(ticket, "u-x", "u-admin")

    def test_entity_rejects_inconsistent_construction(self):
        with pytest.raises(ValueError):
            make_ticket(status=TicketStatus.NEED_APPROVAL)

    @pytest.mark.asyncio
    async def test_empty_comment_is_rejected(self, uow, machine_factory, stored_ticket):
        with pytest.raises(ValidationException):
            await machine_factory(uow).add_comment(stored_ticket, "u-alice", "   ")
