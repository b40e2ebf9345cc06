"""
Unit tests for ServiceDeskEngine ticket operations.

Tests:
- Intake: deadline, auto-assignment, explicit assignee, unknown users
- Partial updates and their atomicity
- Comments, queries and administrative purge
"""

from datetime import timedelta

import pytest

from servicedesk.config import ApprovalDecision, Priority, SystemActor, TicketStatus
from servicedesk.core.exceptions import (
    InvalidTransitionException,
    PermissionDeniedException,
    ResourceNotFoundException,
)
from servicedesk.tickets.application import TicketListQueryDTO, TicketUpdateDTO
from tests.factories import T0, ticket_payload


class TestCreateTicket:

    @pytest.mark.asyncio
    async def test_intake_sets_deadline_and_routes(self, engine, store):
        ticket_id = await engine.create_ticket(ticket_payload(priority="critical", category="Billing"))

        ticket = await engine.get_ticket(ticket_id)
        assert ticket.status == TicketStatus.NEW
        assert ticket.sla_deadline == T0 + timedelta(minutes=240)
        assert ticket.assigned_to == "u-billing-desk"

        history = await engine.list_history(ticket_id)
        assert [h.action for h in history] == ["created", "assigned"]
        assert history[0].actor_id == "u-alice"
        assert history[1].actor_id == SystemActor.INTAKE.value
        assert history[1].reason == "Assignment rule 'Billing tickets' (agent)"

    @pytest.mark.asyncio
    async def test_explicit_assignee_skips_rules(self, engine):
        ticket_id = await engine.create_ticket(ticket_payload(category="Billing", assigned_to="u-z"))

        ticket = await engine.get_ticket(ticket_id)
        assert ticket.assigned_to == "u-z"
        assert [h.action for h in await engine.list_history(ticket_id)] == ["created"]

    @pytest.mark.asyncio
    async def test_no_matching_rule_leaves_ticket_unassigned(self, engine):
        ticket_id = await engine.create_ticket(ticket_payload(category="Facilities"))
        assert (await engine.get_ticket(ticket_id)).assigned_to is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["created_by", "assigned_to"])
    async def test_unknown_users_are_rejected(self, engine, store, field):
        with pytest.raises(ResourceNotFoundException):
            await engine.create_ticket(ticket_payload(**{field: "u-nobody"}))
        assert store.tickets == {}

    @pytest.mark.asyncio
    async def test_creation_notifies_creator(self, engine, store):
        await engine.create_ticket(ticket_payload())

        [note] = store.notifications_for("u-alice")
        assert note.title == "New Ticket Created"
        assert note.message == 'A new ticket has been created: "VPN is down"'


class TestUpdateTicket:

    @pytest.mark.asyncio
    async def test_partial_update_reports_changed_fields(self, engine, clock):
        ticket_id = await engine.create_ticket(ticket_payload())
        clock.advance(minutes=5)

        result = await engine.update_ticket(
            ticket_id,
            TicketUpdateDTO(title="VPN down for everyone", status="in_progress", priority="high", assigned_to="u-x"),
            "u-admin",
        )

        assert result.changed_fields == ["title", "status", "priority", "assigned_to"]
        ticket = await engine.get_ticket(ticket_id)
        assert ticket.title == "VPN down for everyone"
        assert ticket.sla_deadline == T0 + timedelta(minutes=5 + 480)
        assert ticket.updated_at == T0 + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_unchanged_values_are_ignored(self, engine):
        ticket_id = await engine.create_ticket(ticket_payload())

        result = await engine.update_ticket(ticket_id, TicketUpdateDTO(priority="medium", status="new"), "u-admin")

        assert result.changed is False

    @pytest.mark.asyncio
    async def test_explicit_null_unassigns(self, engine):
        ticket_id = await engine.create_ticket(ticket_payload(assigned_to="u-x"))

        result = await engine.update_ticket(ticket_id, TicketUpdateDTO(assigned_to=None), "u-admin")

        assert result.changed_fields == ["assigned_to"]
        assert (await engine.get_ticket(ticket_id)).assigned_to is None

    @pytest.mark.asyncio
    async def test_rejected_transition_rolls_back_the_whole_update(self, engine, store):
        ticket_id = await engine.create_ticket(ticket_payload())
        await engine.update_ticket(ticket_id, TicketUpdateDTO(status="closed"), "u-admin")
        history_before = len(store.history)

        with pytest.raises(InvalidTransitionException):
            await engine.update_ticket(
                ticket_id, TicketUpdateDTO(title="Renamed", status="in_progress"), "u-admin"
            )

        ticket = await engine.get_ticket(ticket_id)
        assert ticket.title == "VPN is down"
        assert ticket.status == TicketStatus.CLOSED
        assert len(store.history) == history_before

    @pytest.mark.asyncio
    async def test_users_cannot_leave_approval(self, engine):
        ticket_id = await engine.create_ticket(ticket_payload(form_id="access-request"))

        with pytest.raises(InvalidTransitionException):
            await engine.update_ticket(ticket_id, TicketUpdateDTO(status="in_progress"), "u-admin")

    @pytest.mark.asyncio
    async def test_priority_can_change_while_in_approval(self, engine):
        ticket_id = await engine.create_ticket(ticket_payload(form_id="access-request"))

        result = await engine.update_ticket(ticket_id, TicketUpdateDTO(priority=Priority.CRITICAL), "u-admin")

        assert result.changed_fields == ["priority"]
        assert (await engine.get_ticket(ticket_id)).status == TicketStatus.NEED_APPROVAL

    @pytest.mark.asyncio
    async def test_missing_ticket(self, engine):
        with pytest.raises(ResourceNotFoundException):
            await engine.update_ticket("missing", TicketUpdateDTO(title="x"), "u-admin")

    @pytest.mark.asyncio
    async def test_assign_ticket(self, engine):
        ticket_id = await engine.create_ticket(ticket_payload())

        result = await engine.assign_ticket(ticket_id, "u-y", "u-admin")
        again = await engine.assign_ticket(ticket_id, "u-y", "u-admin")

        assert result.changed_fields == ["assigned_to"]
        assert again.changed is False


class TestQueriesAndComments:

    @pytest.mark.asyncio
    async def test_comments(self, engine):
        ticket_id = await engine.create_ticket(ticket_payload())

        comment = await engine.add_comment(ticket_id, "  Rebooted the router  ", "u-x")

        assert comment.content == "Rebooted the router"
        assert [c.id for c in await engine.list_comments(ticket_id)] == [comment.id]

    @pytest.mark.asyncio
    async def test_list_tickets_filters(self, engine, clock):
        first = await engine.create_ticket(ticket_payload())
        clock.advance(minutes=1)
        second = await engine.create_ticket(ticket_payload(priority="high"))

        everything = await engine.list_tickets(TicketListQueryDTO())
        high = await engine.list_tickets(TicketListQueryDTO(priority="high"))

        assert [t.id for t in everything] == [second, first]
        assert [t.id for t in high] == [second]

    @pytest.mark.asyncio
    async def test_history_of_missing_ticket(self, engine):
        with pytest.raises(ResourceNotFoundException):
            await engine.list_history("missing")

    @pytest.mark.asyncio
    async def test_list_notifications_for_user(self, engine):
        await engine.create_ticket(ticket_payload(assigned_to="u-y"))

        notes = await engine.list_notifications("u-y")

        assert [n.title for n in notes] == ["New Ticket Created"]


class TestPurge:

    @pytest.mark.asyncio
    async def test_only_admins_can_purge(self, engine, store):
        ticket_id = await engine.create_ticket(ticket_payload())

        with pytest.raises(PermissionDeniedException):
            await engine.purge_ticket(ticket_id, "u-alice")
        assert ticket_id in store.tickets

    @pytest.mark.asyncio
    async def test_purge_removes_every_record(self, engine, store):
        ticket_id = await engine.create_ticket(ticket_payload(form_id="access-request"))
        first, _ = store.approvals
        await engine.respond_to_approval(first.id, ApprovalDecision.APPROVE, None, "u-admin")
        await engine.add_comment(ticket_id, "Note", "u-alice")

        await engine.purge_ticket(ticket_id, "u-admin")

        assert store.tickets == {}
        assert store.approvals == []
        assert [e for e in store.history if e.ticket_id == ticket_id] == []
        assert [c for c in store.comments if c.ticket_id == ticket_id] == []
        assert [n for n in store.notifications if n.ticket_id == ticket_id] == []
        with pytest.raises(ResourceNotFoundException):
            await engine.get_ticket(ticket_id)
