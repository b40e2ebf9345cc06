"""
Unit tests for the multi-stage approval workflow.

Tests:
- Two-stage form: sequential activation, completion to in_progress
- Rejection is terminal and leaves later stages dormant
- need_more_info / resubmit round trip
- Approver permissions
- Stages without an approver: stall (admin remediation) vs skip
- Optional stages are skipped once every required stage is approved
"""

import pytest

from servicedesk.config import (
    ApprovalDecision,
    ApprovalRequestStatus,
    ApprovalStatus,
    NotificationType,
    SystemActor,
    TicketStatus,
    UnresolvableApproverPolicy,
)
from servicedesk.core.exceptions import (
    ApprovalStateException,
    PermissionDeniedException,
    ResourceNotFoundException,
    ValidationException,
)
from servicedesk.engine import ServiceDeskEngine
from servicedesk.rulebook.application import StaticRulebookProvider
from tests.factories import BASE_RULEBOOK, make_rulebook, ticket_payload


def _forms(**extra):
    forms = dict(BASE_RULEBOOK["approval_forms"])
    forms.update(extra)
    return forms


NO_APPROVER_FORM = [
    {"id": "ghost", "name": "Ghost team sign-off", "order": 1, "approver_type": "team", "team_id": "t-empty"},
]

OPTIONAL_SECURITY_FORM = [
    {"id": "manager", "name": "Manager approval", "order": 1, "approver_type": "role", "role": "manager"},
    {
        "id": "security", "name": "Security review", "order": 2,
        "approver_type": "team", "team_id": "t-security", "is_required": False,
    },
]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def rulebook():
    return make_rulebook(approval_forms=_forms(
        **{
            "no-approver": NO_APPROVER_FORM,
            "two-step-ghost": NO_APPROVER_FORM + [
                {"id": "finance", "name": "Finance", "order": 2, "approver_type": "user", "user_id": "u-billing-desk"},
            ],
            "optional-security": OPTIONAL_SECURITY_FORM,
            "all-optional": [dict(stage, is_required=False) for stage in OPTIONAL_SECURITY_FORM],
        }
    ))


@pytest.fixture
def skipping_engine(store, provider, clock) -> ServiceDeskEngine:
    return ServiceDeskEngine(
        store.uow, provider, clock=clock,
        unresolvable_approver_policy=UnresolvableApproverPolicy.SKIP,
    )


async def _create(engine, form_id="access-request", **overrides) -> str:
    return await engine.create_ticket(ticket_payload(form_id=form_id, **overrides))


# ============================================================================
# Tests
# ============================================================================

class TestTwoStageApproval:
    """The happy path through a two-stage form."""

    @pytest.mark.asyncio
    async def test_creation_activates_only_the_first_stage(self, engine, store):
        ticket_id = await _create(engine)

        ticket = store.tickets[ticket_id]
        assert ticket.status == TicketStatus.NEED_APPROVAL
        assert ticket.approval_status == ApprovalStatus.PENDING
        assert ticket.requires_approval is True

        first, second = store.approvals
        assert (first.stage_id, first.approver_id, first.activated_at is not None) == ("manager", "u-admin", True)
        assert second.is_dormant and second.approver_id is None
        assert second.approver_ref == "t-security"

        [request_note] = store.notifications_for("u-admin")
        assert request_note.type == NotificationType.APPROVAL_REQUESTED
        assert request_note.message == 'Ticket "VPN is down" requires your approval at stage: Manager approval'
        assert store.notifications_for("u-sec-lead") == []

    @pytest.mark.asyncio
    async def test_entering_approval_is_recorded_as_system_change(self, engine, store):
        ticket_id = await _create(engine)

        [entry] = [e for e in store.history if e.ticket_id == ticket_id and e.action == "updated_status"]
        assert (entry.actor_id, entry.old_value, entry.new_value) == (
            SystemActor.APPROVAL.value, "new", "need_approval",
        )

    @pytest.mark.asyncio
    async def test_stages_complete_in_order(self, engine, store):
        ticket_id = await _create(engine)
        first, second = store.approvals

        await engine.respond_to_approval(first.id, ApprovalDecision.APPROVE, "Fine by me", "u-admin")

        assert store.tickets[ticket_id].status == TicketStatus.NEED_APPROVAL
        first, second = store.approvals
        assert first.status == ApprovalRequestStatus.APPROVED
        assert first.comments == "Fine by me"
        assert second.approver_id == "u-sec-lead"
        assert second.is_awaiting_response
        assert [n.type for n in store.notifications_for("u-sec-lead")] == [NotificationType.APPROVAL_REQUESTED]

        await engine.respond_to_approval(second.id, ApprovalDecision.APPROVE, None, "u-sec-lead")

        ticket = store.tickets[ticket_id]
        assert ticket.status == TicketStatus.IN_PROGRESS
        assert ticket.approval_status == ApprovalStatus.APPROVED
        approved_notes = [n for n in store.notifications_for("u-alice") if n.type == NotificationType.APPROVAL_APPROVED]
        assert [n.message for n in approved_notes] == [
            'Your ticket "VPN is down" has been approved at stage: Manager approval',
            'Your ticket "VPN is down" has been approved at stage: Security review',
        ]

    @pytest.mark.asyncio
    async def test_pending_approvals_list_follows_activation(self, engine, store):
        await _create(engine)
        first, _ = store.approvals

        assert [r.id for r in await engine.list_pending_approvals("u-admin")] == [first.id]
        assert await engine.list_pending_approvals("u-sec-lead") == []

        await engine.respond_to_approval(first.id, ApprovalDecision.APPROVE, None, "u-admin")

        assert await engine.list_pending_approvals("u-admin") == []
        assert len(await engine.list_pending_approvals("u-sec-lead")) == 1

    @pytest.mark.asyncio
    async def test_completed_ticket_without_owner_is_routed(self, engine, store, provider):
        ticket_id = await _create(engine, category="Facilities")
        assert store.tickets[ticket_id].assigned_to is None

        provider.replace(make_rulebook(assignment_rules=[{
            "id": "catch-all",
            "name": "Catch all",
            "assign_to": {"type": "agent", "agent_id": "u-billing-desk"},
        }]))
        first, second = store.approvals
        await engine.respond_to_approval(first.id, ApprovalDecision.APPROVE, None, "u-admin")
        await engine.respond_to_approval(second.id, ApprovalDecision.APPROVE, None, "u-sec-lead")

        ticket = store.tickets[ticket_id]
        assert ticket.assigned_to == "u-billing-desk"
        [assigned] = [e for e in store.history if e.ticket_id == ticket_id and e.action == "assigned"]
        assert assigned.actor_id == SystemActor.APPROVAL.value

    @pytest.mark.asyncio
    async def test_intake_assignment_runs_before_the_gate(self, engine, store):
        ticket_id = await _create(engine, category="Billing")

        ticket = store.tickets[ticket_id]
        assert ticket.assigned_to == "u-billing-desk"
        assert ticket.status == TicketStatus.NEED_APPROVAL


class TestRejection:

    @pytest.mark.asyncio
    async def test_rejection_is_terminal(self, engine, store):
        ticket_id = await _create(engine)
        first, _ = store.approvals

        await engine.respond_to_approval(first.id, ApprovalDecision.REJECT, "No business need", "u-admin")

        ticket = store.tickets[ticket_id]
        assert ticket.status == TicketStatus.REJECTED
        assert ticket.approval_status == ApprovalStatus.REJECTED
        first, second = store.approvals
        assert first.status == ApprovalRequestStatus.REJECTED
        assert second.is_dormant

        [rejected] = [n for n in store.notifications_for("u-alice") if n.type == NotificationType.APPROVAL_REJECTED]
        assert rejected.message == (
            'Your ticket "VPN is down" has been rejected at stage: Manager approval. Reason: No business need'
        )

    @pytest.mark.asyncio
    async def test_dormant_stage_cannot_be_answered(self, engine, store):
        await _create(engine)
        _, second = store.approvals

        with pytest.raises(ApprovalStateException):
            await engine.respond_to_approval(second.id, ApprovalDecision.APPROVE, None, "u-sec-lead")

    @pytest.mark.asyncio
    async def test_answered_stage_cannot_be_answered_again(self, engine, store):
        await _create(engine)
        first, _ = store.approvals
        await engine.respond_to_approval(first.id, ApprovalDecision.REJECT, None, "u-admin")

        with pytest.raises(ApprovalStateException):
            await engine.respond_to_approval(first.id, ApprovalDecision.APPROVE, None, "u-admin")


class TestMoreInformation:

    @pytest.mark.asyncio
    async def test_need_more_info_requires_comments(self, engine, store):
        await _create(engine)
        first, _ = store.approvals

        with pytest.raises(ValidationException):
            await engine.respond_to_approval(first.id, ApprovalDecision.NEED_MORE_INFO, "  ", "u-admin")
        assert store.approvals[0].status == ApprovalRequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_round_trip(self, engine, store):
        ticket_id = await _create(engine)
        first, _ = store.approvals

        await engine.respond_to_approval(first.id, ApprovalDecision.NEED_MORE_INFO, "Which system?", "u-admin")

        assert store.tickets[ticket_id].status == TicketStatus.NEED_APPROVAL
        assert store.approvals[0].status == ApprovalRequestStatus.NEED_MORE_INFO
        [info] = [n for n in store.notifications_for("u-alice") if n.type == NotificationType.APPROVAL_MORE_INFO_NEEDED]
        assert "Which system?" in info.message

        with pytest.raises(PermissionDeniedException):
            await engine.resubmit_approval(first.id, "u-bob", "Payroll")

        await engine.resubmit_approval(first.id, "u-alice", "Payroll")

        request = store.approvals[0]
        assert request.status == ApprovalRequestStatus.PENDING
        assert request.comments == "Payroll"
        assert request.is_awaiting_response
        assert len(store.notifications_for("u-admin")) == 2

        await engine.respond_to_approval(first.id, ApprovalDecision.APPROVE, None, "u-admin")
        assert store.approvals[1].approver_id == "u-sec-lead"

    @pytest.mark.asyncio
    async def test_resubmit_requires_more_info_state(self, engine, store):
        await _create(engine)
        first, _ = store.approvals

        with pytest.raises(ApprovalStateException):
            await engine.resubmit_approval(first.id, "u-alice")


class TestPermissions:

    @pytest.mark.asyncio
    async def test_only_the_approver_may_respond(self, engine, store):
        await _create(engine)
        first, _ = store.approvals

        with pytest.raises(PermissionDeniedException):
            await engine.respond_to_approval(first.id, ApprovalDecision.APPROVE, None, "u-bob")
        assert store.approvals[0].status == ApprovalRequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_unknown_request(self, engine):
        with pytest.raises(ResourceNotFoundException):
            await engine.respond_to_approval("missing", ApprovalDecision.APPROVE, None, "u-admin")

    @pytest.mark.asyncio
    async def test_unknown_acting_user(self, engine, store):
        await _create(engine)
        first, _ = store.approvals

        with pytest.raises(ResourceNotFoundException):
            await engine.respond_to_approval(first.id, ApprovalDecision.APPROVE, None, "u-nobody")


class TestUnresolvableApprover:
    """Stages whose approver cannot be found."""

    @pytest.mark.asyncio
    async def test_stall_keeps_ticket_waiting_for_an_administrator(self, engine, store):
        ticket_id = await _create(engine, form_id="no-approver")

        assert store.tickets[ticket_id].status == TicketStatus.NEED_APPROVAL
        [request] = store.approvals
        assert request.is_unassigned
        assert "approval_stage_unassigned" in store.history_actions(ticket_id)

        unassigned = await engine.list_unassigned_approvals("u-admin")
        assert [r.id for r in unassigned] == [request.id]
        with pytest.raises(PermissionDeniedException):
            await engine.list_unassigned_approvals("u-alice")

    @pytest.mark.asyncio
    async def test_admin_can_answer_or_reassign_a_stalled_request(self, engine, store):
        ticket_id = await _create(engine, form_id="no-approver")
        [request] = store.approvals

        with pytest.raises(PermissionDeniedException):
            await engine.reassign_approver(request.id, "u-x", "u-alice")

        await engine.reassign_approver(request.id, "u-x", "u-admin")
        assert store.approvals[0].approver_id == "u-x"
        assert [n.type for n in store.notifications_for("u-x")] == [NotificationType.APPROVAL_REQUESTED]

        await engine.respond_to_approval(request.id, ApprovalDecision.APPROVE, None, "u-x")
        assert store.tickets[ticket_id].status == TicketStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_skip_policy_moves_past_the_stage(self, skipping_engine, store):
        ticket_id = await _create(skipping_engine, form_id="two-step-ghost")

        ghost, finance = store.approvals
        assert ghost.status == ApprovalRequestStatus.SKIPPED
        assert finance.approver_id == "u-billing-desk"
        assert store.tickets[ticket_id].status == TicketStatus.NEED_APPROVAL

    @pytest.mark.asyncio
    async def test_skip_policy_with_no_resolvable_stage_approves_immediately(self, skipping_engine, store):
        ticket_id = await _create(skipping_engine, form_id="no-approver")

        ticket = store.tickets[ticket_id]
        assert ticket.status == TicketStatus.IN_PROGRESS
        assert ticket.approval_status == ApprovalStatus.APPROVED
        final = [e for e in store.history if e.ticket_id == ticket_id and e.new_value == "in_progress"]
        assert final[0].actor_id == SystemActor.APPROVAL.value


class TestOptionalStages:

    @pytest.mark.asyncio
    async def test_approval_completes_once_required_stages_are_approved(self, engine, store):
        ticket_id = await _create(engine, form_id="optional-security")
        manager, security = store.approvals
        assert (manager.is_required, security.is_required) == (True, False)

        await engine.respond_to_approval(manager.id, ApprovalDecision.APPROVE, None, "u-admin")

        ticket = store.tickets[ticket_id]
        assert ticket.status == TicketStatus.IN_PROGRESS
        assert ticket.approval_status == ApprovalStatus.APPROVED

        _, security = store.approvals
        assert security.status == ApprovalRequestStatus.SKIPPED
        assert security.activated_at is None
        assert store.notifications_for("u-sec-lead") == []
        assert store.history_actions(ticket_id)[-3:] == [
            "approval_stage_approved", "approval_stage_skipped", "updated_status",
        ]

    @pytest.mark.asyncio
    async def test_optional_stages_do_not_count_before_required_ones_finish(self, engine, store):
        ticket_id = await _create(engine, form_id="optional-security")

        assert store.tickets[ticket_id].status == TicketStatus.NEED_APPROVAL
        manager, security = store.approvals
        assert manager.is_awaiting_response
        assert security.is_dormant

    @pytest.mark.asyncio
    async def test_form_of_optional_stages_is_walked_in_full(self, engine, store):
        ticket_id = await _create(engine, form_id="all-optional")
        manager, _ = store.approvals

        await engine.respond_to_approval(manager.id, ApprovalDecision.APPROVE, None, "u-admin")

        assert store.tickets[ticket_id].status == TicketStatus.NEED_APPROVAL
        _, security = store.approvals
        assert security.approver_id == "u-sec-lead"
        assert security.is_awaiting_response

        await engine.respond_to_approval(security.id, ApprovalDecision.APPROVE, None, "u-sec-lead")

        assert store.tickets[ticket_id].status == TicketStatus.IN_PROGRESS


class TestStandaloneProvider:

    @pytest.mark.asyncio
    async def test_form_without_stages_starts_new(self, store, clock):
        engine = ServiceDeskEngine(store.uow, StaticRulebookProvider(make_rulebook()), clock=clock)

        ticket_id = await engine.create_ticket(ticket_payload(form_id="unknown-form"))

        ticket = store.tickets[ticket_id]
        assert ticket.status == TicketStatus.NEW
        assert ticket.approval_status == ApprovalStatus.NOT_REQUIRED
        assert store.approvals == []
