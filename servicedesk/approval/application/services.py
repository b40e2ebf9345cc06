"""
Approval Application Services
=============================

The multi-stage approval gate.

When a ticket is created from a form with approval stages, one request per
stage is created up front and only the first is activated (approver
resolved and notified). Approving the active request activates the next;
approving the last one, or the last required one, releases the ticket to
in_progress. Rejecting any request rejects the ticket.

All ticket status changes go through the TicketStateMachine.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
from uuid import uuid4

from servicedesk.approval.domain import ApprovalRequest, ApprovalStage
from servicedesk.config import (
    ApprovalDecision,
    ApprovalRequestStatus,
    ApproverType,
    NotificationType,
    SystemActor,
    TicketStatus,
    UnresolvableApproverPolicy,
)
from servicedesk.core.exceptions import (
    ApprovalStateException,
    PermissionDeniedException,
    ValidationException,
)
from servicedesk.core.unit_of_work import IUnitOfWork
from servicedesk.directory.application import resolve_role_holder, resolve_team_assignee
from servicedesk.directory.domain import User
from servicedesk.shared.infrastructure.clock import Clock
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.tickets.domain import Ticket

logger = get_logger(__name__)

_SETTLED = (ApprovalRequestStatus.APPROVED, ApprovalRequestStatus.SKIPPED)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IApprovalRequestRepository(ABC):
    """Interface for approval request data access."""

    @abstractmethod
    async def add(self, request: ApprovalRequest) -> ApprovalRequest:
        """Persist a new request."""

    @abstractmethod
    async def get(self, request_id: str) -> Optional[ApprovalRequest]:
        """Get request by ID."""

    @abstractmethod
    async def save(self, request: ApprovalRequest) -> None:
        """Write back a mutated request."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[ApprovalRequest]:
        """All requests of a ticket by ascending stage order."""

    @abstractmethod
    async def list_awaiting_approver(self, approver_id: str) -> List[ApprovalRequest]:
        """Active pending requests addressed to a user."""

    @abstractmethod
    async def list_unassigned(self) -> List[ApprovalRequest]:
        """Active pending requests with no approver."""

    @abstractmethod
    async def delete_for_ticket(self, ticket_id: str) -> int:
        """Purge support. Returns rows removed."""


# ========== Application Services ==========

class ApprovalWorkflow:
    """
    Drives one ticket's approval requests inside one unit of work.

    Args:
        uow: Current unit of work
        machine: TicketStateMachine bound to the same unit of work
        clock: Time source
        unresolvable_policy: stall keeps a pending request with no approver;
            skip marks it skipped and moves on
        assigner: AssignmentRuleEngine used when the approved ticket has no owner
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        machine,
        clock: Clock,
        unresolvable_policy: UnresolvableApproverPolicy = UnresolvableApproverPolicy.STALL,
        assigner=None,
    ):
        self._uow = uow
        self._requests = uow.approvals
        self._machine = machine
        self._clock = clock
        self._policy = UnresolvableApproverPolicy(unresolvable_policy)
        self._assigner = assigner

    async def start(self, ticket: Ticket, stages: Sequence[ApprovalStage]) -> List[ApprovalRequest]:
        """Gate a freshly created ticket behind its form's stages."""
        if not stages:
            return []

        await self._machine.enter_approval(
            ticket,
            SystemActor.APPROVAL.value,
            reason=f"Form '{ticket.form_id}' requires {len(stages)} approval stage(s)",
        )

        now = self._clock()
        requests = []
        for stage in stages:
            request = ApprovalRequest(
                id=str(uuid4()),
                ticket_id=ticket.id,
                stage_id=stage.id,
                stage_name=stage.name,
                stage_order=stage.order,
                approver_type=stage.approver_type,
                approver_ref=stage.approver_ref,
                requested_at=now,
                is_required=stage.is_required,
            )
            requests.append(await self._requests.add(request))

        await self._advance(ticket, SystemActor.APPROVAL.value)
        return requests

    async def respond(
        self,
        ticket: Ticket,
        request: ApprovalRequest,
        decision: ApprovalDecision,
        comments: Optional[str],
        acting_user: User,
    ) -> ApprovalRequest:
        decision = ApprovalDecision(decision)
        self._check_belongs(ticket, request)
        if not request.is_awaiting_response or ticket.status != TicketStatus.NEED_APPROVAL:
            raise ApprovalStateException(request.id, request.status.value)
        self._authorize_approver(request, acting_user)

        now = self._clock()
        comments = comments.strip() if comments else None

        if decision == ApprovalDecision.APPROVE:
            request.resolve(ApprovalRequestStatus.APPROVED, now, comments)
            await self._requests.save(request)
            await self._machine.record(
                ticket, acting_user.id, "approval_stage_approved", None, request.stage_name, comments
            )
            await self._machine.notifier.notify(
                ticket.created_by,
                NotificationType.APPROVAL_APPROVED,
                "Ticket Approved",
                f'Your ticket "{ticket.title}" has been approved at stage: {request.stage_name}',
                ticket.id,
            )
            await self._advance(ticket, acting_user.id)

        elif decision == ApprovalDecision.REJECT:
            request.resolve(ApprovalRequestStatus.REJECTED, now, comments)
            await self._requests.save(request)
            await self._machine.record(
                ticket, acting_user.id, "approval_stage_rejected", None, request.stage_name, comments
            )
            await self._machine.notifier.notify(
                ticket.created_by,
                NotificationType.APPROVAL_REJECTED,
                "Ticket Rejected",
                f'Your ticket "{ticket.title}" has been rejected at stage: {request.stage_name}'
                + (f". Reason: {comments}" if comments else ""),
                ticket.id,
            )
            await self._machine.resolve_approval(
                ticket, approved=False, actor=acting_user.id,
                reason=f"Rejected at stage '{request.stage_name}'",
            )

        else:
            if not comments:
                raise ValidationException("Comments are required when asking for more information")
            request.resolve(ApprovalRequestStatus.NEED_MORE_INFO, now, comments)
            await self._requests.save(request)
            await self._machine.record(
                ticket, acting_user.id, "approval_more_info_requested", None, request.stage_name, comments
            )
            await self._machine.notifier.notify(
                ticket.created_by,
                NotificationType.APPROVAL_MORE_INFO_NEEDED,
                "More Information Needed",
                f'More information is needed for your ticket "{ticket.title}" '
                f"at stage: {request.stage_name}. {comments}",
                ticket.id,
            )

        logger.info(
            "Approval response recorded",
            extra={
                "ticket_id": ticket.id,
                "request_id": request.id,
                "stage": request.stage_name,
                "decision": decision.value,
                "approver_id": acting_user.id,
            },
        )
        return request

    async def resubmit(
        self,
        ticket: Ticket,
        request: ApprovalRequest,
        acting_user: User,
        comments: Optional[str] = None,
    ) -> ApprovalRequest:
        """Return a need_more_info request to its approver."""
        self._check_belongs(ticket, request)
        if request.status != ApprovalRequestStatus.NEED_MORE_INFO:
            raise ApprovalStateException(
                request.id,
                request.status.value,
                f"Approval request {request.id} is not waiting for more information",
            )
        if acting_user.id != ticket.created_by and not acting_user.is_admin:
            raise PermissionDeniedException("Only the ticket creator can resubmit an approval request")

        request.status = ApprovalRequestStatus.PENDING
        request.requested_at = self._clock()
        request.responded_at = None
        if comments and comments.strip():
            request.comments = comments.strip()
        await self._requests.save(request)

        await self._machine.record(
            ticket, acting_user.id, "approval_resubmitted", None, request.stage_name, request.comments
        )
        if request.approver_id:
            await self._machine.notifier.notify(
                request.approver_id,
                NotificationType.APPROVAL_REQUESTED,
                "Approval Required",
                f'Ticket "{ticket.title}" was resubmitted and requires your approval '
                f"at stage: {request.stage_name}",
                ticket.id,
            )
        return request

    async def reassign_approver(
        self,
        ticket: Ticket,
        request: ApprovalRequest,
        approver: User,
        acting_user: User,
    ) -> ApprovalRequest:
        """Administrator remediation for stalled or misrouted requests."""
        self._check_belongs(ticket, request)
        if not acting_user.is_admin:
            raise PermissionDeniedException("Only an administrator can reassign an approval request")
        if not request.is_awaiting_response:
            raise ApprovalStateException(request.id, request.status.value)

        old_approver = request.approver_id
        request.approver_id = approver.id
        await self._requests.save(request)

        await self._machine.record(
            ticket, acting_user.id, "approver_reassigned", old_approver, approver.id,
            f"Stage '{request.stage_name}'",
        )
        await self._notify_approver(ticket, request)
        return request

    # ========== Internals ==========

    async def _advance(self, ticket: Ticket, actor: str) -> None:
        """
        Activate the next dormant stage, or finish the workflow.

        The workflow finishes when no stage is left, or as soon as every
        required stage is approved or skipped; optional stages still pending
        at that point are skipped. A form made only of optional stages is
        walked in full.
        """
        requests = await self._requests.list_for_ticket(ticket.id)
        required = [r for r in requests if r.is_required]

        for request in requests:
            if required and all(r.status in _SETTLED for r in required):
                await self._skip_optional(ticket, requests)
                break
            if request.is_awaiting_response:
                return
            if request.is_dormant:
                if await self._activate(ticket, request):
                    return

        await self._complete(ticket, actor)

    async def _skip_optional(self, ticket: Ticket, requests: Sequence[ApprovalRequest]) -> None:
        now = self._clock()
        for request in requests:
            if request.status != ApprovalRequestStatus.PENDING:
                continue
            request.resolve(ApprovalRequestStatus.SKIPPED, now, "Skipped: all required stages approved")
            await self._requests.save(request)
            await self._machine.record(
                ticket, SystemActor.APPROVAL.value, "approval_stage_skipped",
                None, request.stage_name, "Optional stage; all required stages approved",
            )

    async def _activate(self, ticket: Ticket, request: ApprovalRequest) -> bool:
        """
        Resolve and notify the stage approver.

        Returns True when the workflow now waits on this request.
        """
        now = self._clock()
        request.activated_at = now
        request.approver_id = await self._resolve_approver(request)
        await self._requests.save(request)

        if request.approver_id:
            await self._machine.record(
                ticket, SystemActor.APPROVAL.value, "approval_stage_activated",
                None, {"stage": request.stage_name, "approver_id": request.approver_id},
            )
            await self._notify_approver(ticket, request)
            return True

        logger.warning(
            "No approver could be resolved for approval stage",
            extra={
                "ticket_id": ticket.id,
                "request_id": request.id,
                "stage": request.stage_name,
                "approver_type": request.approver_type.value,
                "approver_ref": request.approver_ref,
                "policy": self._policy.value,
            },
        )

        if self._policy == UnresolvableApproverPolicy.SKIP:
            request.resolve(ApprovalRequestStatus.SKIPPED, now, "Skipped: no eligible approver")
            await self._requests.save(request)
            await self._machine.record(
                ticket, SystemActor.APPROVAL.value, "approval_stage_skipped",
                None, request.stage_name, "No eligible approver",
            )
            return False

        await self._machine.record(
            ticket, SystemActor.APPROVAL.value, "approval_stage_unassigned",
            None, request.stage_name, "No eligible approver; waiting for an administrator",
        )
        return True

    async def _complete(self, ticket: Ticket, actor: str) -> None:
        await self._machine.resolve_approval(
            ticket, approved=True, actor=actor, reason="All approval stages completed"
        )

        if ticket.assigned_to is None and self._assigner is not None:
            decision = await self._assigner.resolve_assignee(ticket.category, ticket.priority, ticket.type)
            if decision is not None:
                await self._machine.assign(
                    ticket, decision.assignee_id, SystemActor.APPROVAL.value, reason=decision.describe()
                )

    async def _resolve_approver(self, request: ApprovalRequest) -> Optional[str]:
        directory = self._uow.directory
        if request.approver_type == ApproverType.USER:
            user = await directory.get_user(request.approver_ref)
            return user.id if user else None
        if request.approver_type == ApproverType.ROLE:
            return await resolve_role_holder(directory, request.approver_ref)
        return await resolve_team_assignee(directory, request.approver_ref)

    async def _notify_approver(self, ticket: Ticket, request: ApprovalRequest) -> None:
        await self._machine.notifier.notify(
            request.approver_id,
            NotificationType.APPROVAL_REQUESTED,
            "Approval Required",
            f'Ticket "{ticket.title}" requires your approval at stage: {request.stage_name}',
            ticket.id,
        )

    @staticmethod
    def _check_belongs(ticket: Ticket, request: ApprovalRequest) -> None:
        if request.ticket_id != ticket.id:
            raise ValidationException(
                f"Approval request {request.id} does not belong to ticket {ticket.id}"
            )

    @staticmethod
    def _authorize_approver(request: ApprovalRequest, acting_user: User) -> None:
        if request.approver_id is None:
            if not acting_user.is_admin:
                raise PermissionDeniedException(
                    "Only an administrator can respond to an approval request without an approver"
                )
        elif request.approver_id != acting_user.id:
            raise PermissionDeniedException("You are not authorized to respond to this approval request")
