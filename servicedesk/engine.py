"""
Service Desk Engine
===================

Public entry points of the ticket lifecycle engine and the place where the
bounded contexts are wired together.

Every mutating call:
1. takes one rulebook snapshot
2. holds the per-ticket lock and opens one unit of work
3. reloads the ticket with ``get_for_update``
4. drives the state machine, assignment engine and approval workflow
5. commits (or rolls everything back on an exception)

Usage:
    engine = ServiceDeskEngine(SQLAlchemyUnitOfWork, rulebook_manager)
    ticket_id = await engine.create_ticket(TicketCreateDTO(...))
    report = await engine.run_escalation_scan()
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple
from uuid import uuid4

from servicedesk.approval.application import ApprovalWorkflow
from servicedesk.approval.domain import ApprovalRequest
from servicedesk.assignment.application import AssignmentRuleEngine
from servicedesk.config import (
    ApprovalDecision,
    EscalationFireMode,
    Settings,
    SystemActor,
    TicketStatus,
    UnresolvableApproverPolicy,
)
from servicedesk.core.exceptions import PermissionDeniedException, ResourceNotFoundException
from servicedesk.core.unit_of_work import IUnitOfWork, UnitOfWorkFactory
from servicedesk.directory.domain import User
from servicedesk.rulebook.application import IRulebookProvider
from servicedesk.rulebook.domain import Rulebook
from servicedesk.shared.infrastructure.clock import Clock, utc_now
from servicedesk.shared.infrastructure.locks import KeyedAsyncLock
from servicedesk.shared.infrastructure.logging import get_logger, log_latency
from servicedesk.sla.application import EscalationScanner, SLAService
from servicedesk.sla.domain import DeadlineCalculator, ScanReport
from servicedesk.tickets.application import (
    EDITABLE_FIELDS,
    TicketCreateDTO,
    TicketListQueryDTO,
    TicketStateMachine,
    TicketUpdateDTO,
    TicketUpdateResult,
)
from servicedesk.tickets.domain import Notification, Ticket, TicketComment, TicketHistoryEntry

logger = get_logger(__name__)


class ServiceDeskEngine:
    """
    Ticket lifecycle, SLA, routing and escalation engine.

    Args:
        uow_factory: Opens a unit of work
        rulebook_provider: Source of rule snapshots
        clock: Time source (UTC)
        locks: Per-ticket lock registry; share one between engines on the same data
        enforce_status_transitions: Reject user status moves outside the transition table
        unresolvable_approver_policy: stall or skip stages with no approver
        escalation_fire_mode: every_scan or once_per_breach
        escalation_scan_concurrency: Tickets scanned in parallel
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        rulebook_provider: IRulebookProvider,
        clock: Clock = utc_now,
        locks: Optional[KeyedAsyncLock] = None,
        enforce_status_transitions: bool = True,
        unresolvable_approver_policy: UnresolvableApproverPolicy = UnresolvableApproverPolicy.STALL,
        escalation_fire_mode: EscalationFireMode = EscalationFireMode.EVERY_SCAN,
        escalation_scan_concurrency: int = 4,
    ):
        self._uow_factory = uow_factory
        self._rulebook_provider = rulebook_provider
        self._clock = clock
        self._locks = locks or KeyedAsyncLock()
        self._enforce_transitions = enforce_status_transitions
        self._approver_policy = UnresolvableApproverPolicy(unresolvable_approver_policy)

        self.sla = SLAService(rulebook_provider, clock)
        self.scanner = EscalationScanner(
            uow_factory,
            rulebook_provider,
            self._locks,
            clock=clock,
            fire_mode=escalation_fire_mode,
            concurrency=escalation_scan_concurrency,
            enforce_transitions=enforce_status_transitions,
        )

    @classmethod
    def from_settings(
        cls,
        uow_factory: UnitOfWorkFactory,
        rulebook_provider: IRulebookProvider,
        settings: Settings,
        clock: Clock = utc_now,
    ) -> "ServiceDeskEngine":
        return cls(
            uow_factory,
            rulebook_provider,
            clock=clock,
            enforce_status_transitions=settings.enforce_status_transitions,
            unresolvable_approver_policy=settings.unresolvable_approver_policy,
            escalation_fire_mode=settings.escalation_fire_mode,
            escalation_scan_concurrency=settings.escalation_scan_concurrency,
        )

    @property
    def rulebook(self) -> Rulebook:
        return self._rulebook_provider.snapshot()

    # ========== Wiring ==========

    def _machine(self, uow: IUnitOfWork, rulebook: Rulebook) -> TicketStateMachine:
        return TicketStateMachine(uow, rulebook, self._clock, self._enforce_transitions)

    def _assigner(self, uow: IUnitOfWork, rulebook: Rulebook) -> AssignmentRuleEngine:
        return AssignmentRuleEngine(rulebook.ordered_assignment_rules(), uow.directory, uow.tickets)

    def _workflow(self, uow: IUnitOfWork, machine: TicketStateMachine, rulebook: Rulebook) -> ApprovalWorkflow:
        return ApprovalWorkflow(
            uow,
            machine,
            self._clock,
            unresolvable_policy=self._approver_policy,
            assigner=self._assigner(uow, rulebook),
        )

    @asynccontextmanager
    async def _locked_ticket(self, ticket_id: str) -> AsyncIterator[Tuple[IUnitOfWork, Ticket]]:
        async with self._locks.hold(ticket_id):
            async with self._uow_factory() as uow:
                ticket = await uow.tickets.get_for_update(ticket_id)
                if ticket is None:
                    raise ResourceNotFoundException("Ticket", ticket_id)
                yield uow, ticket

    @asynccontextmanager
    async def _locked_request(
        self, request_id: str
    ) -> AsyncIterator[Tuple[IUnitOfWork, Ticket, ApprovalRequest]]:
        async with self._uow_factory() as uow:
            request = await uow.approvals.get(request_id)
        if request is None:
            raise ResourceNotFoundException("ApprovalRequest", request_id)

        async with self._locked_ticket(request.ticket_id) as (uow, ticket):
            # Re-read under the lock
            request = await uow.approvals.get(request_id)
            if request is None:
                raise ResourceNotFoundException("ApprovalRequest", request_id)
            yield uow, ticket, request

    # ========== Tickets ==========

    async def create_ticket(self, data: TicketCreateDTO) -> str:
        """
        Intake: deadline, auto-assignment, then the approval gate.

        Returns:
            The new ticket id

        Raises:
            ResourceNotFoundException: creator or explicit assignee unknown
        """
        rulebook = self._rulebook_provider.snapshot()
        now = self._clock()

        async with self._uow_factory() as uow:
            creator = await uow.directory.require_user(data.created_by)
            if data.assigned_to:
                await uow.directory.require_user(data.assigned_to)

            ticket = Ticket(
                id=str(uuid4()),
                title=data.title,
                description=data.description,
                type=data.type,
                status=TicketStatus.NEW,
                priority=data.priority,
                urgency=data.urgency,
                category=data.category,
                created_by=creator.id,
                assigned_to=data.assigned_to,
                sla_deadline=DeadlineCalculator.compute_deadline(data.priority, rulebook.policy_table(), now),
                form_id=data.form_id,
                form_data=dict(data.form_data),
                created_at=now,
                updated_at=now,
            )
            await uow.tickets.add(ticket)

            machine = self._machine(uow, rulebook)
            await machine.record_creation(ticket, creator.id)

            if ticket.assigned_to is None:
                decision = await self._assigner(uow, rulebook).resolve_assignee(
                    ticket.category, ticket.priority, ticket.type
                )
                if decision is not None:
                    await machine.assign(ticket, decision.assignee_id, SystemActor.INTAKE.value, decision.describe())

            stages = rulebook.stages_for_form(ticket.form_id)
            if stages:
                await self._workflow(uow, machine, rulebook).start(ticket, stages)

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "priority": ticket.priority.value,
                "status": ticket.status.value,
                "assigned_to": ticket.assigned_to,
                "sla_deadline": ticket.sla_deadline.isoformat() if ticket.sla_deadline else None,
                "approval_stages": len(stages),
            },
        )
        return ticket.id

    async def update_ticket(
        self,
        ticket_id: str,
        data: TicketUpdateDTO,
        acting_user_id: str,
    ) -> TicketUpdateResult:
        """
        Apply a partial update through the state machine.

        Plain fields first, then status, priority and assignment. Values equal
        to the current ones are ignored.
        """
        fields = data.provided()
        rulebook = self._rulebook_provider.snapshot()
        changed: List[str] = []

        async with self._locked_ticket(ticket_id) as (uow, ticket):
            actor = await uow.directory.require_user(acting_user_id)
            machine = self._machine(uow, rulebook)

            for name in EDITABLE_FIELDS:
                if fields.get(name) is not None:
                    if await machine.update_field(ticket, name, fields[name], actor.id):
                        changed.append(name)

            if fields.get("status") is not None:
                if await machine.change_status(ticket, fields["status"], actor.id, data.reason):
                    changed.append("status")

            if fields.get("priority") is not None:
                if await machine.change_priority(ticket, fields["priority"], actor.id, data.reason):
                    changed.append("priority")

            if "assigned_to" in fields:
                assignee_id = fields["assigned_to"]
                if assignee_id:
                    await uow.directory.require_user(assignee_id)
                if await machine.assign(ticket, assignee_id, actor.id, data.reason):
                    changed.append("assigned_to")

        return TicketUpdateResult(ticket_id=ticket_id, changed_fields=changed)

    async def assign_ticket(self, ticket_id: str, assignee_id: str, acting_user_id: str) -> TicketUpdateResult:
        rulebook = self._rulebook_provider.snapshot()
        async with self._locked_ticket(ticket_id) as (uow, ticket):
            actor = await uow.directory.require_user(acting_user_id)
            assignee = await uow.directory.require_user(assignee_id)
            changed = await self._machine(uow, rulebook).assign(ticket, assignee.id, actor.id)

        return TicketUpdateResult(ticket_id=ticket_id, changed_fields=["assigned_to"] if changed else [])

    async def add_comment(self, ticket_id: str, content: str, acting_user_id: str) -> TicketComment:
        rulebook = self._rulebook_provider.snapshot()
        async with self._locked_ticket(ticket_id) as (uow, ticket):
            author = await uow.directory.require_user(acting_user_id)
            return await self._machine(uow, rulebook).add_comment(ticket, author.id, content)

    async def purge_ticket(self, ticket_id: str, acting_user_id: str) -> None:
        """Administrative delete, cascading to every record of the ticket."""
        async with self._locked_ticket(ticket_id) as (uow, ticket):
            actor = await uow.directory.require_user(acting_user_id)
            if not actor.is_admin:
                raise PermissionDeniedException("Only an administrator can purge tickets")

            removed = {
                "firings": await uow.firings.delete_for_ticket(ticket.id),
                "approvals": await uow.approvals.delete_for_ticket(ticket.id),
                "notifications": await uow.notifications.delete_for_ticket(ticket.id),
                "comments": await uow.comments.delete_for_ticket(ticket.id),
                "history": await uow.history.delete_for_ticket(ticket.id),
            }
            await uow.tickets.delete(ticket.id)

        logger.warning(
            "Ticket purged",
            extra={"ticket_id": ticket_id, "actor": acting_user_id, "removed": removed},
        )

    # ========== Approvals ==========

    async def respond_to_approval(
        self,
        request_id: str,
        decision: ApprovalDecision,
        comments: Optional[str],
        acting_user_id: str,
    ) -> ApprovalRequest:
        rulebook = self._rulebook_provider.snapshot()
        async with self._locked_request(request_id) as (uow, ticket, request):
            actor = await uow.directory.require_user(acting_user_id)
            machine = self._machine(uow, rulebook)
            return await self._workflow(uow, machine, rulebook).respond(ticket, request, decision, comments, actor)

    async def resubmit_approval(
        self,
        request_id: str,
        acting_user_id: str,
        comments: Optional[str] = None,
    ) -> ApprovalRequest:
        rulebook = self._rulebook_provider.snapshot()
        async with self._locked_request(request_id) as (uow, ticket, request):
            actor = await uow.directory.require_user(acting_user_id)
            machine = self._machine(uow, rulebook)
            return await self._workflow(uow, machine, rulebook).resubmit(ticket, request, actor, comments)

    async def reassign_approver(self, request_id: str, approver_id: str, acting_user_id: str) -> ApprovalRequest:
        rulebook = self._rulebook_provider.snapshot()
        async with self._locked_request(request_id) as (uow, ticket, request):
            actor = await uow.directory.require_user(acting_user_id)
            approver = await uow.directory.require_user(approver_id)
            machine = self._machine(uow, rulebook)
            return await self._workflow(uow, machine, rulebook).reassign_approver(ticket, request, approver, actor)

    # ========== Escalation ==========

    async def run_escalation_scan(self) -> ScanReport:
        """Scheduler entry point. Safe to call repeatedly."""
        return await self.scanner.run_escalation_scan()

    # ========== Notification delivery ==========

    async def deliver_notifications(self, relay, batch_size: int = 100) -> int:
        """
        Forward undelivered outbox rows through ``relay``.

        The webhook calls happen outside any transaction; successful rows
        are marked delivered afterwards. Returns the number delivered.
        """
        if not relay.enabled:
            return 0

        async with self._uow_factory() as uow:
            pending = await uow.notifications.list_undelivered(batch_size)
        if not pending:
            return 0

        with log_latency(logger, "notification_delivery", batch=len(pending)):
            delivered = [n for n in pending if await relay.send(n)]

            if delivered:
                async with self._uow_factory() as uow:
                    now = self._clock()
                    for notification in delivered:
                        await uow.notifications.mark_delivered(notification.id, now)

        return len(delivered)

    # ========== Queries ==========

    async def get_ticket(self, ticket_id: str) -> Ticket:
        async with self._uow_factory() as uow:
            ticket = await uow.tickets.get(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket

    async def list_tickets(self, query: TicketListQueryDTO) -> List[Ticket]:
        async with self._uow_factory() as uow:
            return await uow.tickets.list(query.filters(), limit=query.limit, offset=query.offset)

    async def list_history(self, ticket_id: str) -> List[TicketHistoryEntry]:
        async with self._uow_factory() as uow:
            await self._require_ticket(uow, ticket_id)
            return await uow.history.list_for_ticket(ticket_id)

    async def list_comments(self, ticket_id: str) -> List[TicketComment]:
        async with self._uow_factory() as uow:
            await self._require_ticket(uow, ticket_id)
            return await uow.comments.list_for_ticket(ticket_id)

    async def list_approvals(self, ticket_id: str) -> List[ApprovalRequest]:
        async with self._uow_factory() as uow:
            await self._require_ticket(uow, ticket_id)
            return await uow.approvals.list_for_ticket(ticket_id)

    async def list_pending_approvals(self, approver_id: str) -> List[ApprovalRequest]:
        async with self._uow_factory() as uow:
            return await uow.approvals.list_awaiting_approver(approver_id)

    async def list_unassigned_approvals(self, acting_user_id: str) -> List[ApprovalRequest]:
        async with self._uow_factory() as uow:
            actor = await uow.directory.require_user(acting_user_id)
            if not actor.is_admin:
                raise PermissionDeniedException("Only an administrator can list unassigned approvals")
            return await uow.approvals.list_unassigned()

    async def get_user(self, user_id: str) -> User:
        async with self._uow_factory() as uow:
            return await uow.directory.require_user(user_id)

    async def list_notifications(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        async with self._uow_factory() as uow:
            return await uow.notifications.list_for_user(user_id, unread_only)

    @staticmethod
    async def _require_ticket(uow: IUnitOfWork, ticket_id: str) -> Ticket:
        ticket = await uow.tickets.get(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ticket
