"""
SLA Application Services
=========================

Application services orchestrate business logic and coordinate between
domain objects and repositories.

- SLAService: read side of the SLA policy store (policies, deadline preview)
- EscalationScanner: the periodic pass that applies escalation rules to
  every open ticket
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import uuid4

from servicedesk.assignment.domain import AgentTarget, TeamTarget
from servicedesk.config import EscalationFireMode, NotificationType, Priority, SystemActor
from servicedesk.core.unit_of_work import IUnitOfWork, UnitOfWorkFactory
from servicedesk.directory.application import resolve_team_assignee
from servicedesk.rulebook.application import IRulebookProvider
from servicedesk.rulebook.domain import Rulebook
from servicedesk.shared.infrastructure.clock import Clock, utc_now
from servicedesk.shared.infrastructure.locks import KeyedAsyncLock
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.sla.application.dto import DeadlinePreviewResponse
from servicedesk.sla.domain import (
    DeadlineCalculator,
    EscalationFiring,
    EscalationRule,
    FiredEscalation,
    ScanReport,
    SLAPolicy,
    TicketScanFailure,
    breach_key,
)
from servicedesk.tickets.application.state_machine import TicketStateMachine
from servicedesk.tickets.domain import Ticket

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IEscalationFiringRepository(ABC):
    """Interface for once-per-breach firing markers."""

    @abstractmethod
    async def exists(self, rule_id: str, ticket_id: str, breach_key: str) -> bool:
        """Whether the rule already fired for this breach of the ticket."""

    @abstractmethod
    async def add(self, firing: EscalationFiring) -> EscalationFiring:
        """Record a firing."""

    @abstractmethod
    async def delete_for_ticket(self, ticket_id: str) -> int:
        """Purge support. Returns rows removed."""


# ========== Application Services ==========

class SLAService:
    """
    Service for SLA policy lookups.

    Reads the current rulebook snapshot; never writes.
    """

    def __init__(self, rulebook_provider: IRulebookProvider, clock: Clock = utc_now):
        self._rulebook_provider = rulebook_provider
        self._clock = clock

    def list_policies(self) -> List[SLAPolicy]:
        return list(self._rulebook_provider.snapshot().sla_policies)

    def preview_deadline(self, priority: Priority, at: Optional[datetime] = None) -> DeadlinePreviewResponse:
        """Deadline a ticket would get if given ``priority`` at ``at`` (default now)."""
        at = at or self._clock()
        table = self._rulebook_provider.snapshot().policy_table()
        policy = table.policy_for(priority)
        return DeadlinePreviewResponse(
            priority=priority,
            computed_at=at,
            policy_name=policy.name if policy else None,
            resolution_time=policy.resolution_time if policy else None,
            sla_deadline=DeadlineCalculator.compute_deadline(priority, table, at),
        )


class EscalationScanner:
    """
    Periodic escalation pass.

    Each run takes one rulebook snapshot, lists the open tickets and, for
    each ticket under its lock and in its own unit of work, evaluates every
    active rule in priority order against the ticket's current state. A
    failure on one ticket rolls back that ticket only; the pass continues.

    Args:
        uow_factory: Opens a unit of work per ticket
        rulebook_provider: Source of the per-run rule snapshot
        locks: Per-ticket lock registry shared with interactive updates
        clock: Time source
        fire_mode: every_scan re-fires while conditions hold; once_per_breach
            fires a rule at most once per ticket deadline
        concurrency: Tickets processed in parallel
        enforce_transitions: Passed through to the state machine
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        rulebook_provider: IRulebookProvider,
        locks: KeyedAsyncLock,
        clock: Clock = utc_now,
        fire_mode: EscalationFireMode = EscalationFireMode.EVERY_SCAN,
        concurrency: int = 4,
        enforce_transitions: bool = True,
    ):
        self._uow_factory = uow_factory
        self._rulebook_provider = rulebook_provider
        self._locks = locks
        self._clock = clock
        self._fire_mode = EscalationFireMode(fire_mode)
        self._concurrency = max(1, concurrency)
        self._enforce_transitions = enforce_transitions
        self._running = False
        self.last_report: Optional[ScanReport] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def fire_mode(self) -> EscalationFireMode:
        return self._fire_mode

    async def run_escalation_scan(self) -> ScanReport:
        """
        Run one pass.

        Safe to call repeatedly: a call made while a pass is in flight
        returns immediately with ``skipped=True``.
        """
        started_at = self._clock()
        if self._running:
            logger.warning("Escalation scan already in progress, skipping this tick")
            return ScanReport(started_at=started_at, finished_at=started_at, skipped=True)

        self._running = True
        try:
            rulebook = self._rulebook_provider.snapshot()
            rules = rulebook.ordered_escalation_rules()
            report = ScanReport(started_at=started_at, rules_evaluated=len(rules))

            if rules:
                async with self._uow_factory() as uow:
                    ticket_ids = await uow.tickets.list_open_ids()
                report.tickets_scanned = len(ticket_ids)

                semaphore = asyncio.Semaphore(self._concurrency)

                async def bounded(ticket_id: str) -> None:
                    async with semaphore:
                        await self._scan_ticket(ticket_id, rulebook, rules, report)

                await asyncio.gather(*(bounded(ticket_id) for ticket_id in ticket_ids))

            report.finished_at = self._clock()
            self.last_report = report

            logger.info(
                "Escalation scan completed",
                extra={
                    "rules_evaluated": report.rules_evaluated,
                    "tickets_scanned": report.tickets_scanned,
                    "fired": report.fired_count,
                    "failures": report.failure_count,
                    "fire_mode": self._fire_mode.value,
                    "duration_ms": report.duration_ms,
                },
            )
            return report
        finally:
            self._running = False

    async def _scan_ticket(
        self,
        ticket_id: str,
        rulebook: Rulebook,
        rules: Sequence[EscalationRule],
        report: ScanReport,
    ) -> None:
        try:
            async with self._locks.hold(ticket_id):
                async with self._uow_factory() as uow:
                    ticket = await uow.tickets.get_for_update(ticket_id)
                    # Closed or purged since the listing
                    if ticket is None or not ticket.is_open:
                        return

                    machine = TicketStateMachine(uow, rulebook, self._clock, self._enforce_transitions)
                    fired = []
                    for rule in rules:
                        firing = await self._evaluate_rule(uow, machine, ticket, rule)
                        if firing is not None:
                            fired.append(firing)

            # Only after the commit succeeded
            report.fired.extend(fired)

        except Exception as e:
            logger.exception(
                "Escalation failed for ticket",
                extra={"ticket_id": ticket_id, "error_type": type(e).__name__},
            )
            report.failures.append(TicketScanFailure(ticket_id, type(e).__name__, str(e)))

    async def _evaluate_rule(
        self,
        uow: IUnitOfWork,
        machine: TicketStateMachine,
        ticket: Ticket,
        rule: EscalationRule,
    ) -> Optional[FiredEscalation]:
        now = self._clock()
        if not rule.matches(ticket, now):
            return None

        key = breach_key(ticket.sla_deadline)
        if self._fire_mode == EscalationFireMode.ONCE_PER_BREACH:
            if await uow.firings.exists(rule.id, ticket.id, key):
                return None

        overdue = DeadlineCalculator.minutes_overdue(ticket.sla_deadline, now)
        actions = await self._apply_actions(uow, machine, ticket, rule)

        if self._fire_mode == EscalationFireMode.ONCE_PER_BREACH:
            await uow.firings.add(
                EscalationFiring(id=str(uuid4()), rule_id=rule.id, ticket_id=ticket.id, breach_key=key, fired_at=now)
            )

        await machine.record(
            ticket,
            SystemActor.SCHEDULER.value,
            "escalation_fired",
            None,
            {"rule_id": rule.id, "actions": actions},
            reason=f"Escalation rule '{rule.name}'",
        )

        logger.info(
            "Escalation rule fired",
            extra={
                "ticket_id": ticket.id,
                "rule_id": rule.id,
                "actions": actions,
                "minutes_overdue": round(overdue, 1) if overdue is not None else None,
            },
        )
        return FiredEscalation(rule_id=rule.id, rule_name=rule.name, ticket_id=ticket.id, actions=actions)

    async def _apply_actions(
        self,
        uow: IUnitOfWork,
        machine: TicketStateMachine,
        ticket: Ticket,
        rule: EscalationRule,
    ) -> List[str]:
        """Notify, reassign, re-prioritize, comment. Returns the actions that changed something."""
        actions = rule.actions
        actor = SystemActor.SCHEDULER.value
        applied: List[str] = []

        # (a) notifications, one per user even when listed twice or via several teams
        message = f'Ticket "{ticket.title}" has been escalated by rule: {rule.name}'
        notified = set()
        for user_id in actions.notify_users:
            if user_id in notified:
                continue
            await machine.notifier.notify(user_id, NotificationType.ESCALATION, "Ticket Escalated", message, ticket.id)
            notified.add(user_id)
        for team_id in actions.notify_teams:
            sent = await machine.notifier.notify_team(
                team_id, NotificationType.ESCALATION, "Ticket Escalated", message, ticket.id, exclude=notified
            )
            notified.update(n.user_id for n in sent)
        if notified:
            applied.append("notify")

        # (b) reassignment: agent or team leader / first member
        target = actions.reassign_to
        assignee_id = None
        if isinstance(target, AgentTarget):
            assignee_id = target.agent_id
        elif isinstance(target, TeamTarget):
            assignee_id = await resolve_team_assignee(uow.directory, target.team_id)
            if assignee_id is None:
                logger.info(
                    "Escalation reassignment target did not resolve",
                    extra={"ticket_id": ticket.id, "rule_id": rule.id, "team_id": target.team_id},
                )
        if assignee_id and await machine.assign(ticket, assignee_id, actor, reason=f"Escalation rule '{rule.name}'"):
            applied.append("reassign")

        # (c) priority
        if actions.change_priority is not None:
            if await machine.change_priority(
                ticket, actions.change_priority, actor, reason=f"Escalation rule '{rule.name}'"
            ):
                applied.append("change_priority")

        # (d) comment
        if actions.add_comment:
            await machine.add_comment(ticket, actor, actions.add_comment, is_system=True)
            applied.append("add_comment")

        return applied
