"""
SLA Value Objects
==================

Immutable value objects for the SLA domain: policies, the deadline
calculator, and escalation rules.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared between concurrent scans.
"""

from datetime import datetime, timedelta
from typing import Annotated, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from servicedesk.assignment.domain.value_objects import AgentTarget, TeamTarget
from servicedesk.config import Priority, TicketStatus


class SLAPolicy(BaseModel):
    """Response/resolution targets for one priority, in minutes."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    priority: Priority
    response_time: int = Field(..., ge=0, description="Minutes to first response")
    resolution_time: int = Field(..., ge=0, description="Minutes to resolution")
    enabled: bool = True


class SLAPolicyTable:
    """
    Lookup table of enabled policies keyed by priority.

    Built from a rulebook snapshot, which guarantees at most one enabled
    policy per priority.
    """

    def __init__(self, policies: Iterable[SLAPolicy]):
        self._by_priority: Dict[Priority, SLAPolicy] = {}
        for policy in policies:
            if policy.enabled and policy.priority not in self._by_priority:
                self._by_priority[policy.priority] = policy

    def policy_for(self, priority: Priority) -> Optional[SLAPolicy]:
        return self._by_priority.get(Priority(priority))

    def __len__(self) -> int:
        return len(self._by_priority)


class DeadlineCalculator:
    """
    Pure functions for SLA deadline calculations.

    The deadline is always measured from the moment the priority was
    (re)assigned, never from ticket creation.
    """

    @staticmethod
    def compute_deadline(
        priority: Priority,
        policies: SLAPolicyTable,
        now: datetime,
    ) -> Optional[datetime]:
        """
        Args:
            priority: Ticket priority just assigned
            policies: Enabled-policy snapshot
            now: Time of the priority assignment (timezone-aware)

        Returns:
            ``now + resolution_time`` minutes, or None when no enabled
            policy covers the priority.
        """
        policy = policies.policy_for(priority)
        if policy is None:
            return None
        return now + timedelta(minutes=policy.resolution_time)

    @staticmethod
    def minutes_overdue(deadline: Optional[datetime], now: datetime) -> Optional[float]:
        """Minutes past the deadline (negative while still inside it)."""
        if deadline is None:
            return None
        return (now - deadline).total_seconds() / 60


# ========== Escalation Rules ==========

class NoReassign(BaseModel):
    """Leave the assignee untouched."""
    model_config = ConfigDict(frozen=True)

    type: Literal["none"] = "none"


ReassignTarget = Annotated[
    Union[AgentTarget, TeamTarget, NoReassign],
    Field(discriminator="type"),
]


class EscalationConditions(BaseModel):
    model_config = ConfigDict(frozen=True)

    priorities: List[Priority] = Field(default_factory=list)
    statuses: List[TicketStatus] = Field(default_factory=list)
    overdue_by: Optional[int] = Field(
        default=None,
        ge=0,
        description="Minutes past the SLA deadline; tickets without a deadline never match"
    )


class EscalationActions(BaseModel):
    model_config = ConfigDict(frozen=True)

    notify_users: List[str] = Field(default_factory=list)
    notify_teams: List[str] = Field(default_factory=list)
    reassign_to: ReassignTarget = Field(default_factory=NoReassign)
    change_priority: Optional[Priority] = None
    add_comment: Optional[str] = None


class EscalationRule(BaseModel):
    """A condition/action pair evaluated by every scan."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    is_active: bool = True
    priority: int = Field(default=100, description="Evaluation order, lower first")
    conditions: EscalationConditions = Field(default_factory=EscalationConditions)
    actions: EscalationActions = Field(default_factory=EscalationActions)

    def matches(self, ticket, now: datetime) -> bool:
        """
        Evaluate the conditions against the ticket's current state.

        ``ticket`` needs ``priority``, ``status`` and ``sla_deadline``.
        """
        conditions = self.conditions
        if conditions.priorities and ticket.priority not in conditions.priorities:
            return False
        if conditions.statuses and ticket.status not in conditions.statuses:
            return False
        if conditions.overdue_by is not None:
            if ticket.sla_deadline is None:
                return False
            if now - ticket.sla_deadline < timedelta(minutes=conditions.overdue_by):
                return False
        return True


def ordered_active_escalations(rules: Iterable[EscalationRule]) -> List[EscalationRule]:
    """Active rules by ascending priority; ties keep file order."""
    return sorted((r for r in rules if r.is_active), key=lambda r: r.priority)
