"""
Assignment Application Services
===============================

Resolves the owner of a newly created (or newly approved) ticket.

Rules are walked in priority order; the first rule whose conditions match
AND whose target resolves to a user wins. A target that cannot resolve
(missing team, empty team) falls through to the next rule. No winner means
the ticket stays unassigned, which is a normal outcome.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from servicedesk.assignment.domain import (
    AgentTarget,
    AssignmentRule,
    RoundRobinTarget,
    TeamTarget,
)
from servicedesk.config import Priority, TicketType
from servicedesk.directory.application import IDirectory
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.tickets.application.services import ITicketRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class AssignmentDecision:
    """The winning rule and the user it resolved to."""

    rule_id: str
    rule_name: str
    assignee_id: str
    method: str  # agent | team_leader | team_member | round_robin

    def describe(self) -> str:
        return f"Assignment rule '{self.rule_name}' ({self.method})"


class AssignmentRuleEngine:
    """
    Ordered rule matcher over an explicit rule snapshot.

    Args:
        rules: Active rules already sorted by priority (``Rulebook.ordered_assignment_rules``)
        directory: Team and leader lookups
        tickets: Source of live open-ticket counts for round robin
    """

    def __init__(
        self,
        rules: Sequence[AssignmentRule],
        directory: IDirectory,
        tickets: ITicketRepository,
    ):
        self._rules = list(rules)
        self._directory = directory
        self._tickets = tickets

    def matching_rules(self, category: str, priority: Priority, ticket_type: TicketType) -> List[AssignmentRule]:
        """Rules whose conditions match, in evaluation order. Pure; no lookups."""
        return [
            rule for rule in self._rules
            if rule.conditions.matches(category, Priority(priority), TicketType(ticket_type))
        ]

    async def resolve_assignee(
        self,
        category: str,
        priority: Priority,
        ticket_type: TicketType,
    ) -> Optional[AssignmentDecision]:
        for rule in self.matching_rules(category, priority, ticket_type):
            decision = await self._resolve_target(rule)
            if decision is not None:
                return decision
            logger.info(
                "Assignment rule matched but target did not resolve",
                extra={"rule_id": rule.id, "target_type": rule.assign_to.type},
            )

        logger.info(
            "No assignment rule resolved an assignee",
            extra={"category": category, "priority": Priority(priority).value, "type": TicketType(ticket_type).value},
        )
        return None

    async def _resolve_target(self, rule: AssignmentRule) -> Optional[AssignmentDecision]:
        target = rule.assign_to

        if isinstance(target, AgentTarget):
            return AssignmentDecision(rule.id, rule.name, target.agent_id, "agent")

        team = await self._directory.get_team(target.team_id)
        if team is None:
            logger.info("Assignment target team not found", extra={"rule_id": rule.id, "team_id": target.team_id})
            return None

        if isinstance(target, TeamTarget):
            if team.leader_id:
                return AssignmentDecision(rule.id, rule.name, team.leader_id, "team_leader")
            if team.member_ids:
                return AssignmentDecision(rule.id, rule.name, team.member_ids[0], "team_member")
            return None

        if isinstance(target, RoundRobinTarget):
            member_id = await self._least_loaded(team.member_ids)
            if member_id is None:
                return None
            return AssignmentDecision(rule.id, rule.name, member_id, "round_robin")

        return None

    async def _least_loaded(self, member_ids: List[str]) -> Optional[str]:
        """Member with the strictly lowest open-ticket count; ties go to the first listed."""
        if not member_ids:
            return None
        counts = await self._tickets.count_open_assigned(member_ids)

        chosen, lowest = None, None
        for member_id in member_ids:
            load = counts.get(member_id, 0)
            if lowest is None or load < lowest:
                chosen, lowest = member_id, load

        logger.debug("Round robin load", extra={"counts": counts, "chosen": chosen})
        return chosen
