"""
Assignment Value Objects
========================

Assignment rules and their targets.

A target is a tagged variant (``type`` discriminator) so YAML like

    assign_to: {type: round_robin, team_id: t-network}

parses straight into the right class.
"""

from typing import Annotated, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from servicedesk.config import Priority, TicketType


class AgentTarget(BaseModel):
    """Assign directly to one agent."""
    model_config = ConfigDict(frozen=True)

    type: Literal["agent"] = "agent"
    agent_id: str = Field(..., min_length=1)


class TeamTarget(BaseModel):
    """Assign to the team leader, else the first member."""
    model_config = ConfigDict(frozen=True)

    type: Literal["team"] = "team"
    team_id: str = Field(..., min_length=1)


class RoundRobinTarget(BaseModel):
    """Assign to the team member with the fewest open tickets."""
    model_config = ConfigDict(frozen=True)

    type: Literal["round_robin"] = "round_robin"
    team_id: str = Field(..., min_length=1)


AssignmentTarget = Annotated[
    Union[AgentTarget, TeamTarget, RoundRobinTarget],
    Field(discriminator="type"),
]


class AssignmentConditions(BaseModel):
    """Empty list = match any. Non-empty list = membership test."""
    model_config = ConfigDict(frozen=True)

    categories: List[str] = Field(default_factory=list)
    priorities: List[Priority] = Field(default_factory=list)
    types: List[TicketType] = Field(default_factory=list)

    def matches(self, category: str, priority: Priority, ticket_type: TicketType) -> bool:
        return (
            (not self.categories or category in self.categories)
            and (not self.priorities or priority in self.priorities)
            and (not self.types or ticket_type in self.types)
        )


class AssignmentRule(BaseModel):
    """One ordered routing rule."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: int = Field(default=100, description="Evaluation order, lower first")
    is_active: bool = True
    conditions: AssignmentConditions = Field(default_factory=AssignmentConditions)
    assign_to: AssignmentTarget


def ordered_active(rules: Iterable[AssignmentRule]) -> List[AssignmentRule]:
    """Active rules by ascending priority. sorted() is stable, so ties keep file order."""
    return sorted((r for r in rules if r.is_active), key=lambda r: r.priority)
