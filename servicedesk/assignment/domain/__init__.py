"""
Assignment Domain Layer
=======================

Assignment rules, their conditions and tagged-variant targets.
"""

from servicedesk.assignment.domain.value_objects import (
    AgentTarget,
    AssignmentConditions,
    AssignmentRule,
    AssignmentTarget,
    RoundRobinTarget,
    TeamTarget,
    ordered_active,
)

__all__ = [
    "AgentTarget",
    "AssignmentConditions",
    "AssignmentRule",
    "AssignmentTarget",
    "RoundRobinTarget",
    "TeamTarget",
    "ordered_active",
]
