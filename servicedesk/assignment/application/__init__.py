"""
Assignment Application Layer
============================
"""

from servicedesk.assignment.application.services import AssignmentDecision, AssignmentRuleEngine

__all__ = ["AssignmentDecision", "AssignmentRuleEngine"]
