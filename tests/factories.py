"""
Test data factories.

Builders for rulebooks, tickets and intake payloads with sensible defaults.
Override any field with keyword arguments.
"""

import copy
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import uuid4

from servicedesk.config import TicketStatus
from servicedesk.rulebook.domain import Rulebook
from servicedesk.tickets.application import TicketCreateDTO
from servicedesk.tickets.domain import Ticket

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


BASE_RULEBOOK: Dict[str, Any] = {
    "version": "test",
    "sla_policies": [
        {"name": "Critical", "priority": "critical", "response_time": 15, "resolution_time": 240},
        {"name": "High", "priority": "high", "response_time": 60, "resolution_time": 480},
        {"name": "Medium", "priority": "medium", "response_time": 240, "resolution_time": 1440},
        {"name": "Low", "priority": "low", "response_time": 480, "resolution_time": 4320},
    ],
    "assignment_rules": [
        {
            "id": "network",
            "name": "Network tickets",
            "priority": 1,
            "conditions": {"categories": ["Network"]},
            "assign_to": {"type": "round_robin", "team_id": "t-network"},
        },
        {
            "id": "billing",
            "name": "Billing tickets",
            "priority": 2,
            "conditions": {"categories": ["Billing"]},
            "assign_to": {"type": "agent", "agent_id": "u-billing-desk"},
        },
    ],
    "escalation_rules": [],
    "approval_forms": {
        "access-request": [
            {"id": "manager", "name": "Manager approval", "order": 1, "approver_type": "role", "role": "manager"},
            {"id": "security", "name": "Security review", "order": 2, "approver_type": "team", "team_id": "t-security"},
        ],
    },
}


def rulebook_data(**sections) -> Dict[str, Any]:
    """The base rulebook as a dict with whole top-level sections replaced."""
    data = copy.deepcopy(BASE_RULEBOOK)
    data.update(sections)
    return data


def make_rulebook(**sections) -> Rulebook:
    return Rulebook.model_validate(rulebook_data(**sections))


def escalation_rule(rule_id: str = "critical-overdue", **overrides) -> Dict[str, Any]:
    rule = {
        "id": rule_id,
        "name": "Critical overdue",
        "priority": 10,
        "conditions": {"priorities": ["critical"], "overdue_by": 30},
        "actions": {"notify_users": ["u-desk-manager"]},
    }
    rule.update(overrides)
    return rule


def ticket_payload(**overrides) -> TicketCreateDTO:
    data = {
        "title": "VPN is down",
        "description": "Cannot connect from home",
        "type": "incident",
        "priority": "medium",
        "urgency": "medium",
        "category": "General",
        "created_by": "u-alice",
    }
    data.update(overrides)
    return TicketCreateDTO(**data)


def make_ticket(**overrides) -> Ticket:
    """A ticket entity that has not been through intake."""
    data = {
        "id": str(uuid4()),
        "title": "Printer jammed",
        "description": "Third floor printer",
        "type": "incident",
        "status": TicketStatus.NEW,
        "priority": "medium",
        "urgency": "medium",
        "category": "General",
        "created_by": "u-alice",
        "created_at": T0,
        "updated_at": T0,
    }
    data.update(overrides)
    return Ticket(**data)
