"""
SLA Domain Layer
================

Domain layer for SLA deadlines and escalation.

Contains:
- Value Objects: SLAPolicy, SLAPolicyTable, EscalationRule and its parts
- Domain Services: DeadlineCalculator
- Entities: EscalationFiring, ScanReport

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from servicedesk.sla.domain.entities import (
    EscalationFiring,
    FiredEscalation,
    ScanReport,
    TicketScanFailure,
    breach_key,
)
from servicedesk.sla.domain.value_objects import (
    DeadlineCalculator,
    EscalationActions,
    EscalationConditions,
    EscalationRule,
    NoReassign,
    SLAPolicy,
    SLAPolicyTable,
    ordered_active_escalations,
)

__all__ = [
    # Entities
    "EscalationFiring",
    "FiredEscalation",
    "ScanReport",
    "TicketScanFailure",
    "breach_key",
    # Value Objects & Services
    "DeadlineCalculator",
    "EscalationActions",
    "EscalationConditions",
    "EscalationRule",
    "NoReassign",
    "SLAPolicy",
    "SLAPolicyTable",
    "ordered_active_escalations",
]
