"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA and escalation:
- Models: escalation firing markers
- Repositories: Data access layer
- External: APScheduler wrapper for the periodic jobs
"""

from servicedesk.sla.infrastructure.external import ServiceDeskScheduler
from servicedesk.sla.infrastructure.models import EscalationFiringModel
from servicedesk.sla.infrastructure.repositories import SQLAlchemyEscalationFiringRepository

__all__ = [
    "EscalationFiringModel",
    "SQLAlchemyEscalationFiringRepository",
    "ServiceDeskScheduler",
]
