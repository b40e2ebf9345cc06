"""
SLA Domain Entities
====================

Records produced by the escalation scanner.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

NO_DEADLINE_KEY = "no-deadline"


def breach_key(sla_deadline: Optional[datetime]) -> str:
    """
    Identifies one breach of a ticket.

    A priority change recomputes the deadline, which opens a new breach.
    """
    return sla_deadline.isoformat() if sla_deadline else NO_DEADLINE_KEY


@dataclass
class EscalationFiring:
    """Persisted marker that a rule fired for a ticket's breach (once_per_breach mode)."""

    id: Optional[str]
    rule_id: str
    ticket_id: str
    breach_key: str
    fired_at: datetime


@dataclass
class FiredEscalation:
    rule_id: str
    rule_name: str
    ticket_id: str
    actions: List[str] = field(default_factory=list)


@dataclass
class TicketScanFailure:
    ticket_id: str
    error_type: str
    error: str


@dataclass
class ScanReport:
    """
    Outcome of one escalation scan pass.

    ``skipped`` is set when the pass did not run because a previous one was
    still in flight.
    """

    started_at: datetime
    finished_at: Optional[datetime] = None
    skipped: bool = False
    rules_evaluated: int = 0
    tickets_scanned: int = 0
    fired: List[FiredEscalation] = field(default_factory=list)
    failures: List[TicketScanFailure] = field(default_factory=list)

    @property
    def fired_count(self) -> int:
        return len(self.fired)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return round((self.finished_at - self.started_at).total_seconds() * 1000, 2)

    def fired_for(self, ticket_id: str) -> List[FiredEscalation]:
        return [f for f in self.fired if f.ticket_id == ticket_id]
