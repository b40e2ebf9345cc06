"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for SLA module.
"""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from servicedesk.infrastructure.database import Base


class EscalationFiringModel(Base):
    """
    Database model for EscalationFiring.

    Maps to the 'escalation_firings' table. Only written in once_per_breach
    mode; one row per (rule, ticket, breach).
    """
    __tablename__ = "escalation_firings"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    rule_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ticket_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("tickets.id"), nullable=False, index=True)
    breach_key: Mapped[str] = mapped_column(String(64), nullable=False)
    fired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("rule_id", "ticket_id", "breach_key", name="uq_escalation_firing"),
    )
