"""
SLA Infrastructure Repositories
=================================

Concrete implementation of the escalation firing repository using
SQLAlchemy.
"""

from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.sla.application.services import IEscalationFiringRepository
from servicedesk.sla.domain import EscalationFiring
from servicedesk.sla.infrastructure.models import EscalationFiringModel
from servicedesk.tickets.infrastructure.repositories import to_uuid


class SQLAlchemyEscalationFiringRepository(IEscalationFiringRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def exists(self, rule_id: str, ticket_id: str, breach_key: str) -> bool:
        stmt = select(EscalationFiringModel.id).where(
            EscalationFiringModel.rule_id == rule_id,
            EscalationFiringModel.ticket_id == to_uuid(ticket_id),
            EscalationFiringModel.breach_key == breach_key,
        )
        result = await self._session.execute(stmt)
        return result.first() is not None

    async def add(self, firing: EscalationFiring) -> EscalationFiring:
        model = EscalationFiringModel(
            id=to_uuid(firing.id) or uuid4(),
            rule_id=firing.rule_id,
            ticket_id=to_uuid(firing.ticket_id),
            breach_key=firing.breach_key,
            fired_at=firing.fired_at,
        )
        self._session.add(model)
        await self._session.flush()
        firing.id = str(model.id)
        return firing

    async def delete_for_ticket(self, ticket_id: str) -> int:
        result = await self._session.execute(
            delete(EscalationFiringModel).where(EscalationFiringModel.ticket_id == to_uuid(ticket_id))
        )
        return result.rowcount or 0
