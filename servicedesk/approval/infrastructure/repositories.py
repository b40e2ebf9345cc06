"""
Approval Infrastructure Repositories
====================================

SQLAlchemy implementation of the approval request repository.
"""

from typing import List, Optional
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.approval.application.services import IApprovalRequestRepository
from servicedesk.approval.domain import ApprovalRequest
from servicedesk.approval.infrastructure.models import ApprovalRequestModel
from servicedesk.config import ApprovalRequestStatus
from servicedesk.core.exceptions import RepositoryException
from servicedesk.tickets.infrastructure.repositories import to_uuid


def _to_request(model: ApprovalRequestModel) -> ApprovalRequest:
    return ApprovalRequest(
        id=str(model.id),
        ticket_id=str(model.ticket_id),
        stage_id=model.stage_id,
        stage_name=model.stage_name,
        stage_order=model.stage_order,
        approver_type=model.approver_type,
        approver_ref=model.approver_ref,
        is_required=model.is_required,
        status=model.status,
        approver_id=model.approver_id,
        comments=model.comments,
        requested_at=model.requested_at,
        activated_at=model.activated_at,
        responded_at=model.responded_at,
    )


class SQLAlchemyApprovalRequestRepository(IApprovalRequestRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, request: ApprovalRequest) -> ApprovalRequest:
        model = ApprovalRequestModel(
            id=to_uuid(request.id) or uuid4(),
            ticket_id=to_uuid(request.ticket_id),
            stage_id=request.stage_id,
            stage_name=request.stage_name,
            stage_order=request.stage_order,
            approver_type=request.approver_type.value,
            approver_ref=request.approver_ref,
            is_required=request.is_required,
            status=request.status.value,
            approver_id=request.approver_id,
            comments=request.comments,
            requested_at=request.requested_at,
            activated_at=request.activated_at,
            responded_at=request.responded_at,
        )
        self._session.add(model)
        await self._session.flush()
        request.id = str(model.id)
        return request

    async def get(self, request_id: str) -> Optional[ApprovalRequest]:
        request_uuid = to_uuid(request_id)
        if request_uuid is None:
            return None
        model = await self._session.get(ApprovalRequestModel, request_uuid)
        return _to_request(model) if model else None

    async def save(self, request: ApprovalRequest) -> None:
        model = await self._session.get(ApprovalRequestModel, to_uuid(request.id))
        if model is None:
            raise RepositoryException(f"Approval request {request.id} not found")

        model.status = request.status.value
        model.approver_id = request.approver_id
        model.comments = request.comments
        model.requested_at = request.requested_at
        model.activated_at = request.activated_at
        model.responded_at = request.responded_at
        await self._session.flush()

    async def list_for_ticket(self, ticket_id: str) -> List[ApprovalRequest]:
        ticket_uuid = to_uuid(ticket_id)
        if ticket_uuid is None:
            return []
        stmt = (
            select(ApprovalRequestModel)
            .where(ApprovalRequestModel.ticket_id == ticket_uuid)
            .order_by(ApprovalRequestModel.stage_order.asc(), ApprovalRequestModel.requested_at.asc())
        )
        result = await self._session.execute(stmt)
        return [_to_request(m) for m in result.scalars().all()]

    async def list_awaiting_approver(self, approver_id: str) -> List[ApprovalRequest]:
        stmt = (
            select(ApprovalRequestModel)
            .where(
                ApprovalRequestModel.approver_id == approver_id,
                ApprovalRequestModel.status == ApprovalRequestStatus.PENDING.value,
                ApprovalRequestModel.activated_at.is_not(None),
            )
            .order_by(ApprovalRequestModel.requested_at.asc())
        )
        result = await self._session.execute(stmt)
        return [_to_request(m) for m in result.scalars().all()]

    async def list_unassigned(self) -> List[ApprovalRequest]:
        stmt = (
            select(ApprovalRequestModel)
            .where(
                ApprovalRequestModel.approver_id.is_(None),
                ApprovalRequestModel.status == ApprovalRequestStatus.PENDING.value,
                ApprovalRequestModel.activated_at.is_not(None),
            )
            .order_by(ApprovalRequestModel.requested_at.asc())
        )
        result = await self._session.execute(stmt)
        return [_to_request(m) for m in result.scalars().all()]

    async def delete_for_ticket(self, ticket_id: str) -> int:
        result = await self._session.execute(
            delete(ApprovalRequestModel).where(ApprovalRequestModel.ticket_id == to_uuid(ticket_id))
        )
        return result.rowcount or 0
