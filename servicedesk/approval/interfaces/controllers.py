"""
Approval Controllers (API Routes)
=================================

FastAPI routes for approvers and administrators.
"""

from typing import List

from fastapi import APIRouter, Depends

from servicedesk.approval.application import (
    ApprovalRequestResponse,
    ApprovalResponseDTO,
    ApprovalResubmitDTO,
    ApproverReassignDTO,
)
from servicedesk.engine import ServiceDeskEngine
from servicedesk.shared.api.dependencies import get_acting_user_id, get_engine

router = APIRouter(prefix="/approvals", tags=["Approvals"])


@router.get(
    "/pending",
    response_model=List[ApprovalRequestResponse],
    summary="Requests waiting on the acting user",
)
async def list_pending(
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    return [ApprovalRequestResponse.model_validate(r) for r in await engine.list_pending_approvals(acting_user)]


@router.get(
    "/unassigned",
    response_model=List[ApprovalRequestResponse],
    summary="Active requests with no approver",
    description="Administrators only. Stages whose approver could not be resolved; fix with `/reassign`.",
    responses={403: {"description": "Not an administrator"}},
)
async def list_unassigned(
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    return [ApprovalRequestResponse.model_validate(r) for r in await engine.list_unassigned_approvals(acting_user)]


@router.post(
    "/{request_id}/respond",
    response_model=ApprovalRequestResponse,
    summary="Approve, reject or ask for more information",
    description="""
    Only the stage approver may respond (an administrator may respond to a
    request without an approver).

    - `approve`: activates the next stage; after the last one the ticket
      moves to `in_progress`
    - `reject`: the ticket becomes `rejected` (terminal)
    - `need_more_info`: requires `comments`; the creator is asked to resubmit
    """,
    responses={
        403: {"description": "Acting user is not the approver"},
        404: {"description": "Request not found"},
        409: {"description": "Request is not waiting for a response"},
        422: {"description": "Missing comments for need_more_info"},
    },
)
async def respond(
    request_id: str,
    payload: ApprovalResponseDTO,
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    request = await engine.respond_to_approval(request_id, payload.decision, payload.comments, acting_user)
    return ApprovalRequestResponse.model_validate(request)


@router.post(
    "/{request_id}/resubmit",
    response_model=ApprovalRequestResponse,
    summary="Answer a need_more_info request",
    responses={403: {"description": "Not the ticket creator"}, 409: {"description": "Request is not need_more_info"}},
)
async def resubmit(
    request_id: str,
    payload: ApprovalResubmitDTO,
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    request = await engine.resubmit_approval(request_id, acting_user, payload.comments)
    return ApprovalRequestResponse.model_validate(request)


@router.post(
    "/{request_id}/reassign",
    response_model=ApprovalRequestResponse,
    summary="Route an active request to another approver",
    responses={403: {"description": "Not an administrator"}, 409: {"description": "Request is not active"}},
)
async def reassign(
    request_id: str,
    payload: ApproverReassignDTO,
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    request = await engine.reassign_approver(request_id, payload.approver_id, acting_user)
    return ApprovalRequestResponse.model_validate(request)
