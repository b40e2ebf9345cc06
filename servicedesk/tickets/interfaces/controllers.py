"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for the ticket lifecycle.

Controllers are thin - they delegate to the ServiceDeskEngine.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from servicedesk.approval.application import ApprovalRequestResponse
from servicedesk.config import Priority, TicketStatus
from servicedesk.engine import ServiceDeskEngine
from servicedesk.shared.api.dependencies import get_acting_user_id, get_engine
from servicedesk.shared.infrastructure.logging import get_logger
from servicedesk.tickets.application import (
    AssignTicketDTO,
    CommentCreateDTO,
    CommentResponse,
    HistoryEntryResponse,
    NotificationResponse,
    TicketCreateDTO,
    TicketCreatedResponse,
    TicketListQueryDTO,
    TicketResponse,
    TicketUpdateDTO,
    TicketUpdateResult,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])
notifications_router = APIRouter(prefix="/notifications", tags=["Notifications"])


# ========== Example payloads for Swagger ==========

TICKET_CREATE_EXAMPLE = {
    "title": "VPN drops every few minutes",
    "description": "Since this morning the VPN disconnects every 5-10 minutes.",
    "type": "incident",
    "priority": "high",
    "urgency": "high",
    "category": "Network",
    "created_by": "u-alice",
    "form_id": None,
    "form_data": {}
}

TICKET_UPDATE_EXAMPLE = {
    "status": "in_progress",
    "priority": "critical",
    "reason": "Affects the whole sales floor"
}


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=TicketCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket",
    description="""
    Create a ticket and run intake.

    1. The SLA deadline is computed from the enabled policy of the priority
    2. Without an explicit `assigned_to`, assignment rules pick an owner
    3. If `form_id` names a form with approval stages, the ticket starts in
       `need_approval` and the first stage approver is notified
    """,
    responses={
        201: {"description": "Ticket created", "content": {"application/json": {"example": {"ticket_id": "uuid"}}}},
        404: {"description": "Creator or assignee not found"},
    },
    openapi_extra={"requestBody": {"content": {"application/json": {"example": TICKET_CREATE_EXAMPLE}}}},
)
async def create_ticket(
    payload: TicketCreateDTO,
    engine: ServiceDeskEngine = Depends(get_engine),
):
    ticket_id = await engine.create_ticket(payload)
    return TicketCreatedResponse(ticket_id=ticket_id)


@router.get(
    "",
    response_model=List[TicketResponse],
    summary="List tickets",
    description="Newest first. Filters: `status`, `priority`, `assigned_to`, `created_by`."
)
async def list_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    priority: Optional[Priority] = Query(None),
    assigned_to: Optional[str] = Query(None),
    created_by: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    query = TicketListQueryDTO(
        status=status_filter,
        priority=priority,
        assigned_to=assigned_to,
        created_by=created_by,
        limit=limit,
        offset=offset,
    )
    tickets = await engine.list_tickets(query)
    return [TicketResponse.model_validate(t) for t in tickets]


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Get a ticket",
    responses={404: {"description": "Ticket not found"}},
)
async def get_ticket(ticket_id: str, engine: ServiceDeskEngine = Depends(get_engine)):
    return TicketResponse.model_validate(await engine.get_ticket(ticket_id))


@router.patch(
    "/{ticket_id}",
    response_model=TicketUpdateResult,
    summary="Update a ticket",
    description="""
    Partial update. Status, priority and assignment go through the ticket
    state machine: each change is recorded in history and notifies the
    creator and assignee. A priority change restarts the SLA clock.

    `need_approval` and `rejected` are owned by the approval workflow and
    cannot be set here. Values equal to the current ones are ignored and
    reported by an empty `changed_fields`.
    """,
    responses={
        404: {"description": "Ticket or user not found"},
        409: {"description": "Status transition not allowed"},
    },
    openapi_extra={"requestBody": {"content": {"application/json": {"example": TICKET_UPDATE_EXAMPLE}}}},
)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateDTO,
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    return await engine.update_ticket(ticket_id, payload, acting_user)


@router.delete(
    "/{ticket_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Purge a ticket",
    description="Administrators only. Deletes the ticket with its history, comments, notifications and approvals.",
    responses={403: {"description": "Not an administrator"}, 404: {"description": "Ticket not found"}},
)
async def purge_ticket(
    ticket_id: str,
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    await engine.purge_ticket(ticket_id, acting_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{ticket_id}/assign",
    response_model=TicketUpdateResult,
    summary="Assign a ticket",
    responses={404: {"description": "Ticket or user not found"}},
)
async def assign_ticket(
    ticket_id: str,
    payload: AssignTicketDTO,
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    return await engine.assign_ticket(ticket_id, payload.assignee_id, acting_user)


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a ticket",
)
async def add_comment(
    ticket_id: str,
    payload: CommentCreateDTO,
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    comment = await engine.add_comment(ticket_id, payload.content, acting_user)
    return CommentResponse.model_validate(comment)


@router.get("/{ticket_id}/comments", response_model=List[CommentResponse], summary="List ticket comments")
async def list_comments(ticket_id: str, engine: ServiceDeskEngine = Depends(get_engine)):
    return [CommentResponse.model_validate(c) for c in await engine.list_comments(ticket_id)]


@router.get(
    "/{ticket_id}/history",
    response_model=List[HistoryEntryResponse],
    summary="Ticket audit trail",
    description="Every status, priority, assignment, field and approval change, oldest first.",
)
async def list_history(ticket_id: str, engine: ServiceDeskEngine = Depends(get_engine)):
    return [HistoryEntryResponse.model_validate(h) for h in await engine.list_history(ticket_id)]


@router.get(
    "/{ticket_id}/approvals",
    response_model=List[ApprovalRequestResponse],
    summary="Approval requests of a ticket",
    description="One request per approval stage, by stage order.",
)
async def list_ticket_approvals(ticket_id: str, engine: ServiceDeskEngine = Depends(get_engine)):
    return [ApprovalRequestResponse.model_validate(a) for a in await engine.list_approvals(ticket_id)]


@notifications_router.get(
    "",
    response_model=List[NotificationResponse],
    summary="Notifications of the acting user",
)
async def list_notifications(
    unread_only: bool = Query(False),
    acting_user: str = Depends(get_acting_user_id),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    notifications = await engine.list_notifications(acting_user, unread_only)
    return [NotificationResponse.model_validate(n) for n in notifications]
