"""
Rulebook Controllers (API Routes)
=================================

Read the active rulebook and trigger a reload from disk.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from servicedesk.core.exceptions import ConfigurationException, PermissionDeniedException
from servicedesk.engine import ServiceDeskEngine
from servicedesk.rulebook.application import RulebookResponse, RulebookStatusResponse
from servicedesk.rulebook.infrastructure import RulebookManager
from servicedesk.shared.api.dependencies import get_acting_user_id, get_engine
from servicedesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/rulebook", tags=["Rulebook"])


def get_rulebook_manager(request: Request) -> RulebookManager:
    manager = getattr(request.app.state, "rulebook_manager", None)
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rulebook manager not initialized",
        )
    return manager


def _status(manager: RulebookManager) -> RulebookStatusResponse:
    rulebook = manager.snapshot()
    return RulebookStatusResponse(
        version=rulebook.version,
        path=str(manager.path) if manager.path else None,
        loaded_at=manager.loaded_at,
        watching=manager.is_watching,
        last_error=manager.last_error,
        counts=rulebook.summary(),
    )


@router.get(
    "",
    response_model=RulebookResponse,
    summary="Active rulebook",
    description="SLA policies, assignment rules, escalation rules, approval forms and notification settings.",
)
async def get_rulebook(manager: RulebookManager = Depends(get_rulebook_manager)):
    return RulebookResponse(status=_status(manager), rulebook=manager.snapshot())


@router.post(
    "/reload",
    response_model=RulebookStatusResponse,
    summary="Reload the rulebook file",
    description="""
    Administrators only. Re-reads the rulebook file. On a validation error
    the previous rulebook stays active and the error is returned.
    """,
    responses={403: {"description": "Not an administrator"}, 500: {"description": "Invalid rulebook file"}},
)
async def reload_rulebook(
    acting_user: str = Depends(get_acting_user_id),
    manager: RulebookManager = Depends(get_rulebook_manager),
    engine: ServiceDeskEngine = Depends(get_engine),
):
    user = await engine.get_user(acting_user)
    if not user.is_admin:
        raise PermissionDeniedException("Only an administrator can reload the rulebook")

    if not manager.reload():
        raise ConfigurationException(
            "Rulebook reload failed; previous rulebook still active",
            {"error": manager.last_error},
        )

    logger.info("Rulebook reloaded on request", extra={"actor": acting_user})
    return _status(manager)
