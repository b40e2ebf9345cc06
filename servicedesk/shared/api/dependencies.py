"""
Shared API Dependencies
=======================

FastAPI dependencies used by every router.

Authentication is handled upstream; the caller identifies the acting user
with the ``X-Acting-User`` header.
"""

from fastapi import Header, HTTPException, Request, status

from servicedesk.engine import ServiceDeskEngine


def get_engine(request: Request) -> ServiceDeskEngine:
    """Returns the engine wired during application startup."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service desk engine not initialized",
        )
    return engine


def get_acting_user_id(
    x_acting_user: str = Header(..., min_length=1, description="ID of the user performing the call"),
) -> str:
    return x_acting_user
