"""
Shared FastAPI dependencies
"""
from fastapi import HTTPException, Request, status

from .coordination import CoordinationContext


def get_coordination(request: Request) -> CoordinationContext:
    """Coordination context created by the application lifespan"""
    coordination = getattr(request.app.state, "coordination", None)
    if coordination is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Coordination store not initialized"
        )
    return coordination
