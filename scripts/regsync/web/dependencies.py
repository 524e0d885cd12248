"""
Dependency injection for web routes.
"""

from fastapi import HTTPException, Request

from regsync.services import ServiceContext


def get_context(request: Request) -> ServiceContext:
    """Return the ServiceContext attached by the lifespan."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Service context not initialised")
    return context
