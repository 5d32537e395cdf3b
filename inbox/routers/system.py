from fastapi import APIRouter, Request

from inbox.config import get_settings

router = APIRouter(tags=["system"])


@router.get("/health")
def health(request: Request) -> dict:
    """Liveness plus a count of open push sockets."""
    s = get_settings()
    return {
        "status": "ok",
        "app": s.app_name,
        "environment": s.environment,
        "push_connections": request.app.state.hub.connection_count(),
    }
