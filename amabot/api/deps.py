from typing import Any, Dict

from fastapi import HTTPException, Request

from ..services import BotService


def get_bot_service(request: Request) -> BotService:
    service = getattr(request.app.state, "bot_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Bot service is not initialized")
    return service


def get_health_providers(request: Request) -> Dict[str, Any]:
    """Components that report health, keyed by the name shown in /healthz."""
    return getattr(request.app.state, "health_providers", {})
