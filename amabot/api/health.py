from fastapi import APIRouter, Depends
from typing import Dict, Any

from ..types import HealthResponse
from .deps import get_health_providers

router = APIRouter()


@router.get("/healthz")
async def health_check(
    providers: Dict[str, Any] = Depends(get_health_providers),
) -> HealthResponse:
    """Health check endpoint that verifies provider status"""

    provider_status = {}
    for name, provider in providers.items():
        provider_status[name] = await provider.health_check()

    # Determine overall health
    all_healthy = all(
        status["status"] in ["healthy", "unavailable"]
        for status in provider_status.values()
    )

    # Count available providers
    available_providers = sum(
        1 for status in provider_status.values()
        if status["status"] == "healthy"
    )

    return HealthResponse(
        status="healthy" if all_healthy and available_providers > 0 else "degraded",
        providers=provider_status,
        available_providers=available_providers,
        total_providers=len(provider_status),
    )
