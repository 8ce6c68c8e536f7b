"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from woo_accounting.config.settings import Settings, get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Health check endpoint.

    Reports whether the upstream connection is configured. No upstream
    call is made.
    """
    missing = settings.woocommerce.missing_fields()
    checks = {
        "woocommerce": {
            "status": "configured" if not missing else "unconfigured",
            "missing": missing,
        },
        "auth": {"token_defined": settings.security.token_defined},
    }

    return HealthResponse(
        status="healthy" if not missing else "degraded",
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    settings: Settings = Depends(get_settings),
) -> Dict[str, str]:
    """
    Kubernetes readiness probe endpoint.

    Not ready while the upstream credentials are missing.
    """
    if not settings.woocommerce.is_configured:
        response.status_code = 503
        return {"status": "not_ready", "reason": "woocommerce_unconfigured"}
    return {"status": "ready"}


@router.get("/debug-auth")
async def debug_auth(settings: Settings = Depends(get_settings)) -> Dict[str, bool]:
    """Whether an API token is configured, without revealing it"""
    return {"token_defined": settings.security.token_defined}


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus exposition of the upstream call counters"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
