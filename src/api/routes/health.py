"""
Health check endpoints.

/health answers as long as the process is up and reports which
integrations are mocked. /health/ready also checks that configuration is
complete, the account table answers a query and uploads have somewhere
to go; it returns 503 when any of that fails so a load balancer stops
sending traffic.
"""

import logging
import os
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ...config.settings import Settings
from ...infrastructure.snowflake.repositories import AccountRepository
from ..dependencies import AccountRepositoryDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """One dependency's result. `error` also carries notes for checks that pass."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


def _mock_modes(settings: Settings) -> dict[str, bool]:
    return {
        "snowflake": settings.snowflake_mock_mode,
        "r2": settings.r2_mock_mode,
        "email": settings.email_mock_mode,
        "video_processor": settings.video_processor_mock_mode,
    }


def _check_configuration(settings: Settings) -> ReadinessCheck:
    missing = settings.validate_required_fields()
    if missing:
        return ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing)}",
        )
    return ReadinessCheck(name="configuration", status="ok")


def _check_database(settings: Settings, accounts: AccountRepository) -> ReadinessCheck:
    try:
        accounts.count()
    except Exception as e:
        logger.error("Database health check failed", extra={"error": str(e)})
        return ReadinessCheck(name="database", status="error", error=str(e))
    return ReadinessCheck(
        name="database",
        status="ok",
        error="mock mode" if settings.snowflake_mock_mode else None,
    )


def _check_storage(settings: Settings) -> ReadinessCheck:
    """R2 is optional, but without it the local upload directory must be writable."""
    if settings.r2_mock_mode:
        return ReadinessCheck(name="storage", status="ok", error="mock mode")

    local_dir = settings.local_storage_dir
    if os.path.isdir(local_dir) and not os.access(local_dir, os.W_OK):
        return ReadinessCheck(
            name="storage",
            status="error",
            error=f"Upload directory is not writable: {local_dir}",
        )
    return ReadinessCheck(
        name="storage",
        status="ok",
        error=None if settings.r2_configured else "local disk only",
    )


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
    description="Returns 200 while the process is running. Does not touch dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=settings.api_version,
        details={
            "environment": settings.environment,
            "mock_mode": _mock_modes(settings),
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 when configuration, database and storage are usable.",
    responses={
        503: {
            "description": "A dependency is unavailable",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    accounts: AccountRepositoryDep,
) -> ReadinessResponse:
    checks = [
        _check_configuration(settings),
        _check_database(settings, accounts),
        _check_storage(settings),
    ]

    ready = all(c.status == "ok" for c in checks)
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={"failed": [c.name for c in checks if c.status != "ok"]}
        )

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        version=settings.api_version,
        checks=checks,
    )
