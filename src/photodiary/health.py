"""
Health checks for the photodiary image proxy.

Liveness only proves the process answers; readiness additionally checks
the Drive connection and the environment configuration.
"""

import os
import platform
import time
from typing import Any

from . import __version__
from .config import get_environment, is_production
from .logging_config import get_logger
from .monitoring import PerformanceMonitor
from .services.drive import DriveService

logger = get_logger(__name__)


def check_source_health(source: DriveService | None) -> dict[str, Any]:
    """Check Google Drive connectivity."""
    if source is None:
        return {"status": "unhealthy", "message": "Drive service not initialized", "timestamp": time.time()}

    if source.check_connection():
        return {"status": "healthy", "message": "Drive connection successful", "timestamp": time.time()}
    return {"status": "unhealthy", "message": "Drive connection failed", "timestamp": time.time()}


def check_environment_health() -> dict[str, Any]:
    """Check that production has what it needs to authenticate and verify sessions."""
    missing_vars = []

    if is_production():
        if not os.getenv("SESSION_SECRET"):
            missing_vars.append("SESSION_SECRET")
        has_service_account = os.getenv("GOOGLE_CLIENT_EMAIL") and os.getenv("GOOGLE_PRIVATE_KEY")
        if not has_service_account and not os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
            missing_vars.append("GOOGLE_CLIENT_EMAIL/GOOGLE_PRIVATE_KEY")

    if missing_vars:
        return {
            "status": "unhealthy",
            "message": f"Missing environment variables: {', '.join(missing_vars)}",
            "timestamp": time.time(),
            "missing_vars": missing_vars,
        }

    return {
        "status": "healthy",
        "message": "Environment configuration is valid",
        "timestamp": time.time(),
        "environment": get_environment(),
    }


def get_application_info(started_at: float) -> dict[str, Any]:
    return {
        "name": "photodiary",
        "version": __version__,
        "environment": get_environment(),
        "uptime": time.time() - started_at,
        "python_version": platform.python_version(),
        "features": {
            "googleDrive": "enabled",
            "heicConversion": "enabled",
            "imageResizing": "enabled",
        },
    }


def check_liveness(started_at: float) -> dict[str, Any]:
    return {"status": "alive", "timestamp": time.time(), "uptime": time.time() - started_at}


def check_readiness(source: DriveService | None) -> dict[str, Any]:
    """Readiness check for Cloud Run / Kubernetes probes."""
    checks = {
        "source": check_source_health(source),
        "environment": check_environment_health(),
    }
    is_ready = all(check["status"] == "healthy" for check in checks.values())
    return {"status": "ready" if is_ready else "not_ready", "timestamp": time.time(), "checks": checks}


def perform_health_check(
    source: DriveService | None, monitor: PerformanceMonitor, started_at: float
) -> dict[str, Any]:
    """Perform the full health check."""
    start_time = time.time()

    checks = {
        "source": check_source_health(source),
        "environment": check_environment_health(),
    }
    unhealthy_services = [name for name, check in checks.items() if check["status"] != "healthy"]
    overall_status = "unhealthy" if unhealthy_services else "healthy"

    health_response: dict[str, Any] = {
        "status": overall_status,
        "timestamp": time.time(),
        "duration_ms": round((time.time() - start_time) * 1000, 2),
        "application": get_application_info(started_at),
        "checks": checks,
        "performance": monitor.summary(),
    }
    if unhealthy_services:
        health_response["unhealthy_services"] = unhealthy_services

    logger.info(
        "health_check_completed",
        status=overall_status,
        duration_ms=health_response["duration_ms"],
        unhealthy_services=unhealthy_services,
    )
    return health_response
