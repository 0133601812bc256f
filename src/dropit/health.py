"""Health and readiness endpoints for container orchestration.

- ``GET /health``: liveness.  200 while the process is running.
- ``GET /ready``: readiness.  200 only when the voice provider client exists
  and the dial-out number has been resolved; 503 with per-check details
  otherwise.  Without a resolved number every call placement would fail.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*.

    Args:
        app: The FastAPI application instance.
    """

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check -- always returns 200 if the process is running."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness check -- checks the provider client and dial-out number."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        provider = services.get("provider")
        checks["provider"] = "ok" if provider is not None else "fail"

        phone_number_id = getattr(provider, "phone_number_id", None)
        checks["dial_out_number"] = "ok" if phone_number_id else "fail"

        checks["tracker"] = "ok" if services.get("negotiations") is not None else "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
