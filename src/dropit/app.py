"""Application entry point: the DropIt HTTP server.

Configures:
- **structlog** with JSON rendering (production) or colored console (development),
  with ERROR events forwarded to Sentry when ``SENTRY_DSN`` is set
- **Services**: the Vapi client, the negotiation registry and tracker, and the
  auth collaborator, shared through ``app.state.services``
- **HTTP surface**: negotiation and auth routers, screenshot uploads under
  ``/uploads``, health checks, Prometheus ``/metrics``, request IDs, CORS
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from dropit.api.errors import register_exception_handlers
from dropit.api.routes import router as negotiation_router
from dropit.api.uploads import UPLOADS_URL_PREFIX
from dropit.auth.routes import router as auth_router
from dropit.auth.service import AuthService
from dropit.config import Settings, get_settings, validate_credentials
from dropit.domain.errors import ProviderError
from dropit.health import register_health_routes
from dropit.observability.metrics import setup_metrics
from dropit.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from dropit.observability.sentry import get_sentry_processor, init_sentry
from dropit.provider.client import VapiClient
from dropit.tracker.registry import NegotiationRegistry
from dropit.tracker.service import NegotiationService

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry: Insert the Sentry processor so ERROR events are reported.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
    ]
    if sentry:
        shared_processors.append(get_sentry_processor())
    shared_processors += [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        shared_processors.append(structlog.processors.dict_tracebacks)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Creates the Vapi client, the in-memory negotiation registry, the
    ``NegotiationService`` that drives calls, and the ``AuthService``.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    provider = VapiClient.from_settings(settings)
    registry = NegotiationRegistry()

    services: dict[str, Any] = {
        "_settings": settings,
        "provider": provider,
        "registry": registry,
        "negotiations": NegotiationService(registry, provider, settings),
        "auth": AuthService(settings),
    }
    logger.info(
        "Services initialized",
        agent_config_mode=settings.agent_config_mode,
        poll_interval_seconds=settings.poll_interval_seconds,
    )
    return services


async def resolve_dial_out_number(services: dict[str, Any], settings: Settings) -> str | None:
    """Look up the provider id of ``AGENT_PHONE_NUMBER`` once at startup.

    Failure is logged, not raised: the server still starts and ``/ready``
    reports the number as unresolved.
    """
    provider: VapiClient = services["provider"]
    if not settings.agent_phone_number:
        logger.error("AGENT_PHONE_NUMBER not set, calls cannot be placed")
        return None
    try:
        return await provider.resolve_phone_number_id(settings.agent_phone_number)
    except ProviderError as exc:
        logger.error("Could not resolve dial-out number", error=str(exc))
        return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On startup: creates the upload directory and resolves the dial-out number.
    On shutdown: stops every polling loop and closes the provider client.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    # Startup
    services = app.state.services
    settings: Settings = app.state.settings
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    await resolve_dial_out_number(services, settings)
    logger.info("FastAPI application starting")
    yield
    # Shutdown
    negotiations = services.get("negotiations")
    if negotiations is not None:
        await negotiations.shutdown()
    provider = services.get("provider")
    if provider is not None:
        await provider.aclose()
        logger.info("Provider client closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, routers, and middleware.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    settings: Settings = services.get("_settings") or get_settings()

    fastapi_app = FastAPI(title="DropIt", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = settings

    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    register_exception_handlers(fastapi_app)
    fastapi_app.include_router(negotiation_router)
    fastapi_app.include_router(auth_router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    fastapi_app.mount(
        UPLOADS_URL_PREFIX,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )
    return fastapi_app


async def main() -> None:
    """Main entry point.

    1. Configure logging and Sentry
    2. Validate credentials
    3. Initialize services and create the FastAPI app
    4. Serve with uvicorn until interrupted
    """
    settings = get_settings()
    sentry_enabled = init_sentry(
        settings.sentry_dsn, environment="production" if settings.production else "development"
    )
    configure_logging(production=settings.production, sentry=sentry_enabled)
    logger.info("Application starting")

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host=settings.server_host,
        port=settings.server_port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
