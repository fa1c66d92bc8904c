"""aiohttp application entrypoint."""
from __future__ import annotations

import structlog
from aiohttp import web
from aiohttp_cors import ResourceOptions, setup as cors_setup

from webhook_manager.api.router import setup_routes
from webhook_manager.logging_config import configure_logging
from webhook_manager.middleware.trace import create_trace_middleware
from webhook_manager.otel import setup_otel, shutdown_otel
from webhook_manager.services.dependencies import REGISTRY_KEY, SETTINGS_KEY
from webhook_manager.services.host_context import load_host_context
from webhook_manager.services.registry import WebhookRegistry
from webhook_manager.settings import Settings, get_settings

logger = structlog.get_logger(__name__)

_ALLOWED_HEADERS = (
    "Accept",
    "Content-Type",
    "Authorization",
    "X-Trace-Id",
    "X-Request-Id",
)

_EXPOSED_HEADERS = (
    "X-Trace-Id",
    "X-Request-Id",
)


async def healthcheck(request: web.Request) -> web.Response:
    settings: Settings = request.app[SETTINGS_KEY]
    registry: WebhookRegistry = request.app[REGISTRY_KEY]
    return web.json_response(
        {
            "status": "ok",
            "service": settings.app_name,
            "env": settings.env,
            "mode": registry.mode.value,
        }
    )


async def start_probe_session(app: web.Application) -> None:
    await app[REGISTRY_KEY].probe_engine.start()


async def close_probe_session(app: web.Application) -> None:
    await app[REGISTRY_KEY].probe_engine.close()


async def init_host_context(app: web.Application) -> None:
    """Load the host platform context and hand it to the registry."""
    context = await load_host_context(app[SETTINGS_KEY])
    if context.error:
        logger.warning("host context unavailable", error=context.error)
    app[REGISTRY_KEY].apply_host_context(context)


def create_app(
    settings: Settings | None = None,
    *,
    registry: WebhookRegistry | None = None,
) -> web.Application:
    settings = settings or get_settings()
    app = web.Application()
    app[SETTINGS_KEY] = settings
    app[REGISTRY_KEY] = registry or WebhookRegistry.from_settings(settings)

    app.middlewares.append(create_trace_middleware(settings.app_name))

    cors = cors_setup(
        app,
        defaults={
            origin: ResourceOptions(
                allow_credentials=True,
                expose_headers=_EXPOSED_HEADERS,
                allow_headers=_ALLOWED_HEADERS,
                allow_methods=("GET", "POST", "PUT", "DELETE", "OPTIONS"),
            )
            for origin in settings.cors_allowed_origins
        },
    )

    app.router.add_get("/health", healthcheck)
    setup_routes(app)
    setup_otel(app, settings)

    app.on_startup.append(start_probe_session)
    app.on_startup.append(init_host_context)
    app.on_cleanup.append(close_probe_session)
    app.on_cleanup.append(shutdown_otel)

    for route in list(app.router.routes()):
        cors.add(route)

    return app


def main() -> None:
    configure_logging()
    settings = get_settings()
    web.run_app(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
