from __future__ import annotations

import asyncio
import socket

import pytest
from aiohttp import web

from webhook_manager.domain.models import ConnectionConfig
from webhook_manager.main import create_app
from webhook_manager.services.probe import ProbeEngine
from webhook_manager.services.registry import WebhookRegistry, make_backend_factory
from webhook_manager.settings import Settings

from tests.utils import API_BASE, API_KEY, ENVIRONMENT_ID, FakeManagementApi


@pytest.fixture
def settings() -> Settings:
    return Settings(
        management_api_url=API_BASE,
        management_api_key=None,
        environment_id=None,
        host_context_url=None,
        host_environment_id=None,
        simulated_latency_seconds=0.0,
        probe_timeout_seconds=2.0,
        auto_test_on_create=False,
    )


@pytest.fixture
def probe_engine() -> ProbeEngine:
    return ProbeEngine(timeout_seconds=2.0)


@pytest.fixture
def registry(settings, probe_engine) -> WebhookRegistry:
    """Local-mode registry (no credential)."""
    return WebhookRegistry(
        probe=probe_engine,
        backend_factory=make_backend_factory(settings),
    )


@pytest.fixture
def fake_api() -> FakeManagementApi:
    return FakeManagementApi()


@pytest.fixture
def remote_registry(settings, probe_engine, fake_api) -> WebhookRegistry:
    """Registry wired to the fake Management API."""
    return WebhookRegistry(
        probe=probe_engine,
        backend_factory=make_backend_factory(settings, transport=fake_api.transport),
        connection=ConnectionConfig(api_key=API_KEY, environment_id=ENVIRONMENT_ID),
    )


@pytest.fixture
async def hook_server(aiohttp_server):
    """Receiver for probe requests.

    ``/ok`` records and accepts, ``/status/{code}`` answers with that status and
    ``/slow`` answers after one second.
    """
    received: list[tuple[dict[str, str], dict]] = []

    async def ok(request: web.Request) -> web.Response:
        received.append((dict(request.headers), await request.json()))
        return web.Response(text="received")

    async def status(request: web.Request) -> web.Response:
        return web.Response(status=int(request.match_info["code"]), text="rejected")

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(1.0)
        return web.Response(text="late")

    app = web.Application()
    app.router.add_post("/ok", ok)
    app.router.add_post("/status/{code}", status)
    app.router.add_post("/slow", slow)
    server = await aiohttp_server(app)
    server.received = received
    return server


@pytest.fixture
def closed_port_url() -> str:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/hook"


@pytest.fixture
async def service_client(aiohttp_client, settings, registry):
    """Client for calling the service API (local mode)."""
    app = create_app(settings, registry=registry)
    return await aiohttp_client(app)
