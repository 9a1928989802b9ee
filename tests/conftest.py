from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from magento_admin_mcp import config
from magento_admin_mcp.app import AppContext, build_app_context, get_app_context
from magento_admin_mcp.config import Settings, StorageSettings
from magento_admin_mcp.tools import build_dispatcher, get_dispatcher
from magento_admin_mcp.tools.dispatcher import Dispatcher

BASE_URL = "https://shop.example.com"

Responder = Callable[[httpx.Request], Any]


class FakeHTTP:
    """Route table for ``httpx.MockTransport``; records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.transport = httpx.MockTransport(self._handle)

    def route(self, method: str, path: str, body: Any = None, status: int = 200) -> None:
        self._routes[(method, path)] = (status, body)

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if (method is None or request.method == method)
            and (path is None or request.url.path == path)
        ]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self._routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": f"No route for {request.url.path}"})
        status, body = route
        if callable(body):
            body = body(request)
        if isinstance(body, httpx.Response):
            return body
        return httpx.Response(status, json=body)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)


@pytest.fixture(autouse=True)
def _reset_cached_singletons() -> None:
    config._load_settings_cached.cache_clear()
    get_app_context.cache_clear()
    get_dispatcher.cache_clear()
    yield
    config._load_settings_cached.cache_clear()
    get_app_context.cache_clear()
    get_dispatcher.cache_clear()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        storage=StorageSettings(
            audit_log_path=str(tmp_path / "audit.jsonl"),
            idempotency_path=str(tmp_path / "idempotency.json"),
        )
    )


@pytest.fixture
def magento() -> FakeHTTP:
    return FakeHTTP()


@pytest.fixture
def fastly() -> FakeHTTP:
    return FakeHTTP()


@pytest.fixture
def app(settings: Settings, magento: FakeHTTP, fastly: FakeHTTP) -> AppContext:
    return build_app_context(
        settings,
        magento_transport=magento.transport,
        fastly_transport=fastly.transport,
    )


@pytest.fixture
def logged_in(app: AppContext) -> AppContext:
    app.sessions.create("default", BASE_URL, "admin-token", "admin")
    return app


@pytest.fixture
def dispatcher(app: AppContext) -> Dispatcher:
    return build_dispatcher(app)


def read_audit(app: AppContext) -> list[dict[str, Any]]:
    return app.audit.read_recent(1000)
