"""Shared test fixtures for the StepForge test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Scenario documents
# =============================================================================

SAMPLE_SCENARIO = """\
name: checkout
base_url: {base_url}
virtual_users: 5
duration: 60
variables:
  username: alice
  item_id: "42"
steps:
  - request: POST /auth/login
    headers:
      Content-Type: application/json
    body:
      username: ${{username}}
      quantity: 2
    save_to_context:
      token: response.token
    next_steps:
      - request: GET /echo/items/${{item_id}}
        status_codes: ["2xx", 201]
        map:
          response.token: headers.Authorization
  - request: GET /echo/items/${{item_id}}
    headers:
      Authorization: Bearer ${{token}}
    query:
      expand: ${{username}}
    delay: 250ms
"""


@pytest.fixture
def sample_scenario_text() -> str:
    """A valid scenario document pointing at an unreachable placeholder host."""
    return SAMPLE_SCENARIO.format(base_url="http://localhost:8080")


@pytest.fixture
def sample_scenario_path(tmp_path: Path, sample_scenario_text: str) -> Path:
    """Write the sample scenario to a temporary file."""
    path = tmp_path / "checkout.yaml"
    path.write_text(sample_scenario_text)
    return path


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Echo HTTP Server handlers
# =============================================================================


async def _echo_handler(request: web.Request) -> web.Response:
    """Echo back request details as JSON."""
    body = await request.read()
    return web.json_response(
        {
            "method": request.method,
            "path": str(request.path),
            "query": dict(request.query),
            "headers": dict(request.headers),
            "body": body.decode("utf-8", errors="replace"),
        },
        status=200,
    )


async def _delay_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _error_handler(request: web.Request) -> web.Response:
    """Return a configurable error status (query param: ?status=500)."""
    status = int(request.query.get("status", "500"))
    return web.json_response({"error": True}, status=status)


async def _login_handler(request: web.Request) -> web.Response:
    """Simulate a login endpoint that returns a token and sets a cookie."""
    response = web.json_response({"token": "test-token-12345"}, status=201)
    response.set_cookie("session", "abc")
    return response


async def _whoami_handler(request: web.Request) -> web.Response:
    """Report the session cookie sent with the request."""
    return web.json_response({"session": request.cookies.get("session")})


def _create_echo_app() -> web.Application:
    """Build the echo server app with all test routes."""
    app = web.Application()
    app.router.add_route("*", "/echo{path:.*}", _echo_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_route("*", "/error", _error_handler)
    app.router.add_post("/auth/login", _login_handler)
    app.router.add_get("/whoami", _whoami_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def echo_server() -> AsyncIterator[str]:
    """Aiohttp echo server fixture.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    app = _create_echo_app()
    port = _get_free_port()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def sync_echo_server() -> Iterator[str]:
    """Echo server running in a background thread for sync tests.

    The CLI drives its own event loop via ``asyncio.run``, so CLI tests
    need a server that lives on a different thread.
    """
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        app = _create_echo_app()
        runner = web.AppRunner(app)
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)
