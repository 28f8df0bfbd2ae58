"""Single-request HTTP executor for resolved steps.

The executor is the downstream collaborator of the substitution engine: it
takes a step whose placeholders have already been resolved, turns it into
an :class:`HttpRequest` and sends it with ``aiohttp``. It knows nothing
about virtual users, pacing or metrics.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import quote

import aiohttp

from stepforge._internal.errors import ExecutionError
from stepforge._internal.logging import get_logger
from stepforge.scenario.substitution import encode_json

if TYPE_CHECKING:
    from stepforge._internal.types import StringMap
    from stepforge.scenario.model import Step

logger = get_logger("engine.executor")

_JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class HttpRequest:
    """A fully resolved request ready to send.

    Attributes:
        method: HTTP method (GET, POST, etc.).
        url: Absolute URL without the query string.
        headers: Request headers.
        query: Query parameters.
        body: Encoded body, or None.
        timeout: Per-request timeout in seconds; None uses the executor's.
    """

    method: str
    url: str
    headers: StringMap = field(default_factory=dict)
    query: StringMap = field(default_factory=dict)
    body: bytes | None = None
    timeout: float | None = None


@dataclass(frozen=True)
class HttpResponse:
    """What came back for one request.

    Attributes:
        status_code: HTTP status code.
        reason: Status reason phrase.
        headers: Response headers; a name may carry several values.
        body: Raw response body.
        elapsed: Seconds from send to fully read body.
    """

    status_code: int
    reason: str
    headers: dict[str, list[str]]
    body: bytes
    elapsed: float


def _fill_path_params(path: str, path_params: StringMap) -> str:
    """Replace ``{name}`` path segments with URL-quoted parameter values."""
    for name, value in path_params.items():
        path = path.replace(f"{{{name}}}", quote(value, safe=""))
    return path


def build_request(step: Step, base_url: str, *, timeout: float | None = None) -> HttpRequest:
    """Turn a resolved step into an :class:`HttpRequest`.

    String bodies are sent as UTF-8 text. Structured bodies are sent as
    JSON, adding ``Content-Type: application/json`` unless the step
    already sets a content type.

    Args:
        step: A step returned by ``apply_to_step``.
        base_url: Scenario base URL; the step path is appended to it.
        timeout: Optional per-request timeout in seconds.

    Returns:
        The request to send.

    Raises:
        SubstitutionError: If a structured body cannot be encoded as JSON.
    """
    headers = dict(step.headers or {})
    path = _fill_path_params(step.path, step.path_params or {})

    body: bytes | None = None
    if isinstance(step.body, str):
        body = step.body.encode("utf-8")
    elif step.body is not None:
        body = encode_json(step.body).encode("utf-8")
        if not any(name.lower() == "content-type" for name in headers):
            headers["Content-Type"] = _JSON_CONTENT_TYPE

    return HttpRequest(
        method=step.method,
        url=f"{base_url.rstrip('/')}{path}",
        headers=headers,
        query=dict(step.query or {}),
        body=body,
        timeout=timeout,
    )


class Executor:
    """Async HTTP executor wrapping ``aiohttp.ClientSession``.

    Cookies set by responses are kept for the lifetime of the executor, so
    one executor corresponds to one virtual user's session.

    Example::

        async with Executor(timeout=10.0) as executor:
            response = await executor.execute(build_request(step, base_url))
    """

    def __init__(self, timeout: float = 30.0) -> None:
        """Initialize the executor.

        Args:
            timeout: Default request timeout in seconds.
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> Executor:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(
            timeout=self._timeout,
            cookie_jar=aiohttp.CookieJar(unsafe=True),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def execute(self, request: HttpRequest) -> HttpResponse:
        """Send *request* and read the full response.

        Raises:
            RuntimeError: If used outside of an async context manager.
            ExecutionError: If the request fails or times out.
        """
        if self._session is None:
            msg = "Executor must be used as an async context manager"
            raise RuntimeError(msg)

        timeout = (
            aiohttp.ClientTimeout(total=request.timeout)
            if request.timeout is not None
            else self._timeout
        )

        start = time.monotonic()
        try:
            async with self._session.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.query or None,
                data=request.body,
                timeout=timeout,
            ) as resp:
                body = await resp.read()
                headers: dict[str, list[str]] = {}
                for name, value in resp.headers.items():
                    headers.setdefault(name, []).append(value)
                response = HttpResponse(
                    status_code=resp.status,
                    reason=resp.reason or "",
                    headers=headers,
                    body=body,
                    elapsed=time.monotonic() - start,
                )
        except (aiohttp.ClientError, TimeoutError) as exc:
            msg = f"{request.method} {request.url} failed: {type(exc).__name__}: {exc}"
            raise ExecutionError(msg) from exc

        logger.debug(
            "%s %s -> %d in %.1fms",
            request.method,
            request.url,
            response.status_code,
            response.elapsed * 1000,
        )
        return response
