"""
httpx client construction shared by every provider.

The returned client carries request/response event hooks that report
`HttpRequestStarted` / `HttpRequestCompleted` to a `Telemetry` instance,
with credentials masked.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Final, Mapping, Optional, Sequence

import httpx

from llm_conduit.config import DEFAULT_TIMEOUT
from llm_conduit.events import HttpRequestCompleted, HttpRequestStarted, Telemetry

__all__ = ["build_http_client", "mask_headers", "retry_times"]

_logger = logging.getLogger(__name__)

SENSITIVE_HEADERS: Final = frozenset({"authorization", "x-api-key", "x-goog-api-key"})

_STARTED_AT: Final = "llm_conduit.started_at"


def _mask(value: str, keep: int = 3) -> str:
    return value[:keep] + "*" * max(len(value) - keep, 0)


def mask_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a plain dict of *headers* with credential values masked."""
    return {
        key: _mask(value) if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def _json_or_empty(raw: bytes) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except ValueError:
        return {}
    return decoded if isinstance(decoded, dict) else {"body": decoded}


def _request_attributes(request: httpx.Request) -> dict[str, Any]:
    try:
        return _json_or_empty(request.content)
    except httpx.RequestNotRead:
        # streaming upload (multipart); body not available
        return {}


def retry_times(client_retry: Sequence[Any]) -> int:
    """Number of retries encoded in a ``(times, sleep_ms, when, throw)`` tuple."""
    if not client_retry:
        return 0
    times = client_retry[0]
    if isinstance(times, int):
        return times
    # a backoff schedule: one retry per entry
    return len(times)


def build_http_client(
    *,
    base_url: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
    token: Optional[str] = None,
    client_options: Optional[Mapping[str, Any]] = None,
    client_retry: Sequence[Any] = (),
    telemetry: Optional[Telemetry] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Build an ``httpx.AsyncClient`` for one provider request.

    Args:
        base_url: Provider base URL.
        headers: Extra default headers.
        token: Bearer token; sent as ``Authorization`` when non-empty.
        client_options: Extra ``httpx.AsyncClient`` keyword arguments
            (``timeout``, ``headers``, ...). Caller headers win.
        client_retry: ``(times, sleep_ms, when, throw)``; ``times`` becomes
            the transport's connection-retry count.
        telemetry: Receives HTTP started/completed events.
        transport: Explicit transport (tests use ``httpx.MockTransport``).
    """
    telemetry = telemetry or Telemetry()
    options = dict(client_options or {})

    merged_headers: dict[str, str] = {}
    if token:
        merged_headers["Authorization"] = f"Bearer {token}"
    merged_headers.update(headers or {})
    merged_headers.update(options.pop("headers", None) or {})

    options.setdefault("timeout", DEFAULT_TIMEOUT)
    if transport is None:
        transport = httpx.AsyncHTTPTransport(retries=retry_times(client_retry))

    async def on_request(request: httpx.Request) -> None:
        request.extensions[_STARTED_AT] = time.perf_counter()
        telemetry.emit(
            HttpRequestStarted(
                method=request.method,
                url=str(request.url),
                headers=mask_headers(request.headers),
                attributes=_request_attributes(request),
            )
        )

    async def on_response(response: httpx.Response) -> None:
        started = response.request.extensions.get(_STARTED_AT)
        duration = time.perf_counter() - started if started is not None else None

        attributes: dict[str, Any] = {}
        if "text/event-stream" not in response.headers.get("content-type", ""):
            await response.aread()
            attributes = _json_or_empty(response.content)

        telemetry.emit(
            HttpRequestCompleted(
                status_code=response.status_code,
                headers=dict(response.headers),
                attributes=attributes,
                duration=duration,
            )
        )

    kwargs: dict[str, Any] = {
        "headers": merged_headers,
        "transport": transport,
        "event_hooks": {"request": [on_request], "response": [on_response]},
        **options,
    }
    if base_url:
        kwargs["base_url"] = base_url

    _logger.debug("Building HTTP client for %s", base_url or "<no base url>")
    return httpx.AsyncClient(**kwargs)
