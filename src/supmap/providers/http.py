"""Resilient fetch layer: per-call deadline, exponential-backoff retry, JSON client."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx

from supmap.core.errors import FetchTimeoutError, NetworkError, SupmapError

log = logging.getLogger(__name__)

T = TypeVar("T")


async def fetch_with_timeout(
    client: httpx.AsyncClient, request: httpx.Request, timeout_s: float
) -> httpx.Response:
    """Send ``request`` and abort it if no full response arrives within ``timeout_s``.

    Cancelling ``client.send`` closes the underlying connection, so nothing
    is left open on the timeout path.
    """
    try:
        return await asyncio.wait_for(client.send(request), timeout=timeout_s)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise FetchTimeoutError(
            f"{request.method} {request.url} timed out after {timeout_s:.1f}s"
        ) from e


async def fetch_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    initial_delay_s: float,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``operation``; on any error retry up to ``max_retries`` times.

    The delay doubles after every failed attempt. Every exception type is
    retried the same way (a 4xx is retried like a dropped connection).
    The last error is re-raised once retries are exhausted.
    """
    delay = initial_delay_s
    last_err: Optional[Exception] = None
    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            last_err = e
            if attempt >= max_retries:
                break
            log.warning(
                "Attempt %d/%d failed (%s), retrying in %.2fs",
                attempt + 1, max_retries + 1, e, delay,
            )
            await sleep(delay)
            delay *= 2
    log.error("Giving up after %d attempt(s): %s", max_retries + 1, last_err)
    raise last_err if last_err else RuntimeError("fetch_with_retry made no attempt")


@dataclass
class HTTPClient:
    user_agent: str
    timeout_s: float = 10.0
    max_retries: int = 2
    initial_delay_s: float = 0.5
    base_url: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    transport: Optional[httpx.AsyncBaseTransport] = None

    def __post_init__(self) -> None:
        self.s = httpx.AsyncClient(
            base_url=self.base_url,
            transport=self.transport,
            headers={
                "User-Agent": self.user_agent,
                "Accept": "application/json",
                **self.headers,
            },
        )

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        timeout_s: Optional[float] = None,
    ) -> Any:
        timeout = timeout_s if timeout_s is not None else self.timeout_s
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        async def attempt() -> Any:
            request = self.s.build_request(method, url, params=params, json=json)
            r = await fetch_with_timeout(self.s, request, timeout)
            r.raise_for_status()
            if not r.content:
                return None
            if "json" not in r.headers.get("content-type", ""):
                return r.text
            return r.json()

        try:
            return await fetch_with_retry(attempt, self.max_retries, self.initial_delay_s)
        except SupmapError:
            raise
        except Exception as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        return await self.request_json("GET", url, **kwargs)

    async def post_json(self, url: str, body: Any, **kwargs: Any) -> Any:
        return await self.request_json("POST", url, json=body, **kwargs)

    async def put_json(self, url: str, body: Any, **kwargs: Any) -> Any:
        return await self.request_json("PUT", url, json=body, **kwargs)

    async def aclose(self) -> None:
        await self.s.aclose()

    async def __aenter__(self) -> HTTPClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
