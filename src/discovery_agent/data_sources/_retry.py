"""
Shared async retry utility with exponential backoff.

Used by every upstream client (DexScreener, Solana RPC, Jupiter) so that
retry, ``Retry-After`` handling and circuit-breaker fast-fail behave the
same way everywhere.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from ..circuit_breaker import CircuitBreaker, CircuitOpenError

logger = logging.getLogger(__name__)


def _parse_retry_after(resp: httpx.Response, default: float) -> float:
    """Extract wait time from a ``Retry-After`` header, or use *default*.

    Only the integer-seconds form is honoured; HTTP-dates fall back to
    *default*.
    """
    raw = resp.headers.get("retry-after")
    if raw is not None:
        try:
            return max(float(raw), 0.5)
        except (ValueError, TypeError):
            pass
    return default


async def _request_json(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    url: str,
    max_retries: int,
    backoff_base: float,
    label: str,
) -> Optional[Any]:
    """Run *send* until it yields a JSON body, retrying 429 / transient errors.

    403 short-circuits to ``None``; exhausted retries return ``None``.
    """
    for attempt in range(max_retries):
        delay = backoff_base * (2 ** attempt)
        try:
            resp = await send()
            if resp.status_code == 429:
                wait = _parse_retry_after(resp, delay)
                logger.warning("%s rate-limited, retry in %.1fs", label, wait)
                await asyncio.sleep(wait)
                continue
            if resp.status_code == 403:
                logger.warning("%s 403 for %s – endpoint refused the request", label, url)
                return None
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("%s HTTP %s for %s", label, exc.response.status_code, url)
        except httpx.RequestError as exc:
            logger.warning("%s request failed: %s – %s", label, url, exc)
        if attempt < max_retries - 1:
            await asyncio.sleep(delay)
    return None


async def async_http_get(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[dict[str, Any]] = None,
    max_retries: int = 3,
    backoff_base: float = 1.0,
    label: str = "HTTP",
) -> Optional[Any]:
    """GET *url* and return parsed JSON, or ``None`` once retries are exhausted."""
    return await _request_json(
        lambda: client.get(url, params=params),
        url=url, max_retries=max_retries, backoff_base=backoff_base, label=label,
    )


async def async_http_post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    json_payload: Any,
    max_retries: int = 3,
    backoff_base: float = 1.5,
    label: str = "RPC",
) -> Optional[Any]:
    """POST a JSON-RPC *json_payload* and return its ``result`` member.

    RPC-level ``error`` bodies are logged and yield ``None``.
    """
    body = await _request_json(
        lambda: client.post(url, json=json_payload),
        url=url, max_retries=max_retries, backoff_base=backoff_base, label=label,
    )
    if body is None:
        return None
    if isinstance(body, dict):
        if "error" in body:
            logger.warning("%s error: %s", label, body["error"])
            return None
        return body.get("result", body)
    return body


async def call_guarded(
    breaker: Optional[CircuitBreaker],
    label: str,
    func: Callable[[], Awaitable[Optional[Any]]],
) -> Optional[Any]:
    """Run *func* through *breaker*, mapping every failure to ``None``.

    A ``None`` from *func* counts as a breaker failure; an open circuit
    fast-fails without calling *func*.
    """
    async def _do() -> Any:
        result = await func()
        if result is None:
            raise httpx.RequestError(f"{label}: all retries exhausted")
        return result

    if breaker is None:
        return await func()
    try:
        return await breaker.call(_do)
    except CircuitOpenError:
        logger.warning("%s circuit OPEN – fast-failing", label)
        return None
    except httpx.HTTPError:
        return None
