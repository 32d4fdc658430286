"""
Solana RPC client helpers for the Token Discovery Agent.

Uses the standard JSON-RPC interface. The public
``api.mainnet-beta.solana.com`` endpoint works but is rate-limited.
Uses ``httpx`` for async HTTP with retry + exponential backoff.

Besides the client, this module holds the pure transaction-parsing helpers
shared by the on-chain scan strategy and the transaction analyzer.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterator, Optional

import httpx

from ..circuit_breaker import CircuitBreaker
from ..constants import (
    LAMPORTS_PER_SOL,
    QUOTE_MINTS,
    TOKEN_CREATION_INSTRUCTIONS,
    TOKEN_CREATION_LOG_MARKERS,
)
from ..utils import parse_datetime, safe_int
from ._retry import async_http_post_json, call_guarded

logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_BACKOFF_BASE = 1.5  # seconds


class SolanaRpcClient:
    """Async Solana JSON-RPC client."""

    def __init__(
        self,
        endpoint: str,
        timeout: int = 15,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._id_counter = 0
        self._cb = circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int = 20,
        until: Optional[str] = None,
    ) -> Optional[list[dict[str, Any]]]:
        """Return recent signature infos for *address*, newest first.

        With *until*, only signatures newer than that one are returned.
        ``None`` when the RPC endpoint could not be reached.
        """
        options: dict[str, Any] = {"limit": limit, "commitment": "confirmed"}
        if until:
            options["until"] = until
        result = await self._call("getSignaturesForAddress", [address, options])
        if result is None:
            return None
        if not isinstance(result, list):
            return []
        return [s for s in result if isinstance(s, dict) and s.get("signature")]

    async def get_transaction(self, signature: str) -> Optional[dict[str, Any]]:
        """Fetch a transaction in ``jsonParsed`` encoding, or ``None``."""
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": "confirmed",
                },
            ],
        )
        return result if isinstance(result, dict) else None

    async def get_token_largest_accounts(self, mint: str) -> list[dict[str, Any]]:
        """Return the (up to 20) largest token accounts for *mint*."""
        result = await self._call("getTokenLargestAccounts", [mint])
        if not isinstance(result, dict):
            return []
        return [a for a in result.get("value") or [] if isinstance(a, dict)]

    async def get_token_supply(self, mint: str) -> Optional[int]:
        """Return the raw (base-unit) supply of *mint*."""
        result = await self._call("getTokenSupply", [mint])
        if not isinstance(result, dict):
            return None
        return safe_int((result.get("value") or {}).get("amount"))

    async def get_mint_info(self, mint: str) -> Optional[dict[str, Any]]:
        """Return the parsed mint account (``mintAuthority``, ``freezeAuthority``, …)."""
        result = await self._call(
            "getAccountInfo", [mint, {"encoding": "jsonParsed"}]
        )
        if not isinstance(result, dict):
            return None
        try:
            info = result["value"]["data"]["parsed"]["info"]
        except (KeyError, TypeError):
            return None
        return info if isinstance(info, dict) else None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call(self, method: str, params: list[Any] | dict) -> Any:
        """JSON-RPC call with retry + exponential backoff, guarded by circuit breaker."""
        self._id_counter += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id_counter,
            "method": method,
            "params": params,
        }
        client = await self._get_client()
        return await call_guarded(
            self._cb,
            f"Solana RPC ({method})",
            lambda: async_http_post_json(
                client, self._endpoint, json_payload=payload,
                max_retries=_MAX_RETRIES, backoff_base=_BACKOFF_BASE,
                label=f"Solana RPC ({method})",
            ),
        )


# ---------------------------------------------------------------------------
# Transaction parsing helpers (pure)
# ---------------------------------------------------------------------------

def _iter_parsed_instructions(tx: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield every ``parsed`` instruction body, outer and inner."""
    message = (tx.get("transaction") or {}).get("message") or {}
    outer = message.get("instructions") or []
    inner_groups = (tx.get("meta") or {}).get("innerInstructions") or []
    inner = [ix for group in inner_groups for ix in group.get("instructions") or []]
    for ix in (*outer, *inner):
        parsed = ix.get("parsed") if isinstance(ix, dict) else None
        if isinstance(parsed, dict):
            yield parsed


def looks_like_token_creation(tx: dict[str, Any]) -> bool:
    """True when *tx* initialises a mint or logs a launchpad create."""
    if (tx.get("meta") or {}).get("err") is not None:
        return False
    for parsed in _iter_parsed_instructions(tx):
        if parsed.get("type") in TOKEN_CREATION_INSTRUCTIONS:
            return True
    logs = (tx.get("meta") or {}).get("logMessages") or []
    return any(marker in line for line in logs for marker in TOKEN_CREATION_LOG_MARKERS)


def extract_token_mints(tx: dict[str, Any]) -> list[str]:
    """Return the non-quote mints touched by *tx*, in first-seen order.

    Mints initialised by the transaction come first, followed by mints
    from ``postTokenBalances``.
    """
    mints: list[str] = []
    for parsed in _iter_parsed_instructions(tx):
        if parsed.get("type") in TOKEN_CREATION_INSTRUCTIONS:
            mint = (parsed.get("info") or {}).get("mint", "")
            if mint:
                mints.append(mint)
    for balance in (tx.get("meta") or {}).get("postTokenBalances") or []:
        mint = balance.get("mint", "") if isinstance(balance, dict) else ""
        if mint:
            mints.append(mint)
    return [m for m in dict.fromkeys(mints) if m not in QUOTE_MINTS]


def sol_movement(tx: dict[str, Any]) -> Optional[float]:
    """Total SOL moved between accounts by *tx* (fees included)."""
    meta = tx.get("meta") or {}
    pre = meta.get("preBalances") or []
    post = meta.get("postBalances") or []
    if not pre or len(pre) != len(post):
        return None
    moved = sum(abs(int(b) - int(a)) for a, b in zip(pre, post))
    # Each transfer is seen on both sides
    return moved / 2 / LAMPORTS_PER_SOL


def block_time(tx: dict[str, Any]) -> Optional[datetime]:
    return parse_datetime(tx.get("blockTime"))
