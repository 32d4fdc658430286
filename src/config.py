"""
Project configuration file for the Token Discovery Agent.

This module centralises all user-modifiable settings such as upstream
endpoints, polling intervals, cache and queue sizing, scoring weights and
other options.  You can edit these values directly or set environment
variables to override them.
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _parse_float(name: str, default: str, *, low: float = 0.0, high: float = 1.0) -> float:
    """Parse an env var as a float and validate it within [low, high]."""
    raw = os.getenv(name, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
        value = float(default)
    if not (low <= value <= high):
        logger.warning("%s=%.4f is outside [%.1f, %.1f] – clamped", name, value, low, high)
        value = max(low, min(value, high))
    return value


def _parse_int(
    name: str, default: str, *, minimum: int = 1, maximum: int | None = None
) -> int:
    """Parse an env var as an int and enforce a minimum (and optional maximum)."""
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
        value = int(default)
    if value < minimum:
        logger.warning("%s=%d is below minimum %d – clamped", name, value, minimum)
        value = minimum
    if maximum is not None and value > maximum:
        logger.warning("%s=%d is above maximum %d – clamped", name, value, maximum)
        value = maximum
    return value


def _parse_bool(name: str, default: str) -> bool:
    """Parse an env var as a boolean (``1/true/yes/on`` are truthy)."""
    raw = os.getenv(name, default).strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off", ""}:
        return False
    logger.error("Invalid value for %s: %r – using default %s", name, raw, default)
    return default.strip().lower() in {"1", "true", "yes", "on"}


def _parse_list(name: str, default: str) -> list[str]:
    """Parse a comma-separated env var into a list of non-empty, lower-cased items."""
    return [
        item.strip().lower()
        for item in os.getenv(name, default).split(",")
        if item.strip()
    ]


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------
ENABLED_SOURCES: list[str] = _parse_list(
    "ENABLED_SOURCES", "websocket,dexscreener,blockchain,jupiter"
)

# ---------------------------------------------------------------------------
# Upstream endpoints
# ---------------------------------------------------------------------------
SOLANA_RPC_ENDPOINT: str = os.getenv(
    "SOLANA_RPC_ENDPOINT",
    "https://api.mainnet-beta.solana.com",
)
DEXSCREENER_BASE_URL: str = os.getenv(
    "DEXSCREENER_BASE_URL",
    "https://api.dexscreener.com",
)
JUPITER_BASE_URL: str = os.getenv("JUPITER_BASE_URL", "https://lite-api.jup.ag")
PUMPPORTAL_WS_URL: str = os.getenv("PUMPPORTAL_WS_URL", "wss://pumpportal.fun/api/data")

# ---------------------------------------------------------------------------
# Strategy timing
# ---------------------------------------------------------------------------
SCAN_INTERVAL_SECONDS: int = _parse_int("SCAN_INTERVAL_SECONDS", "30", minimum=1)
CHAIN_SCAN_INTERVAL_SECONDS: int = _parse_int("CHAIN_SCAN_INTERVAL_SECONDS", "15", minimum=1)
CHAIN_SCAN_SIGNATURE_LIMIT: int = _parse_int(
    "CHAIN_SCAN_SIGNATURE_LIMIT", "20", minimum=1, maximum=1000
)
CHAIN_SCAN_INSPECT_LIMIT: int = _parse_int("CHAIN_SCAN_INSPECT_LIMIT", "5", minimum=0)
MAX_POLL_BACKOFF_SECONDS: int = _parse_int("MAX_POLL_BACKOFF_SECONDS", "300", minimum=1)
WS_RECONNECT_INTERVAL_SECONDS: float = _parse_float(
    "WS_RECONNECT_INTERVAL_SECONDS", "5", low=0.1, high=300.0
)
WS_MAX_RECONNECT_ATTEMPTS: int = _parse_int("WS_MAX_RECONNECT_ATTEMPTS", "10", minimum=1)

# ---------------------------------------------------------------------------
# Freshness cache
# ---------------------------------------------------------------------------
CACHE_TTL_SECONDS: int = _parse_int("CACHE_TTL_SECONDS", "300", minimum=1)
CACHE_SWEEP_INTERVAL_SECONDS: int = _parse_int("CACHE_SWEEP_INTERVAL_SECONDS", "60", minimum=1)
CACHE_MAX_ENTRIES: int = _parse_int("CACHE_MAX_ENTRIES", "1000", minimum=1)

# ---------------------------------------------------------------------------
# Analysis work queue
# ---------------------------------------------------------------------------
QUEUE_BATCH_SIZE: int = _parse_int("QUEUE_BATCH_SIZE", "5", minimum=1, maximum=50)
QUEUE_TICK_SECONDS: float = _parse_float("QUEUE_TICK_SECONDS", "1.0", low=0.01, high=60.0)
SEEN_SIGNATURES_HIGH: int = _parse_int("SEEN_SIGNATURES_HIGH", "10000", minimum=2)
SEEN_SIGNATURES_LOW: int = _parse_int("SEEN_SIGNATURES_LOW", "5000", minimum=1)
if SEEN_SIGNATURES_LOW >= SEEN_SIGNATURES_HIGH:
    logger.warning(
        "SEEN_SIGNATURES_LOW=%d must be below SEEN_SIGNATURES_HIGH=%d – halved",
        SEEN_SIGNATURES_LOW,
        SEEN_SIGNATURES_HIGH,
    )
    SEEN_SIGNATURES_LOW = SEEN_SIGNATURES_HIGH // 2

# ---------------------------------------------------------------------------
# Enrichment / security gate
# ---------------------------------------------------------------------------
ENABLE_MARKET_ENRICHMENT: bool = _parse_bool("ENABLE_MARKET_ENRICHMENT", "true")
ENRICHMENT_TIMEOUT_SECONDS: float = _parse_float(
    "ENRICHMENT_TIMEOUT_SECONDS", "8", low=0.5, high=120.0
)
ENABLE_SECURITY_GATE: bool = _parse_bool("ENABLE_SECURITY_GATE", "false")
SECURITY_MIN_SCORE: float = _parse_float("SECURITY_MIN_SCORE", "25", low=0.0, high=100.0)
SECURITY_TIMEOUT_SECONDS: float = _parse_float(
    "SECURITY_TIMEOUT_SECONDS", "8", low=0.5, high=120.0
)

# ---------------------------------------------------------------------------
# Priority weights  (summed then capped at 10)
# ---------------------------------------------------------------------------
PRIORITY_PUMP: int = _parse_int("PRIORITY_PUMP", "10", minimum=0)
PRIORITY_NEW: int = _parse_int("PRIORITY_NEW", "8", minimum=0)
PRIORITY_VOLUME: int = _parse_int("PRIORITY_VOLUME", "7", minimum=0)
PRIORITY_LIQUIDITY: int = _parse_int("PRIORITY_LIQUIDITY", "5", minimum=0)
PRIORITY_LOW_AGE: int = _parse_int("PRIORITY_LOW_AGE", "6", minimum=0)

# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------
REQUEST_TIMEOUT: int = _parse_int("REQUEST_TIMEOUT", "15", minimum=1)
ANALYSIS_TIMEOUT_SECONDS: int = _parse_int("ANALYSIS_TIMEOUT_SECONDS", "20", minimum=1)
SUBSCRIBER_QUEUE_SIZE: int = _parse_int("SUBSCRIBER_QUEUE_SIZE", "1000", minimum=1)
STOP_TIMEOUT_SECONDS: float = _parse_float("STOP_TIMEOUT_SECONDS", "10", low=0.1, high=300.0)

# ---------------------------------------------------------------------------
# Sentry (error tracking)
# ---------------------------------------------------------------------------
SENTRY_DSN: str = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT: str = os.getenv("SENTRY_ENVIRONMENT", "production")
SENTRY_TRACES_SAMPLE_RATE: float = _parse_float(
    "SENTRY_TRACES_SAMPLE_RATE", "0.1", low=0.0, high=1.0
)

# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------
CB_FAILURE_THRESHOLD: int = _parse_int("CB_FAILURE_THRESHOLD", "8", minimum=1)
CB_RECOVERY_TIMEOUT: float = _parse_float("CB_RECOVERY_TIMEOUT", "60", low=1.0, high=3600.0)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
