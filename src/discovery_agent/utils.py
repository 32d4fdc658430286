"""
Shared utilities for the Token Discovery Agent.

- ``parse_datetime``: unified datetime parsing for upstream payloads
  (ISO strings, epoch seconds, epoch milliseconds)
- ``utc_now``: the default wall clock injected into pipeline components
- ``elapsed_ms``: millisecond difference between two instants
- ``is_valid_address``: Solana base58 address check
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

# Solana addresses are 32-44 base58 chars
_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

# Epoch values above this are treated as milliseconds (year 2286 in seconds).
_EPOCH_MS_THRESHOLD = 10_000_000_000


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC ``datetime``."""
    return datetime.now(tz=timezone.utc)


def elapsed_ms(start: datetime, end: datetime) -> float:
    """Return ``end - start`` in milliseconds."""
    return (end - start).total_seconds() * 1000.0


def is_valid_address(address: str) -> bool:
    """True when *address* looks like a Solana public key."""
    return bool(address) and _BASE58_RE.match(address) is not None


def parse_datetime(value: object) -> Optional[datetime]:
    """Convert a value to a timezone-aware ``datetime`` (UTC).

    Accepted inputs:

    - ``None`` → ``None``
    - ``datetime`` → pass-through, with ``tzinfo`` set to UTC if naïve
    - ``str`` → ISO-format (handles both ``"Z"`` and ``"+00:00"`` suffixes)
    - ``int`` / ``float`` → Unix epoch, in seconds or milliseconds
      (DexScreener ``pairCreatedAt`` and Jupiter timestamps are milliseconds)
    - Anything else → ``None``
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    if isinstance(value, str):
        try:
            cleaned = value.replace("Z", "+00:00") if value.endswith("Z") else value
            dt = datetime.fromisoformat(cleaned)
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt
        except (ValueError, TypeError):
            return None

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
        if abs(seconds) > _EPOCH_MS_THRESHOLD:
            seconds /= 1000.0
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (ValueError, OSError, OverflowError):
            return None

    return None


def safe_float(val: Any) -> Optional[float]:
    """Try to cast *val* to float, returning ``None`` on failure."""
    if val is None:
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def safe_int(val: Any) -> Optional[int]:
    """Try to cast *val* to int, returning ``None`` on failure."""
    if val is None:
        return None
    try:
        return int(float(val))
    except (TypeError, ValueError, OverflowError):
        return None
