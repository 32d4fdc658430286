"""
Security-analysis collaborator.

The pipeline only consumes ``SecurityVerdict`` objects; any deterministic
implementation of ``SecurityAnalyzer`` can stand behind the gate.  The
bundled ``HolderConcentrationAnalyzer`` derives its verdict from on-chain
facts only:

  - Mint authority still set           → +25 risk
  - Freeze authority still set         → +25 risk
  - Top-10 accounts hold ≥ 80% supply  → +40 risk (≥ 60% → +20)
  - Top-1 account holds ≥ 50% supply   → +10 risk

The verdict ``score`` is ``100 - risk`` (higher is safer) and the token
passes when the score reaches ``min_score``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

from config import SECURITY_MIN_SCORE, SECURITY_TIMEOUT_SECONDS

from .data_sources.solana_rpc import SolanaRpcClient
from .models import SecurityVerdict
from .utils import safe_int

logger = logging.getLogger(__name__)


class SecurityAnalyzer(Protocol):
    async def analyze(self, address: str) -> Optional[SecurityVerdict]:
        ...


class HolderConcentrationAnalyzer:
    """Deterministic verdict from mint authorities and holder concentration."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        min_score: float = SECURITY_MIN_SCORE,
        timeout: float = SECURITY_TIMEOUT_SECONDS,
    ) -> None:
        self._rpc = rpc
        self._min_score = min_score
        self._timeout = timeout

    async def analyze(self, address: str) -> Optional[SecurityVerdict]:
        """Return a verdict for *address*, or ``None`` when on-chain data is unavailable."""
        try:
            mint_info, largest, supply = await asyncio.wait_for(
                asyncio.gather(
                    self._rpc.get_mint_info(address),
                    self._rpc.get_token_largest_accounts(address),
                    self._rpc.get_token_supply(address),
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.debug("Security analysis timed out for %s", address)
            return None
        if mint_info is None and not largest:
            return None
        return build_verdict(mint_info, largest, supply, self._min_score)


def build_verdict(
    mint_info: Optional[dict[str, Any]],
    largest: list[dict[str, Any]],
    supply: Optional[int],
    min_score: float,
) -> SecurityVerdict:
    risk = 0
    flags: list[str] = []
    details: dict[str, Any] = {}

    if mint_info is not None:
        mint_authority = mint_info.get("mintAuthority")
        freeze_authority = mint_info.get("freezeAuthority")
        details["mint_authority"] = mint_authority
        details["freeze_authority"] = freeze_authority
        if mint_authority:
            risk += 25
            flags.append("Mint authority not renounced")
        if freeze_authority:
            risk += 25
            flags.append("Freeze authority active")
        if supply is None:
            supply = safe_int(mint_info.get("supply"))

    amounts = sorted(
        (safe_int(a.get("amount")) or 0 for a in largest), reverse=True
    )
    if supply and supply > 0 and amounts:
        top_10_pct = round(sum(amounts[:10]) / supply * 100, 2)
        top_1_pct = round(amounts[0] / supply * 100, 2)
        details["top_10_pct"] = top_10_pct
        details["top_1_pct"] = top_1_pct
        if top_10_pct >= 80:
            risk += 40
            flags.append(f"Top-10 accounts hold {top_10_pct:.0f}% of supply")
        elif top_10_pct >= 60:
            risk += 20
            flags.append(f"Top-10 accounts hold {top_10_pct:.0f}% of supply")
        if top_1_pct >= 50:
            risk += 10
            flags.append(f"Single account holds {top_1_pct:.0f}% of supply")

    score = float(100 - min(risk, 100))
    return SecurityVerdict(
        passed=score >= min_score,
        score=score,
        flags=flags,
        details=details,
    )
