"""
Explicit runtime context.

``build_context()`` is called once at process start and creates the
upstream clients, their circuit breakers and the on-chain collaborators.
Components receive what they need from it by reference; nothing in the
package keeps module-level client singletons.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from config import (
    CB_FAILURE_THRESHOLD,
    CB_RECOVERY_TIMEOUT,
    DEXSCREENER_BASE_URL,
    ENABLE_SECURITY_GATE,
    JUPITER_BASE_URL,
    PUMPPORTAL_WS_URL,
    REQUEST_TIMEOUT,
    SOLANA_RPC_ENDPOINT,
)

from .analyzer import RpcTransactionAnalyzer
from .circuit_breaker import BreakerRegistry
from .data_sources.dexscreener import DexScreenerClient
from .data_sources.jupiter import JupiterClient
from .data_sources.solana_rpc import SolanaRpcClient
from .enrichment import SentimentLookup
from .security import HolderConcentrationAnalyzer, SecurityAnalyzer

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    dex: DexScreenerClient
    rpc: SolanaRpcClient
    jupiter: JupiterClient
    breakers: BreakerRegistry
    analyzer: RpcTransactionAnalyzer
    security: Optional[SecurityAnalyzer] = None
    sentiment: Optional[SentimentLookup] = None
    pumpportal_url: str = PUMPPORTAL_WS_URL

    async def close(self) -> None:
        """Close every HTTP client (called at shutdown)."""
        await self.dex.close()
        await self.rpc.close()
        await self.jupiter.close()


def build_context(
    *,
    rpc_endpoint: str = SOLANA_RPC_ENDPOINT,
    dexscreener_url: str = DEXSCREENER_BASE_URL,
    jupiter_url: str = JUPITER_BASE_URL,
    pumpportal_url: str = PUMPPORTAL_WS_URL,
    enable_security: bool = ENABLE_SECURITY_GATE,
    timeout: int = REQUEST_TIMEOUT,
    sentiment: Optional[SentimentLookup] = None,
) -> PipelineContext:
    breakers = BreakerRegistry(
        failure_threshold=CB_FAILURE_THRESHOLD,
        recovery_timeout=CB_RECOVERY_TIMEOUT,
    )
    dex = DexScreenerClient(
        base_url=dexscreener_url, timeout=timeout, circuit_breaker=breakers.get("dexscreener")
    )
    rpc = SolanaRpcClient(
        endpoint=rpc_endpoint, timeout=timeout, circuit_breaker=breakers.get("solana_rpc")
    )
    jupiter = JupiterClient(
        base_url=jupiter_url, timeout=timeout, circuit_breaker=breakers.get("jupiter")
    )
    logger.debug("Context built (rpc=%s, security_gate=%s)", rpc_endpoint, enable_security)
    return PipelineContext(
        dex=dex,
        rpc=rpc,
        jupiter=jupiter,
        breakers=breakers,
        analyzer=RpcTransactionAnalyzer(rpc),
        security=HolderConcentrationAnalyzer(rpc) if enable_security else None,
        sentiment=sentiment,
        pumpportal_url=pumpportal_url,
    )
