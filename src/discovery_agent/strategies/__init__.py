"""
Source strategies and the registry that builds them by source name.

Registry keys are the source tags: ``websocket`` (push feed),
``dexscreener`` (periodic poll), ``blockchain`` (on-chain scan) and
``jupiter`` (aggregator poll).
"""

from __future__ import annotations

from typing import Callable, Iterable

from ..constants import SOURCE_BLOCKCHAIN, SOURCE_DEXSCREENER, SOURCE_JUPITER, SOURCE_WEBSOCKET
from ..context import PipelineContext
from .base import PollingStrategy, SourceStrategy, StrategyOutlet
from .dexscreener_poll import DexScreenerPollStrategy
from .jupiter_poll import JupiterPollStrategy
from .onchain_scan import ChainScanStrategy
from .pump_portal import PumpPortalStrategy

StrategyFactory = Callable[[PipelineContext], SourceStrategy]

STRATEGY_REGISTRY: dict[str, StrategyFactory] = {
    SOURCE_WEBSOCKET: lambda ctx: PumpPortalStrategy(ctx.pumpportal_url),
    SOURCE_DEXSCREENER: lambda ctx: DexScreenerPollStrategy(ctx.dex),
    SOURCE_BLOCKCHAIN: lambda ctx: ChainScanStrategy(ctx.rpc),
    SOURCE_JUPITER: lambda ctx: JupiterPollStrategy(ctx.jupiter),
}


def build_strategies(ctx: PipelineContext, sources: Iterable[str]) -> list[SourceStrategy]:
    """Instantiate one strategy per source name (duplicates ignored).

    Raises ``ValueError`` for a name missing from the registry.
    """
    strategies: list[SourceStrategy] = []
    for source in dict.fromkeys(sources):
        factory = STRATEGY_REGISTRY.get(source)
        if factory is None:
            raise ValueError(
                f"Unknown source {source!r} (known: {', '.join(sorted(STRATEGY_REGISTRY))})"
            )
        strategies.append(factory(ctx))
    return strategies


__all__ = [
    "STRATEGY_REGISTRY",
    "ChainScanStrategy",
    "DexScreenerPollStrategy",
    "JupiterPollStrategy",
    "PollingStrategy",
    "PumpPortalStrategy",
    "SourceStrategy",
    "StrategyOutlet",
    "build_strategies",
]
