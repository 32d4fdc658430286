"""
On-chain transaction analyzer.

``RpcTransactionAnalyzer.analyze(signature)`` fetches a transaction,
extracts the token mints it touched and turns them into discovery records
tagged ``transaction_analysis``.  Every analysis that yields at least one
record is also published on the ``analysis_complete`` topic, which the
pipeline consumes through its normal admission path.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable

from config import ANALYSIS_TIMEOUT_SECONDS

from .channels import Topic
from .constants import SOURCE_TRANSACTION_ANALYSIS
from .data_sources.solana_rpc import (
    SolanaRpcClient,
    block_time,
    extract_token_mints,
    sol_movement,
)
from .models import AnalysisResult, ChainScanMetadata, DiscoveryRecord
from .utils import utc_now

logger = logging.getLogger(__name__)


class RpcTransactionAnalyzer:
    """Deep analysis of one transaction signature via Solana JSON-RPC."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        timeout: float = ANALYSIS_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._rpc = rpc
        self._timeout = timeout
        self._clock = clock
        self.analysis_complete: Topic[AnalysisResult] = Topic("analysis_complete")

    async def analyze(self, signature: str) -> AnalysisResult:
        """Analyse *signature*.

        Raises ``asyncio.TimeoutError`` when the RPC round-trips exceed the
        analyzer timeout; an unavailable transaction yields an empty result.
        """
        started = time.monotonic()
        tx = await asyncio.wait_for(self._rpc.get_transaction(signature), timeout=self._timeout)
        elapsed = (time.monotonic() - started) * 1000.0

        if tx is None:
            logger.debug("Transaction %s not available", signature[:16])
            return AnalysisResult(
                signature=signature,
                analysis_time_ms=elapsed,
                error="transaction unavailable",
            )
        if (tx.get("meta") or {}).get("err") is not None:
            return AnalysisResult(
                signature=signature,
                analysis_time_ms=elapsed,
                error="transaction failed on-chain",
            )

        now = self._clock()
        meta = ChainScanMetadata(
            signature=signature,
            slot=tx.get("slot"),
            block_time=block_time(tx),
            sol_movement=sol_movement(tx),
        )
        records = [
            DiscoveryRecord(
                address=mint,
                detected_at=now,
                source=SOURCE_TRANSACTION_ANALYSIS,
                metadata=meta,
            )
            for mint in extract_token_mints(tx)
        ]
        result = AnalysisResult(
            signature=signature,
            records=records,
            analysis_time_ms=elapsed,
            sources=[SOURCE_TRANSACTION_ANALYSIS],
        )
        if records:
            logger.info(
                "Analysis of %s found %d token(s) in %.0fms",
                signature[:16], len(records), elapsed,
            )
            self.analysis_complete.publish(result)
        return result
