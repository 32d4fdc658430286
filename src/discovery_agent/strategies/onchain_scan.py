"""
On-chain scan strategy.

Every scan walks the newest signatures of a few watched programs
(Pump.fun, Raydium AMM, SPL Token).  The first few transactions per
program are inspected inline; token-creating ones become discovery records
straight away.  The remaining signatures are handed to the analysis work
queue for deep inspection at a lower priority.

A per-program cursor (the newest signature seen) keeps consecutive scans
from re-reading the same history.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable

from config import (
    CHAIN_SCAN_INSPECT_LIMIT,
    CHAIN_SCAN_INTERVAL_SECONDS,
    CHAIN_SCAN_SIGNATURE_LIMIT,
)

from ..constants import SOURCE_BLOCKCHAIN, WATCHED_PROGRAMS
from ..data_sources.solana_rpc import (
    SolanaRpcClient,
    block_time,
    extract_token_mints,
    looks_like_token_creation,
    sol_movement,
)
from ..errors import StrategyError
from ..models import ChainScanMetadata, DiscoveryRecord
from ..utils import utc_now
from .base import PollingStrategy

logger = logging.getLogger(__name__)

# Work-queue priority of signatures deferred to deep analysis
DEFERRED_PRIORITY = 3


class ChainScanStrategy(PollingStrategy):
    kind = "chain_scan"
    source = SOURCE_BLOCKCHAIN

    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        programs: Iterable[str] = WATCHED_PROGRAMS,
        signature_limit: int = CHAIN_SCAN_SIGNATURE_LIMIT,
        inspect_limit: int = CHAIN_SCAN_INSPECT_LIMIT,
        deferred_priority: int = DEFERRED_PRIORITY,
        interval: float = CHAIN_SCAN_INTERVAL_SECONDS,
        name: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(interval, name, clock=clock)
        self._rpc = rpc
        self.programs = tuple(programs)
        self.signature_limit = signature_limit
        self.inspect_limit = inspect_limit
        self.deferred_priority = deferred_priority
        self._cursors: dict[str, str] = {}
        self._inspected = 0
        self._deferred = 0

    async def poll(self) -> list[DiscoveryRecord]:
        records: list[DiscoveryRecord] = []
        unreachable = []
        for program in self.programs:
            found = await self._scan_program(program)
            if found is None:
                unreachable.append(program)
                continue
            records.extend(found)
        if unreachable and len(unreachable) == len(self.programs):
            raise StrategyError("RPC signatures unavailable for every watched program")
        if unreachable:
            logger.warning(
                "Chain scan: signatures unavailable for %d of %d program(s)",
                len(unreachable), len(self.programs),
            )
        return records

    async def _scan_program(self, program: str) -> list[DiscoveryRecord] | None:
        infos = await self._rpc.get_signatures_for_address(
            program, limit=self.signature_limit, until=self._cursors.get(program)
        )
        if infos is None:
            return None
        if not infos:
            return []
        self._cursors[program] = infos[0]["signature"]

        signatures = [i["signature"] for i in infos if i.get("err") is None]
        inline, deferred = signatures[: self.inspect_limit], signatures[self.inspect_limit:]

        records: list[DiscoveryRecord] = []
        for signature in inline:
            tx = await self._rpc.get_transaction(signature)
            self._inspected += 1
            if tx is None or not looks_like_token_creation(tx):
                continue
            records.extend(self._records_from(tx, signature, program))

        for signature in deferred:
            if self._enqueue(signature, self.deferred_priority):
                self._deferred += 1

        if records or deferred:
            logger.debug(
                "Chain scan %s…: %d new signature(s), %d token(s) inline, %d deferred",
                program[:8], len(signatures), len(records), len(deferred),
            )
        return records

    def _records_from(
        self, tx: dict[str, Any], signature: str, program: str
    ) -> list[DiscoveryRecord]:
        now = self._clock()
        meta = ChainScanMetadata(
            signature=signature,
            program=program,
            slot=tx.get("slot"),
            block_time=block_time(tx),
            sol_movement=sol_movement(tx),
        )
        return [
            DiscoveryRecord(address=mint, detected_at=now, source=self.source, metadata=meta)
            for mint in extract_token_mints(tx)
        ]

    def _status_details(self) -> dict[str, Any]:
        details = super()._status_details()
        details.update(
            programs=list(self.programs),
            inspected=self._inspected,
            deferred=self._deferred,
        )
        return details
