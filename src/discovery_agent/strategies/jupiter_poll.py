"""
Aggregator-poll strategy over Jupiter's recently listed tokens.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from config import SCAN_INTERVAL_SECONDS

from ..constants import SOURCE_JUPITER
from ..data_sources.jupiter import JupiterClient, token_to_market, token_to_metadata
from ..errors import StrategyError
from ..models import DiscoveryRecord
from ..utils import utc_now
from .base import PollingStrategy

logger = logging.getLogger(__name__)


class JupiterPollStrategy(PollingStrategy):
    kind = "aggregator_poll"
    source = SOURCE_JUPITER

    def __init__(
        self,
        client: JupiterClient,
        *,
        interval: float = SCAN_INTERVAL_SECONDS,
        name: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(interval, name, clock=clock)
        self._client = client

    async def poll(self) -> list[DiscoveryRecord]:
        tokens = await self._client.get_recent_tokens()
        if tokens is None:
            raise StrategyError("Jupiter recent tokens unavailable")
        now = self._clock()
        return [
            DiscoveryRecord(
                address=token["id"],
                name=token.get("name") or "",
                symbol=token.get("symbol") or "",
                detected_at=now,
                source=self.source,
                market=token_to_market(token),
                metadata=token_to_metadata(token),
            )
            for token in tokens
        ]
