"""
Push-feed strategy: PumpPortal's live new-token WebSocket.

After connecting, the strategy sends ``{"method": "subscribeNewToken"}``
and turns every create event into a one-record batch.  On disconnect it
reconnects after ``reconnect_interval × attempt`` seconds (capped at 30 s);
a successful connection resets the attempt counter.  Once
``max_reconnect_attempts`` consecutive attempts have failed the strategy
gives up and reports ``fatal``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional

import websockets

from config import PUMPPORTAL_WS_URL, WS_MAX_RECONNECT_ATTEMPTS, WS_RECONNECT_INTERVAL_SECONDS

from ..constants import SOURCE_WEBSOCKET
from ..models import DiscoveryRecord, PushFeedMetadata
from ..utils import safe_float, utc_now
from .base import SourceStrategy

logger = logging.getLogger(__name__)

_MAX_RECONNECT_DELAY_SECONDS = 30.0
_SUBSCRIBE_MESSAGE = {"method": "subscribeNewToken"}


class PumpPortalStrategy(SourceStrategy):
    kind = "push_feed"
    source = SOURCE_WEBSOCKET

    def __init__(
        self,
        url: str = PUMPPORTAL_WS_URL,
        *,
        reconnect_interval: float = WS_RECONNECT_INTERVAL_SECONDS,
        max_reconnect_attempts: int = WS_MAX_RECONNECT_ATTEMPTS,
        name: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(name, clock=clock)
        self.url = url
        self.reconnect_interval = reconnect_interval
        self.max_reconnect_attempts = max_reconnect_attempts
        self._attempts = 0
        self._connected = False
        self._messages = 0
        self._ignored = 0

    def reconnect_delay(self, attempt: int) -> float:
        return min(self.reconnect_interval * attempt, _MAX_RECONNECT_DELAY_SECONDS)

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self._listen_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._record_failure(exc)
                logger.warning("PumpPortal WebSocket error: %s", exc)
            if self._stop_event.is_set():
                break

            self._attempts += 1
            if self._attempts > self.max_reconnect_attempts:
                self._mark_fatal(
                    f"gave up after {self.max_reconnect_attempts} reconnect attempts"
                )
                logger.error(
                    "PumpPortal feed '%s' gave up after %d reconnect attempts",
                    self.name, self.max_reconnect_attempts,
                )
                return
            delay = self.reconnect_delay(self._attempts)
            logger.warning(
                "PumpPortal reconnecting in %.1fs (attempt %d/%d)",
                delay, self._attempts, self.max_reconnect_attempts,
            )
            if await self._wait(delay):
                break

    async def _listen_once(self) -> None:
        """Open one WebSocket session and stream until disconnect or stop."""
        async with websockets.connect(self.url, ping_interval=20) as ws:
            self._connected = True
            self._attempts = 0
            try:
                await ws.send(json.dumps(_SUBSCRIBE_MESSAGE))
                logger.info("PumpPortal connected | url=%s", self.url)
                self._record_success()
                async for message in ws:
                    if self._stop_event.is_set():
                        return
                    self.handle_message(message)
            finally:
                self._connected = False

    def handle_message(self, message: str | bytes) -> Optional[DiscoveryRecord]:
        """Parse one frame and emit it when it is a token-creation event."""
        self._messages += 1
        record = self.parse_message(message)
        if record is None:
            self._ignored += 1
            return None
        self._emit([record])
        return record

    def parse_message(self, message: str | bytes) -> Optional[DiscoveryRecord]:
        try:
            data: Any = json.loads(message)
        except (TypeError, ValueError):
            logger.debug("PumpPortal: non-JSON frame ignored")
            return None
        if not isinstance(data, dict):
            return None
        mint = data.get("mint")
        # Subscription acks and trade events carry no create payload
        if not mint or data.get("txType", "create") != "create":
            return None
        return DiscoveryRecord(
            address=mint,
            name=data.get("name") or "",
            symbol=data.get("symbol") or "",
            detected_at=self._clock(),
            source=self.source,
            metadata=PushFeedMetadata(
                signature=data.get("signature") or "",
                creator=data.get("traderPublicKey") or "",
                market_cap_sol=safe_float(data.get("marketCapSol")),
                v_sol_in_bonding_curve=safe_float(data.get("vSolInBondingCurve")),
                initial_buy=safe_float(data.get("initialBuy")),
                uri=data.get("uri") or "",
            ),
        )

    def _healthy(self) -> bool:
        return self.running and self._connected and not self._fatal

    def _status_details(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "connected": self._connected,
            "reconnect_attempts": self._attempts,
            "messages": self._messages,
            "ignored": self._ignored,
        }
