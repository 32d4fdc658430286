"""
Publish/subscribe channel built on ``asyncio.Queue``.

A ``Topic`` fans each published item out to every subscriber queue.
Ordering is FIFO per publisher: items published by one coroutine reach
every subscriber in publication order.  Nothing is promised across
publishers.

Subscriber queues are bounded; when one is full its oldest item is
discarded so a slow consumer never stalls the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Topic(Generic[T]):
    """Broadcast channel with explicit subscriber registration."""

    def __init__(self, name: str, *, default_maxsize: int = 1000) -> None:
        self.name = name
        self._default_maxsize = default_maxsize
        self._subscribers: list[asyncio.Queue[T]] = []
        self.dropped = 0

    def subscribe(self, maxsize: int | None = None) -> asyncio.Queue[T]:
        """Register and return a new subscriber queue."""
        queue: asyncio.Queue[T] = asyncio.Queue(
            maxsize=maxsize if maxsize is not None else self._default_maxsize
        )
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[T]) -> None:
        try:
            self._subscribers.remove(queue)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, item: T) -> None:
        """Deliver *item* to every subscriber without blocking."""
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
                self.dropped += 1
                logger.warning(
                    "Topic '%s': subscriber queue full (%d) – dropped oldest item",
                    self.name, queue.maxsize,
                )
            queue.put_nowait(item)
