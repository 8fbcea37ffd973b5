"""Per-request progress channels for streaming mode.

One bounded queue per request id, one producer, one consumer. The producer
closes the channel exactly once; the registry forgets it on close.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from core.errors import VeritasError

logger = logging.getLogger("veritas.progress")

_CLOSED = object()


class StreamEventType(str, Enum):
    THINKING = "thinking"
    ANSWER_CHUNK = "answer_chunk"
    FINAL = "final"
    ERROR = "error"


class StreamEvent(BaseModel):
    type: StreamEventType
    data: dict[str, Any] = Field(default_factory=dict)


class ChannelError(VeritasError):
    def __init__(self, message: str, request_id: str) -> None:
        super().__init__(message, code="CHANNEL_ERROR", details={"request_id": request_id})


class ProgressChannel:
    """Ordered event queue for one request."""

    def __init__(self, request_id: str, maxsize: int = 100) -> None:
        self.request_id = request_id
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._subscribed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def publish(self, event: StreamEvent) -> None:
        if self._closed:
            raise ChannelError("Channel already closed", self.request_id)
        await self._queue.put(event)

    async def thinking(self, phase: str, text: str) -> None:
        """Progress callback shape used by the pipeline and the council."""
        await self.publish(StreamEvent(type=StreamEventType.THINKING, data={"phase": phase, "text": text}))

    def close(self) -> bool:
        """Mark the channel done. Returns False when it was already closed."""
        if self._closed:
            return False
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Consumer stops once the queue drains.
            pass
        return True

    async def events(self) -> AsyncIterator[StreamEvent]:
        if self._subscribed:
            raise ChannelError("Channel already has a consumer", self.request_id)
        self._subscribed = True
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class ProgressChannelRegistry:
    """Channels keyed by request id."""

    def __init__(self, maxsize: int = 100) -> None:
        self.maxsize = maxsize
        self._channels: dict[str, ProgressChannel] = {}

    def open(self, request_id: str) -> ProgressChannel:
        if request_id in self._channels:
            raise ChannelError("Channel already open", request_id)
        channel = ProgressChannel(request_id, self.maxsize)
        self._channels[request_id] = channel
        return channel

    def get(self, request_id: str) -> ProgressChannel | None:
        return self._channels.get(request_id)

    def close(self, request_id: str) -> None:
        channel = self._channels.pop(request_id, None)
        if channel is None:
            return
        if channel.close():
            logger.debug("Progress channel %s closed", request_id)

    def __len__(self) -> int:
        return len(self._channels)
