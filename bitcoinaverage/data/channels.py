"""Closable async channels used to hand stream output to callers."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Generic, TypeVar

T = TypeVar("T")


class ChannelClosed(Exception):
    """Raised when sending on a closed channel or receiving from a drained one."""


class StreamChannel(Generic[T]):
    """A bounded queue with close semantics.

    Items sent before :meth:`close` can still be received afterwards. Once the
    channel is closed and drained, :meth:`receive` raises
    :class:`ChannelClosed` and ``async for`` ends.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def send(self, item: T) -> None:
        """Put ``item`` on the channel, waiting while the buffer is full."""

        if self.closed:
            raise ChannelClosed("send on closed channel")
        await self._queue.put(item)

    async def receive(self) -> T:
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self.closed:
                raise ChannelClosed("receive from closed channel")

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                done, _ = await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (getter, closer):
                    if not task.done():
                        task.cancel()
            if getter in done:
                return getter.result()

    def close(self) -> None:
        self._closed.set()

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.receive()
        except ChannelClosed:
            raise StopAsyncIteration from None


class StopSignal:
    """Send-only shutdown request for a stream; the first send wins."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.value: Any = None

    def send(self, value: Any = True) -> None:
        if not self._event.is_set():
            self.value = value
            self._event.set()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> Any:
        await self._event.wait()
        return self.value


__all__ = ["ChannelClosed", "StreamChannel", "StopSignal"]
