"""Background reader bound to one streaming connection.

The monitor is the only reader of its connection. Each inbound frame is
decoded exactly once and its outcome goes to exactly one channel: the payload
on ``data`` or a :class:`DecodeError` on ``errors``. Sends block while the
caller is not keeping up, which throttles the socket reads.

The stop signal is raced against both the blocking read and any blocked
channel send, so a stop request is honoured even while the connection is
silent. Once stopped the monitor closes ``data``, then ``errors``, then the
connection, and delivers nothing further.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, Tuple, TypeVar, Union

from websockets.exceptions import ConnectionClosed, WebSocketException

from .channels import StopSignal, StreamChannel
from .errors import DecodeError

P = TypeVar("P")


class MonitorState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class StreamSession(Generic[P]):
    """Caller-facing handles for one live stream."""

    kind: str
    topics: List[Any]
    data_buffer_size: int = 2
    error_buffer_size: int = 1
    data: StreamChannel[P] = field(init=False)
    errors: StreamChannel[DecodeError] = field(init=False)
    stop: StopSignal = field(init=False, default_factory=StopSignal)
    task: Optional["asyncio.Task[None]"] = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        self.data = StreamChannel(self.data_buffer_size)
        self.errors = StreamChannel(self.error_buffer_size)

    async def wait_closed(self) -> None:
        """Wait until the monitor has finalized the session."""

        if self.task is not None:
            await asyncio.shield(self.task)

    async def close(self) -> None:
        """Request shutdown and wait for the channels and socket to close."""

        self.stop.send(True)
        await self.wait_closed()

    async def __aenter__(self) -> "StreamSession[P]":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class StreamMonitor(Generic[P]):
    """Reads, decodes and dispatches frames until the stop signal fires."""

    def __init__(
        self,
        connection: Any,
        decode: Callable[[Union[str, bytes]], P],
        session: StreamSession[P],
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.connection = connection
        self.decode = decode
        self.session = session
        self.logger = logger or logging.getLogger(__name__)
        self.state = MonitorState.RUNNING

    async def run(self) -> None:
        self.logger.debug("Monitoring websocket", extra={"event": "monitor_started", "stream": self.session.kind})
        try:
            await self._loop()
        finally:
            await self._finalize()

    async def _loop(self) -> None:
        while True:
            try:
                stopped, raw = await self._unless_stopped(self.connection.recv())
            except ConnectionClosed as exc:
                self.logger.warning(
                    "Stream connection closed: %s",
                    exc,
                    extra={"event": "stream_closed", "stream": self.session.kind},
                )
                await self._unless_stopped(self.session.errors.send(self._read_error(exc)))
                return
            except (WebSocketException, OSError) as exc:
                channel, item = self.session.errors, self._report(self._read_error(exc))
            else:
                if stopped:
                    return
                channel, item = self._dispatch(raw)

            stopped, _ = await self._unless_stopped(channel.send(item))
            if stopped:
                return

    def _dispatch(self, raw: Union[str, bytes]) -> Tuple[StreamChannel[Any], Any]:
        try:
            payload = self.decode(raw)
        except DecodeError as exc:
            return self.session.errors, self._report(exc)
        return self.session.data, payload

    def _read_error(self, exc: BaseException) -> DecodeError:
        error = DecodeError(f"reading JSON: {exc}")
        error.__cause__ = exc
        return error

    def _report(self, error: DecodeError) -> DecodeError:
        self.logger.warning(
            "Dropping undecodable frame: %s",
            error,
            extra={"event": "frame_error", "stream": self.session.kind},
        )
        return error

    async def _unless_stopped(self, operation: Awaitable[Any]) -> Tuple[bool, Any]:
        """Await ``operation`` unless the stop signal fires first.

        Returns ``(True, None)`` when stopped, otherwise ``(False, result)``.
        The stop signal wins ties.
        """

        if self.session.stop.is_set:
            if asyncio.iscoroutine(operation):
                operation.close()
            return True, None

        task = asyncio.ensure_future(operation)
        stopper = asyncio.ensure_future(self.session.stop.wait())
        try:
            done, _ = await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (task, stopper):
                if not pending.done():
                    pending.cancel()

        if stopper in done:
            if task in done and not task.cancelled():
                task.exception()
            return True, None
        return False, task.result()

    async def _finalize(self) -> None:
        self.state = MonitorState.STOPPED
        self.session.data.close()
        self.session.errors.close()
        try:
            await self.connection.close()
        except (WebSocketException, OSError) as exc:
            self.logger.debug("Closing websocket failed: %s", exc, extra={"event": "socket_close_failed"})
        self.logger.info("Stopped %s stream", self.session.kind, extra={"event": "stream_stopped", "stream": self.session.kind})


__all__ = ["MonitorState", "StreamMonitor", "StreamSession"]
