"""Authenticated websocket sessions and the subscribe handshake.

A stream is opened in three steps: a single-use ticket is fetched over REST,
the socket is dialed with ``ticket`` and ``public_key`` in the query string,
then one subscribe command per topic is sent and acknowledged in order. Only
after every topic was acknowledged is a :class:`~.monitor.StreamMonitor`
started; the caller never sees the raw connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Protocol, TypeVar, Union

import websockets
from websockets.exceptions import WebSocketException

from bitcoinaverage.infra.logging import redact

from .errors import DecodeError, ProtocolError, StreamConnectionError, SubscriptionRejected
from .models import Exchange, SubscriptionAck, Ticker, loads
from .monitor import StreamMonitor, StreamSession
from .rest import TicketBroker, make_url

P = TypeVar("P")

TICKER_STREAM_PATH = "websocket/multiple/ticker"
EXCHANGE_STREAM_PATH = "websocket/multiple/exchanges"


class Connection(Protocol):
    """The slice of a websocket connection used by sessions and monitors."""

    async def send(self, message: str) -> None:
        ...

    async def recv(self) -> Union[str, bytes]:
        ...

    async def close(self) -> None:
        ...


class Topic(Protocol):
    def options(self) -> Dict[str, str]:
        ...


@dataclass(frozen=True)
class TickerTopic:
    """A currency pair on the global ticker feed."""

    currency: str
    symbol_set: str = "global"

    def options(self) -> Dict[str, str]:
        return {"currency": self.currency, "symbol_set": self.symbol_set}

    def __str__(self) -> str:
        return self.currency


@dataclass(frozen=True)
class ExchangeTopic:
    """A single exchange feed."""

    exchange: str

    def options(self) -> Dict[str, str]:
        return {"exchange": self.exchange}

    def __str__(self) -> str:
        return self.exchange


@dataclass(frozen=True)
class StreamKind(Generic[P]):
    """Everything that differs between the ticker and exchange streams."""

    name: str
    path: str
    topic: Callable[[str], Topic]
    payload: Callable[[Any], P]

    def coerce_topic(self, value: Union[str, Topic]) -> Topic:
        return self.topic(value) if isinstance(value, str) else value

    def decode(self, raw: Union[str, bytes]) -> P:
        """Decode one data frame ``{event, data}`` into the stream's payload."""

        frame = loads(raw)
        if not isinstance(frame, dict) or "data" not in frame:
            raise DecodeError(f"{self.name} frame is not an object with a data field")
        return self.payload(frame["data"])


TICKER_STREAM: StreamKind[Ticker] = StreamKind("ticker", TICKER_STREAM_PATH, TickerTopic, Ticker.from_dict)
EXCHANGE_STREAM: StreamKind[Exchange] = StreamKind("exchange", EXCHANGE_STREAM_PATH, ExchangeTopic, Exchange.from_dict)


def subscribe_command(topic: Topic) -> Dict[str, Any]:
    return {"event": "message", "data": {"operation": "subscribe", "options": topic.options()}}


async def subscribe_all(
    connection: Connection,
    topics: Iterable[Topic],
    logger: Optional[logging.Logger] = None,
) -> None:
    """Subscribe to each topic in order, waiting for an OK before the next.

    Raises :class:`SubscriptionRejected` on the first acknowledgement that is
    not ``"OK"``, even if earlier topics were accepted.
    """

    logger = logger or logging.getLogger(__name__)
    for topic in topics:
        try:
            await connection.send(json.dumps(subscribe_command(topic)))
        except (WebSocketException, OSError) as exc:
            raise ProtocolError(f"writing subscribe message for {topic}: {exc}") from exc

        try:
            raw = await connection.recv()
        except (WebSocketException, OSError) as exc:
            raise ProtocolError(f"reading subscribe response for {topic}: {exc}") from exc

        try:
            ack = SubscriptionAck.from_dict(loads(raw))
        except DecodeError as exc:
            raise DecodeError(f"decoding subscribe response for {topic}: {exc}") from exc
        if not ack.ok:
            raise SubscriptionRejected(topic, ack.data)

        logger.info(
            "Subscribed to %s",
            topic,
            extra={"event": "subscription", "topic": str(topic), "options": topic.options()},
        )


ConnectFactory = Callable[..., Any]


@dataclass
class SocketSession:
    """Opens authenticated stream sessions against one host."""

    broker: TicketBroker
    host: str
    public_key: str
    data_buffer_size: int = 2
    error_buffer_size: int = 1
    ping_interval: Optional[float] = 20.0
    connect_factory: ConnectFactory = websockets.connect
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def socket_url(self, path: str, ticket: str) -> str:
        return make_url("wss", self.host, path, {"ticket": ticket, "public_key": self.public_key})

    async def connect(self, kind: StreamKind[P], topics: Iterable[Union[str, Topic]]) -> StreamSession[P]:
        """Return a live session for ``topics``; nothing partial on failure."""

        topic_list: List[Topic] = [kind.coerce_topic(topic) for topic in topics]

        ticket = await asyncio.to_thread(self.broker.get_ticket)
        url = self.socket_url(kind.path, ticket.ticket)
        redacted = redact(url)
        self.logger.debug("Connecting to socket %s", redacted, extra={"event": "socket_dial", "stream": kind.name})
        try:
            connection = await self.connect_factory(url, ping_interval=self.ping_interval)
        except (WebSocketException, OSError, asyncio.TimeoutError) as exc:
            raise StreamConnectionError(f"dialing socket to {redacted}: {exc}") from exc

        try:
            await subscribe_all(connection, topic_list, self.logger)
        except BaseException:
            await connection.close()
            raise

        session: StreamSession[P] = StreamSession(
            kind=kind.name,
            topics=topic_list,
            data_buffer_size=self.data_buffer_size,
            error_buffer_size=self.error_buffer_size,
        )
        monitor = StreamMonitor(connection, kind.decode, session, logger=self.logger.getChild("monitor"))
        session.task = asyncio.create_task(monitor.run(), name=f"bitcoinaverage-{kind.name}-stream")
        self.logger.info(
            "Started %s stream",
            kind.name,
            extra={"event": "stream_started", "stream": kind.name, "topics": [str(t) for t in topic_list]},
        )
        return session


__all__ = [
    "Connection",
    "Topic",
    "TickerTopic",
    "ExchangeTopic",
    "StreamKind",
    "TICKER_STREAM",
    "EXCHANGE_STREAM",
    "TICKER_STREAM_PATH",
    "EXCHANGE_STREAM_PATH",
    "subscribe_command",
    "subscribe_all",
    "SocketSession",
]
