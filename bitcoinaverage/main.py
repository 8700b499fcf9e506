"""Command line entry point for BitcoinAverage snapshots and live streams."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, List, Optional

from bitcoinaverage.data.clients import BitcoinAverageClient
from bitcoinaverage.data.errors import BitcoinAverageError
from bitcoinaverage.data.models import HistoryResolution, to_dict
from bitcoinaverage.data.monitor import StreamSession
from bitcoinaverage.infra.config import ClientConfig, env_or_default, load_config
from bitcoinaverage.infra.logging import configure_logging

DEFAULT_CONFIG_PATH = Path(env_or_default("CONFIG_PATH", "config/settings.yaml"))


def _emit(payload: Any) -> None:
    print(json.dumps(payload, default=str), flush=True)


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


async def consume(session: StreamSession[Any], limit: Optional[int], logger: logging.Logger) -> int:
    """Print payloads until the session closes or ``limit`` payloads arrived."""

    received = 0

    async def drain_errors() -> None:
        async for error in session.errors:
            logger.warning("Stream error: %s", error, extra={"event": "stream_error", "stream": session.kind})

    errors_task = asyncio.create_task(drain_errors())
    try:
        async for payload in session.data:
            _emit(to_dict(payload))
            received += 1
            if limit is not None and received >= limit:
                session.stop.send(True)
                break
    finally:
        await session.close()
        await errors_task
    return received


async def run_stream(client: BitcoinAverageClient, kind: str, topics: List[str], limit: Optional[int]) -> int:
    logger = logging.getLogger("bitcoinaverage.cli")
    if kind == "tickers":
        session: StreamSession[Any] = await client.ticker_stream(*topics)
    else:
        session = await client.exchange_stream(*topics)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, session.stop.send, True)
        except NotImplementedError:
            # Windows/limited environments
            pass

    return await consume(session, limit, logger)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="BitcoinAverage market data client")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH))
    commands = parser.add_subparsers(dest="command", required=True)

    for name in ("tickers", "exchanges"):
        snapshot = commands.add_parser(name, help=f"fetch a {name} snapshot")
        snapshot.add_argument("--crypto", type=_csv, default=[], help="comma separated crypto codes")
        snapshot.add_argument("--fiat", type=_csv, default=[], help="comma separated fiat codes")

    history = commands.add_parser("history", help="price of a pair at a unix timestamp")
    history.add_argument("symbol")
    history.add_argument("at", type=int)
    history.add_argument(
        "--resolution",
        choices=[r.value for r in HistoryResolution],
        default=HistoryResolution.MINUTE.value,
    )

    for name in ("stream-tickers", "stream-exchanges"):
        stream = commands.add_parser(name, help="stream live updates until interrupted")
        stream.add_argument("topics", nargs="*")
        stream.add_argument("--limit", type=int, default=None, help="stop after this many payloads")
    return parser


def run(args: argparse.Namespace, config: ClientConfig) -> int:
    client = BitcoinAverageClient(config)
    if args.command == "tickers":
        _emit({pair: to_dict(ticker) for pair, ticker in client.tickers(args.crypto, args.fiat).items()})
    elif args.command == "exchanges":
        _emit([to_dict(exchange) for exchange in client.exchanges(args.crypto, args.fiat)])
    elif args.command == "history":
        _emit(to_dict(client.price_at_timestamp(args.symbol, args.at, HistoryResolution(args.resolution))))
    else:
        kind = "tickers" if args.command == "stream-tickers" else "exchanges"
        asyncio.run(run_stream(client, kind, args.topics, args.limit))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    if not config.public_key or not config.secret_key:
        logging.getLogger(__name__).error("Missing API credentials in config or environment")
        return 2
    try:
        return run(args, config)
    except BitcoinAverageError as exc:
        logging.getLogger(__name__).error("%s", exc, extra={"event": "request_failed"})
        return 1


if __name__ == "__main__":
    sys.exit(main())
