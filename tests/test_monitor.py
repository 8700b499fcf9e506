import asyncio
import json
import unittest

from websockets.exceptions import ConnectionClosedError

from bitcoinaverage.data.channels import ChannelClosed
from bitcoinaverage.data.errors import DecodeError
from bitcoinaverage.data.models import Exchange, Ticker
from bitcoinaverage.data.monitor import MonitorState, StreamMonitor, StreamSession
from bitcoinaverage.data.websocket import EXCHANGE_STREAM, TICKER_STREAM


def ticker_frame(last: float) -> str:
    return json.dumps({"event": "message", "data": {"last": last, "success": True}})


class FakeConnection:
    """In-memory websocket; queued exceptions are raised from recv."""

    def __init__(self, frames=()) -> None:
        self.incoming: asyncio.Queue = asyncio.Queue()
        for frame in frames:
            self.incoming.put_nowait(frame)
        self.closed = False
        self.channels_closed_at_close = None
        self.session = None

    async def send(self, message: str) -> None:
        raise AssertionError("monitor must not write to the socket")

    async def recv(self):
        frame = await self.incoming.get()
        if isinstance(frame, Exception):
            raise frame
        return frame

    async def close(self) -> None:
        if self.session is not None:
            self.channels_closed_at_close = (self.session.data.closed, self.session.errors.closed)
        self.closed = True


def start_monitor(connection: FakeConnection, kind=TICKER_STREAM, data_buffer_size: int = 2):
    session: StreamSession = StreamSession(kind=kind.name, topics=[], data_buffer_size=data_buffer_size)
    connection.session = session
    monitor = StreamMonitor(connection, kind.decode, session)
    session.task = asyncio.create_task(monitor.run())
    return session, monitor


class StreamMonitorTest(unittest.IsolatedAsyncioTestCase):
    async def test_payloads_and_errors_keep_arrival_order(self) -> None:
        connection = FakeConnection([ticker_frame(1.0), "{not json", ticker_frame(3.0)])
        session, _ = start_monitor(connection)

        first = await asyncio.wait_for(session.data.receive(), timeout=1)
        error = await asyncio.wait_for(session.errors.receive(), timeout=1)
        second = await asyncio.wait_for(session.data.receive(), timeout=1)

        self.assertIsInstance(first, Ticker)
        self.assertEqual([1.0, 3.0], [first.last, second.last])
        self.assertIsInstance(error, DecodeError)
        self.assertIsNotNone(error.__cause__)

        await session.close()
        self.assertEqual([], [item async for item in session.data])
        self.assertEqual([], [item async for item in session.errors])

    async def test_frame_without_data_field_is_an_error(self) -> None:
        connection = FakeConnection([json.dumps({"event": "message"}), json.dumps({"event": "message", "data": 5})])
        session, _ = start_monitor(connection)

        first = await asyncio.wait_for(session.errors.receive(), timeout=1)
        second = await asyncio.wait_for(session.errors.receive(), timeout=1)

        self.assertIsInstance(first, DecodeError)
        self.assertIsInstance(second, DecodeError)
        await session.close()

    async def test_stop_closes_channels_then_connection(self) -> None:
        frames = [ticker_frame(float(n)) for n in range(20)]
        connection = FakeConnection(frames)
        session, monitor = start_monitor(connection)

        await asyncio.wait_for(session.data.receive(), timeout=1)
        session.stop.send(True)
        await asyncio.wait_for(session.wait_closed(), timeout=1)

        self.assertEqual(MonitorState.STOPPED, monitor.state)
        self.assertTrue(session.data.closed)
        self.assertTrue(session.errors.closed)
        self.assertTrue(connection.closed)
        self.assertEqual((True, True), connection.channels_closed_at_close)

        leftover = [item async for item in session.data]
        self.assertLessEqual(len(leftover), 2)
        self.assertGreater(connection.incoming.qsize(), 10)

        await asyncio.sleep(0.01)
        with self.assertRaises(ChannelClosed):
            await session.data.receive()
        with self.assertRaises(ChannelClosed):
            await session.errors.receive()

    async def test_stop_interrupts_a_blocked_read(self) -> None:
        connection = FakeConnection()
        session, _ = start_monitor(connection)
        await asyncio.sleep(0)

        session.stop.send(True)
        await asyncio.wait_for(session.wait_closed(), timeout=1)

        self.assertTrue(connection.closed)
        self.assertEqual(0, connection.incoming.qsize())

    async def test_stop_interrupts_a_send_to_a_slow_consumer(self) -> None:
        connection = FakeConnection([ticker_frame(float(n)) for n in range(5)])
        session, _ = start_monitor(connection, data_buffer_size=1)
        await asyncio.sleep(0.01)

        session.stop.send(True)
        await asyncio.wait_for(session.wait_closed(), timeout=1)

        self.assertLessEqual(len([item async for item in session.data]), 1)

    async def test_closed_connection_reports_and_finalizes(self) -> None:
        connection = FakeConnection([ticker_frame(1.0), ConnectionClosedError(None, None)])
        session, monitor = start_monitor(connection)

        payload = await asyncio.wait_for(session.data.receive(), timeout=1)
        error = await asyncio.wait_for(session.errors.receive(), timeout=1)
        await asyncio.wait_for(session.wait_closed(), timeout=1)

        self.assertEqual(1.0, payload.last)
        self.assertIsInstance(error.__cause__, ConnectionClosedError)
        self.assertEqual(MonitorState.STOPPED, monitor.state)
        self.assertTrue(connection.closed)

    async def test_socket_error_between_frames_is_reported_and_reading_continues(self) -> None:
        connection = FakeConnection([ticker_frame(1.0), OSError("reset"), ticker_frame(3.0)])
        session, monitor = start_monitor(connection)

        first = await asyncio.wait_for(session.data.receive(), timeout=1)
        error = await asyncio.wait_for(session.errors.receive(), timeout=1)
        second = await asyncio.wait_for(session.data.receive(), timeout=1)

        self.assertEqual([1.0, 3.0], [first.last, second.last])
        self.assertIsInstance(error, DecodeError)
        self.assertIsInstance(error.__cause__, OSError)
        self.assertFalse(session.task.done())
        self.assertEqual(MonitorState.RUNNING, monitor.state)
        self.assertFalse(connection.closed)

        await session.close()
        self.assertTrue(connection.closed)

    async def test_unrepresentable_frames_do_not_end_the_stream(self) -> None:
        frames = [
            '{"event": "message", "data": {"last": 1.0, "timestamp": Infinity}}',
            "[" * 100000,
            '{"event": "message", "data": {"last": 2.0, "timestamp": NaN}}',
        ]
        for raw in frames:
            with self.subTest(frame=raw[:40]):
                connection = FakeConnection([ticker_frame(0.5), raw, ticker_frame(3.0)])
                session, monitor = start_monitor(connection)

                first = await asyncio.wait_for(session.data.receive(), timeout=1)
                error = await asyncio.wait_for(session.errors.receive(), timeout=1)
                second = await asyncio.wait_for(session.data.receive(), timeout=1)

                self.assertEqual([0.5, 3.0], [first.last, second.last])
                self.assertIsInstance(error, DecodeError)
                self.assertEqual(MonitorState.RUNNING, monitor.state)
                await session.close()

    async def test_wrong_field_types_land_on_the_error_channel(self) -> None:
        wrong = [
            json.dumps({"event": "message", "data": {"last": {"x": 1}}}),
            json.dumps({"event": "message", "data": {"last": 2.0, "success": "yes"}}),
        ]
        connection = FakeConnection([*wrong, ticker_frame(3.0)])
        session, _ = start_monitor(connection)

        errors = [await asyncio.wait_for(session.errors.receive(), timeout=1) for _ in wrong]
        payload = await asyncio.wait_for(session.data.receive(), timeout=1)

        self.assertTrue(all(isinstance(error, DecodeError) for error in errors))
        self.assertEqual(3.0, payload.last)
        await session.close()

    async def test_exchange_stream_decodes_exchanges(self) -> None:
        frame = json.dumps(
            {"event": "message", "data": {"name": "bitstamp", "symbols": {"BTCUSD": {"last": 6500.5}}}}
        )
        connection = FakeConnection([frame])
        session, _ = start_monitor(connection, kind=EXCHANGE_STREAM)

        exchange = await asyncio.wait_for(session.data.receive(), timeout=1)

        self.assertIsInstance(exchange, Exchange)
        self.assertEqual("bitstamp", exchange.name)
        self.assertEqual(6500.5, exchange.symbols["BTCUSD"].last)
        await session.close()


if __name__ == "__main__":
    unittest.main()
