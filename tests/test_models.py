import unittest
from decimal import Decimal

from bitcoinaverage.data.errors import DecodeError
from bitcoinaverage.data.models import (
    BTCUSD,
    FixedNumber,
    Pair,
    SubscriptionAck,
    Ticker,
    exchanges_from_list,
    loads,
    multi_ticker_from_dict,
)

TICKER_JSON = """
{
  "ask": 6512.3, "bid": 6510.1, "last": 6511.0, "high": 6600, "low": 6400,
  "open": {"day": "6450.12", "week": 6300.5, "month": null},
  "averages": {"day": 6490.2, "week": 6420.0, "month": 6100.75},
  "changes": {"percent": {"day": 0.94, "week": 3.3, "month": 6.7},
              "price": {"day": 60.88, "week": 210.5, "month": 411.25}},
  "volume": 1234.5, "volume_percent": 77.1, "timestamp": 1531741200,
  "display_timestamp": "2018-07-16 11:40:00", "success": true, "time": "2018-07-16 11:40:00"
}
"""


class FixedNumberTest(unittest.TestCase):
    def test_numeric_string(self) -> None:
        number = FixedNumber.from_json("12.34")

        self.assertEqual(12.34, number.value())
        self.assertEqual(Decimal("12.34"), number.decimal())

    def test_decoded_json_number_keeps_its_text(self) -> None:
        number = FixedNumber.from_json(loads("[0.1000]")[0])

        self.assertEqual("0.1000", str(number))
        self.assertEqual(Decimal("0.1000"), number.decimal())

    def test_null_is_zero_leniently_and_an_error_strictly(self) -> None:
        number = FixedNumber.from_json(None)

        self.assertEqual(0, number.value())
        with self.assertRaises(ValueError):
            number.decimal()

    def test_non_numeric_string(self) -> None:
        number = FixedNumber.from_json("n/a")

        self.assertEqual(0, number.value())
        with self.assertRaises(ValueError):
            number.decimal()

    def test_nested_value_is_decode_error(self) -> None:
        with self.assertRaises(DecodeError):
            FixedNumber.from_json({"day": 1})

    def test_nan_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            FixedNumber.from_json("NaN").decimal()


class LoadsTest(unittest.TestCase):
    def test_deeply_nested_document_is_decode_error(self) -> None:
        with self.assertRaises(DecodeError):
            loads("[" * 100000)


class PairTest(unittest.TestCase):
    def test_base_and_counter(self) -> None:
        self.assertEqual("BTC", BTCUSD.base)
        self.assertEqual("USD", BTCUSD.counter)

    def test_short_pairs(self) -> None:
        self.assertEqual("", Pair("BT").base)
        self.assertEqual("BTC", Pair("BTCU").base)
        self.assertEqual("", Pair("BTCU").counter)


class TickerTest(unittest.TestCase):
    def test_decodes_full_ticker(self) -> None:
        ticker = Ticker.from_dict(loads(TICKER_JSON))

        self.assertAlmostEqual(6512.3, ticker.ask)
        self.assertEqual(1531741200, ticker.timestamp)
        self.assertTrue(ticker.success)
        assert ticker.open and ticker.changes and ticker.changes.price
        self.assertEqual(Decimal("6450.12"), ticker.open.day.decimal())
        self.assertEqual(0, ticker.open.month.value())
        self.assertEqual(Decimal("411.25"), ticker.changes.price.month.decimal())

    def test_non_object_is_decode_error(self) -> None:
        with self.assertRaises(DecodeError):
            Ticker.from_dict(["not", "a", "ticker"])

    def test_infinite_timestamp_is_decode_error(self) -> None:
        with self.assertRaises(DecodeError):
            Ticker.from_dict(loads('{"last": 1.0, "timestamp": Infinity}'))

    def test_wrong_field_types_are_decode_errors(self) -> None:
        for frame in (
            {"last": {"x": 1}},
            {"last": True},
            {"timestamp": [1531741200]},
            {"success": "yes"},
            {"display_timestamp": 1531741200},
            {"averages": {"day": {"x": 1}}},
        ):
            with self.subTest(frame=frame), self.assertRaises(DecodeError):
                Ticker.from_dict(frame)

    def test_null_fields_stay_empty(self) -> None:
        ticker = Ticker.from_dict({"last": None, "timestamp": None, "success": None, "time": None})

        self.assertIsNone(ticker.last)
        self.assertIsNone(ticker.timestamp)
        self.assertFalse(ticker.success)
        self.assertIsNone(ticker.time)

    def test_multi_ticker_keys_by_pair(self) -> None:
        tickers = multi_ticker_from_dict({"BTCUSD": {"last": 1}, "LTCUSD": {"last": "2.5"}})

        self.assertEqual({"BTCUSD", "LTCUSD"}, set(tickers))
        self.assertEqual(2.5, tickers["LTCUSD"].last)


class ExchangeTest(unittest.TestCase):
    def test_decodes_symbols(self) -> None:
        exchanges = exchanges_from_list(
            loads('[{"name": "bitstamp", "display_name": "Bitstamp", "success": true,'
                  ' "symbols": {"BTCUSD": {"last": 6500.5, "volume": 10, "bid": null}}}]')
        )

        self.assertEqual(1, len(exchanges))
        symbol = exchanges[0].symbols[Pair("BTCUSD")]
        self.assertEqual(6500.5, symbol.last)
        self.assertIsNone(symbol.bid)

    def test_wrong_field_types_are_decode_errors(self) -> None:
        for entry in (
            {"name": 42},
            {"name": "bitstamp", "url": ["https://www.bitstamp.net"]},
            {"name": "bitstamp", "success": 1},
            {"name": "bitstamp", "symbols": {"BTCUSD": {"last": "n/a"}}},
        ):
            with self.subTest(entry=entry), self.assertRaises(DecodeError):
                exchanges_from_list([entry])

    def test_exchange_list_must_be_array(self) -> None:
        with self.assertRaises(DecodeError):
            exchanges_from_list({"name": "bitstamp"})


class SubscriptionAckTest(unittest.TestCase):
    def test_ok_and_rejection(self) -> None:
        self.assertTrue(SubscriptionAck.from_dict({"event": "message", "data": "OK"}).ok)
        self.assertFalse(SubscriptionAck.from_dict({"event": "message", "data": "FAIL"}).ok)

    def test_missing_data_is_decode_error(self) -> None:
        with self.assertRaises(DecodeError):
            SubscriptionAck.from_dict({"event": "message"})


if __name__ == "__main__":
    unittest.main()
