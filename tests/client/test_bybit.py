from unittest.mock import AsyncMock, MagicMock

from listing_lab.client.bybit import BybitClient, to_bybit_symbol

HOUR = 3600 * 1000


def _client_with_markets(markets: dict) -> BybitClient:
    client = BybitClient()
    exchange = MagicMock()
    exchange.load_markets = AsyncMock(return_value=markets)
    exchange.markets = markets
    exchange.fetch_ohlcv = AsyncMock(return_value=[])
    client.exchange = exchange
    return client


def test_to_bybit_symbol():
    assert to_bybit_symbol("ABC") == "ABC/USDT:USDT"


async def test_get_hourly_klines_sorted_and_bounded():
    client = _client_with_markets({"ABC/USDT:USDT": {}})
    start = 1_700_000_000_000
    client.exchange.fetch_ohlcv = AsyncMock(
        return_value=[
            [start + 2 * HOUR, 1.2, 1.3, 1.1, 1.15, 100.0],
            [start, 1.0, 1.1, 0.9, 1.05, 100.0],
            [start + HOUR, 1.05, 1.25, 1.0, 1.2, 100.0],
            [start + 10 * HOUR, 2.0, 2.0, 2.0, 2.0, 100.0],
        ]
    )

    bars = await client.get_hourly_klines("ABC", start, start + 3 * HOUR)

    assert [b.start for b in bars] == [start, start + HOUR, start + 2 * HOUR]
    assert bars[0].close == 1.05
    client.exchange.fetch_ohlcv.assert_awaited_once_with(
        "ABC/USDT:USDT", "1h", since=start, limit=200
    )


async def test_get_hourly_klines_unlisted_symbol():
    client = _client_with_markets({"BTC/USDT:USDT": {}})

    bars = await client.get_hourly_klines("NEWCOIN", 0, HOUR)

    assert bars == []
    client.exchange.fetch_ohlcv.assert_not_called()


async def test_markets_loaded_once():
    client = _client_with_markets({"ABC/USDT:USDT": {}})

    await client.get_hourly_klines("ABC", 0, HOUR)
    await client.get_hourly_klines("ABC", 0, HOUR)

    client.exchange.load_markets.assert_awaited_once()


async def test_skips_rows_with_missing_prices():
    client = _client_with_markets({"ABC/USDT:USDT": {}})
    client.exchange.fetch_ohlcv = AsyncMock(
        return_value=[
            [0, None, 1.0, 1.0, 1.0, 1.0],
            [HOUR, 1.0, 1.0, 1.0, 1.0, 1.0],
        ]
    )

    bars = await client.get_hourly_klines("ABC", 0, 2 * HOUR)
    assert [b.start for b in bars] == [HOUR]
