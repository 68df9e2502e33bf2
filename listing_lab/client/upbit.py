"""Upbit 现货 API 客户端"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import aiohttp

from listing_lab.client.models import PriceBar


class UpbitAPIError(Exception):
    """Upbit API 错误"""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(message)


def _parse_utc_ms(value: str) -> int:
    """解析 candle_date_time_utc (无时区后缀) 为毫秒时间戳"""
    dt = datetime.fromisoformat(value).replace(tzinfo=UTC)
    return int(dt.timestamp() * 1000)


@dataclass
class UpbitClient:
    """Upbit 现货 API 客户端"""

    base_url: str = "https://api.upbit.com"
    _session: aiohttp.ClientSession | None = field(default=None, repr=False)

    async def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """发送 GET 请求"""
        if self._session is None:
            raise RuntimeError("Session not initialized. Call init() first.")

        url = f"{self.base_url}{endpoint}"
        response = await self._session.get(url, params=params)

        if response.status != 200:
            error_text = await response.text()
            try:
                error_data = json.loads(error_text)
                error = error_data.get("error", {}) if isinstance(error_data, dict) else {}
                raise UpbitAPIError(response.status, error.get("message", error_text))
            except json.JSONDecodeError:
                raise UpbitAPIError(response.status, error_text)

        return await response.json()

    async def init(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "UpbitClient":
        await self.init()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def get_daily_candles(
        self,
        market: str,
        to: datetime | None = None,
        count: int = 200,
    ) -> list[PriceBar]:
        """获取日 K 线 (Upbit 按时间倒序返回，最新在前)"""
        params: dict[str, Any] = {"market": market, "count": count}
        if to is not None:
            params["to"] = to.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

        data = await self._request("/v1/candles/days", params)
        return [
            PriceBar(
                start=_parse_utc_ms(c["candle_date_time_utc"]),
                open=float(c["opening_price"]),
                high=float(c["high_price"]),
                low=float(c["low_price"]),
                close=float(c["trade_price"]),
                date=c["candle_date_time_kst"][:10],
            )
            for c in data
        ]

    async def get_markets(self) -> list[dict[str, Any]]:
        """获取全部市场列表"""
        return await self._request("/v1/market/all")

    async def get_trade_values(self, markets: list[str]) -> dict[str, float]:
        """获取 24h 成交额 {market: acc_trade_price_24h}"""
        if not markets:
            return {}
        data = await self._request("/v1/ticker", {"markets": ",".join(markets)})
        return {t["market"]: float(t.get("acc_trade_price_24h") or 0) for t in data}
