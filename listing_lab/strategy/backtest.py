# listing_lab/strategy/backtest.py
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from listing_lab.client.models import PriceBar
from listing_lab.strategy.models import ScenarioResult, ScenarioSummary
from listing_lab.strategy.scenarios import (
    BASE_SCENARIOS,
    HOLD_HOURS,
    LISTING_SCENARIOS,
    MS_PER_HOUR,
    SCENARIOS_BY_ID,
    PriceProfile,
)

LIQUIDATION_THRESHOLD_PCT = -90.0


def _is_valid_price(price: float | None) -> bool:
    return price is not None and math.isfinite(price) and price != 0


def build_profile_prices(bars: Sequence[PriceBar]) -> dict[PriceProfile, float | None]:
    """
    计算窗口内各入场价格

    HIGH = 窗口最高价, LOW = 窗口最低价, MID = (HIGH + LOW) / 2
    """
    empty: dict[PriceProfile, float | None] = {p: None for p in PriceProfile}
    highs = [b.high for b in bars if math.isfinite(b.high)]
    lows = [b.low for b in bars if math.isfinite(b.low)]
    if not highs or not lows:
        return empty

    max_high = max(highs)
    min_low = min(lows)
    return {
        PriceProfile.HIGH: max_high,
        PriceProfile.MID: (max_high + min_low) / 2,
        PriceProfile.LOW: min_low,
    }


def short_return_pct(entry_price: float, exit_price: float) -> float:
    """做空收益率: 价格下跌为正"""
    return (entry_price - exit_price) / entry_price * 100


def _first_at_or_after(bars: Sequence[PriceBar], timestamp: int) -> PriceBar | None:
    return next((b for b in bars if b.start >= timestamp), None)


@dataclass
class _Stats:
    total_return: float = 0.0
    wins: int = 0
    count: int = 0


class SummaryAccumulator:
    """按场景累计收益，单次遍历即可得到汇总"""

    def __init__(self) -> None:
        self._stats: dict[str, _Stats] = {s.id: _Stats() for s in LISTING_SCENARIOS}

    def add(self, scenario_id: str, return_pct: float) -> None:
        stats = self._stats[scenario_id]
        stats.total_return += return_pct
        if return_pct > 0:
            stats.wins += 1
        stats.count += 1

    def summaries(self) -> list[ScenarioSummary]:
        result = []
        for scenario in LISTING_SCENARIOS:
            stats = self._stats[scenario.id]
            result.append(
                ScenarioSummary(
                    scenario_id=scenario.id,
                    label=scenario.label,
                    description=scenario.description,
                    entry_hours=scenario.entry_hours,
                    sample_size=stats.count,
                    average_return=(
                        round(stats.total_return / stats.count, 2) if stats.count else None
                    ),
                    success_rate=(
                        round(stats.wins / stats.count * 100, 1) if stats.count else None
                    ),
                )
            )
        return result


def evaluate_listing(
    listing_time_ms: int,
    bars: Sequence[PriceBar],
    accumulator: SummaryAccumulator | None = None,
) -> list[ScenarioResult]:
    """
    对单个币种计算全部场景

    Args:
        listing_time_ms: 上币时间 (ms)
        bars: 1h K 线，无需预先排序
        accumulator: 可选，累计到跨币种汇总

    Returns:
        按场景顺序 (入场偏移升序, HIGH/MID/LOW) 的结果；数据不足的场景被跳过
    """
    ordered = sorted(bars, key=lambda b: b.start)
    results: list[ScenarioResult] = []

    for base in BASE_SCENARIOS:
        entry_time = listing_time_ms + base.entry_hours * MS_PER_HOUR
        exit_time = entry_time + HOLD_HOURS * MS_PER_HOUR

        entry_bar = _first_at_or_after(ordered, entry_time)
        exit_bar = _first_at_or_after(ordered, exit_time)
        if entry_bar is None or exit_bar is None:
            continue

        exit_price = exit_bar.close
        if not _is_valid_price(exit_price):
            continue

        window = [b for b in ordered if entry_time <= b.start < exit_time]
        if not window:
            continue

        profile_prices = build_profile_prices(window)
        entry_date = datetime.fromtimestamp(entry_time / 1000, UTC).strftime("%Y-%m-%d")

        for profile in PriceProfile:
            entry_price = profile_prices[profile]
            if entry_price is None or not _is_valid_price(entry_price):
                continue

            scenario = SCENARIOS_BY_ID[f"{base.id}_{profile.value}"]
            raw_return = short_return_pct(entry_price, exit_price)
            return_pct = round(raw_return, 2)
            results.append(
                ScenarioResult(
                    scenario_id=scenario.id,
                    label=scenario.label,
                    date=entry_date,
                    entry_hours=base.entry_hours,
                    entry_price=entry_price,
                    exit_price=exit_price,
                    return_pct=return_pct,
                    price_profile=profile,
                    liquidated=return_pct <= LIQUIDATION_THRESHOLD_PCT,
                )
            )
            if accumulator is not None:
                accumulator.add(scenario.id, raw_return)

    return results
