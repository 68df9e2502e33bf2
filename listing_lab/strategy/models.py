# listing_lab/strategy/models.py
from dataclasses import asdict, dataclass
from typing import Any

from listing_lab.strategy.scenarios import PriceProfile, ScenarioDefinition


@dataclass(frozen=True)
class ScenarioResult:
    scenario_id: str
    label: str
    date: str  # 入场日期 (UTC)
    entry_hours: int
    entry_price: float
    exit_price: float
    return_pct: float  # 做空收益率 (%)
    price_profile: PriceProfile
    liquidated: bool

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["price_profile"] = self.price_profile.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScenarioResult":
        return cls(
            scenario_id=data["scenario_id"],
            label=data["label"],
            date=data["date"],
            entry_hours=int(data["entry_hours"]),
            entry_price=float(data["entry_price"]),
            exit_price=float(data["exit_price"]),
            return_pct=float(data["return_pct"]),
            price_profile=PriceProfile(data["price_profile"]),
            liquidated=bool(data["liquidated"]),
        )


@dataclass(frozen=True)
class CoinListingAnalysis:
    symbol: str
    market: str
    name: str
    korean_name: str
    listing_date: str
    scenarios: tuple[ScenarioResult, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "market": self.market,
            "name": self.name,
            "korean_name": self.korean_name,
            "listing_date": self.listing_date,
            "scenarios": [s.to_dict() for s in self.scenarios],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CoinListingAnalysis":
        return cls(
            symbol=data["symbol"],
            market=data["market"],
            name=data["name"],
            korean_name=data["korean_name"],
            listing_date=data["listing_date"],
            scenarios=tuple(ScenarioResult.from_dict(s) for s in data["scenarios"]),
        )


@dataclass(frozen=True)
class ScenarioSummary:
    scenario_id: str
    label: str
    description: str
    entry_hours: int
    sample_size: int
    average_return: float | None
    success_rate: float | None  # 正收益占比 (%)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScenarioSummary":
        return cls(**data)


@dataclass(frozen=True)
class ListingStrategyReport:
    generated_at: str  # ISO 8601 (UTC)
    months: int
    coins_analyzed: int
    scenario_definitions: tuple[ScenarioDefinition, ...]
    summary: tuple[ScenarioSummary, ...]
    coins: tuple[CoinListingAnalysis, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "months": self.months,
            "coins_analyzed": self.coins_analyzed,
            "scenario_definitions": [d.to_dict() for d in self.scenario_definitions],
            "summary": [s.to_dict() for s in self.summary],
            "coins": [c.to_dict() for c in self.coins],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ListingStrategyReport":
        return cls(
            generated_at=data["generated_at"],
            months=int(data["months"]),
            coins_analyzed=int(data["coins_analyzed"]),
            scenario_definitions=tuple(
                ScenarioDefinition.from_dict(d) for d in data["scenario_definitions"]
            ),
            summary=tuple(ScenarioSummary.from_dict(s) for s in data["summary"]),
            coins=tuple(CoinListingAnalysis.from_dict(c) for c in data["coins"]),
        )


@dataclass(frozen=True)
class ListingCalendarEntry:
    symbol: str
    name: str
    korean_name: str
    market: str
    listing_date: str
    is_recent: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ListingCalendarEntry":
        return cls(**data)


@dataclass(frozen=True)
class ListingCalendar:
    """上币日历，按上币日期倒序"""

    entries: tuple[ListingCalendarEntry, ...]
    recent_count: int
    last_updated: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "recent_count": self.recent_count,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ListingCalendar":
        entries = tuple(ListingCalendarEntry.from_dict(e) for e in data.get("entries") or [])
        return cls(
            entries=entries,
            recent_count=int(data.get("recent_count") or 0),
            last_updated=data.get("last_updated"),
        )
