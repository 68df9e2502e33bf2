"""上币后做空回测场景定义"""

from dataclasses import dataclass
from enum import Enum


class PriceProfile(str, Enum):
    """入场价格取值方式"""

    HIGH = "HIGH"
    MID = "MID"
    LOW = "LOW"


@dataclass(frozen=True)
class BaseScenario:
    id: str
    label: str
    description: str
    entry_hours: int


@dataclass(frozen=True)
class ScenarioDefinition:
    id: str
    label: str
    description: str
    entry_hours: int
    price_profile: PriceProfile

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "entry_hours": self.entry_hours,
            "price_profile": self.price_profile.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScenarioDefinition":
        return cls(
            id=data["id"],
            label=data["label"],
            description=data["description"],
            entry_hours=int(data["entry_hours"]),
            price_profile=PriceProfile(data["price_profile"]),
        )


BASE_SCENARIOS: tuple[BaseScenario, ...] = (
    BaseScenario("D0_OPEN", "Short at listing", "Enter at listing, hold 24h", 0),
    BaseScenario("D0_12H", "Short at listing +12h", "Enter 12h after listing, hold 24h", 12),
    BaseScenario("D1_OPEN", "Short at listing +1d", "Enter 1 day after listing, hold 24h", 24),
    BaseScenario("D3_OPEN", "Short at listing +3d", "Enter 3 days after listing, hold 24h", 72),
    BaseScenario("D5_OPEN", "Short at listing +5d", "Enter 5 days after listing, hold 24h", 120),
)

PRICE_PROFILE_LABELS: dict[PriceProfile, str] = {
    PriceProfile.HIGH: "window high",
    PriceProfile.MID: "window mid",
    PriceProfile.LOW: "window low",
}

LISTING_SCENARIOS: tuple[ScenarioDefinition, ...] = tuple(
    ScenarioDefinition(
        id=f"{base.id}_{profile.value}",
        label=f"{base.label} · {PRICE_PROFILE_LABELS[profile]}",
        description=f"{base.description} (entry at {PRICE_PROFILE_LABELS[profile]})",
        entry_hours=base.entry_hours,
        price_profile=profile,
    )
    for base in BASE_SCENARIOS
    for profile in PriceProfile
)

SCENARIOS_BY_ID: dict[str, ScenarioDefinition] = {s.id: s for s in LISTING_SCENARIOS}

HOLD_HOURS = 24
MS_PER_HOUR = 3600 * 1000
MAX_ENTRY_HOURS = max(s.entry_hours for s in LISTING_SCENARIOS)
# 拉取 1h K 线时在最长场景之后多留的余量
FETCH_MARGIN_HOURS = 12
