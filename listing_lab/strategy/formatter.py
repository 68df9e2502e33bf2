# listing_lab/strategy/formatter.py
from listing_lab.strategy.models import ListingCalendar, ListingStrategyReport, ScenarioSummary


def _format_pct(value: float | None) -> str:
    if value is None:
        return "-"
    return f"{value:+.2f}%"


def rank_scenarios(report: ListingStrategyReport) -> list[ScenarioSummary]:
    """按平均收益降序，无样本的场景排在最后"""
    with_samples = [s for s in report.summary if s.average_return is not None]
    without = [s for s in report.summary if s.average_return is None]
    with_samples.sort(key=lambda s: s.average_return or 0.0, reverse=True)
    return with_samples + without


def format_strategy_summary(report: ListingStrategyReport, top: int = 5) -> str:
    lines = [
        f"📉 Listing short scenarios ({report.months}m lookback)",
        f"Coins analyzed: {report.coins_analyzed}",
        "",
    ]
    ranked = [s for s in rank_scenarios(report) if s.sample_size > 0][:top]
    if not ranked:
        lines.append("No scenario has samples yet")
        return "\n".join(lines)

    for i, s in enumerate(ranked, 1):
        win = f"{s.success_rate:.1f}%" if s.success_rate is not None else "-"
        lines.append(
            f"{i}. {s.label}: avg {_format_pct(s.average_return)} | "
            f"win {win} | n={s.sample_size}"
        )

    liquidations = sum(1 for c in report.coins for r in c.scenarios if r.liquidated)
    if liquidations:
        lines.append("")
        lines.append(f"⚠️ Liquidated results: {liquidations}")

    lines.append("")
    lines.append(f"Generated at {report.generated_at}")
    return "\n".join(lines)


def format_calendar(listing_calendar: ListingCalendar, limit: int = 10) -> str:
    lines = [f"🗓 Listing calendar (recent: {listing_calendar.recent_count})", ""]
    if not listing_calendar.entries:
        lines.append("No listings found")
        return "\n".join(lines)

    for entry in listing_calendar.entries[:limit]:
        marker = "🆕 " if entry.is_recent else ""
        lines.append(f"{marker}{entry.listing_date} {entry.symbol} ({entry.korean_name})")
    remaining = len(listing_calendar.entries) - limit
    if remaining > 0:
        lines.append(f"... {remaining} more")
    return "\n".join(lines)
