"""
一次性生成上币做空场景报告 / 上币日历

用法:
    uv run python -m listing_lab.scripts.build_report
    uv run python -m listing_lab.scripts.build_report --months 6 --max-coins 50
    uv run python -m listing_lab.scripts.build_report --calendar
    uv run python -m listing_lab.scripts.build_report --output data/report.json
"""

import argparse
import asyncio
import json
import logging
from collections.abc import Sequence
from pathlib import Path

from listing_lab.client.bybit import BybitClient
from listing_lab.client.rate_limiter import RateLimiter
from listing_lab.client.upbit import UpbitClient
from listing_lab.collector.catalog import MarketCatalog
from listing_lab.config import Config, load_config
from listing_lab.strategy.analyzer import ListingAnalyzer
from listing_lab.strategy.formatter import format_calendar, format_strategy_summary

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def parse_args(args: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="生成上币做空场景报告")
    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="配置文件路径 (不存在时使用默认配置)",
    )
    parser.add_argument(
        "--months",
        type=int,
        default=None,
        help="回看月数 (默认: 配置值)",
    )
    parser.add_argument(
        "--max-coins",
        type=int,
        default=None,
        help="最多分析的币种数 (默认: 配置值)",
    )
    parser.add_argument(
        "--calendar",
        action="store_true",
        help="生成上币日历而不是场景报告",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="将结果 JSON 写入指定文件",
    )
    return parser.parse_args(args)


def write_output(payload: dict, output: str) -> None:
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    logger.info(f"Saved to {path}")


async def run(args: argparse.Namespace) -> int:
    config_path = Path(args.config)
    config = load_config(config_path) if config_path.exists() else Config()

    upbit_limiter = RateLimiter(
        min_interval_ms=config.upbit.min_interval_ms,
        max_retries=config.upbit.max_retries,
        retry_backoff_ms=config.upbit.retry_backoff_ms,
    )
    bybit_limiter = RateLimiter(
        min_interval_ms=config.bybit.min_interval_ms,
        max_retries=config.bybit.max_retries,
        retry_backoff_ms=config.bybit.retry_backoff_ms,
    )
    upbit = UpbitClient(base_url=config.upbit.base_url)
    bybit = BybitClient()
    await upbit.init()
    await bybit.init()

    try:
        catalog = MarketCatalog(upbit, upbit_limiter)
        if await catalog.load() == 0:
            logger.error("No markets available")
            return 1

        analyzer = ListingAnalyzer(upbit, bybit, upbit_limiter, bybit_limiter)
        assets = catalog.list_assets()

        if args.calendar:
            calendar_cfg = config.calendar
            listing_calendar = await analyzer.build_calendar(
                assets,
                months=args.months or calendar_cfg.months,
                max_coins=args.max_coins or calendar_cfg.max_coins,
                cooldown_ms=calendar_cfg.cooldown_ms,
            )
            print(format_calendar(listing_calendar))
            payload = listing_calendar.to_dict()
        else:
            strategy_cfg = config.strategy
            report = await analyzer.build_strategy_report(
                assets,
                months=args.months or strategy_cfg.months,
                max_coins=args.max_coins or strategy_cfg.max_coins,
                cooldown_ms=strategy_cfg.cooldown_ms,
            )
            print(format_strategy_summary(report))
            payload = report.to_dict()

        if args.output:
            write_output(payload, args.output)
        return 0
    finally:
        await upbit.close()
        await bybit.close()


def main() -> None:
    args = parse_args()
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
