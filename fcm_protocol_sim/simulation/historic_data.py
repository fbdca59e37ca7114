#!/usr/bin/env python3
"""
Historic Price Data

Yearly anchor data for BTC and ETH (2020-2025) and the generators that turn
those anchors into daily replay series. Each calendar year contributes its real
number of days, so multi-year ranges stay aligned with the calendar across
leap years.
"""

import calendar
import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

from ..core.assets import Asset, get_asset


@dataclass(frozen=True)
class YearAnchor:
    """Start/end/low/high prices and regime for one asset-year"""
    start: float
    end: float
    low: float
    high: float
    pattern: str  # "bull", "bear" or "volatile"


@dataclass(frozen=True)
class YearData:
    year: int
    btc: YearAnchor
    eth: YearAnchor
    avg_yield: float  # average DeFi lending yield for the year


YEARLY_DATA: List[YearData] = [
    YearData(2020,
             btc=YearAnchor(7_200, 29_000, 3_800, 29_000, "volatile"),
             eth=YearAnchor(130, 737, 90, 750, "volatile"),
             avg_yield=0.025),
    YearData(2021,
             btc=YearAnchor(29_000, 46_000, 29_000, 69_000, "volatile"),
             eth=YearAnchor(737, 3_700, 737, 4_800, "bull"),
             avg_yield=0.04),
    YearData(2022,
             btc=YearAnchor(46_000, 16_500, 15_500, 48_000, "bear"),
             eth=YearAnchor(3_700, 1_200, 880, 3_900, "bear"),
             avg_yield=0.03),
    YearData(2023,
             btc=YearAnchor(16_500, 42_000, 16_500, 45_000, "bull"),
             eth=YearAnchor(1_200, 2_300, 1_200, 2_700, "bull"),
             avg_yield=0.04),
    YearData(2024,
             btc=YearAnchor(42_000, 93_000, 38_000, 99_000, "bull"),
             eth=YearAnchor(2_300, 3_400, 2_100, 4_000, "volatile"),
             avg_yield=0.05),
    YearData(2025,
             btc=YearAnchor(93_000, 100_000, 85_000, 105_000, "volatile"),
             eth=YearAnchor(3_400, 3_800, 3_200, 4_200, "volatile"),
             avg_yield=0.05),
]

FIRST_YEAR = YEARLY_DATA[0].year
LAST_YEAR = YEARLY_DATA[-1].year
DEFAULT_YIELD = 0.03


@dataclass(frozen=True)
class BlackSwanEvent:
    """Major market crash, used to annotate replay charts"""
    event_id: str
    name: str
    short_name: str
    year: int
    day_of_year: int
    description: str
    severity: str
    price_drop_percent: float


BLACK_SWAN_EVENTS: List[BlackSwanEvent] = [
    BlackSwanEvent("covid-2020", "COVID-19 Crash", "COVID", 2020, 72,
                   "Global pandemic triggered -47% crash in 26 days", "severe", 47.0),
    BlackSwanEvent("luna-2022", "LUNA Collapse", "LUNA", 2022, 130,
                   "Terra/LUNA algorithmic stablecoin death spiral", "severe", 30.0),
    BlackSwanEvent("ftx-2022", "FTX Collapse", "FTX", 2022, 310,
                   "FTX exchange bankruptcy and fraud", "major", 25.0),
]


def get_year_data(year: int) -> Optional[YearData]:
    for year_data in YEARLY_DATA:
        if year_data.year == year:
            return year_data
    return None


def clamp_year(year: int) -> int:
    return max(FIRST_YEAR, min(int(year), LAST_YEAR))


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def total_days(start_year: int, end_year: int) -> int:
    """Number of simulated days spanning whole calendar years"""
    if end_year < start_year:
        return 0
    return sum(days_in_year(year) for year in range(start_year, end_year + 1))


def day_to_date(day: int, start_year: int) -> date:
    """Calendar date of a simulation day"""
    return date(start_year, 1, 1) + timedelta(days=max(0, int(day)))


def _anchor_for(year_data: YearData, asset: Asset) -> YearAnchor:
    return year_data.btc if asset == Asset.BTC else year_data.eth


def _year_price(anchor: YearAnchor, day: int, length: int) -> float:
    """Price on a given day-of-year following the year's regime"""
    progress = day / length
    noise = (math.sin(day * 0.5) * 0.02 + math.cos(day * 0.3) * 0.015) * anchor.start

    if anchor.pattern == "bull":
        price = anchor.start + (anchor.end - anchor.start) * progress ** 0.8
        # mid-year dip
        if 0.3 < progress < 0.5:
            dip_progress = (progress - 0.3) / 0.2
            price -= (price - anchor.low) * 0.3 * math.sin(dip_progress * math.pi)
    elif anchor.pattern == "bear":
        if progress < 0.15:
            price = anchor.start * (1 + progress * 0.1)
        elif progress < 0.5:
            crash_progress = (progress - 0.15) / 0.35
            price = anchor.start * 1.015 - (anchor.start * 1.015 - anchor.low) * crash_progress
        elif progress < 0.7:
            # dead cat bounce
            bounce_progress = (progress - 0.5) / 0.2
            price = anchor.low + anchor.low * 0.3 * math.sin(bounce_progress * math.pi)
        else:
            end_progress = (progress - 0.7) / 0.3
            price = anchor.low * 1.1 + (anchor.end - anchor.low * 1.1) * end_progress
    else:
        if progress < 0.2:
            price = anchor.start + (anchor.high - anchor.start) * 0.1 * progress / 0.2
        elif progress < 0.35:
            crash_progress = (progress - 0.2) / 0.15
            peak_price = anchor.start * 1.05
            price = peak_price - (peak_price - anchor.low) * crash_progress
        elif progress < 0.7:
            recovery_progress = (progress - 0.35) / 0.35
            price = anchor.low + (anchor.high - anchor.low) * recovery_progress ** 0.7
        else:
            final_progress = (progress - 0.7) / 0.3
            price = anchor.high - (anchor.high - anchor.end) * final_progress

    return max(price * 0.01, price + noise)


def generate_multi_year_prices(asset, start_year: int, end_year: int) -> List[float]:
    """
    Daily closes for BTC or ETH from Jan 1 of start_year through Dec 31 of
    end_year, followed by one closing point at the final year's end price.

    The result has total_days(start_year, end_year) + 1 entries.
    """
    asset = get_asset(asset).asset
    prices: List[float] = []
    last_anchor: Optional[YearAnchor] = None

    for year in range(start_year, end_year + 1):
        year_data = get_year_data(year)
        if year_data is None:
            continue
        anchor = _anchor_for(year_data, asset)
        length = days_in_year(year)
        prices.extend(_year_price(anchor, day, length) for day in range(length))
        last_anchor = anchor

    if last_anchor is not None:
        prices.append(last_anchor.end)
    return prices


def _single_year_multiplier(asset: Asset, day: int) -> float:
    progress = day / 365

    if asset == Asset.SOL:
        if progress < 0.15:
            multiplier = 1.0 + math.sin(day * 0.3) * 0.02
        elif progress < 0.22:
            launch_progress = (progress - 0.15) / 0.07
            multiplier = 1.0 - launch_progress * 0.4 + math.sin(day * 0.6) * 0.05
        elif progress < 0.5:
            growth_progress = (progress - 0.22) / 0.28
            multiplier = 0.6 + growth_progress * 0.8 + math.sin(day * 0.25) * 0.06
        elif progress < 0.75:
            multiplier = 1.4 + (progress - 0.5) * 0.8 + math.sin(day * 0.2) * 0.08
        else:
            bull_progress = (progress - 0.75) / 0.25
            multiplier = 1.6 + bull_progress * 2.4 + math.sin(day * 0.3) * 0.08
    elif asset == Asset.AVAX:
        if progress < 0.15:
            multiplier = 1.0 + progress * 0.15 + math.sin(day * 0.3) * 0.02
        elif progress < 0.22:
            crash_progress = (progress - 0.15) / 0.07
            multiplier = 1.15 - crash_progress * 0.55 + math.sin(day * 0.5) * 0.04
        elif progress < 0.5:
            recovery_progress = (progress - 0.22) / 0.28
            multiplier = 0.6 + recovery_progress * 0.6 + math.sin(day * 0.2) * 0.05
        elif progress < 0.75:
            multiplier = 1.2 + (progress - 0.5) * 1.0 + math.sin(day * 0.18) * 0.06
        else:
            bull_progress = (progress - 0.75) / 0.25
            multiplier = 1.45 + bull_progress * 2.0 + math.sin(day * 0.25) * 0.06
    else:
        # flat with a faint wobble for assets without recorded history
        multiplier = 1 + math.sin(day * 0.1) * 0.001

    return max(0.05, multiplier)


def generate_single_year_prices(asset) -> List[float]:
    """366 daily prices (days 0..365) for assets without multi-year anchors"""
    info = get_asset(asset)
    return [info.base_price * _single_year_multiplier(info.asset, day) for day in range(366)]


def year_start_price(asset, year: int) -> float:
    info = get_asset(asset)
    year_data = get_year_data(year)
    if year_data is None or not info.has_multi_year_data:
        return info.base_price
    return _anchor_for(year_data, info.asset).start


def average_yield(start_year: int, end_year: int) -> float:
    """Mean of the per-year DeFi yields across a range"""
    yields = [y.avg_yield for y in YEARLY_DATA if start_year <= y.year <= end_year]
    return sum(yields) / len(yields) if yields else DEFAULT_YIELD


def yield_for_day(day: int, start_year: int) -> float:
    """DeFi yield for the calendar year a simulation day falls in"""
    year_data = get_year_data(day_to_date(day, start_year).year)
    return year_data.avg_yield if year_data else DEFAULT_YIELD


def events_in_range(start_year: int, end_year: int) -> List[BlackSwanEvent]:
    return [e for e in BLACK_SWAN_EVENTS if start_year <= e.year <= end_year]


def event_to_simulation_day(event: BlackSwanEvent, start_year: int) -> int:
    """Simulation day of an event, counting real year lengths"""
    return total_days(start_year, event.year - 1) + event.day_of_year


def event_intraday_lows(prices: Sequence[float], start_year: int, end_year: int) -> Dict[int, float]:
    """
    Intraday lows for black-swan days in a replay series.

    Each event day gets a wick reaching price_drop_percent below the lower of
    the previous and current close, so the whole drawdown lands inside one day.
    """
    lows: Dict[int, float] = {}
    for event in events_in_range(start_year, end_year):
        day = event_to_simulation_day(event, start_year)
        if not 0 < day < len(prices):
            continue
        lows[day] = min(prices[day - 1], prices[day]) * (1 - event.price_drop_percent / 100)
    return lows


def yearly_summary(start_year: int, end_year: int) -> Dict[int, float]:
    """Average yield per year in range, for reporting"""
    return {y.year: y.avg_yield for y in YEARLY_DATA if start_year <= y.year <= end_year}
