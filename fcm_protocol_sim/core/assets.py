#!/usr/bin/env python3
"""
Asset Registry

Collateral and debt assets supported by the simulation, with their static
market parameters. Base prices double as the last-known-good table used when
an external price feed is unavailable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple


class Asset(Enum):
    """Supported collateral assets"""
    BTC = "btc"
    ETH = "eth"
    SOL = "sol"
    AVAX = "avax"
    FLOW = "flow"


class DebtAsset(Enum):
    """Supported debt assets"""
    USDC = "usdc"
    USDT = "usdt"
    DAI = "dai"


@dataclass(frozen=True)
class AssetInfo:
    """Static parameters for a collateral asset"""
    asset: Asset
    symbol: str
    name: str
    base_price: float
    collateral_factor: float
    supply_apy: float
    has_multi_year_data: bool = False
    # (min, target, max); max of inf bars leverage-up for riskier assets
    base_thresholds: Optional[Tuple[float, float, float]] = None


@dataclass(frozen=True)
class DebtAssetInfo:
    """Static parameters for a debt asset"""
    asset: DebtAsset
    symbol: str
    name: str
    borrow_apy: float


ASSETS: Dict[Asset, AssetInfo] = {
    Asset.BTC: AssetInfo(
        Asset.BTC, "BTC", "Bitcoin",
        base_price=97_000.0, collateral_factor=0.75, supply_apy=0.015,
        has_multi_year_data=True,
        base_thresholds=(1.10, 1.25, float("inf")),
    ),
    Asset.ETH: AssetInfo(
        Asset.ETH, "ETH", "Ethereum",
        base_price=3_900.0, collateral_factor=0.80, supply_apy=0.025,
        has_multi_year_data=True,
        base_thresholds=(1.10, 1.25, 1.50),
    ),
    Asset.SOL: AssetInfo(
        Asset.SOL, "SOL", "Solana",
        base_price=230.0, collateral_factor=0.70, supply_apy=0.05,
        base_thresholds=(1.15, 1.35, float("inf")),
    ),
    Asset.AVAX: AssetInfo(
        Asset.AVAX, "AVAX", "Avalanche",
        base_price=52.0, collateral_factor=0.65, supply_apy=0.04,
        base_thresholds=(1.15, 1.35, float("inf")),
    ),
    Asset.FLOW: AssetInfo(
        Asset.FLOW, "FLOW", "Flow",
        base_price=1.00, collateral_factor=0.80, supply_apy=0.042,
    ),
}

DEBT_ASSETS: Dict[DebtAsset, DebtAssetInfo] = {
    DebtAsset.USDC: DebtAssetInfo(DebtAsset.USDC, "USDC", "USD Coin", borrow_apy=0.065),
    DebtAsset.USDT: DebtAssetInfo(DebtAsset.USDT, "USDT", "Tether", borrow_apy=0.07),
    DebtAsset.DAI: DebtAssetInfo(DebtAsset.DAI, "DAI", "Dai", borrow_apy=0.06),
}

DEFAULT_ASSET = Asset.FLOW
DEFAULT_DEBT_ASSET = DebtAsset.USDC


def _coerce(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return default


def get_asset(asset_id) -> AssetInfo:
    """Look up a collateral asset; unknown ids fall back to the generic default"""
    return ASSETS[_coerce(Asset, asset_id, DEFAULT_ASSET)]


def get_debt_asset(asset_id) -> DebtAssetInfo:
    """Look up a debt asset; unknown ids fall back to USDC"""
    return DEBT_ASSETS[_coerce(DebtAsset, asset_id, DEFAULT_DEBT_ASSET)]


def is_known_asset(asset_id) -> bool:
    return _coerce(Asset, asset_id, None) is not None


def resolve_base_price(asset_id, live_prices: Optional[Mapping[str, float]] = None) -> float:
    """
    Pick the day-0 price for an asset.

    Live prices come from an external feed keyed by asset id; a missing or
    non-positive quote degrades to the static table instead of failing.
    """
    info = get_asset(asset_id)
    if live_prices:
        quote = live_prices.get(info.asset.value)
        if quote is not None and quote > 0:
            return float(quote)
    return info.base_price
