"""Core lending math and asset registry"""

from .math import LendingMath, MAX_HEALTH_FACTOR, LIQUIDATION_THRESHOLD, DAYS_PER_YEAR
from .assets import (
    Asset, DebtAsset, AssetInfo, DebtAssetInfo, ASSETS, DEBT_ASSETS,
    get_asset, get_debt_asset, resolve_base_price
)

__all__ = [
    "LendingMath", "MAX_HEALTH_FACTOR", "LIQUIDATION_THRESHOLD", "DAYS_PER_YEAR",
    "Asset", "DebtAsset", "AssetInfo", "DebtAssetInfo", "ASSETS", "DEBT_ASSETS",
    "get_asset", "get_debt_asset", "resolve_base_price"
]
