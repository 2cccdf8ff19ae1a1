"""
registry.py - Collateral allow-list

CollateralRegistry maps each approved collateral asset to exactly one
PriceOracleAdapter. The mapping is fixed at construction; iteration follows
insertion order so value summations walk assets deterministically.
"""

from __future__ import annotations
from typing import Dict, Iterator, Sequence, Tuple

from .core import AssetId, ConfigMismatch, UnsupportedAsset
from .oracle import PriceOracleAdapter


class CollateralRegistry:
    """
    Static collateral allow-list.

    Example:
        registry = CollateralRegistry(
            ["WETH", "WBTC"],
            [PriceOracleAdapter(eth_feed), PriceOracleAdapter(btc_feed)],
        )
        registry.adapter_for("WETH").price("WETH")
    """

    def __init__(self, assets: Sequence[AssetId], adapters: Sequence[PriceOracleAdapter]):
        """
        Raises:
            ConfigMismatch: If the sequences differ in length or an asset repeats
        """
        if len(assets) != len(adapters):
            raise ConfigMismatch(
                f"Got {len(assets)} collateral assets but {len(adapters)} price adapters"
            )
        self._adapters: Dict[AssetId, PriceOracleAdapter] = {}
        self._sealed = False
        for asset, adapter in zip(assets, adapters):
            self.register(asset, adapter)
        self._sealed = True

    def register(self, asset: AssetId, adapter: PriceOracleAdapter) -> None:
        """
        Add an asset during construction.

        Raises:
            ConfigMismatch: After construction, on an empty asset id, or on a duplicate
        """
        if self._sealed:
            raise ConfigMismatch("Collateral registry is fixed after construction")
        if not asset or not str(asset).strip():
            raise ConfigMismatch("Collateral asset id cannot be empty")
        if asset in self._adapters:
            raise ConfigMismatch(f"Collateral asset {asset} registered twice")
        if adapter is None:
            raise ConfigMismatch(f"Collateral asset {asset} has no price adapter")
        self._adapters[asset] = adapter

    def is_supported(self, asset: AssetId) -> bool:
        return asset in self._adapters

    def adapter_for(self, asset: AssetId) -> PriceOracleAdapter:
        """
        Raises:
            UnsupportedAsset: If asset is not on the allow-list
        """
        try:
            return self._adapters[asset]
        except KeyError:
            raise UnsupportedAsset(f"Asset {asset} is not an approved collateral") from None

    def require_supported(self, asset: AssetId) -> AssetId:
        """Guard used at the top of ledger and engine operations."""
        if asset not in self._adapters:
            raise UnsupportedAsset(f"Asset {asset} is not an approved collateral")
        return asset

    def list_assets(self) -> Tuple[AssetId, ...]:
        """Approved assets in insertion order."""
        return tuple(self._adapters)

    def __contains__(self, asset: object) -> bool:
        return asset in self._adapters

    def __iter__(self) -> Iterator[AssetId]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    def __repr__(self):
        return f"CollateralRegistry({list(self._adapters)})"
