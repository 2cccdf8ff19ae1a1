"""
config.py - YAML configuration and engine wiring

Loads an engine configuration file, validates it, and wires feeds, adapters,
registry and units into a CollateralEngine.

File layout:
    engine:
      staleness_window_seconds: 10800
      account: engine
      pegged_symbol: PEG
    logging:
      level: INFO
    collateral:
      - asset: WETH
        feed_decimals: 8

Every validation failure raises ConfigError; wiring that does not match the
configuration (missing feed or unit, wrong feed decimals) raises ConfigMismatch.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import timedelta
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Set, Tuple, Union

import yaml

from .core import PRICE_DECIMALS, STALENESS_WINDOW, ConfigError, ConfigMismatch
from .engine import CollateralEngine
from .logging_config import setup_logging
from .oracle import PriceOracleAdapter
from .pricing_source import Clock, PriceFeed
from .registry import CollateralRegistry
from .tokens import FungibleUnit


logger = logging.getLogger(__name__)


# ============================================================================
# CONFIG DATA
# ============================================================================

@dataclass(frozen=True)
class CollateralConfig:
    """One approved collateral asset and the decimals its feed must report."""
    asset: str = ""
    feed_decimals: int = 8


@dataclass(frozen=True)
class EngineConfig:
    """Validated engine configuration."""
    staleness_window_seconds: int = int(STALENESS_WINDOW.total_seconds())
    log_level: str = "INFO"
    account: str = "engine"
    pegged_symbol: str = "PEG"
    collateral: Tuple[CollateralConfig, ...] = field(default_factory=tuple)

    @property
    def staleness_window(self) -> timedelta:
        return timedelta(seconds=self.staleness_window_seconds)

    @property
    def assets(self) -> Tuple[str, ...]:
        return tuple(c.asset for c in self.collateral)


# ============================================================================
# LOADING
# ============================================================================

def _parse_collateral(raw: Any) -> Tuple[CollateralConfig, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ConfigError("'collateral' must be a list of {asset, feed_decimals} entries")
    entries = []
    seen: Set[str] = set()
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigError(f"collateral[{i}] must be a mapping")
        asset = str(item.get("asset", "")).strip()
        if not asset:
            raise ConfigError(f"collateral[{i}] is missing 'asset'")
        if asset in seen:
            raise ConfigError(f"collateral asset {asset} listed twice")
        seen.add(asset)
        decimals = item.get("feed_decimals", 8)
        if isinstance(decimals, bool) or not isinstance(decimals, int) or not 0 <= decimals <= PRICE_DECIMALS:
            raise ConfigError(
                f"collateral[{i}] feed_decimals must be an int in 0..{PRICE_DECIMALS}, got {decimals!r}"
            )
        entries.append(CollateralConfig(asset=asset, feed_decimals=decimals))
    return tuple(entries)


def parse_config(raw: Mapping[str, Any]) -> EngineConfig:
    """
    Build an EngineConfig from an already-parsed mapping.

    Raises:
        ConfigError: If any section is malformed or a value is out of range
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigError("Config root must be a mapping")

    engine = raw.get("engine") or {}
    logging_section = raw.get("logging") or {}
    if not isinstance(engine, Mapping) or not isinstance(logging_section, Mapping):
        raise ConfigError("'engine' and 'logging' sections must be mappings")

    window = engine.get("staleness_window_seconds", int(STALENESS_WINDOW.total_seconds()))
    if isinstance(window, bool) or not isinstance(window, int) or window <= 0:
        raise ConfigError(f"staleness_window_seconds must be a positive int, got {window!r}")

    level = str(logging_section.get("level", "INFO")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"Unknown log level {level}")

    return EngineConfig(
        staleness_window_seconds=window,
        log_level=level,
        account=str(engine.get("account", "engine")),
        pegged_symbol=str(engine.get("pegged_symbol", "PEG")),
        collateral=_parse_collateral(raw.get("collateral")),
    )


def load_config(path: Union[str, Path]) -> EngineConfig:
    """
    Load and validate a YAML config file.

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or fails validation
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    config = parse_config(raw)
    logger.info("Loaded config from %s: %d collateral assets", config_path, len(config.collateral))
    return config


# ============================================================================
# WIRING
# ============================================================================

def build_engine(
    config: EngineConfig,
    feeds: Mapping[str, PriceFeed],
    collateral_units: Mapping[str, FungibleUnit],
    pegged_unit: FungibleUnit,
    clock: Optional[Clock] = None,
) -> CollateralEngine:
    """
    Apply the configured log level, then wire adapters, registry and engine
    for the configured collateral.

    Raises:
        ConfigMismatch: If a configured asset has no feed or unit, or a feed's
            decimals differ from the configured feed_decimals
    """
    setup_logging(config.log_level)

    adapters = []
    for entry in config.collateral:
        feed = feeds.get(entry.asset)
        if feed is None:
            raise ConfigMismatch(f"No price feed supplied for {entry.asset}")
        if feed.decimals != entry.feed_decimals:
            raise ConfigMismatch(
                f"Feed for {entry.asset} has {feed.decimals} decimals, config says {entry.feed_decimals}"
            )
        adapters.append(PriceOracleAdapter(feed, config.staleness_window, clock))

    registry = CollateralRegistry(list(config.assets), adapters)
    engine = CollateralEngine(
        registry,
        {asset: collateral_units[asset] for asset in config.assets if asset in collateral_units},
        pegged_unit,
        account=config.account,
        pegged_symbol=config.pegged_symbol,
    )
    logger.info("Built engine for %s (log level %s)", ", ".join(config.assets), config.log_level)
    return engine
