"""
collateral_engine - Over-collateralized Debt Engine

Deposit approved collateral, mint a pegged unit against it, and liquidate
positions that fall below a health factor of 1.0.

Usage:
    from datetime import datetime
    from collateral_engine import (
        CollateralEngine, CollateralRegistry, PriceOracleAdapter,
        StaticPriceFeed, LogicalClock, TokenLedger, PRECISION,
    )

    clock = LogicalClock(datetime(2025, 1, 1))
    eth_feed = StaticPriceFeed(2000_00000000, decimals=8, clock=clock)
    registry = CollateralRegistry(["WETH"], [PriceOracleAdapter(eth_feed, clock=clock)])

    weth = TokenLedger("WETH", custodian="engine")
    peg = TokenLedger("PEG", custodian="engine", mintable=True)
    engine = CollateralEngine(registry, {"WETH": weth}, peg)

    weth.set_balance("alice", 10 * PRECISION)
    weth.approve("alice", 10 * PRECISION)
    engine.deposit_collateral_and_mint("alice", "WETH", 10 * PRECISION, 5_000 * PRECISION)
    engine.get_health_factor("alice")   # 2 * PRECISION
"""

# Core types
from .core import (
    PRECISION,
    PRICE_DECIMALS,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION,
    LIQUIDATION_BONUS,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    STALENESS_WINDOW,
    RoundData,
    Price,
    AccountInfo,
    EngineEvent,
    EventType,
    EngineError,
    ZeroAmount,
    UnsupportedAsset,
    ConfigMismatch,
    ConfigError,
    HealthFactorBroken,
    HealthFactorOk,
    HealthFactorNotImproved,
    InsufficientCollateral,
    InsufficientDebt,
    InsufficientFunds,
    StalePrice,
    InvalidPrice,
    TransferFailed,
    MintFailed,
    ReentrantCall,
)

# Pricing
from .pricing_source import (
    PriceFeed,
    StaticPriceFeed,
    TimeSeriesPriceFeed,
    LogicalClock,
)
from .oracle import PriceOracleAdapter
from .registry import CollateralRegistry

# Ledgers
from .positions import PositionStore, CollateralLedger, DebtLedger

# Health and liquidation
from .health import (
    HealthFactorCalculator,
    calculate_usd_value,
    calculate_token_amount_from_usd,
    calculate_collateral_value,
    calculate_health_factor,
    calculate_max_mintable,
)
from .liquidation import (
    LiquidationCoordinator,
    LiquidationQuote,
    LiquidationResult,
    quote_liquidation,
)

# Units
from .tokens import FungibleUnit, Transactional, TokenLedger

# Engine
from .engine import CollateralEngine, Interaction

# Configuration
from .config import CollateralConfig, EngineConfig, load_config, parse_config, build_engine
from .logging_config import setup_logging

__all__ = [
    # Constants
    'PRECISION', 'PRICE_DECIMALS', 'LIQUIDATION_THRESHOLD', 'LIQUIDATION_PRECISION',
    'LIQUIDATION_BONUS', 'MIN_HEALTH_FACTOR', 'MAX_HEALTH_FACTOR', 'STALENESS_WINDOW',
    # Data
    'RoundData', 'Price', 'AccountInfo', 'EngineEvent', 'EventType',
    # Errors
    'EngineError', 'ZeroAmount', 'UnsupportedAsset', 'ConfigMismatch', 'ConfigError',
    'HealthFactorBroken', 'HealthFactorOk', 'HealthFactorNotImproved',
    'InsufficientCollateral', 'InsufficientDebt', 'InsufficientFunds',
    'StalePrice', 'InvalidPrice', 'TransferFailed', 'MintFailed', 'ReentrantCall',
    # Pricing
    'PriceFeed', 'StaticPriceFeed', 'TimeSeriesPriceFeed', 'LogicalClock',
    'PriceOracleAdapter', 'CollateralRegistry',
    # Ledgers
    'PositionStore', 'CollateralLedger', 'DebtLedger',
    # Health
    'HealthFactorCalculator', 'calculate_usd_value', 'calculate_token_amount_from_usd',
    'calculate_collateral_value', 'calculate_health_factor', 'calculate_max_mintable',
    # Liquidation
    'LiquidationCoordinator', 'LiquidationQuote', 'LiquidationResult', 'quote_liquidation',
    # Units
    'FungibleUnit', 'Transactional', 'TokenLedger',
    # Engine
    'CollateralEngine', 'Interaction',
    # Configuration
    'CollateralConfig', 'EngineConfig', 'load_config', 'parse_config', 'build_engine',
    'setup_logging',
]

__version__ = '1.0.0'
