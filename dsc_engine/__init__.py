"""
dsc_engine - Overcollateralized stable-unit issuance engine

Users lock collateral tokens priced by external USD feeds and mint a
stable unit against them. Positions must stay at least 200%
overcollateralized; anyone may liquidate an account that falls below that
line and collect a 10% collateral bonus.

Usage:
    from dsc_engine import (
        AssetLedger, MockToken, StableUnit, MockPriceFeed, DSCEngine,
    )

    chain = AssetLedger("chain")
    weth = MockToken(chain, "WETH", "Wrapped Ether")
    dsc = StableUnit(chain, owner="deployer")
    eth_usd = MockPriceFeed(decimals=8, initial_answer=2000 * 10**8)

    engine = DSCEngine([weth], [eth_usd], dsc)
    dsc.transfer_ownership("deployer", engine.address)

    weth.issue("alice", 10 * 10**18)
    weth.approve("alice", engine.address, 10 * 10**18)
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * 10**18, 5_000 * 10**18)

    engine.get_health_factor("alice")   # 2 * 10**18
"""

# Core types
from .core import (
    SYSTEM_WALLET,
    ENGINE_WALLET,
    MAX_UINT256,
    PRECISION,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION,
    LIQUIDATION_BONUS,
    MIN_HEALTH_FACTOR,
    DEFAULT_ORACLE_TIMEOUT,
    Wad,
    ExecuteResult,
    OriginType,
    EventKind,
    PriceFeed,
    CollateralToken,
    StableUnitToken,
    Revertible,
    AssetView,
    EngineView,
    Asset,
    Move,
    TransactionOrigin,
    PendingTransaction,
    Transaction,
    build_transaction,
    RoundData,
    PriceSample,
    SupportedCollateral,
    StalenessPolicy,
    EngineConfig,
    DEFAULT_CONFIG,
    EngineEvent,
    AccountInformation,
    OperationResult,
    # Collaborator failures
    LedgerError,
    InsufficientFunds,
    InsufficientAllowance,
    AssetNotRegistered,
    NotOwner,
    InvalidReceiver,
    InvalidAmount,
    # Engine outcomes
    EngineError,
    LengthMismatch,
    NeedsMoreThanZero,
    UnsupportedAsset,
    NotAllowedToken,
    BreaksHealthFactor,
    HealthFactorOk,
    HealthFactorNotImproved,
    TransferFailed,
    InsufficientCollateral,
    ExceedsDebt,
    OracleError,
    StalePrice,
    ReentrantCall,
    FixedPointOverflow,
)

# Fixed-point helpers
from .fixed_point import to_wad, from_wad, wad_to_float, mul_div, additional_precision_for

# Reference collaborators
from .ledger import AssetLedger, LedgerCheckpoint
from .tokens import Token, MockToken, StableUnit
from .price_feed import MockPriceFeed, TimeSeriesPriceFeed

# Engine components
from .oracle import PriceOracleAdapter
from .registry import CollateralRegistry
from .collateral_ledger import CollateralLedger, UserAccount
from .valuation import ValuationService
from .health import (
    collateral_adjusted_for_threshold,
    health_factor,
    is_healthy,
    max_mintable,
)
from .positions import PositionOperations
from .liquidation import LiquidationEngine, LiquidationQuote, calculate_liquidation
from .engine import DSCEngine

# Analytics
from .risk import (
    shocked_health_factors,
    asset_shock_grid,
    liquidation_price,
    liquidation_probability,
)

__version__ = "0.1.0"

__all__ = [
    # Constants
    'SYSTEM_WALLET', 'ENGINE_WALLET', 'MAX_UINT256', 'PRECISION',
    'ADDITIONAL_FEED_PRECISION', 'LIQUIDATION_THRESHOLD', 'LIQUIDATION_PRECISION',
    'LIQUIDATION_BONUS', 'MIN_HEALTH_FACTOR', 'DEFAULT_ORACLE_TIMEOUT', 'Wad',
    # Enums
    'ExecuteResult', 'OriginType', 'EventKind',
    # Protocols
    'PriceFeed', 'CollateralToken', 'StableUnitToken', 'Revertible', 'AssetView', 'EngineView',
    # Data structures
    'Asset', 'Move', 'TransactionOrigin', 'PendingTransaction', 'Transaction',
    'build_transaction', 'RoundData', 'PriceSample', 'SupportedCollateral',
    'StalenessPolicy', 'EngineConfig', 'DEFAULT_CONFIG', 'EngineEvent',
    'AccountInformation', 'OperationResult',
    # Errors
    'LedgerError', 'InsufficientFunds', 'InsufficientAllowance', 'AssetNotRegistered',
    'NotOwner', 'InvalidReceiver', 'InvalidAmount',
    'EngineError', 'LengthMismatch', 'NeedsMoreThanZero', 'UnsupportedAsset',
    'NotAllowedToken', 'BreaksHealthFactor', 'HealthFactorOk', 'HealthFactorNotImproved',
    'TransferFailed', 'InsufficientCollateral', 'ExceedsDebt', 'OracleError',
    'StalePrice', 'ReentrantCall', 'FixedPointOverflow',
    # Fixed point
    'to_wad', 'from_wad', 'wad_to_float', 'mul_div', 'additional_precision_for',
    # Collaborators
    'AssetLedger', 'LedgerCheckpoint', 'Token', 'MockToken', 'StableUnit',
    'MockPriceFeed', 'TimeSeriesPriceFeed',
    # Engine
    'PriceOracleAdapter', 'CollateralRegistry', 'CollateralLedger', 'UserAccount',
    'ValuationService', 'collateral_adjusted_for_threshold', 'health_factor',
    'is_healthy', 'max_mintable', 'PositionOperations', 'LiquidationEngine',
    'LiquidationQuote', 'calculate_liquidation', 'DSCEngine',
    # Analytics
    'shocked_health_factors', 'asset_shock_grid', 'liquidation_price',
    'liquidation_probability',
]
