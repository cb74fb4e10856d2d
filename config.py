"""
Configuration for BNB Chain V3 liquidity minting

Сети, токены, fee tiers и пресеты добавления ликвидности.
PancakeSwap V3 - форк Uniswap V3, математика и ABI совпадают.

Пресет собирается один раз в неизменяемый LiquidityConfig
(build_liquidity_config) и явно передаётся дальше. Глобальной
"текущей конфигурации" нет.
"""

from dataclasses import dataclass, fields, replace
from typing import Dict, List, Optional

from v3mint.executor import PositionTarget
from v3mint.math.liquidity import to_base_units
from v3mint.math.ranges import (
    AbsoluteTickRange,
    PercentageRange,
    RangeSpec,
    RelativeTickRange,
    default_range_spec,
)
from v3mint.math.ticks import get_tick_spacing


@dataclass(frozen=True)
class ChainConfig:
    """Конфигурация сети."""
    chain_id: int
    rpc_url: str
    explorer_url: str
    native_token: str
    position_manager: str
    pool_factory: str


@dataclass(frozen=True)
class TokenConfig:
    """Конфигурация токена."""
    address: str
    symbol: str
    decimals: int


# ============================================================
# CHAIN CONFIGURATIONS
# ============================================================

# BNB Chain (BSC Mainnet) - PancakeSwap V3
BNB_CHAIN = ChainConfig(
    chain_id=56,
    rpc_url="https://bsc-dataseed1.binance.org/",
    explorer_url="https://bscscan.com",
    native_token="BNB",
    # PancakeSwap V3 NonfungiblePositionManager
    position_manager="0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",
    # PancakeSwap V3 Factory
    pool_factory="0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865"
)

# BNB Chain Testnet
BNB_TESTNET = ChainConfig(
    chain_id=97,
    rpc_url="https://data-seed-prebsc-1-s1.binance.org:8545/",
    explorer_url="https://testnet.bscscan.com",
    native_token="tBNB",
    position_manager="0x427bF5b37357632377eCbEC9de3626C71A5396c1",
    pool_factory="0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865"
)

# ============================================================
# TOKEN CONFIGURATIONS (BNB Chain)
# ============================================================

TOKENS_BNB: Dict[str, TokenConfig] = {
    "WBNB": TokenConfig(
        address="0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",
        symbol="WBNB",
        decimals=18
    ),
    "BUSD": TokenConfig(
        address="0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56",
        symbol="BUSD",
        decimals=18
    ),
    "USDT": TokenConfig(
        address="0x55d398326f99059fF775485246999027B3197955",
        symbol="USDT",
        decimals=18
    ),
    "USDC": TokenConfig(
        address="0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
        symbol="USDC",
        decimals=18
    ),
}

# ============================================================
# FEE TIERS
# ============================================================

FEE_TIERS = {
    "LOWEST": 100,   # 0.01% - стейблкоины
    "LOW": 500,      # 0.05% - стабильные пары
    "MEDIUM": 2500,  # 0.25% - большинство пар (PancakeSwap)
    "HIGH": 10000,   # 1.00% - экзотические пары
}

# Tick spacing для каждого fee tier (неизвестный fee -> 1)
TICK_SPACING = {
    100: 1,
    500: 10,
    2500: 50,
    10000: 200,
}

# ============================================================
# DEFAULT SETTINGS
# ============================================================

DEFAULT_SLIPPAGE = 1.0  # 1%
DEADLINE_SECONDS = 1200  # 20 минут
DEFAULT_PRESET = "SIMPLE_USDT"


# ============================================================
# LIQUIDITY PRESETS
# ============================================================

@dataclass(frozen=True)
class PoolConfig:
    """Пул: токены по адресу (token0 < token1) и fee tier."""
    token0: str
    token1: str
    fee: int
    token0_symbol: str
    token1_symbol: str


@dataclass(frozen=True)
class AmountConfig:
    """Суммы в человеческих единицах (строки, чтобы не терять точность)."""
    token0_amount: str
    token1_amount: str
    token0_decimals: int = 18
    token1_decimals: int = 18


@dataclass(frozen=True)
class LiquidityConfig:
    """
    Полная конфигурация одного добавления ликвидности.

    liquidity_mode:
        "single" - один токен (single_side_token), диапазон по одну сторону цены
        "double" - диапазон вокруг цены, известна сумма input_token
    """
    liquidity_mode: str
    single_side_token: Optional[str]
    pool: PoolConfig
    amounts: AmountConfig
    range_spec: RangeSpec
    base_slippage_percent: float = DEFAULT_SLIPPAGE
    input_token: Optional[str] = None
    tick_spacing: Optional[int] = None
    description: str = ""

    @property
    def resolved_input_token(self) -> str:
        """token0/token1, сумма которого известна."""
        if self.input_token is not None:
            return self.input_token
        if self.liquidity_mode == "single" and self.single_side_token == self.pool.token1_symbol:
            return "token1"
        return "token0"

    @property
    def input_amount_wei(self) -> int:
        if self.resolved_input_token == "token0":
            return to_base_units(self.amounts.token0_amount, self.amounts.token0_decimals)
        return to_base_units(self.amounts.token1_amount, self.amounts.token1_decimals)

    @property
    def resolved_tick_spacing(self) -> int:
        if self.tick_spacing is not None:
            return self.tick_spacing
        return get_tick_spacing(self.pool.fee)

    def to_target(self, pool_id: str, recipient: str) -> PositionTarget:
        """PositionTarget для DriftAwareExecutor."""
        return PositionTarget(
            pool_id=pool_id,
            token0=self.pool.token0,
            token1=self.pool.token1,
            fee=self.pool.fee,
            range_spec=self.range_spec,
            input_token=self.resolved_input_token,
            input_amount=self.input_amount_wei,
            base_slippage_percent=self.base_slippage_percent,
            recipient=recipient,
            tick_spacing=self.resolved_tick_spacing,
        )


DEFAULT_POOL = PoolConfig(
    token0=TOKENS_BNB["USDT"].address,
    token1=TOKENS_BNB["WBNB"].address,
    fee=100,
    token0_symbol="USDT",
    token1_symbol="WBNB"
)

DEFAULT_AMOUNTS = AmountConfig(token0_amount="0.1", token1_amount="0.0001")

# Переопределения поверх DEFAULT_POOL / DEFAULT_AMOUNTS / умного диапазона
PRESETS: Dict[str, dict] = {
    "SIMPLE_USDT": dict(
        liquidity_mode="single",
        single_side_token="USDT",
        description="Single-sided USDT on the default USDT/WBNB pool",
    ),
    "SIMPLE_DOUBLE": dict(
        liquidity_mode="double",
        single_side_token=None,
        description="Two-sided liquidity on the default USDT/WBNB pool",
    ),
    "CUSTOM_USDC": dict(
        liquidity_mode="single",
        single_side_token="USDC",
        pool=PoolConfig(
            token0=TOKENS_BNB["USDC"].address,
            token1=TOKENS_BNB["WBNB"].address,
            fee=500,
            token0_symbol="USDC",
            token1_symbol="WBNB"
        ),
        amounts=AmountConfig(token0_amount="10", token1_amount="0.01"),
        range_spec=RelativeTickRange(offset_lower=50, offset_upper=200),
        description="USDC/WBNB 0.05% pool, single-sided USDC 50..200 ticks above price",
    ),
    "CUSTOM_BUSD": dict(
        liquidity_mode="double",
        single_side_token=None,
        pool=PoolConfig(
            token0=TOKENS_BNB["WBNB"].address,
            token1=TOKENS_BNB["BUSD"].address,
            fee=100,
            token0_symbol="WBNB",
            token1_symbol="BUSD"
        ),
        amounts=AmountConfig(token0_amount="0.05", token1_amount="50"),
        range_spec=PercentageRange(lower_percent=-2, upper_percent=2),
        description="WBNB/BUSD 0.01% pool, ±2% price range",
    ),
    "CUSTOM_WBNB": dict(
        liquidity_mode="single",
        single_side_token="WBNB",
        amounts=AmountConfig(token0_amount="0.5", token1_amount="0.001"),
        range_spec=PercentageRange(lower_percent=-5, upper_percent=-1),
        description="Single-sided WBNB, bearish range -5%..-1%",
    ),
}

_CONFIG_FIELDS = {f.name for f in fields(LiquidityConfig)}


def validate_config(config: LiquidityConfig) -> List[str]:
    """
    Проверка конфигурации.

    Returns:
        Список ошибок (пустой если всё корректно)
    """
    errors = []

    if config.liquidity_mode not in ("single", "double"):
        errors.append('liquidity_mode must be "single" or "double"')

    if config.liquidity_mode == "single":
        if not config.single_side_token:
            errors.append("single mode requires single_side_token")
        elif config.single_side_token not in (config.pool.token0_symbol, config.pool.token1_symbol):
            errors.append(
                f"single_side_token {config.single_side_token} is not in pool "
                f"{config.pool.token0_symbol}/{config.pool.token1_symbol}"
            )

    if not config.pool.token0 or not config.pool.token1:
        errors.append("pool config requires token0 and token1")
    elif config.pool.token0.lower() >= config.pool.token1.lower():
        errors.append("pool token0 address must sort below token1")

    if not config.amounts.token0_amount or not config.amounts.token1_amount:
        errors.append("amount config requires token0_amount and token1_amount")

    if config.input_token not in (None, "token0", "token1"):
        errors.append('input_token must be "token0" or "token1"')

    if not 0 <= config.base_slippage_percent <= 100:
        errors.append("base_slippage_percent must be within [0, 100]")

    spec = config.range_spec
    if isinstance(spec, PercentageRange) and spec.lower_percent >= spec.upper_percent:
        errors.append("range: lower_percent must be less than upper_percent")
    elif isinstance(spec, RelativeTickRange) and spec.offset_lower >= spec.offset_upper:
        errors.append("range: offset_lower must be less than offset_upper")
    elif isinstance(spec, AbsoluteTickRange) and spec.tick_lower >= spec.tick_upper:
        errors.append("range: tick_lower must be less than tick_upper")

    return errors


def build_liquidity_config(preset: str = DEFAULT_PRESET, **overrides) -> LiquidityConfig:
    """
    Сборка конфигурации: DEFAULT_* < пресет < overrides.

    Если диапазон не задан ни пресетом, ни overrides - используется
    умный диапазон default_range_spec(mode, token).

    Raises:
        ValueError: неизвестный пресет, неизвестное поле или невалидная конфигурация
    """
    if preset not in PRESETS:
        raise ValueError(f"Unknown preset: {preset}. Available: {sorted(PRESETS)}")

    unknown = set(overrides) - _CONFIG_FIELDS
    if unknown:
        raise ValueError(f"Unknown config fields: {sorted(unknown)}")

    merged = dict(pool=DEFAULT_POOL, amounts=DEFAULT_AMOUNTS)
    merged.update(PRESETS[preset])
    merged.update(overrides)

    if merged.get("range_spec") is None:
        merged["range_spec"] = default_range_spec(
            merged["liquidity_mode"], merged.get("single_side_token")
        )

    config = LiquidityConfig(**merged)
    errors = validate_config(config)
    if errors:
        raise ValueError("Invalid liquidity config: " + "; ".join(errors))
    return config


def with_overrides(config: LiquidityConfig, **overrides) -> LiquidityConfig:
    """Новая конфигурация из существующей (исходная не меняется)."""
    updated = replace(config, **overrides)
    errors = validate_config(updated)
    if errors:
        raise ValueError("Invalid liquidity config: " + "; ".join(errors))
    return updated


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_chain_config(chain_id: int) -> ChainConfig:
    """Получение конфигурации по chain_id."""
    configs = {
        56: BNB_CHAIN,
        97: BNB_TESTNET,
    }
    if chain_id not in configs:
        raise ValueError(f"Unknown chain_id: {chain_id}")
    return configs[chain_id]


def get_token(symbol: str) -> TokenConfig:
    """Получение токена BNB Chain по символу."""
    if symbol not in TOKENS_BNB:
        raise ValueError(f"Unknown token: {symbol}")
    return TOKENS_BNB[symbol]
