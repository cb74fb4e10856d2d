"""
Uniswap V3 Liquidity Mathematics

Все формулы в целых числах поверх Q96, как LiquidityAmounts в periphery:
- L = amount0 * (sqrtA * sqrtB / Q96) / (sqrtB - sqrtA)
- L = amount1 * Q96 / (sqrtB - sqrtA)
- amount0 = (L << 96) * (sqrtB - sqrtA) / sqrtB / sqrtA
- amount1 = L * (sqrtB - sqrtA) / Q96

Положение текущей цены относительно диапазона:
1. current <= lower: позиция полностью в token0
2. lower < current < upper: нужны оба токена
3. current >= upper: позиция полностью в token1
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import Literal, Tuple

from ..errors import RangeError
from .fixed_point import Q96, RESOLUTION, check_amount, div, mul_div, to_uint128
from .ticks import check_sqrt_price_x96, check_tick, tick_to_sqrt_price_x96

PositionType = Literal["below", "within", "above"]
InputToken = Literal["token0", "token1"]


@dataclass(frozen=True)
class LiquidityAmounts:
    """Результат расчёта количества токенов."""
    amount0: int  # В wei/smallest unit
    amount1: int  # В wei/smallest unit
    liquidity: int


def to_base_units(amount, decimals: int) -> int:
    """
    Точное преобразование человеческой суммы в base units через Decimal.

    Example:
        >>> to_base_units("0.1", 18)
        100000000000000000
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    with localcontext() as ctx:
        ctx.prec = 100
        value = Decimal(str(amount)) * (Decimal(10) ** decimals)
        if value < 0:
            raise RangeError(f"Amount must be non-negative: {amount}")
        # Отбрасываем дробную часть (к нулю)
        return check_amount(int(value.to_integral_value(rounding=ROUND_DOWN)))


def from_base_units(amount: int, decimals: int) -> Decimal:
    """Base units -> Decimal в единицах токена."""
    with localcontext() as ctx:
        ctx.prec = 100
        return Decimal(amount) / (Decimal(10) ** decimals)


def _sorted_bounds(sqrt_price_a_x96: int, sqrt_price_b_x96: int) -> Tuple[int, int]:
    check_sqrt_price_x96(sqrt_price_a_x96)
    check_sqrt_price_x96(sqrt_price_b_x96)
    if sqrt_price_a_x96 > sqrt_price_b_x96:
        sqrt_price_a_x96, sqrt_price_b_x96 = sqrt_price_b_x96, sqrt_price_a_x96
    if sqrt_price_a_x96 == sqrt_price_b_x96:
        raise RangeError("Price range is empty: lower and upper sqrt prices are equal")
    return sqrt_price_a_x96, sqrt_price_b_x96


def position_type(
    sqrt_price_x96: int,
    sqrt_price_a_x96: int,
    sqrt_price_b_x96: int
) -> PositionType:
    """Положение текущей цены относительно диапазона."""
    sqrt_price_a_x96, sqrt_price_b_x96 = _sorted_bounds(sqrt_price_a_x96, sqrt_price_b_x96)
    if sqrt_price_x96 <= sqrt_price_a_x96:
        return "below"
    if sqrt_price_x96 < sqrt_price_b_x96:
        return "within"
    return "above"


# ============================================================
# Формулы только по границам диапазона
# ============================================================

def liquidity_for_amount0(sqrt_price_a_x96: int, sqrt_price_b_x96: int, amount0: int) -> int:
    """L = amount0 * (sqrtA * sqrtB) / (sqrtB - sqrtA)"""
    sqrt_price_a_x96, sqrt_price_b_x96 = _sorted_bounds(sqrt_price_a_x96, sqrt_price_b_x96)
    check_amount(amount0, "amount0")
    intermediate = mul_div(sqrt_price_a_x96, sqrt_price_b_x96, Q96)
    return to_uint128(mul_div(amount0, intermediate, sqrt_price_b_x96 - sqrt_price_a_x96))


def liquidity_for_amount1(sqrt_price_a_x96: int, sqrt_price_b_x96: int, amount1: int) -> int:
    """L = amount1 / (sqrtB - sqrtA)"""
    sqrt_price_a_x96, sqrt_price_b_x96 = _sorted_bounds(sqrt_price_a_x96, sqrt_price_b_x96)
    check_amount(amount1, "amount1")
    return to_uint128(mul_div(amount1, Q96, sqrt_price_b_x96 - sqrt_price_a_x96))


def amount0_for_liquidity(sqrt_price_a_x96: int, sqrt_price_b_x96: int, liquidity: int) -> int:
    """amount0 = L * (sqrtB - sqrtA) / (sqrtB * sqrtA)"""
    sqrt_price_a_x96, sqrt_price_b_x96 = _sorted_bounds(sqrt_price_a_x96, sqrt_price_b_x96)
    to_uint128(liquidity)
    return div(
        mul_div(liquidity << RESOLUTION, sqrt_price_b_x96 - sqrt_price_a_x96, sqrt_price_b_x96),
        sqrt_price_a_x96
    )


def amount1_for_liquidity(sqrt_price_a_x96: int, sqrt_price_b_x96: int, liquidity: int) -> int:
    """amount1 = L * (sqrtB - sqrtA)"""
    sqrt_price_a_x96, sqrt_price_b_x96 = _sorted_bounds(sqrt_price_a_x96, sqrt_price_b_x96)
    to_uint128(liquidity)
    return mul_div(liquidity, sqrt_price_b_x96 - sqrt_price_a_x96, Q96)


# ============================================================
# С учётом текущей цены (три случая)
# ============================================================

def get_liquidity_for_amount0(
    sqrt_price_x96: int,
    sqrt_price_a_x96: int,
    sqrt_price_b_x96: int,
    amount0: int
) -> int:
    """
    Liquidity по желаемому количеству token0.

    - ниже диапазона: формула по (lower, upper)
    - в диапазоне: формула по (current, upper)
    - выше диапазона: token0 не нужен, L = 0
    """
    check_sqrt_price_x96(sqrt_price_x96)
    sqrt_price_a_x96, sqrt_price_b_x96 = _sorted_bounds(sqrt_price_a_x96, sqrt_price_b_x96)

    if sqrt_price_x96 <= sqrt_price_a_x96:
        return liquidity_for_amount0(sqrt_price_a_x96, sqrt_price_b_x96, amount0)
    if sqrt_price_x96 < sqrt_price_b_x96:
        return liquidity_for_amount0(sqrt_price_x96, sqrt_price_b_x96, amount0)
    check_amount(amount0, "amount0")
    return 0


def get_liquidity_for_amount1(
    sqrt_price_x96: int,
    sqrt_price_a_x96: int,
    sqrt_price_b_x96: int,
    amount1: int
) -> int:
    """
    Liquidity по желаемому количеству token1.

    - выше диапазона: формула по (lower, upper)
    - в диапазоне: формула по (lower, current)
    - ниже диапазона: token1 не нужен, L = 0
    """
    check_sqrt_price_x96(sqrt_price_x96)
    sqrt_price_a_x96, sqrt_price_b_x96 = _sorted_bounds(sqrt_price_a_x96, sqrt_price_b_x96)

    if sqrt_price_x96 >= sqrt_price_b_x96:
        return liquidity_for_amount1(sqrt_price_a_x96, sqrt_price_b_x96, amount1)
    if sqrt_price_x96 > sqrt_price_a_x96:
        return liquidity_for_amount1(sqrt_price_a_x96, sqrt_price_x96, amount1)
    check_amount(amount1, "amount1")
    return 0


def get_liquidity_for_amounts(
    sqrt_price_x96: int,
    sqrt_price_a_x96: int,
    sqrt_price_b_x96: int,
    amount0: int,
    amount1: int
) -> int:
    """Максимальная liquidity для обоих количеств (лимитирующий токен)."""
    check_sqrt_price_x96(sqrt_price_x96)
    sqrt_price_a_x96, sqrt_price_b_x96 = _sorted_bounds(sqrt_price_a_x96, sqrt_price_b_x96)

    if sqrt_price_x96 <= sqrt_price_a_x96:
        return liquidity_for_amount0(sqrt_price_a_x96, sqrt_price_b_x96, amount0)
    if sqrt_price_x96 < sqrt_price_b_x96:
        liquidity0 = liquidity_for_amount0(sqrt_price_x96, sqrt_price_b_x96, amount0)
        liquidity1 = liquidity_for_amount1(sqrt_price_a_x96, sqrt_price_x96, amount1)
        return min(liquidity0, liquidity1)
    return liquidity_for_amount1(sqrt_price_a_x96, sqrt_price_b_x96, amount1)


def get_amounts_for_liquidity(
    sqrt_price_x96: int,
    sqrt_price_a_x96: int,
    sqrt_price_b_x96: int,
    liquidity: int
) -> LiquidityAmounts:
    """
    Количество обоих токенов для заданной liquidity.

    В односторонних случаях ненужная сторона ровно 0.
    """
    check_sqrt_price_x96(sqrt_price_x96)
    sqrt_price_a_x96, sqrt_price_b_x96 = _sorted_bounds(sqrt_price_a_x96, sqrt_price_b_x96)

    amount0 = 0
    amount1 = 0

    if sqrt_price_x96 <= sqrt_price_a_x96:
        amount0 = amount0_for_liquidity(sqrt_price_a_x96, sqrt_price_b_x96, liquidity)
    elif sqrt_price_x96 < sqrt_price_b_x96:
        amount0 = amount0_for_liquidity(sqrt_price_x96, sqrt_price_b_x96, liquidity)
        amount1 = amount1_for_liquidity(sqrt_price_a_x96, sqrt_price_x96, liquidity)
    else:
        amount1 = amount1_for_liquidity(sqrt_price_a_x96, sqrt_price_b_x96, liquidity)

    return LiquidityAmounts(amount0=amount0, amount1=amount1, liquidity=liquidity)


def calculate_position_amounts(
    sqrt_price_x96: int,
    tick_lower: int,
    tick_upper: int,
    amount: int,
    input_token: InputToken
) -> LiquidityAmounts:
    """
    Полный расчёт позиции по известному количеству одного токена.

    1. sqrt-цены границ из тиков (точно)
    2. liquidity по известному количеству
    3. оба количества из liquidity

    Если known-токен не нужен при текущей цене (например token0 при цене
    выше диапазона), liquidity = 0 и оба количества 0.

    Args:
        sqrt_price_x96: Текущая sqrtPriceX96 пула
        tick_lower: Нижний тик диапазона
        tick_upper: Верхний тик диапазона
        amount: Известное количество в base units
        input_token: "token0" или "token1"
    """
    check_tick(tick_lower)
    check_tick(tick_upper)
    sqrt_price_a_x96 = tick_to_sqrt_price_x96(tick_lower)
    sqrt_price_b_x96 = tick_to_sqrt_price_x96(tick_upper)

    if input_token == "token0":
        liquidity = get_liquidity_for_amount0(
            sqrt_price_x96, sqrt_price_a_x96, sqrt_price_b_x96, amount
        )
    elif input_token == "token1":
        liquidity = get_liquidity_for_amount1(
            sqrt_price_x96, sqrt_price_a_x96, sqrt_price_b_x96, amount
        )
    else:
        raise ValueError(f"input_token must be 'token0' or 'token1', got {input_token!r}")

    return get_amounts_for_liquidity(
        sqrt_price_x96, sqrt_price_a_x96, sqrt_price_b_x96, liquidity
    )
