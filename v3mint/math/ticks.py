"""
Uniswap V3 Tick Mathematics

Основные формулы:
- price(i) = 1.0001^i
- sqrtPriceX96 = sqrt(price) * 2^96

Прямое преобразование tick -> sqrtPriceX96 точное, бит-в-бит как
TickMath.getSqrtRatioAtTick в контракте пула.
Обратное sqrtPriceX96 -> tick - приближённое (float логарифм),
полагаться на точный round-trip через него нельзя.

Tick spacing по fee tier:
- 0.01% (100) -> spacing 1
- 0.05% (500) -> spacing 10
- 0.25% (2500) -> spacing 50
- 1.00% (10000) -> spacing 200
"""

import math

from ..errors import RangeError
from .fixed_point import Q96, mul_shift

# Константы
MIN_TICK = -887272
MAX_TICK = 887272
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Fee tier -> tick spacing
FEE_TO_TICK_SPACING = {
    100: 1,      # 0.01%
    500: 10,     # 0.05%
    2500: 50,    # 0.25% (PancakeSwap)
    10000: 200,  # 1.00%
}
DEFAULT_TICK_SPACING = 1

# Начальное значение ratio для бита 0 |tick|
_BIT0_RATIO = 0xfffcb933bd6fad37aa2d162d1a594001
_ONE_X128 = 0x100000000000000000000000000000000

# sqrt(1.0001^-(2^i)) в Q128 для битов 1..19 |tick|
_BIT_RATIOS = (
    (0x2, 0xfff97272373d413259a46990580e213a),
    (0x4, 0xfff2e50f5f656932ef12357cf3c7fdcc),
    (0x8, 0xffe5caca7e10e4e61c3624eaa0941cd0),
    (0x10, 0xffcb9843d60f6159c9db58835c926644),
    (0x20, 0xff973b41fa98c081472e6896dfb254c0),
    (0x40, 0xff2ea16466c96a3843ec78b326b52861),
    (0x80, 0xfe5dee046a99a2a811c461f1969c3053),
    (0x100, 0xfcbe86c7900a88aedcffc83b479aa3a4),
    (0x200, 0xf987a7253ac413176f2b074cf7815e54),
    (0x400, 0xf3392b0822b70005940c7a398e4b70f3),
    (0x800, 0xe7159475a2c29b7443b29c7fa6e889d9),
    (0x1000, 0xd097f3bdfd2022b8845ad8f792aa5825),
    (0x2000, 0xa9f746462d870fdf8a65dc1f90e061e5),
    (0x4000, 0x70d869a156d2a1b890bb3df62baf32f7),
    (0x8000, 0x31be135f97d08fd981231505542fcfa6),
    (0x10000, 0x9aa508b5b7a84e1c677de54f3e99bc9),
    (0x20000, 0x5d6af8dedb81196699c329225ee604),
    (0x40000, 0x2216e584f5fa1ea926041bedfe98),
    (0x80000, 0x48a170391f7dc42444e8fa2),
)


def check_tick(tick: int) -> int:
    """Проверка что тик целый и лежит в [MIN_TICK, MAX_TICK]."""
    if not isinstance(tick, int) or isinstance(tick, bool):
        raise RangeError(f"Tick must be an integer, got {tick!r}")
    if tick < MIN_TICK or tick > MAX_TICK:
        raise RangeError(f"Tick out of range: {tick} (allowed {MIN_TICK}..{MAX_TICK})")
    return tick


def check_sqrt_price_x96(sqrt_price_x96: int) -> int:
    if not isinstance(sqrt_price_x96, int) or isinstance(sqrt_price_x96, bool):
        raise RangeError(f"sqrtPriceX96 must be an integer, got {sqrt_price_x96!r}")
    if sqrt_price_x96 < MIN_SQRT_RATIO or sqrt_price_x96 > MAX_SQRT_RATIO:
        raise RangeError(f"sqrtPriceX96 out of range: {sqrt_price_x96}")
    return sqrt_price_x96


def tick_to_sqrt_price_x96(tick: int) -> int:
    """
    Точная конвертация тика в sqrtPriceX96 (getSqrtRatioAtTick).

    ratio стартует с константы для бита 0 |tick|, затем для каждого
    установленного бита 1..19 умножается на свою константу и сдвигается
    на 128 бит. Для tick > 0 ratio инвертируется (2^256 / ratio).
    Результат переводится из Q128 в Q96 сдвигом на 32 бита с округлением
    вверх, как в контракте.

    Args:
        tick: Номер тика

    Returns:
        sqrtPriceX96 в [MIN_SQRT_RATIO, MAX_SQRT_RATIO]

    Raises:
        RangeError: |tick| > MAX_TICK
    """
    check_tick(tick)
    abs_tick = abs(tick)

    ratio = _BIT0_RATIO if abs_tick & 0x1 else _ONE_X128
    for bit, magic in _BIT_RATIOS:
        if abs_tick & bit:
            ratio = mul_shift(ratio, magic, 128)

    if tick > 0:
        ratio = (1 << 256) // ratio

    # Q128 -> Q96, округление вверх
    return (ratio >> 32) + (0 if ratio % (1 << 32) == 0 else 1)


def sqrt_price_x96_to_tick(sqrt_price_x96: int) -> int:
    """
    ПРИБЛИЖЁННАЯ конвертация sqrtPriceX96 в тик.

    tick = round(ln(price) / ln(1.0001)), price = (sqrtPriceX96 / 2^96)^2

    Считается через float логарифм, поэтому точного round-trip с
    tick_to_sqrt_price_x96 не гарантирует. Для точных расчётов
    используйте только прямое направление.
    """
    check_sqrt_price_x96(sqrt_price_x96)
    sqrt_price = sqrt_price_x96 / Q96
    price = sqrt_price * sqrt_price
    tick = math.floor(math.log(price) / math.log(1.0001) + 0.5)
    return max(MIN_TICK, min(MAX_TICK, tick))


def tick_to_price(tick: int) -> float:
    """Цена token1/token0 для тика (float, только для отображения)."""
    return 1.0001 ** tick


def price_to_tick(price: float) -> int:
    """
    Конвертация цены в тик (float, округление вниз).

    i = log(price) / log(1.0001)
    """
    if price <= 0:
        raise ValueError("Price must be positive")
    tick = math.floor(math.log(price) / math.log(1.0001))
    return max(MIN_TICK, min(MAX_TICK, tick))


def align_tick_to_spacing(tick: int, tick_spacing: int, round_down: bool = True) -> int:
    """
    Выравнивание тика к tick_spacing.

    Args:
        tick: Исходный тик
        tick_spacing: Шаг тиков (зависит от fee tier)
        round_down: True = округление вниз (к -∞), False = вверх (к +∞)

    Returns:
        Выровненный тик
    """
    if tick_spacing <= 0:
        raise RangeError(f"tick_spacing must be positive, got {tick_spacing}")

    if tick % tick_spacing == 0:
        return tick

    # Floor division корректно работает и для отрицательных тиков
    if round_down:
        return (tick // tick_spacing) * tick_spacing
    return ((tick // tick_spacing) + 1) * tick_spacing


def get_tick_spacing(fee: int) -> int:
    """
    Получение tick_spacing по fee tier.

    Неизвестный fee tier -> DEFAULT_TICK_SPACING (1).
    """
    return FEE_TO_TICK_SPACING.get(fee, DEFAULT_TICK_SPACING)
