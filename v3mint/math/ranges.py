"""
Range planning: RangeSpec + текущий тик -> выровненный [tickLower, tickUpper).

Три вида спецификации:
- PercentageRange: проценты от текущей цены (1% ≈ 100 тиков)
- RelativeTickRange: смещения в тиках от текущего тика
- AbsoluteTickRange: абсолютные тики

ВАЖНО: перевод процентов в тики линейный (100 тиков на 1%), а не
логарифмический. Это известное приближение, сохранено для совместимости
с прежними расчётами: при ±2% ошибка около 1 тика, при ±50% - сотни тиков.
"""

import math
from dataclasses import dataclass
from typing import Optional, Union

from ..errors import InvariantViolation, RangeError
from .ticks import MAX_TICK, MIN_TICK, align_tick_to_spacing, check_tick, tick_to_sqrt_price_x96

TICKS_PER_PERCENT = 100

# Умный диапазон по умолчанию (когда пользовательский диапазон не задан)
DEFAULT_DOUBLE_RANGE_PERCENT = 0.5
DEFAULT_SINGLE_RANGE_OFFSETS = {
    "USDT": (10, 200),
    "USDC": (10, 200),
    "BUSD": (10, 200),
    "WBNB": (-200, -10),
}


@dataclass(frozen=True)
class PercentageRange:
    """Диапазон в процентах от текущей цены (-2, 2 = ±2%)."""
    lower_percent: float
    upper_percent: float


@dataclass(frozen=True)
class RelativeTickRange:
    """Диапазон как смещения в тиках от текущего тика."""
    offset_lower: int
    offset_upper: int


@dataclass(frozen=True)
class AbsoluteTickRange:
    """Диапазон в абсолютных тиках."""
    tick_lower: int
    tick_upper: int


RangeSpec = Union[PercentageRange, RelativeTickRange, AbsoluteTickRange]


@dataclass(frozen=True)
class PriceRange:
    """Выровненный диапазон тиков, tick_lower < tick_upper."""
    tick_lower: int
    tick_upper: int

    @property
    def width(self) -> int:
        return self.tick_upper - self.tick_lower

    @property
    def sqrt_price_lower_x96(self) -> int:
        return tick_to_sqrt_price_x96(self.tick_lower)

    @property
    def sqrt_price_upper_x96(self) -> int:
        return tick_to_sqrt_price_x96(self.tick_upper)

    def contains(self, tick: int) -> bool:
        return self.tick_lower <= tick < self.tick_upper


def percent_to_tick_offset(percent: float) -> int:
    """Процент -> смещение в тиках (floor(percent * 100))."""
    return math.floor(percent * TICKS_PER_PERCENT)


def _raw_bounds(current_tick: int, spec: RangeSpec):
    if isinstance(spec, PercentageRange):
        return (
            current_tick + percent_to_tick_offset(spec.lower_percent),
            current_tick + percent_to_tick_offset(spec.upper_percent),
        )
    if isinstance(spec, RelativeTickRange):
        return current_tick + int(spec.offset_lower), current_tick + int(spec.offset_upper)
    if isinstance(spec, AbsoluteTickRange):
        return int(spec.tick_lower), int(spec.tick_upper)
    raise TypeError(f"Unsupported range spec: {spec!r}")


def plan_range(current_tick: int, spec: RangeSpec, tick_spacing: int) -> PriceRange:
    """
    Расчёт диапазона тиков для позиции.

    Обе границы выравниваются вниз (к -∞) к tick_spacing. Если после
    выравнивания tickLower >= tickUpper, верхняя граница становится
    tickLower + tick_spacing: пустой диапазон не возвращается никогда.

    Args:
        current_tick: Текущий тик пула
        spec: Спецификация диапазона
        tick_spacing: Шаг тиков пула

    Returns:
        PriceRange

    Raises:
        RangeError: некорректный тик / spacing или диапазон вне [MIN_TICK, MAX_TICK]
    """
    check_tick(current_tick)
    if not isinstance(tick_spacing, int) or tick_spacing <= 0:
        raise RangeError(f"tick_spacing must be a positive integer, got {tick_spacing!r}")

    raw_lower, raw_upper = _raw_bounds(current_tick, spec)

    tick_lower = align_tick_to_spacing(raw_lower, tick_spacing, round_down=True)
    tick_upper = align_tick_to_spacing(raw_upper, tick_spacing, round_down=True)

    if tick_lower >= tick_upper:
        tick_upper = tick_lower + tick_spacing

    if tick_lower < MIN_TICK or tick_upper > MAX_TICK:
        raise RangeError(
            f"Planned range [{tick_lower}, {tick_upper}) is outside [{MIN_TICK}, {MAX_TICK}]"
        )

    if tick_lower >= tick_upper or tick_lower % tick_spacing or tick_upper % tick_spacing:
        raise InvariantViolation(
            f"Invalid range after alignment: [{tick_lower}, {tick_upper}), spacing {tick_spacing}"
        )

    return PriceRange(tick_lower=tick_lower, tick_upper=tick_upper)


def range_spec_from_dict(data: dict) -> RangeSpec:
    """
    Разбор диапазона из словаря (формат старых конфигов).

    {"rangeType": "percentage", "lowerPercent": -2, "upperPercent": 2}
    {"rangeType": "relative", "tickLower": -200, "tickUpper": -50}
    {"rangeType": "absolute", "tickLower": 800, "tickUpper": 1200}

    Ключи в snake_case (range_type, lower_percent, ...) тоже принимаются.
    """
    def pick(camel: str, snake: str):
        if camel in data:
            return data[camel]
        if snake in data:
            return data[snake]
        raise ValueError(f"Range config is missing '{camel}'")

    range_type = data.get("rangeType", data.get("range_type"))
    if range_type == "percentage":
        return PercentageRange(
            lower_percent=float(pick("lowerPercent", "lower_percent")),
            upper_percent=float(pick("upperPercent", "upper_percent")),
        )
    if range_type == "relative":
        return RelativeTickRange(
            offset_lower=int(pick("tickLower", "tick_lower")),
            offset_upper=int(pick("tickUpper", "tick_upper")),
        )
    if range_type == "absolute":
        return AbsoluteTickRange(
            tick_lower=int(pick("tickLower", "tick_lower")),
            tick_upper=int(pick("tickUpper", "tick_upper")),
        )
    raise ValueError(f"Unknown rangeType: {range_type!r}")


def default_range_spec(liquidity_mode: str, single_side_token: Optional[str] = None) -> RangeSpec:
    """
    Умный диапазон по умолчанию.

    - double: ±0.5% от текущей цены
    - single: смещения в тиках по токену (стейблы выше цены, WBNB ниже)
    """
    if liquidity_mode == "double":
        return PercentageRange(-DEFAULT_DOUBLE_RANGE_PERCENT, DEFAULT_DOUBLE_RANGE_PERCENT)
    if liquidity_mode == "single":
        if single_side_token not in DEFAULT_SINGLE_RANGE_OFFSETS:
            raise ValueError(f"No default range for single-side token: {single_side_token!r}")
        lower, upper = DEFAULT_SINGLE_RANGE_OFFSETS[single_side_token]
        return RelativeTickRange(offset_lower=lower, offset_upper=upper)
    raise ValueError(f"liquidity_mode must be 'single' or 'double', got {liquidity_mode!r}")
