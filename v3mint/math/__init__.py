from .fixed_point import Q96, mul_div, mul_shift
from .ticks import (
    MIN_TICK,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MAX_SQRT_RATIO,
    tick_to_sqrt_price_x96,
    sqrt_price_x96_to_tick,
    get_tick_spacing,
)
from .liquidity import (
    LiquidityAmounts,
    get_liquidity_for_amount0,
    get_liquidity_for_amount1,
    get_liquidity_for_amounts,
    get_amounts_for_liquidity,
    calculate_position_amounts,
    to_base_units,
)
from .ranges import (
    PercentageRange,
    RelativeTickRange,
    AbsoluteTickRange,
    PriceRange,
    plan_range,
)
