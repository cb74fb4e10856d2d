"""
Q96 fixed-point primitives.

Python int не переполняется, поэтому границы uint256 проверяются явно:
выход за диапазон - это RangeError, а не wraparound как в EVM.
Деление всегда отбрасывает дробную часть (как `/` в Solidity для uint).
"""

from ..errors import RangeError

Q96 = 2 ** 96
Q128 = 2 ** 128
RESOLUTION = 96

MAX_UINT128 = 2 ** 128 - 1
MAX_UINT160 = 2 ** 160 - 1
MAX_UINT256 = 2 ** 256 - 1

# Потолок для сумм токенов в base units
MAX_AMOUNT = MAX_UINT128


def _check_uint256(value: int, name: str = "value") -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise RangeError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > MAX_UINT256:
        raise RangeError(f"{name} out of uint256 range: {value}")
    return value


def check_amount(amount: int, name: str = "amount") -> int:
    """Validate a token amount in base units against MAX_AMOUNT."""
    _check_uint256(amount, name)
    if amount > MAX_AMOUNT:
        raise RangeError(f"{name} exceeds ceiling {MAX_AMOUNT}: {amount}")
    return amount


def mul(a: int, b: int) -> int:
    """a * b, result must fit in uint256."""
    _check_uint256(a, "a")
    _check_uint256(b, "b")
    return _check_uint256(a * b, "a * b")


def mul_shift(a: int, b: int, shift: int = RESOLUTION) -> int:
    """(a * b) >> shift, product must fit in uint256."""
    return mul(a, b) >> shift


def div(a: int, b: int) -> int:
    """a / b truncated toward zero."""
    _check_uint256(a, "a")
    _check_uint256(b, "b")
    if b == 0:
        raise RangeError("division by zero")
    return a // b


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    floor(a * b / denominator) with a full-width intermediate product.

    Same semantics as FullMath.mulDiv: the 512-bit intermediate never
    overflows, only the result has to fit in uint256.
    """
    _check_uint256(a, "a")
    _check_uint256(b, "b")
    _check_uint256(denominator, "denominator")
    if denominator == 0:
        raise RangeError("mul_div denominator is zero")
    return _check_uint256((a * b) // denominator, "mul_div result")


def to_uint128(value: int) -> int:
    _check_uint256(value)
    if value > MAX_UINT128:
        raise RangeError(f"value does not fit in uint128: {value}")
    return value


def to_uint160(value: int) -> int:
    _check_uint256(value)
    if value > MAX_UINT160:
        raise RangeError(f"value does not fit in uint160: {value}")
    return value
