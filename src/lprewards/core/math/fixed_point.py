from __future__ import annotations

from typing import Final

from lprewards.core.errors import Overflow, Underflow

# All accumulators and reserves are kept scaled by PRECISION.
PRECISION: Final[int] = 10**18

UINT256_MAX: Final[int] = (1 << 256) - 1


def _check_operand(x: int) -> None:
    if x < 0:
        raise Underflow(f"negative operand: {x}")
    if x > UINT256_MAX:
        raise Overflow(f"operand exceeds uint256: {x}")


def add(x: int, y: int) -> int:
    _check_operand(x)
    _check_operand(y)
    z = x + y
    if z > UINT256_MAX:
        raise Overflow(f"add overflow: {x} + {y}")
    return z


def sub(x: int, y: int) -> int:
    _check_operand(x)
    _check_operand(y)
    if y > x:
        raise Underflow(f"sub underflow: {x} - {y}")
    return x - y


def mul(x: int, y: int) -> int:
    """
    Checked product.

    Python ints never wrap, so the product is range-checked directly; this is
    the same condition as "z // y must reconstruct x" on a 256-bit machine word.
    """
    _check_operand(x)
    _check_operand(y)
    z = x * y
    if z > UINT256_MAX:
        raise Overflow(f"mul overflow: {x} * {y}")
    return z


def descale(x: int) -> int:
    """Scaled value -> token units (floor). Only used at report/transfer boundaries."""
    return x // PRECISION
