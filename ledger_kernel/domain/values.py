"""
Values -- decimal arithmetic shared by the whole ledger.

Responsibility:
    Owns the one decimal context used for every division and conversion in
    the kernel (exchange-rate inversion, tree-balance conversion, market
    value), so that no two code paths round the same quantity differently.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by every
    module that does money arithmetic.

Failure modes:
    - decimal.DivisionByZero from ``invert`` when given ZERO; callers
      guard against non-positive rates before inverting.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Context, Decimal

ZERO = Decimal("0")
ONE = Decimal("1")

# 16 significant digits, banker's rounding.
MATH_CONTEXT = Context(prec=16, rounding=ROUND_HALF_EVEN)


def invert(value: Decimal) -> Decimal:
    """Return ``1 / value`` under the shared math context."""
    return MATH_CONTEXT.divide(ONE, value)


def divide(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Return ``numerator / denominator`` under the shared math context."""
    return MATH_CONTEXT.divide(numerator, denominator)


def multiply(a: Decimal, b: Decimal) -> Decimal:
    """Return ``a * b`` under the shared math context."""
    return MATH_CONTEXT.multiply(a, b)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Coerce ints and strings to Decimal; floats are rejected."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("Floats are not accepted for monetary values; use Decimal or str")
    return Decimal(value)


def round_to_scale(value: Decimal, scale: int) -> Decimal:
    """Quantize ``value`` to ``scale`` decimal places with banker's rounding."""
    return value.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_EVEN)
