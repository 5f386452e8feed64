"""Exact decimal balances.

A Balance is never negative, infinite or NaN. Every value is rounded to
``settings.BALANCE_PRECISION`` decimal places so repeated arithmetic over
millions of transactions cannot drift.
"""
from decimal import Context, Decimal, InvalidOperation, Overflow, DivisionByZero, ROUND_HALF_UP
from enum import Enum
from functools import total_ordering
from typing import Union

from settings import settings

# Extra digits for intermediate results, quantize fails beyond this
DECIMAL_CONTEXT_PREC = 50

QUANTUM = Decimal(10) ** -settings.BALANCE_PRECISION

_CONTEXT = Context(
    prec=DECIMAL_CONTEXT_PREC,
    rounding=ROUND_HALF_UP,
    traps=[InvalidOperation, Overflow, DivisionByZero],
)

BalanceLike = Union["Balance", Decimal, int, str]


class InvalidBalanceKind(Enum):
    NEGATIVE = "negative"
    INFINITE = "infinite"
    NAN = "nan"
    OVERFLOW = "overflow"


class InvalidBalanceError(ValueError):
    """A value cannot be represented as a Balance."""

    def __init__(self, kind: InvalidBalanceKind, value: object):
        self.kind = kind
        self.value = value
        super().__init__(f"Invalid balance ({kind.value}): {value}")


def _to_decimal(value: BalanceLike) -> Decimal:
    if isinstance(value, Balance):
        return value.value
    if isinstance(value, float):
        raise TypeError("Balance does not accept float, use Decimal or str")
    if isinstance(value, (Decimal, int, str)):
        try:
            return Decimal(value)
        except InvalidOperation:
            raise InvalidBalanceError(InvalidBalanceKind.NAN, value) from None
    raise TypeError(f"Cannot convert {type(value).__name__} to Balance")


def _validate(value: Decimal) -> Decimal:
    if value.is_nan():
        raise InvalidBalanceError(InvalidBalanceKind.NAN, value)
    if value < 0:
        raise InvalidBalanceError(InvalidBalanceKind.NEGATIVE, value)
    if value.is_infinite():
        raise InvalidBalanceError(InvalidBalanceKind.INFINITE, value)

    try:
        rounded = value.quantize(QUANTUM, context=_CONTEXT)
    except (InvalidOperation, Overflow):
        raise InvalidBalanceError(InvalidBalanceKind.OVERFLOW, value) from None

    # -0 and values rounding to zero are stored as plain zero
    if rounded.is_zero():
        return abs(rounded)
    return rounded


@total_ordering
class Balance:
    """Immutable, non-negative, finite monetary amount."""

    __slots__ = ("_value",)

    def __init__(self, value: BalanceLike = 0):
        self._value = _validate(_to_decimal(value))

    @classmethod
    def zero(cls) -> "Balance":
        return cls(0)

    @property
    def value(self) -> Decimal:
        return self._value

    def add(self, other: BalanceLike) -> "Balance":
        """Return a new Balance for ``self + other``."""
        return self._apply(_CONTEXT.add, other)

    def subtract(self, other: BalanceLike) -> "Balance":
        """Return a new Balance for ``self - other``, failing if it would go negative."""
        return self._apply(_CONTEXT.subtract, other)

    def _apply(self, operation, other: BalanceLike) -> "Balance":
        try:
            raw = operation(self._value, _to_decimal(other))
        except (InvalidOperation, Overflow):
            raise InvalidBalanceError(InvalidBalanceKind.OVERFLOW, other) from None
        return Balance(raw)

    def is_zero(self) -> bool:
        return self._value.is_zero()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Balance):
            return self._value == other._value
        if isinstance(other, (Decimal, int)):
            return self._value == other
        return NotImplemented

    def __lt__(self, other: object) -> bool:
        if isinstance(other, Balance):
            return self._value < other._value
        if isinstance(other, (Decimal, int)):
            return self._value < other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __str__(self) -> str:
        """Format without trailing zeros, e.g. 1.5000 -> 1.5, 0.0000 -> 0."""
        normalized = self._value.normalize(_CONTEXT)
        return f"{normalized:f}"

    def __repr__(self) -> str:
        return f"Balance({str(self)!r})"
