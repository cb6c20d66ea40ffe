"""Fixed-precision monetary value backed by Decimal.

Amounts keep full precision through arithmetic and are rounded half-up to
two places only when a figure is reported (``round()``). Floats are never
used for arithmetic; at input boundaries they are converted via ``str()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import GetCoreSchemaHandler, GetJsonSchemaHandler
from pydantic_core import core_schema

from payroll.exceptions import InvalidAmount

CENT = Decimal("0.01")
_HUNDRED = Decimal("100")

# Largest magnitude accepted; keeps every amount exact to the cent.
MAX_AMOUNT = Decimal("1e15")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Money):
        return value.amount
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise InvalidAmount(f"Invalid amount: {value!r}") from e
    else:
        raise InvalidAmount(f"Invalid amount type: {type(value).__name__}")

    if not amount.is_finite():
        raise InvalidAmount(f"Amount must be finite, got {value!r}")
    _check_magnitude(amount)
    return amount


def _check_magnitude(amount: Decimal) -> None:
    if abs(amount) > MAX_AMOUNT:
        raise InvalidAmount(f"Amount {amount} exceeds the supported magnitude {MAX_AMOUNT}")


@dataclass(frozen=True, slots=True, eq=False)
class Money:
    """Immutable monetary amount."""

    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", _to_decimal(self.amount))
        elif not self.amount.is_finite():
            raise InvalidAmount(f"Amount must be finite, got {self.amount!r}")
        else:
            _check_magnitude(self.amount)

    def __copy__(self) -> Money:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> Money:
        return self

    # --- Construction ---

    @classmethod
    def of(cls, value: Any, *, allow_negative: bool = True) -> Money:
        """Build Money from a decimal string, int, Decimal or Money.

        Raises:
            InvalidAmount: On non-finite or unparseable input, or a negative
                value when ``allow_negative`` is False.
        """
        amount = _to_decimal(value)
        if not allow_negative and amount < 0:
            raise InvalidAmount(f"Amount must be non-negative, got {amount}")
        return cls(amount)

    @classmethod
    def from_cents(cls, cents: int) -> Money:
        if isinstance(cents, bool) or not isinstance(cents, int):
            raise InvalidAmount(f"Cents must be an integer, got {cents!r}")
        return cls(Decimal(cents) / _HUNDRED)

    @classmethod
    def zero(cls) -> Money:
        return cls(Decimal("0"))

    # --- Arithmetic ---

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + other.amount)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - other.amount)

    def __neg__(self) -> Money:
        return Money(-self.amount)

    def __mul__(self, factor: Decimal | int) -> Money:
        if isinstance(factor, bool) or not isinstance(factor, (Decimal, int)):
            return NotImplemented
        return Money(self.amount * factor)

    __rmul__ = __mul__

    def percent(self, percent: Decimal | int) -> Money:
        """Return ``self * percent / 100`` without rounding."""
        return Money(self.amount * Decimal(percent) / _HUNDRED)

    def round(self) -> Money:
        """Round half-up to two decimal places."""
        try:
            return Money(self.amount.quantize(CENT, rounding=ROUND_HALF_UP))
        except InvalidOperation as e:
            raise InvalidAmount(f"Cannot round {self.amount} to cents") from e

    # --- Comparison ---

    def _cmp_value(self, other: Any) -> Decimal:
        if isinstance(other, Money):
            return other.amount
        if isinstance(other, (Decimal, int)) and not isinstance(other, bool):
            return Decimal(other)
        raise TypeError(f"Cannot compare Money with {type(other).__name__}")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Money):
            return self.amount == other.amount
        if isinstance(other, (Decimal, int)) and not isinstance(other, bool):
            return self.amount == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.amount)

    def __lt__(self, other: Any) -> bool:
        return self.amount < self._cmp_value(other)

    def __le__(self, other: Any) -> bool:
        return self.amount <= self._cmp_value(other)

    def __gt__(self, other: Any) -> bool:
        return self.amount > self._cmp_value(other)

    def __ge__(self, other: Any) -> bool:
        return self.amount >= self._cmp_value(other)

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    # --- Serialization ---

    def to_cents(self) -> int:
        return int(self.round().amount * _HUNDRED)

    def to_string(self) -> str:
        """Fixed two-decimal string, e.g. ``"1342.00"``."""
        return f"{self.round().amount:.2f}"

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Money('{self.amount}')"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls.of,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda m: m.to_string(), when_used="json"
            ),
        )

    @classmethod
    def __get_pydantic_json_schema__(
        cls, schema: core_schema.CoreSchema, handler: GetJsonSchemaHandler
    ) -> dict[str, Any]:
        return {"type": "string", "pattern": r"^-?\d+\.\d{2}$", "examples": ["1342.00"]}


def total(amounts: list[Money]) -> Money:
    """Sum a list of Money values (empty list sums to zero)."""
    result = Money.zero()
    for amount in amounts:
        result = result + amount
    return result
