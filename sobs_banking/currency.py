"""
Currency Module

ISO 4217 currency codes with their minor-unit precision and an immutable
Decimal-backed Money type. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from dataclasses import dataclass
from functools import total_ordering
from enum import Enum
from typing import Any

# Set global decimal context for financial precision
getcontext().prec = 28


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    EGP = ("EGP", 2)  # Egyptian Pound
    USD = ("USD", 2)  # US Dollar
    EUR = ("EUR", 2)  # Euro
    GBP = ("GBP", 2)  # British Pound
    JPY = ("JPY", 0)  # Japanese Yen

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def quantum(self) -> Decimal:
        """Smallest representable amount, e.g. 0.01"""
        return Decimal('0.1') ** self.precision


def to_decimal(value: Any) -> Decimal:
    """
    Convert user input to Decimal without passing through binary floats.

    Raises:
        ValueError: If value is not a finite number
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a numeric amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"Not a numeric amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return result


@total_ordering
@dataclass(frozen=True)
class Money:
    """
    Amount in one currency, always quantized to that currency's precision.

    Arithmetic and ordering between different currencies raise ValueError.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        value = self.amount if isinstance(self.amount, Decimal) else Decimal(str(self.amount))
        object.__setattr__(self, 'amount', value.quantize(self.currency.quantum, rounding=ROUND_HALF_UP))

    @classmethod
    def zero(cls, currency: Currency) -> 'Money':
        return cls(Decimal('0'), currency)

    def _same_currency(self, other: 'Money', verb: str) -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot {verb} {self.currency.code} and {other.currency.code}")
        return other

    def __add__(self, other: 'Money') -> 'Money':
        return Money(self.amount + self._same_currency(other, "add").amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        return Money(self.amount - self._same_currency(other, "subtract").amount, self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def __lt__(self, other: 'Money') -> bool:
        return self.amount < self._same_currency(other, "compare").amount

    def is_zero(self) -> bool:
        return not self.amount

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def to_string(self) -> str:
        """Grouped amount followed by the code, e.g. "50,000.00 EGP" """
        return f"{self.amount:,.{self.currency.precision}f} {self.currency.code}"
