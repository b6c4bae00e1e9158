"""Wad-scaled fixed point decimal

Every value is a non-negative integer scaled by WAD (1e18) that must fit in
128 bits, which is also how it is persisted. Constructing a value outside
that range raises MathOverflowError, so every try_* operation below is
checked by construction and never wraps.
"""
from dataclasses import dataclass
from typing import Union

from ..constants import HALF_WAD, PERCENT_SCALER, U64_MAX, U128_MAX, WAD
from ..errors import MathOverflowError
from .checked import check_range, checked_add, checked_ceil_div, checked_div, checked_mul, checked_sub


@dataclass(frozen=True, order=True)
class Decimal:
    """Non-negative decimal stored as a u128 scaled by WAD"""
    value: int = 0

    def __post_init__(self):
        check_range(self.value, U128_MAX, "Decimal scaled value")

    @classmethod
    def zero(cls) -> "Decimal":
        return cls(0)

    @classmethod
    def one(cls) -> "Decimal":
        return cls(WAD)

    @classmethod
    def from_integer(cls, amount: int) -> "Decimal":
        """Decimal holding a whole number of units"""
        return cls(checked_mul(amount, WAD))

    @classmethod
    def from_percent(cls, percent: int) -> "Decimal":
        return cls(checked_mul(percent, WAD) // PERCENT_SCALER)

    @classmethod
    def from_scaled_val(cls, scaled_val: int) -> "Decimal":
        return cls(scaled_val)

    def to_scaled_val(self) -> int:
        return self.value

    def to_integer(self) -> int:
        """Whole units, truncated"""
        return self.value // WAD

    def try_add(self, other: "Decimal") -> "Decimal":
        return Decimal(checked_add(self.value, other.value))

    def try_sub(self, other: "Decimal") -> "Decimal":
        return Decimal(checked_sub(self.value, other.value))

    def saturating_sub(self, other: "Decimal") -> "Decimal":
        return Decimal(max(self.value - other.value, 0))

    def try_mul(self, other: Union["Decimal", int]) -> "Decimal":
        if isinstance(other, Decimal):
            return Decimal(self.value * other.value // WAD)
        return Decimal(checked_mul(self.value, other))

    def try_div(self, other: Union["Decimal", int]) -> "Decimal":
        if isinstance(other, Decimal):
            return Decimal(checked_div(self.value * WAD, other.value))
        return Decimal(checked_div(self.value, other))

    def try_pow(self, exponent: int) -> "Decimal":
        """Raise to an integer power by iterated squaring"""
        if exponent < 0:
            raise MathOverflowError("Negative exponent")
        base = self
        result = base if exponent % 2 else Decimal.one()
        exponent //= 2
        while exponent:
            base = base.try_mul(base)
            if exponent % 2:
                result = result.try_mul(base)
            exponent //= 2
        return result

    def try_floor_u64(self) -> int:
        return check_range(self.value // WAD, U64_MAX, "Decimal floor")

    def try_ceil_u64(self) -> int:
        return check_range(checked_ceil_div(self.value, WAD), U64_MAX, "Decimal ceil")

    def try_round_u64(self) -> int:
        return check_range((self.value + HALF_WAD) // WAD, U64_MAX, "Decimal round")

    def __str__(self) -> str:
        whole, frac = divmod(self.value, WAD)
        return f"{whole}.{frac:018d}"
