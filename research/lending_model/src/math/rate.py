"""Lower precision rate used for percentages and exchange ratios"""
from dataclasses import dataclass
from typing import Union

from ..constants import PERCENT_SCALER, RATE_SCALE, U128_MAX, WAD
from ..errors import MathOverflowError
from .checked import check_range, checked_add, checked_div, checked_mul, checked_sub
from .decimal import Decimal

# Decimal carries this many more digits than Rate
DECIMAL_PER_RATE = WAD // RATE_SCALE


@dataclass(frozen=True, order=True)
class Rate:
    """Non-negative ratio stored as a u128 scaled by RATE_SCALE"""
    value: int = 0

    def __post_init__(self):
        check_range(self.value, U128_MAX, "Rate scaled value")

    @classmethod
    def zero(cls) -> "Rate":
        return cls(0)

    @classmethod
    def one(cls) -> "Rate":
        return cls(RATE_SCALE)

    @classmethod
    def from_percent(cls, percent: int) -> "Rate":
        return cls(checked_mul(percent, RATE_SCALE) // PERCENT_SCALER)

    @classmethod
    def from_scaled_val(cls, scaled_val: int) -> "Rate":
        return cls(scaled_val)

    @classmethod
    def from_decimal(cls, decimal: Decimal) -> "Rate":
        """Narrow a Decimal, truncating the extra digits"""
        return cls(decimal.value // DECIMAL_PER_RATE)

    def to_decimal(self) -> Decimal:
        return Decimal(checked_mul(self.value, DECIMAL_PER_RATE))

    def to_scaled_val(self) -> int:
        return self.value

    def try_add(self, other: "Rate") -> "Rate":
        return Rate(checked_add(self.value, other.value))

    def try_sub(self, other: "Rate") -> "Rate":
        return Rate(checked_sub(self.value, other.value))

    def try_mul(self, other: Union["Rate", int]) -> "Rate":
        if isinstance(other, Rate):
            return Rate(self.value * other.value // RATE_SCALE)
        return Rate(checked_mul(self.value, other))

    def try_div(self, other: Union["Rate", int]) -> "Rate":
        if isinstance(other, Rate):
            return Rate(checked_div(self.value * RATE_SCALE, other.value))
        return Rate(checked_div(self.value, other))

    def try_pow(self, exponent: int) -> "Rate":
        if exponent < 0:
            raise MathOverflowError("Negative exponent")
        base = self
        result = base if exponent % 2 else Rate.one()
        exponent //= 2
        while exponent:
            base = base.try_mul(base)
            if exponent % 2:
                result = result.try_mul(base)
            exponent //= 2
        return result

    def __str__(self) -> str:
        whole, frac = divmod(self.value, RATE_SCALE)
        return f"{whole}.{frac:012d}"
