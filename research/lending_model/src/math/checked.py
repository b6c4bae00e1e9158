"""Checked integer arithmetic on unsigned fixed-width values"""
from ..constants import U128_MAX
from ..errors import MathOverflowError


def checked_add(a: int, b: int, limit: int = U128_MAX) -> int:
    """Add with overflow checking"""
    result = a + b
    if result > limit:
        raise MathOverflowError("Arithmetic overflow in addition")
    return result

def checked_sub(a: int, b: int) -> int:
    """Subtract with underflow checking"""
    result = a - b
    if result < 0:
        raise MathOverflowError("Arithmetic underflow in subtraction")
    return result

def checked_mul(a: int, b: int, limit: int = U128_MAX) -> int:
    """Multiply with overflow checking"""
    result = a * b
    if result > limit:
        raise MathOverflowError("Arithmetic overflow in multiplication")
    return result

def checked_div(a: int, b: int) -> int:
    """Divide with overflow checking"""
    if b == 0:
        raise MathOverflowError("Division by zero")
    return a // b

def checked_ceil_div(a: int, b: int) -> int:
    """Divide rounding up"""
    if b == 0:
        raise MathOverflowError("Division by zero")
    return -(-a // b)

def check_range(value: int, limit: int, what: str = "value") -> int:
    """Reject values outside [0, limit]"""
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{what} must be an int, got {type(value).__name__}")
    if value < 0 or value > limit:
        raise MathOverflowError(f"{what} {value} outside [0, {limit}]")
    return value
