# utils/numeric.py
import numpy as np
from typing import Any, Optional, Union

Number = Union[int, float]

# Characters users type into money/percent fields that are not part of the number
_STRIP_CHARS = ('$', '₪', '£', '€', ',', '%', ' ')


def _to_finite(val: Any) -> Optional[float]:
    """Returns a finite float for anything number-like, otherwise None."""
    if val is None or isinstance(val, bool):
        return None

    if isinstance(val, (int, float, np.number)):
        num = float(val)
        return num if np.isfinite(num) else None

    cleaned_val = str(val)
    for ch in _STRIP_CHARS:
        cleaned_val = cleaned_val.replace(ch, '')
    cleaned_val = cleaned_val.strip()
    if not cleaned_val:
        return None

    try:
        num = float(cleaned_val)
    except ValueError:
        return None
    return num if np.isfinite(num) else None


def parse_or_zero(val: Any) -> float:
    """
    Coerces any raw input (None, '', '$140,000', '7%', NaN, inf) into a finite float.
    Anything that cannot be read as a finite number becomes 0.0.
    """
    if isinstance(val, bool):
        return float(val)
    num = _to_finite(val)
    return 0.0 if num is None else num


def parse_optional(val: Any) -> Optional[float]:
    """Like parse_or_zero, but keeps 'not provided' (None, '', garbage) as None."""
    return _to_finite(val)


def safe_round(value: Any, decimals: int = 0) -> Number:
    """
    Rounds half away from zero (the way the results are displayed), mapping
    NaN/Infinity/garbage to 0. Whole-number rounding returns an int.
    """
    num = parse_or_zero(value)
    factor = 10 ** decimals
    rounded = float(np.sign(num) * np.floor(abs(num) * factor + 0.5) / factor)
    if decimals == 0:
        return int(rounded)
    return rounded


def safe_money(value: Any) -> int:
    """Monetary values are reported as whole numbers."""
    return safe_round(value, 0)


def safe_rate(value: Any) -> float:
    """Rates and percentages keep two decimals."""
    return safe_round(value, 2)


def safe_precise_money(value: Any) -> float:
    return safe_round(value, 2)


def safe_divide(numerator: Any, denominator: Any, default: float = 0.0) -> float:
    num = parse_or_zero(numerator)
    den = parse_or_zero(denominator)
    if den == 0:
        return default
    return num / den


def format_currency_output(val, decimals=0, symbol='₪'):
    """
    Formats a float/int into a clean currency string (₪1,234,567).

    Args:
        val (float): The numerical value to format.
        decimals (int): Number of decimal places.
        symbol (str): Currency symbol prefix.
    """
    return f"{symbol}{parse_or_zero(val):,.{decimals}f}"


def format_percent_output(value: Optional[float], decimal_places: int = 1) -> str:
    """Formats a percent number (23.0) to a display string ('23.0%')."""
    if value is None:
        return ""
    return f"{parse_or_zero(value):.{decimal_places}f}%"
