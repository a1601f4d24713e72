"""
Inch measurements as fraction strings.

Three notations are understood, after all whitespace is removed:
    "24"      whole inches
    "3/4"     simple fraction
    "2-1/2"   mixed number (whole, hyphen, fraction)

decimal_to_fraction() searches denominators 1..max_denominator for the closest
numerator, so "24.5" prints as "24-1/2" and 0.3 as "3/10" with the default
maximum denominator of 16.
"""

import math
import re
from typing import Optional

from stone_mockup.errors import ValidationError

DEFAULT_MAX_DENOMINATOR = 16

# Early exit once a denominator reproduces the remainder this closely
_EXACT_EPSILON = 1e-7

_WHOLE_RE = re.compile(r"[0-9]+")
_FRACTION_RE = re.compile(r"([0-9]+)/([0-9]+)")
_MIXED_RE = re.compile(r"([0-9]+)-([0-9]+)/([0-9]+)")
_WHITESPACE_RE = re.compile(r"\s+")


def decimal_to_fraction(value: float, max_denominator: int = DEFAULT_MAX_DENOMINATOR) -> str:
    """Format a decimal inch value as a whole, fraction or mixed-number string.

    Denominators are scanned in ascending order and a candidate only replaces
    the current best on a strictly smaller error, so exact ties resolve to the
    smallest denominator.

    Args:
        value: Measurement in decimal inches (may be negative).
        max_denominator: Largest denominator to consider (default 16).

    Returns:
        "W", "N/D" or "W-N/D" with the sign reapplied; "" for NaN/inf.
    """
    if not math.isfinite(value):
        return ""
    if max_denominator < 1:
        raise ValueError(f"max_denominator must be >= 1, got {max_denominator}")

    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    whole = math.floor(magnitude)
    remainder = magnitude - whole

    if remainder == 0:
        return f"{sign}{whole}"

    best_numerator = 0
    best_denominator = 1
    best_error = remainder

    for denominator in range(1, max_denominator + 1):
        # half-up, not banker's rounding
        numerator = math.floor(remainder * denominator + 0.5)
        error = abs(remainder - numerator / denominator)
        if error < best_error:
            best_numerator = numerator
            best_denominator = denominator
            best_error = error
            if error < _EXACT_EPSILON:
                break

    if best_numerator == 0:
        return f"{sign}{whole}" if whole else "0"
    if best_numerator == best_denominator:
        return f"{sign}{whole + 1}"

    divisor = math.gcd(best_numerator, best_denominator)
    best_numerator //= divisor
    best_denominator //= divisor

    if whole == 0:
        return f"{sign}{best_numerator}/{best_denominator}"
    return f"{sign}{whole}-{best_numerator}/{best_denominator}"


def fraction_to_decimal(text: str) -> Optional[float]:
    """Parse a whole, fraction or mixed-number string.

    Returns:
        The decimal value, or None for any other shape or a zero denominator.
    """
    if not isinstance(text, str):
        return None
    clean = _WHITESPACE_RE.sub("", text)
    if not clean:
        return None

    if _WHOLE_RE.fullmatch(clean):
        return float(int(clean))

    match = _FRACTION_RE.fullmatch(clean)
    if match:
        numerator, denominator = int(match.group(1)), int(match.group(2))
        if denominator == 0:
            return None
        return numerator / denominator

    match = _MIXED_RE.fullmatch(clean)
    if match:
        whole = int(match.group(1))
        numerator, denominator = int(match.group(2)), int(match.group(3))
        if denominator == 0:
            return None
        return whole + numerator / denominator

    return None


def is_valid_fraction_string(text: str) -> bool:
    """True exactly when fraction_to_decimal() would parse ``text``."""
    return fraction_to_decimal(text) is not None


def format_fraction_string(text: str) -> str:
    """Normalize a fraction string ("2-2/4" -> "2-1/2"); unparseable text passes through."""
    value = fraction_to_decimal(text)
    if value is None:
        return text
    return decimal_to_fraction(value)


def parse_dimension(text: str) -> float:
    """Parse a piece dimension typed by a user.

    Raises:
        ValidationError: malformed text or a value that is not positive.
    """
    value = fraction_to_decimal(text)
    if value is None:
        raise ValidationError(
            f"Invalid measurement {text!r}: use 24, 3/4 or 2-1/2"
        )
    if value <= 0:
        raise ValidationError(f"Measurement must be greater than zero, got {text!r}")
    return value


def format_inches(value: float) -> str:
    """Fraction string with an inch mark, e.g. 24.5 -> '24-1/2"'."""
    return f'{decimal_to_fraction(value)}"'
