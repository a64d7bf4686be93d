from __future__ import annotations

import math

TROY_OUNCE_GRAMS = 31.1035


def _check(value: float, name: str) -> float:
    # bool is an int subclass, a True price is a parsing bug upstream
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number, got {type(value).__name__}")
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"{name} must be a positive finite number, got {value!r}")
    return float(value)


def price_per_gram(price_per_troy_ounce: float) -> float:
    """Convert a USD price per troy ounce to USD per gram."""
    return _check(price_per_troy_ounce, "price_per_troy_ounce") / TROY_OUNCE_GRAMS


def invert(rate: float) -> float:
    """Flip a quote direction, e.g. USD->EUR into EUR->USD."""
    return 1 / _check(rate, "rate")
