"""Floating point comparison helpers."""

import math


def equals_within_ulp(x: float, y: float, max_ulps: int = 1) -> bool:
    """True when x and y are equal or at most max_ulps units in the last place apart."""
    return x == y or abs(x - y) <= max_ulps * math.ulp(max(abs(x), abs(y)))
