"""Rounding helpers — half-up rounding as quoted by the trading UI."""

import math


def round_half_up(value: float, decimals: int = 0) -> float:
    """Round *value* to *decimals* places, ties away from −∞.

    Python's ``round`` uses banker's rounding (``round(97.5) == 98`` but
    ``round(96.5) == 96``).  Published figures such as trailing-stop
    distances round 9.75 → 9.8, so every quoted number goes through here.
    """
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor
