"""Trailing stop distance for straddle exits — pure math, no I/O.

Formula::

    TS = ATR × 0.75 × (1 + whipsaw_frequency × 0.3)

rounded half-up to one decimal.  Every component quoting a trailing-stop
distance calls :func:`trailing_stop`.
"""

from straddlelab.risk.rounding import round_half_up

BASE_ATR_FRACTION = 0.75
WHIPSAW_WIDENING = 0.3


def trailing_stop(atr: float, whipsaw_frequency: float = 0.0) -> float:
    """Return the trailing-stop distance for *atr*.

    Args:
        atr: Average True Range in pips (or points).
        whipsaw_frequency: Share of events where both straddle legs
            triggered (0–1).  Widens the stop by up to 30 %.

    Returns:
        Distance in the same unit as *atr*, rounded to 0.1.
    """
    base = atr * BASE_ATR_FRACTION
    adjusted = base * (1 + whipsaw_frequency * WHIPSAW_WIDENING)
    return round_half_up(adjusted, 1)
