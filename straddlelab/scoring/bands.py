"""Decision band tables — thresholds as data, not code.

Each table is an ordered tuple of :class:`Band`.  :func:`band_value`
walks the table and returns the value of the first band whose predicate
holds, so tables must be listed from the strongest band down.
"""

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class Band:
    """One row of a decision table: ``value`` applies when ``predicate(x)``."""

    predicate: Callable[[float], bool]
    value: float
    label: str = ""


def above(threshold: float) -> Callable[[float], bool]:
    """Predicate ``x > threshold``."""
    return lambda x: x > threshold


def below(threshold: float) -> Callable[[float], bool]:
    """Predicate ``x < threshold``."""
    return lambda x: x < threshold


def at_least(threshold: float) -> Callable[[float], bool]:
    """Predicate ``x >= threshold``."""
    return lambda x: x >= threshold


def band_value(x: float, table: tuple[Band, ...], default: float = 0.0) -> float:
    """Return the value of the first matching band, or *default*."""
    for band in table:
        if band.predicate(x):
            return band.value
    return default


def band_label(x: float, table: tuple[Band, ...], default: str = "") -> str:
    """Return the label of the first matching band, or *default*."""
    for band in table:
        if band.predicate(x):
            return band.label
    return default


# ── Step-function score (max 60 + 25 + 15 = 100) ─────────────────────────

RANGE_POINTS: tuple[Band, ...] = (
    Band(above(0.0025), 60),
    Band(above(0.0020), 50),
    Band(above(0.0015), 40),
    Band(above(0.0010), 20),
)

ATR_POINTS: tuple[Band, ...] = (
    Band(above(0.0020), 25),
    Band(above(0.0015), 20),
    Band(above(0.0010), 15),
    Band(above(0.0005), 8),
)

BODY_RANGE_POINTS: tuple[Band, ...] = (
    Band(above(45.0), 15),
    Band(above(35.0), 12),
    Band(above(25.0), 8),
    Band(above(15.0), 3),
)

# ── Liquidity (tick quality = |close − open| / volume) ───────────────────

TICK_QUALITY_EXCELLENT = 0.001
TICK_QUALITY_POOR = 0.0003

# ── Plan confidence tiers (0–100) ────────────────────────────────────────

RISK_LEVELS: tuple[Band, ...] = (
    Band(at_least(75), 0, "LOW"),
    Band(at_least(50), 0, "MEDIUM"),
)

RECOMMENDATIONS: tuple[Band, ...] = (
    Band(at_least(75), 0, "TRADE"),
)

# ── Trade duration ───────────────────────────────────────────────────────

DURATION_BASE_MINUTES: tuple[Band, ...] = (
    Band(above(0.005), 120),
    Band(above(0.004), 150),
    Band(above(0.0025), 180),
)
DURATION_DEFAULT_MINUTES = 240

# Substring of the event name → duration factor.  First match wins.
EVENT_DURATION_FACTORS: tuple[tuple[str, float], ...] = (
    ("Non-Farm", 0.75),
    ("NFP", 0.75),
    ("Interest Rate", 1.25),
    ("FOMC", 1.25),
    ("Press Conference", 1.5),
    ("CPI", 0.9),
    ("GDP", 1.0),
    ("Retail Sales", 0.9),
    ("PMI", 0.8),
)

# UTC hour → duration factor.
HOUR_DURATION_FACTORS: dict[int, float] = {
    8: 0.8,
    9: 0.8,
    12: 0.8,
    13: 0.8,
    14: 0.8,
    16: 0.9,
    17: 0.9,
    2: 1.2,
    3: 1.2,
    4: 1.2,
    5: 1.2,
    6: 1.2,
    7: 1.2,
    10: 1.1,
    15: 1.1,
}

# ── Event ranking ────────────────────────────────────────────────────────

PAIR_RATINGS: tuple[Band, ...] = (
    Band(at_least(80), 0, "🟢 TRÈS BON"),
    Band(at_least(65), 0, "🟡 BON"),
    Band(at_least(50), 0, "🟠 MOYEN"),
)
PAIR_RATING_DEFAULT = "🔴 FAIBLE"
