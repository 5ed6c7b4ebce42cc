"""Volatility scoring — rank 15-minute slices for straddle viability.

Two scorers share the ``(stats, movement_quality=None) -> float`` shape:

* :func:`score_slice` — step function over range, ATR and body range
  (used to pick the slices a plan is built for).
* :func:`score_continuous` — smooth blend of five metrics (used to rank
  slices across archives, where step plateaus hide differences).

Both return a value in [0, 100] and are pure.
"""

import logging
import math
from typing import Callable, Iterable, Optional

from straddlelab.models import ScoredSlice, SliceStatistics
from straddlelab.scoring.bands import (
    ATR_POINTS,
    BODY_RANGE_POINTS,
    RANGE_POINTS,
    band_value,
)

logger = logging.getLogger("straddlelab.scoring")

Scorer = Callable[..., float]

MOVEMENT_QUALITY_WEIGHT = 0.2
DEFAULT_NOISE_RATIO = 3.0


def score_slice(
    stats: SliceStatistics,
    movement_quality: Optional[float] = None,
) -> float:
    """Step-function straddle score.

    Range contributes up to 60 points, ATR up to 25 and body range up to
    15.  An empty slice (no candles) scores 0.

    Args:
        stats: Slice statistics.
        movement_quality: Optional 0–100 quality score blended in with a
            20 % weight.
    """
    if stats.candle_count == 0:
        return 0.0

    score = (
        band_value(stats.range_mean, RANGE_POINTS)
        + band_value(stats.atr_mean, ATR_POINTS)
        + band_value(stats.body_range_mean, BODY_RANGE_POINTS)
    )
    return _finish(score, movement_quality)


def score_continuous(
    stats: SliceStatistics,
    movement_quality: Optional[float] = None,
) -> float:
    """Continuous composite score.

    Components::

        ATR        min(atr × 2, 30)                 30 pts
        Noise      max(0, 20 − noise × 5)           20 pts (inverted)
        Breakout   breakout% / 100 × 20             20 pts
        Body       body% / 100 × 15                 15 pts
        Imbalance  min(|imbalance| × 10, 15)        15 pts
    """
    if stats.candle_count == 0:
        return 0.0

    noise = stats.noise_ratio_mean or DEFAULT_NOISE_RATIO
    score = (
        min(stats.atr_mean * 2, 30.0)
        + max(0.0, 20 - noise * 5)
        + (stats.breakout_percentage / 100) * 20
        + (stats.body_range_mean / 100) * 15
        + min(abs(stats.volume_imbalance_mean) * 10, 15.0)
    )
    return _finish(score, movement_quality)


def _finish(score: float, movement_quality: Optional[float]) -> float:
    """Blend the optional movement-quality bonus, then clamp to [0, 100]."""
    if movement_quality is not None and math.isfinite(movement_quality):
        bonus = min(100.0, max(0.0, movement_quality))
        score = score * (1 - MOVEMENT_QUALITY_WEIGHT) + bonus * MOVEMENT_QUALITY_WEIGHT
    if not math.isfinite(score):
        return 0.0
    return min(100.0, max(0.0, score))


# ── Ranking ──────────────────────────────────────────────────────────────


def rank_slices(
    slices: Iterable[SliceStatistics],
    top_n: Optional[int] = None,
    scorer: Scorer = score_slice,
) -> list[ScoredSlice]:
    """Score and rank *slices* by descending score.

    Ties keep their input order.  Returns at most *top_n* entries when
    given; ranks start at 1.
    """
    scored = [(s, scorer(s)) for s in slices]
    ordered = sorted(scored, key=lambda pair: pair[1], reverse=True)
    if top_n is not None:
        ordered = ordered[: max(0, top_n)]

    ranked = [
        ScoredSlice(stats=s, straddle_score=score, rank=idx + 1)
        for idx, (s, score) in enumerate(ordered)
    ]
    if ranked:
        logger.debug(
            "Ranked %d slice(s); best %s scored %.1f",
            len(ranked),
            ranked[0].stats.time_label,
            ranked[0].straddle_score,
        )
    return ranked


def rank_of(stats: SliceStatistics, ranked: list[ScoredSlice]) -> int:
    """1-based rank of the (hour, quarter) window in *ranked*, 0 if absent."""
    for entry in ranked:
        if entry.stats.hour == stats.hour and entry.stats.quarter == stats.quarter:
            return entry.rank
    return 0


def is_ranked(stats: SliceStatistics, ranked: list[ScoredSlice]) -> bool:
    """``True`` if the window of *stats* appears in *ranked*."""
    return rank_of(stats, ranked) > 0
