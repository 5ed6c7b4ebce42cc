"""Event statistics — rank economic-event types across analysis archives.

Tradability blends three components::

    confidence  min(avg_confidence, 1) × 100 × 0.4
    stability   max(0, 1 − variance / avg_peak_delay) × 100 × 0.3
    impact      (heatmap_impact or 0) × 0.3

Stability is 1 when no variance is known (a single archive).
"""

import logging
import math
from collections import defaultdict
from dataclasses import replace
from typing import Optional

import numpy as np

from straddlelab.models import (
    EventPairStats,
    EventStats,
    NormalizedArchive,
    PairStats,
)
from straddlelab.risk.rounding import round_half_up
from straddlelab.risk.trailing_stop import trailing_stop
from straddlelab.scoring.bands import PAIR_RATING_DEFAULT, PAIR_RATINGS, band_label

logger = logging.getLogger("straddlelab.events")

HEATMAP = "Heatmap"
GOOD_EVENT_SCORE = 75.0
RISKY_EVENT_SCORE = 50.0


def tradability_score(stats: EventStats) -> float:
    """Composite 0–100 tradability score for one event type."""
    confidence = min(stats.avg_confidence, 1.0) * 100 * 0.4
    stability = _stability(stats.variance, stats.avg_peak_delay) * 100 * 0.3
    impact = (stats.heatmap_impact or 0.0) * 0.3
    total = confidence + stability + impact
    if not math.isfinite(total):
        return 0.0
    return min(100.0, max(0.0, total))


def _stability(variance: Optional[float], avg_peak_delay: float) -> float:
    if variance is None:
        return 1.0
    if avg_peak_delay <= 0:
        return 0.0 if variance > 0 else 1.0
    return max(0.0, 1 - variance / avg_peak_delay)


def pair_rating(confidence: float) -> str:
    """Rating label for a 0–1 confidence."""
    return band_label(min(confidence, 1.0) * 100, PAIR_RATINGS, default=PAIR_RATING_DEFAULT)


# ── Aggregation ──────────────────────────────────────────────────────────


def calculate_event_statistics(archives: list[NormalizedArchive]) -> dict[str, EventStats]:
    """Aggregate archives per event type, scored for tradability.

    ``variance`` holds the population standard deviation of peak delays
    and is only set when an event has more than one archive.
    ``heatmap_impact`` is the mean impact of the event's heatmap archives.
    """
    grouped: dict[str, list[NormalizedArchive]] = defaultdict(list)
    for archive in archives:
        grouped[archive.event_type].append(archive)

    stats: dict[str, EventStats] = {}
    for event_type, group in grouped.items():
        delays = np.array([a.peak_delay for a in group], dtype=float)
        heatmaps = [a.impact_score or 0.0 for a in group if a.archive_type == HEATMAP]

        entry = EventStats(
            event_type=event_type,
            avg_atr=float(np.mean([a.peak_atr for a in group])),
            avg_peak_delay=float(delays.mean()),
            avg_decay_timeout=float(np.mean([a.decay_timeout for a in group])),
            avg_confidence=float(np.mean([a.confidence for a in group])),
            count=len(group),
            variance=float(delays.std()) if len(group) > 1 else None,
            heatmap_impact=float(np.mean(heatmaps)) if heatmaps else None,
        )
        stats[event_type] = replace(entry, tradability_score=tradability_score(entry))
    return stats


def calculate_pair_statistics(archives: list[NormalizedArchive]) -> dict[str, PairStats]:
    """Aggregate archives per pair with per-event confidence sensitivity."""
    grouped: dict[str, list[NormalizedArchive]] = defaultdict(list)
    for archive in archives:
        grouped[archive.pair].append(archive)

    stats: dict[str, PairStats] = {}
    for pair, group in grouped.items():
        by_event: dict[str, list[float]] = defaultdict(list)
        for a in group:
            by_event[a.event_type].append(a.confidence)

        avg_confidence = float(np.mean([a.confidence for a in group]))
        stats[pair] = PairStats(
            pair=pair,
            avg_confidence=avg_confidence,
            avg_atr=float(np.mean([a.peak_atr for a in group])),
            count=len(group),
            event_sensitivity={e: float(np.mean(c)) for e, c in by_event.items()},
            performance_rating=pair_rating(avg_confidence),
        )
    return stats


def calculate_event_pair_statistics(
    archives: list[NormalizedArchive],
) -> dict[str, EventPairStats]:
    """Aggregate per ``"event|pair"`` key with ATR-derived SL and trailing stop."""
    grouped: dict[tuple[str, str], list[NormalizedArchive]] = defaultdict(list)
    for archive in archives:
        grouped[(archive.event_type, archive.pair)].append(archive)

    stats: dict[str, EventPairStats] = {}
    for (event_type, pair), group in grouped.items():
        avg_atr = float(np.mean([a.peak_atr for a in group]))
        stats[f"{event_type}|{pair}"] = EventPairStats(
            event_type=event_type,
            pair=pair,
            avg_atr=avg_atr,
            avg_confidence=float(np.mean([a.confidence for a in group])),
            count=len(group),
            sl_adjusted=round_half_up(avg_atr * 1.5, 1),
            trailing_stop=trailing_stop(avg_atr),
        )
    return stats


def optimal_straddle_params(stats: EventStats) -> dict:
    """Baseline straddle parameters for an event: SL = 1.5 ATR, TP = 2 SL."""
    sl = stats.avg_atr * 1.5
    tp = sl * 2.0
    gain = round_half_up(tp / sl, 1) if sl > 0 else 0.0
    return {
        "sl": round_half_up(sl, 2),
        "tp": round_half_up(tp, 2),
        "ratio": "1:2",
        "placement_seconds": 60,
        "exit_minutes": stats.avg_decay_timeout,
        "estimated_gain": f"{gain}R",
    }


def extract_heatmap_data(archives: list[NormalizedArchive]) -> dict:
    """Pair × event impact matrix from heatmap archives (missing cells = 0)."""
    heatmaps = [a for a in archives if a.archive_type == HEATMAP]
    pairs = sorted({a.pair for a in heatmaps})
    events = sorted({a.event_type for a in heatmaps})

    matrix: dict[str, dict[str, float]] = {p: {e: 0.0 for e in events} for p in pairs}
    for a in heatmaps:
        # First archive for a cell wins.
        if matrix[a.pair][a.event_type] == 0.0:
            matrix[a.pair][a.event_type] = a.impact_score or 0.0
    return {"pairs": pairs, "events": events, "impact_matrix": matrix}


def generate_advice(
    event_stats: dict[str, EventStats],
    pair_stats: dict[str, PairStats],
) -> list[str]:
    """Short ranking hints: best event/pair, events to avoid, fastest peak."""
    advice: list[str] = []
    events = list(event_stats.values())

    good = sorted(
        (e for e in events if e.tradability_score >= GOOD_EVENT_SCORE),
        key=lambda e: e.tradability_score,
        reverse=True,
    )
    if good and pair_stats:
        best_pair = max(pair_stats.values(), key=lambda p: p.avg_confidence).pair
        top = good[0]
        advice.append(
            f"🎯 MEILLEUR: {top.event_type}/{best_pair} ({top.tradability_score:.0f}% confiance)"
        )

    risky = [
        f"{e.event_type} ({e.tradability_score:.0f}%)"
        for e in events
        if e.tradability_score < RISKY_EVENT_SCORE
    ]
    if risky:
        advice.append(f"⚠️ ÉVITER: {', '.join(risky[:3])}")

    if events:
        strongest = max(events, key=lambda e: e.avg_atr)
        params = optimal_straddle_params(strongest)
        advice.append(f"💰 MEILLEUR RATIO: {strongest.event_type} (~{params['estimated_gain']})")

        fastest = min(events, key=lambda e: e.avg_peak_delay)
        advice.append(f"⚡ PLUS RAPIDE: {fastest.event_type} (T+{fastest.avg_peak_delay:.1f}min)")

    logger.debug("Generated %d advice line(s) for %d event(s)", len(advice), len(events))
    return advice


def rank_events(event_stats: dict[str, EventStats]) -> list[EventStats]:
    """Event statistics by descending tradability (ties keep insertion order)."""
    return sorted(event_stats.values(), key=lambda e: e.tradability_score, reverse=True)
