"""Trading plan synthesis — turn a scored slice into trade parameters.

Two sources, modelled as the :data:`ParameterSource` variant:

``Authoritative(params)``
    The backend computed the parameters.  They are copied verbatim; only
    the recommendation and risk level are derived from the confidence.
    The local estimator runs in shadow so that large disagreements are
    logged and attached to the plan, never silently resolved.

``Estimated(confidence)``
    No backend parameters.  SL/TP ATR multipliers and position size come
    from the best matched golden combo, then trap penalties and the
    liquidity override adjust the size.
"""

import logging
from dataclasses import replace
from typing import Optional

from straddlelab.models import (
    Authoritative,
    DetectedTrap,
    Estimated,
    GoldenCombo,
    ParameterSource,
    PlanDivergence,
    SliceStatistics,
    TradingPlan,
)
from straddlelab.risk.rounding import round_half_up
from straddlelab.risk.trailing_stop import trailing_stop
from straddlelab.scoring.bands import (
    DURATION_BASE_MINUTES,
    DURATION_DEFAULT_MINUTES,
    EVENT_DURATION_FACTORS,
    HOUR_DURATION_FACTORS,
    RECOMMENDATIONS,
    RISK_LEVELS,
    TICK_QUALITY_EXCELLENT,
    TICK_QUALITY_POOR,
    band_label,
    band_value,
)
from straddlelab.scoring.patterns import best_combo, has_severity

logger = logging.getLogger("straddlelab.planning")

PIPS_PER_PRICE_UNIT = 10_000
POINTS_PER_PIP = 10

# Tier → (SL ATR multiplier, TP ATR multiplier, position size %)
TIER_MULTIPLIERS: dict[str, tuple[float, float, float]] = {
    "JACKPOT": (1.5, 3.5, 100.0),
    "EXCELLENT": (2.0, 3.0, 100.0),
    "BON": (2.5, 3.0, 75.0),
}
DEFAULT_MULTIPLIERS: tuple[float, float, float] = (3.0, 3.0, 50.0)

DEFAULT_WIN_PROBABILITY = 50.0
DEFAULT_AVG_GAIN_R = 1.0

CRITICAL_SIZE_PENALTY = 25.0
CRITICAL_SIZE_FLOOR = 25.0
HIGH_SIZE_PENALTY = 15.0
HIGH_SIZE_FLOOR = 50.0
LIQUIDITY_SIZE_BONUS = 20.0
MAX_POSITION_SIZE = 150.0
POOR_LIQUIDITY_SIZE = 50.0

DEFAULT_DIVERGENCE_PCT = 25.0


def synthesize(
    stats: SliceStatistics,
    combos: list[GoldenCombo],
    traps: list[DetectedTrap],
    source: ParameterSource,
    divergence_pct: float = DEFAULT_DIVERGENCE_PCT,
) -> TradingPlan:
    """Build the trading plan for one slice.

    Args:
        stats: Slice statistics.
        combos: Golden combos matched on the slice.
        traps: Traps detected on the slice.
        source: ``Authoritative(params)`` or ``Estimated(confidence)``.
        divergence_pct: Relative SL/TP gap (%) above which a backend
            plan is flagged as diverging from the estimate.

    Raises:
        TypeError: If *source* is neither variant.
    """
    if isinstance(source, Authoritative):
        estimate = _estimate(stats, combos, traps, source.params.confidence)
        plan = _from_backend(stats, source)
        divergences = compare_plans(plan, estimate, divergence_pct)
        for d in divergences:
            logger.warning(
                "Slice %s: backend %s=%.1f differs from estimate %.1f (%.0f%%)",
                stats.time_label,
                d.field,
                d.authoritative,
                d.estimated,
                d.difference_pct,
            )
        return _with_divergences(plan, divergences)
    if isinstance(source, Estimated):
        return _estimate(stats, combos, traps, source.confidence)
    raise TypeError(f"Unknown parameter source: {type(source).__name__}")


def recommendation_for(confidence: float) -> str:
    """``"TRADE"`` at confidence ≥ 75, ``"CAUTION"`` otherwise."""
    return band_label(confidence, RECOMMENDATIONS, default="CAUTION")


def risk_level_for(confidence: float) -> str:
    """``"LOW"`` ≥ 75, ``"MEDIUM"`` ≥ 50, ``"HIGH"`` otherwise."""
    return band_label(confidence, RISK_LEVELS, default="HIGH")


def format_risk_reward(sl: float, tp: float) -> str:
    """Format ``tp / sl`` as ``"1:X.X"`` (``"1:0.0"`` without a stop)."""
    ratio = tp / sl if sl > 0 else 0.0
    return f"1:{round_half_up(ratio, 1):.1f}"


# ── Backend path ─────────────────────────────────────────────────────────


def _from_backend(stats: SliceStatistics, source: Authoritative) -> TradingPlan:
    params = source.params
    confidence = params.confidence
    return TradingPlan(
        source="backend",
        sl_pips=params.stop_loss_pips,
        tp_pips=params.hard_tp_pips,
        sl_points=params.stop_loss_pips * POINTS_PER_PIP,
        tp_points=params.hard_tp_pips * POINTS_PER_PIP,
        offset_pips=params.offset_pips,
        trailing_stop_pips=params.trailing_stop_pips,
        trade_duration_minutes=params.timeout_minutes,
        position_size_pct=100.0,
        risk_reward=format_risk_reward(params.stop_loss_pips, params.hard_tp_pips),
        tp_ratio=params.risk_reward_ratio,
        win_probability=round_half_up(confidence),
        avg_gain_r=params.risk_reward_ratio,
        avg_loss_r=1.0,
        confidence=confidence,
        risk_level=risk_level_for(confidence),
        recommendation=recommendation_for(confidence),
    )


# ── Estimator path ───────────────────────────────────────────────────────


def _estimate(
    stats: SliceStatistics,
    combos: list[GoldenCombo],
    traps: list[DetectedTrap],
    confidence: float,
) -> TradingPlan:
    best = best_combo(combos)
    tier = best.confidence if best else None
    sl_mult, tp_mult, size = TIER_MULTIPLIERS.get(tier, DEFAULT_MULTIPLIERS)

    size = position_size(size, traps, stats.tick_quality_mean)

    sl_pips = stats.atr_mean * sl_mult * PIPS_PER_PRICE_UNIT
    tp_pips = stats.atr_mean * tp_mult * PIPS_PER_PRICE_UNIT
    atr_pips = stats.atr_mean * PIPS_PER_PRICE_UNIT

    duration = calculate_trade_duration(stats.atr_mean, stats.primary_event, stats.hour)

    logger.debug(
        "Slice %s: estimated plan tier=%s sl=%.1f tp=%.1f size=%.0f%%",
        stats.time_label,
        tier or "none",
        sl_pips,
        tp_pips,
        size,
    )
    return TradingPlan(
        source="estimated",
        sl_pips=sl_pips,
        tp_pips=tp_pips,
        sl_points=sl_pips * POINTS_PER_PIP,
        tp_points=tp_pips * POINTS_PER_PIP,
        offset_pips=0.0,
        trailing_stop_pips=trailing_stop(atr_pips),
        trade_duration_minutes=duration,
        position_size_pct=size,
        risk_reward=format_risk_reward(sl_pips, tp_pips),
        tp_ratio=tp_pips / sl_pips if sl_pips > 0 else 0.0,
        win_probability=best.win_rate * 100 if best else DEFAULT_WIN_PROBABILITY,
        avg_gain_r=best.avg_gain_r if best else DEFAULT_AVG_GAIN_R,
        avg_loss_r=1.0,
        confidence=confidence,
        risk_level=risk_level_for(confidence),
        recommendation=recommendation_for(confidence),
    )


def position_size(
    base_size: float,
    traps: list[DetectedTrap],
    tick_quality: float,
) -> float:
    """Apply trap penalties, then the liquidity override, to *base_size*.

    Order matters: a CRITIQUE trap outranks a HAUTE one, and poor
    liquidity pins the size to exactly 50 % whatever came before.
    """
    size = base_size
    if has_severity(traps, "CRITIQUE"):
        size = max(CRITICAL_SIZE_FLOOR, size - CRITICAL_SIZE_PENALTY)
    elif has_severity(traps, "HAUTE"):
        size = max(HIGH_SIZE_FLOOR, size - HIGH_SIZE_PENALTY)

    if tick_quality > TICK_QUALITY_EXCELLENT:
        size = min(MAX_POSITION_SIZE, size + LIQUIDITY_SIZE_BONUS)
    if tick_quality < TICK_QUALITY_POOR:
        size = POOR_LIQUIDITY_SIZE
    return size


def calculate_trade_duration(atr: float, event_type: str, hour_of_day: int) -> int:
    """Estimated trade duration in minutes.

    Base minutes from the ATR band, scaled by the first event-name factor
    whose key is a substring of *event_type* and by the hour factor.
    """
    base = band_value(atr, DURATION_BASE_MINUTES, default=DURATION_DEFAULT_MINUTES)
    event_factor = next(
        (factor for key, factor in EVENT_DURATION_FACTORS if key in event_type),
        1.0,
    )
    hour_factor = HOUR_DURATION_FACTORS.get(hour_of_day, 1.0)
    return int(round_half_up(base * event_factor * hour_factor))


# ── Divergence report ────────────────────────────────────────────────────


def compare_plans(
    authoritative: TradingPlan,
    estimated: TradingPlan,
    threshold_pct: float = DEFAULT_DIVERGENCE_PCT,
) -> list[PlanDivergence]:
    """List SL/TP fields where the two plans differ by more than *threshold_pct*.

    The difference is relative to the authoritative value.  A zero
    authoritative value is compared only when the estimate is non-zero.
    """
    divergences: list[PlanDivergence] = []
    for name in ("sl_pips", "tp_pips"):
        auth = getattr(authoritative, name)
        est = getattr(estimated, name)
        diff = _relative_diff(auth, est)
        if diff is not None and diff > threshold_pct:
            divergences.append(
                PlanDivergence(
                    field=name,
                    authoritative=auth,
                    estimated=est,
                    difference_pct=diff,
                )
            )
    return divergences


def _relative_diff(reference: float, other: float) -> Optional[float]:
    if reference == 0:
        return None if other == 0 else 100.0
    return abs(other - reference) / abs(reference) * 100


def _with_divergences(
    plan: TradingPlan,
    divergences: list[PlanDivergence],
) -> TradingPlan:
    if not divergences:
        return plan
    return replace(plan, divergences=tuple(divergences))
