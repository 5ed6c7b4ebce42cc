"""Pattern detection — golden combos and traps over one slice.

Rules are declarative: each combo is an AND of threshold predicates and
each trap a predicate plus the metric it reports.  Every rule is checked
independently, so several combos (or traps) can match the same slice.
Combos are listed strongest tier first, which makes the first match the
best one.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from straddlelab.models import (
    CONFIDENCE_TIERS,
    SEVERITY_TIERS,
    DetectedTrap,
    GoldenCombo,
    SliceStatistics,
)
from straddlelab.scoring.bands import TICK_QUALITY_EXCELLENT, TICK_QUALITY_POOR

SlicePredicate = Callable[[SliceStatistics], bool]


@dataclass(frozen=True)
class ComboRule:
    combo: GoldenCombo
    conditions: tuple[SlicePredicate, ...]


@dataclass(frozen=True)
class TrapRule:
    name: str
    description: str
    severity: str
    metric: str
    threshold: float
    recommendation: str
    condition: SlicePredicate
    observe: Callable[[SliceStatistics], float]


COMBO_RULES: tuple[ComboRule, ...] = (
    ComboRule(
        GoldenCombo(
            name="Jackpot Straddle",
            description="Range et ATR extrêmes, mouvement propre et liquide",
            confidence="JACKPOT",
            win_rate=0.72,
            avg_gain_r=0.60,
        ),
        (
            lambda s: s.range_mean > 0.0025,
            lambda s: s.atr_mean > 0.0020,
            lambda s: s.body_range_mean > 45.0,
            lambda s: s.noise_ratio_mean < 1.5,
            lambda s: s.breakout_percentage > 20.0,
            lambda s: s.tick_quality_mean >= TICK_QUALITY_EXCELLENT,
        ),
    ),
    ComboRule(
        GoldenCombo(
            name="Range Pur",
            description="Mouvement directionnel avec range excellent et peu de bruit",
            confidence="EXCELLENT",
            win_rate=0.65,
            avg_gain_r=0.45,
        ),
        (
            lambda s: s.range_mean > 0.0015,
            lambda s: s.body_range_mean > 40.0,
            lambda s: s.noise_ratio_mean < 2.0,
        ),
    ),
    ComboRule(
        GoldenCombo(
            name="Volatilité Haute + Imbalance",
            description="Conditions haute volatilité avec imbalance volume confirmée",
            confidence="BON",
            win_rate=0.58,
            avg_gain_r=0.35,
        ),
        (
            lambda s: s.atr_mean > 0.0010,
            lambda s: s.volume_imbalance_mean > 0.2,
            lambda s: s.breakout_percentage > 15.0,
        ),
    ),
    ComboRule(
        GoldenCombo(
            name="Cassure Propre",
            description="Cassures fréquentes avec corps de bougie marqués",
            confidence="MOYEN",
            win_rate=0.52,
            avg_gain_r=0.25,
        ),
        (
            lambda s: s.range_mean > 0.0010,
            lambda s: s.breakout_percentage > 10.0,
            lambda s: s.body_range_mean > 30.0,
            lambda s: s.noise_ratio_mean < 2.5,
        ),
    ),
    ComboRule(
        GoldenCombo(
            name="Liquidité Stable",
            description="Volatilité modeste mais exécution fiable",
            confidence="FAIBLE",
            win_rate=0.50,
            avg_gain_r=0.15,
        ),
        (
            lambda s: s.atr_mean > 0.0005,
            lambda s: s.tick_quality_mean >= TICK_QUALITY_POOR,
            lambda s: s.noise_ratio_mean < 3.0,
        ),
    ),
)


TRAP_RULES: tuple[TrapRule, ...] = (
    TrapRule(
        name="Faux Mouvement",
        description="ATR élevé mais corps de bougie faible : mèches sans direction",
        severity="HAUTE",
        metric="Body Range %",
        threshold=20.0,
        recommendation="Élargir l'offset, attendre une clôture directionnelle",
        condition=lambda s: s.atr_mean > 0.0015 and s.body_range_mean < 20.0,
        observe=lambda s: s.body_range_mean,
    ),
    TrapRule(
        name="Chaos",
        description="Ratio bruit/signal trop élevé sans cassure exploitable",
        severity="HAUTE",
        metric="Noise Ratio",
        threshold=3.0,
        recommendation="Augmenter SL de 20-30%, réduire position size",
        condition=lambda s: s.noise_ratio_mean > 3.0 and s.breakout_percentage < 10.0,
        observe=lambda s: s.noise_ratio_mean,
    ),
    TrapRule(
        name="Indécision",
        description="Acheteurs et vendeurs équilibrés dans un marché calme",
        severity="MOYENNE",
        metric="Volume Imbalance",
        threshold=0.05,
        recommendation="Attendre un déséquilibre de volume avant de placer le straddle",
        condition=lambda s: abs(s.volume_imbalance_mean) < 0.05 and s.atr_mean < 0.0005,
        observe=lambda s: s.volume_imbalance_mean,
    ),
    TrapRule(
        name="Spread Prohibitif",
        description="Qualité de tick trop faible, le spread mange le mouvement",
        severity="HAUTE",
        metric="Tick Quality",
        threshold=TICK_QUALITY_POOR,
        recommendation="Réduire la taille de position ou changer de courtier",
        condition=lambda s: s.tick_quality_mean < TICK_QUALITY_POOR,
        observe=lambda s: s.tick_quality_mean,
    ),
    TrapRule(
        name="Range Insuffisant",
        description="Marché trop calme, mouvement insuffisant pour straddle",
        severity="CRITIQUE",
        metric="Range",
        threshold=0.0005,
        recommendation="SKIP ce créneau, pas d'opportunité",
        condition=lambda s: s.range_mean < 0.0005,
        observe=lambda s: s.range_mean,
    ),
)


def detect_golden_combos(stats: SliceStatistics) -> list[GoldenCombo]:
    """Return every combo whose conditions all hold, in definition order."""
    return [
        rule.combo
        for rule in COMBO_RULES
        if all(cond(stats) for cond in rule.conditions)
    ]


def detect_traps(stats: SliceStatistics) -> list[DetectedTrap]:
    """Return every trap whose condition holds, in definition order."""
    return [
        DetectedTrap(
            name=rule.name,
            description=rule.description,
            severity=rule.severity,
            metric=rule.metric,
            value=rule.observe(stats),
            threshold=rule.threshold,
            recommendation=rule.recommendation,
        )
        for rule in TRAP_RULES
        if rule.condition(stats)
    ]


def best_combo(combos: list[GoldenCombo]) -> Optional[GoldenCombo]:
    """The matched combo with the strongest confidence tier, or ``None``.

    Ties keep the first combo in list order.
    """
    if not combos:
        return None
    return min(combos, key=lambda c: CONFIDENCE_TIERS.index(c.confidence))


def has_severity(traps: list[DetectedTrap], severity: str) -> bool:
    """``True`` if any trap has exactly *severity*."""
    return any(t.severity == severity for t in traps)


def worst_severity(traps: list[DetectedTrap]) -> Optional[str]:
    """The most severe tier among *traps*, or ``None``."""
    if not traps:
        return None
    return min((t.severity for t in traps), key=SEVERITY_TIERS.index)
