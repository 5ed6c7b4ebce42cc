"""Backtest advisory — turn aggregated metrics into verdict text.

Five independent axes, each resolving to exactly one message:

1. overall verdict (profit factor),
2. activity (share of events without an entry),
3. risk (drawdown vs gain, then losing streak),
4. exit quality (MFE / MAE vs average result and stop loss),
5. final recommendation (first matching rule in priority order).

Rules are ordered ``(predicate, message)`` tables; the last row of each
table always matches.
Rules see the rates as quoted: the no-entry rate as a whole percent and
MFE / MAE to one decimal.
"""

from dataclasses import dataclass
from typing import Callable

from straddlelab.models import BacktestAnalysis, BacktestConfig
from straddlelab.risk.rounding import round_half_up


@dataclass(frozen=True)
class Verdict:
    level: str  # "bad", "neutral" or "good"
    icon: str
    title: str
    text: str


@dataclass(frozen=True)
class Advice:
    code: str
    text: str


@dataclass(frozen=True)
class AdvisoryReport:
    verdict: Verdict
    activity: Advice
    risk: Advice
    exit: Advice
    recommendation: Advice


@dataclass(frozen=True)
class _Context:
    """Metrics every rule may read."""

    profit_factor: float
    no_entry_rate: float = 0.0
    max_drawdown: float = 0.0
    total_pips: float = 0.0
    consecutive_losses: int = 0
    avg_mfe: float = 0.0
    avg_mae: float = 0.0
    avg_pips: float = 0.0
    losing_trades: int = 0
    stop_loss_pips: float = 0.0
    tp_rr: float = 0.0


Rule = tuple[Callable[[_Context], bool], object]


def _always(_: _Context) -> bool:
    return True


VERDICT_RULES: tuple[Rule, ...] = (
    (
        lambda c: c.profit_factor < 1.0,
        Verdict(
            level="bad",
            icon="📉",
            title="Non Rentable",
            text="La stratégie perd de l'argent. Vos pertes moyennes dépassent vos gains.",
        ),
    ),
    (
        lambda c: c.profit_factor < 1.5,
        Verdict(
            level="neutral",
            icon="😐",
            title="Marginalement Rentable",
            text="Attention aux frais (spread/slippage) qui pourraient effacer ces gains en réel.",
        ),
    ),
    (
        _always,
        Verdict(
            level="good",
            icon="🚀",
            title="Stratégie Solide",
            text="Excellente espérance de gain. Le ratio risque/récompense est favorable.",
        ),
    ),
)

ACTIVITY_RULES: tuple[Rule, ...] = (
    (
        lambda c: c.no_entry_rate > 60,
        Advice(
            "check_data_window",
            "Plus de 60% des événements sans entrée : vérifiez la fenêtre de données "
            "et l'offset, le prix n'atteint pas vos ordres.",
        ),
    ),
    (
        lambda c: c.no_entry_rate < 10,
        Advice(
            "fires_systematically",
            "Les ordres se déclenchent presque systématiquement : l'offset est très court, "
            "attention au bruit.",
        ),
    ),
    (_always, Advice("stable", "Le taux de déclenchement est stable et équilibré.")),
)

RISK_RULES: tuple[Rule, ...] = (
    (
        lambda c: c.total_pips > 0 and abs(c.max_drawdown) > c.total_pips * 0.5,
        Advice(
            "weak_calmar",
            "Ratio Calmar faible : vous risquez beaucoup pour gagner peu.",
        ),
    ),
    (
        lambda c: c.consecutive_losses > 4,
        Advice(
            "long_losing_streak",
            "La série de pertes est longue. Vérifiez si ces pertes arrivent sur des "
            "types d'événements spécifiques.",
        ),
    ),
    (_always, Advice("acceptable", "Gestion du risque acceptable.")),
)

EXIT_RULES: tuple[Rule, ...] = (
    (
        lambda c: c.avg_mfe > c.avg_pips * 2,
        Advice(
            "extend_tp",
            "Vos trades vont souvent beaucoup plus loin que vos gains réels. "
            "Augmentez le Trailing Stop ou le TP.",
        ),
    ),
    (
        lambda c: c.avg_mae < c.stop_loss_pips * 0.5 and c.losing_trades > 0,
        Advice(
            "invalidated_early",
            "Vos pertes touchent le SL rapidement. Le sens du trade est souvent "
            "invalidé dès le départ.",
        ),
    ),
    (_always, Advice("consistent", "Les sorties semblent cohérentes avec la volatilité.")),
)

RECOMMENDATION_RULES: tuple[Rule, ...] = (
    (
        lambda c: c.profit_factor < 1.0,
        Advice(
            "tighten_sl",
            "Réduisez le Stop Loss ou filtrez mieux les événements "
            "(utilisez le Seuil de Surprise).",
        ),
    ),
    (
        lambda c: c.no_entry_rate > 50,
        Advice(
            "check_data_quality",
            "Plus de la moitié des événements sans entrée : vérifiez la qualité des "
            "données puis réduisez l'Offset.",
        ),
    ),
    (
        lambda c: c.avg_mfe > 50 and c.tp_rr < 5,
        Advice(
            "raise_tp",
            "Augmentez le ratio TP pour laisser courir les gains sur les gros mouvements.",
        ),
    ),
    (
        _always,
        Advice(
            "balanced",
            "La configuration actuelle est équilibrée. Vous pouvez affiner le Slippage "
            "pour plus de réalisme.",
        ),
    ),
)


def _first(rules: tuple[Rule, ...], ctx: _Context):
    for predicate, outcome in rules:
        if predicate(ctx):
            return outcome
    raise LookupError("rule table has no catch-all row")


def advise(analysis: BacktestAnalysis, config: BacktestConfig) -> AdvisoryReport:
    """Resolve all five advisory axes for *analysis*."""
    result = analysis.result
    ctx = _Context(
        profit_factor=result.profit_factor,
        no_entry_rate=round_half_up(analysis.no_entry_rate),
        max_drawdown=result.max_drawdown_pips,
        total_pips=result.total_pips,
        consecutive_losses=analysis.consecutive_losses,
        avg_mfe=round_half_up(analysis.avg_mfe, 1),
        avg_mae=round_half_up(analysis.avg_mae, 1),
        avg_pips=result.average_pips_per_trade,
        losing_trades=result.losing_trades,
        stop_loss_pips=config.stop_loss_pips,
        tp_rr=config.tp_rr,
    )
    return AdvisoryReport(
        verdict=_first(VERDICT_RULES, ctx),
        activity=_first(ACTIVITY_RULES, ctx),
        risk=_first(RISK_RULES, ctx),
        exit=_first(EXIT_RULES, ctx),
        recommendation=_first(RECOMMENDATION_RULES, ctx),
    )


def overall_verdict(profit_factor: float) -> Verdict:
    """Verdict for a bare profit factor."""
    return _first(VERDICT_RULES, _Context(profit_factor=profit_factor))
