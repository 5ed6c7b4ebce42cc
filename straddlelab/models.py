"""StraddleLab data models — typed representations of slice and backtest records."""

from dataclasses import dataclass, field
from typing import Optional, Union


# ── Tier vocabularies (ordered strongest → weakest) ──────────────────────

CONFIDENCE_TIERS: tuple[str, ...] = ("JACKPOT", "EXCELLENT", "BON", "MOYEN", "FAIBLE")
SEVERITY_TIERS: tuple[str, ...] = ("CRITIQUE", "HAUTE", "MOYENNE", "BASSE")

# Backtest outcome spellings shared with the simulation service.
OUTCOME_NO_ENTRY = "NoEntry"
OUTCOME_TAKE_PROFIT = "TakeProfit"
OUTCOME_STOP_LOSS = "StopLoss"
OUTCOME_TIMEOUT = "Timeout"
OUTCOME_WHIPSAW = "Whipsaw"


# ── Slice analysis ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class EventInSlice:
    """A calendar event that fell inside a slice."""

    event_name: str
    impact: str = ""
    datetime: str = ""
    volatility_increase: float = 0.0


@dataclass(frozen=True)
class SliceStatistics:
    """Aggregated candle statistics for one 15-minute (hour, quarter) window."""

    hour: int  # 0-23
    quarter: int  # 0-3
    candle_count: int
    atr_mean: float
    range_mean: float
    body_range_mean: float  # percent
    noise_ratio_mean: float
    volume_imbalance_mean: float
    breakout_percentage: float
    tick_quality_mean: float
    events: tuple[EventInSlice, ...] = ()
    recommended_trade_expiration_minutes: Optional[int] = None

    @property
    def time_label(self) -> str:
        """``"HH:MM-HH:MM"`` label of the window."""
        start_min = self.quarter * 15
        end_min = start_min + 15
        if end_min >= 60:
            end_hour = (self.hour + 1) % 24
            return f"{self.hour:02d}:{start_min:02d}-{end_hour:02d}:00"
        return f"{self.hour:02d}:{start_min:02d}-{self.hour:02d}:{end_min:02d}"

    @property
    def primary_event(self) -> str:
        """Name of the first event in the slice, or ``""``."""
        return self.events[0].event_name if self.events else ""


@dataclass(frozen=True)
class ScoredSlice:
    """A slice with its straddle score and 1-based rank."""

    stats: SliceStatistics
    straddle_score: float
    rank: int


@dataclass(frozen=True)
class GoldenCombo:
    """A favourable metric combination matched on a slice."""

    name: str
    description: str
    confidence: str  # one of CONFIDENCE_TIERS
    win_rate: float  # 0-1
    avg_gain_r: float


@dataclass(frozen=True)
class DetectedTrap:
    """A degenerate market regime flagged on a slice."""

    name: str
    description: str
    severity: str  # one of SEVERITY_TIERS
    metric: str
    value: float
    threshold: float
    recommendation: str


# ── Trade parameters ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class StraddleParameters:
    """Trade parameters computed by the slice-analysis backend."""

    offset_pips: float
    stop_loss_pips: float
    trailing_stop_pips: float
    timeout_minutes: int
    hard_tp_pips: float
    risk_reward_ratio: float
    confidence: float  # 0-100


@dataclass(frozen=True)
class Authoritative:
    """Backend-supplied parameters; canonical whenever present."""

    params: StraddleParameters


@dataclass(frozen=True)
class Estimated:
    """No backend parameters; the rule-based estimator builds the plan."""

    confidence: float = 0.0  # 0-100, usually the slice score


ParameterSource = Union[Authoritative, Estimated]


@dataclass(frozen=True)
class PlanDivergence:
    """A backend value that differs markedly from the local estimate."""

    field: str
    authoritative: float
    estimated: float
    difference_pct: float


@dataclass(frozen=True)
class TradingPlan:
    """Risk-managed trade parameters for one slice."""

    source: str  # "backend" or "estimated"
    sl_pips: float
    tp_pips: float
    sl_points: float
    tp_points: float
    offset_pips: float
    trailing_stop_pips: float
    trade_duration_minutes: int
    position_size_pct: float
    risk_reward: str  # "1:X.X"
    tp_ratio: float
    win_probability: float  # percent
    avg_gain_r: float
    avg_loss_r: float
    confidence: float
    risk_level: str  # "LOW", "MEDIUM" or "HIGH"
    recommendation: str  # "TRADE" or "CAUTION"
    divergences: tuple[PlanDivergence, ...] = ()


@dataclass(frozen=True)
class SliceAnalysis:
    """Full analysis of one top-ranked slice."""

    rank: int
    slice: ScoredSlice
    combos: tuple[GoldenCombo, ...]
    traps: tuple[DetectedTrap, ...]
    plan: TradingPlan


# ── Backtest ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TradeResult:
    """One simulated trade (or skipped event) from a backtest run."""

    event_date: str  # ISO 8601
    entry_time: str
    exit_time: str
    duration_minutes: int
    pips_net: float
    outcome: str
    max_favorable_excursion: float
    max_adverse_excursion: float
    logs: tuple[str, ...] = ()

    @property
    def executed(self) -> bool:
        return self.outcome != OUTCOME_NO_ENTRY


@dataclass(frozen=True)
class BacktestConfig:
    """Cost and exit configuration a backtest was run with."""

    spread_pips: float = 2.5
    slippage_pips: float = 1.0
    stop_loss_pips: float = 10.0
    tp_rr: float = 2.0
    offset_pips: float = 5.0


@dataclass(frozen=True)
class BacktestResult:
    """Aggregate performance, always derived from the trade list."""

    total_trades: int
    winning_trades: int
    losing_trades: int
    no_entries: int
    win_rate_percent: float
    total_pips: float
    average_pips_per_trade: float
    max_drawdown_pips: float
    profit_factor: float


@dataclass(frozen=True)
class CalendarBucket:
    """Net performance of the executed trades in one month or weekday."""

    key: str  # "YYYY-MM" or weekday label
    net_pips: float
    profit_pips: float
    loss_pips: float
    trades: int
    profit_factor: float

    @property
    def avg_pips(self) -> float:
        return self.net_pips / self.trades if self.trades > 0 else 0.0


@dataclass(frozen=True)
class BacktestAnalysis:
    """Diagnostics derived from a trade list and its cost configuration."""

    result: BacktestResult
    total_events: int
    no_entry_rate: float  # percent of all events
    no_entry_percent: str
    win_rate: str
    consecutive_losses: int
    avg_mfe: float
    avg_mae: float
    mfe_mae_ratio: float
    tp_potential_count: int
    tp_missed_count: int
    tp_missed_percent: str
    break_even_hits: int
    break_even_percent: str
    trailing_exits: int
    trailing_exit_percent: str
    monthly: tuple[CalendarBucket, ...]
    weekdays: tuple[CalendarBucket, ...]
    best_month: Optional[CalendarBucket]
    worst_month: Optional[CalendarBucket]
    best_weekday: Optional[CalendarBucket]
    worst_weekday: Optional[CalendarBucket]
    cost_per_trade: str
    cost_total: str
    cost_ratio: str


# ── Event archives ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class NormalizedArchive:
    """One archived analysis reduced to the fields event ranking needs."""

    archive_type: str  # "Volatilité", "Métriques Rétrospectives" or "Heatmap"
    pair: str
    event_type: str
    peak_atr: float
    peak_delay: float
    decay_timeout: float
    confidence: float  # 0-1
    impact_score: Optional[float] = None


@dataclass(frozen=True)
class EventStats:
    """Cross-archive aggregate for one economic-event type."""

    event_type: str
    avg_atr: float
    avg_peak_delay: float
    avg_decay_timeout: float
    avg_confidence: float
    count: int
    variance: Optional[float] = None
    heatmap_impact: Optional[float] = None
    tradability_score: float = 0.0


@dataclass(frozen=True)
class PairStats:
    """Cross-archive aggregate for one trading pair."""

    pair: str
    avg_confidence: float
    avg_atr: float
    count: int
    event_sensitivity: dict[str, float] = field(default_factory=dict)
    performance_rating: str = ""


@dataclass(frozen=True)
class EventPairStats:
    """Aggregate for one (event type, pair) combination."""

    event_type: str
    pair: str
    avg_atr: float
    avg_confidence: float
    count: int
    sl_adjusted: float
    trailing_stop: float
