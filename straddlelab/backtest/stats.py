"""Backtest statistics — pure functions over a list of trade results.

Nothing here is cached: every metric is recomputed from the trade list it
is given.  "Executed" trades are those whose outcome is not ``NoEntry``;
every rate and average works on that subset unless stated otherwise.
"""

import logging
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from straddlelab.models import (
    OUTCOME_TAKE_PROFIT,
    BacktestAnalysis,
    BacktestConfig,
    BacktestResult,
    CalendarBucket,
    TradeResult,
)
from straddlelab.risk.rounding import round_half_up

logger = logging.getLogger("straddlelab.backtest")

PROFIT_FACTOR_SENTINEL = 999.0

# Markers written by the simulator into TradeResult.logs.
BREAK_EVEN_MARKERS = ("BE Long", "BE Short")
TRAILING_STOP_MARKERS = ("TS Long", "TS Short")

WEEKDAY_LABELS = ("Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi", "Samedi", "Dimanche")


def summarize_trades(trades: list[TradeResult]) -> BacktestResult:
    """Aggregate performance of *trades*.

    Returns:
        ``BacktestResult`` whose counts, rates and drawdown cover executed
        trades only; ``no_entries`` counts the skipped events.
    """
    executed = [t for t in trades if t.executed]
    pips = [t.pips_net for t in executed]
    total = len(executed)

    winners = [p for p in pips if p > 0]
    losers = [p for p in pips if p < 0]
    total_pips = float(sum(pips))

    return BacktestResult(
        total_trades=total,
        winning_trades=len(winners),
        losing_trades=len(losers),
        no_entries=len(trades) - total,
        win_rate_percent=len(winners) / total * 100 if total > 0 else 0.0,
        total_pips=total_pips,
        average_pips_per_trade=total_pips / total if total > 0 else 0.0,
        max_drawdown_pips=max_drawdown(pips),
        profit_factor=profit_factor(sum(winners), abs(sum(losers))),
    )


def analyze_backtest(trades: list[TradeResult], config: BacktestConfig) -> BacktestAnalysis:
    """Derive the full diagnostic set for *trades* under *config*."""
    result = summarize_trades(trades)
    executed = [t for t in trades if t.executed]
    n = len(executed)
    total_events = len(trades)

    avg_mfe = _mean([t.max_favorable_excursion for t in executed])
    avg_mae = _mean([t.max_adverse_excursion for t in executed])

    tp_distance = config.stop_loss_pips * config.tp_rr
    tp_potential = [t for t in executed if t.max_favorable_excursion >= tp_distance]
    tp_missed = [t for t in tp_potential if t.outcome != OUTCOME_TAKE_PROFIT]

    be_hits = count_log_markers(executed, BREAK_EVEN_MARKERS)
    ts_exits = count_log_markers(executed, TRAILING_STOP_MARKERS)

    monthly = monthly_breakdown(executed)
    weekdays = weekday_breakdown(executed)

    cost_per_trade = 2 * config.spread_pips + 2 * config.slippage_pips
    cost_total = cost_per_trade * n

    return BacktestAnalysis(
        result=result,
        total_events=total_events,
        no_entry_rate=result.no_entries / total_events * 100 if total_events > 0 else 0.0,
        no_entry_percent=percentage(result.no_entries, total_events),
        win_rate=percentage(result.winning_trades, n),
        consecutive_losses=consecutive_losses(t.pips_net for t in executed),
        avg_mfe=avg_mfe,
        avg_mae=avg_mae,
        mfe_mae_ratio=avg_mfe / avg_mae if avg_mae > 0 else 0.0,
        tp_potential_count=len(tp_potential),
        tp_missed_count=len(tp_missed),
        tp_missed_percent=percentage(len(tp_missed), len(tp_potential)),
        break_even_hits=be_hits,
        break_even_percent=percentage(be_hits, n),
        trailing_exits=ts_exits,
        trailing_exit_percent=percentage(ts_exits, n),
        monthly=tuple(monthly),
        weekdays=tuple(weekdays),
        best_month=max(monthly, key=lambda b: b.net_pips, default=None),
        worst_month=min(monthly, key=lambda b: b.net_pips, default=None),
        best_weekday=max(weekdays, key=lambda b: b.avg_pips, default=None),
        worst_weekday=min(weekdays, key=lambda b: b.avg_pips, default=None),
        cost_per_trade=f"{round_half_up(cost_per_trade, 1):.1f}",
        cost_total=f"{round_half_up(cost_total, 1):.1f}",
        cost_ratio=percentage(cost_total, abs(result.total_pips)),
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def percentage(numerator: float, denominator: float) -> str:
    """``numerator / denominator`` as a one-decimal percentage string, ties rounded up.

    Returns ``"0.0"`` when the denominator is zero or negative.
    """
    if denominator <= 0:
        return "0.0"
    return f"{round_half_up(numerator / denominator * 100, 1):.1f}"


def profit_factor(gross_profit: float, gross_loss: float) -> float:
    """Gross profit over gross loss.

    999 when there is profit but no loss; 0 when there is neither.
    """
    if gross_loss > 0:
        return gross_profit / gross_loss
    if gross_profit > 0:
        return PROFIT_FACTOR_SENTINEL
    return 0.0


def max_drawdown(pips: list[float]) -> float:
    """Largest peak-to-trough decline of the cumulative pips curve.

    The curve starts at 0, so an opening loss counts as drawdown.
    """
    if not pips:
        return 0.0
    curve = np.cumsum(np.asarray(pips, dtype=float))
    peaks = np.maximum.accumulate(np.concatenate(([0.0], curve)))[1:]
    return float(np.max(peaks - curve))


def consecutive_losses(pips: Iterable[float]) -> int:
    """Longest run of losing trades, including an unfinished final run."""
    longest = 0
    current = 0
    for p in pips:
        if p < 0:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


def count_log_markers(trades: list[TradeResult], markers: tuple[str, ...]) -> int:
    """Number of trades with at least one log line containing a marker."""
    return sum(
        1
        for t in trades
        if any(marker in line for line in t.logs for marker in markers)
    )


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return float(np.mean(values))


# ── Calendar breakdowns ──────────────────────────────────────────────────


def _dated_frame(trades: list[TradeResult]) -> Optional[pd.DataFrame]:
    """Executed trades with a parseable ``event_date``; ``None`` if none are."""
    if not trades:
        return None
    frame = pd.DataFrame(
        {
            "event_date": [t.event_date for t in trades],
            "pips": [t.pips_net for t in trades],
        }
    )
    frame["date"] = pd.to_datetime(
        frame["event_date"], errors="coerce", utc=True, format="ISO8601"
    )
    dropped = int(frame["date"].isna().sum())
    if dropped:
        logger.debug("Excluded %d trade(s) with unparsable event_date", dropped)
    frame = frame.dropna(subset=["date"])
    return frame if not frame.empty else None


def _bucket(key: str, pips: pd.Series) -> CalendarBucket:
    profit = float(pips[pips > 0].sum())
    loss = float(-pips[pips < 0].sum())
    return CalendarBucket(
        key=key,
        net_pips=float(pips.sum()),
        profit_pips=profit,
        loss_pips=loss,
        trades=int(pips.size),
        profit_factor=profit_factor(profit, loss),
    )


def monthly_breakdown(trades: list[TradeResult]) -> list[CalendarBucket]:
    """Executed trades grouped by UTC ``YYYY-MM`` of their event date, oldest first.

    Offset timestamps are converted to UTC before bucketing, so
    ``2024-02-01T00:30:00+02:00`` falls in ``2024-01``.
    """
    frame = _dated_frame(trades)
    if frame is None:
        return []
    months = frame["date"].dt.strftime("%Y-%m")
    return [_bucket(str(key), group) for key, group in frame.groupby(months, sort=True)["pips"]]


def weekday_breakdown(trades: list[TradeResult]) -> list[CalendarBucket]:
    """Executed trades grouped by UTC weekday of their event date, Monday first."""
    frame = _dated_frame(trades)
    if frame is None:
        return []
    days = frame["date"].dt.weekday
    return [
        _bucket(WEEKDAY_LABELS[int(day)], group)
        for day, group in frame.groupby(days, sort=True)["pips"]
    ]
