"""Upstream record parsing — plain dicts from the backend into typed models.

A malformed record (missing required key, non-numeric value) is logged
and skipped; the rest of the batch is still returned.  Optional fields
fall back to neutral defaults.
"""

import logging
import math
from typing import Any, Iterable, Optional

from straddlelab.models import (
    Authoritative,
    Estimated,
    EventInSlice,
    NormalizedArchive,
    ParameterSource,
    SliceStatistics,
    StraddleParameters,
    TradeResult,
)

logger = logging.getLogger("straddlelab.ingest")

DEFAULT_TIMEOUT_MINUTES = 15


class RecordError(ValueError):
    """A single upstream record could not be parsed."""


def _number(record: dict, key: str, default: Optional[float] = None) -> float:
    value = record.get(key)
    if value is None:
        if default is None:
            raise RecordError(f"missing '{key}'")
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise RecordError(f"'{key}' is not numeric: {value!r}") from None
    if not math.isfinite(number):
        raise RecordError(f"'{key}' is not finite: {value!r}")
    return number


def _events(raw: Any) -> tuple[EventInSlice, ...]:
    if not isinstance(raw, list):
        return ()
    events = []
    for e in raw:
        if not isinstance(e, dict) or not e.get("event_name"):
            continue
        try:
            increase = _number(e, "volatility_increase", 0.0)
        except RecordError:
            increase = 0.0
        events.append(
            EventInSlice(
                event_name=str(e["event_name"]),
                impact=str(e.get("impact", "")),
                datetime=str(e.get("datetime", "")),
                volatility_increase=increase,
            )
        )
    return tuple(events)


# ── Slices ───────────────────────────────────────────────────────────────


def parse_slice(record: dict) -> tuple[SliceStatistics, ParameterSource]:
    """Parse one slice record and its parameter source.

    Raises:
        RecordError: If a required field is missing or invalid.
    """
    if not isinstance(record, dict):
        raise RecordError(f"slice record must be an object, got {type(record).__name__}")

    hour = int(_number(record, "hour"))
    quarter = int(_number(record, "quarter"))
    if not 0 <= hour <= 23 or not 0 <= quarter <= 3:
        raise RecordError(f"invalid window hour={hour} quarter={quarter}")

    expiration = int(_number(record, "recommended_trade_expiration_minutes", 0.0))
    stats = SliceStatistics(
        hour=hour,
        quarter=quarter,
        candle_count=int(_number(record, "candle_count", 0.0)),
        atr_mean=_number(record, "atr_mean"),
        range_mean=_number(record, "range_mean"),
        body_range_mean=_number(record, "body_range_mean", 0.0),
        noise_ratio_mean=_number(record, "noise_ratio_mean", 0.0),
        volume_imbalance_mean=_number(record, "volume_imbalance_mean", 0.0),
        breakout_percentage=_number(record, "breakout_percentage", 0.0),
        tick_quality_mean=_number(record, "tick_quality_mean", 0.0),
        events=_events(record.get("events")),
        recommended_trade_expiration_minutes=expiration or None,
    )
    return stats, _parameter_source(record, stats)


def _parameter_source(record: dict, stats: SliceStatistics) -> ParameterSource:
    confidence = _number(record, "confidence", 0.0)
    params = record.get("straddle_parameters")
    if not isinstance(params, dict):
        return Estimated(confidence=confidence)

    timeout = _number(
        params,
        "timeout_minutes",
        float(stats.recommended_trade_expiration_minutes or DEFAULT_TIMEOUT_MINUTES),
    )
    return Authoritative(
        StraddleParameters(
            offset_pips=_number(params, "offset_pips", 0.0),
            stop_loss_pips=_number(params, "stop_loss_pips"),
            trailing_stop_pips=_number(params, "trailing_stop_pips", 0.0),
            timeout_minutes=int(timeout),
            hard_tp_pips=_number(params, "hard_tp_pips", 0.0),
            risk_reward_ratio=_number(params, "risk_reward_ratio", 0.0),
            confidence=confidence,
        )
    )


def parse_slices(records: Iterable[dict]) -> list[tuple[SliceStatistics, ParameterSource]]:
    """Parse a slice batch, skipping malformed records."""
    parsed = []
    for idx, record in enumerate(records):
        try:
            parsed.append(parse_slice(record))
        except RecordError as exc:
            logger.warning("Skipping slice record #%d: %s", idx, exc)
    return parsed


# ── Trades ───────────────────────────────────────────────────────────────


def parse_trade(record: dict) -> TradeResult:
    """Parse one backtest trade record.

    Raises:
        RecordError: If a required field is missing or invalid.
    """
    if not isinstance(record, dict):
        raise RecordError(f"trade record must be an object, got {type(record).__name__}")
    outcome = record.get("outcome")
    if not isinstance(outcome, str) or not outcome:
        raise RecordError("missing 'outcome'")

    logs = record.get("logs") or []
    return TradeResult(
        event_date=str(record.get("event_date", "")),
        entry_time=str(record.get("entry_time", "")),
        exit_time=str(record.get("exit_time", "")),
        duration_minutes=int(_number(record, "duration_minutes", 0.0)),
        pips_net=_number(record, "pips_net"),
        outcome=outcome,
        max_favorable_excursion=_number(record, "max_favorable_excursion", 0.0),
        max_adverse_excursion=_number(record, "max_adverse_excursion", 0.0),
        logs=tuple(str(line) for line in logs) if isinstance(logs, list) else (),
    )


def parse_trades(records: Iterable[dict]) -> list[TradeResult]:
    """Parse a trade list, skipping malformed records."""
    trades = []
    for idx, record in enumerate(records):
        try:
            trades.append(parse_trade(record))
        except RecordError as exc:
            logger.warning("Skipping trade record #%d: %s", idx, exc)
    return trades


# ── Archives ─────────────────────────────────────────────────────────────


def parse_archive(record: dict) -> NormalizedArchive:
    """Parse one normalized archive record.

    Raises:
        RecordError: If a required field is missing or invalid.
    """
    if not isinstance(record, dict):
        raise RecordError(f"archive record must be an object, got {type(record).__name__}")
    for key in ("pair", "event_type"):
        if not record.get(key):
            raise RecordError(f"missing '{key}'")

    impact = record.get("impact_score")
    return NormalizedArchive(
        archive_type=str(record.get("type", "Volatilité")),
        pair=str(record["pair"]),
        event_type=str(record["event_type"]),
        peak_atr=_number(record, "peak_atr", 0.0),
        peak_delay=_number(record, "peak_delay", 0.0),
        decay_timeout=_number(record, "decay_timeout", 0.0),
        confidence=_number(record, "confidence", 0.0),
        impact_score=_number(record, "impact_score") if impact is not None else None,
    )


def parse_archives(records: Iterable[dict]) -> list[NormalizedArchive]:
    """Parse an archive list, skipping malformed records."""
    archives = []
    for idx, record in enumerate(records):
        try:
            archives.append(parse_archive(record))
        except RecordError as exc:
            logger.warning("Skipping archive record #%d: %s", idx, exc)
    return archives
