"""Internal API routers — /slices, /backtest, /events endpoints.

No business logic. Parses the request body, delegates to the core, and
serializes the resulting dataclasses.
"""

import logging
from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Body, HTTPException, Query

from straddlelab.backtest.advisory import advise
from straddlelab.backtest.stats import analyze_backtest
from straddlelab.config import default_costs
from straddlelab.events.aggregator import (
    calculate_event_pair_statistics,
    calculate_event_statistics,
    calculate_pair_statistics,
    extract_heatmap_data,
    generate_advice,
    optimal_straddle_params,
    rank_events,
)
from straddlelab.ingest import parse_archives, parse_slices, parse_trades
from straddlelab.models import BacktestConfig, SliceAnalysis
from straddlelab.planning.pipeline import DEFAULT_TOP_N, analyze_slices
from straddlelab.planning.synthesizer import DEFAULT_DIVERGENCE_PCT
from straddlelab.refresh import RefreshCoordinator

logger = logging.getLogger("straddlelab.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_coordinator: Optional[RefreshCoordinator] = None
_subscription: Optional[int] = None
_top_n: int = DEFAULT_TOP_N
_divergence_pct: float = DEFAULT_DIVERGENCE_PCT
_backtest_config: BacktestConfig = BacktestConfig()

_slice_records: list = []  # Last batch posted to /slices
_top_analyses: list[SliceAnalysis] = []  # Recomputed on every refresh


def configure_routers(
    coordinator: Optional[RefreshCoordinator] = None,
    top_n: int = DEFAULT_TOP_N,
    divergence_pct: float = DEFAULT_DIVERGENCE_PCT,
    backtest_config: Optional[BacktestConfig] = None,
) -> RefreshCoordinator:
    """Inject dependencies from the application startup.

    Args:
        coordinator: Refresh coordinator shared with the rest of the
            process; a fresh one is created when omitted.
        top_n: Slices kept by the analysis endpoints.
        divergence_pct: Backend/estimate divergence threshold.
        backtest_config: Defaults for ``/backtest/report``.

    Returns:
        The coordinator the router is subscribed to.
    """
    global _coordinator, _subscription, _top_n, _divergence_pct, _backtest_config  # noqa: PLW0603
    if _coordinator is not None and _subscription is not None:
        _coordinator.unsubscribe(_subscription)

    _coordinator = coordinator or RefreshCoordinator()
    _subscription = _coordinator.subscribe(_recompute_top)
    _top_n = top_n
    _divergence_pct = divergence_pct
    _backtest_config = backtest_config or BacktestConfig()
    _slice_records.clear()
    _top_analyses.clear()
    return _coordinator


def is_configured() -> bool:
    """Whether :func:`configure_routers` has run in this process."""
    return _coordinator is not None


def _recompute_top() -> None:
    """Refresh subscriber: rebuild the cached top slices."""
    analyses = analyze_slices(
        parse_slices(_slice_records), top_n=_top_n, divergence_pct=_divergence_pct
    )
    _top_analyses[:] = analyses


def _records(body, key: str) -> list:
    """Accept either a bare list or ``{key: [...]}``."""
    if isinstance(body, dict):
        body = body.get(key)
    if not isinstance(body, list):
        raise HTTPException(status_code=422, detail=f"expected a list of {key}")
    return body


# ── Slices ───────────────────────────────────────────────────────────────


@router.post("/slices/analyze")
async def post_analyze(body: Any = Body(...), top_n: Optional[int] = Query(default=None, ge=1)):
    """Rank a slice batch and return full analyses for the best slices."""
    records = _records(body, "slices")
    analyses = analyze_slices(
        parse_slices(records),
        top_n=top_n or _top_n,
        divergence_pct=_divergence_pct,
    )
    return {
        "received": len(records),
        "analyses": [asdict(a) for a in analyses],
    }


@router.post("/slices")
async def post_slices(body: Any = Body(...)):
    """Replace the stored slice batch and trigger a refresh."""
    records = _records(body, "slices")
    _slice_records[:] = records
    refreshed = False
    if _coordinator is not None:
        refreshed = await _coordinator.trigger()
    logger.info("Stored %d slice record(s), refreshed=%s", len(records), refreshed)
    return {"stored": len(records), "refreshed": refreshed}


@router.get("/slices/top")
async def get_top_slices():
    """Cached analyses from the last refresh."""
    return {
        "refreshing": _coordinator.is_refreshing if _coordinator else False,
        "analyses": [asdict(a) for a in _top_analyses],
    }


# ── Backtest ─────────────────────────────────────────────────────────────


@router.post("/backtest/report")
async def post_backtest_report(body: Any = Body(...)):
    """Statistics and advisory for a list of trade results.

    The body may carry ``config`` overrides and a ``symbol``; a symbol
    with no explicit spread/slippage uses that symbol's default costs.
    """
    records = _records(body, "trades")
    overrides = body.get("config", {}) if isinstance(body, dict) else {}
    if not isinstance(overrides, dict):
        raise HTTPException(status_code=422, detail="config must be an object")

    settings = asdict(_backtest_config)
    symbol = body.get("symbol") if isinstance(body, dict) else None
    if symbol:
        settings["spread_pips"], settings["slippage_pips"] = default_costs(str(symbol))
    try:
        settings.update(
            {k: float(v) for k, v in overrides.items() if k in settings}
        )
    except (TypeError, ValueError):
        raise HTTPException(status_code=422, detail="config values must be numeric") from None
    config = BacktestConfig(**settings)

    analysis = analyze_backtest(parse_trades(records), config)
    return {
        "config": asdict(config),
        "analysis": asdict(analysis),
        "advisory": asdict(advise(analysis, config)),
    }


# ── Events ───────────────────────────────────────────────────────────────


@router.post("/events/ranking")
async def post_event_ranking(body: Any = Body(...)):
    """Rank event types across normalized archives."""
    archives = parse_archives(_records(body, "archives"))
    event_stats = calculate_event_statistics(archives)
    pair_stats = calculate_pair_statistics(archives)
    return {
        "events": [
            {**asdict(e), "optimal_params": optimal_straddle_params(e)}
            for e in rank_events(event_stats)
        ],
        "pairs": [asdict(p) for p in pair_stats.values()],
        "event_pairs": {
            k: asdict(v) for k, v in calculate_event_pair_statistics(archives).items()
        },
        "heatmap": extract_heatmap_data(archives),
        "advice": generate_advice(event_stats, pair_stats),
    }
