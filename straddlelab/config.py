"""StraddleLab — application configuration.

Loads .env variables into a typed config object.
Every variable is optional; malformed values fail fast at startup.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from straddlelab.models import BacktestConfig


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    top_n: int
    spread_pips: float
    slippage_pips: float
    stop_loss_pips: float
    tp_rr: float
    offset_pips: float
    divergence_pct: float
    log_level: str
    api_port: int

    def backtest_config(self) -> BacktestConfig:
        """Return the cost / exit settings used by the backtest report."""
        return BacktestConfig(
            spread_pips=self.spread_pips,
            slippage_pips=self.slippage_pips,
            stop_loss_pips=self.stop_loss_pips,
            tp_rr=self.tp_rr,
            offset_pips=self.offset_pips,
        )


# (matched substrings, spread, slippage); first match wins.
_SYMBOL_COSTS = (
    (("GBPJPY", "EURJPY"), 6.0, 3.0),
    (("GBP",), 4.0, 2.0),
    (("XAU", "GOLD"), 5.0, 2.0),
    (("BTC",), 50.0, 20.0),
    (("DAX", "GER40"), 6.0, 3.0),
    (("US30", "DJI"), 8.0, 5.0),
)
_DEFAULT_COSTS = (2.5, 1.0)


def default_costs(symbol: str) -> tuple[float, float]:
    """Recommended ``(spread_pips, slippage_pips)`` for *symbol*.

    ``"GBP/JPY"``, ``"gbp_jpy"`` and ``"GBPJPY"`` are treated alike.
    """
    key = "".join(ch for ch in symbol.upper() if ch.isalnum())
    for needles, spread, slippage in _SYMBOL_COSTS:
        if any(n in key for n in needles):
            return spread, slippage
    return _DEFAULT_COSTS


def _env_float(name: str, default: str, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value != value or value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {raw!r}")
    return value


def _env_int(name: str, default: str, minimum: int = 0) -> int:
    raw = os.environ.get(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {raw!r}")
    return value


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the offending variable when
    a value is not a number, is out of range, or names no logging level.
    """
    load_dotenv(dotenv_path=env_path)

    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"LOG_LEVEL is not a logging level: {log_level!r}")

    return Config(
        top_n=_env_int("STRADDLE_TOP_N", "3", minimum=1),
        spread_pips=_env_float("STRADDLE_SPREAD_PIPS", "2.5"),
        slippage_pips=_env_float("STRADDLE_SLIPPAGE_PIPS", "1.0"),
        stop_loss_pips=_env_float("STRADDLE_STOP_LOSS_PIPS", "10.0"),
        tp_rr=_env_float("STRADDLE_TP_RR", "2.0"),
        offset_pips=_env_float("STRADDLE_OFFSET_PIPS", "5.0"),
        divergence_pct=_env_float("STRADDLE_DIVERGENCE_PCT", "25.0"),
        log_level=log_level,
        api_port=_env_int("API_PORT", "8080", minimum=1),
    )
