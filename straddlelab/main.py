"""StraddleLab — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
slice analysis, backtest reports, and serving the API.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from straddlelab.api.routers import configure_routers, is_configured, router

logger = logging.getLogger("straddlelab")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the routers from the environment when no caller did it first."""
    if not is_configured():
        from straddlelab.config import load_config

        config = load_config()
        configure_routers(
            top_n=config.top_n,
            divergence_pct=config.divergence_pct,
            backtest_config=config.backtest_config(),
        )
        logger.info("Routers configured from environment")
    yield


app = FastAPI(title="StraddleLab Internal API", version="0.1.0", lifespan=lifespan)
app.include_router(router)


@app.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _load_json(path: str):
    import json
    import pathlib

    return json.loads(pathlib.Path(path).read_text(encoding="utf-8"))


def _records(data, key: str) -> list:
    if isinstance(data, dict):
        data = data.get(key, [])
    if not isinstance(data, list):
        raise SystemExit(f"expected a list of {key}")
    return data


def _run_cli(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and dispatch to the chosen command."""
    import argparse

    from straddlelab.config import load_config

    parser = argparse.ArgumentParser(description="StraddleLab straddle analytics")
    parser.add_argument("--env", help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Rank slices and print trading plans")
    analyze.add_argument("path", help="JSON file with slice records")
    analyze.add_argument("--top", type=int, help="Slices to keep (default: STRADDLE_TOP_N)")

    report = sub.add_parser("report", help="Backtest statistics and advisory")
    report.add_argument("path", help="JSON file with trade results")
    report.add_argument("--symbol", help="Use the default spread/slippage of this symbol")

    sub.add_parser("serve", help="Run the internal API server")

    args = parser.parse_args(argv)

    config = load_config(args.env)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "analyze":
        _analyze(config, args.path, args.top)
    elif args.command == "report":
        _report(config, args.path, args.symbol)
    else:
        _serve(config)
    return 0


def _analyze(config, path: str, top: int | None) -> None:
    from straddlelab.cli.report import format_slice_analyses
    from straddlelab.ingest import parse_slices
    from straddlelab.planning.pipeline import analyze_slices

    batch = parse_slices(_records(_load_json(path), "slices"))
    analyses = analyze_slices(
        batch, top_n=top or config.top_n, divergence_pct=config.divergence_pct
    )
    format_slice_analyses(analyses)


def _report(config, path: str, symbol: str | None) -> None:
    from dataclasses import replace

    from straddlelab.backtest.advisory import advise
    from straddlelab.backtest.stats import analyze_backtest
    from straddlelab.cli.report import format_backtest_report
    from straddlelab.config import default_costs
    from straddlelab.ingest import parse_trades

    bt_config = config.backtest_config()
    if symbol:
        spread, slippage = default_costs(symbol)
        bt_config = replace(bt_config, spread_pips=spread, slippage_pips=slippage)

    trades = parse_trades(_records(_load_json(path), "trades"))
    analysis = analyze_backtest(trades, bt_config)
    format_backtest_report(analysis, advise(analysis, bt_config))


def _serve(config) -> None:
    """Start the API server with routers wired to the loaded config."""
    import uvicorn

    configure_routers(
        top_n=config.top_n,
        divergence_pct=config.divergence_pct,
        backtest_config=config.backtest_config(),
    )
    logger.info("Starting StraddleLab API on port %d", config.api_port)
    uvicorn.run(app, host="0.0.0.0", port=config.api_port, log_level=config.log_level.lower())


if __name__ == "__main__":
    raise SystemExit(_run_cli())
