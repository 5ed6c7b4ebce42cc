"""CLI report — formats analysis results for the console."""

from straddlelab.backtest.advisory import AdvisoryReport
from straddlelab.models import BacktestAnalysis, SliceAnalysis

_RULE = "─" * 52


def format_slice_analyses(analyses: list[SliceAnalysis]) -> str:
    """Format and print the ranked slice analyses.

    Returns:
        The formatted string (also printed to stdout).
    """
    lines = [f"{' StraddleLab Top Slices ':─^52}"]
    if not analyses:
        lines.append("  No slice could be ranked.")
    for a in analyses:
        plan = a.plan
        stats = a.slice.stats
        combo = a.combos[0].name if a.combos else "none"
        traps = ", ".join(t.name for t in a.traps) or "none"
        lines += [
            f"  #{a.rank} {stats.time_label}  score {a.slice.straddle_score:.1f}",
            f"     Combo:          {combo}",
            f"     Traps:          {traps}",
            f"     SL / TP:        {plan.sl_pips:.1f} / {plan.tp_pips:.1f} pips ({plan.risk_reward})",
            f"     Trailing stop:  {plan.trailing_stop_pips:.1f} pips",
            f"     Duration:       {plan.trade_duration_minutes} min",
            f"     Position size:  {plan.position_size_pct:.0f}%",
            f"     Confidence:     {plan.confidence:.0f} ({plan.risk_level}, {plan.recommendation})",
        ]
        for d in plan.divergences:
            lines.append(
                f"     ! {d.field}: backend {d.authoritative:.1f} vs estimate "
                f"{d.estimated:.1f} ({d.difference_pct:.0f}%)"
            )
    lines.append(_RULE)
    output = "\n".join(lines)
    print(output)
    return output


def format_backtest_report(analysis: BacktestAnalysis, advisory: AdvisoryReport) -> str:
    """Format and print a backtest report with its advisory.

    Returns:
        The formatted string (also printed to stdout).
    """
    result = analysis.result
    verdict = advisory.verdict
    best_month = analysis.best_month.key if analysis.best_month else "N/A"
    worst_month = analysis.worst_month.key if analysis.worst_month else "N/A"

    lines = [
        f"{' StraddleLab Backtest ':─^52}",
        f"  Events:          {analysis.total_events}",
        f"  Trades:          {result.total_trades} (no entry {analysis.no_entry_percent}%)",
        f"  Win rate:        {analysis.win_rate}%",
        f"  Total pips:      {result.total_pips:.1f}",
        f"  Profit factor:   {result.profit_factor:.2f}",
        f"  Max drawdown:    {result.max_drawdown_pips:.1f} pips",
        f"  Losing streak:   {analysis.consecutive_losses}",
        f"  MFE / MAE:       {analysis.avg_mfe:.1f} / {analysis.avg_mae:.1f}",
        f"  Costs:           {analysis.cost_total} pips ({analysis.cost_ratio}% of result)",
        f"  Best month:      {best_month}",
        f"  Worst month:     {worst_month}",
        _RULE,
        f"  {verdict.icon} {verdict.title}",
        f"  {verdict.text}",
        f"  - {advisory.activity.text}",
        f"  - {advisory.risk.text}",
        f"  - {advisory.exit.text}",
        f"  > {advisory.recommendation.text}",
        _RULE,
    ]
    output = "\n".join(lines)
    print(output)
    return output
