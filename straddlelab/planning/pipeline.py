"""Slice analysis pipeline — rank a batch, then plan the top slices."""

import logging
from collections import defaultdict, deque
from typing import Iterable

from straddlelab.models import (
    Estimated,
    ParameterSource,
    SliceAnalysis,
    SliceStatistics,
)
from straddlelab.planning.synthesizer import DEFAULT_DIVERGENCE_PCT, synthesize
from straddlelab.scoring.patterns import detect_golden_combos, detect_traps
from straddlelab.scoring.volatility import rank_slices

logger = logging.getLogger("straddlelab.planning")

DEFAULT_TOP_N = 3


def analyze_slices(
    batch: Iterable[tuple[SliceStatistics, ParameterSource]],
    top_n: int = DEFAULT_TOP_N,
    divergence_pct: float = DEFAULT_DIVERGENCE_PCT,
) -> list[SliceAnalysis]:
    """Rank *batch* and build a full analysis for the best *top_n* slices.

    Args:
        batch: ``(stats, source)`` pairs as returned by
            :func:`straddlelab.ingest.parse_slices`.
        top_n: Number of slices to keep.
        divergence_pct: Backend/estimate divergence threshold.

    Returns:
        One :class:`SliceAnalysis` per kept slice, best first.  Slices
        without backend parameters are estimated with their score as
        confidence.
    """
    pairs = list(batch)
    # The ranking is stable, so repeats of one stats object come back in
    # batch order and each takes the next source queued for it.
    pending: dict[int, deque[ParameterSource]] = defaultdict(deque)
    for s, src in pairs:
        pending[id(s)].append(src)
    ranked = rank_slices((s for s, _ in pairs), top_n=top_n)

    analyses = []
    for entry in ranked:
        stats = entry.stats
        source = pending[id(stats)].popleft()
        if isinstance(source, Estimated):
            source = Estimated(confidence=entry.straddle_score)

        combos = detect_golden_combos(stats)
        traps = detect_traps(stats)
        plan = synthesize(stats, combos, traps, source, divergence_pct=divergence_pct)
        analyses.append(
            SliceAnalysis(
                rank=entry.rank,
                slice=entry,
                combos=tuple(combos),
                traps=tuple(traps),
                plan=plan,
            )
        )

    logger.info("Analysed %d of %d slice(s)", len(analyses), len(pairs))
    return analyses
