"""Tests for trading-plan synthesis: backend copy, estimator, divergence."""

import logging

import pytest

from straddlelab.models import (
    Authoritative,
    DetectedTrap,
    Estimated,
    EventInSlice,
    SliceStatistics,
    StraddleParameters,
)
from straddlelab.planning.synthesizer import (
    calculate_trade_duration,
    compare_plans,
    format_risk_reward,
    position_size,
    recommendation_for,
    risk_level_for,
    synthesize,
)
from straddlelab.scoring.patterns import detect_golden_combos, detect_traps


# ── Helpers ──────────────────────────────────────────────────────────────


def _slice(**overrides) -> SliceStatistics:
    fields = dict(
        hour=11,
        quarter=0,
        candle_count=40,
        atr_mean=0.0025,
        range_mean=0.003,
        body_range_mean=50.0,
        noise_ratio_mean=1.0,
        volume_imbalance_mean=0.3,
        breakout_percentage=25.0,
        tick_quality_mean=0.0015,
    )
    fields.update(overrides)
    return SliceStatistics(**fields)


def _params(**overrides) -> StraddleParameters:
    fields = dict(
        offset_pips=5.0,
        stop_loss_pips=20.0,
        trailing_stop_pips=15.0,
        timeout_minutes=30,
        hard_tp_pips=40.0,
        risk_reward_ratio=2.0,
        confidence=82.4,
    )
    fields.update(overrides)
    return StraddleParameters(**fields)


def _trap(severity: str) -> DetectedTrap:
    return DetectedTrap(
        name="t", description="", severity=severity, metric="m",
        value=0.0, threshold=0.0, recommendation="",
    )


def _plan(stats, source):
    return synthesize(stats, detect_golden_combos(stats), detect_traps(stats), source)


# ── Labels ───────────────────────────────────────────────────────────────


class TestLabels:
    @pytest.mark.parametrize(
        "confidence, risk, recommendation",
        [(80, "LOW", "TRADE"), (75, "LOW", "TRADE"), (60, "MEDIUM", "CAUTION"),
         (50, "MEDIUM", "CAUTION"), (40, "HIGH", "CAUTION")],
    )
    def test_bands(self, confidence, risk, recommendation):
        assert risk_level_for(confidence) == risk
        assert recommendation_for(confidence) == recommendation

    def test_format_risk_reward(self):
        assert format_risk_reward(10, 25) == "1:2.5"
        assert format_risk_reward(0, 25) == "1:0.0"
        assert format_risk_reward(4, 1) == "1:0.3"


# ── Backend path ─────────────────────────────────────────────────────────


class TestAuthoritative:
    def test_backend_values_copied(self):
        plan = _plan(_slice(), Authoritative(_params()))
        assert plan.source == "backend"
        assert plan.sl_pips == 20.0
        assert plan.tp_pips == 40.0
        assert plan.sl_points == 200.0
        assert plan.tp_points == 400.0
        assert plan.offset_pips == 5.0
        assert plan.trailing_stop_pips == 15.0
        assert plan.trade_duration_minutes == 30
        assert plan.position_size_pct == 100.0
        assert plan.risk_reward == "1:2.0"
        assert plan.win_probability == 82
        assert plan.risk_level == "LOW"
        assert plan.recommendation == "TRADE"

    def test_divergence_attached_and_logged(self, caplog):
        """Estimate for ATR 0.0025 is SL 37.5 / TP 87.5, far from 20 / 40."""
        with caplog.at_level(logging.WARNING, logger="straddlelab.planning"):
            plan = _plan(_slice(), Authoritative(_params()))
        assert [d.field for d in plan.divergences] == ["sl_pips", "tp_pips"]
        assert plan.divergences[0].estimated == pytest.approx(37.5)
        assert plan.sl_pips == 20.0
        assert "differs from estimate" in caplog.text

    def test_close_values_do_not_diverge(self):
        params = _params(stop_loss_pips=36.0, hard_tp_pips=90.0)
        plan = _plan(_slice(), Authoritative(params))
        assert plan.divergences == ()

    def test_threshold_is_configurable(self):
        stats = _slice()
        params = _params(stop_loss_pips=36.0, hard_tp_pips=90.0)
        plan = synthesize(stats, [], [], Authoritative(params), divergence_pct=1.0)
        assert plan.divergences != ()

    def test_unknown_source_rejected(self):
        with pytest.raises(TypeError, match="Unknown parameter source"):
            synthesize(_slice(), [], [], object())


# ── Estimator path ───────────────────────────────────────────────────────


class TestEstimated:
    def test_jackpot_plan(self):
        plan = _plan(_slice(), Estimated(confidence=80.0))
        assert plan.source == "estimated"
        assert plan.sl_pips == pytest.approx(37.5)
        assert plan.tp_pips == pytest.approx(87.5)
        assert plan.risk_reward == "1:2.3"
        assert plan.trailing_stop_pips == 18.8
        # 100 % base + 20 for excellent liquidity
        assert plan.position_size_pct == 120.0
        assert plan.win_probability == pytest.approx(72.0)
        assert plan.avg_gain_r == 0.60
        assert plan.trade_duration_minutes == 240
        assert plan.confidence == 80.0

    def test_no_combo_uses_defaults(self):
        stats = _slice(
            atr_mean=0.0004, range_mean=0.0003, body_range_mean=10.0,
            noise_ratio_mean=4.0, breakout_percentage=5.0, tick_quality_mean=0.0005,
        )
        plan = _plan(stats, Estimated(confidence=20.0))
        assert plan.sl_pips == pytest.approx(12.0)
        assert plan.tp_pips == pytest.approx(12.0)
        assert plan.win_probability == 50.0
        assert plan.risk_level == "HIGH"
        # CRITIQUE trap: 50 − 25 = 25
        assert plan.position_size_pct == 25.0

    def test_risk_reward_matches_sl_tp(self):
        for atr in (0.0004, 0.0011, 0.0025, 0.006):
            plan = _plan(_slice(atr_mean=atr), Estimated())
            assert plan.risk_reward == f"1:{plan.tp_pips / plan.sl_pips:.1f}"

    def test_zero_atr_has_no_ratio(self):
        plan = _plan(_slice(atr_mean=0.0), Estimated())
        assert plan.risk_reward == "1:0.0"
        assert plan.tp_ratio == 0.0


class TestPositionSize:
    def test_critical_outranks_high(self):
        assert position_size(100, [_trap("HAUTE"), _trap("CRITIQUE")], 0.0005) == 75

    def test_high_penalty_floor(self):
        assert position_size(100, [_trap("HAUTE")], 0.0005) == 85
        assert position_size(50, [_trap("HAUTE")], 0.0005) == 50

    def test_critical_floor(self):
        assert position_size(40, [_trap("CRITIQUE")], 0.0005) == 25

    def test_liquidity_bonus_capped(self):
        assert position_size(150, [], 0.002) == 150

    def test_poor_liquidity_pins_to_50(self):
        assert position_size(100, [], 0.0001) == 50
        assert position_size(25, [_trap("CRITIQUE")], 0.0001) == 50


class TestTradeDuration:
    def test_event_and_hour_factors(self):
        """120 min × 0.75 (Non-Farm) × 0.8 (08:00)."""
        assert calculate_trade_duration(0.006, "Non-Farm Payrolls", 8) == 72

    def test_first_event_match_wins(self):
        assert calculate_trade_duration(0.003, "FOMC Press Conference", 11) == 225

    def test_default_band(self):
        assert calculate_trade_duration(0.001, "", 11) == 240

    def test_primary_event_used_by_estimator(self):
        stats = _slice(
            hour=8,
            events=(EventInSlice(event_name="Non-Farm Payrolls", impact="HIGH"),),
        )
        plan = _plan(stats, Estimated())
        # ATR 0.0025 is not above 0.0025 → default 240 × 0.75 × 0.8
        assert plan.trade_duration_minutes == 144


class TestComparePlans:
    def test_zero_reference(self):
        est = _plan(_slice(), Estimated())
        auth = _plan(_slice(), Authoritative(_params(stop_loss_pips=0.0, hard_tp_pips=0.0)))
        divergences = compare_plans(auth, est, 25.0)
        assert all(d.difference_pct == 100.0 for d in divergences)
