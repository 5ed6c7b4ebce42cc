"""Tests for upstream record parsing."""

import logging

import pytest

from straddlelab.ingest import (
    RecordError,
    parse_archive,
    parse_archives,
    parse_slice,
    parse_slices,
    parse_trade,
    parse_trades,
)
from straddlelab.models import Authoritative, Estimated


def _slice_record(**overrides) -> dict:
    record = {
        "hour": 14,
        "quarter": 2,
        "candle_count": 40,
        "atr_mean": 0.0018,
        "range_mean": 0.0024,
        "body_range_mean": 42.0,
        "noise_ratio_mean": 1.6,
        "volume_imbalance_mean": 0.12,
        "breakout_percentage": 18.0,
        "tick_quality_mean": 0.0009,
        "events": [{"event_name": "CPI m/m", "impact": "HIGH", "volatility_increase": "35.5"}],
    }
    record.update(overrides)
    return record


class TestParseSlice:
    def test_valid_record_is_estimated(self):
        stats, source = parse_slice(_slice_record(confidence=64))
        assert stats.hour == 14
        assert stats.quarter == 2
        assert stats.primary_event == "CPI m/m"
        assert stats.events[0].volatility_increase == 35.5
        assert stats.recommended_trade_expiration_minutes is None
        assert source == Estimated(confidence=64.0)

    def test_numeric_strings_accepted(self):
        stats, _ = parse_slice(_slice_record(atr_mean="0.0021"))
        assert stats.atr_mean == 0.0021

    def test_backend_parameters_make_authoritative(self):
        record = _slice_record(
            confidence=81,
            recommended_trade_expiration_minutes=45,
            straddle_parameters={
                "offset_pips": 4.0,
                "stop_loss_pips": 18.0,
                "trailing_stop_pips": 12.0,
                "hard_tp_pips": 36.0,
                "risk_reward_ratio": 2.0,
            },
        )
        stats, source = parse_slice(record)
        assert isinstance(source, Authoritative)
        assert source.params.stop_loss_pips == 18.0
        assert source.params.confidence == 81.0
        # No explicit timeout: falls back to the recommended expiration.
        assert source.params.timeout_minutes == 45
        assert stats.recommended_trade_expiration_minutes == 45

    def test_timeout_default(self):
        _, source = parse_slice(_slice_record(straddle_parameters={"stop_loss_pips": 10}))
        assert source.params.timeout_minutes == 15

    @pytest.mark.parametrize(
        "overrides",
        [{"hour": 24}, {"quarter": 4}, {"atr_mean": None}, {"range_mean": "wide"},
         {"atr_mean": float("nan")}],
    )
    def test_invalid_records_raise(self, overrides):
        with pytest.raises(RecordError):
            parse_slice(_slice_record(**overrides))

    def test_non_dict_rejected(self):
        with pytest.raises(RecordError, match="must be an object"):
            parse_slice(["not", "a", "dict"])

    def test_bad_events_are_dropped(self):
        stats, _ = parse_slice(
            _slice_record(events=[{"impact": "LOW"}, "junk", {"event_name": "GDP",
                                                              "volatility_increase": "x"}])
        )
        assert [e.event_name for e in stats.events] == ["GDP"]
        assert stats.events[0].volatility_increase == 0.0

    def test_batch_skips_bad_records(self, caplog):
        with caplog.at_level(logging.WARNING, logger="straddlelab.ingest"):
            parsed = parse_slices([_slice_record(), _slice_record(hour=-1), _slice_record()])
        assert len(parsed) == 2
        assert "Skipping slice record #1" in caplog.text


class TestParseTrade:
    def test_valid_trade(self):
        trade = parse_trade({
            "event_date": "2024-03-08T13:30:00Z",
            "pips_net": "-7.5",
            "outcome": "StopLoss",
            "max_favorable_excursion": 4,
            "max_adverse_excursion": 10,
            "logs": ["BE Long armed", 42],
        })
        assert trade.pips_net == -7.5
        assert trade.logs == ("BE Long armed", "42")
        assert trade.executed

    def test_missing_outcome(self):
        with pytest.raises(RecordError, match="outcome"):
            parse_trade({"pips_net": 1.0})

    def test_batch(self):
        trades = parse_trades([{"pips_net": 1, "outcome": "TakeProfit"}, {"outcome": "Timeout"}])
        assert len(trades) == 1


class TestParseArchive:
    def test_defaults(self):
        archive = parse_archive({"pair": "EURUSD", "event_type": "NFP", "peak_atr": 22})
        assert archive.archive_type == "Volatilité"
        assert archive.impact_score is None
        assert archive.peak_atr == 22.0

    def test_heatmap(self):
        archive = parse_archive(
            {"type": "Heatmap", "pair": "GBPUSD", "event_type": "CPI", "impact_score": 70}
        )
        assert archive.archive_type == "Heatmap"
        assert archive.impact_score == 70.0

    def test_batch_skips_missing_pair(self):
        assert len(parse_archives([{"event_type": "NFP"}, {"pair": "X", "event_type": "Y"}])) == 1
