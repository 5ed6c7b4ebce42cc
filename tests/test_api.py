"""Tests for the internal API endpoints."""

import pytest
from fastapi.testclient import TestClient

from straddlelab.api.routers import configure_routers
from straddlelab.main import app
from straddlelab.models import BacktestConfig
from straddlelab.refresh import RefreshCoordinator

client = TestClient(app)


# ── Helpers ──────────────────────────────────────────────────────────────


def _slice_record(hour, range_mean, **extra):
    record = {
        "hour": hour,
        "quarter": 0,
        "candle_count": 40,
        "atr_mean": 0.0012,
        "range_mean": range_mean,
        "body_range_mean": 30.0,
        "noise_ratio_mean": 2.0,
        "volume_imbalance_mean": 0.1,
        "breakout_percentage": 12.0,
        "tick_quality_mean": 0.0008,
    }
    record.update(extra)
    return record


def _slices():
    return [
        _slice_record(6, 0.0011),
        _slice_record(8, 0.003),
        _slice_record(13, 0.0018),
        _slice_record(15, 0.0022),
    ]


def _trade(pips, outcome="TakeProfit", date="2024-03-04T13:30:00Z"):
    return {"event_date": date, "pips_net": pips, "outcome": outcome,
            "max_favorable_excursion": abs(pips), "max_adverse_excursion": 2}


@pytest.fixture(autouse=True)
def _routers():
    """Fresh router state for every test."""
    return configure_routers(top_n=3)


# ── Tests ────────────────────────────────────────────────────────────────


class TestHealth:
    def test_health(self):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestAnalyzeEndpoint:
    def test_returns_top_three(self):
        resp = client.post("/slices/analyze", json=_slices())
        assert resp.status_code == 200
        data = resp.json()
        assert data["received"] == 4
        assert [a["slice"]["stats"]["hour"] for a in data["analyses"]] == [8, 15, 13]
        plan = data["analyses"][0]["plan"]
        assert plan["source"] == "estimated"
        assert plan["risk_reward"].startswith("1:")

    def test_wrapped_body_and_top_n(self):
        resp = client.post("/slices/analyze?top_n=1", json={"slices": _slices()})
        assert resp.status_code == 200
        assert len(resp.json()["analyses"]) == 1

    def test_backend_parameters(self):
        record = _slice_record(
            8, 0.003, confidence=78,
            straddle_parameters={"stop_loss_pips": 14, "hard_tp_pips": 28,
                                 "risk_reward_ratio": 2.0, "timeout_minutes": 25},
        )
        plan = client.post("/slices/analyze", json=[record]).json()["analyses"][0]["plan"]
        assert plan["source"] == "backend"
        assert plan["sl_pips"] == 14.0
        assert plan["trade_duration_minutes"] == 25
        assert plan["recommendation"] == "TRADE"

    def test_wrong_shape_is_422(self):
        resp = client.post("/slices/analyze", json={"nope": 1})
        assert resp.status_code == 422

    def test_bad_records_skipped(self):
        resp = client.post("/slices/analyze", json=[{"hour": 3}, _slice_record(9, 0.002)])
        assert resp.status_code == 200
        assert len(resp.json()["analyses"]) == 1


class TestRefreshFlow:
    def test_top_empty_before_post(self):
        data = client.get("/slices/top").json()
        assert data == {"refreshing": False, "analyses": []}

    def test_post_triggers_refresh(self):
        resp = client.post("/slices", json=_slices())
        assert resp.json() == {"stored": 4, "refreshed": True}
        top = client.get("/slices/top").json()["analyses"]
        assert [a["rank"] for a in top] == [1, 2, 3]
        assert top[0]["slice"]["stats"]["hour"] == 8

    def test_external_subscribers_notified(self):
        coordinator = RefreshCoordinator()
        seen = []
        coordinator.subscribe(lambda: seen.append("refreshed"))
        configure_routers(coordinator=coordinator)
        client.post("/slices", json=_slices())
        assert seen == ["refreshed"]
        assert coordinator.subscriber_count == 2

    def test_reconfigure_drops_old_subscription(self):
        coordinator = RefreshCoordinator()
        configure_routers(coordinator=coordinator)
        configure_routers(coordinator=coordinator)
        assert coordinator.subscriber_count == 1


class TestBacktestReport:
    def test_report(self):
        trades = [_trade(20), _trade(-10, "StopLoss"), _trade(15), _trade(0, "NoEntry")]
        resp = client.post("/backtest/report", json={"trades": trades})
        assert resp.status_code == 200
        data = resp.json()
        assert data["analysis"]["result"]["total_trades"] == 3
        assert data["analysis"]["cost_per_trade"] == "7.0"
        assert data["advisory"]["verdict"]["title"] == "Stratégie Solide"
        assert data["analysis"]["monthly"][0]["key"] == "2024-03"

    def test_symbol_costs_and_overrides(self):
        resp = client.post(
            "/backtest/report",
            json={"trades": [_trade(10)], "symbol": "GBPJPY", "config": {"slippage_pips": 1}},
        )
        config = resp.json()["config"]
        assert config["spread_pips"] == 6.0
        assert config["slippage_pips"] == 1.0

    def test_configured_defaults(self):
        configure_routers(backtest_config=BacktestConfig(spread_pips=1.0, slippage_pips=0.5))
        resp = client.post("/backtest/report", json=[_trade(10)])
        assert resp.json()["analysis"]["cost_per_trade"] == "3.0"

    def test_non_numeric_override_is_422(self):
        resp = client.post(
            "/backtest/report", json={"trades": [], "config": {"spread_pips": "wide"}}
        )
        assert resp.status_code == 422


class TestEventRanking:
    def test_ranking(self):
        archives = [
            {"pair": "EURUSD", "event_type": "NFP", "peak_atr": 20, "peak_delay": 10,
             "decay_timeout": 30, "confidence": 0.9},
            {"type": "Heatmap", "pair": "GBPUSD", "event_type": "NFP", "peak_atr": 30,
             "peak_delay": 14, "decay_timeout": 40, "confidence": 0.7, "impact_score": 80},
            {"pair": "EURUSD", "event_type": "CPI", "peak_atr": 10, "peak_delay": 5,
             "decay_timeout": 20, "confidence": 0.4},
        ]
        resp = client.post("/events/ranking", json={"archives": archives})
        assert resp.status_code == 200
        data = resp.json()
        assert [e["event_type"] for e in data["events"]] == ["NFP", "CPI"]
        assert data["events"][0]["optimal_params"]["ratio"] == "1:2"
        assert "NFP|EURUSD" in data["event_pairs"]
        assert data["heatmap"]["pairs"] == ["GBPUSD"]
        assert data["advice"][0].startswith("🎯 MEILLEUR")


class TestStartup:
    def test_lifespan_configures_unwired_app(self, monkeypatch):
        monkeypatch.delenv("STRADDLE_TOP_N", raising=False)
        monkeypatch.setattr("straddlelab.api.routers._coordinator", None)
        with TestClient(app) as started:
            resp = started.post("/slices", json=_slices())
            assert resp.json() == {"stored": 4, "refreshed": True}
            assert len(started.get("/slices/top").json()["analyses"]) == 3

    def test_lifespan_keeps_existing_wiring(self, _routers):
        with TestClient(app) as started:
            started.post("/slices", json=_slices())
        assert _routers.subscriber_count == 1
        assert client.get("/slices/top").json()["analyses"]
