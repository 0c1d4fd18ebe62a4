# test_portfolio_service.py
# -------------------------------
# API Tests for the Portfolio Service
# Mock mode runs the synthetic engine; live mode runs against a fake gateway
# -------------------------------

import logging
import pytest
import subprocess
import sys
import os

# Add parent directory to path for imports
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from fastapi.testclient import TestClient

from services.portfolio_service import app, get_gateway, get_settings
from shared.config import Settings
from shared.errors import ServiceError

LIVE_SETTINGS = Settings(quantum_base_url="http://quantum.test")
MOCK_SETTINGS = Settings(mock_mode=True)

UPSTREAM_OPTIMIZE = {
    "dataset": "NIFTY50",
    "budget": 2,
    "risk_factor": "medium",
    "total_investment": 100000,
    "objective_value": 0.42,
    "portfolio": [
        {"asset": "TCS", "expected_return": 11.0, "weight": 0.55, "investment": 55000, "percentage": 55.0},
        {"asset": "Infosys", "expected_return": 9.0, "weight": 0.45, "investment": 45000, "percentage": 45.0},
    ],
}

UPSTREAM_REBALANCE = {
    "dataset": "NIFTY50",
    "current_portfolio": [
        {"asset": "TCS", "weight": 0.6, "expected_return": 10},
        {"asset": "Infosys", "weight": 0.4, "expected_return": 5},
    ],
    "future_portfolio": [
        {"asset": "TCS", "percentage": 50, "exp_ret": 12},
        {"asset": "Infosys", "percentage": 50, "exp_ret": 10},
    ],
    "recommendations": [
        {"action": "SELL", "asset": "TCS", "current_pct": 60, "future_pct": 50, "change_pct": -10},
    ],
}


class FakeGateway:
    """Stands in for QuantumGateway; returns canned payloads or raises."""

    def __init__(self, optimize=None, rebalance=None, health=200, error=None):
        self.optimize_payload = optimize
        self.rebalance_payload = rebalance
        self.health = health
        self.error = error
        self.bodies = []

    async def optimize(self, body):
        self.bodies.append(body)
        if self.error:
            raise self.error
        return self.optimize_payload

    async def rebalance(self, body):
        self.bodies.append(body)
        if self.error:
            raise self.error
        return self.rebalance_payload

    async def check_health(self):
        if self.error:
            raise self.error
        return self.health


@pytest.fixture
def optimize_body():
    return {"mode": "dataset", "dataset": "NIFTY50", "riskLevel": "medium", "budget": 100000, "maxAssets": 2}


@pytest.fixture
def rebalance_body():
    return {"dataset": "NIFTY50", "budget": 2, "risk": "low", "totalInvestment": 100000}


@pytest.fixture
def use_settings():
    def apply(settings):
        app.dependency_overrides[get_settings] = lambda: settings
    yield apply
    app.dependency_overrides.clear()


@pytest.fixture
def use_gateway():
    def apply(gateway):
        app.dependency_overrides[get_gateway] = lambda: gateway
        return gateway
    yield apply
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


class TestHealth:

    def test_health(self, client, use_settings):
        use_settings(MOCK_SETTINGS)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["mode"] == "mock"
        assert response.headers.get("X-Request-Id")

    def test_request_log_lines_carry_request_id(self, client, use_settings, caplog):
        use_settings(MOCK_SETTINGS)

        with caplog.at_level(logging.INFO, logger="services.portfolio_service"):
            response = client.get("/health")

        request_id = response.headers["X-Request-Id"]
        messages = [r.getMessage() for r in caplog.records if r.name == "services.portfolio_service"]
        assert f"[{request_id}] -> GET /health" in messages
        assert any(m.startswith(f"[{request_id}] <- 200 (") and m.endswith("ms)") for m in messages)

    def test_quantum_health_in_mock_mode(self, client, use_settings):
        use_settings(MOCK_SETTINGS)

        data = client.get("/health/quantum").json()

        assert data["quantumHealthy"] is True
        assert data["mode"] == "mock"
        assert data["time"].endswith("Z")

    def test_quantum_health_without_base_url(self, client, use_settings, use_gateway):
        use_settings(Settings())
        use_gateway(FakeGateway())

        response = client.get("/health/quantum")

        assert response.status_code == 503
        assert response.json() == {"quantumHealthy": False, "reason": "QUANTUM_BASE_URL not set"}

    def test_quantum_health_live_ok(self, client, use_settings, use_gateway):
        use_settings(LIVE_SETTINGS)
        use_gateway(FakeGateway(health=200))

        response = client.get("/health/quantum")

        assert response.status_code == 200
        assert response.json() == {"quantumHealthy": True, "mode": "live", "code": 200}

    def test_quantum_health_live_unhealthy_status(self, client, use_settings, use_gateway):
        use_settings(LIVE_SETTINGS)
        use_gateway(FakeGateway(health=500))

        response = client.get("/health/quantum")

        assert response.status_code == 503
        assert response.json()["code"] == 500

    def test_quantum_health_live_unreachable(self, client, use_settings, use_gateway):
        use_settings(LIVE_SETTINGS)
        use_gateway(FakeGateway(error=ServiceError("upstream_timeout", "Quantum API request timed out")))

        response = client.get("/health/quantum")

        assert response.status_code == 503
        assert response.json()["reason"] == "timeout/unreachable"


class TestOptimizeEndpoint:

    def test_mock_mode(self, client, use_settings, optimize_body):
        use_settings(MOCK_SETTINGS)

        response = client.post("/optimize", json=optimize_body)

        assert response.status_code == 200
        data = response.json()
        assert data["method"] == "quantum"
        assert len(data["selected"]) == 2
        assert len(data["weights"]) == len(data["allocation"]) == 2
        assert data["diagnostics"]["backend"] == "fastapi"
        assert data["diagnostics"]["dataset"] == "NIFTY50"

    @pytest.mark.parametrize("dataset", ["NIFTY50", "NASDAQ100", "CRYPTO50"])
    @pytest.mark.parametrize("max_assets, expected", [(1, 1), (3, 3), (5, 5), (7, 7), (12, 7)])
    def test_mock_mode_parallel_lists_match(self, client, use_settings, optimize_body, dataset, max_assets, expected):
        use_settings(MOCK_SETTINGS)
        optimize_body["dataset"] = dataset
        optimize_body["maxAssets"] = max_assets

        response = client.post("/optimize", json=optimize_body)

        assert response.status_code == 200
        data = response.json()
        assert len(data["selected"]) == len(data["weights"]) == len(data["allocation"]) == expected
        assert [slice_["name"] for slice_ in data["allocation"]] == data["selected"]
        assert sum(data["weights"]) == pytest.approx(1.0, abs=1e-3)

    def test_live_mode(self, client, use_settings, use_gateway, optimize_body):
        use_settings(LIVE_SETTINGS)
        gateway = use_gateway(FakeGateway(optimize=UPSTREAM_OPTIMIZE))

        response = client.post("/optimize", json=optimize_body)

        assert response.status_code == 200
        data = response.json()
        assert data["selected"] == ["TCS", "Infosys"]
        assert data["allocation"] == [{"name": "TCS", "value": 55}, {"name": "Infosys", "value": 45}]
        assert data["expectedReturn"] == pytest.approx(10.0)
        assert gateway.bodies == [{
            "dataset_option": "NIFTY50",
            "budget": 2,
            "risk_factor": "medium",
            "total_investment": 100000.0,
        }]

    def test_validation_error(self, client, use_settings, optimize_body):
        use_settings(MOCK_SETTINGS)
        optimize_body["budget"] = "lots"

        response = client.post("/optimize", json=optimize_body)

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Invalid request"
        assert any(detail.startswith("budget") for detail in data["details"])

    def test_missing_body(self, client, use_settings):
        use_settings(MOCK_SETTINGS)

        response = client.post("/optimize")

        assert response.status_code == 400
        assert response.json()["details"] == ["body: Request body must be a JSON object"]

    def test_malformed_json(self, client, use_settings):
        use_settings(MOCK_SETTINGS)

        response = client.post("/optimize", content="{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    def test_inconsistent_constraints(self, client, use_settings, optimize_body):
        use_settings(MOCK_SETTINGS)
        optimize_body["constraints"] = {"minWeight": 0.5, "maxWeight": 0.1}

        response = client.post("/optimize", json=optimize_body)

        assert response.status_code == 400
        assert response.json()["error"] == "Inconsistent request"

    def test_upstream_timeout(self, client, use_settings, use_gateway, optimize_body):
        use_settings(LIVE_SETTINGS)
        use_gateway(FakeGateway(error=ServiceError("upstream_timeout", "Quantum API request timed out")))

        response = client.post("/optimize", json=optimize_body)

        assert response.status_code == 504
        assert response.json() == {"error": "Quantum API request timed out"}

    def test_upstream_unavailable(self, client, use_settings, use_gateway, optimize_body):
        use_settings(LIVE_SETTINGS)
        use_gateway(FakeGateway(error=ServiceError("upstream_unavailable", "Quantum API error 500: boom")))

        response = client.post("/optimize", json=optimize_body)

        assert response.status_code == 502
        assert "500" in response.json()["error"]

    def test_empty_upstream_portfolio(self, client, use_settings, use_gateway, optimize_body):
        use_settings(LIVE_SETTINGS)
        use_gateway(FakeGateway(optimize=dict(UPSTREAM_OPTIMIZE, portfolio=[])))

        response = client.post("/optimize", json=optimize_body)

        assert response.status_code == 502

    def test_unexpected_error_is_internal(self, use_settings, use_gateway, optimize_body):
        use_settings(LIVE_SETTINGS)
        use_gateway(FakeGateway(error=RuntimeError("kaboom")))
        client = TestClient(app, raise_server_exceptions=False)

        response = client.post("/optimize", json=optimize_body)

        assert response.status_code == 500
        assert response.json()["error"] == "Internal error"
        assert "kaboom" not in response.text


class TestRebalanceEndpoint:

    def test_mock_mode(self, client, use_settings, rebalance_body):
        use_settings(MOCK_SETTINGS)

        response = client.post("/rebalance", json=rebalance_body)

        assert response.status_code == 200
        data = response.json()
        assert data["dataset"] == "NIFTY50"
        assert len(data["current"]) == len(data["future"]) == 2
        assert len(data["evolution"]) == 30
        assert 6.9 <= data["summary"]["muCurrent"] <= 10.1
        assert 9.4 <= data["summary"]["muFuture"] <= 12.6

    def test_live_mode(self, client, use_settings, use_gateway, rebalance_body):
        use_settings(LIVE_SETTINGS)
        gateway = use_gateway(FakeGateway(rebalance=UPSTREAM_REBALANCE))
        rebalance_body["timeHorizon"] = 10

        response = client.post("/rebalance", json=rebalance_body)

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["muCurrent"] == pytest.approx(8.0)
        assert data["summary"]["muFuture"] == pytest.approx(11.0)
        assert data["future"][0] == {"asset": "TCS", "weight": 0.5, "expected_return": 12.0}
        assert data["actions"][0]["action"] == "SELL"
        assert len(data["evolution"]) == 10
        assert gateway.bodies[0]["budget"] == 2
        assert gateway.bodies[0]["total_investment"] == 100000.0

    def test_horizon_out_of_range(self, client, use_settings, rebalance_body):
        use_settings(MOCK_SETTINGS)
        rebalance_body["timeHorizon"] = 400

        response = client.post("/rebalance", json=rebalance_body)

        assert response.status_code == 400
        assert any("timeHorizon" in detail for detail in response.json()["details"])

    def test_non_object_upstream_payload(self, client, use_settings, use_gateway, rebalance_body):
        use_settings(LIVE_SETTINGS)
        use_gateway(FakeGateway(rebalance=["unexpected"]))

        response = client.post("/rebalance", json=rebalance_body)

        assert response.status_code == 502


class TestDemoEndpoints:

    def test_accuracy(self, client):
        assert client.get("/compare/accuracy", params={"risk": "low"}).json() == {
            "metric": "accuracy", "quantum": 84, "classical": 64,
        }

    def test_accuracy_unknown_risk_uses_medium(self, client):
        assert client.get("/compare/accuracy", params={"risk": "wild"}).json()["quantum"] == 88

    def test_risk_return_clamps_asset_count(self, client):
        assert len(client.post("/compare/risk-return", json={"maxAssets": 50}).json()["points"]) == 12
        assert len(client.post("/compare/risk-return", json={"maxAssets": 1}).json()["points"]) == 3
        assert len(client.post("/compare/risk-return").json()["points"]) == 5

    def test_risk_return_named_assets_are_stable(self, client):
        body = {"dataset": "nifty50", "assetNames": ["TCS", "ITC"], "weights": [60, 40]}

        first = client.post("/compare/risk-return", json=body).json()
        second = client.post("/compare/risk-return", json=body).json()

        assert first == second
        assert [p["name"] for p in first["points"]] == ["TCS", "ITC"]

    def test_risk_return_rejects_text_weights(self, client):
        response = client.post("/compare/risk-return", json={"weights": ["a"]})
        assert response.status_code == 400

    def test_sharpe_get_and_post(self, client):
        assert client.get("/sharpe").json() == client.post("/sharpe").json()
        assert len(client.get("/sharpe").json()) == 3

    def test_frontier(self, client):
        assert client.post("/frontier", json={"riskLevel": "high"}).json()[0] == {"risk": 20, "return": 10.0}
        assert client.post("/frontier").json()[0] == {"risk": 10, "return": 5.0}

    def test_frontier_unknown_risk_uses_high_base(self, client):
        points = client.post("/frontier", json={"riskLevel": "aggressive"}).json()

        assert points[0] == {"risk": 20, "return": 10.0}
        assert len(points) == 8

    def test_qaoa_bits(self, client):
        rows = client.post("/qaoa/bits").json()
        assert [row["bits"] for row in rows] == ["00111", "11100", "10101", "11010", "10011"]

    def test_allocation(self, client):
        slices = client.post("/allocation", json={"dataset": "nasdaq"}).json()

        assert [s["name"] for s in slices] == ["Apple", "Microsoft", "Amazon", "Google", "Tesla"]
        assert 97 <= sum(s["value"] for s in slices) <= 103

    def test_allocation_null_dataset(self, client):
        response = client.post("/allocation", json={"dataset": None})

        assert response.status_code == 200
        assert [s["name"] for s in response.json()] == ["Alpha", "Beta", "Gamma", "Delta", "Epsilon"]

    def test_evolution(self, client):
        points = client.post("/evolution", json={"initialEquity": 50000, "timeHorizon": 6}).json()

        assert len(points) == 6
        assert set(points[0]) == {"time", "Quantum", "Classical"}

    def test_stress_example(self, client):
        body = {
            "alloc": [{"name": "Axis Bank", "value": 50}],
            "initialEquity": 100000,
            "threshold": 60,
            "stress": {"ratesBps": 200, "fxPct": 3},
        }

        data = client.post("/stress", json=body).json()

        assert data == {"bars": [{"name": "Axis Bank", "value": 45110}], "ruinLine": 60000}

    def test_stress_null_name(self, client):
        response = client.post("/stress", json={"alloc": [{"name": None, "value": 10}, {"value": 5}]})

        assert response.status_code == 200
        assert [bar["name"] for bar in response.json()["bars"]] == ["Asset", "Asset"]

    def test_stress_empty_body(self, client):
        assert client.post("/stress").json() == {"bars": [], "ruinLine": 60000}

    def test_stress_invalid_threshold(self, client):
        response = client.post("/stress", json={"threshold": 120})

        assert response.status_code == 400
        assert any("threshold" in detail for detail in response.json()["details"])


class TestEntryPoint:

    def test_script_finds_shared_package_from_any_directory(self, tmp_path):
        script = os.path.join(os.path.dirname(os.path.abspath(__file__)), "services", "portfolio_service.py")
        env = {key: value for key, value in os.environ.items() if key != "PYTHONPATH"}
        loader = f"import runpy; runpy.run_path({script!r}, run_name='portfolio_service')"

        result = subprocess.run([sys.executable, "-c", loader], cwd=tmp_path, env=env, capture_output=True, text=True)

        assert result.returncode == 0, result.stderr
