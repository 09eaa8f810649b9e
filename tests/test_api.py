import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from quoting.api import app as app_module
from quoting.api.app import app


@pytest.fixture
def client(monkeypatch) -> TestClient:
    monkeypatch.delenv("QUOTING_AUTH_TOKEN", raising=False)
    monkeypatch.delenv("QUOTING_STRATEGIES_PATH", raising=False)
    monkeypatch.delenv("QUOTING_SPREADS_PATH", raising=False)
    app_module.cache.clear()
    return TestClient(app)


def reference_invoice(unit_price: float = 0.15) -> dict:
    return {
        "tensionLevel": "BTE",
        "daysInPeriod": 30,
        "dailyPowerCostEur": 1.0,
        "consumptionData": [{"period": "Ponta", "kwh": 1000, "currentPriceEur": unit_price}],
    }


REFERENCE_STRATEGY = {
    "id": "ref",
    "name": "Reference",
    "basePriceMWh": 60,
    "eric": 0.0025,
    "losses": 15,
    "proposalPowerPriceDaily": 1.5249,
}


def test_health_reports_catalog(client: TestClient) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["catalogLoaded"] is True
    assert body["strategyCount"] == 5
    assert body["tiers"] == ["AT", "MT", "BTE", "BTN"]


def test_strategies_and_spreads_endpoints(client: TestClient) -> None:
    strategies = client.get("/api/strategies").json()["strategies"]
    spreads = client.get("/api/spreads").json()

    assert [item["id"] for item in strategies][:2] == ["zug_m12", "zug_m18"]
    assert spreads["periods"] == ["Ponta", "Cheias", "Vazio", "Super Vazio"]
    assert spreads["spreads"]["BTE"]["Ponta"] == 0.080945


def test_simulate_with_inline_strategy(client: TestClient) -> None:
    response = client.post(
        "/api/simulate",
        json={"invoice": reference_invoice(unit_price=0.25), "strategy": REFERENCE_STRATEGY},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["annualCostCurrent"] == 3406.67
    assert body["annualCostProposed"] == 3236.33
    assert body["annualSavingsPercent"] == pytest.approx(5.0, abs=0.01)
    assert body["appliedStrategyName"] == "Reference"
    assert body["savingsScore"] == 6


def test_simulate_applies_overrides_and_manual_power_price(client: TestClient) -> None:
    response = client.post(
        "/api/simulate",
        json={
            "invoice": reference_invoice(),
            "strategy": REFERENCE_STRATEGY,
            "manualMargin": 0.0,
            "manualPowerPrice": 1.0,
            "priceOverrides": {"Ponta": 0.12},
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["periodStats"][0]["proposedUnit"] == 0.12
    assert body["periodStats"][0]["proposedTotal"] == 120.0
    assert body["periodTotals"]["proposedPower"] == 30.0
    assert body["annualCostProposed"] == 1825.0
    assert body["appliedMarginEurKwh"] == 0.0


def test_simulate_rejects_unknown_override_period(client: TestClient) -> None:
    response = client.post(
        "/api/simulate",
        json={"invoice": reference_invoice(), "priceOverrides": {"Vazio": 0.1}},
    )

    assert response.status_code == 400
    assert "Vazio" in response.json()["detail"]


def test_simulate_unknown_strategy_is_404(client: TestClient) -> None:
    response = client.post("/api/simulate", json={"invoice": reference_invoice(), "strategyId": "nope"})

    assert response.status_code == 404


def test_simulate_rejects_non_object_body(client: TestClient) -> None:
    assert client.post("/api/simulate", json=[1, 2]).status_code == 400
    assert client.post("/api/simulate", content=b"{", headers={"Content-Type": "application/json"}).status_code == 400


def test_compare_ranks_catalog_strategies(client: TestClient) -> None:
    response = client.post("/api/compare", json={"invoice": reference_invoice()})

    assert response.status_code == 200
    results = response.json()["results"]
    assert len(results) == 5
    assert results[0]["strategyId"] == "zug_m18"
    assert results[-1]["strategyId"] == "zug_m12"


def test_catalog_path_from_environment(client: TestClient, monkeypatch, tmp_path: Path) -> None:
    path = tmp_path / "strategies.json"
    path.write_text(json.dumps([REFERENCE_STRATEGY]), encoding="utf-8")
    monkeypatch.setenv("QUOTING_STRATEGIES_PATH", str(path))

    strategies = client.get("/api/strategies").json()["strategies"]

    assert [item["id"] for item in strategies] == ["ref"]


def test_broken_catalog_is_500(client: TestClient, monkeypatch, tmp_path: Path) -> None:
    path = tmp_path / "spreads.json"
    path.write_text("[]", encoding="utf-8")
    monkeypatch.setenv("QUOTING_SPREADS_PATH", str(path))

    assert client.get("/api/spreads").status_code == 500
    assert client.get("/api/health").json()["catalogLoaded"] is False


def test_auth_token_required_when_configured(client: TestClient, monkeypatch) -> None:
    monkeypatch.setenv("QUOTING_AUTH_TOKEN", "secret")

    assert client.get("/api/strategies").status_code == 401
    assert client.get("/api/strategies", headers={"X-Auth-Token": "secret"}).status_code == 200
    assert client.get("/api/strategies?token=secret").status_code == 200


def test_simulate_rejects_integers_beyond_float_range(client: TestClient) -> None:
    body = (
        '{"invoice": {"tensionLevel": "BTE", "consumptionData": '
        '[{"period": "Ponta", "kwh": 1' + "0" * 400 + ', "currentPriceEur": 0.15}]}}'
    )

    response = client.post("/api/simulate", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert "kwh must be a finite number" in response.json()["detail"]


def test_power_spread_is_only_added_when_sent(client: TestClient) -> None:
    base = {"invoice": reference_invoice(), "strategy": REFERENCE_STRATEGY, "manualMargin": 0.0}

    without_spread = client.post("/api/simulate", json=base).json()
    with_spread = client.post("/api/simulate", json={**base, "powerSpread": 0.25}).json()

    assert without_spread["periodTotals"]["proposedPower"] == 45.75
    assert with_spread["periodTotals"]["proposedPower"] == 53.25
