"""
Tests for the FastAPI service.

Covers:
- Archetype listing
- Telemetry and forecast endpoints
- Insights with an injected client
- Report export
- Error mapping
"""
import json

import pytest
from fastapi.testclient import TestClient

from ecosphere.insights import fallback_recommendations
from ecosphere.serve_api import app, get_insights_client


@pytest.fixture
def client():
    """Test client with no AI service configured."""
    app.dependency_overrides[get_insights_client] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestArchetypes:

    def test_lists_base_values(self, client):
        """Test archetypes are listed with their base magnitudes."""
        data = client.get("/archetypes").json()["archetypes"]
        assert set(data) == {"Campus", "Office", "Residential", "Hospital"}
        assert data["Office"] == {"energy": 300, "water": 400, "waste": 50, "carbon": 200}


class TestTelemetry:

    def test_default_window(self, client):
        """Test 25 records are returned for the default 24 hours."""
        response = client.get("/telemetry/Office")
        assert response.status_code == 200
        assert len(response.json()["records"]) == 25

    def test_seed_reproduces(self, client):
        """Test the seed parameter makes magnitudes reproducible."""
        a = client.get("/telemetry/Campus", params={"hours": 6, "seed": 11}).json()["records"]
        b = client.get("/telemetry/Campus", params={"hours": 6, "seed": 11}).json()["records"]
        assert [r["energy"] for r in a] == [r["energy"] for r in b]

    def test_unknown_type_is_400(self, client):
        """Test unknown building types map to 400."""
        response = client.get("/telemetry/Factory")
        assert response.status_code == 400
        assert "Factory" in response.json()["detail"]

    def test_negative_hours_is_400(self, client):
        """Test negative windows map to 400."""
        assert client.get("/telemetry/Office", params={"hours": -1}).status_code == 400


class TestForecast:

    def test_generated_forecast(self, client):
        """Test the GET endpoint forecasts from fresh telemetry."""
        data = client.get("/forecast/Hospital", params={"horizon": 12, "seed": 3}).json()
        assert set(data["forecast"]) == {"energy", "carbon", "water", "waste"}
        assert all(len(points) == 12 for points in data["forecast"].values())
        assert data["anchor"]["carbon"] == round(0.7 * data["anchor"]["energy"])

    def test_posted_history(self, client):
        """Test the POST endpoint forecasts from supplied records."""
        records = client.get("/telemetry/Office", params={"hours": 3}).json()["records"]
        response = client.post("/forecast", json={"records": records, "horizon": 5})
        assert response.status_code == 200
        assert all(len(points) == 5 for points in response.json()["forecast"].values())

    def test_empty_history_is_400(self, client):
        """Test an empty history maps to 400."""
        response = client.post("/forecast", json={"records": []})
        assert response.status_code == 400

    def test_zero_horizon_rejected(self, client):
        """Test horizon validation on both endpoints."""
        records = client.get("/telemetry/Office", params={"hours": 1}).json()["records"]
        assert client.post("/forecast", json={"records": records, "horizon": 0}).status_code == 422
        assert client.get("/forecast/Office", params={"horizon": 0}).status_code == 400


class TestInsights:

    def test_fallback_without_client(self, client):
        """Test the fallback list and its Eco Index are served without a client."""
        data = client.get("/insights/Office").json()
        assert data["recommendations"] == fallback_recommendations("Office")
        assert data["score"] == 68
        assert data["eco_index"] == 95

    def test_injected_client(self, client, good_client, valid_recommendations):
        """Test answers from the injected client are served."""
        app.dependency_overrides[get_insights_client] = lambda: good_client
        data = client.get("/insights/Campus", params={"metric": "waste"}).json()
        assert data["recommendations"] == json.loads(json.dumps(valid_recommendations))
        assert "Primary Focus Area: waste" in good_client.prompts[0]

    def test_unknown_metric_is_400(self, client):
        """Test unknown focus metrics map to 400."""
        assert client.get("/insights/Office", params={"metric": "noise"}).status_code == 400


class TestReport:

    def test_markdown_report(self, client):
        """Test the report endpoint returns markdown text."""
        response = client.get("/report/Residential", params={"metric": "water", "seed": 1})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "Building Type: Residential" in response.text
        assert "Greywater Recycling" in response.text


class TestInsightsClientDependency:

    def test_client_built_once(self, monkeypatch):
        """Test the Gemini client and its session are reused across requests."""
        monkeypatch.setenv("GEMINI_API_KEY", "k")
        get_insights_client.cache_clear()
        try:
            first = get_insights_client()
            assert get_insights_client() is first
        finally:
            get_insights_client.cache_clear()
