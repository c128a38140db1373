"""
HTTP-level tests for the supply-chain and agent routes.
"""
import pytest
from fastapi.testclient import TestClient

from agents.orchestrator_agent import OrchestratorAgent
from app.main import app
from routes.deps import get_network_store, get_orchestrator
from simulation.network_store import NetworkStateStore

from conftest import E2E_CONFIG


@pytest.fixture
def client():
    store = NetworkStateStore(seed=2024)
    orchestrator = OrchestratorAgent(store)
    app.dependency_overrides[get_network_store] = lambda: store
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def configured(client):
    response = client.put("/api/v1/supply-chain/configuration", json=E2E_CONFIG)
    assert response.status_code == 200
    return client


class TestHealth:

    def test_health_reports_configuration(self, client):
        body = client.get("/api/v1/health").json()
        assert body["status"] == "healthy"
        assert body["networkConfigured"] is False
        assert body["stateVersion"] == 0

    def test_root(self, client):
        assert client.get("/api/v1/").json()["health"] == "/api/v1/health"


class TestConfigurationRoutes:

    def test_put_configuration(self, client):
        response = client.put("/api/v1/supply-chain/configuration", json=E2E_CONFIG)
        body = response.json()
        assert response.status_code == 200
        assert body["accepted"] is True
        assert body["stateVersion"] == 1
        assert body["configuration"]["shippingMethods"] == ["Sea", "Air", "Rail"]

    def test_invalid_configuration_is_422_and_keeps_state(self, configured):
        bad = dict(E2E_CONFIG, nodeCount=20)
        response = configured.put("/api/v1/supply-chain/configuration", json=bad)
        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "INVALID_CONFIGURATION"
        assert configured.get("/api/v1/supply-chain/configuration").json()["nodeCount"] == 6
        assert configured.get("/api/v1/supply-chain/network").json()["stateVersion"] == 1

    def test_seeded_configuration_is_reproducible(self, client):
        url = "/api/v1/supply-chain/configuration?seed=5"
        client.put(url, json=E2E_CONFIG)
        first = client.get("/api/v1/supply-chain/network").json()["nodes"]
        client.put(url, json=E2E_CONFIG)
        second = client.get("/api/v1/supply-chain/network").json()["nodes"]
        strip = lambda nodes: [{k: v for k, v in n.items() if k != "lastUpdated"} for n in nodes]
        assert strip(first) == strip(second)

    def test_reads_before_configuration_are_409(self, client):
        for path in ("/api/v1/supply-chain/network", "/api/v1/supply-chain/configuration"):
            response = client.get(path)
            assert response.status_code == 409
            assert response.json()["detail"]["error"] == "EMPTY_NETWORK_STATE"


class TestNetworkRoutes:

    def test_network_view(self, configured):
        body = configured.get("/api/v1/supply-chain/network").json()
        assert body["count"] == 6
        assert body["tickCount"] == 0
        node = body["nodes"][0]
        assert node["id"] == "node-01"
        assert {"utilizationPct", "capacityUnits", "typeDetails", "location"} <= set(node)

    def test_single_node(self, configured):
        assert configured.get("/api/v1/supply-chain/nodes/node-02").json()["id"] == "node-02"
        response = configured.get("/api/v1/supply-chain/nodes/node-42")
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "NODE_NOT_FOUND"

    def test_manual_tick(self, configured):
        body = configured.post("/api/v1/supply-chain/tick").json()
        assert body == {"committed": True, "stateVersion": 1, "tickCount": 1}

    def test_tick_before_configuration(self, client):
        body = client.post("/api/v1/supply-chain/tick").json()
        assert body["committed"] is False

    def test_events(self, configured):
        for _ in range(5):
            configured.post("/api/v1/supply-chain/tick")
        body = configured.get("/api/v1/supply-chain/events?limit=3").json()
        assert body["count"] == len(body["events"]) <= 3
        assert configured.get("/api/v1/supply-chain/events?limit=0").status_code == 422


class TestAgentRoutes:

    def test_agents_before_configuration(self, client):
        response = client.post("/api/v1/agents/info")
        assert response.status_code == 409

    def test_info_envelope(self, configured):
        body = configured.post("/api/v1/agents/info").json()
        assert body["agentName"] == "info_agent"
        assert body["confidenceScore"] == 1.0
        assert body["stateVersion"] == 1
        assert body["tickCount"] == 0
        assert body["payload"]["summary"]["totalNodes"] == 6

    def test_scenario(self, configured):
        response = configured.post("/api/v1/agents/scenario", json={
            "scenarioType": "PortClosure", "severity": "High", "durationDays": 30,
        })
        body = response.json()
        assert response.status_code == 200
        assert len(body["payload"]["timeline"]) == 5
        assert body["payload"]["impact"]["deliveryDelayDays"] > 0
        band = body["payload"]["impact"]["uncertainty"]
        assert band["revenueImpactP10"]["amount"] <= band["revenueImpactP90"]["amount"]

    @pytest.mark.parametrize("request_body,code", [
        ({"scenarioType": "Meteor", "durationDays": 3}, "UNKNOWN_SCENARIO_TYPE"),
        ({"scenarioType": "PortClosure", "durationDays": 0}, "INVALID_DURATION"),
        ({"scenarioType": "PortClosure", "severity": "Extreme", "durationDays": 3}, "INVALID_SCENARIO_REQUEST"),
        ({"scenarioType": "PortClosure", "durationDays": 3, "affectedNodeIds": ["x"]}, "INVALID_SCENARIO_REQUEST"),
    ])
    def test_scenario_rejections(self, configured, request_body, code):
        response = configured.post("/api/v1/agents/scenario", json=request_body)
        assert response.status_code == 422
        assert response.json()["detail"]["error"] == code

    def test_strategy(self, configured):
        body = configured.post("/api/v1/agents/strategy").json()
        assert 1 <= len(body["payload"]["strategies"]) <= 3
        assert 0 <= body["payload"]["health"]["score"] <= 100
        assert body["payload"]["rankedBy"] == "score"
        assert len(body["payload"]["tradeoffs"]) == 6
        assert {"riskReduction", "sustainabilityImpactTco2e", "compositeScore"} <= set(body["payload"]["strategies"][0])

    def test_strategy_with_preferences(self, configured):
        body = configured.post("/api/v1/agents/strategy", json={"prioritizeRisk": True}).json()
        assert body["payload"]["rankedBy"] == "preferences"
        assert body["payload"]["weights"] == {"cost": 0.2, "risk": 0.6, "sustainability": 0.2}

    def test_impact(self, configured):
        body = configured.post("/api/v1/agents/impact").json()
        assert set(body["payload"]) == {"environmental", "social", "governance", "recommendations"}

    def test_full_run(self, configured):
        body = configured.post("/api/v1/agents/run/full").json()
        assert body["scenario"] is None
        assert body["info"]["stateVersion"] == body["strategy"]["stateVersion"] == body["impact"]["stateVersion"]

        body = configured.post("/api/v1/agents/run/full", json={
            "scenarioType": "DemandSpike", "durationDays": 10,
        }).json()
        assert body["scenario"]["payload"]["scenarioType"] == "DemandSpike"

    def test_status_and_decisions(self, configured):
        configured.post("/api/v1/agents/info")
        status = configured.get("/api/v1/agents/status").json()
        assert status["status"] == "running"
        assert status["stateVersion"] == 1
        decisions = configured.get("/api/v1/agents/decisions").json()
        assert decisions["count"] == 1
        assert decisions["decisions"][0]["agent"] == "info_agent"
