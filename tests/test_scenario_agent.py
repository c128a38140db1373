"""
Tests for the Scenario Agent: request validation, impact monotonicity,
timeline and mitigations.
"""
import math

import pytest

from app.constants import NodeType, ScenarioPhase, ScenarioType, Severity
from app.errors import InvalidDuration, InvalidScenarioRequest, UnknownScenarioType
from app.schemas import ScenarioRequest
from agents.scenario_agent import ScenarioAgent, ScenarioPolicy

from conftest import all_healthy, with_configuration, with_metrics


@pytest.fixture
def agent():
    return ScenarioAgent()


class TestValidation:

    def test_unknown_type(self, agent, snapshot):
        with pytest.raises(UnknownScenarioType) as exc:
            agent.simulate(snapshot, "Meteor", "High", 7)
        assert "PortClosure" in exc.value.details["supported"]

    def test_unknown_severity(self, agent, snapshot):
        with pytest.raises(InvalidScenarioRequest):
            agent.simulate(snapshot, "PortClosure", "Apocalyptic", 7)

    @pytest.mark.parametrize("duration", [0, -3, math.nan, math.inf, "7", None, True])
    def test_invalid_duration(self, agent, snapshot, duration):
        with pytest.raises(InvalidDuration):
            agent.simulate(snapshot, "PortClosure", "High", duration)

    def test_unknown_affected_node(self, agent, snapshot):
        with pytest.raises(InvalidScenarioRequest) as exc:
            agent.simulate(snapshot, "PortClosure", "High", 7, ["node-01", "node-77"])
        assert exc.value.details == {"unknown": ["node-77"]}

    def test_slug_spellings_accepted(self, agent, snapshot):
        payload = agent.simulate(snapshot, "port-closure", "high", 7).payload
        assert payload.scenario_type == ScenarioType.PORT_CLOSURE
        assert payload.severity == Severity.HIGH


class TestImpact:

    def test_monotonic_in_severity(self, agent, snapshot):
        results = [
            agent.simulate(snapshot, "SupplierDisruption", sev, 14).payload.impact
            for sev in ("Low", "Medium", "High", "Critical")
        ]
        revenue = [r.revenue_impact.amount for r in results]
        delay = [r.delivery_delay_days for r in results]
        assert revenue == sorted(revenue)
        assert delay == sorted(delay)
        assert revenue[-1] > revenue[0]
        assert delay[-1] > delay[0]

    def test_monotonic_in_duration(self, agent, snapshot):
        results = [
            agent.simulate(snapshot, "WeatherEvent", "Medium", d).payload.impact
            for d in (1, 7, 30, 90)
        ]
        revenue = [r.revenue_impact.amount for r in results]
        delay = [r.delivery_delay_days for r in results]
        assert revenue == sorted(revenue)
        assert delay == sorted(delay)
        assert results[-1].cost_increase.amount >= results[0].cost_increase.amount

    def test_delay_never_exceeds_duration(self, agent, snapshot):
        for stype in ScenarioType:
            impact = agent.simulate(snapshot, stype, "Critical", 10).payload.impact
            assert 0 < impact.delivery_delay_days <= 10
            assert 0 <= impact.customer_satisfaction_pct <= 100

    def test_more_shipping_methods_soften_delay(self, agent, healthy_snapshot):
        single = with_configuration(healthy_snapshot, shipping_methods=["Sea"])
        every = with_configuration(healthy_snapshot, shipping_methods=["Sea", "Air", "Rail", "Truck", "Express"])
        a = agent.simulate(single, "PortClosure", "High", 30).payload.impact
        b = agent.simulate(every, "PortClosure", "High", 30).payload.impact
        assert a.redundancy_multiplier == 1.0
        assert b.redundancy_multiplier == pytest.approx(0.52)
        assert b.delivery_delay_days < a.delivery_delay_days
        assert b.revenue_impact.amount < a.revenue_impact.amount

    def test_unhealthy_nodes_compound_penalty(self, agent, healthy_snapshot):
        ids = healthy_snapshot.node_ids
        stressed = with_metrics(healthy_snapshot, {ids[0]: (20.0, None), ids[1]: (50.0, None)})
        calm = agent.simulate(healthy_snapshot, "DemandSpike", "Medium", 7).payload.impact
        rough = agent.simulate(stressed, "DemandSpike", "Medium", 7).payload.impact
        assert calm.compounding_penalty == 1.0
        assert rough.compounding_penalty == pytest.approx(1.0 + 0.3 / 6 + 0.6 / 6, abs=1e-3)
        assert rough.delivery_delay_days > calm.delivery_delay_days

    def test_currency_conversion(self, agent, healthy_snapshot):
        usd = agent.simulate(healthy_snapshot, "CyberAttack", "High", 7).payload.impact
        eur_snapshot = with_configuration(healthy_snapshot, currency="EUR")
        eur = agent.simulate(eur_snapshot, "CyberAttack", "High", 7).payload.impact
        assert eur.revenue_impact.currency.value == "EUR"
        assert eur.revenue_impact.amount == pytest.approx(usd.revenue_impact.amount * 0.92, rel=1e-3)

    def test_empty_affected_set_means_whole_network(self, agent, snapshot):
        impact = agent.simulate(snapshot, "PortClosure", "Medium", 7, []).payload.impact
        assert impact.affected_node_count == len(snapshot.nodes)
        assert impact.downstream_node_ids == ()

    def test_downstream_nodes_of_a_supplier(self, agent, snapshot):
        supplier = next(n.id for n in snapshot.nodes if n.type == NodeType.SUPPLIER)
        retailer = next(n.id for n in snapshot.nodes if n.type == NodeType.RETAILER)
        impact = agent.simulate(snapshot, "SupplierDisruption", "High", 7, [supplier]).payload.impact
        assert impact.affected_node_ids == (supplier,)
        assert retailer in impact.downstream_node_ids
        assert supplier not in impact.downstream_node_ids

    def test_does_not_touch_snapshot(self, agent, snapshot):
        before = snapshot.model_dump()
        agent.simulate(snapshot, "Geopolitical", "Critical", 60)
        assert snapshot.model_dump() == before


class TestUncertaintyBand:

    @pytest.mark.parametrize("stype", ["PortClosure", "SupplierDisruption", "CyberAttack"])
    def test_band_brackets_headline(self, agent, snapshot, stype):
        impact = agent.simulate(snapshot, stype, "High", 21).payload.impact
        band = impact.uncertainty
        assert band.iterations == 500
        assert band.revenue_impact_p10.amount <= impact.revenue_impact.amount <= band.revenue_impact_p90.amount
        assert band.revenue_impact_p10.amount < band.revenue_impact_p90.amount
        assert band.delivery_delay_p10_days <= impact.delivery_delay_days <= band.delivery_delay_p90_days
        assert band.delivery_delay_p90_days <= 21
        assert band.revenue_impact_p90.currency == impact.revenue_impact.currency

    def test_same_snapshot_same_band(self, agent, snapshot):
        first = agent.simulate(snapshot, "WeatherEvent", "Medium", 10).payload.impact.uncertainty
        second = ScenarioAgent().simulate(snapshot, "WeatherEvent", "Medium", 10).payload.impact.uncertainty
        assert first == second

    def test_fixed_intensity_collapses_band(self, snapshot):
        agent = ScenarioAgent(policy=ScenarioPolicy(intensity_low=1.0, intensity_high=1.0, uncertainty_iterations=50))
        impact = agent.simulate(snapshot, "PortClosure", "High", 30).payload.impact
        band = impact.uncertainty
        assert band.revenue_impact_p10.amount == pytest.approx(impact.revenue_impact.amount, abs=0.01)
        assert band.revenue_impact_p90.amount == pytest.approx(impact.revenue_impact.amount, abs=0.01)
        assert band.delivery_delay_p10_days == pytest.approx(impact.delivery_delay_days, abs=0.01)


class TestTimelineAndMitigations:

    def test_five_phases_span_duration(self, agent, snapshot):
        timeline = agent.simulate(snapshot, "PortClosure", "High", 30).payload.timeline
        assert [t.phase for t in timeline] == list(ScenarioPhase)
        assert timeline[0].day_offset == 0
        assert timeline[-1].day_offset == 30
        offsets = [t.day_offset for t in timeline]
        assert offsets == sorted(offsets)

    def test_mitigations_ranked(self, agent, snapshot):
        mitigations = agent.simulate(snapshot, "LaborShortage", "High", 14).payload.mitigations
        assert 1 <= len(mitigations) <= 3
        assert [m.rank for m in mitigations] == list(range(1, len(mitigations) + 1))
        scores = [m.score for m in mitigations]
        assert scores == sorted(scores, reverse=True)

    def test_confidence_bounded(self, agent, snapshot):
        short = agent.simulate(snapshot, "QualityIssue", "Low", 1)
        long = agent.simulate(snapshot, "QualityIssue", "Critical", 365)
        assert 0.5 <= long.confidence_score < short.confidence_score <= 0.95

    def test_run_accepts_request_model(self, agent, snapshot):
        request = ScenarioRequest(scenario_type="TransportationDelay", severity="Low", duration_days=5)
        envelope = agent.run(snapshot, request)
        assert envelope.agent_name == "scenario_agent"
        assert envelope.payload.duration_days == 5.0
        assert envelope.state_version == snapshot.state_version

    def test_deterministic(self, agent, snapshot):
        a = agent.simulate(snapshot, "PortClosure", "High", 30).payload
        b = agent.simulate(snapshot, "PortClosure", "High", 30).payload
        assert a == b


def test_healthy_network_still_loses_revenue(snapshot):
    impact = ScenarioAgent().simulate(all_healthy(snapshot), "PortClosure", "Low", 3).payload.impact
    assert impact.revenue_impact.amount > 0
