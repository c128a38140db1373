from datetime import datetime
from typing import Any, Dict, Generic, List, Literal, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

from app.constants import (
    MAX_CAPACITY_UNITS,
    MAX_NODE_COUNT,
    MIN_CAPACITY_UNITS,
    MIN_NODE_COUNT,
    SHIPPING_ORDER,
    AnomalyCause,
    Currency,
    EsgCategory,
    Industry,
    NetworkHealth,
    NodeStatus,
    NodeType,
    Priority,
    Region,
    RiskProfile,
    ScenarioPhase,
    ScenarioType,
    SensorType,
    Severity,
    ShippingMethod,
    Weakness,
)
from app.errors import InvalidConfiguration


class SchemaModel(BaseModel):
    """camelCase on the wire, snake_case in Python, immutable once built."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ── Configuration ─────────────────────────────────────────────────────────────

class SupplyChainConfig(SchemaModel):
    region: Region
    industry: Industry
    currency: Currency
    shipping_methods: Tuple[ShippingMethod, ...] = Field(min_length=1)
    node_count: int = Field(ge=MIN_NODE_COUNT, le=MAX_NODE_COUNT)
    risk_profile: RiskProfile

    @field_validator("shipping_methods", mode="before")
    @classmethod
    def _listify_methods(cls, v):
        if isinstance(v, (set, frozenset)):
            return list(v)
        return v

    @field_validator("shipping_methods")
    @classmethod
    def _canonical_methods(cls, v):
        """Treat methods as a set: de-duplicate and keep canonical order."""
        chosen = set(v)
        return tuple(m for m in SHIPPING_ORDER if m in chosen)

    @classmethod
    def from_payload(cls, data: Any) -> "SupplyChainConfig":
        """Build a configuration, translating validation failures to InvalidConfiguration."""
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            messages = [
                f"{'.'.join(str(p) for p in err['loc']) or 'configuration'}: {err['msg']}"
                for err in exc.errors()
            ]
            raise InvalidConfiguration(errors=messages) from exc


# ── Nodes ─────────────────────────────────────────────────────────────────────

class Location(SchemaModel):
    name: str
    country: str
    region: Region
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class SupplierDetails(SchemaModel):
    kind: Literal["supplier"] = "supplier"
    company_name: str
    contact_person: str
    email: str
    phone: str
    certifications: Tuple[str, ...] = ()
    lead_time_days: int


class FactoryDetails(SchemaModel):
    kind: Literal["factory"] = "factory"
    production_capacity_units_per_month: int
    workforce_size: int
    operating_hours: str
    certifications: Tuple[str, ...] = ()


class WarehouseDetails(SchemaModel):
    kind: Literal["warehouse"] = "warehouse"
    storage_type: str
    temperature_controlled: bool
    security_level: str
    handling_capacity_pallets_per_day: int


class DistributionDetails(SchemaModel):
    kind: Literal["distribution"] = "distribution"
    coverage_area: str
    fleet_size: int
    delivery_speed: str


class RetailerDetails(SchemaModel):
    kind: Literal["retailer"] = "retailer"
    store_count: int
    sales_channels: Tuple[str, ...]
    customer_base_millions: float


TypeDetails = Annotated[
    Union[SupplierDetails, FactoryDetails, WarehouseDetails, DistributionDetails, RetailerDetails],
    Field(discriminator="kind"),
]


class SupplyChainNode(SchemaModel):
    id: str
    name: str
    type: NodeType
    location: Location
    capacity_units: int = Field(ge=MIN_CAPACITY_UNITS, le=MAX_CAPACITY_UNITS)
    inventory_units: int = Field(ge=0)
    utilization_pct: float = Field(ge=0, le=100)
    status: NodeStatus
    temperature_c: Optional[float] = None
    delay_days: Optional[float] = None
    merged_stages: Tuple[NodeType, ...] = ()
    type_details: TypeDetails
    last_updated: datetime

    @property
    def stages(self) -> Tuple[NodeType, ...]:
        return self.merged_stages or (self.type,)

    @property
    def has_active_delay(self) -> bool:
        return self.delay_days is not None and self.delay_days > 0


class NetworkSnapshot(SchemaModel):
    """One fully-formed Network State; never mutated after publication."""

    nodes: Tuple[SupplyChainNode, ...]
    configuration: SupplyChainConfig
    state_version: int
    tick_count: int = 0
    last_updated: datetime

    def node(self, node_id: str) -> Optional[SupplyChainNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    @property
    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]


class NetworkStateView(SchemaModel):
    nodes: Tuple[SupplyChainNode, ...]
    state_version: int
    tick_count: int
    last_updated: datetime
    count: int


class ConfigurationAccepted(SchemaModel):
    accepted: bool
    state_version: int
    configuration: SupplyChainConfig


class TickResult(SchemaModel):
    committed: bool
    state_version: int
    tick_count: int


class SensorEvent(SchemaModel):
    node_id: str
    timestamp: datetime
    sensor_type: SensorType
    value: float
    is_anomaly: bool
    severity: NodeStatus
    previous_status: Optional[NodeStatus] = None


class SensorEventLog(SchemaModel):
    events: Tuple[SensorEvent, ...]
    count: int


# ── Result Envelope ───────────────────────────────────────────────────────────

PayloadT = TypeVar("PayloadT")


class ResultEnvelope(SchemaModel, Generic[PayloadT]):
    agent_name: str
    generated_at: datetime
    confidence_score: float = Field(ge=0.0, le=1.0)
    state_version: int
    tick_count: int
    payload: PayloadT


class Money(SchemaModel):
    amount: float
    currency: Currency


# ── Info Agent ────────────────────────────────────────────────────────────────

class MetricSnapshot(SchemaModel):
    utilization_pct: float
    capacity_units: int
    inventory_units: int
    temperature_c: Optional[float] = None
    delay_days: Optional[float] = None


class Anomaly(SchemaModel):
    node_id: str
    node_name: str
    node_type: NodeType
    severity: NodeStatus
    cause: AnomalyCause
    hypothesis: str
    metrics: MetricSnapshot


class InfoSummary(SchemaModel):
    total_nodes: int
    healthy: int
    warning: int
    critical: int
    label: NetworkHealth
    region: Region
    industry: Industry


class Recommendation(SchemaModel):
    cause: AnomalyCause
    action: str
    node_ids: Tuple[str, ...]
    priority: Priority


class InfoPayload(SchemaModel):
    anomalies: Tuple[Anomaly, ...]
    summary: InfoSummary
    recommendations: Tuple[Recommendation, ...]


# ── Scenario Agent ────────────────────────────────────────────────────────────

class ScenarioRequest(SchemaModel):
    scenario_type: str
    severity: str = Severity.MEDIUM.value
    duration_days: float
    affected_node_ids: List[str] = []


class ImpactUncertainty(SchemaModel):
    """10th and 90th percentiles over randomised disruption intensity."""
    iterations: int
    revenue_impact_p10: Money
    revenue_impact_p90: Money
    delivery_delay_p10_days: float
    delivery_delay_p90_days: float


class ScenarioImpact(SchemaModel):
    revenue_impact: Money
    cost_increase: Money
    delivery_delay_days: float
    customer_satisfaction_pct: float = Field(ge=0, le=100)
    affected_node_count: int
    affected_node_ids: Tuple[str, ...]
    downstream_node_ids: Tuple[str, ...]
    inventory_impact_units: int
    compounding_penalty: float
    redundancy_multiplier: float
    uncertainty: ImpactUncertainty


class TimelineEntry(SchemaModel):
    phase: ScenarioPhase
    day_offset: float
    description: str


class MitigationSuggestion(SchemaModel):
    rank: int
    strategy: str
    score: float
    estimated_cost: Money
    priority: Priority
    rationale: str


class ScenarioPayload(SchemaModel):
    scenario_type: ScenarioType
    severity: Severity
    duration_days: float
    impact: ScenarioImpact
    timeline: Tuple[TimelineEntry, ...]
    mitigations: Tuple[MitigationSuggestion, ...]


# ── Strategy Agent ────────────────────────────────────────────────────────────

class StrategyPreferences(SchemaModel):
    prioritize_cost: bool = False
    prioritize_risk: bool = False
    prioritize_sustainability: bool = False

    @property
    def is_set(self) -> bool:
        return self.prioritize_cost or self.prioritize_risk or self.prioritize_sustainability


class TradeoffWeights(SchemaModel):
    cost: float
    risk: float
    sustainability: float


class ExpectedBenefit(SchemaModel):
    description: str
    utilization_delta_pct: float
    availability_delta_pct: float


class Strategy(SchemaModel):
    name: str
    priority: Priority
    timeframe: str
    estimated_cost: Money
    expected_benefit: ExpectedBenefit
    action_items: Tuple[str, ...]
    score: float
    addresses: Weakness
    target_node_ids: Tuple[str, ...] = ()
    risk_reduction: float = Field(ge=0, le=1)
    sustainability_impact_tco2e: float
    composite_score: float = Field(ge=0, le=1)


class TradeoffPoint(SchemaModel):
    strategy: str
    estimated_cost: Money
    risk_reduction: float
    sustainability_impact_tco2e: float
    composite_score: float


class HealthAssessment(SchemaModel):
    score: float = Field(ge=0, le=100)
    healthy_fraction: float
    average_utilization_pct: float
    shipping_method_count: int
    risk_profile: RiskProfile
    weaknesses: Dict[Weakness, float]
    dominant_weakness: Weakness


class StrategyPayload(SchemaModel):
    health: HealthAssessment
    strategies: Tuple[Strategy, ...]
    weights: TradeoffWeights
    ranked_by: Literal["score", "preferences"] = "score"
    tradeoffs: Tuple[TradeoffPoint, ...] = ()


# ── Impact Agent ──────────────────────────────────────────────────────────────

class EnvironmentalMetrics(SchemaModel):
    score: float
    carbon_intensity: float
    carbon_footprint_tco2e: float
    emissions_by_mode: Dict[ShippingMethod, float]
    low_carbon_share_pct: float
    high_carbon_share_pct: float
    energy_efficiency_pct: float
    renewable_energy_pct: float


class SocialMetrics(SchemaModel):
    score: float
    average_utilization_pct: float
    overwork_index: float
    disruption_index: float
    workforce_size: int
    nodes_over_90_pct: int


class GovernanceMetrics(SchemaModel):
    score: float
    risk_profile: RiskProfile
    certification_coverage_pct: float
    uncertified_node_ids: Tuple[str, ...]
    supplier_audits_per_year: int


class EsgRecommendation(SchemaModel):
    category: EsgCategory
    score: float
    threshold: float
    recommendation: str
    actions: Tuple[str, ...]


class ImpactPayload(SchemaModel):
    environmental: EnvironmentalMetrics
    social: SocialMetrics
    governance: GovernanceMetrics
    recommendations: Tuple[EsgRecommendation, ...]


# ── Orchestrator ──────────────────────────────────────────────────────────────

class OrchestratedRun(SchemaModel):
    state_version: int
    tick_count: int
    started_at: datetime
    completed_at: datetime
    info: ResultEnvelope[InfoPayload]
    strategy: ResultEnvelope[StrategyPayload]
    impact: ResultEnvelope[ImpactPayload]
    scenario: Optional[ResultEnvelope[ScenarioPayload]] = None


class OrchestratorStatus(SchemaModel):
    status: str
    active_agents: List[str]
    last_run_at: Optional[datetime]
    runs_completed: int
    decisions_logged: int
    state_version: Optional[int]
    system_health: str
