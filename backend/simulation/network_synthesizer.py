"""
Supply-chain network synthesizer.

Turns a SupplyChainConfig into an ordered sequence of nodes laid out along
the canonical chain

    Supplier → Manufacturer → Warehouse → Distributor → Retailer

Key synthesis rules
───────────────────
  Locations     : region table, fixed order, "#2"-style suffix on repeats
  Stage layout  : ≥5 nodes → every type present; 3–4 nodes → adjacent
                  stages merged into one node
  Status mix    : P(Healthy) by risk profile (Low .90 / Medium .70 /
                  High .40), remainder split evenly Warning / Critical
  Capacity      : integer units in [500, 2000]
  Randomness    : a single numpy Generator; identical (config, seed)
                  yields identical nodes
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from app.config import settings
from app.constants import (
    CHAIN_ORDER,
    COLD_CHAIN_INDUSTRIES,
    MAX_CAPACITY_UNITS,
    MIN_CAPACITY_UNITS,
    Industry,
    NodeStatus,
    NodeType,
    Region,
    RiskProfile,
)
from app.schemas import (
    DistributionDetails,
    FactoryDetails,
    Location,
    RetailerDetails,
    SupplierDetails,
    SupplyChainConfig,
    SupplyChainNode,
    WarehouseDetails,
)
from simulation.network_analytics import derive_status

logger = logging.getLogger(__name__)


# ── Region location registry ────────────────────────────────────────────────
# Ordered: the first N entries are used for an N-node network.

REGION_LOCATIONS: Dict[Region, List[Dict[str, Any]]] = {
    Region.ASIA_PACIFIC: [
        {"name": "Shanghai",    "country": "China",       "lat": 31.2304, "lon": 121.4737},
        {"name": "Shenzhen",    "country": "China",       "lat": 22.5431, "lon": 114.0579},
        {"name": "Singapore",   "country": "Singapore",   "lat":  1.3521, "lon": 103.8198},
        {"name": "Tokyo",       "country": "Japan",       "lat": 35.6762, "lon": 139.6503},
        {"name": "Seoul",       "country": "South Korea", "lat": 37.5665, "lon": 126.9780},
        {"name": "Mumbai",      "country": "India",       "lat": 19.0760, "lon":  72.8777},
    ],
    Region.NORTH_AMERICA: [
        {"name": "Los Angeles", "country": "USA",         "lat": 33.7701, "lon": -118.1937},
        {"name": "New York",    "country": "USA",         "lat": 40.7128, "lon":  -74.0060},
        {"name": "Chicago",     "country": "USA",         "lat": 41.8781, "lon":  -87.6298},
        {"name": "Toronto",     "country": "Canada",      "lat": 43.6532, "lon":  -79.3832},
        {"name": "Mexico City", "country": "Mexico",      "lat": 19.4326, "lon":  -99.1332},
    ],
    Region.EUROPE: [
        {"name": "London",      "country": "UK",          "lat": 51.5074, "lon":  -0.1278},
        {"name": "Rotterdam",   "country": "Netherlands", "lat": 51.9225, "lon":   4.4792},
        {"name": "Hamburg",     "country": "Germany",     "lat": 53.5511, "lon":   9.9937},
        {"name": "Paris",       "country": "France",      "lat": 48.8566, "lon":   2.3522},
        {"name": "Barcelona",   "country": "Spain",       "lat": 41.3851, "lon":   2.1734},
    ],
    Region.LATIN_AMERICA: [
        {"name": "São Paulo",   "country": "Brazil",      "lat": -23.5505, "lon": -46.6333},
        {"name": "Buenos Aires", "country": "Argentina",  "lat": -34.6037, "lon": -58.3816},
        {"name": "Santiago",    "country": "Chile",       "lat": -33.4489, "lon": -70.6693},
        {"name": "Lima",        "country": "Peru",        "lat": -12.0464, "lon": -77.0428},
    ],
    Region.MIDDLE_EAST: [
        {"name": "Dubai",       "country": "UAE",          "lat": 25.2048, "lon": 55.2708},
        {"name": "Riyadh",      "country": "Saudi Arabia", "lat": 24.7136, "lon": 46.6753},
        {"name": "Tel Aviv",    "country": "Israel",       "lat": 32.0853, "lon": 34.7818},
        {"name": "Istanbul",    "country": "Turkey",       "lat": 41.0082, "lon": 28.9784},
    ],
}

NODE_TYPE_NAMES: Dict[NodeType, List[str]] = {
    NodeType.SUPPLIER:     ["Raw Materials Co.", "Components Supply", "Materials Ltd.", "Supply Corp."],
    NodeType.MANUFACTURER: ["Assembly Plant", "Manufacturing Hub", "Production Facility", "Factory"],
    NodeType.WAREHOUSE:    ["Warehouse", "Storage Facility", "Fulfilment Center", "Logistics Hub"],
    NodeType.DISTRIBUTOR:  ["Distribution Hub", "Regional Distributor", "Logistics Center", "Distribution Network"],
    NodeType.RETAILER:     ["Retail Network", "Store Chain", "Retail Hub", "Consumer Outlet"],
}

SUPPLIER_CERTIFICATIONS: Dict[Industry, Tuple[str, ...]] = {
    Industry.ELECTRONICS:     ("ISO 9001", "ISO 14001", "RoHS"),
    Industry.AUTOMOTIVE:      ("ISO 9001", "IATF 16949", "ISO 14001"),
    Industry.PHARMACEUTICALS: ("ISO 9001", "GMP", "GDP"),
    Industry.FOOD_BEVERAGE:   ("ISO 22000", "HACCP", "FSSC 22000"),
    Industry.FASHION:         ("ISO 9001", "OEKO-TEX", "SA8000"),
    Industry.CHEMICALS:       ("ISO 9001", "ISO 14001", "Responsible Care"),
}
FACTORY_CERTIFICATIONS: Tuple[str, ...] = ("ISO 9001", "ISO 14001", "ISO 45001")

FIRST_NAMES = ["Wei", "Li", "John", "Maria", "Ahmed", "Yuki", "Hans", "Pierre"]
LAST_NAMES = ["Chen", "Wang", "Smith", "Garcia", "Al-Rashid", "Tanaka", "Schmidt", "Dubois"]

COUNTRY_DIAL_CODES = {
    "China": "+86", "Singapore": "+65", "Japan": "+81", "South Korea": "+82", "India": "+91",
    "USA": "+1", "Canada": "+1", "Mexico": "+52", "UK": "+44", "Netherlands": "+31",
    "Germany": "+49", "France": "+33", "Spain": "+34", "Brazil": "+55", "Argentina": "+54",
    "Chile": "+56", "Peru": "+51", "UAE": "+971", "Saudi Arabia": "+966", "Israel": "+972",
    "Turkey": "+90",
}

# Extra node types appended (in this order) once every stage has one node
_EXTRA_TYPE_CYCLE = [
    NodeType.SUPPLIER,
    NodeType.WAREHOUSE,
    NodeType.DISTRIBUTOR,
    NodeType.MANUFACTURER,
    NodeType.RETAILER,
    NodeType.WAREHOUSE,
    NodeType.SUPPLIER,
]

_SMALL_LAYOUTS: Dict[int, List[Tuple[NodeType, ...]]] = {
    3: [
        (NodeType.SUPPLIER,),
        (NodeType.MANUFACTURER, NodeType.WAREHOUSE),
        (NodeType.DISTRIBUTOR, NodeType.RETAILER),
    ],
    4: [
        (NodeType.SUPPLIER,),
        (NodeType.MANUFACTURER,),
        (NodeType.WAREHOUSE,),
        (NodeType.DISTRIBUTOR, NodeType.RETAILER),
    ],
}


# ── Policy ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SynthesisPolicy:
    healthy_probability_low:    float = 0.90
    healthy_probability_medium: float = 0.70
    healthy_probability_high:   float = 0.40
    # Probability that a supplier / factory publishes its certifications
    certification_coverage_low:    float = 0.95
    certification_coverage_medium: float = 0.80
    certification_coverage_high:   float = 0.55
    # Share of Warning / Critical draws that land in the low-utilization band
    low_band_share: float = 0.75

    @classmethod
    def from_settings(cls) -> "SynthesisPolicy":
        return cls(
            healthy_probability_low=settings.HEALTHY_PROBABILITY_LOW,
            healthy_probability_medium=settings.HEALTHY_PROBABILITY_MEDIUM,
            healthy_probability_high=settings.HEALTHY_PROBABILITY_HIGH,
            certification_coverage_low=settings.CERTIFICATION_COVERAGE_LOW,
            certification_coverage_medium=settings.CERTIFICATION_COVERAGE_MEDIUM,
            certification_coverage_high=settings.CERTIFICATION_COVERAGE_HIGH,
        )

    def healthy_probability(self, risk: RiskProfile) -> float:
        return {
            RiskProfile.LOW: self.healthy_probability_low,
            RiskProfile.MEDIUM: self.healthy_probability_medium,
            RiskProfile.HIGH: self.healthy_probability_high,
        }[risk]

    def certification_coverage(self, risk: RiskProfile) -> float:
        return {
            RiskProfile.LOW: self.certification_coverage_low,
            RiskProfile.MEDIUM: self.certification_coverage_medium,
            RiskProfile.HIGH: self.certification_coverage_high,
        }[risk]


# ── Layout helpers ──────────────────────────────────────────────────────────

def stage_layout(node_count: int) -> List[Tuple[NodeType, ...]]:
    """Stages carried by each node, in chain order."""
    if node_count in _SMALL_LAYOUTS:
        return list(_SMALL_LAYOUTS[node_count])

    types = list(CHAIN_ORDER)
    extras = node_count - len(types)
    for i in range(extras):
        types.append(_EXTRA_TYPE_CYCLE[i % len(_EXTRA_TYPE_CYCLE)])
    types.sort(key=CHAIN_ORDER.index)
    return [(t,) for t in types]


def pick_locations(region: Region, node_count: int) -> List[Location]:
    table = REGION_LOCATIONS[region]
    picked = []
    for i in range(node_count):
        entry = table[i % len(table)]
        lap = i // len(table)
        name = entry["name"] if lap == 0 else f"{entry['name']} #{lap + 1}"
        picked.append(Location(
            name=name,
            country=entry["country"],
            region=region,
            latitude=entry["lat"],
            longitude=entry["lon"],
        ))
    return picked


# ── Synthesizer ─────────────────────────────────────────────────────────────

class NetworkSynthesizer:
    """
    Generates a fresh node sequence for a configuration.

    All randomness is drawn from one numpy Generator in a fixed order that
    depends only on region, industry, node count and risk profile.
    """

    def __init__(self, policy: Optional[SynthesisPolicy] = None):
        self.policy = policy or SynthesisPolicy.from_settings()

    # ── Public interface ─────────────────────────────────────────────────────

    def synthesize(
        self,
        config: SupplyChainConfig,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
        generated_at: Optional[datetime] = None,
    ) -> List[SupplyChainNode]:
        config = SupplyChainConfig.from_payload(config)
        rng = rng if rng is not None else np.random.default_rng(seed)
        now = generated_at or datetime.now(timezone.utc)

        layout = stage_layout(config.node_count)
        locations = pick_locations(config.region, config.node_count)

        nodes = [
            self._build_node(i, stages, location, config, rng, now)
            for i, (stages, location) in enumerate(zip(layout, locations))
        ]

        counts = {s: sum(1 for n in nodes if n.status == s) for s in NodeStatus}
        logger.debug(
            f"Synthesised {len(nodes)} nodes for {config.region.value}/{config.industry.value} "
            f"(risk={config.risk_profile.value}): "
            + ", ".join(f"{s.value}={c}" for s, c in counts.items())
        )
        return nodes

    # ── Node assembly ───────────────────────────────────────────────────────

    def _build_node(
        self,
        index: int,
        stages: Tuple[NodeType, ...],
        location: Location,
        config: SupplyChainConfig,
        rng: np.random.Generator,
        now: datetime,
    ) -> SupplyChainNode:
        node_type = stages[0]
        is_distributor = node_type == NodeType.DISTRIBUTOR

        target = self._draw_target_status(config.risk_profile, rng)
        utilization, delay = self._draw_operating_point(target, is_distributor, rng)
        capacity = int(rng.integers(MIN_CAPACITY_UNITS, MAX_CAPACITY_UNITS + 1))
        temperature = self._draw_temperature(stages, config.industry, rng)
        label = NODE_TYPE_NAMES[node_type][int(rng.integers(len(NODE_TYPE_NAMES[node_type])))]
        details = self._build_details(node_type, location, config, rng)

        return SupplyChainNode(
            id=f"node-{index + 1:02d}",
            name=f"{location.name} {label}",
            type=node_type,
            location=location,
            capacity_units=capacity,
            inventory_units=int(round(capacity * utilization / 100.0)),
            utilization_pct=utilization,
            status=derive_status(utilization, delay),
            temperature_c=temperature,
            delay_days=delay,
            merged_stages=stages if len(stages) > 1 else (),
            type_details=details,
            last_updated=now,
        )

    def _draw_target_status(self, risk: RiskProfile, rng: np.random.Generator) -> NodeStatus:
        p_healthy = self.policy.healthy_probability(risk)
        p_other = (1.0 - p_healthy) / 2.0
        draw = rng.random()
        if draw < p_healthy:
            return NodeStatus.HEALTHY
        if draw < p_healthy + p_other:
            return NodeStatus.WARNING
        return NodeStatus.CRITICAL

    def _draw_operating_point(
        self, target: NodeStatus, is_distributor: bool, rng: np.random.Generator
    ) -> Tuple[float, Optional[float]]:
        """Utilization (and distributor delay) landing inside the target status band."""
        band_draw = rng.random()
        low_band = band_draw < self.policy.low_band_share

        if target == NodeStatus.HEALTHY:
            utilization = rng.uniform(60.0, 95.0)
            delay = 0.0 if is_distributor else None
        elif target == NodeStatus.WARNING:
            if is_distributor and band_draw >= 0.6:
                # Healthy-band throughput held back by a shipment delay
                utilization = rng.uniform(60.0, 95.0)
            elif low_band:
                utilization = rng.uniform(40.0, 59.9)
            else:
                utilization = rng.uniform(95.1, 98.0)
            delay = round(float(rng.uniform(1.0, 7.0)), 1) if is_distributor else None
        else:
            if low_band:
                utilization = rng.uniform(10.0, 39.9)
            else:
                utilization = rng.uniform(98.1, 100.0)
            delay = round(float(rng.uniform(1.0, 7.0)), 1) if is_distributor else None

        return round(float(utilization), 1), delay

    def _draw_temperature(
        self, stages: Sequence[NodeType], industry: Industry, rng: np.random.Generator
    ) -> Optional[float]:
        cold_chain = industry in COLD_CHAIN_INDUSTRIES
        after_manufacturing = any(
            CHAIN_ORDER.index(s) > CHAIN_ORDER.index(NodeType.MANUFACTURER) for s in stages
        )
        if cold_chain and after_manufacturing:
            return round(float(rng.uniform(2.5, 8.0)), 1)
        if NodeType.WAREHOUSE in stages:
            return round(float(rng.uniform(15.0, 25.0)), 1)
        return None

    # ── Type details ────────────────────────────────────────────────────────

    def _build_details(
        self,
        node_type: NodeType,
        location: Location,
        config: SupplyChainConfig,
        rng: np.random.Generator,
    ):
        city = location.name.split(" #")[0]
        coverage = self.policy.certification_coverage(config.risk_profile)

        if node_type == NodeType.SUPPLIER:
            certified = rng.random() < coverage
            first = FIRST_NAMES[int(rng.integers(len(FIRST_NAMES)))]
            last = LAST_NAMES[int(rng.integers(len(LAST_NAMES)))]
            label = NODE_TYPE_NAMES[NodeType.SUPPLIER][int(rng.integers(4))]
            return SupplierDetails(
                company_name=f"{city} {label}",
                contact_person=f"{first} {last}",
                email=f"contact@{city.lower().replace(' ', '')}.com",
                phone=self._phone_number(location.country, rng),
                certifications=SUPPLIER_CERTIFICATIONS[config.industry] if certified else (),
                lead_time_days=int(rng.integers(7, 21)),
            )

        if node_type == NodeType.MANUFACTURER:
            certified = rng.random() < coverage
            return FactoryDetails(
                production_capacity_units_per_month=int(rng.integers(10_000, 100_001)),
                workforce_size=int(rng.integers(100, 1_001)),
                operating_hours="24/7 (3 shifts)",
                certifications=FACTORY_CERTIFICATIONS if certified else (),
            )

        if node_type == NodeType.WAREHOUSE:
            if config.industry in COLD_CHAIN_INDUSTRIES:
                storage, controlled = "Temperature-Controlled", True
            elif config.industry == Industry.CHEMICALS:
                storage, controlled = "Hazmat-Rated", False
            else:
                storage, controlled = "Ambient Racking", False
            high_security = config.industry in (Industry.ELECTRONICS, Industry.PHARMACEUTICALS)
            return WarehouseDetails(
                storage_type=storage,
                temperature_controlled=controlled,
                security_level="High (24/7 surveillance)" if high_security else "Standard",
                handling_capacity_pallets_per_day=int(rng.integers(100, 501)),
            )

        if node_type == NodeType.DISTRIBUTOR:
            return DistributionDetails(
                coverage_area=f"{city} Region",
                fleet_size=int(rng.integers(20, 201)),
                delivery_speed="1-3 business days",
            )

        return RetailerDetails(
            store_count=int(rng.integers(10, 101)),
            sales_channels=("Physical Stores", "E-commerce", "Mobile App"),
            customer_base_millions=round(float(rng.uniform(0.5, 5.5)), 1),
        )

    @staticmethod
    def _phone_number(country: str, rng: np.random.Generator) -> str:
        code = COUNTRY_DIAL_CODES.get(country, "+1")
        return f"{code} {int(rng.integers(100, 1000))} {int(rng.integers(1000, 10000))}"


def synthesize(
    config: Any,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    policy: Optional[SynthesisPolicy] = None,
) -> List[SupplyChainNode]:
    """Convenience wrapper: synthesize(config, seed) → nodes."""
    return NetworkSynthesizer(policy).synthesize(config, seed=seed, rng=rng)
