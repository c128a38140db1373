import re
from enum import Enum


def _normalise(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", str(value).lower())


class LabelEnum(str, Enum):
    """
    String enum that also accepts slug / lower-case spellings of its labels,
    e.g. "asia-pacific" or "food-beverage" as sent by the dashboard form.
    """

    @classmethod
    def _aliases(cls) -> dict:
        return {}

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        key = _normalise(value)
        for member in cls:
            if _normalise(member.value) == key:
                return member
        return cls._aliases().get(key)


class Region(LabelEnum):
    ASIA_PACIFIC = "Asia-Pacific"
    NORTH_AMERICA = "North America"
    EUROPE = "Europe"
    LATIN_AMERICA = "Latin America"
    MIDDLE_EAST = "Middle East"


class Industry(LabelEnum):
    ELECTRONICS = "Electronics"
    AUTOMOTIVE = "Automotive"
    PHARMACEUTICALS = "Pharmaceuticals"
    FOOD_BEVERAGE = "Food&Beverage"
    FASHION = "Fashion"
    CHEMICALS = "Chemicals"

    @classmethod
    def _aliases(cls) -> dict:
        return {"foodbeverage": cls.FOOD_BEVERAGE, "foodandbeverage": cls.FOOD_BEVERAGE}


class Currency(LabelEnum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CNY = "CNY"
    JPY = "JPY"


class ShippingMethod(LabelEnum):
    SEA = "Sea"
    AIR = "Air"
    RAIL = "Rail"
    TRUCK = "Truck"
    EXPRESS = "Express"

    @classmethod
    def _aliases(cls) -> dict:
        return {
            "seafreight": cls.SEA,
            "airfreight": cls.AIR,
            "expressdelivery": cls.EXPRESS,
        }


class RiskProfile(LabelEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class NodeType(LabelEnum):
    SUPPLIER = "Supplier"
    MANUFACTURER = "Manufacturer"
    WAREHOUSE = "Warehouse"
    DISTRIBUTOR = "Distributor"
    RETAILER = "Retailer"


class NodeStatus(LabelEnum):
    HEALTHY = "Healthy"
    WARNING = "Warning"
    CRITICAL = "Critical"


class NetworkHealth(LabelEnum):
    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    CRITICAL = "Critical"


class AnomalyCause(LabelEnum):
    DEMAND_SHORTFALL = "demand_shortfall"
    CAPACITY_CONSTRAINT = "capacity_constraint"
    LOGISTICS_DELAY = "logistics_delay"
    UNDERUTILIZATION = "underutilization"
    NEAR_CAPACITY = "near_capacity"


class ScenarioType(LabelEnum):
    PORT_CLOSURE = "PortClosure"
    SUPPLIER_DISRUPTION = "SupplierDisruption"
    DEMAND_SPIKE = "DemandSpike"
    WEATHER_EVENT = "WeatherEvent"
    TRANSPORTATION_DELAY = "TransportationDelay"
    QUALITY_ISSUE = "QualityIssue"
    CYBER_ATTACK = "CyberAttack"
    LABOR_SHORTAGE = "LaborShortage"
    GEOPOLITICAL = "Geopolitical"


class Severity(LabelEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class ScenarioPhase(LabelEnum):
    ONSET = "Onset"
    DETECTION = "Detection"
    ESCALATION = "Escalation"
    RESPONSE = "Response"
    RECOVERY = "Recovery"


class Priority(LabelEnum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Weakness(LabelEnum):
    SUPPLIER_CONCENTRATION = "supplier_concentration"
    INVENTORY_IMBALANCE = "inventory_imbalance"
    SHIPPING_DIVERSITY = "shipping_diversity"
    CAPACITY_PRESSURE = "capacity_pressure"
    LOGISTICS_DELAY = "logistics_delay"
    REGIONAL_RISK = "regional_risk"


class EsgCategory(LabelEnum):
    ENVIRONMENTAL = "environmental"
    SOCIAL = "social"
    GOVERNANCE = "governance"


class SensorType(LabelEnum):
    STATUS = "status"
    TEMPERATURE = "temperature"
    DELAY = "delay"


class AgentName(str, Enum):
    ORCHESTRATOR = "orchestrator"
    INFO = "info_agent"
    SCENARIO = "scenario_agent"
    STRATEGY = "strategy_agent"
    IMPACT = "impact_agent"


# Canonical chain order; a node never feeds a stage earlier than its own.
CHAIN_ORDER = [
    NodeType.SUPPLIER,
    NodeType.MANUFACTURER,
    NodeType.WAREHOUSE,
    NodeType.DISTRIBUTOR,
    NodeType.RETAILER,
]

SHIPPING_ORDER = [
    ShippingMethod.SEA,
    ShippingMethod.AIR,
    ShippingMethod.RAIL,
    ShippingMethod.TRUCK,
    ShippingMethod.EXPRESS,
]

MIN_NODE_COUNT = 3
MAX_NODE_COUNT = 12
MIN_CAPACITY_UNITS = 500
MAX_CAPACITY_UNITS = 2000

# Status bands (utilization %)
CRITICAL_LOW_UTILIZATION = 40.0
CRITICAL_HIGH_UTILIZATION = 98.0
HEALTHY_MIN_UTILIZATION = 60.0
HEALTHY_MAX_UTILIZATION = 95.0

# Cold-chain alarm band (°C)
TEMPERATURE_ALARM_LOW = 2.0
TEMPERATURE_ALARM_HIGH = 28.0

COLD_CHAIN_INDUSTRIES = {Industry.PHARMACEUTICALS, Industry.FOOD_BEVERAGE}

# Units of local currency per USD (fixed demo table)
CURRENCY_RATES = {
    Currency.USD: 1.0,
    Currency.EUR: 0.92,
    Currency.GBP: 0.79,
    Currency.CNY: 7.20,
    Currency.JPY: 150.0,
}

# kg CO2e per tonne-km by mode
EMISSION_FACTORS = {
    ShippingMethod.AIR: 0.602,
    ShippingMethod.EXPRESS: 0.500,
    ShippingMethod.TRUCK: 0.105,
    ShippingMethod.RAIL: 0.028,
    ShippingMethod.SEA: 0.016,
}

# Industry baseline emission multipliers
INDUSTRY_EMISSION_BASELINE = {
    Industry.ELECTRONICS: 1.0,
    Industry.AUTOMOTIVE: 1.3,
    Industry.PHARMACEUTICALS: 0.9,
    Industry.FOOD_BEVERAGE: 1.1,
    Industry.FASHION: 1.2,
    Industry.CHEMICALS: 1.6,
}

# Revenue per unit of throughput per day (USD)
INDUSTRY_UNIT_REVENUE = {
    Industry.ELECTRONICS: 42.0,
    Industry.AUTOMOTIVE: 55.0,
    Industry.PHARMACEUTICALS: 68.0,
    Industry.FOOD_BEVERAGE: 12.0,
    Industry.FASHION: 18.0,
    Industry.CHEMICALS: 30.0,
}

SEVERITY_MULTIPLIERS = {
    Severity.LOW: 0.5,
    Severity.MEDIUM: 1.0,
    Severity.HIGH: 2.0,
    Severity.CRITICAL: 4.0,
}

# (cost, time, inventory) factors per disruption
SCENARIO_FACTORS = {
    ScenarioType.PORT_CLOSURE: (1.8, 2.5, 1.5),
    ScenarioType.SUPPLIER_DISRUPTION: (2.0, 1.5, 3.0),
    ScenarioType.DEMAND_SPIKE: (1.0, 1.0, 4.0),
    ScenarioType.WEATHER_EVENT: (1.5, 2.0, 1.5),
    ScenarioType.TRANSPORTATION_DELAY: (1.5, 3.0, 1.5),
    ScenarioType.QUALITY_ISSUE: (2.5, 2.0, 2.5),
    ScenarioType.CYBER_ATTACK: (4.0, 2.0, 1.5),
    ScenarioType.LABOR_SHORTAGE: (2.0, 2.5, 2.0),
    ScenarioType.GEOPOLITICAL: (3.5, 3.0, 2.0),
}

DEFAULT_CONFIGURATION = {
    "region": Region.ASIA_PACIFIC.value,
    "industry": Industry.ELECTRONICS.value,
    "currency": Currency.USD.value,
    "shippingMethods": [ShippingMethod.SEA.value],
    "nodeCount": 6,
    "riskProfile": RiskProfile.MEDIUM.value,
}
