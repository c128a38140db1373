import os
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Pre-load .env into os.environ so that values shared with the frontend
# build (CORS origins, ports) are visible to pydantic-settings as well.
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env"), override=False)


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Supply Chain Resilience Twin"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = False

    # Live updates
    LIVE_UPDATES_ENABLED: bool = True
    TICK_INTERVAL_SECONDS: float = 3.0
    BOOTSTRAP_DEFAULT_CONFIGURATION: bool = True

    # Synthesis policy: probability that a freshly synthesised node is Healthy
    HEALTHY_PROBABILITY_LOW: float = 0.90
    HEALTHY_PROBABILITY_MEDIUM: float = 0.70
    HEALTHY_PROBABILITY_HIGH: float = 0.40
    # Probability that a supplier/manufacturer carries certification data
    CERTIFICATION_COVERAGE_LOW: float = 0.95
    CERTIFICATION_COVERAGE_MEDIUM: float = 0.80
    CERTIFICATION_COVERAGE_HIGH: float = 0.55

    # Tick policy
    TICK_MAX_UTILIZATION_DELTA: float = 5.0
    TICK_CRITICAL_FLIP_PROBABILITY: float = 0.05
    TICK_HIGH_RISK_FLIP_MULTIPLIER: float = 2.0
    SENSOR_EVENT_BUFFER_SIZE: int = 100

    # Strategy Agent health-score weights (normalised at use)
    HEALTH_WEIGHT_STATUS: float = 0.45
    HEALTH_WEIGHT_UTILIZATION: float = 0.25
    HEALTH_WEIGHT_SHIPPING: float = 0.15
    HEALTH_WEIGHT_RISK: float = 0.15

    # Scenario Agent
    SCENARIO_WARNING_PENALTY: float = 0.30
    SCENARIO_CRITICAL_PENALTY: float = 0.60
    SCENARIO_REDUNDANCY_DISCOUNT: float = 0.12
    SCENARIO_MIN_REDUNDANCY_MULTIPLIER: float = 0.40
    # Uncertainty band: disruption intensity drawn uniformly per iteration
    SCENARIO_UNCERTAINTY_ITERATIONS: int = 500
    SCENARIO_INTENSITY_LOW: float = 0.7
    SCENARIO_INTENSITY_HIGH: float = 1.3

    # Impact Agent thresholds (0-100 scores)
    ESG_ENVIRONMENTAL_THRESHOLD: float = 60.0
    ESG_SOCIAL_THRESHOLD: float = 70.0
    ESG_GOVERNANCE_THRESHOLD: float = 70.0

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
