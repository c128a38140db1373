"""
Error taxonomy for the supply-chain core.

Every write-path error leaves the Network State untouched; the routes map
``status_code`` straight onto the HTTP response.
"""
from typing import Any, Dict, List, Optional


class SupplyChainError(Exception):
    """Base error for supply-chain core operations."""

    code = "SUPPLY_CHAIN_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class InvalidConfiguration(SupplyChainError):
    """Malformed or out-of-range configuration; prior state is kept."""

    code = "INVALID_CONFIGURATION"
    status_code = 422

    def __init__(self, message: str = "Invalid supply chain configuration", errors: Optional[List[str]] = None):
        super().__init__(message, details=errors or None)
        self.errors = errors or []


class EmptyNetworkState(SupplyChainError):
    """An agent or read was invoked before any configuration was set."""

    code = "EMPTY_NETWORK_STATE"
    status_code = 409

    def __init__(self, message: str = "No supply chain configuration has been set yet"):
        super().__init__(message)


class InvalidScenarioRequest(SupplyChainError):
    code = "INVALID_SCENARIO_REQUEST"
    status_code = 422


class UnknownScenarioType(InvalidScenarioRequest):
    code = "UNKNOWN_SCENARIO_TYPE"

    def __init__(self, scenario_type: Any, supported: Optional[List[str]] = None):
        super().__init__(
            f"Unknown scenario type: {scenario_type!r}",
            details={"supported": supported} if supported else None,
        )
        self.scenario_type = scenario_type


class InvalidDuration(InvalidScenarioRequest):
    code = "INVALID_DURATION"

    def __init__(self, duration_days: Any):
        super().__init__(f"durationDays must be a positive number, got {duration_days!r}")
        self.duration_days = duration_days


class NodeNotFound(SupplyChainError):
    code = "NODE_NOT_FOUND"
    status_code = 404

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class InternalInvariantViolation(SupplyChainError):
    """Should never happen; the offending transition is discarded."""

    code = "INTERNAL_INVARIANT_VIOLATION"
    status_code = 500
