"""Backend services (validation, metrics, publishing, persistence, dry runs)."""

from backend.services.flow_validator import (
    DEFAULT_SEVERITIES,
    ValidationPolicy,
    find_cycle,
    validate_flow,
    validate_payload,
)
from backend.services.flow_metrics import (
    estimate_duration,
    generate_optimization_suggestions,
    get_flow_stats,
    normalize_flow,
)
from backend.services.flow_service import (
    FlowConflictError,
    FlowNotFoundError,
    FlowStateError,
    TrainerNotFoundError,
    branch_version,
    create_flow,
    delete_flow,
    latest_flow,
    list_flows,
    update_flow,
)
from backend.services.publish_service import (
    FlowPublishError,
    publish,
    publish_flow,
    unpublish,
    unpublish_flow,
)
from backend.services.flow_runner import SimulationResult, simulate_flow

__all__ = [
    "DEFAULT_SEVERITIES",
    "ValidationPolicy",
    "find_cycle",
    "validate_flow",
    "validate_payload",
    "estimate_duration",
    "generate_optimization_suggestions",
    "get_flow_stats",
    "normalize_flow",
    "FlowConflictError",
    "FlowNotFoundError",
    "FlowStateError",
    "TrainerNotFoundError",
    "branch_version",
    "create_flow",
    "delete_flow",
    "latest_flow",
    "list_flows",
    "update_flow",
    "FlowPublishError",
    "publish",
    "publish_flow",
    "unpublish",
    "unpublish_flow",
    "SimulationResult",
    "simulate_flow",
]
