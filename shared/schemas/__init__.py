"""Shared schemas and types for Chat Train (backend and frontend contract)."""

from shared.schemas.flow import (
    DecisionCondition,
    EdgeCondition,
    FlowEdge,
    FlowNode,
    FlowPayload,
    FlowSettings,
    FlowStats,
    NodeData,
    NodeType,
    Severity,
    ValidationFinding,
    ValidationResult,
    ValidationRules,
)

__all__ = [
    "DecisionCondition",
    "EdgeCondition",
    "FlowEdge",
    "FlowNode",
    "FlowPayload",
    "FlowSettings",
    "FlowStats",
    "NodeData",
    "NodeType",
    "Severity",
    "ValidationFinding",
    "ValidationResult",
    "ValidationRules",
]
