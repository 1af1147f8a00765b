"""
Chat Train core data models.

These models define the trainer flow document used by validation, metrics,
publishing and persistence. For the node/edge JSON contract with the
frontend, see shared.schemas.
"""

from backend.models.flow import (
    Complexity,
    FlowMetadata,
    InputError,
    TrainerFlow,
    complexity_class,
    get_flow_json_schema,
    parse_flow_payload,
    write_flow_schema_to_file,
)

__all__ = [
    "Complexity",
    "FlowMetadata",
    "InputError",
    "TrainerFlow",
    "complexity_class",
    "get_flow_json_schema",
    "parse_flow_payload",
    "write_flow_schema_to_file",
]
