"""
Trainer flow document model for Chat Train.

A flow is the directed graph of nodes and edges that scripts a training bot,
versioned per trainer. The node/edge shapes come from shared.schemas; this
module adds the versioned document, its derived metadata and the input
boundary that turns raw JSON into typed values. All models are Pydantic v2
and support JSON schema generation.
"""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from shared.schemas.flow import WIRE_CONFIG, FlowEdge, FlowNode, FlowPayload, FlowSettings


class InputError(ValueError):
    """Raised when a flow payload is malformed (not a validator finding)."""


# -----------------------------------------------------------------------------
# Derived metadata
# -----------------------------------------------------------------------------


class Complexity(str, Enum):
    """Coarse size bucket, used for UI hinting only."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def complexity_class(node_count: int, edge_count: int) -> Complexity:
    total = node_count + edge_count
    if total <= 10:
        return Complexity.LOW
    if total <= 30:
        return Complexity.MEDIUM
    return Complexity.HIGH


class FlowMetadata(BaseModel):
    """Fields recomputed from nodes and edges; never set by hand."""

    total_nodes: int = 0
    total_edges: int = 0
    complexity: Complexity = Complexity.LOW
    estimated_duration: int = Field(0, description="Estimated completion time in minutes")

    model_config = WIRE_CONFIG


# -----------------------------------------------------------------------------
# TrainerFlow
# -----------------------------------------------------------------------------


class TrainerFlow(BaseModel):
    """
    One version of a trainer's flow.

    Created as a draft (is_published=False), edited while a draft, and made
    the servable script only through the publish gate.
    """

    id: Optional[str] = Field(None, description="Storage ID of this flow version")
    trainer_id: str = Field(..., description="ID of the owning trainer")
    version: str = Field("1.0.0", pattern=r"^\d+\.\d+\.\d+$", description="Semantic version")
    name: str = Field(..., min_length=1, max_length=100)
    nodes: list[FlowNode] = Field(default_factory=list)
    edges: list[FlowEdge] = Field(default_factory=list)
    is_published: bool = False
    published_at: Optional[datetime] = None
    published_by: Optional[str] = None
    settings: FlowSettings = Field(default_factory=FlowSettings)
    metadata: FlowMetadata = Field(default_factory=FlowMetadata)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = WIRE_CONFIG

    def get_start_node(self) -> Optional[FlowNode]:
        return next((n for n in self.nodes if n.type == "start"), None)

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        return next((n for n in self.nodes if n.id == node_id), None)


# -----------------------------------------------------------------------------
# Input boundary
# -----------------------------------------------------------------------------


def _check_unique_ids(payload: FlowPayload) -> None:
    seen: set[str] = set()
    for node in payload.nodes:
        if node.id in seen:
            raise InputError(f"Duplicate node id '{node.id}'")
        seen.add(node.id)


def parse_flow_payload(data: Any) -> FlowPayload:
    """
    Turn a raw JSON body into a typed FlowPayload.

    Rejects non-object bodies, non-array nodes/edges, missing required fields,
    unknown node types and duplicate node ids with InputError. Structural
    problems (missing start node, dangling edges, cycles) are left to the
    validator.
    """
    if not isinstance(data, dict):
        raise InputError("Flow payload must be a JSON object")
    if not isinstance(data.get("nodes"), list):
        raise InputError("Nodes must be an array")
    if not isinstance(data.get("edges"), list):
        raise InputError("Edges must be an array")
    body = dict(data)
    if body.get("settings") is None:
        body.pop("settings", None)
    try:
        payload = FlowPayload.model_validate(body)
    except ValidationError as e:
        raise InputError(f"Invalid flow: {e}") from e
    _check_unique_ids(payload)
    return payload


# -----------------------------------------------------------------------------
# JSON Schema (versioned, for the flow editor)
# -----------------------------------------------------------------------------

SCHEMA_VERSION = "1.0.0"


def get_flow_json_schema() -> dict[str, Any]:
    """
    Return the JSON schema of a TrainerFlow document (wire names).
    Nested node, edge and settings types are under $defs.
    """
    flow_schema = TrainerFlow.model_json_schema(by_alias=True)
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "$id": "https://chattrain.example/schemas/trainer_flow.json",
        "title": "Chat Train Flow Schema",
        "description": "Directed graph of nodes and edges scripting a training bot",
        "version": SCHEMA_VERSION,
        **{k: v for k, v in flow_schema.items() if k not in ("$schema", "$id", "title", "description")},
    }


def write_flow_schema_to_file(path: Optional[Union[str, Path]] = None) -> Path:
    """
    Write the current flow JSON schema to a file.
    Default path: project root / shared/schemas/trainer_flow_schema.json
    """
    if path is None:
        path = Path(__file__).resolve().parent.parent.parent / "shared" / "schemas" / "trainer_flow_schema.json"
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(get_flow_json_schema(), indent=2), encoding="utf-8")
    return path
