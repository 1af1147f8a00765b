"""
Trainer flow JSON schema and Pydantic models.

Used by both backend (validator, publish gate, API) and frontend (flow editor).
Field names are snake_case in Python and camelCase on the wire.
"""

import re
from enum import Enum
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

WIRE_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class NodeType(str, Enum):
    """Kind of step in a training flow."""

    START = "start"
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    QUESTION = "question"
    DECISION = "decision"
    FEEDBACK = "feedback"
    ASSESSMENT = "assessment"
    END = "end"
    # Legacy editor kinds: completion behaves as end, content as text
    COMPLETION = "completion"
    CONTENT = "content"


END_TYPES = frozenset({NodeType.END, NodeType.COMPLETION})
TEXT_TYPES = frozenset({NodeType.TEXT, NodeType.CONTENT})
MEDIA_TYPES = frozenset({NodeType.IMAGE, NodeType.AUDIO, NodeType.VIDEO})


class Severity(str, Enum):
    """How a validation finding affects the flow."""

    ERROR = "error"
    WARNING = "warning"
    SUGGESTION = "suggestion"


# -----------------------------------------------------------------------------
# Node payloads
# -----------------------------------------------------------------------------


class DecisionCondition(BaseModel):
    """Branching rule attached to a decision node."""

    type: Optional[Literal["text", "score", "time", "custom"]] = None
    value: Optional[str] = None
    action: Optional[Literal["redirect", "show", "hide", "end"]] = None

    model_config = WIRE_CONFIG


class ValidationRules(BaseModel):
    """Answer rules for an assessment node."""

    required: bool = False
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=0)
    pattern: Optional[str] = None

    model_config = WIRE_CONFIG

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, v: Optional[str]) -> Optional[str]:
        if v:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid answer pattern: {e}") from e
        return v


class NodeData(BaseModel):
    """Type-specific content of a node. Every field is optional."""

    text_draft: Optional[str] = Field(None, max_length=2000, description="Message body shown to the learner")
    messages: list[Annotated[str, Field(max_length=1000)]] = Field(default_factory=list)
    keywords: list[Annotated[str, Field(max_length=50)]] = Field(default_factory=list)
    error_message: Optional[str] = Field(None, max_length=500)
    choices: list[Annotated[str, Field(max_length=200)]] = Field(default_factory=list)
    media_url: Optional[str] = None
    conditions: list[DecisionCondition] = Field(default_factory=list)
    validation: Optional[ValidationRules] = None

    model_config = WIRE_CONFIG


class FlowNode(BaseModel):
    """Single step in the flow."""

    id: str = Field(..., min_length=1, description="Unique node ID within the flow")
    type: NodeType = Field(..., description="Node kind")
    label: str = Field("", max_length=100, description="Display label")
    x: float = 0
    y: float = 0
    w: float = 200
    h: float = 100
    data: NodeData = Field(default_factory=NodeData)

    model_config = WIRE_CONFIG

    @property
    def display_name(self) -> str:
        return self.label or self.id


# -----------------------------------------------------------------------------
# Edges
# -----------------------------------------------------------------------------


class EdgeCondition(BaseModel):
    """Gate on an edge: unconditional, a decision branch, or a keyword match."""

    type: Literal["auto", "decision", "question"] = "auto"
    choice_key: Optional[str] = None
    keywords: list[Annotated[str, Field(max_length=50)]] = Field(default_factory=list)
    logic: Literal["and", "or", "not"] = "and"

    model_config = WIRE_CONFIG


class FlowEdge(BaseModel):
    """Directed transition between two nodes."""

    id: Optional[str] = Field(None, description="Edge ID; defaults to '<from>-><to>'")
    source: str = Field(..., alias="from", min_length=1, description="ID of the source node")
    target: str = Field(..., alias="to", min_length=1, description="ID of the target node")
    label: Optional[str] = Field(None, max_length=100)
    condition: Optional[EdgeCondition] = None

    model_config = WIRE_CONFIG

    @model_validator(mode="after")
    def _default_id(self) -> "FlowEdge":
        if not self.id:
            self.id = f"{self.source}->{self.target}"
        return self


# -----------------------------------------------------------------------------
# Flow payload
# -----------------------------------------------------------------------------


class FlowSettings(BaseModel):
    """Per-flow traversal settings."""

    start_node: Optional[str] = None
    end_nodes: list[str] = Field(default_factory=list)
    max_depth: int = Field(10, ge=1)
    allow_loops: bool = False

    model_config = WIRE_CONFIG


class FlowPayload(BaseModel):
    """The node/edge/settings bundle exchanged with the flow editor."""

    nodes: list[FlowNode]
    edges: list[FlowEdge]
    settings: FlowSettings = Field(default_factory=FlowSettings)

    model_config = WIRE_CONFIG


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------


class ValidationFinding(BaseModel):
    """A single validator finding."""

    code: str = Field(..., description="Rule code (e.g. missing_start, cycle)")
    severity: Severity
    message: str
    node_id: Optional[str] = None
    path: Optional[list[str]] = None

    model_config = WIRE_CONFIG


class ValidationResult(BaseModel):
    """Validator verdict. Only errors block publishing."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    findings: list[ValidationFinding] = Field(default_factory=list)

    model_config = WIRE_CONFIG


class FlowStats(BaseModel):
    """Structural counts used for UI hinting."""

    total_nodes: int
    total_edges: int
    node_type_counts: dict[str, int] = Field(default_factory=dict)
    avg_connections_per_node: float = 0
    complexity: Literal["low", "medium", "high"] = "low"

    model_config = WIRE_CONFIG
