"""
Flow validator: structural and content checks over a node/edge graph.

Produces errors (block publishing), warnings and suggestions. The validator
never raises; every finding is returned as data. One adjacency index is
built per call and all graph walks are iterative, so validation is O(V+E)
and safe on deep flows.
"""

from collections import deque
from typing import Optional

from pydantic import BaseModel, Field

from shared.schemas.flow import (
    END_TYPES,
    MEDIA_TYPES,
    TEXT_TYPES,
    FlowEdge,
    FlowNode,
    FlowPayload,
    FlowSettings,
    NodeType,
    Severity,
    ValidationFinding,
    ValidationResult,
)

LONG_CONTENT_CHARS = 1000
FEW_NODES = 5

# -----------------------------------------------------------------------------
# Severity table and policy
# -----------------------------------------------------------------------------

DEFAULT_SEVERITIES: dict[str, Severity] = {
    "empty_flow": Severity.ERROR,
    "missing_start": Severity.ERROR,
    "multiple_start": Severity.ERROR,
    "missing_end": Severity.ERROR,
    "dangling_edge": Severity.ERROR,
    "start_no_outgoing": Severity.ERROR,
    "end_no_incoming": Severity.ERROR,
    "cycle": Severity.ERROR,
    "orphaned_node": Severity.WARNING,
    "unreachable_node": Severity.WARNING,
    "self_loop": Severity.WARNING,
    "no_choices": Severity.WARNING,
    "too_few_choices": Severity.WARNING,
    "decision_few_paths": Severity.WARNING,
    "empty_content": Severity.WARNING,
    "max_depth_exceeded": Severity.WARNING,
    "few_nodes": Severity.SUGGESTION,
    "no_intermediate": Severity.SUGGESTION,
    "no_questions": Severity.SUGGESTION,
    "no_decisions": Severity.SUGGESTION,
    "long_content": Severity.SUGGESTION,
    "assessment_no_rules": Severity.SUGGESTION,
}


class ValidationPolicy(BaseModel):
    """Knobs for a validation pass."""

    allow_loops: Optional[bool] = Field(
        None, description="Skip cycle detection when True; None defers to settings.allowLoops"
    )
    severity_overrides: dict[str, Severity] = Field(
        default_factory=dict,
        description="Rule code -> severity, overriding DEFAULT_SEVERITIES",
    )

    def severity_for(self, code: str) -> Severity:
        return self.severity_overrides.get(code, DEFAULT_SEVERITIES.get(code, Severity.WARNING))


# -----------------------------------------------------------------------------
# Graph index
# -----------------------------------------------------------------------------


class FlowGraph:
    """Adjacency index over node positions, built once per validation pass."""

    __slots__ = ("nodes", "index", "outgoing", "in_degree", "out_degree", "touched", "dangling")

    def __init__(self, nodes: list[FlowNode], edges: list[FlowEdge]):
        self.nodes = nodes
        self.index = {n.id: i for i, n in enumerate(nodes)}
        size = len(nodes)
        self.outgoing: list[list[int]] = [[] for _ in range(size)]
        self.in_degree = [0] * size
        self.out_degree = [0] * size
        self.touched = [False] * size
        self.dangling: list[tuple[FlowEdge, Optional[int], Optional[int]]] = []
        for edge in edges:
            src = self.index.get(edge.source)
            dst = self.index.get(edge.target)
            if src is not None:
                self.out_degree[src] += 1
                self.touched[src] = True
            if dst is not None:
                self.in_degree[dst] += 1
                self.touched[dst] = True
            if src is None or dst is None:
                self.dangling.append((edge, src, dst))
                continue
            self.outgoing[src].append(dst)

    def node_ids(self, positions: list[int]) -> list[str]:
        return [self.nodes[i].id for i in positions]


def find_cycle(graph: FlowGraph) -> Optional[list[str]]:
    """
    Return one directed cycle as a list of node ids (first id repeated at the
    end), or None. Iterative three-colour DFS started from every unvisited
    node; reaching a node that is still on the DFS stack closes a cycle.
    """
    white, grey, black = 0, 1, 2
    colour = [white] * len(graph.nodes)
    for root in range(len(graph.nodes)):
        if colour[root] != white:
            continue
        colour[root] = grey
        stack: list[list[int]] = [[root, 0]]
        while stack:
            frame = stack[-1]
            node, child_pos = frame
            children = graph.outgoing[node]
            if child_pos < len(children):
                frame[1] += 1
                child = children[child_pos]
                if colour[child] == grey:
                    on_stack = [f[0] for f in stack]
                    cycle = on_stack[on_stack.index(child):] + [child]
                    return graph.node_ids(cycle)
                if colour[child] == white:
                    colour[child] = grey
                    stack.append([child, 0])
            else:
                colour[node] = black
                stack.pop()
    return None


def reachable_from(graph: FlowGraph, start: int) -> list[bool]:
    seen = [False] * len(graph.nodes)
    seen[start] = True
    queue = deque([start])
    while queue:
        node = queue.popleft()
        for child in graph.outgoing[node]:
            if not seen[child]:
                seen[child] = True
                queue.append(child)
    return seen


def longest_path_from(graph: FlowGraph, start: int) -> int:
    """Edge count of the longest path from start. Only meaningful on acyclic graphs."""
    reach = reachable_from(graph, start)
    indegree = [0] * len(graph.nodes)
    for node, ok in enumerate(reach):
        if ok:
            for child in graph.outgoing[node]:
                indegree[child] += 1
    depth = [0] * len(graph.nodes)
    queue = deque([start])
    longest = 0
    while queue:
        node = queue.popleft()
        longest = max(longest, depth[node])
        for child in graph.outgoing[node]:
            depth[child] = max(depth[child], depth[node] + 1)
            indegree[child] -= 1
            if indegree[child] == 0:
                queue.append(child)
    return longest


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


class _Findings:
    def __init__(self, policy: ValidationPolicy):
        self.policy = policy
        self.items: list[ValidationFinding] = []

    def add(self, code: str, message: str, node_id: Optional[str] = None, path: Optional[list[str]] = None) -> None:
        self.items.append(
            ValidationFinding(
                code=code,
                severity=self.policy.severity_for(code),
                message=message,
                node_id=node_id,
                path=path,
            )
        )

    def result(self) -> ValidationResult:
        by_severity: dict[Severity, list[str]] = {s: [] for s in Severity}
        for f in self.items:
            by_severity[f.severity].append(f.message)
        errors = by_severity[Severity.ERROR]
        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=by_severity[Severity.WARNING],
            suggestions=by_severity[Severity.SUGGESTION],
            findings=self.items,
        )


def _check_node(node: FlowNode, pos: int, graph: FlowGraph, out: _Findings) -> None:
    name = node.display_name
    data = node.data

    if node.type == NodeType.START and graph.out_degree[pos] == 0:
        out.add("start_no_outgoing", f'Flow start node has no outgoing connections ("{name}")', node.id)
    elif node.type in END_TYPES and graph.in_degree[pos] == 0:
        out.add("end_no_incoming", f'Flow end node has no incoming connections ("{name}")', node.id)
    elif node.type == NodeType.QUESTION:
        if not data.choices:
            out.add("no_choices", f'Question node "{name}" has no answer choices', node.id)
        elif len(data.choices) == 1:
            out.add("too_few_choices", f'Question node "{name}" should have at least 2 answer choices', node.id)
    elif node.type == NodeType.DECISION and graph.out_degree[pos] < 2:
        out.add("decision_few_paths", f'Decision node "{name}" should have at least 2 outgoing paths', node.id)
    elif node.type == NodeType.ASSESSMENT and data.validation is None:
        out.add("assessment_no_rules", f'Assessment node "{name}" should include validation rules', node.id)

    if node.type in TEXT_TYPES or node.type == NodeType.FEEDBACK:
        if not (data.text_draft or "").strip() and not any(m.strip() for m in data.messages):
            out.add("empty_content", f'Node "{name}" has no content', node.id)
        elif node.type in TEXT_TYPES and len(data.text_draft or "") > LONG_CONTENT_CHARS:
            out.add(
                "long_content",
                f'Node "{name}" has long content; consider splitting it into smaller steps',
                node.id,
            )
    elif node.type in MEDIA_TYPES and not (data.media_url or "").strip():
        out.add("empty_content", f'Node "{name}" has no content', node.id)


def validate_flow(
    nodes: list[FlowNode],
    edges: list[FlowEdge],
    settings: Optional[FlowSettings] = None,
    policy: Optional[ValidationPolicy] = None,
) -> ValidationResult:
    """
    Check a flow's structure and content.

    Errors: empty flow, start count != 1, no end node, dangling edge refs,
    start without outgoing / end without incoming edges, and cycles when
    loops are not allowed. Everything else is a warning or a suggestion.
    """
    settings = settings or FlowSettings()
    policy = policy or ValidationPolicy()
    allow_loops = settings.allow_loops if policy.allow_loops is None else policy.allow_loops
    out = _Findings(policy)

    if not nodes:
        out.add("empty_flow", "Flow must contain at least one node")
        return out.result()

    graph = FlowGraph(nodes, edges)
    starts = [i for i, n in enumerate(nodes) if n.type == NodeType.START]
    ends = [i for i, n in enumerate(nodes) if n.type in END_TYPES]

    if not starts:
        out.add("missing_start", "Flow must have exactly one start node")
    elif len(starts) > 1:
        out.add("multiple_start", "Flow can only have one start node", path=graph.node_ids(starts))
    if not ends:
        out.add("missing_end", "Flow must have at least one end node")

    for edge, src, dst in graph.dangling:
        if src is None:
            out.add("dangling_edge", f'Edge "{edge.id}" references non-existent source node: {edge.source}')
        if dst is None:
            out.add("dangling_edge", f'Edge "{edge.id}" references non-existent target node: {edge.target}')

    for edge in edges:
        if edge.source == edge.target:
            node = nodes[graph.index[edge.source]] if edge.source in graph.index else None
            out.add("self_loop", f'Node "{node.display_name if node else edge.source}" has a self-loop', edge.source)

    orphaned = [False] * len(nodes)
    for pos, node in enumerate(nodes):
        if node.type != NodeType.START and node.type not in END_TYPES and not graph.touched[pos]:
            orphaned[pos] = True
            out.add("orphaned_node", f'Node "{node.display_name}" is not connected to the flow', node.id)

    for pos, node in enumerate(nodes):
        _check_node(node, pos, graph, out)

    cycle = find_cycle(graph)
    if cycle and not allow_loops:
        out.add("cycle", f"Flow contains cycles which are not allowed ({' -> '.join(cycle)})", cycle[0], cycle)

    if len(starts) == 1:
        reach = reachable_from(graph, starts[0])
        for pos, node in enumerate(nodes):
            if not reach[pos] and not orphaned[pos]:
                out.add("unreachable_node", f'Node "{node.display_name}" is not reachable from the start node', node.id)
        if cycle is None:
            depth = longest_path_from(graph, starts[0])
            if depth > settings.max_depth:
                out.add(
                    "max_depth_exceeded",
                    f"Flow depth {depth} exceeds the configured maxDepth of {settings.max_depth}",
                )

    if len(nodes) < FEW_NODES:
        out.add("few_nodes", "Consider adding more nodes to create a comprehensive training flow")
    if all(n.type == NodeType.START or n.type in END_TYPES for n in nodes):
        out.add("no_intermediate", "Consider adding intermediate nodes for better user engagement")
    if not any(n.type == NodeType.QUESTION for n in nodes):
        out.add("no_questions", "Add question nodes to test user understanding")
    if not any(n.type == NodeType.DECISION for n in nodes):
        out.add("no_decisions", "Add decision nodes for conditional logic and branching")

    return out.result()


def validate_payload(payload: FlowPayload, policy: Optional[ValidationPolicy] = None) -> ValidationResult:
    return validate_flow(payload.nodes, payload.edges, payload.settings, policy)
