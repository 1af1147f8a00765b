"""
Flow metrics: duration estimate, structural stats and derived metadata.

All functions are pure. Durations are accumulated in tenths of a minute so
the final round-up is exact.
"""

from collections import Counter

from backend.models.flow import FlowMetadata, TrainerFlow, complexity_class
from shared.schemas.flow import END_TYPES, TEXT_TYPES, FlowEdge, FlowNode, FlowStats, NodeType

# Minutes per node kind, in tenths
NODE_WEIGHTS_TENTHS: dict[str, int] = {
    NodeType.START.value: 5,
    NodeType.END.value: 5,
    NodeType.COMPLETION.value: 5,
    NodeType.QUESTION.value: 20,
    NodeType.DECISION.value: 10,
    NodeType.ASSESSMENT.value: 30,
}
DEFAULT_WEIGHT_TENTHS = 10
EDGE_WEIGHT_TENTHS = 2
CHARS_PER_MINUTE = 200


def _node_tenths(node: FlowNode) -> int:
    if node.type in TEXT_TYPES:
        length = len(node.data.text_draft or "")
        minutes = max(1, -(-length // CHARS_PER_MINUTE))
        return minutes * 10
    return NODE_WEIGHTS_TENTHS.get(node.type.value, DEFAULT_WEIGHT_TENTHS)


def estimate_duration(nodes: list[FlowNode], edges: list[FlowEdge]) -> int:
    """Estimated minutes to complete the flow, rounded up to a whole minute."""
    tenths = sum(_node_tenths(n) for n in nodes) + EDGE_WEIGHT_TENTHS * len(edges)
    return -(-tenths // 10)


def get_flow_stats(nodes: list[FlowNode], edges: list[FlowEdge]) -> FlowStats:
    counts = Counter(n.type.value for n in nodes)
    avg = len(edges) / len(nodes) if nodes else 0
    return FlowStats(
        total_nodes=len(nodes),
        total_edges=len(edges),
        node_type_counts=dict(counts),
        avg_connections_per_node=round(avg, 2),
        complexity=complexity_class(len(nodes), len(edges)).value,
    )


def generate_optimization_suggestions(nodes: list[FlowNode], edges: list[FlowEdge]) -> list[str]:
    """Connectivity and engagement hints for the editor."""
    suggestions: list[str] = []
    stats = get_flow_stats(nodes, edges)

    if stats.avg_connections_per_node < 1:
        suggestions.append("Consider adding more connections between nodes for better flow")
    if stats.avg_connections_per_node > 3:
        suggestions.append("Flow may be too complex - consider simplifying the structure")

    interactive = {NodeType.QUESTION, NodeType.ASSESSMENT}
    if not any(n.type in interactive for n in nodes):
        suggestions.append("Add interactive elements like questions or assessments to engage users")

    if sum(1 for n in nodes if n.type in TEXT_TYPES) > 10:
        suggestions.append("Consider breaking down long content into smaller, digestible chunks")

    return suggestions


def build_metadata(nodes: list[FlowNode], edges: list[FlowEdge]) -> FlowMetadata:
    return FlowMetadata(
        total_nodes=len(nodes),
        total_edges=len(edges),
        complexity=complexity_class(len(nodes), len(edges)),
        estimated_duration=estimate_duration(nodes, edges),
    )


def normalize_flow(flow: TrainerFlow) -> TrainerFlow:
    """
    Return a copy of the flow with metadata recomputed and settings.startNode /
    settings.endNodes derived from the node list. Run after every node or edge
    change; derived fields are never trusted from input.
    """
    start = flow.get_start_node()
    settings = flow.settings.model_copy(
        update={
            "start_node": start.id if start else None,
            "end_nodes": [n.id for n in flow.nodes if n.type in END_TYPES],
        }
    )
    return flow.model_copy(update={"settings": settings, "metadata": build_metadata(flow.nodes, flow.edges)})
