"""Unit tests for the flow validator."""

import pytest

from backend.services.flow_validator import FlowGraph, ValidationPolicy, find_cycle, validate_flow
from shared.schemas import FlowEdge, FlowNode, FlowSettings, NodeData, Severity


def node(node_id: str, node_type: str, label: str = "", **data) -> FlowNode:
    return FlowNode(id=node_id, type=node_type, label=label, data=NodeData(**data))


def edge(source: str, target: str, **kwargs) -> FlowEdge:
    return FlowEdge(source=source, target=target, **kwargs)


def codes(result) -> list[str]:
    return [f.code for f in result.findings]


def ring_flow():
    """start -> a -> b -> c -> a, c -> end"""
    nodes = [
        node("s", "start"),
        node("a", "text", text_draft="A"),
        node("b", "text", text_draft="B"),
        node("c", "text", text_draft="C"),
        node("e", "end"),
    ]
    edges = [edge("s", "a"), edge("a", "b"), edge("b", "c"), edge("c", "a"), edge("c", "e")]
    return nodes, edges


def test_empty_flow_short_circuits():
    result = validate_flow([], [])
    assert result.is_valid is False
    assert result.errors == ["Flow must contain at least one node"]
    assert result.warnings == []
    assert result.suggestions == []


def test_start_connected_to_end_is_valid():
    result = validate_flow([node("n1", "start"), node("n2", "end")], [edge("n1", "n2")])
    assert result.is_valid is True
    assert result.errors == []


def test_two_start_nodes():
    nodes = [node("s1", "start"), node("s2", "start"), node("e", "end")]
    result = validate_flow(nodes, [edge("s1", "e"), edge("s2", "e")])
    assert result.is_valid is False
    assert any("only have one start node" in e for e in result.errors)


def test_missing_start_node():
    result = validate_flow([node("e", "end")], [])
    assert "Flow must have exactly one start node" in result.errors


def test_lone_start_node_reports_both_errors():
    result = validate_flow([node("n1", "start")], [])
    assert any("start node has no outgoing connections" in e for e in result.errors)
    assert any("must have at least one end node" in e for e in result.errors)


def test_completion_counts_as_end_node():
    result = validate_flow([node("s", "start"), node("c", "completion")], [edge("s", "c")])
    assert result.is_valid is True


def test_end_without_incoming_edge():
    nodes = [node("s", "start"), node("t", "text", text_draft="hi"), node("e", "end")]
    result = validate_flow(nodes, [edge("s", "t")])
    assert "end_no_incoming" in codes(result)
    assert result.is_valid is False


def test_dangling_edge_references():
    nodes = [node("s", "start"), node("e", "end")]
    result = validate_flow(nodes, [edge("s", "e"), edge("s", "ghost", id="e9"), edge("nowhere", "e", id="e10")])
    assert 'Edge "e9" references non-existent target node: ghost' in result.errors
    assert 'Edge "e10" references non-existent source node: nowhere' in result.errors


def test_cycle_detected_when_loops_not_allowed():
    nodes, edges = ring_flow()
    result = validate_flow(nodes, edges, FlowSettings(allow_loops=False))
    assert result.is_valid is False
    cycle = [f for f in result.findings if f.code == "cycle"]
    assert len(cycle) == 1
    assert cycle[0].severity == Severity.ERROR
    assert cycle[0].path == ["a", "b", "c", "a"]


def test_cycle_allowed_when_loops_allowed():
    nodes, edges = ring_flow()
    result = validate_flow(nodes, edges, FlowSettings(allow_loops=True))
    assert "cycle" not in codes(result)
    assert result.is_valid is True


def test_bare_three_node_ring():
    nodes = [node("A", "text"), node("B", "text"), node("C", "text")]
    edges = [edge("A", "B"), edge("B", "C"), edge("C", "A")]
    assert find_cycle(FlowGraph(nodes, edges)) == ["A", "B", "C", "A"]
    assert "cycle" in codes(validate_flow(nodes, edges))


def test_acyclic_diamond_has_no_cycle():
    nodes = [node("s", "start"), node("l", "text"), node("r", "text"), node("e", "end")]
    edges = [edge("s", "l"), edge("s", "r"), edge("l", "e"), edge("r", "e")]
    assert find_cycle(FlowGraph(nodes, edges)) is None


def test_question_with_single_choice_is_one_warning():
    nodes = [
        node("n1", "start"),
        node("n2", "question", choices=["A"]),
        node("n3", "end"),
    ]
    result = validate_flow(nodes, [edge("n1", "n2"), edge("n2", "n3")])
    assert result.is_valid is True
    assert len(result.warnings) == 1
    assert "should have at least 2 answer choices" in result.warnings[0]


def test_question_without_choices():
    nodes = [node("s", "start"), node("q", "question", label="Quiz"), node("e", "end")]
    result = validate_flow(nodes, [edge("s", "q"), edge("q", "e")])
    assert result.warnings == ['Question node "Quiz" has no answer choices']


def test_orphaned_node_and_self_loop_are_warnings():
    nodes = [
        node("s", "start"),
        node("lonely", "text", label="Lonely", text_draft="..."),
        node("t", "text", label="Loop", text_draft="again"),
        node("e", "end"),
    ]
    edges = [edge("s", "t"), edge("t", "t"), edge("t", "e")]
    result = validate_flow(nodes, edges, FlowSettings(allow_loops=True))
    assert result.is_valid is True
    assert 'Node "Lonely" is not connected to the flow' in result.warnings
    assert 'Node "Loop" has a self-loop' in result.warnings


def test_unreachable_island():
    nodes = [
        node("s", "start"),
        node("e", "end"),
        node("x", "text", label="X", text_draft="x"),
        node("y", "text", label="Y", text_draft="y"),
    ]
    result = validate_flow(nodes, [edge("s", "e"), edge("x", "y")])
    unreachable = [f.node_id for f in result.findings if f.code == "unreachable_node"]
    assert unreachable == ["x", "y"]


def test_empty_content_warnings():
    nodes = [
        node("s", "start"),
        node("t", "text", label="Blank"),
        node("m", "image", label="Picture"),
        node("e", "end"),
    ]
    result = validate_flow(nodes, [edge("s", "t"), edge("t", "m"), edge("m", "e")])
    assert 'Node "Blank" has no content' in result.warnings
    assert 'Node "Picture" has no content' in result.warnings


def test_suggestions_for_small_flow():
    result = validate_flow([node("s", "start"), node("e", "end")], [edge("s", "e")])
    found = codes(result)
    for code in ("few_nodes", "no_intermediate", "no_questions", "no_decisions"):
        assert code in found


def test_long_content_and_assessment_suggestions():
    nodes = [
        node("s", "start"),
        node("t", "text", text_draft="x" * 1500),
        node("a", "assessment"),
        node("e", "end"),
    ]
    result = validate_flow(nodes, [edge("s", "t"), edge("t", "a"), edge("a", "e")])
    assert "long_content" in codes(result)
    assert "assessment_no_rules" in codes(result)


def test_severity_override_demotes_cycle():
    nodes, edges = ring_flow()
    policy = ValidationPolicy(allow_loops=False, severity_overrides={"cycle": Severity.WARNING})
    result = validate_flow(nodes, edges, policy=policy)
    assert result.is_valid is True
    assert any("cycles" in w for w in result.warnings)


def test_policy_without_loop_flag_defers_to_settings():
    nodes, edges = ring_flow()
    policy = ValidationPolicy(severity_overrides={"cycle": Severity.WARNING})
    result = validate_flow(nodes, edges, FlowSettings(allow_loops=True), policy)
    assert "cycle" not in codes(result)
    assert result.is_valid is True


def test_policy_loop_flag_wins_over_settings():
    nodes, edges = ring_flow()
    result = validate_flow(nodes, edges, FlowSettings(allow_loops=True), ValidationPolicy(allow_loops=False))
    assert "cycle" in codes(result)
    assert result.is_valid is False


def test_decision_with_one_path_is_warned():
    nodes = [
        node("s", "start"),
        node("d", "decision", label="Route"),
        node("e", "end"),
    ]
    result = validate_flow(nodes, [edge("s", "d"), edge("d", "e")])
    assert result.is_valid is True
    assert 'Decision node "Route" should have at least 2 outgoing paths' in result.warnings
    assert [f.node_id for f in result.findings if f.code == "decision_few_paths"] == ["d"]


def test_decision_with_two_paths_is_not_warned():
    nodes = [
        node("s", "start"),
        node("d", "decision", label="Route"),
        node("y", "feedback", text_draft="Good"),
        node("n", "feedback", text_draft="Try again"),
        node("e", "end"),
    ]
    edges = [edge("s", "d"), edge("d", "y"), edge("d", "n"), edge("y", "e"), edge("n", "e")]
    result = validate_flow(nodes, edges)
    assert result.is_valid is True
    assert "decision_few_paths" not in codes(result)


def test_validation_is_repeatable():
    nodes, edges = ring_flow()
    assert validate_flow(nodes, edges) == validate_flow(nodes, edges)


def test_long_chain_is_iterative_and_depth_checked():
    size = 5000
    nodes = [node("n0", "start")]
    nodes += [node(f"n{i}", "text", text_draft="step") for i in range(1, size - 1)]
    nodes.append(node(f"n{size - 1}", "end"))
    edges = [edge(f"n{i}", f"n{i + 1}") for i in range(size - 1)]
    result = validate_flow(nodes, edges, FlowSettings(max_depth=10))
    assert result.is_valid is True
    assert "max_depth_exceeded" in codes(result)


@pytest.mark.parametrize("allow_loops", [True, False])
def test_long_ring_does_not_overflow(allow_loops):
    size = 3000
    nodes = [node(f"n{i}", "text", text_draft="x") for i in range(size)]
    edges = [edge(f"n{i}", f"n{(i + 1) % size}") for i in range(size)]
    result = validate_flow(nodes, edges, FlowSettings(allow_loops=allow_loops))
    assert ("cycle" in codes(result)) is (not allow_loops)
