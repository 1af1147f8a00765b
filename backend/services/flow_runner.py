"""
Flow runner: dry-run a flow along its edge conditions.

- simulate_flow: walk from the start node, feeding scripted learner answers
  into question/decision/assessment nodes, and trace the path taken.
- match_condition / select_edge: the edge routing rules used by the walk.
"""

import logging
import re
import time
from typing import Any, Optional

from backend.models.flow import TrainerFlow
from shared.schemas.flow import END_TYPES, EdgeCondition, FlowEdge, FlowNode, NodeType, ValidationRules

logger = logging.getLogger(__name__)

ANSWER_TYPES = frozenset({NodeType.QUESTION, NodeType.DECISION, NodeType.ASSESSMENT})


# -----------------------------------------------------------------------------
# Result model
# -----------------------------------------------------------------------------


def _trace_step(node: FlowNode, answer: Optional[str], edge: Optional[FlowEdge]) -> dict:
    return {
        "node_id": node.id,
        "node_label": node.display_name,
        "node_type": node.type.value,
        "answer": answer,
        "edge_id": edge.id if edge else None,
        "next_node_id": edge.target if edge else None,
    }


class SimulationResult:
    """Outcome of one dry run."""

    __slots__ = ("flow_id", "path", "completed", "steps_taken", "trace", "execution_time_ms", "error_message")

    def __init__(
        self,
        flow_id: Optional[str],
        path: list[str],
        completed: bool,
        steps_taken: int,
        trace: list[dict],
        execution_time_ms: float,
        error_message: Optional[str] = None,
    ):
        self.flow_id = flow_id
        self.path = path
        self.completed = completed
        self.steps_taken = steps_taken
        self.trace = trace
        self.execution_time_ms = execution_time_ms
        self.error_message = error_message

    def to_dict(self) -> dict[str, Any]:
        return {
            "flowId": self.flow_id,
            "path": self.path,
            "completed": self.completed,
            "stepsTaken": self.steps_taken,
            "trace": self.trace,
            "executionTimeMs": self.execution_time_ms,
            "error": self.error_message,
        }


# -----------------------------------------------------------------------------
# Edge routing
# -----------------------------------------------------------------------------


def _normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def match_condition(condition: Optional[EdgeCondition], answer: Optional[str]) -> bool:
    """True when the edge may be taken for this answer. Auto edges always match."""
    if condition is None or condition.type == "auto":
        return True
    value = _normalize(answer)
    if condition.type == "decision":
        return bool(condition.choice_key) and value == _normalize(condition.choice_key)
    keywords = [_normalize(k) for k in condition.keywords if k.strip()]
    if not keywords:
        return True
    hits = [k in value for k in keywords]
    if condition.logic == "or":
        return any(hits)
    if condition.logic == "not":
        return not any(hits)
    return all(hits)


def select_edge(outgoing: list[FlowEdge], answer: Optional[str]) -> Optional[FlowEdge]:
    """First matching conditional edge, else the first auto edge, else None."""
    fallback: Optional[FlowEdge] = None
    for edge in outgoing:
        is_auto = edge.condition is None or edge.condition.type == "auto"
        if is_auto:
            if fallback is None:
                fallback = edge
            continue
        if answer is not None and match_condition(edge.condition, answer):
            return edge
    return fallback


def check_answer(rules: Optional[ValidationRules], answer: str) -> bool:
    """Apply an assessment node's validation rules to an answer."""
    if rules is None:
        return True
    text = answer.strip()
    if rules.required and not text:
        return False
    if rules.min_length is not None and len(text) < rules.min_length:
        return False
    if rules.max_length is not None and len(text) > rules.max_length:
        return False
    if rules.pattern and re.search(rules.pattern, text) is None:
        return False
    return True


# -----------------------------------------------------------------------------
# Walk
# -----------------------------------------------------------------------------


def simulate_flow(flow: TrainerFlow, answers: list[str], max_steps: Optional[int] = None) -> SimulationResult:
    """
    Walk the flow from its start node.

    Question, decision and assessment nodes consume the next answer; other
    nodes advance along their auto edge. Stops at an end node, when answers
    run out, when no edge matches, or after max_steps (loops are allowed to
    run only that far).
    """
    started = time.perf_counter()
    by_id = {n.id: n for n in flow.nodes}
    outgoing: dict[str, list[FlowEdge]] = {}
    for edge in flow.edges:
        outgoing.setdefault(edge.source, []).append(edge)
    limit = max_steps or max(len(flow.nodes), 1) * flow.settings.max_depth

    path: list[str] = []
    trace: list[dict] = []
    remaining = list(answers)
    error: Optional[str] = None
    completed = False

    current = flow.get_start_node()
    if current is None:
        error = "Flow has no start node"
    while current is not None:
        path.append(current.id)
        if current.type in END_TYPES:
            trace.append(_trace_step(current, None, None))
            completed = True
            break
        if len(path) > limit:
            error = f"Stopped after {limit} steps without reaching an end node"
            break

        answer: Optional[str] = None
        if current.type in ANSWER_TYPES:
            if not remaining:
                error = f'No answer left for node "{current.display_name}"'
                trace.append(_trace_step(current, None, None))
                break
            answer = remaining.pop(0)
            if current.type == NodeType.ASSESSMENT and not check_answer(current.data.validation, answer):
                error = current.data.error_message or f'Answer rejected by node "{current.display_name}"'
                trace.append(_trace_step(current, answer, None))
                break

        edge = select_edge(outgoing.get(current.id, []), answer)
        trace.append(_trace_step(current, answer, edge))
        if edge is None:
            error = f'No matching transition from node "{current.display_name}"'
            break
        current = by_id.get(edge.target)
        if current is None:
            error = f"Edge '{edge.id}' points to missing node '{edge.target}'"

    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "Simulated flow %s: %d steps, completed=%s, error=%s", flow.id, len(path), completed, error
    )
    return SimulationResult(
        flow_id=flow.id,
        path=path,
        completed=completed,
        steps_taken=len(path),
        trace=trace,
        execution_time_ms=elapsed_ms,
        error_message=error,
    )
