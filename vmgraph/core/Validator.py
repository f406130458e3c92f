"""
Connection rules.

Pure functions over Port values. Nothing here touches a Graph; the Graph
resolves port labels first and then asks `can_connect`.
"""
from typing import Dict, List, NamedTuple, Optional, TYPE_CHECKING

from .NodePort import Port
from .Types import PortFunction, Rejection, port_function

if TYPE_CHECKING:
    from .GraphPrimitives import Graph


class ValidationResult(NamedTuple):
    error: Optional[Rejection] = None

    @property
    def ok(self) -> bool:
        return self.error is None


OK = ValidationResult()


def can_connect(from_port: Port, to_port: Port) -> ValidationResult:
    # exactly one side must be an output
    if from_port.direction == to_port.direction:
        return ValidationResult(Rejection.SAME_DIRECTION)
    if from_port.node_id == to_port.node_id:
        return ValidationResult(Rejection.SELF_LOOP)
    if from_port.function != to_port.function:
        return ValidationResult(Rejection.KIND_MISMATCH)
    return OK


def orient(a: Port, b: Port):
    """Return (output, input) for a pair that already passed can_connect."""
    return (a, b) if a.isOutputPort() else (b, a)


# ── Graph diagnostics ─────────────────────────────────────────────────────────

class GraphIssue(NamedTuple):
    node_id: str
    message: str
    severity: str = "warning"


def validate_graph(graph: "Graph", registry=None) -> List[GraphIssue]:
    """
    Report structural smells in a graph without mutating it.

    - nodes that take part in no connection at all
    - data inputs with neither a connection nor a field fallback
    - node types the registry does not know
    """
    issues: List[GraphIssue] = []
    touched: Dict[str, bool] = {}
    for conn in graph.connections:
        touched[conn.from_ref.node_id] = True
        touched[conn.to_ref.node_id] = True

    for node in graph.nodes.values():
        if node.is_boundary:
            continue
        template = registry.get(node.type) if registry is not None else None
        if registry is not None and not registry.has(node.type):
            issues.append(GraphIssue(node.id, f"Unknown node type '{node.type}'"))

        if (node.inputs or node.outputs) and not touched.get(node.id):
            issues.append(GraphIssue(node.id, f"Node '{node.id}' ({node.type}) is not connected"))
            continue

        for index, label in enumerate(node.inputs):
            if port_function(label) == PortFunction.FLOW:
                continue
            if graph.incoming(node.id, index) is not None:
                continue
            has_fallback = label in node.fields or (
                template is not None and label in template.defaults
            )
            if not has_fallback:
                issues.append(GraphIssue(node.id, f"Input '{label}' of '{node.id}' is not connected"))
    return issues
