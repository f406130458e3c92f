from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from .NodePort import Port, PortRef
from .Types import FLOW_LABEL, GraphResult, PortDirection, Rejection
from .Validator import can_connect, orient

GROUP_INPUT_TYPE = "groupInput"
GROUP_OUTPUT_TYPE = "groupOutput"
BOUNDARY_TYPES = frozenset({GROUP_INPUT_TYPE, GROUP_OUTPUT_TYPE})


class Connection(NamedTuple):
    from_ref: PortRef
    to_ref: PortRef

    def touches(self, node_id: str) -> bool:
        return self.from_ref.node_id == node_id or self.to_ref.node_id == node_id

    def __repr__(self):
        return f"Connection({self.from_ref!r} -> {self.to_ref!r})"


@dataclass
class Node:
    id: str
    type: str
    position: Tuple[float, float] = (0.0, 0.0)
    size: Tuple[float, float] = (180.0, 80.0)
    inputs: List[str] = field(default_factory=list)
    outputs: List[str] = field(default_factory=list)
    fields: Dict[str, Any] = field(default_factory=dict)
    is_group: bool = False
    sub_graph: Optional["Graph"] = None

    @property
    def is_boundary(self) -> bool:
        return self.type in BOUNDARY_TYPES

    @property
    def label(self) -> str:
        return str(self.fields.get("label") or self.type)

    def flow_input_index(self) -> Optional[int]:
        return self.inputs.index(FLOW_LABEL) if FLOW_LABEL in self.inputs else None

    def flow_output_index(self) -> Optional[int]:
        return self.outputs.index(FLOW_LABEL) if FLOW_LABEL in self.outputs else None

    def __repr__(self):
        return f"Node({self.id}:{self.type})"


class Graph:
    """
    A Store of nodes and connections. The root graph and every group's
    sub-graph are instances of this class; each owns an independent id space.

    Every mutation is all-or-nothing and returns a GraphResult instead of
    raising.
    """

    def __init__(self):
        self.nodes: Dict[str, Node] = {}
        self.connections: List[Connection] = []

    # ── Queries ─────────────────────────────────────────────────────────────

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def nodes_of_type(self, type_name: str) -> List[Node]:
        return [n for n in self.nodes.values() if n.type == type_name]

    def port(self, node_id: str, direction: PortDirection, index: int) -> Optional[Port]:
        node = self.nodes.get(node_id)
        if node is None:
            return None
        labels = node.inputs if direction == PortDirection.INPUT else node.outputs
        if not 0 <= index < len(labels):
            return None
        return Port(node_id, direction, index, labels[index])

    def incoming(self, node_id: str, port_index: int) -> Optional[Connection]:
        for conn in self.connections:
            if conn.to_ref == (node_id, port_index):
                return conn
        return None

    def outgoing(self, node_id: str, port_index: int) -> List[Connection]:
        return [c for c in self.connections if c.from_ref == (node_id, port_index)]

    def connections_of(self, node_id: str) -> List[Connection]:
        return [c for c in self.connections if c.touches(node_id)]

    def has_incoming_flow(self, node: Node) -> bool:
        index = node.flow_input_index()
        return index is not None and self.incoming(node.id, index) is not None

    def new_node_id(self, prefix: str = "node") -> str:
        n = len(self.nodes) + 1
        while f"{prefix}_{n}" in self.nodes:
            n += 1
        return f"{prefix}_{n}"

    # ── Mutations ───────────────────────────────────────────────────────────

    def add_node(self, node: Node) -> GraphResult:
        if node.id in self.nodes:
            return GraphResult.reject(Rejection.DUPLICATE_ID)
        self.nodes[node.id] = node
        return GraphResult.success(node)

    def remove_node(self, node_id: str, *, force: bool = False) -> GraphResult:
        node = self.nodes.get(node_id)
        if node is None:
            return GraphResult.reject(Rejection.UNKNOWN_NODE)
        if node.is_boundary and not force:
            return GraphResult.reject(Rejection.PROTECTED_NODE)
        self.connections = [c for c in self.connections if not c.touches(node_id)]
        del self.nodes[node_id]
        return GraphResult.success(node)

    def add_connection(self, a: Port, b: Port) -> GraphResult:
        """
        Connect two ports given in either order. The pair is re-resolved
        against this graph so callers may pass ports without labels.
        """
        resolved = []
        for p in (a, b):
            if p.node_id not in self.nodes:
                return GraphResult.reject(Rejection.UNKNOWN_NODE)
            port = self.port(p.node_id, p.direction, p.index)
            if port is None:
                return GraphResult.reject(Rejection.PORT_OUT_OF_RANGE)
            resolved.append(port)

        check = can_connect(resolved[0], resolved[1])
        if not check.ok:
            return GraphResult.reject(check.error)

        src, dst = orient(resolved[0], resolved[1])
        conn = Connection(src.ref(), dst.ref())

        # an input keeps at most one incoming connection; the newest wins
        self.connections = [c for c in self.connections if c.to_ref != conn.to_ref]
        self.connections.append(conn)
        return GraphResult.success(conn)

    def connect(self, from_id: str, from_index: int, to_id: str, to_index: int) -> GraphResult:
        return self.add_connection(
            Port(from_id, PortDirection.OUTPUT, from_index),
            Port(to_id, PortDirection.INPUT, to_index),
        )

    def remove_connection(self, predicate: Callable[[Connection], bool]) -> int:
        kept = [c for c in self.connections if not predicate(c)]
        removed = len(self.connections) - len(kept)
        self.connections = kept
        return removed

    def clear(self) -> None:
        self.nodes = {}
        self.connections = []

    def copy_from(self, other: "Graph") -> None:
        """Replace this graph's contents in place, keeping the object identity."""
        self.nodes = dict(other.nodes)
        self.connections = list(other.connections)

    def __len__(self):
        return len(self.nodes)

    def __repr__(self):
        return f"Graph(nodes={len(self.nodes)}, connections={len(self.connections)})"
