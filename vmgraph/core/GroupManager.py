"""
Group editing.

A group node owns a nested Graph (`sub_graph`). Opening a group swaps the
active graph to that sub-graph and pushes the previous one, with its
viewport, onto a stack. Inside the sub-graph, GroupInput / GroupOutput
pseudo-nodes stand for the group's external flow ports.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import logging

from .GraphPrimitives import (
    GROUP_INPUT_TYPE,
    GROUP_OUTPUT_TYPE,
    Connection,
    Graph,
    Node,
)
from .Types import FLOW_LABEL, GraphResult, Rejection

logger = logging.getLogger(__name__)


@dataclass
class Viewport:
    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {"panOffset": {"x": self.pan_x, "y": self.pan_y}, "zoom": self.zoom}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Viewport":
        data = data or {}
        pan = data.get("panOffset") or {}
        return cls(float(pan.get("x", 0.0)), float(pan.get("y", 0.0)), float(data.get("zoom", 1.0)))


@dataclass
class GroupFrame:
    graph: Graph
    viewport: Viewport
    group_node: Optional[Node] = None


def group_input_id(group_id: str) -> str:
    return f"groupInput_{group_id}"


def group_output_id(group_id: str) -> str:
    return f"groupOutput_{group_id}"


def ensure_boundary_nodes(group_node: Node) -> List[Node]:
    """
    Make sure the group's sub-graph holds exactly one GroupInput (if the group
    has a flow input) and one GroupOutput (if it has a flow output). Pseudo-nodes
    for directions the group no longer exposes are removed. Returns the
    pseudo-nodes that were created.
    """
    if group_node.sub_graph is None:
        group_node.sub_graph = Graph()
    sub = group_node.sub_graph
    created: List[Node] = []

    wanted = (
        (group_input_id(group_node.id), GROUP_INPUT_TYPE, FLOW_LABEL in group_node.inputs),
        (group_output_id(group_node.id), GROUP_OUTPUT_TYPE, FLOW_LABEL in group_node.outputs),
    )
    for node_id, type_name, exposed in wanted:
        existing = sub.nodes_of_type(type_name)
        if not exposed:
            for stale in existing:
                sub.remove_node(stale.id, force=True)
            continue
        if existing:
            continue
        if type_name == GROUP_INPUT_TYPE:
            pseudo = Node(node_id, type_name, position=(50.0, 200.0), outputs=[FLOW_LABEL])
        else:
            pseudo = Node(node_id, type_name, position=(600.0, 200.0), inputs=[FLOW_LABEL])
        sub.add_node(pseudo)
        created.append(pseudo)
        logger.debug("Created %s for group %s", type_name, group_node.id)
    return created


def split_connections(graph: Graph) -> Tuple[List[Connection], List[Connection]]:
    """Partition a sub-graph's connections into (internal, boundary)."""
    internal: List[Connection] = []
    boundary: List[Connection] = []
    for conn in graph.connections:
        src = graph.get_node(conn.from_ref.node_id)
        dst = graph.get_node(conn.to_ref.node_id)
        if (src is not None and src.is_boundary) or (dst is not None and dst.is_boundary):
            boundary.append(conn)
        else:
            internal.append(conn)
    return internal, boundary


class GroupManager:
    """Tracks which Graph is being edited and the path of open groups."""

    def __init__(self, root: Optional[Graph] = None):
        self.root: Graph = root if root is not None else Graph()
        self.active: Graph = self.root
        self.stack: List[GroupFrame] = []
        self.current_group: Optional[Node] = None

    @property
    def depth(self) -> int:
        return len(self.stack)

    def is_root(self) -> bool:
        return not self.stack

    def reset(self, root: Optional[Graph] = None) -> None:
        if root is not None:
            self.root = root
        self.active = self.root
        self.stack = []
        self.current_group = None

    def open_group(self, node_id: str, viewport: Optional[Viewport] = None) -> GraphResult:
        node = self.active.get_node(node_id)
        if node is None:
            return GraphResult.reject(Rejection.UNKNOWN_NODE)
        if not node.is_group:
            return GraphResult.reject(Rejection.NOT_A_GROUP)

        self.stack.append(GroupFrame(self.active, viewport or Viewport(), self.current_group))
        ensure_boundary_nodes(node)
        self.active = node.sub_graph
        self.current_group = node
        logger.info("Opened group '%s' (depth %d)", node.label, self.depth)
        return GraphResult.success(node)

    def close_group(self) -> GraphResult:
        """
        Leave the active group. Returns the viewport that was active in the
        parent graph when the group was opened.
        """
        if not self.stack:
            return GraphResult.reject(Rejection.NOT_IN_GROUP)

        group = self.current_group
        if group is not None:
            self.sync_boundary(group)

        frame = self.stack.pop()
        self.active = frame.graph
        self.current_group = frame.group_node
        logger.info("Closed group '%s'", group.label if group else "?")
        return GraphResult.success(frame.viewport)

    def sync_boundary(self, group_node: Node) -> List[Connection]:
        """
        Re-derive the boundary wiring of a group: pseudo-nodes match the
        group's exposed flow ports, and boundary connections that no longer
        resolve are dropped. The surviving boundary connections are returned.
        """
        ensure_boundary_nodes(group_node)
        sub = group_node.sub_graph
        sub.remove_connection(
            lambda c: c.from_ref.node_id not in sub.nodes or c.to_ref.node_id not in sub.nodes
        )
        _, boundary = split_connections(sub)
        return boundary

    def path(self) -> List[str]:
        labels = ["root"]
        for frame in self.stack[1:]:
            if frame.group_node is not None:
                labels.append(frame.group_node.label)
        if self.current_group is not None:
            labels.append(self.current_group.label)
        return labels
