"""
Graph serializer.

Converts Graph / Node objects into JSON-safe dicts (and back) using the
project file shape:

    project keys : version, moduleName, moduleNamespace, moduleDescription,
                   moduleIcon, moduleColor, allowMultiple, drawInEditor,
                   nodes, connections, groupBoundaryConnections,
                   panOffset, zoom
    node keys    : id, type, x, y, width, height, inputs, outputs, fields,
                   isGroup, subGraph (groups only)
    subGraph keys: nodes, connections, groupBoundaryConnections,
                   panOffset, zoom

Boundary pseudo-nodes are never written as nodes. Their connections go to
groupBoundaryConnections and are re-attached after the pseudo-nodes are
re-created on load. Connections that no longer resolve are dropped.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from vmgraph.core.GraphPrimitives import Connection, Graph, Node
from vmgraph.core.GroupManager import Viewport, ensure_boundary_nodes, split_connections
from vmgraph.core.Types import ModuleMetadata

logger = logging.getLogger(__name__)

PROJECT_VERSION = "1.0"


# ── Helpers ───────────────────────────────────────────────────────────────────

def _json_safe(value: Any) -> Any:
    """Deep copy a field value into plain JSON types (tuples become lists)."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def _serialize_connection(conn: Connection) -> Dict[str, Any]:
    return {
        "from": {"nodeId": conn.from_ref.node_id, "portIndex": conn.from_ref.port_index},
        "to": {"nodeId": conn.to_ref.node_id, "portIndex": conn.to_ref.port_index},
    }


def _connection_ends(data: Dict[str, Any]) -> Optional[Tuple[str, int, str, int]]:
    try:
        return (
            data["from"]["nodeId"],
            int(data["from"]["portIndex"]),
            data["to"]["nodeId"],
            int(data["to"]["portIndex"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


# ── Serialize ─────────────────────────────────────────────────────────────────

def serialize_node(node: Node) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": node.id,
        "type": node.type,
        "x": float(node.position[0]),
        "y": float(node.position[1]),
        "width": float(node.size[0]),
        "height": float(node.size[1]),
        "inputs": list(node.inputs),
        "outputs": list(node.outputs),
        "fields": _json_safe(node.fields),
        "isGroup": node.is_group,
    }
    if node.is_group:
        out["subGraph"] = serialize_graph(node.sub_graph or Graph())
    return out


def serialize_graph(graph: Graph, viewport: Optional[Viewport] = None) -> Dict[str, Any]:
    internal, boundary = split_connections(graph)
    return {
        "nodes": [serialize_node(n) for n in graph.nodes.values() if not n.is_boundary],
        "connections": [_serialize_connection(c) for c in internal],
        "groupBoundaryConnections": [_serialize_connection(c) for c in boundary],
        **(viewport or Viewport()).to_dict(),
    }


def serialize_project(
    graph: Graph,
    metadata: ModuleMetadata,
    viewport: Optional[Viewport] = None,
) -> Dict[str, Any]:
    return {
        "version": PROJECT_VERSION,
        **metadata.to_dict(),
        **serialize_graph(graph, viewport),
    }


# ── Deserialize ───────────────────────────────────────────────────────────────

def deserialize_node(data: Dict[str, Any]) -> Node:
    node = Node(
        id=str(data["id"]),
        type=str(data["type"]),
        position=(float(data.get("x", 0.0)), float(data.get("y", 0.0))),
        size=(float(data.get("width", 180.0)), float(data.get("height", 80.0))),
        inputs=list(data.get("inputs", [])),
        outputs=list(data.get("outputs", [])),
        fields=_json_safe(data.get("fields", {})),
        is_group=bool(data.get("isGroup", False)),
    )
    if node.is_group:
        node.sub_graph = Graph()
        deserialize_graph(data.get("subGraph") or {}, owner=node, into=node.sub_graph)
    return node


def _attach(graph: Graph, items: List[Dict[str, Any]], kind: str) -> None:
    for item in items:
        ends = _connection_ends(item)
        if ends is None:
            logger.debug("Dropping malformed %s connection %r", kind, item)
            continue
        result = graph.connect(*ends)
        if not result.ok:
            logger.debug("Dropping %s connection %r: %s", kind, ends, result.error.name)


def deserialize_graph(
    data: Dict[str, Any],
    owner: Optional[Node] = None,
    into: Optional[Graph] = None,
) -> Graph:
    """
    Build a Graph from its serialized form. When `owner` is given the graph
    is that group's sub-graph and its boundary pseudo-nodes are re-created
    before the boundary connections are re-attached.
    """
    graph = into if into is not None else Graph()
    graph.clear()
    for node_data in data.get("nodes", []):
        node = deserialize_node(node_data)
        if not graph.add_node(node).ok:
            logger.warning("Duplicate node id '%s' ignored", node.id)

    if owner is not None:
        owner.sub_graph = graph
        ensure_boundary_nodes(owner)

    _attach(graph, data.get("connections", []), "internal")
    _attach(graph, data.get("groupBoundaryConnections", []), "boundary")
    return graph


def deserialize_project(
    data: Dict[str, Any],
    into: Optional[Graph] = None,
) -> Tuple[Graph, ModuleMetadata, Viewport]:
    graph = deserialize_graph(data, into=into)
    return graph, ModuleMetadata.from_dict(data), Viewport.from_dict(data)


__all__ = [
    "PROJECT_VERSION",
    "serialize_node",
    "serialize_graph",
    "serialize_project",
    "deserialize_node",
    "deserialize_graph",
    "deserialize_project",
]
