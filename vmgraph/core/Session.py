"""
EditorSession: one editing session over one module project.

Ties together the root graph, the group stack, undo/redo history, the
round-trip loader and the code generator. Every successful mutation saves a
snapshot of the active graph; rejected mutations leave history untouched.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from vmgraph.compiler.emitter import CodeGenerator, Formatter
from vmgraph.compiler.templates import DEFAULT_REGISTRY, TemplateRegistry
from vmgraph.roundtrip import LoadResult, RoundTripLoader, write_script
from vmgraph.serializers.graph_serializer import deserialize_project, serialize_project

from .GraphPrimitives import Connection, Graph, Node
from .GroupManager import GroupManager, Viewport
from .History import DEFAULT_HISTORY_LIMIT, Snapshot, SnapshotHistory
from .NodePort import Port
from .Types import GraphResult, ModuleMetadata, Rejection
from .Validator import GraphIssue, validate_graph

logger = logging.getLogger(__name__)


class EditorSession:
    def __init__(
        self,
        registry: Optional[TemplateRegistry] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        formatter: Optional[Formatter] = None,
    ):
        self.registry = registry or DEFAULT_REGISTRY
        self.metadata = ModuleMetadata()
        self.viewport = Viewport()
        self.groups = GroupManager(Graph())
        self.history = SnapshotHistory(history_limit)
        self.generator = CodeGenerator(registry=self.registry, formatter=formatter)
        self.loader = RoundTripLoader(self.groups, self.history, self.metadata, self.registry)
        self.reset_history()

    # ── state ────────────────────────────────────────────────────────────

    @property
    def root(self) -> Graph:
        return self.groups.root

    @property
    def graph(self) -> Graph:
        """The graph currently being edited (root or an open group)."""
        return self.groups.active

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.graph.get_node(node_id)

    def nodes_of_type(self, type_name: str) -> List[Node]:
        return self.graph.nodes_of_type(type_name)

    def save(self) -> Snapshot:
        return self.history.save(self.graph, self.metadata, self.viewport)

    def reset_history(self) -> None:
        self.history.reset(Snapshot.capture(self.graph, self.metadata, self.viewport))

    def _saved(self, result: GraphResult) -> GraphResult:
        if result.ok:
            self.save()
        return result

    # ── node operations ──────────────────────────────────────────────────

    def create_node(
        self,
        type_name: str,
        position: Tuple[float, float] = (0.0, 0.0),
        fields: Optional[Dict[str, Any]] = None,
        node_id: Optional[str] = None,
    ) -> Node:
        """Build a node from its template without adding it. Unknown types raise ValueError."""
        template = self.registry.require(type_name)
        return template.instantiate(node_id or self.graph.new_node_id(), position, fields)

    def add_node(self, node: Node) -> GraphResult:
        return self._saved(self.graph.add_node(node))

    def create_and_add_node(
        self,
        type_name: str,
        position: Tuple[float, float] = (0.0, 0.0),
        fields: Optional[Dict[str, Any]] = None,
        node_id: Optional[str] = None,
    ) -> GraphResult:
        return self.add_node(self.create_node(type_name, position, fields, node_id))

    def remove_node(self, node_id: str) -> GraphResult:
        return self._saved(self.graph.remove_node(node_id))

    def set_field(self, node_id: str, name: str, value: Any) -> GraphResult:
        node = self.graph.get_node(node_id)
        if node is None:
            return GraphResult.reject(Rejection.UNKNOWN_NODE)
        node.fields[name] = value
        return self._saved(GraphResult.success(node))

    def move_node(self, node_id: str, x: float, y: float) -> GraphResult:
        node = self.graph.get_node(node_id)
        if node is None:
            return GraphResult.reject(Rejection.UNKNOWN_NODE)
        node.position = (float(x), float(y))
        return self._saved(GraphResult.success(node))

    # ── connections ──────────────────────────────────────────────────────

    def add_connection(self, a: Port, b: Port) -> GraphResult:
        return self._saved(self.graph.add_connection(a, b))

    def connect(self, from_id: str, from_index: int, to_id: str, to_index: int) -> GraphResult:
        return self._saved(self.graph.connect(from_id, from_index, to_id, to_index))

    def connect_nodes(self, from_node: Node, from_index: int, to_node: Node, to_index: int) -> GraphResult:
        return self.connect(from_node.id, from_index, to_node.id, to_index)

    def disconnect_input(self, node_id: str, port_index: int) -> int:
        removed = self.graph.remove_connection(lambda c: c.to_ref == (node_id, port_index))
        if removed:
            self.save()
        return removed

    def connections(self) -> List[Connection]:
        return list(self.graph.connections)

    # ── groups ───────────────────────────────────────────────────────────

    def open_group(self, node_id: str) -> GraphResult:
        result = self.groups.open_group(node_id, self.viewport)
        if result.ok:
            self.viewport = Viewport()
            self.reset_history()
        return result

    def close_group(self) -> GraphResult:
        result = self.groups.close_group()
        if result.ok:
            self.viewport = result.value
            self.reset_history()
        return result

    # ── history ──────────────────────────────────────────────────────────

    def undo(self) -> bool:
        return self._apply(self.history.undo())

    def redo(self) -> bool:
        return self._apply(self.history.redo())

    def _apply(self, snapshot: Optional[Snapshot]) -> bool:
        if snapshot is None:
            return False
        metadata, viewport = snapshot.restore(self.graph, self.groups.current_group)
        self._set_metadata(metadata)
        self.viewport = viewport
        return True

    def _set_metadata(self, metadata: ModuleMetadata) -> None:
        # the loader holds a reference to self.metadata; update it in place
        self.metadata.update(**{attr: getattr(metadata, attr) for attr in ModuleMetadata.PROJECT_KEYS})

    def update_metadata(self, **values: Any) -> None:
        self.metadata.update(**values)
        self.save()

    # ── projects ─────────────────────────────────────────────────────────

    def new_project(self) -> None:
        self.groups.reset(Graph())
        self._set_metadata(ModuleMetadata())
        self.viewport = Viewport()
        self.reset_history()
        logger.info("Started new project")

    def to_project(self) -> Dict[str, Any]:
        viewport = self.viewport if self.groups.is_root() else self.groups.stack[0].viewport
        return serialize_project(self.root, self.metadata, viewport)

    def load_project(self, data: Dict[str, Any]) -> None:
        graph, metadata, viewport = deserialize_project(data)
        self.groups.reset(graph)
        self._set_metadata(metadata)
        self.viewport = viewport
        self.reset_history()
        logger.info("Loaded project '%s' (%d nodes)", metadata.name, len(graph.nodes))

    # ── compile / round trip ─────────────────────────────────────────────

    def generate(self) -> str:
        return self.generator.generate(self.root, self.metadata)

    def generate_script(self) -> str:
        return write_script(self.graph, self.metadata, self.registry)

    def load_from_text(self, text: str) -> LoadResult:
        return self.loader.load_from_text(text, self.viewport)

    def validate(self) -> List[GraphIssue]:
        return validate_graph(self.graph, self.registry)
