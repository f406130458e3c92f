"""
Round-trip loader.

Replaces the active graph with the result of running a graph script. The
replacement is all-or-nothing: a backup snapshot is taken first and restored
verbatim if the script fails, so a failed load never leaves a partial graph.
"""
from __future__ import annotations

import ast
import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from vmgraph.compiler.templates import DEFAULT_REGISTRY, TemplateRegistry
from vmgraph.core.GraphPrimitives import Graph, Node
from vmgraph.core.GroupManager import GroupManager, Viewport, ensure_boundary_nodes
from vmgraph.core.History import Snapshot, SnapshotHistory
from vmgraph.core.Types import ModuleMetadata

from .interpreter import ScriptError, ScriptInterpreter

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    ok: bool
    error: Optional[str] = None
    line: Optional[int] = None

    def __bool__(self) -> bool:
        return self.ok


class RoundTripLoader:
    def __init__(
        self,
        groups: GroupManager,
        history: SnapshotHistory,
        metadata: ModuleMetadata,
        registry: Optional[TemplateRegistry] = None,
    ):
        self.groups = groups
        self.history = history
        self.metadata = metadata
        self.registry = registry or DEFAULT_REGISTRY

    def load_from_text(self, text: str, viewport: Optional[Viewport] = None) -> LoadResult:
        try:
            tree = ast.parse(text, mode="exec")
        except SyntaxError as exc:
            logger.info("Rejected graph script: syntax error on line %s", exc.lineno)
            return LoadResult(False, f"syntax error: {exc.msg}", exc.lineno)

        graph = self.groups.active
        owner = self.groups.current_group
        backup = Snapshot.capture(graph, self.metadata, viewport)

        try:
            self._replace(graph, owner, tree)
        except ScriptError as exc:
            self._rollback(backup, graph, owner)
            logger.info("Graph script failed, restored backup: %s", exc)
            return LoadResult(False, exc.message, exc.line)
        except Exception:
            self._rollback(backup, graph, owner)
            raise

        self.history.save(graph, self.metadata, viewport)
        logger.info("Loaded graph script: %d nodes, %d connections",
                    len(graph.nodes), len(graph.connections))
        return LoadResult(True)

    def _replace(self, graph: Graph, owner: Optional[Node], tree: ast.Module) -> None:
        graph.clear()
        if owner is not None:
            ensure_boundary_nodes(owner)
        ScriptInterpreter(graph, self.metadata, self.registry).run(tree)

    def _rollback(self, backup: Snapshot, graph: Graph, owner: Optional[Node]) -> None:
        restored, _ = backup.restore(graph, owner)
        for attr, value in dataclasses.asdict(restored).items():
            setattr(self.metadata, attr, value)
