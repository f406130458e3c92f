"""
Undo / redo over serialized graph states.

Each Snapshot is a self-contained, JSON-safe copy of one Graph plus the module
metadata and viewport current at capture time. Connections inside a snapshot
reference node ids, never live objects.
"""
from __future__ import annotations

import copy
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Tuple, TYPE_CHECKING

from vmgraph.serializers.graph_serializer import deserialize_graph, serialize_graph

from .GroupManager import Viewport
from .Types import ModuleMetadata

if TYPE_CHECKING:
    from .GraphPrimitives import Graph, Node

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class Snapshot:
    graph: Dict[str, Any]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        graph: "Graph",
        metadata: Optional[ModuleMetadata] = None,
        viewport: Optional[Viewport] = None,
    ) -> "Snapshot":
        return cls(
            graph=serialize_graph(graph, viewport),
            metadata=(metadata or ModuleMetadata()).to_dict(),
        )

    def canonical(self) -> str:
        return json.dumps({"graph": self.graph, "metadata": self.metadata}, sort_keys=True)

    def __eq__(self, other):
        if not isinstance(other, Snapshot):
            return NotImplemented
        return self.canonical() == other.canonical()

    def __hash__(self):
        return hash(self.canonical())

    def restore(
        self,
        graph: "Graph",
        owner: Optional["Node"] = None,
    ) -> Tuple[ModuleMetadata, Viewport]:
        """
        Rebuild `graph` in place from this snapshot. `owner` is the group node
        whose sub-graph is being restored, so boundary pseudo-nodes can be
        re-created. Connections to missing ids are dropped.
        """
        deserialize_graph(copy.deepcopy(self.graph), owner=owner, into=graph)
        return ModuleMetadata.from_dict(self.metadata), Viewport.from_dict(self.graph)


class SnapshotHistory:
    """
    Linear undo/redo. The top of the undo stack is always the current state,
    so undo is a no-op while only the initial snapshot remains.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError(f"History limit must be at least 1, got {limit}")
        self.limit = limit
        self._undo: Deque[Snapshot] = deque(maxlen=limit)
        self._redo: List[Snapshot] = []

    def __len__(self):
        return len(self._undo)

    @property
    def current(self) -> Optional[Snapshot]:
        return self._undo[-1] if self._undo else None

    def can_undo(self) -> bool:
        return len(self._undo) > 1

    def can_redo(self) -> bool:
        return bool(self._redo)

    def push(self, snapshot: Snapshot) -> Snapshot:
        # deque(maxlen) drops the oldest entry once the bound is reached
        self._undo.append(snapshot)
        self._redo.clear()
        return snapshot

    def save(
        self,
        graph: "Graph",
        metadata: Optional[ModuleMetadata] = None,
        viewport: Optional[Viewport] = None,
    ) -> Snapshot:
        snapshot = self.push(Snapshot.capture(graph, metadata, viewport))
        logger.debug("History save (%d entries)", len(self._undo))
        return snapshot

    def undo(self) -> Optional[Snapshot]:
        if not self.can_undo():
            return None
        self._redo.append(self._undo.pop())
        return self._undo[-1]

    def redo(self) -> Optional[Snapshot]:
        if not self._redo:
            return None
        snapshot = self._redo.pop()
        self._undo.append(snapshot)
        return snapshot

    def reset(self, initial: Optional[Snapshot] = None) -> None:
        self._undo.clear()
        self._redo.clear()
        if initial is not None:
            self._undo.append(initial)

    def entries(self) -> List[Snapshot]:
        return list(self._undo)
