"""
Graph script interpreter.

Scripts use Python syntax but are never executed by Python. The text is parsed
with `ast` and each statement is matched against a small set of allowed forms:

    module(name=..., namespace=..., ...)       set module metadata
    x = node(type, id=..., position=..., ...)  create a node, bind it to x
    connect(a, out_index, b, in_index)         a / b are names or id strings
    disconnect(b, in_index)                    drop the connection into b
    remove(a)                                  delete a node
    with group(g):                             run the block inside g's sub-graph
    pass

Call arguments must be literals or names bound by an earlier `x = node(...)`.
Inside a `with group(...)` block the names `group_input` and `group_output`
refer to the group's boundary pseudo-nodes. Anything else raises ScriptError.
"""
from __future__ import annotations

import ast
import inspect
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from vmgraph.compiler.templates import DEFAULT_REGISTRY, TemplateRegistry
from vmgraph.core.GraphPrimitives import BOUNDARY_TYPES, GROUP_INPUT_TYPE, GROUP_OUTPUT_TYPE, Graph, Node
from vmgraph.core.GroupManager import ensure_boundary_nodes
from vmgraph.core.Types import ModuleMetadata

logger = logging.getLogger(__name__)

Scope = Dict[str, Node]


class ScriptError(ValueError):
    """A graph script used a disallowed construct or a mutation was rejected."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.message = message
        self.line = line
        super().__init__(f"line {line}: {message}" if line is not None else message)


class ScriptInterpreter:
    COMMANDS = ("module", "node", "connect", "disconnect", "remove")

    def __init__(
        self,
        graph: Graph,
        metadata: Optional[ModuleMetadata] = None,
        registry: Optional[TemplateRegistry] = None,
    ):
        self.graph = graph
        self.metadata = metadata if metadata is not None else ModuleMetadata()
        self.registry = registry or DEFAULT_REGISTRY
        self.statements_run = 0

    def run(self, source: Union[str, ast.Module]) -> Graph:
        if isinstance(source, str):
            try:
                source = ast.parse(source, mode="exec")
            except SyntaxError as exc:
                raise ScriptError(f"syntax error: {exc.msg}", exc.lineno) from exc
        self._exec_body(source.body, self.graph, self._boundary_scope(self.graph))
        logger.debug("Graph script ran %d statements", self.statements_run)
        return self.graph

    # ── statements ───────────────────────────────────────────────────────

    def _exec_body(self, body: List[ast.stmt], graph: Graph, scope: Scope) -> None:
        for stmt in body:
            try:
                self._exec_stmt(stmt, graph, scope)
            except ScriptError as exc:
                if exc.line is None:
                    raise ScriptError(exc.message, stmt.lineno) from exc
                raise
            self.statements_run += 1

    def _exec_stmt(self, stmt: ast.stmt, graph: Graph, scope: Scope) -> None:
        if isinstance(stmt, ast.Pass):
            return

        if isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Call):
            self._call(stmt.value, graph, scope)
            return

        if isinstance(stmt, ast.Assign):
            if len(stmt.targets) != 1 or not isinstance(stmt.targets[0], ast.Name):
                raise ScriptError("assignment target must be a single name")
            call = stmt.value
            if not (isinstance(call, ast.Call) and isinstance(call.func, ast.Name) and call.func.id == "node"):
                raise ScriptError("only node(...) results can be assigned")
            scope[stmt.targets[0].id] = self._call(call, graph, scope)
            return

        if isinstance(stmt, ast.With):
            self._exec_with(stmt, graph, scope)
            return

        raise ScriptError(f"unsupported statement '{type(stmt).__name__}'")

    def _exec_with(self, stmt: ast.With, graph: Graph, scope: Scope) -> None:
        if len(stmt.items) != 1 or stmt.items[0].optional_vars is not None:
            raise ScriptError("with takes exactly one group(...) and no 'as'")
        call = stmt.items[0].context_expr
        if not (isinstance(call, ast.Call) and isinstance(call.func, ast.Name) and call.func.id == "group"):
            raise ScriptError("with only accepts group(...)")
        if len(call.args) != 1 or call.keywords:
            raise ScriptError("group() takes exactly one node")

        group_node = self._node_ref(self._value(call.args[0], scope), graph)
        if not group_node.is_group:
            raise ScriptError(f"node '{group_node.id}' is not a group")
        ensure_boundary_nodes(group_node)
        sub = group_node.sub_graph
        self._exec_body(stmt.body, sub, self._boundary_scope(sub))

    @staticmethod
    def _boundary_scope(graph: Graph) -> Scope:
        """`group_input` / `group_output` for whichever pseudo-nodes the graph holds."""
        scope: Scope = {}
        for pseudo in graph.nodes_of_type(GROUP_INPUT_TYPE):
            scope["group_input"] = pseudo
        for pseudo in graph.nodes_of_type(GROUP_OUTPUT_TYPE):
            scope["group_output"] = pseudo
        return scope

    # ── expressions ──────────────────────────────────────────────────────

    def _value(self, expr: ast.expr, scope: Scope) -> Any:
        if isinstance(expr, ast.Name) and expr.id not in ("True", "False", "None"):
            if expr.id not in scope:
                raise ScriptError(f"unknown name '{expr.id}'")
            return scope[expr.id]
        try:
            value = ast.literal_eval(expr)
        except (ValueError, TypeError, SyntaxError) as exc:
            raise ScriptError("arguments must be literals or node names") from exc
        self._check_plain(value)
        return value

    @classmethod
    def _check_plain(cls, value: Any) -> None:
        """Literals must survive a JSON round trip: no sets, bytes or complex numbers."""
        if value is None or isinstance(value, (bool, int, float, str)):
            return
        if isinstance(value, (list, tuple)):
            for item in value:
                cls._check_plain(item)
            return
        if isinstance(value, dict):
            for key, item in value.items():
                if not isinstance(key, str):
                    raise ScriptError(f"dict keys must be strings, got {key!r}")
                cls._check_plain(item)
            return
        raise ScriptError(f"unsupported literal of type '{type(value).__name__}'")

    def _call(self, call: ast.Call, graph: Graph, scope: Scope) -> Any:
        if not isinstance(call.func, ast.Name) or call.func.id not in self.COMMANDS:
            raise ScriptError(f"unknown command '{ast.unparse(call.func)}'")
        name = call.func.id
        args = [self._value(a, scope) for a in call.args]
        kwargs = {}
        for kw in call.keywords:
            if kw.arg is None:
                raise ScriptError(f"{name}() does not accept **kwargs")
            kwargs[kw.arg] = self._value(kw.value, scope)

        command = getattr(self, f"_cmd_{name}")
        try:
            inspect.signature(command).bind(graph, *args, **kwargs)
        except TypeError as exc:
            raise ScriptError(f"bad arguments to {name}(): {exc}") from exc
        return command(graph, *args, **kwargs)

    def _node_ref(self, value: Any, graph: Graph) -> Node:
        if isinstance(value, Node):
            if graph.get_node(value.id) is not value:
                raise ScriptError(f"node '{value.id}' belongs to another graph")
            return value
        if isinstance(value, str):
            node = graph.get_node(value)
            if node is None:
                raise ScriptError(f"unknown node id '{value}'")
            return node
        raise ScriptError(f"expected a node, got {value!r}")

    @staticmethod
    def _pair(value: Any, what: str) -> Tuple[float, float]:
        if (
            not isinstance(value, (list, tuple))
            or len(value) != 2
            or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value)
        ):
            raise ScriptError(f"{what} must be a pair of numbers, got {value!r}")
        return float(value[0]), float(value[1])

    @staticmethod
    def _index(value: Any) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ScriptError(f"port index must be an integer, got {value!r}")
        return value

    # ── commands ─────────────────────────────────────────────────────────

    def _cmd_module(self, graph: Graph, **attrs: Any) -> None:
        defaults = ModuleMetadata()
        for attr, value in attrs.items():
            expected = type(getattr(defaults, attr, value))
            if not isinstance(value, expected):
                raise ScriptError(f"module {attr} must be {expected.__name__}, got {value!r}")
        try:
            self.metadata.update(**attrs)
        except KeyError as exc:
            raise ScriptError(str(exc.args[0])) from exc

    def _cmd_node(
        self,
        graph: Graph,
        type: str,
        id: Optional[str] = None,
        position: Tuple[float, float] = (0.0, 0.0),
        size: Optional[Tuple[float, float]] = None,
        fields: Optional[Dict[str, Any]] = None,
        inputs: Optional[List[str]] = None,
        outputs: Optional[List[str]] = None,
    ) -> Node:
        if not isinstance(type, str):
            raise ScriptError(f"node type must be a string, got {type!r}")
        if id is not None and (not isinstance(id, str) or not id):
            raise ScriptError(f"node id must be a non-empty string, got {id!r}")
        if type in BOUNDARY_TYPES:
            raise ScriptError(f"'{type}' nodes are created by their group")
        try:
            template = self.registry.require(type)
        except ValueError as exc:
            raise ScriptError(str(exc)) from exc
        if fields is not None and not isinstance(fields, dict):
            raise ScriptError("fields must be a dict")
        for what, labels in (("inputs", inputs), ("outputs", outputs)):
            if labels is not None and (
                not isinstance(labels, (list, tuple)) or not all(isinstance(label, str) for label in labels)
            ):
                raise ScriptError(f"{what} must be a list of strings, got {labels!r}")

        node = template.instantiate(id or graph.new_node_id(), self._pair(position, "position"))
        if fields is not None:
            node.fields = dict(fields)
        if size is not None:
            node.size = self._pair(size, "size")
        if inputs is not None:
            node.inputs = list(inputs)
        if outputs is not None:
            node.outputs = list(outputs)
        if node.is_group:
            ensure_boundary_nodes(node)

        result = graph.add_node(node)
        if not result.ok:
            raise ScriptError(f"cannot add node '{node.id}': {result.error.name}")
        return node

    def _cmd_connect(self, graph: Graph, source: Any, out_index: Any, target: Any, in_index: Any) -> None:
        src = self._node_ref(source, graph)
        dst = self._node_ref(target, graph)
        result = graph.connect(src.id, self._index(out_index), dst.id, self._index(in_index))
        if not result.ok:
            raise ScriptError(
                f"cannot connect {src.id}[{out_index}] -> {dst.id}[{in_index}]: {result.error.name}"
            )

    def _cmd_disconnect(self, graph: Graph, target: Any, in_index: Any) -> None:
        dst = self._node_ref(target, graph)
        index = self._index(in_index)
        graph.remove_connection(lambda c: c.to_ref == (dst.id, index))

    def _cmd_remove(self, graph: Graph, target: Any) -> None:
        node = self._node_ref(target, graph)
        result = graph.remove_node(node.id)
        if not result.ok:
            raise ScriptError(f"cannot remove node '{node.id}': {result.error.name}")
