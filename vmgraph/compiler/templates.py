"""
vmgraph Compiler: Node Code Templates
=====================================
A NodeTemplate describes one node type: its port signature, default fields,
and how it turns into Python source. The code generator never embeds node
logic itself; it only calls these hooks.

  expression(node, ctx)
      Returns an inline expression string. Used for pure nodes (no flow
      ports) and for flow nodes that declare `single_value_output`.

  emit(node, ctx)
      Returns the statement text for a flow node (may span several lines),
      or None when the node writes nothing itself (event anchors).

  branch_header(node, ctx, label, connected)
      For branching templates: the block header for one named flow output,
      or None to skip that branch.

  access_output(base, label, node, ctx)
      How a consumer reads one output of a node that has several data
      outputs. Defaults to `base.label`.

`ctx` is the generator's scope object. Templates read inputs with
`ctx.input(node, label)` and fields with `ctx.field(node, name)`.

Adding a new node type
----------------------
1. Subclass NodeTemplate.
2. Override the hooks you need.
3. Register: `@DEFAULT_REGISTRY.register("myType")` on the class, or
   `DEFAULT_REGISTRY.add(MyTemplate("myType"))` for parametrised templates.

If a type is not registered, DefaultTemplate is used (emits a comment).
"""

from __future__ import annotations

import copy
import keyword
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TYPE_CHECKING

from vmgraph.core.GraphPrimitives import GROUP_INPUT_TYPE, GROUP_OUTPUT_TYPE, Graph, Node
from vmgraph.core.GroupManager import ensure_boundary_nodes
from vmgraph.core.Types import FLOW_LABEL

if TYPE_CHECKING:
    from .emitter import Scope

logger = logging.getLogger(__name__)

# Lifecycle sections in emission order, mapped to their method signatures.
LIFECYCLE_SECTIONS: Dict[str, str] = {
    "start": "start(self)",
    "loop": "loop(self, delta_time)",
    "draw": "draw(self, ctx)",
    "on_destroy": "on_destroy(self)",
}
CUSTOM_SECTION = "custom"


# ── Code writer ───────────────────────────────────────────────────────────────

class CodeWriter:
    """Simple indented string accumulator."""

    def __init__(self, indent: int = 0):
        self._lines: List[str] = []
        self._indent = indent

    def writeln(self, line: str = "") -> "CodeWriter":
        if line:
            self._lines.append("    " * self._indent + line)
        else:
            self._lines.append("")
        return self

    def write_block(self, text: str) -> "CodeWriter":
        for line in text.splitlines():
            self.writeln(line)
        return self

    def blank(self) -> "CodeWriter":
        return self.writeln()

    def comment(self, text: str) -> "CodeWriter":
        return self.writeln(f"# {text}")

    def push(self) -> "CodeWriter":
        self._indent += 1
        return self

    def pop(self) -> "CodeWriter":
        self._indent = max(0, self._indent - 1)
        return self

    def mark(self) -> int:
        return len(self._lines)

    def has_statements_since(self, mark: int) -> bool:
        """Comments and blank lines do not count as a block body."""
        for line in self._lines[mark:]:
            stripped = line.strip()
            if stripped and not stripped.startswith("#"):
                return True
        return False

    def close_block(self, mark: int) -> "CodeWriter":
        if not self.has_statements_since(mark):
            self.writeln("pass")
        return self.pop()

    def lines(self) -> List[str]:
        return self._lines

    def result(self) -> str:
        return "\n".join(self._lines)


# ── Literal / identifier helpers ──────────────────────────────────────────────

_IDENT_BAD = re.compile(r"[^A-Za-z0-9_]")


def sanitize_identifier(name: Any, fallback: str = "unnamed") -> str:
    """'My Group!' -> 'My_Group_', '2fast' -> '_2fast'."""
    text = _IDENT_BAD.sub("_", str(name or ""))
    if not text:
        text = fallback
    if text[0].isdigit():
        text = "_" + text
    if keyword.iskeyword(text):
        text += "_"
    return text


def to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        return int(str(value))
    except ValueError:
        pass
    try:
        return float(str(value))
    except ValueError:
        return 0


def py_literal(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "(" + ", ".join(py_literal(v) for v in value) + ("," if len(value) == 1 else "") + ")"
    if isinstance(value, dict):
        return "{" + ", ".join(f"{py_literal(k)}: {py_literal(v)}" for k, v in value.items()) + "}"
    return repr(value)


# ── Base template ─────────────────────────────────────────────────────────────

class NodeTemplate:
    """
    Base class. Subclasses set the class attributes below and override the
    emission hooks they need.
    """

    type_name: str = ""
    category: str = "misc"
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()
    defaults: Dict[str, Any] = {}

    is_pure: bool = False
    is_group: bool = False
    section: Optional[str] = None
    branch_outputs: Tuple[str, ...] = ()
    single_value_output: bool = False

    # property nodes: registered on the module when `expose` is set;
    # always_declared ones become members even when not exposed
    declares_property: bool = False
    always_declared: bool = False

    def __init__(self, type_name: Optional[str] = None):
        if type_name is not None:
            self.type_name = type_name

    # ── node construction ────────────────────────────────────────────────

    def instantiate(
        self,
        node_id: str,
        position: Tuple[float, float] = (0.0, 0.0),
        fields: Optional[Dict[str, Any]] = None,
    ) -> Node:
        merged = copy.deepcopy(self.defaults)
        merged.update(fields or {})
        node = Node(
            id=node_id,
            type=self.type_name,
            position=(float(position[0]), float(position[1])),
            inputs=list(self.inputs),
            outputs=list(self.outputs),
            fields=merged,
            is_group=self.is_group,
        )
        if self.is_group:
            node.sub_graph = Graph()
            ensure_boundary_nodes(node)
        return node

    # ── emission hooks ───────────────────────────────────────────────────

    def expression(self, node: Node, ctx: "Scope") -> str:
        return "None"

    def emit(self, node: Node, ctx: "Scope") -> Optional[str]:
        return None

    def branch_header(self, node: Node, ctx: "Scope", label: str, connected: bool) -> Optional[str]:
        return None

    def access_output(self, base: str, label: str, node: Node, ctx: "Scope") -> str:
        return f"{base}.{label}"

    def __repr__(self):
        return f"{type(self).__name__}({self.type_name!r})"


class DefaultTemplate(NodeTemplate):
    """Fallback for unregistered types. Emits a comment, never a statement."""

    def emit(self, node: Node, ctx: "Scope") -> Optional[str]:
        return f"# unknown node type '{node.type}' ({node.id})"


# ── Registry ──────────────────────────────────────────────────────────────────

class TemplateRegistry:
    def __init__(self) -> None:
        self._templates: Dict[str, NodeTemplate] = {}
        self._default = DefaultTemplate()

    def add(self, template: NodeTemplate) -> NodeTemplate:
        if not template.type_name:
            raise ValueError(f"Template {template!r} has no type name")
        self._templates[template.type_name] = template
        return template

    def register(self, type_name: str) -> Callable[[Type[NodeTemplate]], Type[NodeTemplate]]:
        def decorator(cls: Type[NodeTemplate]) -> Type[NodeTemplate]:
            self.add(cls(type_name))
            return cls
        return decorator

    def has(self, type_name: str) -> bool:
        return type_name in self._templates

    def get(self, type_name: str) -> NodeTemplate:
        return self._templates.get(type_name, self._default)

    def require(self, type_name: str) -> NodeTemplate:
        template = self._templates.get(type_name)
        if template is None:
            raise ValueError(f"Unknown node type '{type_name}'")
        return template

    def types(self) -> List[str]:
        return list(self._templates)

    def copy(self) -> "TemplateRegistry":
        clone = TemplateRegistry()
        clone._templates = dict(self._templates)
        return clone


DEFAULT_REGISTRY = TemplateRegistry()
register = DEFAULT_REGISTRY.register


def get_template(type_name: str) -> NodeTemplate:
    return DEFAULT_REGISTRY.get(type_name)


# ── Events ────────────────────────────────────────────────────────────────────

@register("start")
class StartTemplate(NodeTemplate):
    category = "events"
    outputs = (FLOW_LABEL,)
    section = "start"


@register("loop")
class LoopTemplate(NodeTemplate):
    category = "events"
    outputs = (FLOW_LABEL, "deltaTime")
    section = "loop"
    single_value_output = True

    def expression(self, node, ctx):
        return "delta_time"


@register("draw")
class DrawTemplate(NodeTemplate):
    category = "events"
    outputs = (FLOW_LABEL, "ctx")
    section = "draw"
    single_value_output = True

    def expression(self, node, ctx):
        return "ctx"


@register("onDestroy")
class OnDestroyTemplate(NodeTemplate):
    category = "events"
    outputs = (FLOW_LABEL,)
    section = "on_destroy"


@register("method")
class MethodTemplate(NodeTemplate):
    """Custom method block: its sub-graph becomes a named method."""
    category = "events"
    defaults = {"name": "custom_method"}
    is_group = True
    section = CUSTOM_SECTION


# ── Groups ────────────────────────────────────────────────────────────────────

@register("group")
class GroupTemplate(NodeTemplate):
    category = "groups"
    inputs = (FLOW_LABEL,)
    outputs = (FLOW_LABEL,)
    defaults = {"label": "Group"}
    is_group = True


@register(GROUP_INPUT_TYPE)
class GroupInputTemplate(NodeTemplate):
    category = "groups"
    outputs = (FLOW_LABEL,)


@register(GROUP_OUTPUT_TYPE)
class GroupOutputTemplate(NodeTemplate):
    category = "groups"
    inputs = (FLOW_LABEL,)


# ── Literals ──────────────────────────────────────────────────────────────────

@register("number")
class NumberTemplate(NodeTemplate):
    category = "values"
    outputs = ("value",)
    defaults = {"value": 0}
    is_pure = True

    def expression(self, node, ctx):
        return repr(to_number(ctx.field(node, "value")))


@register("string")
class StringTemplate(NodeTemplate):
    category = "values"
    outputs = ("value",)
    defaults = {"value": ""}
    is_pure = True

    def expression(self, node, ctx):
        return repr(str(ctx.field(node, "value")))


@register("boolean")
class BooleanTemplate(NodeTemplate):
    category = "values"
    outputs = ("value",)
    defaults = {"value": False}
    is_pure = True

    def expression(self, node, ctx):
        value = ctx.field(node, "value")
        if isinstance(value, str):
            value = value.strip().lower() in ("true", "1", "yes")
        return repr(bool(value))


@register("color")
class ColorTemplate(StringTemplate):
    defaults = {"value": "#ffffff"}


@register("vector2")
class Vector2Template(NodeTemplate):
    category = "values"
    outputs = ("x", "y")
    defaults = {"x": 0, "y": 0}
    is_pure = True

    def expression(self, node, ctx):
        x = py_literal(to_number(ctx.field(node, "x")))
        y = py_literal(to_number(ctx.field(node, "y")))
        return f"Vector2({x}, {y})"

    def access_output(self, base, label, node, ctx):
        return f"({base}).{label}"


# ── Math and logic ────────────────────────────────────────────────────────────

class BinaryOpTemplate(NodeTemplate):
    category = "math"
    inputs = ("a", "b")
    outputs = ("result",)
    defaults = {"a": 0, "b": 0}
    is_pure = True

    def __init__(self, type_name: str, operator: str):
        super().__init__(type_name)
        self.operator = operator

    def expression(self, node, ctx):
        return f"({ctx.input(node, 'a')} {self.operator} {ctx.input(node, 'b')})"


for _type, _op in (
    ("add", "+"),
    ("subtract", "-"),
    ("multiply", "*"),
    ("divide", "/"),
    ("and", "and"),
    ("or", "or"),
):
    DEFAULT_REGISTRY.add(BinaryOpTemplate(_type, _op))
del _type, _op


@register("compare")
class CompareTemplate(NodeTemplate):
    category = "logic"
    inputs = ("a", "b")
    outputs = ("result",)
    defaults = {"a": 0, "b": 0, "op": "=="}
    is_pure = True

    OPERATORS = ("==", "!=", "<", "<=", ">", ">=")

    def expression(self, node, ctx):
        op = ctx.field(node, "op")
        if op not in self.OPERATORS:
            logger.warning("Compare node %s has invalid operator %r, using '=='", node.id, op)
            op = "=="
        return f"({ctx.input(node, 'a')} {op} {ctx.input(node, 'b')})"


@register("not")
class NotTemplate(NodeTemplate):
    category = "logic"
    inputs = ("value",)
    outputs = ("result",)
    defaults = {"value": False}
    is_pure = True

    def expression(self, node, ctx):
        return f"(not {ctx.input(node, 'value')})"


# ── Properties and variables ──────────────────────────────────────────────────

@register("getProperty")
class GetPropertyTemplate(NodeTemplate):
    category = "properties"
    outputs = ("value",)
    defaults = {"name": "value"}
    is_pure = True

    def expression(self, node, ctx):
        return f"self.{ctx.member(node)}"


@register("variable")
class VariableTemplate(NodeTemplate):
    """A module member declared in __init__; exposed when `expose` is set."""
    category = "properties"
    outputs = ("value",)
    defaults = {"name": "my_var", "value": 0, "expose": False, "group": "General"}
    is_pure = True
    declares_property = True
    always_declared = True

    def expression(self, node, ctx):
        return f"self.{ctx.member(node)}"


@register("setProperty")
class SetPropertyTemplate(NodeTemplate):
    category = "properties"
    inputs = (FLOW_LABEL, "value")
    outputs = (FLOW_LABEL,)
    defaults = {"name": "property", "value": 0, "expose": False, "group": "General"}
    declares_property = True

    def emit(self, node, ctx):
        return f"self.{ctx.member(node)} = {ctx.input(node, 'value')}"


@register("let")
class LetTemplate(NodeTemplate):
    """Local variable; downstream consumers read it by name."""
    category = "properties"
    inputs = (FLOW_LABEL, "value")
    outputs = (FLOW_LABEL, "value")
    defaults = {"name": "temp", "value": 0}
    single_value_output = True

    def emit(self, node, ctx):
        return f"{sanitize_identifier(ctx.field(node, 'name'))} = {ctx.input(node, 'value')}"

    def expression(self, node, ctx):
        return sanitize_identifier(ctx.field(node, "name"))


# ── Actions ───────────────────────────────────────────────────────────────────

@register("log")
class LogTemplate(NodeTemplate):
    category = "actions"
    inputs = (FLOW_LABEL, "message")
    outputs = (FLOW_LABEL,)
    defaults = {"message": ""}

    def emit(self, node, ctx):
        return f"print({ctx.input(node, 'message')})"


@register("callMethod")
class CallMethodTemplate(NodeTemplate):
    category = "actions"
    inputs = (FLOW_LABEL,)
    outputs = (FLOW_LABEL,)
    defaults = {"name": "custom_method"}

    def emit(self, node, ctx):
        return f"self.{sanitize_identifier(ctx.field(node, 'name'))}()"


# ── Control flow ──────────────────────────────────────────────────────────────

@register("if")
class IfTemplate(NodeTemplate):
    category = "control"
    inputs = (FLOW_LABEL, "condition")
    outputs = ("true", "false")
    defaults = {"condition": False}
    branch_outputs = ("true", "false")

    def branch_header(self, node, ctx, label, connected):
        if label == "true":
            return f"if {ctx.input(node, 'condition')}:"
        if label == "false" and connected:
            return "else:"
        return None


@register("repeat")
class RepeatTemplate(NodeTemplate):
    """Counted loop. `body` runs `count` times, then `flow` continues."""
    category = "control"
    inputs = (FLOW_LABEL, "count")
    outputs = (FLOW_LABEL, "body", "index")
    defaults = {"count": 1}
    branch_outputs = ("body",)
    single_value_output = True

    def expression(self, node, ctx):
        return f"i_{sanitize_identifier(node.id)}"

    def branch_header(self, node, ctx, label, connected):
        return f"for {self.expression(node, ctx)} in range(int({ctx.input(node, 'count')})):"


__all__ = [
    "CUSTOM_SECTION",
    "LIFECYCLE_SECTIONS",
    "CodeWriter",
    "DEFAULT_REGISTRY",
    "DefaultTemplate",
    "NodeTemplate",
    "TemplateRegistry",
    "get_template",
    "py_literal",
    "register",
    "sanitize_identifier",
    "to_number",
]
