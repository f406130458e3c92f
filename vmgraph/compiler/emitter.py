"""
vmgraph Compiler: Python Source Emitter
=======================================
Walks a Graph (and, transitively, the sub-graphs of its group nodes) and
emits one class-shaped Python module.

Pipeline
--------
    Graph  →  section entry discovery  →  recursive flow emission
           →  property / member collection
           →  extracted methods (method blocks, unconnected groups)
           →  formatter  →  Python source str

Traversal rules
---------------
- Flow statements are emitted by following `flow` output connections in
  connection order. A visited set per pass stops duplicates and cycles.
- Data inputs are resolved to inline expressions. Pure nodes always inline;
  flow nodes are referenced only when their template declares a single value
  output or overrides `access_output`.
- Branch outputs (`if.true`, `repeat.body` ...) each get their own copy of the
  visited set.
- A group reached through its flow input is inlined; a group with no
  incoming flow connection becomes its own method.
- A connection whose source node is missing counts as no connection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from vmgraph.core.GraphPrimitives import GROUP_INPUT_TYPE, GROUP_OUTPUT_TYPE, Graph, Node
from vmgraph.core.Types import ModuleMetadata, PortFunction, port_function

from .templates import (
    CUSTOM_SECTION,
    DEFAULT_REGISTRY,
    LIFECYCLE_SECTIONS,
    CodeWriter,
    NodeTemplate,
    TemplateRegistry,
    py_literal,
    sanitize_identifier,
    to_number,
)

logger = logging.getLogger(__name__)

Formatter = Callable[[str], str]

RESERVED_METHOD_NAMES = frozenset(
    {"__init__", "to_dict", "from_dict", "expose_property"} | set(LIFECYCLE_SECTIONS)
)

# class attributes written from ModuleMetadata
CLASS_ATTRIBUTES = frozenset({"namespace", "icon", "color", "allow_multiple", "draw_in_editor"})


def tidy_source(text: str) -> str:
    """Default formatter: strip trailing spaces, cap blank runs at two lines."""
    out: List[str] = []
    blank_run = 0
    for line in text.splitlines():
        line = line.rstrip()
        if not line:
            blank_run += 1
            if blank_run > 2:
                continue
        else:
            blank_run = 0
        out.append(line)
    return "\n".join(out).strip("\n") + "\n"


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


@dataclass
class ModuleProperty:
    name: str
    type: str
    default: Any
    exposed: bool = True
    group: str = "General"


def property_type(value: Any, source_type: Optional[str] = None) -> str:
    if source_type == "vector2" or (isinstance(value, (list, tuple)) and len(value) == 2):
        return "vector2"
    if source_type == "color" or (isinstance(value, str) and value.startswith("#")):
        return "color"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return "string"


# ── Scope ─────────────────────────────────────────────────────────────────────

class Scope:
    """
    Emission context bound to one Graph. Templates call `input` and `field`
    on it; nested group contents get their own Scope because every sub-graph
    has an independent id space.
    """

    def __init__(self, generator: "CodeGenerator", graph: Graph):
        self.generator = generator
        self.graph = graph

    def template(self, node: Node) -> NodeTemplate:
        return self.generator.registry.get(node.type)

    def field(self, node: Node, name: str) -> Any:
        if name in node.fields:
            return node.fields[name]
        return self.template(node).defaults.get(name)

    def member(self, node: Node, name: str = "name") -> str:
        """Attribute name of the module member a property node reads or writes."""
        return self.generator.member_name(self.field(node, name))

    def source_of(self, node: Node, label: str) -> Optional[Tuple[Node, int]]:
        if label not in node.inputs:
            return None
        conn = self.graph.incoming(node.id, node.inputs.index(label))
        if conn is None:
            return None
        source = self.graph.get_node(conn.from_ref.node_id)
        if source is None or not 0 <= conn.from_ref.port_index < len(source.outputs):
            logger.debug("Dangling connection into %s.%s treated as unconnected", node.id, label)
            return None
        return source, conn.from_ref.port_index

    def input(self, node: Node, label: str) -> str:
        """Expression for a data input: upstream value, else field, else None."""
        found = self.source_of(node, label)
        if found is not None:
            return self.output_expression(*found)
        value = self.field(node, label)
        return "None" if value is None else py_literal(value)

    def output_expression(self, source: Node, index: int) -> str:
        key = (id(self.graph), source.id)
        resolving = self.generator._resolving
        if key in resolving:
            logger.warning("Data cycle through node %s; emitting None", source.id)
            return "None"
        resolving.add(key)
        try:
            return self._output_expression(source, index)
        finally:
            resolving.discard(key)

    def _output_expression(self, source: Node, index: int) -> str:
        template = self.template(source)
        label = source.outputs[index]
        data_outputs = [o for o in source.outputs if port_function(o) == PortFunction.DATA]
        overrides_access = type(template).access_output is not NodeTemplate.access_output

        if template.is_pure:
            base = template.expression(source, self)
            if len(data_outputs) > 1:
                return template.access_output(base, label, source, self)
            return base

        if template.single_value_output and len(data_outputs) == 1:
            return template.expression(source, self)
        if overrides_access:
            return template.access_output(template.expression(source, self), label, source, self)
        logger.debug("Node %s (%s) has no value access; emitting None", source.id, source.type)
        return "None"


# ── Generator ─────────────────────────────────────────────────────────────────

class CodeGenerator:
    def __init__(
        self,
        registry: Optional[TemplateRegistry] = None,
        formatter: Optional[Formatter] = None,
        base_class: str = "Module",
        base_import: Optional[str] = None,
    ):
        self.registry = registry or DEFAULT_REGISTRY
        self.formatter = formatter or tidy_source
        self.base_class = base_class
        self.base_import = base_import
        self._resolving: Set[Tuple[int, str]] = set()
        self._reserved_members: Set[str] = set(RESERVED_METHOD_NAMES) | CLASS_ATTRIBUTES
        self._members: Dict[str, str] = {}

    # ── public API ───────────────────────────────────────────────────────

    def generate(self, graph: Graph, metadata: Optional[ModuleMetadata] = None) -> str:
        metadata = metadata or ModuleMetadata()
        self._resolving = set()
        class_name = sanitize_identifier(metadata.name, fallback="CustomModule")
        methods = self.collect_methods(graph)
        self._reserved_members = (
            set(RESERVED_METHOD_NAMES) | CLASS_ATTRIBUTES | {name for name, _ in methods}
        )
        self._members = {}
        properties = self.collect_properties(graph)

        writer = CodeWriter()
        writer.comment(f"Generated by vmgraph from module '{metadata.name}'.")
        writer.comment("Edit the graph and regenerate instead of editing this file.")
        if self.base_import:
            writer.writeln(self.base_import)
        writer.blank()
        writer.blank()
        writer.writeln(f"class {class_name}({self.base_class}):")
        writer.push()
        writer.writeln(py_literal(str(metadata.description)))
        writer.blank()
        writer.writeln(f"namespace = {py_literal(metadata.namespace)}")
        writer.writeln(f"icon = {py_literal(metadata.icon)}")
        writer.writeln(f"color = {py_literal(metadata.color)}")
        writer.writeln(f"allow_multiple = {bool(metadata.allow_multiple)!r}")
        writer.writeln(f"draw_in_editor = {bool(metadata.draw_in_editor)!r}")
        writer.blank()

        self._write_constructor(writer, metadata, properties)

        for section, signature in LIFECYCLE_SECTIONS.items():
            writer.blank()
            writer.writeln(f"def {signature}:")
            writer.push()
            mark = writer.mark()
            self.emit_section(graph, section, writer)
            writer.close_block(mark)

        for method_name, node in methods:
            writer.blank()
            writer.writeln(f"def {method_name}(self):")
            writer.push()
            mark = writer.mark()
            self.emit_group_contents(node, writer)
            writer.close_block(mark)

        exposed = [p for p in properties if p.exposed]
        if exposed:
            self._write_persistence(writer, exposed)

        writer.pop()
        source = self.formatter(writer.result())
        logger.debug("Generated %d lines for module %s", source.count("\n"), class_name)
        return source

    def emit_section(self, graph: Graph, section: str, writer: CodeWriter) -> None:
        scope = Scope(self, graph)
        visited: Set[str] = set()
        for entry in self.section_entries(graph, section):
            self.emit_node(entry, scope, writer, visited)

    def section_entries(self, graph: Graph, section: str) -> List[Node]:
        return [
            n for n in graph.nodes.values()
            if self.registry.get(n.type).section == section and not graph.has_incoming_flow(n)
        ]

    def emit_node(self, node: Node, scope: Scope, writer: CodeWriter, visited: Set[str]) -> None:
        if node.id in visited:
            return
        visited.add(node.id)
        template = scope.template(node)

        if node.is_boundary:
            pass
        elif node.is_group and template.section != CUSTOM_SECTION:
            writer.comment(f"Group: {node.label}")
            self.emit_group_contents(node, writer)
        else:
            text = template.emit(node, scope)
            if text:
                writer.write_block(text)
            for label in template.branch_outputs:
                self._emit_branch(node, label, template, scope, writer, visited)

        flow_index = node.flow_output_index()
        if flow_index is not None:
            for target in self._targets(scope.graph, node, flow_index):
                self.emit_node(target, scope, writer, visited)

    def _emit_branch(
        self,
        node: Node,
        label: str,
        template: NodeTemplate,
        scope: Scope,
        writer: CodeWriter,
        visited: Set[str],
    ) -> None:
        if label not in node.outputs:
            return
        targets = self._targets(scope.graph, node, node.outputs.index(label))
        header = template.branch_header(node, scope, label, bool(targets))
        if header is None:
            return
        writer.writeln(header)
        writer.push()
        mark = writer.mark()
        branch_visited = set(visited)
        for target in targets:
            self.emit_node(target, scope, writer, branch_visited)
        writer.close_block(mark)

    def _targets(self, graph: Graph, node: Node, output_index: int) -> List[Node]:
        targets = []
        for conn in graph.outgoing(node.id, output_index):
            target = graph.get_node(conn.to_ref.node_id)
            if target is not None:
                targets.append(target)
        return targets

    # ── groups ───────────────────────────────────────────────────────────

    def group_entries(self, sub: Graph) -> List[Node]:
        group_inputs = sub.nodes_of_type(GROUP_INPUT_TYPE)
        if group_inputs:
            entry = group_inputs[0]
            index = entry.flow_output_index()
            return self._targets(sub, entry, index) if index is not None else []
        return [
            n for n in sub.nodes.values()
            if not n.is_boundary
            and not n.is_group
            and n.flow_input_index() is not None
            and not sub.has_incoming_flow(n)
        ]

    def emit_group_contents(self, group_node: Node, writer: CodeWriter) -> None:
        sub = group_node.sub_graph or Graph()
        scope = Scope(self, sub)
        visited = {n.id for n in sub.nodes_of_type(GROUP_OUTPUT_TYPE)}
        entries = self.group_entries(sub)
        if not entries:
            writer.comment(f"Empty group: {group_node.label}")
        for entry in entries:
            self.emit_node(entry, scope, writer, visited)

    def collect_methods(self, graph: Graph) -> List[Tuple[str, Node]]:
        """Method blocks and unconnected groups at any depth, with unique names."""
        found: List[Tuple[str, Node]] = []
        self._walk_methods(graph, found)

        taken: Set[str] = set(RESERVED_METHOD_NAMES)
        named: List[Tuple[str, Node]] = []
        for raw_name, node in found:
            base = sanitize_identifier(raw_name, fallback="group")
            name, n = base, 2
            while name in taken:
                name = f"{base}_{n}"
                n += 1
            taken.add(name)
            named.append((name, node))
        return named

    def _walk_methods(self, graph: Graph, found: List[Tuple[str, Node]]) -> None:
        for node in graph.nodes.values():
            if not node.is_group:
                continue
            template = self.registry.get(node.type)
            if template.section == CUSTOM_SECTION:
                found.append((node.fields.get("name") or "custom_method", node))
            elif not graph.has_incoming_flow(node):
                found.append((node.label, node))
            if node.sub_graph is not None:
                self._walk_methods(node.sub_graph, found)

    # ── properties ───────────────────────────────────────────────────────

    def member_name(self, raw_name: Any) -> str:
        """
        Attribute name for a module member. Names that would shadow a hook,
        a class attribute or an extracted method get a `_2`, `_3` ... suffix.
        The same raw name always maps to the same attribute within one pass.
        """
        base = sanitize_identifier(raw_name)
        if base in self._members:
            return self._members[base]
        taken = self._reserved_members | set(self._members.values())
        name, n = base, 2
        while name in taken:
            name = f"{base}_{n}"
            n += 1
        self._members[base] = name
        return name

    def collect_properties(self, graph: Graph) -> List[ModuleProperty]:
        props: Dict[str, ModuleProperty] = {}
        self._walk_properties(graph, props)
        return list(props.values())

    def _walk_properties(self, graph: Graph, props: Dict[str, ModuleProperty]) -> None:
        scope = Scope(self, graph)
        for node in graph.nodes.values():
            template = self.registry.get(node.type)
            if template.declares_property:
                exposed = _truthy(node.fields.get("expose", False))
                if exposed or template.always_declared:
                    name = scope.member(node)
                    if name not in props:
                        props[name] = self._property_for(node, name, exposed, scope)
            if node.sub_graph is not None:
                self._walk_properties(node.sub_graph, props)

    def _property_for(self, node: Node, name: str, exposed: bool, scope: Scope) -> ModuleProperty:
        default = scope.field(node, "value")
        source_type = None
        found = scope.source_of(node, "value")
        if found is not None:
            source, _ = found
            source_template = scope.template(source)
            if source_template.is_pure and source_template.category == "values":
                source_type = source.type
                if source.type == "vector2":
                    default = (to_number(scope.field(source, "x")), to_number(scope.field(source, "y")))
                else:
                    default = scope.field(source, "value")
        if source_type == "number":
            default = to_number(default)
        return ModuleProperty(
            name=name,
            type=property_type(default, source_type),
            default=default,
            exposed=exposed,
            group=str(scope.field(node, "group") or "General"),
        )

    # ── class boilerplate ────────────────────────────────────────────────

    def _write_constructor(
        self,
        writer: CodeWriter,
        metadata: ModuleMetadata,
        properties: List[ModuleProperty],
    ) -> None:
        writer.writeln("def __init__(self):")
        writer.push()
        writer.writeln(f"super().__init__({py_literal(metadata.name)})")
        for prop in properties:
            writer.writeln(f"self.{prop.name} = {py_literal(prop.default)}")
        for prop in properties:
            if prop.exposed:
                writer.writeln(
                    f"self.expose_property({py_literal(prop.name)}, {py_literal(prop.type)}, "
                    f"{py_literal(prop.default)}, group={py_literal(prop.group)})"
                )
        writer.pop()

    def _write_persistence(self, writer: CodeWriter, exposed: List[ModuleProperty]) -> None:
        writer.blank()
        writer.writeln("def to_dict(self):")
        writer.push()
        writer.writeln("return {")
        writer.push()
        for prop in exposed:
            writer.writeln(f"{py_literal(prop.name)}: self.{prop.name},")
        writer.pop()
        writer.writeln("}")
        writer.pop()
        writer.blank()
        writer.writeln("def from_dict(self, data):")
        writer.push()
        for prop in exposed:
            writer.writeln(f"self.{prop.name} = data.get({py_literal(prop.name)}, self.{prop.name})")
        writer.pop()

