"""
Graph script writer.

Renders a Graph as the constrained script the interpreter accepts. Output is
deterministic: module metadata, then nodes in graph order, then connections in
graph order, then one `with group(...)` block per group node.

    # vmgraph graph script: Speedy
    module(name='Speedy', namespace='Custom', ...)

    n1 = node('start', id='node_1', position=(100.0, 80.0))
    n2 = node('setProperty', id='node_2', position=(340.0, 80.0),
              fields={'name': 'speed', 'value': 5, 'expose': True, 'group': 'General'})
    connect(n1, 0, n2, 0)
"""
from __future__ import annotations

from typing import Dict, Optional

from vmgraph.compiler.templates import DEFAULT_REGISTRY, CodeWriter, TemplateRegistry
from vmgraph.core.GraphPrimitives import GROUP_INPUT_TYPE, Graph, Node
from vmgraph.core.Types import ModuleMetadata

DEFAULT_SIZE = (180.0, 80.0)


class _Names:
    """Hands out n1, n2 ... across the whole script."""

    def __init__(self):
        self._count = 0

    def next(self) -> str:
        self._count += 1
        return f"n{self._count}"


def _node_call(node: Node, registry: TemplateRegistry) -> str:
    args = [repr(node.type), f"id={node.id!r}"]
    args.append(f"position=({float(node.position[0])!r}, {float(node.position[1])!r})")
    if tuple(float(v) for v in node.size) != DEFAULT_SIZE:
        args.append(f"size=({float(node.size[0])!r}, {float(node.size[1])!r})")
    args.append(f"fields={node.fields!r}")

    template = registry.get(node.type)
    if list(node.inputs) != list(template.inputs):
        args.append(f"inputs={list(node.inputs)!r}")
    if list(node.outputs) != list(template.outputs):
        args.append(f"outputs={list(node.outputs)!r}")
    return f"node({', '.join(args)})"


def _write_graph(graph: Graph, writer: CodeWriter, names: _Names, registry: TemplateRegistry) -> None:
    handles: Dict[str, str] = {}
    for node in graph.nodes.values():
        if node.is_boundary:
            handles[node.id] = "group_input" if node.type == GROUP_INPUT_TYPE else "group_output"
            continue
        var = names.next()
        handles[node.id] = var
        writer.writeln(f"{var} = {_node_call(node, registry)}")

    for conn in graph.connections:
        src = handles.get(conn.from_ref.node_id, repr(conn.from_ref.node_id))
        dst = handles.get(conn.to_ref.node_id, repr(conn.to_ref.node_id))
        writer.writeln(f"connect({src}, {conn.from_ref.port_index}, {dst}, {conn.to_ref.port_index})")

    for node in graph.nodes.values():
        if not node.is_group or node.sub_graph is None:
            continue
        writer.blank()
        writer.writeln(f"with group({handles[node.id]}):")
        writer.push()
        mark = writer.mark()
        _write_graph(node.sub_graph, writer, names, registry)
        writer.close_block(mark)


def write_script(
    graph: Graph,
    metadata: Optional[ModuleMetadata] = None,
    registry: Optional[TemplateRegistry] = None,
) -> str:
    metadata = metadata or ModuleMetadata()
    registry = registry or DEFAULT_REGISTRY

    writer = CodeWriter()
    writer.comment(f"vmgraph graph script: {metadata.name}")
    attrs = ", ".join(f"{attr}={value!r}" for attr, value in vars(metadata).items())
    writer.writeln(f"module({attrs})")
    writer.blank()
    _write_graph(graph, writer, _Names(), registry)
    return writer.result().rstrip("\n") + "\n"
