"""
vmgraph Compiler
================
Compiles a Graph into one class-shaped Python module.

Pipeline
--------
    Graph + ModuleMetadata  →  [emitter.CodeGenerator]  →  Python source str

Node behaviour lives in templates.py (TemplateRegistry). Project JSON is
checked by schema.py before it is loaded.

Public API
----------
    from vmgraph.compiler import compile_module

    source = compile_module(graph, metadata)
    with open("speedy.py", "w") as f:
        f.write(source)
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from .emitter import CodeGenerator, Formatter, tidy_source
from .templates import DEFAULT_REGISTRY, TemplateRegistry

if TYPE_CHECKING:
    from vmgraph.core.GraphPrimitives import Graph
    from vmgraph.core.Types import ModuleMetadata


def compile_module(
    graph: "Graph",
    metadata: Optional["ModuleMetadata"] = None,
    registry: Optional[TemplateRegistry] = None,
    formatter: Optional[Formatter] = None,
) -> str:
    """
    Compile a Graph into Python source.

    Args:
        graph:     The root Graph to compile.
        metadata:  Module name, namespace, description and flags.
        registry:  Template registry; the built-in one by default.
        formatter: Callable applied to the finished text.

    Returns:
        Complete Python source as a single string.
    """
    return CodeGenerator(registry=registry, formatter=formatter).generate(graph, metadata)


__all__ = ["CodeGenerator", "DEFAULT_REGISTRY", "TemplateRegistry", "compile_module", "tidy_source"]
