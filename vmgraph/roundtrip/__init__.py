"""
vmgraph Round Trip
==================
Graph → script text → graph.

    write_script(graph, metadata)      render a graph as a graph script
    ScriptInterpreter(graph).run(text) apply a graph script to a graph
    RoundTripLoader.load_from_text     transactional replace of the active graph
"""

from .interpreter import ScriptError, ScriptInterpreter
from .loader import LoadResult, RoundTripLoader
from .writer import write_script

__all__ = ["LoadResult", "RoundTripLoader", "ScriptError", "ScriptInterpreter", "write_script"]
