"""
vmgraph
=======
Node-graph IR and code generator for visual behavior modules.

    vmgraph.core        graph store, validator, groups, history, session
    vmgraph.compiler    template registry, code generator, project schema
    vmgraph.roundtrip   graph script writer / interpreter / loader
    vmgraph.server      FastAPI surface over one editor session
"""

__version__ = "1.0.0"
