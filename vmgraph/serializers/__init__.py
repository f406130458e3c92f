from .graph_serializer import (
    PROJECT_VERSION,
    deserialize_graph,
    deserialize_node,
    deserialize_project,
    serialize_graph,
    serialize_node,
    serialize_project,
)
