"""
Graph REST routes over the process-wide editor session.

All routes are mounted under /api by main.py. Every route works on the graph
being edited (root or the open group); rejected mutations answer 400 with the
rejection name, unknown node ids answer 404.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field

from vmgraph.compiler.schema import SchemaError, validate
from vmgraph.core.GraphPrimitives import Connection
from vmgraph.core.Types import GraphResult, Rejection
from vmgraph.serializers.graph_serializer import serialize_graph, serialize_node
from vmgraph.server.state import session

router = APIRouter()


def _graph_view() -> Dict[str, Any]:
    return {
        "path": session.groups.path(),
        "canUndo": session.history.can_undo(),
        "canRedo": session.history.can_redo(),
        **serialize_graph(session.graph, session.viewport),
    }


def _connection_view(conn: Connection) -> Dict[str, Any]:
    return {
        "from": {"nodeId": conn.from_ref.node_id, "portIndex": conn.from_ref.port_index},
        "to": {"nodeId": conn.to_ref.node_id, "portIndex": conn.to_ref.port_index},
    }


def _check(result: GraphResult) -> Any:
    if result.ok:
        return result.value
    if result.error is Rejection.UNKNOWN_NODE:
        raise HTTPException(status_code=404, detail=result.error.name)
    raise HTTPException(status_code=400, detail=result.error.name)


# ── GET /graph ────────────────────────────────────────────────────────────────

@router.get("/graph")
async def get_graph() -> Dict[str, Any]:
    return _graph_view()


# ── POST /nodes ───────────────────────────────────────────────────────────────

class CreateNodeBody(BaseModel):
    type: str
    id: Optional[str] = None
    position: Optional[Dict[str, float]] = None
    fields: Dict[str, Any] = Field(default_factory=dict)


@router.post("/nodes", status_code=201)
async def create_node(body: CreateNodeBody) -> Dict[str, Any]:
    position = (0.0, 0.0)
    if body.position:
        position = (body.position.get("x", 0.0), body.position.get("y", 0.0))
    try:
        node = session.create_node(body.type, position, body.fields or None, body.id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    _check(session.add_node(node))
    return serialize_node(node)


# ── DELETE /nodes/:id ─────────────────────────────────────────────────────────

@router.delete("/nodes/{node_id}", status_code=204)
async def delete_node(node_id: str) -> Response:
    _check(session.remove_node(node_id))
    return Response(status_code=204)


# ── PUT /nodes/:id/position ───────────────────────────────────────────────────

class PositionBody(BaseModel):
    x: float
    y: float


@router.put("/nodes/{node_id}/position", status_code=204)
async def move_node(node_id: str, body: PositionBody) -> Response:
    _check(session.move_node(node_id, body.x, body.y))
    return Response(status_code=204)


# ── PUT /nodes/:id/fields/:name ───────────────────────────────────────────────

class FieldBody(BaseModel):
    value: Any = None


@router.put("/nodes/{node_id}/fields/{name}", status_code=204)
async def set_field(node_id: str, name: str, body: FieldBody) -> Response:
    _check(session.set_field(node_id, name, body.value))
    return Response(status_code=204)


# ── POST /connections ─────────────────────────────────────────────────────────

class ConnectionBody(BaseModel):
    fromNodeId: str
    fromPort: int
    toNodeId: str
    toPort: int


@router.post("/connections", status_code=201)
async def add_connection(body: ConnectionBody) -> Dict[str, Any]:
    conn = _check(session.connect(body.fromNodeId, body.fromPort, body.toNodeId, body.toPort))
    return _connection_view(conn)


# ── DELETE /connections ───────────────────────────────────────────────────────

class DisconnectBody(BaseModel):
    nodeId: str
    portIndex: int


@router.delete("/connections")
async def delete_connection(body: DisconnectBody) -> Dict[str, Any]:
    if session.get_node(body.nodeId) is None:
        raise HTTPException(status_code=404, detail=Rejection.UNKNOWN_NODE.name)
    return {"removed": session.disconnect_input(body.nodeId, body.portIndex)}


# ── POST /groups/:id/open ─────────────────────────────────────────────────────

@router.post("/groups/{node_id}/open")
async def open_group(node_id: str) -> Dict[str, Any]:
    _check(session.open_group(node_id))
    return _graph_view()


# ── POST /groups/close ────────────────────────────────────────────────────────

@router.post("/groups/close")
async def close_group() -> Dict[str, Any]:
    _check(session.close_group())
    return _graph_view()


# ── POST /undo, POST /redo ────────────────────────────────────────────────────

@router.post("/undo")
async def undo() -> Dict[str, Any]:
    return {"applied": session.undo(), **_graph_view()}


@router.post("/redo")
async def redo() -> Dict[str, Any]:
    return {"applied": session.redo(), **_graph_view()}


# ── GET /generate ─────────────────────────────────────────────────────────────

@router.get("/generate")
async def generate() -> Dict[str, Any]:
    return {"moduleName": session.metadata.name, "source": session.generate()}


# ── GET /script ───────────────────────────────────────────────────────────────

@router.get("/script")
async def get_script() -> Dict[str, Any]:
    return {"script": session.generate_script()}


# ── POST /load ────────────────────────────────────────────────────────────────

class LoadBody(BaseModel):
    text: str


@router.post("/load")
async def load_from_text(body: LoadBody) -> Dict[str, Any]:
    result = session.load_from_text(body.text)
    if not result.ok:
        raise HTTPException(
            status_code=400,
            detail={"error": result.error, "line": result.line},
        )
    return _graph_view()


# ── GET /project ──────────────────────────────────────────────────────────────

@router.get("/project")
async def get_project() -> Dict[str, Any]:
    return session.to_project()


# ── PUT /project ──────────────────────────────────────────────────────────────

@router.put("/project")
async def put_project(data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        validate(data)
    except SchemaError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    session.load_project(data)
    return _graph_view()


# ── POST /project/new ─────────────────────────────────────────────────────────

@router.post("/project/new")
async def new_project() -> Dict[str, Any]:
    session.new_project()
    return _graph_view()


# ── GET /validate ─────────────────────────────────────────────────────────────

@router.get("/validate")
async def validate_graph() -> List[Dict[str, Any]]:
    return [issue._asdict() for issue in session.validate()]
