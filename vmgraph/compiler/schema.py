"""
vmgraph Compiler: Project JSON Schema + Validator
=================================================
Structural validation for saved module projects, without any third-party
JSON Schema library.

Project format
--------------

    {
      "version":           "1.0",                 // str, required
      "moduleName":        "Speedy",              // str, required
      "moduleNamespace":   "Custom",              // str, optional
      "moduleDescription": "A custom visual module",
      "moduleIcon":        "fa-cube",
      "moduleColor":       "#4a9eff",
      "allowMultiple":     true,                  // bool, optional
      "drawInEditor":      false,                 // bool, optional
      "nodes": [
        {
          "id":      "node_1",                    // unique within its graph (str, required)
          "type":    "setProperty",               // registered type name (str, required)
          "x": 100, "y": 80,                      // numbers, optional
          "width": 180, "height": 80,             // numbers, optional
          "inputs":  ["flow", "value"],           // port labels (list[str], optional)
          "outputs": ["flow"],
          "fields":  {"name": "speed", "value": 5},
          "isGroup": false,
          "subGraph": { nodes, connections, groupBoundaryConnections }   // groups only
        }
      ],
      "connections": [
        {"from": {"nodeId": "node_1", "portIndex": 0},
         "to":   {"nodeId": "node_2", "portIndex": 0}}
      ],
      "groupBoundaryConnections": [],
      "panOffset": {"x": 0, "y": 0},
      "zoom": 1.0
    }

Connections that point at unknown node ids are NOT schema errors: loading
drops them so stale projects still open.
"""

from __future__ import annotations

import json
import warnings
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .templates import DEFAULT_REGISTRY


# ── Validation helpers ────────────────────────────────────────────────────────

class SchemaError(ValueError):
    """Raised when project JSON fails structural validation."""


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SchemaError(message)


def _require_keys(obj: Dict, keys: List[str], context: str) -> None:
    for key in keys:
        _require(key in obj, f"{context}: missing required field '{key}'")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_endpoint(end: Any, context: str) -> None:
    _require(isinstance(end, dict), f"{context} must be an object")
    _require_keys(end, ["nodeId", "portIndex"], context)
    _require(isinstance(end["nodeId"], str), f"{context}.nodeId must be a string")
    _require(
        isinstance(end["portIndex"], int) and not isinstance(end["portIndex"], bool),
        f"{context}.portIndex must be an integer",
    )


def _validate_connections(items: Any, context: str) -> None:
    _require(isinstance(items, list), f"{context} must be a list")
    for i, conn in enumerate(items):
        ctx = f"{context}[{i}]"
        _require(isinstance(conn, dict), f"{ctx}: each connection must be a JSON object")
        _require_keys(conn, ["from", "to"], ctx)
        _validate_endpoint(conn["from"], f"{ctx}.from")
        _validate_endpoint(conn["to"], f"{ctx}.to")


def _validate_graph(data: Dict[str, Any], context: str, strict: bool, known: frozenset) -> None:
    _require(isinstance(data.get("nodes", []), list), f"{context}.nodes must be a list")

    node_ids: set = set()
    for i, node in enumerate(data.get("nodes", [])):
        ctx = f"{context}.nodes[{i}]"
        _require(isinstance(node, dict), f"{ctx}: each node must be a JSON object")
        _require_keys(node, ["id", "type"], ctx)
        _require(isinstance(node["id"], str), f"{ctx}.id must be a string")
        _require(isinstance(node["type"], str), f"{ctx}.type must be a string")
        _require(node["id"] not in node_ids, f"{ctx}: duplicate node id '{node['id']}'")
        node_ids.add(node["id"])

        for key in ("x", "y", "width", "height"):
            if key in node:
                _require(_is_number(node[key]), f"{ctx}.{key} must be a number")
        for key in ("inputs", "outputs"):
            if key in node:
                _require(
                    isinstance(node[key], list) and all(isinstance(p, str) for p in node[key]),
                    f"{ctx}.{key} must be a list of port labels",
                )
        if "fields" in node:
            _require(isinstance(node["fields"], dict), f"{ctx}.fields must be an object")

        if node.get("isGroup"):
            sub = node.get("subGraph", {})
            _require(isinstance(sub, dict), f"{ctx}.subGraph must be an object")
            _validate_graph(sub, f"{ctx}.subGraph", strict, known)

        type_name = node["type"]
        if type_name not in known:
            msg = f"{ctx}: unknown node type '{type_name}'"
            if strict:
                raise SchemaError(msg)
            warnings.warn(msg + " (it will compile to a comment)", stacklevel=3)

    _validate_connections(data.get("connections", []), f"{context}.connections")
    _validate_connections(
        data.get("groupBoundaryConnections", []), f"{context}.groupBoundaryConnections"
    )


# ── Public validator ─────────────────────────────────────────────────────────

def validate(
    data: Dict[str, Any],
    *,
    strict: bool = False,
    known_types: Optional[Iterable[str]] = None,
) -> None:
    """
    Validate a parsed project JSON dict.

    Args:
        data:        A pre-parsed dict (result of json.load / json.loads).
        strict:      When True, raise SchemaError for unknown node types.
                     When False (default), unknown types produce a warning.
        known_types: Type names to accept. Defaults to the built-in registry.

    Raises:
        SchemaError: On any structural violation.
    """
    _require(isinstance(data, dict), "project JSON must be a JSON object at the top level")
    _require_keys(data, ["version", "moduleName", "nodes", "connections"], "project root")
    _require(isinstance(data["version"], str), "version must be a string")
    _require(isinstance(data["moduleName"], str), "moduleName must be a string")
    for key in ("allowMultiple", "drawInEditor"):
        if key in data:
            _require(isinstance(data[key], bool), f"{key} must be a boolean")
    if "zoom" in data:
        _require(_is_number(data["zoom"]), "zoom must be a number")

    known = frozenset(known_types if known_types is not None else DEFAULT_REGISTRY.types())
    _validate_graph(data, "project", strict, known)


def validate_file(path: Union[str, Path], *, strict: bool = False) -> Dict[str, Any]:
    """
    Load and validate a project JSON file.

    Returns:
        The parsed dict on success.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        SchemaError: If the project structure is invalid.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    validate(data, strict=strict)
    return data


__all__ = ["SchemaError", "validate", "validate_file"]
