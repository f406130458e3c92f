import json
import warnings

import pytest

from vmgraph.compiler.schema import SchemaError, validate, validate_file
from vmgraph.core.Session import EditorSession
from vmgraph.serializers.graph_serializer import (
    PROJECT_VERSION,
    deserialize_project,
    serialize_project,
)


def minimal(**extra):
    data = {"version": "1.0", "moduleName": "Mod", "nodes": [], "connections": []}
    data.update(extra)
    return data


def node(node_id, type_name="start", **extra):
    data = {"id": node_id, "type": type_name}
    data.update(extra)
    return data


class TestValidate:

    def test_minimal_project(self):
        validate(minimal())

    @pytest.mark.parametrize("missing", ["version", "moduleName", "nodes", "connections"])
    def test_required_keys(self, missing):
        data = minimal()
        del data[missing]
        with pytest.raises(SchemaError, match=missing):
            validate(data)

    def test_top_level_must_be_object(self):
        with pytest.raises(SchemaError):
            validate([])

    def test_duplicate_node_id(self):
        with pytest.raises(SchemaError, match="duplicate node id 'a'"):
            validate(minimal(nodes=[node("a"), node("a")]))

    def test_bad_coordinates(self):
        with pytest.raises(SchemaError, match="x must be a number"):
            validate(minimal(nodes=[node("a", x="left")]))

    def test_bad_flag(self):
        with pytest.raises(SchemaError, match="allowMultiple"):
            validate(minimal(allowMultiple="yes"))

    def test_bad_connection_endpoint(self):
        conn = {"from": {"nodeId": "a", "portIndex": "0"}, "to": {"nodeId": "b", "portIndex": 0}}
        with pytest.raises(SchemaError, match="portIndex must be an integer"):
            validate(minimal(nodes=[node("a"), node("b", "log")], connections=[conn]))

    def test_dangling_connection_is_not_an_error(self):
        conn = {"from": {"nodeId": "a", "portIndex": 0}, "to": {"nodeId": "ghost", "portIndex": 0}}
        validate(minimal(nodes=[node("a")], connections=[conn]))

    def test_unknown_type_warns(self):
        with pytest.warns(UserWarning, match="unknown node type 'mystery'"):
            validate(minimal(nodes=[node("a", "mystery")]))

    def test_unknown_type_strict(self):
        with pytest.raises(SchemaError, match="unknown node type"):
            validate(minimal(nodes=[node("a", "mystery")]), strict=True)

    def test_known_types_override(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            validate(minimal(nodes=[node("a", "mystery")]), known_types=["mystery"])

    def test_sub_graph_validated(self):
        group = node("g", "group", isGroup=True, subGraph={"nodes": [{"id": "x"}]})
        with pytest.raises(SchemaError, match=r"subGraph\.nodes\[0\]: missing required field 'type'"):
            validate(minimal(nodes=[group]))

    def test_validate_file(self, tmp_path):
        path = tmp_path / "project.json"
        path.write_text(json.dumps(minimal()), encoding="utf-8")
        assert validate_file(path)["moduleName"] == "Mod"

    def test_serialized_project_validates(self):
        session = EditorSession()
        session.create_and_add_node("group", node_id="g")
        session.open_group("g")
        session.create_and_add_node("log", node_id="l")
        session.close_group()
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            validate(session.to_project(), strict=True)


class TestSerializer:

    def setup_method(self):
        self.session = EditorSession()
        s = self.session
        s.metadata.update(name="Ship", color="#000000", draw_in_editor=True)
        s.create_and_add_node("start", (10, 20), node_id="s")
        s.create_and_add_node("vector2", (30, 40), {"x": 1, "y": 2}, node_id="v")
        s.create_and_add_node("group", (50, 60), {"label": "Steer"}, node_id="g")
        s.connect("s", 0, "g", 0)
        s.open_group("g")
        s.create_and_add_node("log", node_id="l")
        s.connect("groupInput_g", 0, "l", 0)
        s.close_group()
        self.project = s.to_project()

    def test_project_keys(self):
        p = self.project
        assert p["version"] == PROJECT_VERSION
        assert p["moduleName"] == "Ship"
        assert p["moduleColor"] == "#000000"
        assert p["drawInEditor"] is True
        assert p["panOffset"] == {"x": 0.0, "y": 0.0}
        assert p["zoom"] == 1.0

    def test_node_dto(self):
        start = self.project["nodes"][0]
        assert start == {
            "id": "s", "type": "start", "x": 10.0, "y": 20.0, "width": 180.0, "height": 80.0,
            "inputs": [], "outputs": ["flow"], "fields": {}, "isGroup": False,
        }

    def test_boundary_nodes_not_written(self):
        sub = self.project["nodes"][2]["subGraph"]
        assert [n["id"] for n in sub["nodes"]] == ["l"]
        assert sub["connections"] == []
        assert sub["groupBoundaryConnections"] == [
            {"from": {"nodeId": "groupInput_g", "portIndex": 0}, "to": {"nodeId": "l", "portIndex": 0}},
        ]

    def test_project_is_json_safe(self):
        assert json.loads(json.dumps(self.project)) == self.project

    def test_load_reconstructs_boundary_wiring(self):
        graph, metadata, viewport = deserialize_project(json.loads(json.dumps(self.project)))
        sub = graph.get_node("g").sub_graph
        assert set(sub.nodes) == {"l", "groupInput_g", "groupOutput_g"}
        assert sub.incoming("l", 0).from_ref.node_id == "groupInput_g"
        assert metadata.name == "Ship"
        assert serialize_project(graph, metadata, viewport) == self.project

    def test_session_load_project(self):
        other = EditorSession()
        other.load_project(self.project)
        assert other.to_project() == self.project
        assert not other.history.can_undo()

    def test_dangling_connections_dropped(self):
        data = dict(self.project)
        data["connections"] = data["connections"] + [
            {"from": {"nodeId": "ghost", "portIndex": 0}, "to": {"nodeId": "s", "portIndex": 0}},
        ]
        graph, _, _ = deserialize_project(data)
        assert len(graph.connections) == 1

    def test_duplicate_ids_keep_first(self, caplog):
        data = dict(self.project)
        data["nodes"] = data["nodes"] + [{"id": "s", "type": "log"}]
        graph, _, _ = deserialize_project(data)
        assert graph.get_node("s").type == "start"
        assert "Duplicate node id 's'" in caplog.text
