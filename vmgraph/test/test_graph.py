import pytest

from vmgraph.compiler.templates import DEFAULT_REGISTRY
from vmgraph.core.GraphPrimitives import Connection, Graph, Node
from vmgraph.core.NodePort import Port, PortRef, input_port, output_port
from vmgraph.core.Types import PortDirection, PortFunction, Rejection


def make(graph, type_name, node_id, **fields):
    node = DEFAULT_REGISTRY.require(type_name).instantiate(node_id, (0, 0), fields)
    assert graph.add_node(node).ok
    return node


class TestGraphNodes:

    def setup_method(self):
        self.graph = Graph()

    def test_add_node(self):
        """Added nodes are retrievable and keep insertion order"""
        make(self.graph, "start", "a")
        make(self.graph, "log", "b")
        assert list(self.graph.nodes) == ["a", "b"]
        assert self.graph.get_node("b").type == "log"
        assert len(self.graph) == 2

    def test_duplicate_id_rejected(self):
        """A second node with the same id is refused and the first survives"""
        first = make(self.graph, "start", "a")
        result = self.graph.add_node(Node("a", "log"))
        assert not result.ok
        assert result.error is Rejection.DUPLICATE_ID
        assert self.graph.get_node("a") is first

    def test_remove_unknown_node(self):
        result = self.graph.remove_node("missing")
        assert result.error is Rejection.UNKNOWN_NODE

    def test_new_node_id_is_unique(self):
        """Generated ids skip ids already in use"""
        make(self.graph, "start", "node_1")
        make(self.graph, "start", "node_3")
        new_id = self.graph.new_node_id()
        assert new_id not in self.graph.nodes
        assert new_id.startswith("node_")

    def test_nodes_of_type(self):
        make(self.graph, "number", "n1")
        make(self.graph, "number", "n2")
        make(self.graph, "string", "s1")
        assert [n.id for n in self.graph.nodes_of_type("number")] == ["n1", "n2"]

    def test_port_lookup(self):
        make(self.graph, "setProperty", "p")
        port = self.graph.port("p", PortDirection.INPUT, 1)
        assert port.label == "value"
        assert port.function == PortFunction.DATA
        assert self.graph.port("p", PortDirection.INPUT, 5) is None
        assert self.graph.port("nope", PortDirection.INPUT, 0) is None

    def test_cascade_delete_midpoint(self):
        """Removing the middle of A -> X -> C drops both connections and keeps A and C"""
        make(self.graph, "start", "A")
        make(self.graph, "log", "X")
        make(self.graph, "log", "C")
        assert self.graph.connect("A", 0, "X", 0).ok
        assert self.graph.connect("X", 0, "C", 0).ok

        result = self.graph.remove_node("X")

        assert result.ok
        assert set(self.graph.nodes) == {"A", "C"}
        assert self.graph.connections == []
        assert self.graph.connections_of("A") == []

    def test_cascade_delete_leaves_unrelated_connections(self):
        make(self.graph, "start", "A")
        make(self.graph, "log", "B")
        make(self.graph, "number", "N")
        make(self.graph, "log", "Z")
        self.graph.connect("A", 0, "B", 0)
        self.graph.connect("N", 0, "B", 1)
        self.graph.remove_node("Z")
        assert len(self.graph.connections) == 2


class TestGraphConnections:

    def setup_method(self):
        self.graph = Graph()
        make(self.graph, "start", "A")
        make(self.graph, "setProperty", "B", name="speed")
        make(self.graph, "number", "N1", value=1)
        make(self.graph, "number", "N2", value=2)

    def test_connect_flow(self):
        result = self.graph.connect("A", 0, "B", 0)
        assert result.ok
        assert result.value == Connection(PortRef("A", 0), PortRef("B", 0))
        assert self.graph.connections == [result.value]

    def test_flow_to_data_is_kind_mismatch(self):
        """A flow output into a data input is rejected and nothing is added"""
        result = self.graph.connect("A", 0, "B", 1)
        assert result.error is Rejection.KIND_MISMATCH
        assert self.graph.connections == []

    def test_ports_may_be_given_input_first(self):
        """add_connection orients the pair so `from` is the output"""
        result = self.graph.add_connection(input_port("B", 1), output_port("N1", 0))
        assert result.ok
        assert result.value.from_ref == PortRef("N1", 0)
        assert result.value.to_ref == PortRef("B", 1)

    def test_same_direction_rejected(self):
        result = self.graph.add_connection(output_port("A", 0), output_port("N1", 0))
        assert result.error is Rejection.SAME_DIRECTION

    def test_self_loop_rejected(self):
        result = self.graph.connect("B", 0, "B", 0)
        assert result.error is Rejection.SELF_LOOP

    def test_unknown_node(self):
        assert self.graph.connect("ghost", 0, "B", 0).error is Rejection.UNKNOWN_NODE

    def test_port_out_of_range(self):
        assert self.graph.connect("A", 3, "B", 0).error is Rejection.PORT_OUT_OF_RANGE

    def test_single_incoming_newest_wins(self):
        """Connecting into an occupied input replaces the previous connection"""
        self.graph.connect("N1", 0, "B", 1)
        self.graph.connect("N2", 0, "B", 1)
        incoming = [c for c in self.graph.connections if c.to_ref == ("B", 1)]
        assert len(incoming) == 1
        assert incoming[0].from_ref.node_id == "N2"
        assert self.graph.incoming("B", 1).from_ref.node_id == "N2"

    def test_outputs_fan_out(self):
        make(self.graph, "log", "L")
        self.graph.connect("N1", 0, "B", 1)
        self.graph.connect("N1", 0, "L", 1)
        assert len(self.graph.outgoing("N1", 0)) == 2

    def test_remove_connection_predicate(self):
        self.graph.connect("A", 0, "B", 0)
        self.graph.connect("N1", 0, "B", 1)
        removed = self.graph.remove_connection(lambda c: c.to_ref.node_id == "B")
        assert removed == 2
        assert self.graph.connections == []

    def test_clear_and_copy_from(self):
        self.graph.connect("A", 0, "B", 0)
        other = Graph()
        other.copy_from(self.graph)
        self.graph.clear()
        assert len(self.graph) == 0
        assert list(other.nodes) == ["A", "B", "N1", "N2"]
        assert len(other.connections) == 1


class TestConnectionKindLaw:
    """Every pairing of the four port shapes across two nodes."""

    @pytest.fixture
    def graph(self):
        graph = Graph()
        graph.add_node(Node("x", "custom", inputs=["flow", "in"], outputs=["flow", "out"]))
        graph.add_node(Node("y", "custom", inputs=["flow", "in"], outputs=["flow", "out"]))
        return graph

    @pytest.mark.parametrize("a_dir,a_idx,b_dir,b_idx,expected", [
        (PortDirection.OUTPUT, 0, PortDirection.INPUT, 0, None),
        (PortDirection.OUTPUT, 1, PortDirection.INPUT, 1, None),
        (PortDirection.OUTPUT, 0, PortDirection.INPUT, 1, Rejection.KIND_MISMATCH),
        (PortDirection.OUTPUT, 1, PortDirection.INPUT, 0, Rejection.KIND_MISMATCH),
        (PortDirection.INPUT, 0, PortDirection.INPUT, 0, Rejection.SAME_DIRECTION),
        (PortDirection.OUTPUT, 1, PortDirection.OUTPUT, 1, Rejection.SAME_DIRECTION),
    ])
    def test_pairing(self, graph, a_dir, a_idx, b_dir, b_idx, expected):
        result = graph.add_connection(Port("x", a_dir, a_idx), Port("y", b_dir, b_idx))
        assert result.error is expected
        assert len(graph.connections) == (1 if expected is None else 0)
