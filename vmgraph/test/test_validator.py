from vmgraph.compiler.templates import DEFAULT_REGISTRY
from vmgraph.core.GraphPrimitives import Graph, Node
from vmgraph.core.NodePort import input_port, output_port
from vmgraph.core.Types import FLOW_LABELS, PortFunction, Rejection, port_function
from vmgraph.core.Validator import can_connect, orient, validate_graph


class TestPortKinds:

    def test_reserved_labels_are_flow(self):
        for label in FLOW_LABELS:
            assert port_function(label) == PortFunction.FLOW

    def test_other_labels_are_data(self):
        for label in ("value", "deltaTime", "x", "flowRate", ""):
            assert port_function(label) == PortFunction.DATA

    def test_port_helpers(self):
        port = output_port("a", 0, "flow")
        assert port.isOutputPort() and not port.isInputPort()
        assert port.isFlowPort() and not port.isDataPort()
        assert port.ref() == ("a", 0)


class TestCanConnect:

    def test_flow_to_flow(self):
        assert can_connect(output_port("a", 0, "flow"), input_port("b", 0, "flow")).ok

    def test_branch_label_to_flow(self):
        """Named branch outputs behave as flow ports"""
        assert can_connect(output_port("a", 0, "true"), input_port("b", 0, "flow")).ok

    def test_data_to_data(self):
        assert can_connect(output_port("a", 0, "value"), input_port("b", 1, "message")).ok

    def test_kind_mismatch(self):
        result = can_connect(output_port("a", 0, "flow"), input_port("b", 1, "value"))
        assert result.error is Rejection.KIND_MISMATCH

    def test_same_direction_checked_first(self):
        """Two inputs on one node report SAME_DIRECTION, not SELF_LOOP"""
        result = can_connect(input_port("a", 0, "flow"), input_port("a", 1, "value"))
        assert result.error is Rejection.SAME_DIRECTION

    def test_self_loop_before_kind(self):
        result = can_connect(output_port("a", 0, "flow"), input_port("a", 1, "value"))
        assert result.error is Rejection.SELF_LOOP

    def test_orient(self):
        out = output_port("a", 0, "flow")
        inp = input_port("b", 0, "flow")
        assert orient(inp, out) == (out, inp)
        assert orient(out, inp) == (out, inp)


class TestValidateGraph:

    def setup_method(self):
        self.graph = Graph()

    def add(self, type_name, node_id, **fields):
        node = DEFAULT_REGISTRY.require(type_name).instantiate(node_id, (0, 0), fields)
        self.graph.add_node(node)
        return node

    def test_clean_chain_has_no_issues(self):
        self.add("start", "s")
        self.add("setProperty", "p", name="speed", value=3)
        self.graph.connect("s", 0, "p", 0)
        assert validate_graph(self.graph, DEFAULT_REGISTRY) == []

    def test_unconnected_node_reported(self):
        self.add("start", "s")
        issues = validate_graph(self.graph, DEFAULT_REGISTRY)
        assert [i.node_id for i in issues] == ["s"]
        assert issues[0].severity == "warning"

    def test_unknown_type_reported(self):
        self.graph.add_node(Node("x", "mystery"))
        issues = validate_graph(self.graph, DEFAULT_REGISTRY)
        assert any("Unknown node type" in i.message for i in issues)

    def test_missing_data_input_reported(self):
        """A data input with no connection, field or default is flagged"""
        self.add("start", "s")
        node = Node("c", "custom", inputs=["flow", "amount"], outputs=["flow"])
        self.graph.add_node(node)
        self.graph.connect("s", 0, "c", 0)
        issues = validate_graph(self.graph)
        assert [i.message for i in issues] == ["Input 'amount' of 'c' is not connected"]

    def test_validate_does_not_mutate(self):
        self.add("start", "s")
        self.add("log", "l")
        before = (list(self.graph.nodes), list(self.graph.connections))
        validate_graph(self.graph, DEFAULT_REGISTRY)
        assert (list(self.graph.nodes), list(self.graph.connections)) == before
