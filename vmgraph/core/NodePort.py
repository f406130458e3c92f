from typing import NamedTuple

from .Types import PortDirection, PortFunction, port_function


class PortRef(NamedTuple):
    """One endpoint of a stored Connection: a node id plus a port index."""
    node_id: str
    port_index: int

    def __repr__(self):
        return f"{self.node_id}[{self.port_index}]"


class Port(NamedTuple):
    """
    A port is never stored; it is identified structurally by
    (node, direction, index). The label is resolved from the node's
    inputs/outputs lists when the port is looked up through a Graph.
    """
    node_id: str
    direction: PortDirection
    index: int
    label: str = ""

    @property
    def function(self) -> PortFunction:
        return port_function(self.label)

    def isInputPort(self) -> bool:
        return self.direction == PortDirection.INPUT

    def isOutputPort(self) -> bool:
        return self.direction == PortDirection.OUTPUT

    def isFlowPort(self) -> bool:
        return self.function == PortFunction.FLOW

    def isDataPort(self) -> bool:
        return self.function == PortFunction.DATA

    def ref(self) -> PortRef:
        return PortRef(self.node_id, self.index)

    def __repr__(self):
        arrow = "in" if self.isInputPort() else "out"
        return f"Port({self.node_id}.{arrow}[{self.index}]:{self.label})"


def input_port(node_id: str, index: int, label: str = "") -> Port:
    return Port(node_id, PortDirection.INPUT, index, label)


def output_port(node_id: str, index: int, label: str = "") -> Port:
    return Port(node_id, PortDirection.OUTPUT, index, label)
