from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, ClassVar, Dict, Optional


class PortDirection(Enum):
    INPUT = auto()
    OUTPUT = auto()


class PortFunction(Enum):
    DATA = auto()
    FLOW = auto()


# Labels reserved for control flow. "flow" is the canonical one; the rest are
# the named branch outputs of branching templates.
FLOW_LABEL = "flow"
FLOW_LABELS: frozenset = frozenset({FLOW_LABEL, "true", "false", "body"})


def port_function(label: str) -> PortFunction:
    return PortFunction.FLOW if label in FLOW_LABELS else PortFunction.DATA


class Rejection(Enum):
    """Reasons a Store mutation or a connection attempt was refused."""
    SELF_LOOP = auto()
    KIND_MISMATCH = auto()
    SAME_DIRECTION = auto()
    UNKNOWN_NODE = auto()
    PORT_OUT_OF_RANGE = auto()
    DUPLICATE_ID = auto()
    PROTECTED_NODE = auto()
    NOT_A_GROUP = auto()
    NOT_IN_GROUP = auto()


class GraphResult:
    """
    Standardized return value for Store mutations.
    Holds either the produced value (a Node, a Connection ...) or a Rejection,
    never both.
    """
    def __init__(self, value: Any = None, error: Optional[Rejection] = None):
        self.value = value
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "GraphResult":
        return cls(value=value)

    @classmethod
    def reject(cls, error: Rejection) -> "GraphResult":
        return cls(error=error)

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self):
        if self.ok:
            return f"GraphResult(ok, {self.value!r})"
        return f"GraphResult({self.error.name})"


# ── Module metadata ───────────────────────────────────────────────────────────

@dataclass
class ModuleMetadata:
    name: str = "CustomModule"
    namespace: str = "Custom"
    description: str = "A custom visual module"
    icon: str = "fa-cube"
    color: str = "#4a9eff"
    allow_multiple: bool = True
    draw_in_editor: bool = False

    # attribute name -> serialized project key
    PROJECT_KEYS: ClassVar[Dict[str, str]] = {
        "name": "moduleName",
        "namespace": "moduleNamespace",
        "description": "moduleDescription",
        "icon": "moduleIcon",
        "color": "moduleColor",
        "allow_multiple": "allowMultiple",
        "draw_in_editor": "drawInEditor",
    }

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for attr, key in self.PROJECT_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModuleMetadata":
        meta = cls()
        for attr, key in cls.PROJECT_KEYS.items():
            if key in data:
                setattr(meta, attr, data[key])
        return meta

    def update(self, **values: Any) -> None:
        for attr, value in values.items():
            if attr not in self.PROJECT_KEYS:
                raise KeyError(f"Unknown module attribute '{attr}'")
            setattr(self, attr, value)
