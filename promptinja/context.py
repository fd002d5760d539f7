"""Render context and variable scoping.

Variables live in a chain of frames. The root frame is the caller's
``RenderContext.variables`` dict itself, so a top-level ``set`` is visible to
the caller after the render. Each ``for`` iteration pushes a child frame
holding the loop variable and ``loop``; ``set`` always writes to the
innermost frame, so assignments made in a loop body end with the iteration.
``if`` and ``block`` bodies run in the frame of their parent.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .functions import FunctionRegistry


class _Missing:
    """Marker for a name that is not bound anywhere in the scope chain."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "MISSING"

    def __bool__(self):
        return False


MISSING = _Missing()


class Scope:
    """One frame of variable bindings with a link to the enclosing frame."""

    __slots__ = ("variables", "parent")

    def __init__(self, variables: Dict[str, Any], parent: Optional["Scope"] = None):
        self.variables = variables
        self.parent = parent

    def child(self, bindings: Optional[Dict[str, Any]] = None) -> "Scope":
        return Scope(dict(bindings or {}), parent=self)

    def lookup(self, name: str) -> Any:
        """Exact binding of ``name``, innermost frame first."""
        scope = self
        while scope is not None:
            if name in scope.variables:
                return scope.variables[name]
            scope = scope.parent
        return MISSING

    def resolve(self, name: str) -> Any:
        """Look up ``name``, falling back to reading it as a dotted path."""
        value = self.lookup(name)
        if value is not MISSING or "." not in name:
            return value
        head, *rest = name.split(".")
        current = self.lookup(head)
        for part in rest:
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return MISSING
        return current

    def set(self, name: str, value: Any):
        self.variables[name] = value


def loop_record(index: int, length: int) -> Dict[str, Any]:
    return {
        "index": index,
        "index1": index + 1,
        "is_first": index == 0,
        "is_last": index == length - 1,
        "length": length,
    }


HostFunctions = Union[FunctionRegistry, Mapping[str, Callable[..., Any]]]


@dataclass
class RenderContext:
    """Everything one render call needs.

    Attributes:
        variables: Root variable bindings; mutated in place by top-level ``set``
        blocks: Block overrides, name -> replacement text (read only)
        functions: Host functions callable from templates

    Build a fresh context for each render; the engine does not guard a
    ``variables`` dict shared between concurrent renders.
    """

    variables: Dict[str, Any] = field(default_factory=dict)
    blocks: Dict[str, str] = field(default_factory=dict)
    functions: HostFunctions = field(default_factory=FunctionRegistry)

    def __post_init__(self):
        if not isinstance(self.functions, FunctionRegistry):
            self.functions = FunctionRegistry(self.functions)

    def root_scope(self) -> Scope:
        return Scope(self.variables)
