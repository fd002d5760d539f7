"""AST for templates and tag expressions.

Both unions are closed: the parser only ever builds the classes listed in
``Node`` and ``Expr``, and the renderer matches on them exhaustively. All
nodes are frozen, so a parsed template can be rendered any number of times.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union


# =============================================================================
# Expressions
# =============================================================================


@dataclass(frozen=True)
class StringLiteral:
    value: str


@dataclass(frozen=True)
class NumberLiteral:
    value: float


@dataclass(frozen=True)
class BoolLiteral:
    value: bool


@dataclass(frozen=True)
class NullLiteral:
    pass


@dataclass(frozen=True)
class ArrayLiteral:
    items: Tuple["Expr", ...] = ()


@dataclass(frozen=True)
class ObjectLiteral:
    entries: Tuple[Tuple[str, "Expr"], ...] = ()


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class DotAccess:
    object: "Expr"
    property: str


@dataclass(frozen=True)
class BracketAccess:
    object: "Expr"
    index: "Expr"


@dataclass(frozen=True)
class Call:
    """``name(args)`` or, with a callee, ``callee.name(args)``."""

    name: str
    args: Tuple["Expr", ...] = ()
    callee: Optional["Expr"] = None


@dataclass(frozen=True)
class Binary:
    op: str
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Unary:
    op: str
    operand: "Expr"


@dataclass(frozen=True)
class Filter:
    """``value | filter_name(args)``"""

    value: "Expr"
    filter_name: str
    args: Tuple["Expr", ...] = ()


Expr = Union[
    StringLiteral,
    NumberLiteral,
    BoolLiteral,
    NullLiteral,
    ArrayLiteral,
    ObjectLiteral,
    Variable,
    DotAccess,
    BracketAccess,
    Call,
    Binary,
    Unary,
    Filter,
]


# =============================================================================
# Template nodes
# =============================================================================


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Expression:
    expr: Expr


@dataclass(frozen=True)
class Comment:
    value: str


@dataclass(frozen=True)
class Branch:
    condition: Expr
    body: Tuple["Node", ...]


@dataclass(frozen=True)
class If:
    branches: Tuple[Branch, ...]
    else_body: Optional[Tuple["Node", ...]] = None


@dataclass(frozen=True)
class For:
    variable: str
    iterable: Expr
    body: Tuple["Node", ...]


@dataclass(frozen=True)
class Set:
    variable: str
    value: Expr


@dataclass(frozen=True)
class Block:
    name: str
    body: Tuple["Node", ...]


Node = Union[Text, Expression, Comment, If, For, Set, Block]
