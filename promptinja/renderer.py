"""Async tree-walking renderer.

Sibling nodes are evaluated strictly in order. The only suspension points are
host function calls, which is why the evaluator is async at all: a host
function may read another template file and render it recursively.

Missing variables, unknown functions and non-list ``for`` iterables never
raise; they render as empty text or a placeholder. A render either returns
the whole string or raises, never a partial result.
"""

import logging
from typing import Any, Iterable, List, Optional

import anyio

from .builtins import get_builtin
from .context import MISSING, RenderContext, Scope, loop_record
from .nodes import (
    ArrayLiteral,
    Binary,
    Block,
    BoolLiteral,
    BracketAccess,
    Call,
    Comment,
    DotAccess,
    Expr,
    Expression,
    Filter,
    For,
    If,
    Node,
    NullLiteral,
    NumberLiteral,
    ObjectLiteral,
    Set,
    StringLiteral,
    Text,
    Unary,
    Variable,
)
from .parsing import parse
from .values import (
    COMPARISONS,
    arithmetic,
    compare,
    contains,
    is_number,
    is_truthy,
    loose_equals,
    stringify,
    to_number,
)

logger = logging.getLogger(__name__)


def unknown_function_placeholder(name: str) -> str:
    return f"[unknown function: {name}]"


async def render(source: str, ctx: Optional[RenderContext] = None, template_path: Optional[str] = None) -> str:
    """Render a template to text.

    Args:
        source: Template text
        ctx: Variables, block overrides and host functions. A top-level
            ``set`` writes into ``ctx.variables``.
        template_path: Optional file name, only used in error messages

    Raises:
        TemplateSyntaxError: The template does not parse
        HostFunctionError: A host function with the 'propagate' strategy failed

    Example:
        >>> await render("Hello {{ npc.name }}", RenderContext(variables={"npc": {"name": "Lydia"}}))
        'Hello Lydia'
    """
    if ctx is None:
        ctx = RenderContext()
    nodes = parse(source, template_path=template_path)
    return await render_nodes(nodes, ctx, ctx.root_scope())


def render_sync(source: str, ctx: Optional[RenderContext] = None, template_path: Optional[str] = None) -> str:
    """Synchronous wrapper around :func:`render` for non-async callers."""
    return anyio.run(render, source, ctx, template_path)


async def render_nodes(nodes: Iterable[Node], ctx: RenderContext, scope: Scope) -> str:
    parts: List[str] = []
    for node in nodes:
        parts.append(await render_node(node, ctx, scope))
    return "".join(parts)


async def render_node(node: Node, ctx: RenderContext, scope: Scope) -> str:
    match node:
        case Text(value=value):
            return value

        case Comment():
            return ""

        case Expression(expr=expr):
            return stringify(await eval_expr(expr, ctx, scope))

        case If(branches=branches, else_body=else_body):
            for branch in branches:
                if is_truthy(await eval_expr(branch.condition, ctx, scope)):
                    return await render_nodes(branch.body, ctx, scope)
            if else_body is not None:
                return await render_nodes(else_body, ctx, scope)
            return ""

        case For(variable=variable, iterable=iterable, body=body):
            items = await eval_expr(iterable, ctx, scope)
            if isinstance(items, tuple):
                items = list(items)
            if not isinstance(items, list):
                logger.debug(f"for {variable}: iterable is {type(items).__name__}, not a list; rendering nothing")
                return ""
            parts = []
            for index, item in enumerate(items):
                frame = scope.child({variable: item, "loop": loop_record(index, len(items))})
                parts.append(await render_nodes(body, ctx, frame))
            return "".join(parts)

        case Set(variable=variable, value=value):
            scope.set(variable, await eval_expr(value, ctx, scope))
            return ""

        case Block(name=name, body=body):
            if name in ctx.blocks:
                logger.debug(f"Block '{name}' overridden")
                return ctx.blocks[name]
            return await render_nodes(body, ctx, scope)

    raise TypeError(f"Not a template node: {node!r}")


# =============================================================================
# Expressions
# =============================================================================


def get_member(obj: Any, prop: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(prop)
    if isinstance(obj, list) and prop.isdigit():
        idx = int(prop)
        return obj[idx] if idx < len(obj) else None
    return None


def get_item(obj: Any, index: Any) -> Any:
    if isinstance(obj, list) and is_number(index):
        if isinstance(index, float) and not index.is_integer():
            return None
        idx = int(index)
        return obj[idx] if 0 <= idx < len(obj) else None
    if isinstance(obj, dict) and (isinstance(index, str) or is_number(index)):
        return obj.get(stringify(index))
    return None


async def eval_expr(expr: Expr, ctx: RenderContext, scope: Scope) -> Any:
    """Evaluate an expression to a template value."""
    match expr:
        case StringLiteral(value=value) | NumberLiteral(value=value) | BoolLiteral(value=value):
            return value

        case NullLiteral():
            return None

        case ArrayLiteral(items=items):
            return [await eval_expr(item, ctx, scope) for item in items]

        case ObjectLiteral(entries=entries):
            return {key: await eval_expr(value, ctx, scope) for key, value in entries}

        case Variable(name=name):
            value = scope.resolve(name)
            return None if value is MISSING else value

        case DotAccess(object=obj, property=prop):
            return get_member(await eval_expr(obj, ctx, scope), prop)

        case BracketAccess(object=obj, index=index):
            target = await eval_expr(obj, ctx, scope)
            return get_item(target, await eval_expr(index, ctx, scope))

        case Call():
            return await _eval_call(expr, ctx, scope)

        case Binary(op=op, left=left, right=right):
            # both operands are always evaluated, including for and/or
            lhs = await eval_expr(left, ctx, scope)
            rhs = await eval_expr(right, ctx, scope)
            return _apply_binary(op, lhs, rhs)

        case Unary(op=op, operand=operand):
            value = await eval_expr(operand, ctx, scope)
            if op == "not":
                return not is_truthy(value)
            if op == "-":
                return -to_number(value)
            return value

        case Filter(value=value_expr, filter_name=name, args=arg_exprs):
            value = await eval_expr(value_expr, ctx, scope)
            args = [await eval_expr(arg, ctx, scope) for arg in arg_exprs]
            builtin = get_builtin(name)
            if builtin is not None:
                return builtin([value, *args], scope)
            if name in ctx.functions:
                return await ctx.functions.call(name, [value, *args])
            logger.debug(f"Unknown filter '{name}', value passed through")
            return value

    raise TypeError(f"Not an expression: {expr!r}")


def _apply_binary(op: str, lhs: Any, rhs: Any) -> Any:
    if op == "==":
        return loose_equals(lhs, rhs)
    if op == "!=":
        return not loose_equals(lhs, rhs)
    if op in COMPARISONS:
        return compare(op, lhs, rhs)
    if op == "and":
        return is_truthy(lhs) and is_truthy(rhs)
    if op == "or":
        return is_truthy(lhs) or is_truthy(rhs)
    if op == "in":
        return contains(rhs, lhs)
    return arithmetic(op, lhs, rhs)


async def _eval_call(expr: Call, ctx: RenderContext, scope: Scope) -> Any:
    """Resolve a call: bound method, then built-in, then host function."""
    args = [await eval_expr(arg, ctx, scope) for arg in expr.args]
    name = expr.name

    if expr.callee is not None:
        # receiver is bound as the first argument
        args = [await eval_expr(expr.callee, ctx, scope), *args]

    builtin = get_builtin(name)
    if builtin is not None:
        return builtin(args, scope)
    if name in ctx.functions:
        return await ctx.functions.call(name, args)
    logger.debug(f"Unknown function '{name}'")
    return unknown_function_placeholder(name)
