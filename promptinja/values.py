"""Runtime values and their coercions.

A template value is one of: str, int/float, bool, None, list, dict. Host data
is used as-is; nothing is converted on the way in. Coercion is loose
and JavaScript-flavoured: ``1 + "x"`` is ``"1x"`` and ``"1" == 1`` is true.
"""

import json
import math
import re
from decimal import Decimal
from typing import Any, Union

Value = Union[str, int, float, bool, None, list, dict]

NAN = float("nan")

COMPARISONS = (">", "<", ">=", "<=")

_DECIMAL_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_RADIX_PATTERN = re.compile(r"0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+")


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Any) -> bool:
    """False, 0, NaN, "", None and [] are falsy; everything else is truthy."""
    if value is None or value is False or value == "":
        return False
    if is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, list):
        return len(value) > 0
    return True


def format_number(value: Union[int, float]) -> str:
    """Number as JavaScript prints it: ``3``, ``2.5``, ``0.00001``, ``1e-7``, ``1e+21``."""
    if isinstance(value, int):
        if _overflows(value):
            return "Infinity" if value > 0 else "-Infinity"
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    if 1e-6 <= abs(value) < 1e21:
        return format(Decimal(text), "f")
    mantissa, exponent = text.split("e")
    return f"{mantissa}e{int(exponent):+d}"


def _jsonable(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def to_json(value: Any) -> str:
    """Compact JSON text, with whole floats written as integers."""
    return json.dumps(_jsonable(value), separators=(",", ":"), ensure_ascii=False, default=str)


def stringify(value: Any) -> str:
    """Text form of a value as it appears in rendered output."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, (list, tuple, dict)):
        return to_json(value)
    return str(value)


def _overflows(value: int) -> bool:
    try:
        float(value)
    except OverflowError:
        return True
    return False


def to_number(value: Any) -> Union[int, float]:
    """Numeric coercion in the manner of JavaScript ``Number()``.

    ``null`` is 0, booleans are 1/0, integers too large for a float are
    +/-Infinity, and strings must be a complete JavaScript numeric literal.
    Anything else is NaN.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, int):
        if _overflows(value):
            return math.inf if value > 0 else -math.inf
        return value
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0
        if _DECIMAL_PATTERN.fullmatch(stripped):
            return float(stripped)
        if _RADIX_PATTERN.fullmatch(stripped):
            return to_number(int(stripped, 0))
        if stripped in ("Infinity", "+Infinity"):
            return math.inf
        if stripped == "-Infinity":
            return -math.inf
    return NAN


def normalize_number(value: float) -> Union[int, float]:
    """Whole floats become ints so list indexing and ``range`` see ints."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def loose_equals(left: Any, right: Any) -> bool:
    """``==`` of the template language."""
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, (list, dict)) or isinstance(right, (list, dict)):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if isinstance(left, str) or isinstance(right, str) or isinstance(left, bool) or isinstance(right, bool):
        return to_number(left) == to_number(right)
    return left == right


def compare(op: str, left: Any, right: Any) -> bool:
    """Ordering comparison; strings compare as strings, all else numerically."""
    if isinstance(left, str) and isinstance(right, str):
        a, b = left, right
    else:
        a, b = to_number(left), to_number(right)
        if math.isnan(a) or math.isnan(b):
            return False
    if op == ">":
        return a > b
    if op == "<":
        return a < b
    if op == ">=":
        return a >= b
    if op == "<=":
        return a <= b
    raise ValueError(f"Not a comparison operator: {op}")


def arithmetic(op: str, left: Any, right: Any) -> Value:
    """``+ - * / %``; ``+`` concatenates when either side is a string."""
    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        return stringify(left) + stringify(right)
    a, b = to_number(left), to_number(right)
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    if op == "*":
        return a * b
    if op == "/":
        if b == 0:
            if a == 0 or math.isnan(a):
                return NAN
            return math.copysign(math.inf, a) * math.copysign(1, b)
        return a / b
    if op == "%":
        if b == 0 or math.isinf(a) or math.isnan(a) or math.isnan(b):
            return NAN
        return math.fmod(a, b)
    raise ValueError(f"Not an arithmetic operator: {op}")


def contains(container: Any, item: Any) -> bool:
    """The ``in`` operator: substring, list membership or dict key."""
    if isinstance(container, str):
        return stringify(item) in container
    if isinstance(container, list):
        return any(strict_equals(item, element) for element in container)
    if isinstance(container, dict):
        return stringify(item) in container
    return False
