"""Built-in template functions.

Every built-in takes the evaluated positional arguments and the current scope
(only ``exists`` needs the scope). They are also reachable as filters
(``x | upper``) and as method-style calls (``x.upper()``), where the receiver
becomes the first argument.
"""

import re
from typing import Any, Callable, Dict, List, Optional

from .context import MISSING, Scope
from .values import is_number, normalize_number, stringify, strict_equals

Builtin = Callable[[List[Any], Scope], Any]

_TIME_PATTERN = re.compile(r"(\d{1,2}:\d{2}\s*(?:AM|PM))", re.IGNORECASE)


def _arg(args: List[Any], idx: int, default: Any = None) -> Any:
    return args[idx] if idx < len(args) else default


def length(args, scope):
    value = _arg(args, 0)
    if isinstance(value, (str, list, dict)):
        return len(value)
    return 0


def contains(args, scope):
    haystack, needle = _arg(args, 0), _arg(args, 1)
    if isinstance(haystack, str) and isinstance(needle, str):
        return needle in haystack
    if isinstance(haystack, list):
        return any(strict_equals(needle, item) for item in haystack)
    return False


def join(args, scope):
    items = _arg(args, 0)
    sep = _arg(args, 1)
    if not isinstance(sep, str):
        sep = ","
    if isinstance(items, list):
        return sep.join(stringify(item) for item in items)
    return stringify(items)


def lower(args, scope):
    return stringify(_arg(args, 0)).lower()


def upper(args, scope):
    return stringify(_arg(args, 0)).upper()


def replace(args, scope):
    text = stringify(_arg(args, 0))
    old = stringify(_arg(args, 1))
    new = stringify(_arg(args, 2))
    if not old:
        return new.join(text)
    return text.replace(old, new)


def to_string(args, scope):
    return stringify(_arg(args, 0))


def exists(args, scope):
    """``exists("npc.name")`` looks the name up; ``exists(value)`` checks for null."""
    target = _arg(args, 0)
    if isinstance(target, str):
        return scope.resolve(target) is not MISSING
    return target is not None


def exists_in(args, scope):
    obj = _arg(args, 0)
    key = stringify(_arg(args, 1))
    return isinstance(obj, dict) and key in obj


def default(args, scope):
    value = _arg(args, 0)
    if value is None or value == "":
        return _arg(args, 1)
    return value


def first(args, scope):
    items = _arg(args, 0)
    if isinstance(items, (list, str)) and items:
        return items[0]
    return None


def last(args, scope):
    items = _arg(args, 0)
    if isinstance(items, (list, str)) and items:
        return items[-1]
    return None


def append(args, scope):
    items, value = _arg(args, 0), _arg(args, 1)
    if isinstance(items, list):
        return [*items, value]
    return [value]


def range_(args, scope):
    """``range(end)`` or ``range(start, end)``, step 1, end exclusive."""
    first_arg = _arg(args, 0)
    start = first_arg if is_number(first_arg) else 0
    if len(args) <= 1:
        start, end = 0, start
    else:
        second = args[1]
        end = second if is_number(second) else start
    result = []
    i = start
    while i < end:
        result.append(normalize_number(i))
        i += 1
    return result


def short_time(args, scope):
    """Time of day from a game time string such as "Sundas, 3:00 PM, 17th of Last Seed"."""
    text = stringify(_arg(args, 0))
    match = _TIME_PATTERN.search(text)
    return match.group(1) if match else text


def capitalize(args, scope):
    text = stringify(_arg(args, 0))
    return text[:1].upper() + text[1:]


BUILTINS: Dict[str, Builtin] = {
    "length": length,
    "contains": contains,
    "join": join,
    "lower": lower,
    "upper": upper,
    "replace": replace,
    "to_string": to_string,
    "exists": exists,
    "existsIn": exists_in,
    "default": default,
    "first": first,
    "last": last,
    "append": append,
    "range": range_,
    "short_time": short_time,
    "capitalize": capitalize,
    "has_key": exists_in,
}


def get_builtin(name: str) -> Optional[Builtin]:
    return BUILTINS.get(name)
