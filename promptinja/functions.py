"""Host function registry.

Host functions are how a template reaches outside itself: loading and
rendering another template file, or fetching domain data (scene text,
memories, NPC records). Templates call them by name with positional
arguments, and the renderer awaits the result.

Example:
    functions = FunctionRegistry()

    @functions.register("get_name")
    def get_name(uuid):
        return actors[uuid]["name"]

    @functions.register("get_scene_context", on_error="return_default", default="")
    async def get_scene_context(source, target, variant="full"):
        return await scenes.describe(source, target, variant)

    # Template usage:
    # {{ get_name(npc.UUID) }} is in {{ get_scene_context(npc.UUID, 0) }}
"""

import inspect
import logging
from typing import Any, Callable, Dict, Iterator, List, Literal, Mapping, Optional, Tuple

from asgiref.sync import sync_to_async

from .errors import HostFunctionError

logger = logging.getLogger(__name__)

ErrorStrategy = Literal["propagate", "return_empty", "return_default"]


class FunctionRegistry:
    """Named table of host functions for one render context.

    Each entry stores (func, on_error, default).
    """

    def __init__(self, functions: Optional[Mapping[str, Callable[..., Any]]] = None):
        self._registry: Dict[str, Tuple[Callable[..., Any], ErrorStrategy, Any]] = {}
        for name, func in (functions or {}).items():
            self.add(name, func)

    def add(
        self,
        name: str,
        func: Callable[..., Any],
        on_error: ErrorStrategy = "propagate",
        default: Any = "",
    ):
        """Register ``func`` under ``name``, replacing any earlier entry.

        Args:
            name: Name used in templates, e.g. 'get_name' for {{ get_name(id) }}
            func: Sync or async callable taking positional arguments
            on_error: How to handle exceptions:
                - 'propagate': Raise HostFunctionError, failing the render (default)
                - 'return_empty': Return empty string on error
                - 'return_default': Return ``default`` on error
            default: Value returned when on_error='return_default'
        """
        self._registry[name] = (func, on_error, default)
        logger.debug(f"Registered host function '{name}' ({func!r}), on_error={on_error}")

    def register(self, name: Optional[str] = None, on_error: ErrorStrategy = "propagate", default: Any = ""):
        """Decorator form of :meth:`add`; the name defaults to the function's own."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.add(name or func.__name__, func, on_error=on_error, default=default)
            return func

        return decorator

    def update(self, other: "Mapping[str, Callable[..., Any]] | FunctionRegistry"):
        if isinstance(other, FunctionRegistry):
            self._registry.update(other._registry)
        else:
            for name, func in other.items():
                self.add(name, func)

    def copy(self) -> "FunctionRegistry":
        clone = FunctionRegistry()
        clone._registry = dict(self._registry)
        return clone

    def __contains__(self, name: str) -> bool:
        return name in self._registry

    def __iter__(self) -> Iterator[str]:
        return iter(self._registry)

    def __len__(self) -> int:
        return len(self._registry)

    def names(self) -> List[str]:
        return list(self._registry.keys())

    async def call(self, name: str, args: List[Any]) -> Any:
        """Call a registered function and await its result.

        Plain callables run through sync_to_async so blocking lookups do not
        stall the event loop. Each call gets its own worker thread, so a
        host function may itself render a template that calls further sync
        host functions.

        Raises:
            KeyError: ``name`` is not registered
            HostFunctionError: the function raised and its strategy is 'propagate'
        """
        func, on_error, default = self._registry[name]
        try:
            if inspect.iscoroutinefunction(func):
                result = await func(*args)
            else:
                result = await sync_to_async(func, thread_sensitive=False)(*args)
                if inspect.isawaitable(result):
                    result = await result
        except Exception as e:
            if on_error == "propagate":
                raise HostFunctionError(e, name, tuple(args)) from e
            logger.warning(f"Host function '{name}' failed: {e}")
            return "" if on_error == "return_empty" else default
        return result
