"""Exception classes for promptinja."""

from typing import Optional


class InjaError(Exception):
    """Base class for all promptinja errors."""


class TemplateSyntaxError(InjaError):
    """Hard parse failure: malformed statement or a block that is never closed.

    Carries the offending tag text and where it started so the editor can
    point at it.
    """

    def __init__(
        self,
        message: str,
        text: str = "",
        line: Optional[int] = None,
        col: Optional[int] = None,
        template_path: Optional[str] = None,
    ):
        self.text = text
        self.line = line
        self.col = col
        self.template_path = template_path
        super().__init__(message)

    def __str__(self):
        parts = [f"Error: {self.args[0]}"]
        if self.text:
            parts.append(f"  Tag: {self.text}")
        if self.template_path or self.line:
            loc = str(self.template_path or "<template>")
            if self.line:
                loc += f":{self.line}"
                if self.col:
                    loc += f":{self.col}"
            parts.append(f"  File: {loc}")
        return "\n".join(parts)


class HostFunctionError(InjaError):
    """Wrapper for an exception raised inside a host function.

    Preserves the original exception while naming the function and the
    arguments it was called with.
    """

    def __init__(self, original_error: Exception, function_name: str, args: tuple = ()):
        self.original_error = original_error
        self.error_type = type(original_error).__name__
        self.function_name = function_name
        self.call_args = args
        super().__init__(str(original_error))

    def __str__(self):
        return (
            f"Error: {self.error_type}\n"
            f"  Function: {self.function_name}\n"
            f"  {self.original_error}"
        )

    def __repr__(self):
        return f"HostFunctionError({self.error_type}, function={self.function_name})"
