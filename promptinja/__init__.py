"""promptinja -- template engine for NPC dialogue prompt files."""

import logging

# Version - reads from package metadata (set in pyproject.toml)
try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("promptinja")
except PackageNotFoundError:
    __version__ = "0.0.0+dev"

logger = logging.getLogger(__name__)

# Re-export from context module
from .context import MISSING, RenderContext, Scope
# Re-export from errors module
from .errors import HostFunctionError, InjaError, TemplateSyntaxError
from .expressions import parse_expr
from .functions import FunctionRegistry
from .loader import FileLoader, template_functions
from .parsing import extract_blocks, parse
from .pipeline import AssembledPrompt, assemble_prompt, assemble_prompt_sync
from .renderer import eval_expr, render, render_sync
from .sections import ChatMessage, parse_sections
from .tokenizer import Token, TokenKind, tokenize
from .values import is_truthy, stringify

# Public API exports
__all__ = [
    # Version
    "__version__",
    # Main entry points
    "render",
    "render_sync",
    "assemble_prompt",
    "assemble_prompt_sync",
    "parse_sections",
    # Context
    "RenderContext",
    "Scope",
    "MISSING",
    "FunctionRegistry",
    # Files
    "FileLoader",
    "template_functions",
    "extract_blocks",
    # Results
    "AssembledPrompt",
    "ChatMessage",
    # Errors
    "InjaError",
    "TemplateSyntaxError",
    "HostFunctionError",
    # Internal (for advanced use)
    "tokenize",
    "Token",
    "TokenKind",
    "parse",
    "parse_expr",
    "eval_expr",
    "is_truthy",
    "stringify",
]
