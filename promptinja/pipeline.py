"""Template source + context -> chat messages for the model."""

import logging
from typing import Any, Dict, List, Optional

import anyio
from pydantic import BaseModel, Field

from .context import HostFunctions, RenderContext
from .renderer import render
from .sections import ChatMessage, parse_sections

logger = logging.getLogger(__name__)


class AssembledPrompt(BaseModel):
    """Result of running a template through the full pipeline."""

    messages: List[ChatMessage] = Field(default_factory=list)
    rendered_text: str = ""

    def to_openai(self) -> List[Dict[str, str]]:
        """Messages as plain dicts, the shape chat completion APIs take."""
        return [m.model_dump() for m in self.messages]


async def assemble_prompt(
    source: str,
    variables: Optional[Dict[str, Any]] = None,
    blocks: Optional[Dict[str, str]] = None,
    functions: Optional[HostFunctions] = None,
    template_path: Optional[str] = None,
) -> AssembledPrompt:
    """Render a template and split the result into chat messages.

    Args:
        source: Template text
        variables: Context variables, built by the caller from application state
        blocks: Block overrides, e.g. from ``extract_blocks(character_source)``
        functions: Host functions (a FunctionRegistry or a plain dict)
        template_path: Optional file name, only used in error messages

    Returns:
        AssembledPrompt with the ordered messages and the raw rendered text
    """
    ctx = RenderContext(
        variables=dict(variables or {}),
        blocks=dict(blocks or {}),
        functions=functions if functions is not None else {},
    )
    rendered_text = await render(source, ctx, template_path=template_path)
    messages = parse_sections(rendered_text)
    logger.debug(f"Assembled {len(messages)} messages from {len(rendered_text)} chars")
    return AssembledPrompt(messages=messages, rendered_text=rendered_text)


def assemble_prompt_sync(
    source: str,
    variables: Optional[Dict[str, Any]] = None,
    blocks: Optional[Dict[str, str]] = None,
    functions: Optional[HostFunctions] = None,
    template_path: Optional[str] = None,
) -> AssembledPrompt:
    """Synchronous wrapper for assemble_prompt."""
    return anyio.run(assemble_prompt, source, variables, blocks, functions, template_path)
