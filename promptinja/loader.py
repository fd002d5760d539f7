"""Prompt files on disk and the host functions that render them.

Prompt files are resolved against a base directory first, then against
fallback directories (by default the unmodified originals, configured with
the PROMPTINJA_ORIGINALS_DIR environment variable), so an edited prompt set
only needs to contain the files it changes.

Template-level inclusion is done through host functions, not syntax:

    {{ render_template("components/event_history") }}
    {{ render_subcomponent("guidelines", "full") }}
    {{ render_character_profile("short", npc.UUID) }}
    {% if prompt_file_exists("intro", "components") %}...{% endif %}

Inclusion is not cycle-checked; a template that includes itself recurses
until the interpreter gives up.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import anyio
from decouple import config as env_config

from .context import RenderContext
from .errors import InjaError
from .functions import FunctionRegistry
from .parsing import extract_blocks
from .renderer import render

logger = logging.getLogger(__name__)

PROMPT_SUFFIX = ".prompt"
PROMPTS_DIR = env_config("PROMPTINJA_PROMPTS_DIR", default=".")
ORIGINALS_DIR = env_config("PROMPTINJA_ORIGINALS_DIR", default="")

SUBMODULES_DIR = "submodules"
CHARACTERS_DIR = "characters"
CHARACTER_BIO_DIR = "submodules/character_bio"

PathLike = Union[str, Path]


class FileLoader:
    """Reads prompt files from a base directory with fallbacks."""

    def __init__(self, base_dir: Optional[PathLike] = None, fallback_dirs: Optional[Sequence[PathLike]] = None):
        self.base_dir = Path(base_dir if base_dir is not None else PROMPTS_DIR).expanduser()
        if fallback_dirs is None:
            fallback_dirs = [ORIGINALS_DIR] if ORIGINALS_DIR else []
        self.fallback_dirs = [Path(d).expanduser() for d in fallback_dirs]

    @property
    def roots(self) -> List[Path]:
        return [self.base_dir, *self.fallback_dirs]

    async def read_file(self, path: str) -> str:
        """Read ``path`` from the first root that has it.

        Raises:
            FileNotFoundError: No root contains the file
        """
        rel = path.replace("\\", "/")
        for root in self.roots:
            candidate = anyio.Path(root / rel)
            if await candidate.is_file():
                logger.debug(f"Loading {rel} from {root}")
                return await candidate.read_text(encoding="utf-8")
        raise FileNotFoundError(f"{rel} not found in {', '.join(str(r) for r in self.roots)}")

    async def list_dir(self, path: str) -> List[str]:
        """File names in ``path`` across all roots, base directory first, no duplicates."""
        rel = path.replace("\\", "/")
        names: List[str] = []
        for root in self.roots:
            directory = anyio.Path(root / rel)
            if not await directory.is_dir():
                continue
            async for entry in directory.iterdir():
                if entry.name not in names:
                    names.append(entry.name)
        return names

    async def exists(self, path: str) -> bool:
        rel = path.replace("\\", "/")
        for root in self.roots:
            if await anyio.Path(root / rel).is_file():
                return True
        return False


def template_functions(
    loader: FileLoader,
    variables: Optional[Dict[str, Any]] = None,
    functions: Optional[FunctionRegistry] = None,
) -> FunctionRegistry:
    """Build a registry with the template-rendering host functions.

    Every nested render gets a fresh context: a copy of ``variables`` and the
    returned registry itself, so included templates can include further
    templates and call the same domain functions.

    Args:
        loader: Where prompt files come from
        variables: Variables every nested render starts from
        functions: Domain host functions to expose alongside the file ones

    Returns:
        A registry holding ``functions`` plus render_template,
        render_subcomponent, render_character_profile and prompt_file_exists
    """
    base_variables = dict(variables or {})
    registry = functions.copy() if functions is not None else FunctionRegistry()

    def nested_context(overrides: Optional[Dict[str, Any]] = None, blocks: Optional[Dict[str, str]] = None):
        return RenderContext(
            variables={**base_variables, **(overrides or {})},
            blocks=dict(blocks or {}),
            functions=registry,
        )

    async def render_files(directory: str, overrides: Dict[str, Any], blocks: Optional[Dict[str, str]] = None) -> str:
        names = sorted(n for n in await loader.list_dir(directory) if n.endswith(PROMPT_SUFFIX))
        parts = []
        for name in names:
            path = f"{directory}/{name}"
            source = await loader.read_file(path)
            rendered = await render(source, nested_context(overrides, blocks), template_path=path)
            if rendered.strip():
                parts.append(rendered)
        return "\n".join(parts)

    @registry.register("render_template")
    async def render_template(path):
        name = str(path).replace("\\", "/")
        try:
            source = await loader.read_file(name + PROMPT_SUFFIX)
            return await render(source, nested_context(), template_path=name + PROMPT_SUFFIX)
        except (OSError, InjaError) as e:
            logger.warning(f"render_template({name}) failed: {e}")
            return f"[render_template: {path} not found]"

    @registry.register("render_subcomponent")
    async def render_subcomponent(name, mode=None):
        overrides = {} if mode is None else {"render_mode": mode}
        try:
            return await render_files(f"{SUBMODULES_DIR}/{name}", overrides)
        except (OSError, InjaError) as e:
            logger.warning(f"render_subcomponent({name}) failed: {e}")
            return f"[render_subcomponent: {name} not found]"

    @registry.register("render_character_profile")
    async def render_character_profile(mode=None, uuid=None):
        try:
            character = await loader.read_file(f"{CHARACTERS_DIR}/{uuid}{PROMPT_SUFFIX}")
            overrides = {
                "render_mode": mode if mode is not None else "full",
                "actorUUID": uuid if uuid is not None else "",
            }
            return await render_files(CHARACTER_BIO_DIR, overrides, extract_blocks(character))
        except (OSError, InjaError) as e:
            logger.warning(f"render_character_profile({uuid}) failed: {e}")
            return f"[character profile: {uuid} not found]"

    @registry.register("prompt_file_exists")
    async def prompt_file_exists(name, directory=None):
        path = f"{directory}/{name}{PROMPT_SUFFIX}" if directory else f"{name}{PROMPT_SUFFIX}"
        return await loader.exists(path)

    return registry
