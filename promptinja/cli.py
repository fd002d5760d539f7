import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import anyio
import typer
import yaml
from decouple import config as env_config
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .errors import InjaError, TemplateSyntaxError
from .loader import PROMPTS_DIR, FileLoader, template_functions
from .parsing import extract_blocks, parse
from .pipeline import assemble_prompt
from .tokenizer import tokenize

app = typer.Typer(help="promptinja: render and check NPC prompt templates")

logger = logging.getLogger(__name__)

LOG_LEVEL = env_config("PROMPTINJA_LOG_LEVEL", default="WARNING")

ROLE_COLOURS = {"system": "magenta", "user": "cyan", "assistant": "green"}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    )
):
    """promptinja: render and check NPC prompt templates"""
    pass


def _configure_logging(verbose: int):
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = getattr(logging, str(LOG_LEVEL).upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def load_context_file(path: Path) -> Dict[str, Any]:
    """Read template variables from a .json, .yaml or .yml file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def parse_context_vars(items: Optional[List[str]]) -> Dict[str, Any]:
    """Parse repeated key=value options; values are read as YAML scalars.

    Dotted keys build nested mappings, so 'npc.name=Lydia' gives
    {"npc": {"name": "Lydia"}}.
    """
    result: Dict[str, Any] = {}
    for item in items or []:
        if "=" not in item:
            raise typer.BadParameter(f"Expected key=value, got '{item}'")
        key, value = item.split("=", 1)
        *parents, leaf = key.strip().split(".")
        target = result
        for part in parents:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[leaf] = yaml.safe_load(value) if value.strip() else ""
    return result


@app.command()
def render(
    template_file: Path = typer.Argument(..., help="Path to the .prompt template"),
    context_file: Optional[Path] = typer.Option(
        None, "-f", "--context-file", help="JSON or YAML file with template variables"
    ),
    context_vars: Optional[List[str]] = typer.Option(
        None, "-c", "--context", help="Context variable as key=value (can be repeated)"
    ),
    blocks_file: Optional[Path] = typer.Option(
        None, "-b", "--blocks", help="Character file whose {% block %} sections override the template's"
    ),
    base_dir: Path = typer.Option(
        Path(PROMPTS_DIR), "-d", "--base-dir", help="Directory that render_template() paths are relative to"
    ),
    sections: bool = typer.Option(False, "--sections", help="Show the chat messages instead of the raw text"),
    as_json: bool = typer.Option(False, "--json", help="Print the chat messages as JSON"),
    verbose: int = typer.Option(0, "-v", "--verbose", count=True, help="-v: info logs, -vv: debug"),
):
    """Render a template file and print the result.

    Examples:
        promptinja render dialogue.prompt -f npc.yaml
        promptinja render dialogue.prompt -c npc.name=Lydia --sections
        promptinja render dialogue.prompt -b characters/lydia.prompt --json
    """
    _configure_logging(verbose)
    console = Console()

    if not template_file.exists():
        console.print(f"[red]Error: {template_file} not found[/red]")
        raise typer.Exit(1)

    variables: Dict[str, Any] = {}
    if context_file:
        variables.update(load_context_file(context_file))
    variables.update(parse_context_vars(context_vars))

    blocks = extract_blocks(blocks_file.read_text(encoding="utf-8")) if blocks_file else {}
    functions = template_functions(FileLoader(base_dir), variables)
    source = template_file.read_text(encoding="utf-8")

    try:
        result = anyio.run(assemble_prompt, source, variables, blocks, functions, str(template_file))
    except InjaError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(result.to_openai(), indent=2, ensure_ascii=False))
    elif sections:
        for message in result.messages:
            colour = ROLE_COLOURS.get(message.role, "white")
            console.print(Panel(escape(message.content), title=message.role, title_align="left", border_style=colour))
    else:
        typer.echo(result.rendered_text)


@app.command()
def check(
    template_files: List[Path] = typer.Argument(..., help="Template files to parse"),
):
    """Parse templates without rendering and report syntax errors."""
    console = Console()
    failures = 0
    for path in template_files:
        try:
            parse(path.read_text(encoding="utf-8"), template_path=str(path))
        except TemplateSyntaxError as e:
            failures += 1
            console.print(f"[red]{escape(str(e))}[/red]")
        except OSError as e:
            failures += 1
            console.print(f"[red]Error: {escape(str(path))}: {escape(str(e))}[/red]")
        else:
            console.print(f"[green]ok[/green] {path}")
    if failures:
        raise typer.Exit(1)


@app.command()
def tokens(
    template_file: Path = typer.Argument(..., help="Template file to tokenize"),
):
    """Print the token stream of a template."""
    console = Console()
    table = Table("line", "col", "kind", "text")
    for tok in tokenize(template_file.read_text(encoding="utf-8")):
        table.add_row(str(tok.line), str(tok.col), tok.kind.value, escape(repr(tok.text)))
    console.print(table)


if __name__ == "__main__":
    app()
