"""
Tests for the promptinja command line.
"""

import json

from typer.testing import CliRunner

from promptinja import __version__
from promptinja.cli import app

runner = CliRunner()

TEMPLATE = "[ system ]\nYou are {{ npc.name }}.\n[ end system ]\n[ user ]\nHi {{ name }}\n[ end user ]\n"


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_render_with_context_vars(tmp_path):
    template = tmp_path / "dialogue.prompt"
    template.write_text(TEMPLATE, encoding="utf-8")

    result = runner.invoke(app, ["render", str(template), "-c", "name=Bob", "-d", str(tmp_path)])
    assert result.exit_code == 0, result.stdout
    assert "Hi Bob" in result.stdout
    assert "[ user ]" in result.stdout


def test_render_json_with_context_file(tmp_path):
    template = tmp_path / "dialogue.prompt"
    template.write_text(TEMPLATE, encoding="utf-8")
    context = tmp_path / "npc.yaml"
    context.write_text("npc:\n  name: Lydia\nname: Bob\n", encoding="utf-8")

    result = runner.invoke(app, ["render", str(template), "-f", str(context), "--json", "-d", str(tmp_path)])
    assert result.exit_code == 0, result.stdout
    assert json.loads(result.stdout) == [
        {"role": "system", "content": "You are Lydia."},
        {"role": "user", "content": "Hi Bob"},
    ]


def test_render_with_blocks_file(tmp_path):
    template = tmp_path / "bio.prompt"
    template.write_text("{% block bio %}unknown{% endblock %}", encoding="utf-8")
    character = tmp_path / "lydia.prompt"
    character.write_text("{% block bio %}Housecarl{% endblock %}", encoding="utf-8")

    result = runner.invoke(app, ["render", str(template), "-b", str(character), "-d", str(tmp_path)])
    assert result.exit_code == 0, result.stdout
    assert result.stdout.strip() == "Housecarl"


def test_render_missing_template(tmp_path):
    result = runner.invoke(app, ["render", str(tmp_path / "nope.prompt")])
    assert result.exit_code == 1


def test_render_syntax_error(tmp_path):
    template = tmp_path / "broken.prompt"
    template.write_text("{% for x in xs %}", encoding="utf-8")
    result = runner.invoke(app, ["render", str(template), "-d", str(tmp_path)])
    assert result.exit_code == 1


def test_check(tmp_path):
    good = tmp_path / "good.prompt"
    good.write_text("{% if a %}x{% endif %}", encoding="utf-8")
    bad = tmp_path / "bad.prompt"
    bad.write_text("{% if a %}x", encoding="utf-8")

    assert runner.invoke(app, ["check", str(good)]).exit_code == 0
    result = runner.invoke(app, ["check", str(good), str(bad)])
    assert result.exit_code == 1
    assert "endif" in result.stdout


def test_tokens(tmp_path):
    template = tmp_path / "t.prompt"
    template.write_text("{{ x }}", encoding="utf-8")
    result = runner.invoke(app, ["tokens", str(template)])
    assert result.exit_code == 0
    assert "expression_open" in result.stdout


def test_dotted_context_vars_nest(tmp_path):
    template = tmp_path / "t.prompt"
    template.write_text("{{ npc.name }} ({{ npc.level }})", encoding="utf-8")
    result = runner.invoke(app, ["render", str(template), "-c", "npc.name=Lydia", "-c", "npc.level=12"])
    assert result.exit_code == 0, result.stdout
    assert result.stdout.strip() == "Lydia (12)"
