"""
Tests for FileLoader and the template-rendering host functions.
"""

import anyio
import pytest

from promptinja import FileLoader, FunctionRegistry, RenderContext, render_sync, template_functions


def write(root, rel, text):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def render_with_files(source, base_dir, variables=None, fallback_dirs=None, functions=None):
    variables = variables or {}
    loader = FileLoader(base_dir, fallback_dirs=fallback_dirs or [])
    registry = template_functions(loader, variables, functions)
    return render_sync(source, RenderContext(variables=dict(variables), functions=registry))


def test_read_file_prefers_base_dir(tmp_path):
    base, originals = tmp_path / "edited", tmp_path / "originals"
    write(base, "intro.prompt", "edited")
    write(originals, "intro.prompt", "original")
    write(originals, "outro.prompt", "original outro")

    loader = FileLoader(base, fallback_dirs=[originals])
    assert anyio.run(loader.read_file, "intro.prompt") == "edited"
    assert anyio.run(loader.read_file, "outro.prompt") == "original outro"
    assert anyio.run(loader.exists, "outro.prompt") is True
    assert anyio.run(loader.exists, "missing.prompt") is False


def test_read_missing_file_raises(tmp_path):
    loader = FileLoader(tmp_path, fallback_dirs=[])
    with pytest.raises(FileNotFoundError):
        anyio.run(loader.read_file, "nope.prompt")


def test_list_dir_merges_roots(tmp_path):
    base, originals = tmp_path / "a", tmp_path / "b"
    write(base, "sub/one.prompt", "")
    write(originals, "sub/one.prompt", "")
    write(originals, "sub/two.prompt", "")

    loader = FileLoader(base, fallback_dirs=[originals])
    assert sorted(anyio.run(loader.list_dir, "sub")) == ["one.prompt", "two.prompt"]
    assert anyio.run(loader.list_dir, "nothing") == []


def test_render_template(tmp_path):
    write(tmp_path, "components/intro.prompt", "You are {{ npc.name }}.")
    out = render_with_files(
        'Intro: {{ render_template("components/intro") }}',
        tmp_path,
        variables={"npc": {"name": "Lydia"}},
    )
    assert out == "Intro: You are Lydia."


def test_render_template_nested(tmp_path):
    write(tmp_path, "outer.prompt", '[{{ render_template("inner") }}]')
    write(tmp_path, "inner.prompt", "{{ upper(word) }}")
    assert render_with_files('{{ render_template("outer") }}', tmp_path, {"word": "deep"}) == "[DEEP]"


def test_render_template_missing(tmp_path):
    out = render_with_files('{{ render_template("nope") }}', tmp_path)
    assert out == "[render_template: nope not found]"


def test_render_template_uses_fallback_dir(tmp_path):
    originals = tmp_path / "originals"
    write(originals, "shared.prompt", "from originals")
    out = render_with_files('{{ render_template("shared") }}', tmp_path / "edited", fallback_dirs=[originals])
    assert out == "from originals"


def test_nested_set_does_not_leak(tmp_path):
    write(tmp_path, "part.prompt", '{% set mood = "angry" %}{{ mood }}')
    out = render_with_files('{{ render_template("part") }}/{{ mood }}', tmp_path, {"mood": "calm"})
    assert out == "angry/calm"


def test_render_subcomponent(tmp_path):
    write(tmp_path, "submodules/guidelines/0100_tone.prompt", "Tone ({{ render_mode }})")
    write(tmp_path, "submodules/guidelines/0200_empty.prompt", "{% if false %}never{% endif %}")
    write(tmp_path, "submodules/guidelines/0300_style.prompt", "Style")
    write(tmp_path, "submodules/guidelines/notes.txt", "not a prompt")

    out = render_with_files('{{ render_subcomponent("guidelines", "short") }}', tmp_path)
    assert out == "Tone (short)\nStyle"


def test_render_character_profile(tmp_path):
    write(tmp_path, "characters/npc-1.prompt", "{% block summary %}A loyal housecarl.{% endblock %}")
    write(
        tmp_path,
        "submodules/character_bio/0100_summary.prompt",
        "{% block summary %}No bio.{% endblock %} [{{ render_mode }}:{{ actorUUID }}]",
    )
    write(tmp_path, "submodules/character_bio/0200_quirks.prompt", "{% block quirks %}None known.{% endblock %}")

    out = render_with_files('{{ render_character_profile("full", "npc-1") }}', tmp_path)
    assert out == "A loyal housecarl. [full:npc-1]\nNone known."


def test_render_character_profile_missing(tmp_path):
    out = render_with_files('{{ render_character_profile("full", "ghost") }}', tmp_path)
    assert out == "[character profile: ghost not found]"


def test_prompt_file_exists(tmp_path):
    write(tmp_path, "components/intro.prompt", "")
    source = '{% if prompt_file_exists("intro", "components") %}yes{% endif %}|{{ prompt_file_exists("outro") }}'
    assert render_with_files(source, tmp_path) == "yes|false"


def test_domain_functions_reach_nested_templates(tmp_path):
    write(tmp_path, "part.prompt", "{{ get_name(uuid) }}")
    domain = FunctionRegistry({"get_name": lambda uuid: {"npc-1": "Lydia"}[uuid]})
    out = render_with_files('{{ render_template("part") }}', tmp_path, {"uuid": "npc-1"}, functions=domain)
    assert out == "Lydia"
    assert "render_template" not in domain
