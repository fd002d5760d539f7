"""
Tests for host functions: registration, sync/async dispatch, error strategies.
"""

import unittest

import anyio

from promptinja import FunctionRegistry, HostFunctionError, RenderContext, render_sync

ACTORS = {"npc-1": {"name": "Lydia"}, "npc-2": {"name": "Faendal"}}


class RegistryTestCase(unittest.TestCase):
    """Registration and lookup"""

    def test_register_decorator(self):
        functions = FunctionRegistry()

        @functions.register()
        def get_name(uuid):
            return ACTORS[uuid]["name"]

        self.assertIn("get_name", functions)
        self.assertEqual(functions.names(), ["get_name"])
        self.assertEqual(len(functions), 1)

    def test_register_with_name(self):
        functions = FunctionRegistry()

        @functions.register("name_of")
        def get_name(uuid):
            return ACTORS[uuid]["name"]

        self.assertIn("name_of", functions)
        self.assertNotIn("get_name", functions)

    def test_from_dict_and_copy(self):
        functions = FunctionRegistry({"a": lambda: 1})
        clone = functions.copy()
        clone.add("b", lambda: 2)
        self.assertEqual(sorted(clone), ["a", "b"])
        self.assertEqual(list(functions), ["a"])

    def test_update(self):
        functions = FunctionRegistry()
        functions.update({"a": lambda: 1})
        functions.update(FunctionRegistry({"b": lambda: 2}))
        self.assertEqual(sorted(functions.names()), ["a", "b"])

    def test_unknown_name_raises_key_error(self):
        with self.assertRaises(KeyError):
            anyio.run(FunctionRegistry().call, "nope", [])


class CallTestCase(unittest.TestCase):
    """Calling host functions from templates"""

    def test_sync_function(self):
        functions = FunctionRegistry()

        @functions.register()
        def get_name(uuid):
            return ACTORS[uuid]["name"]

        ctx = RenderContext(variables={"npc": {"UUID": "npc-2"}}, functions=functions)
        self.assertEqual(render_sync("{{ get_name(npc.UUID) }}", ctx), "Faendal")

    def test_async_function(self):
        functions = FunctionRegistry()

        @functions.register()
        async def get_scene_context(source, target, variant="full"):
            await anyio.sleep(0)
            return f"{source}->{target} ({variant})"

        ctx = RenderContext(functions=functions)
        self.assertEqual(
            render_sync('{{ get_scene_context("a", "b") }}|{{ get_scene_context("a", "b", "short") }}', ctx),
            "a->b (full)|a->b (short)",
        )

    def test_plain_dict_of_functions(self):
        ctx = RenderContext(functions={"greet": lambda name: f"Hail, {name}"})
        self.assertEqual(render_sync('{{ greet("traveller") }}', ctx), "Hail, traveller")

    def test_calls_run_in_document_order(self):
        calls = []

        def record(label):
            calls.append(label)
            return label

        ctx = RenderContext(functions={"record": record})
        out = render_sync('{{ record("a") }}{% if record("b") %}{{ record("c") }}{% endif %}', ctx)
        self.assertEqual(out, "ac")
        self.assertEqual(calls, ["a", "b", "c"])

    def test_function_used_as_filter(self):
        ctx = RenderContext(variables={"name": "lydia"}, functions={"shout": lambda s: s.upper() + "!"})
        self.assertEqual(render_sync("{{ name | shout }}", ctx), "LYDIA!")

    def test_builtins_take_precedence(self):
        ctx = RenderContext(functions={"upper": lambda s: "host"})
        self.assertEqual(render_sync('{{ upper("x") }}', ctx), "X")

    def test_returned_values_are_template_values(self):
        ctx = RenderContext(functions={"memories": lambda: [{"text": "met at Riverwood"}]})
        source = "{% for m in memories() %}- {{ m.text }}{% endfor %}"
        self.assertEqual(render_sync(source, ctx), "- met at Riverwood")

    def test_sync_function_renders_nested_template(self):
        def name():
            return "Lydia"

        def include(path):
            return render_sync("Hi {{ name() }}", RenderContext(functions={"name": name}))

        ctx = RenderContext(functions={"include": include})
        self.assertEqual(render_sync("[{{ include('greeting') }}]", ctx), "[Hi Lydia]")

    def test_and_or_evaluate_both_operands(self):
        calls = []

        def rec(value):
            calls.append(value)
            return value

        ctx = RenderContext(functions={"rec": rec})
        out = render_sync("{{ rec(false) and rec(true) }}|{{ rec(true) or rec(false) }}", ctx)
        self.assertEqual(out, "false|true")
        self.assertEqual(calls, [False, True, True, False])


class ErrorStrategyTestCase(unittest.TestCase):
    """on_error handling"""

    def setUp(self):
        def broken(*args):
            raise ValueError("no such actor")

        self.broken = broken

    def test_propagate_is_default(self):
        ctx = RenderContext(functions={"broken": self.broken})
        with self.assertRaises(HostFunctionError) as cm:
            render_sync('before {{ broken("npc-9") }}', ctx)
        err = cm.exception
        self.assertEqual(err.function_name, "broken")
        self.assertEqual(err.error_type, "ValueError")
        self.assertEqual(err.call_args, ("npc-9",))
        self.assertIsInstance(err.original_error, ValueError)
        self.assertIn("Function: broken", str(err))

    def test_return_empty(self):
        functions = FunctionRegistry()
        functions.add("broken", self.broken, on_error="return_empty")
        self.assertEqual(render_sync("[{{ broken() }}]", RenderContext(functions=functions)), "[]")

    def test_return_default(self):
        functions = FunctionRegistry()
        functions.add("broken", self.broken, on_error="return_default", default="(unknown)")
        self.assertEqual(render_sync("{{ broken() }}", RenderContext(functions=functions)), "(unknown)")

    def test_async_failure_propagates(self):
        functions = FunctionRegistry()

        @functions.register()
        async def fails():
            raise RuntimeError("boom")

        with self.assertRaises(HostFunctionError):
            render_sync("{{ fails() }}", RenderContext(functions=functions))


if __name__ == "__main__":
    unittest.main()
