import textwrap

import pytest

from extensions import (
    ExtensionAPI,
    MiniPyExtensionError,
    build_default_services,
    load_runtime_services,
)
from interpreter import Interpreter, MiniPyRuntimeError


def test_events_fire_in_order():
    services = build_default_services()
    api = ExtensionAPI(services=services, ext_name="tracer")
    seen = []

    api.on_event("program_start", lambda interp, program: seen.append(("start", len(program))))
    api.on_event("print", lambda interp, value: seen.append(("print", value)))
    api.on_event("program_end", lambda interp: seen.append(("end",)))

    Interpreter(source="x = 2\nprint(x)\n", services=services, output_sink=lambda s: None).run()
    assert seen == [("start", 2), ("print", 2), ("end",)]


def test_priority_orders_handlers():
    services = build_default_services()
    api = ExtensionAPI(services=services, ext_name="tracer")
    order = []

    @api.on_event("before_line", priority=1)
    def low(interp, line):
        order.append("low")

    @api.on_event("before_line", priority=5)
    def high(interp, line):
        order.append("high")

    Interpreter(source="x = 1\n", services=services, output_sink=lambda s: None).run()
    assert order == ["high", "low"]


def test_unknown_event_rejected():
    api = ExtensionAPI(services=build_default_services(), ext_name="tracer")
    with pytest.raises(MiniPyExtensionError):
        api.on_event("after_everything", lambda *a: None)


def test_step_rule_can_cancel_a_run():
    services = build_default_services()
    api = ExtensionAPI(services=services, ext_name="watchdog")

    @api.every_n_steps(25)
    def watchdog(interp, ctx):
        raise MiniPyRuntimeError("cancelled", rule="CANCEL")

    with pytest.raises(MiniPyRuntimeError) as info:
        Interpreter(source="while 1:\n    x = x + 1\n", services=services, output_sink=lambda s: None).run()
    assert info.value.rule == "CANCEL"


def test_failing_hook_is_wrapped():
    services = build_default_services()
    api = ExtensionAPI(services=services, ext_name="broken")
    api.on_event("after_line", lambda interp, line: 1 / 0)

    with pytest.raises(MiniPyRuntimeError) as info:
        Interpreter(source="x = 1\n", services=services, output_sink=lambda s: None).run()
    assert info.value.rule == "EXT"


def test_step_rule_requires_positive_interval():
    api = ExtensionAPI(services=build_default_services(), ext_name="tracer")
    with pytest.raises(MiniPyExtensionError):
        api.every_n_steps(0, lambda interp, ctx: None)


def test_load_extension_from_file(tmp_path):
    path = tmp_path / "counter.py"
    path.write_text(
        textwrap.dedent(
            """
            MINIPY_EXTENSION_NAME = "counter"
            PRINTED = []

            def minipy_register(ext):
                ext.on_event("print", lambda interp, value: PRINTED.append(value))
            """
        )
    )
    services = load_runtime_services([str(path)])
    assert services.loaded == ["counter"]
    out = []
    Interpreter(source="print(3)\n", services=services, output_sink=out.append).run()
    assert out == ["3"]


def test_load_extension_without_register(tmp_path):
    path = tmp_path / "empty.py"
    path.write_text("X = 1\n")
    with pytest.raises(MiniPyExtensionError, match="minipy_register"):
        load_runtime_services([str(path)])


def test_load_extension_api_mismatch(tmp_path):
    path = tmp_path / "future.py"
    path.write_text("MINIPY_EXTENSION_API_VERSION = 99\ndef minipy_register(ext):\n    pass\n")
    with pytest.raises(MiniPyExtensionError, match="requires API 99"):
        load_runtime_services([str(path)])


def test_missing_extension_file(tmp_path):
    with pytest.raises(MiniPyExtensionError, match="not found"):
        load_runtime_services([str(tmp_path / "nope.py")])


def collect(event, source):
    services = build_default_services()
    api = ExtensionAPI(services=services, ext_name="tracer")
    seen = []
    api.on_event(event, lambda interp, *args: seen.append(args))
    Interpreter(source=source, services=services, output_sink=lambda s: None).run()
    return seen


def test_skip_event_reports_malformed_statements():
    seen = collect("skip", "x\nprint\nif x\nwhile x\nprint(1)\n")
    assert [(line.location.line, rule) for line, rule in seen] == [
        (1, "ASSIGN"),
        (2, "PRINT"),
        (3, "IF"),
        (4, "WHILE"),
    ]


def test_while_check_sees_each_recheck():
    seen = collect("while_check", "n = 3\nwhile n:\n    n = n - 1\n")
    assert [value for _, value in seen] == [2, 1, 0]
    assert all(header.location.line == 2 for header, _ in seen)


def test_paired_else_fires_line_events():
    src = "if {}:\n    print(1)\nelse:\n    print(2)\n"
    before = collect("before_line", src.format(0))
    after = collect("after_line", src.format(0))
    assert [line.location.line for (line,) in before] == [1, 3, 4]
    assert [line.location.line for (line,) in after] == [4, 3, 1]

    before = collect("before_line", src.format(1))
    assert [line.location.line for (line,) in before] == [1, 2, 3]


def test_step_context_carries_position():
    services = build_default_services()
    api = ExtensionAPI(services=services, ext_name="tracer")
    steps = []

    @api.every_n_steps(1)
    def record(interp, ctx):
        steps.append((ctx.rule, ctx.pc, ctx.line.location.line, ctx.indent, ctx.depth))

    Interpreter(source="i = 0\nwhile i < 1:\n    i = i + 1\n", services=services, output_sink=lambda s: None).run()
    assert steps == [
        ("ASSIGN", 0, 1, 0, 0),
        ("WHILE", 1, 2, 0, 0),
        ("ASSIGN", 2, 3, 4, 1),
        ("WHILE_CHECK", 1, 2, 0, 0),
    ]
