"""Observation hooks for the line interpreter.

An extension is a Python file defining ``minipy_register(ext)``. It may
subscribe to interpreter events and to step rules that fire every N recorded
steps. Both receive the interpreter, so a step rule can stop a runaway loop by
raising ``MiniPyRuntimeError``.

Events and their arguments (after the interpreter itself):

=================  ==========================================================
``program_start``  the segmented ``Program``
``before_line``    the ``LogicalLine`` about to run (paired ``else`` included)
``after_line``     the same ``LogicalLine`` once its handler returned
``skip``           a malformed ``LogicalLine`` and the statement rule it failed
``while_check``    the ``while`` header and the re-evaluated condition value
``print``          the printed integer
``program_end``    nothing
``on_error``       the exception that stopped the run
=================  ==========================================================
"""

from __future__ import annotations

import importlib.util
import itertools
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence


EXTENSION_API_VERSION = 2

EVENTS = (
    "program_start",
    "before_line",
    "after_line",
    "skip",
    "while_check",
    "print",
    "program_end",
    "on_error",
)


class MiniPyExtensionError(Exception):
    pass


@dataclass(frozen=True)
class StepContext:
    """What a step rule sees: the step number and where the counter stands."""

    step_index: int
    rule: str
    pc: int
    line: Any  # LogicalLine
    depth: int

    @property
    def indent(self) -> int:
        return self.line.indent


@dataclass(frozen=True)
class Hook:
    event: str
    handler: Callable[..., None]
    priority: int
    owner: str


@dataclass(frozen=True)
class StepRule:
    every_n: int
    handler: Callable[[Any, StepContext], None]
    owner: str

    def due(self, step_index: int) -> bool:
        return step_index % self.every_n == 0


@dataclass
class HookRegistry:
    hooks: Dict[str, List[Hook]] = field(default_factory=dict)
    step_rules: List[StepRule] = field(default_factory=list)

    def add_hook(self, hook: Hook) -> None:
        if hook.event not in EVENTS:
            raise MiniPyExtensionError(f"Unknown event '{hook.event}' (known: {', '.join(EVENTS)})")
        bucket = self.hooks.setdefault(hook.event, [])
        # Higher priority first; equal priorities keep registration order.
        position = next((i for i, h in enumerate(bucket) if h.priority < hook.priority), len(bucket))
        bucket.insert(position, hook)

    def add_step_rule(self, rule: StepRule) -> None:
        if rule.every_n <= 0:
            raise MiniPyExtensionError("every_n_steps must be >= 1")
        self.step_rules.append(rule)

    def listens(self, event: str) -> bool:
        return bool(self.hooks.get(event))

    def emit(self, event: str, *args: Any) -> None:
        for hook in self.hooks.get(event, ()):
            hook.handler(*args)

    def run_step_rules(self, interpreter: Any, ctx: StepContext) -> None:
        for rule in self.step_rules:
            if rule.due(ctx.step_index):
                rule.handler(interpreter, ctx)


@dataclass
class RuntimeServices:
    hook_registry: HookRegistry = field(default_factory=HookRegistry)
    loaded: List[str] = field(default_factory=list)


class ExtensionAPI:
    def __init__(self, *, services: RuntimeServices, ext_name: str) -> None:
        self._services = services
        self.name = ext_name

    def on_event(self, event: str, handler: Optional[Callable[..., None]] = None, *, priority: int = 0):
        def attach(fn: Callable[..., None]) -> Callable[..., None]:
            self._services.hook_registry.add_hook(Hook(event=event, handler=fn, priority=priority, owner=self.name))
            return fn

        return attach if handler is None else attach(handler)

    def every_n_steps(self, every_n: int, handler: Optional[Callable[[Any, StepContext], None]] = None):
        def attach(fn: Callable[[Any, StepContext], None]) -> Callable[[Any, StepContext], None]:
            self._services.hook_registry.add_step_rule(StepRule(every_n=every_n, handler=fn, owner=self.name))
            return fn

        return attach if handler is None else attach(handler)


_module_ids = itertools.count()


def build_default_services() -> RuntimeServices:
    return RuntimeServices()


def load_extension(path: str, services: RuntimeServices) -> None:
    if not os.path.isfile(path):
        raise MiniPyExtensionError(f"Extension not found: {path}")
    stem = os.path.splitext(os.path.basename(path))[0]
    spec = importlib.util.spec_from_file_location(f"minipy_ext_{next(_module_ids)}_{stem}", path)
    if spec is None or spec.loader is None:
        raise MiniPyExtensionError(f"Failed to load extension module: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    api_version = getattr(module, "MINIPY_EXTENSION_API_VERSION", EXTENSION_API_VERSION)
    if api_version != EXTENSION_API_VERSION:
        raise MiniPyExtensionError(
            f"Extension {path} requires API {api_version}, host supports {EXTENSION_API_VERSION}"
        )
    register = getattr(module, "minipy_register", None)
    if not callable(register):
        raise MiniPyExtensionError(f"Extension {path} must define callable minipy_register(ext)")
    name = str(getattr(module, "MINIPY_EXTENSION_NAME", stem))
    register(ExtensionAPI(services=services, ext_name=name))
    services.loaded.append(name)


def load_runtime_services(paths: Sequence[str]) -> RuntimeServices:
    services = build_default_services()
    for path in paths:
        load_extension(os.path.abspath(path), services)
    return services
