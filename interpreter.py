from __future__ import annotations
import json
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple

from evaluator import (
    DivisionByZeroError,
    ExpressionEvaluator,
    IntegerLiteralError,
    MiniPyRuntimeError,
    MissingOperandError,
    StepLimitError,
    UnexpectedTokenError,
)
from extensions import HookRegistry, RuntimeServices, StepContext, build_default_services
from lexer import Lexer, MiniPyError, MiniPyParseError, Token, UnexpectedCharacterError
from segmenter import LineSegmenter, LogicalLine, Program, SourceLocation


__all__ = [
    "DivisionByZeroError",
    "Environment",
    "IntegerLiteralError",
    "Interpreter",
    "MiniPyError",
    "MiniPyParseError",
    "MiniPyRuntimeError",
    "MissingOperandError",
    "StepLimitError",
    "TracebackFormatter",
    "UnexpectedCharacterError",
    "UnexpectedTokenError",
]

DEFAULT_HISTORY = 4096


@dataclass
class Environment:
    """The flat global variable table. Unbound names read as zero."""

    values: Dict[str, int] = field(default_factory=dict)

    def set(self, name: str, value: int) -> None:
        self.values[name] = value

    def get(self, name: str) -> int:
        return self.values.get(name, 0)

    def has(self, name: str) -> bool:
        return name in self.values

    def snapshot(self) -> Dict[str, int]:
        return dict(self.values)


@dataclass
class Frame:
    name: str
    frame_id: str
    location: Optional[SourceLocation]
    # Lines deeper than this belong to the block; None for the top level.
    base_indent: Optional[int] = None


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    rule: str
    frame_id: Optional[str]
    pc: Optional[int]
    indent: Optional[int]
    source_location: Optional[SourceLocation]
    env_snapshot: Optional[Dict[str, int]]

    @property
    def statement(self) -> Optional[str]:
        return self.source_location.statement if self.source_location else None


class StateLogger:
    """Keeps the most recent steps plus the latest step seen in each open frame."""

    def __init__(self, verbose: bool, history: int = DEFAULT_HISTORY) -> None:
        self.verbose = verbose
        self.entries: Deque[StateEntry] = deque(maxlen=history)
        self.next_state_index = 0
        self.frame_last_entry: Dict[str, StateEntry] = {}

    def record(
        self,
        *,
        rule: str,
        frame: Optional[Frame],
        pc: Optional[int],
        line: Optional[LogicalLine],
        env_snapshot: Optional[Dict[str, int]] = None,
    ) -> StateEntry:
        step_index = self.next_state_index
        entry = StateEntry(
            step_index=step_index,
            state_id=f"s_{step_index:06d}",
            rule=rule,
            frame_id=frame.frame_id if frame else None,
            pc=pc,
            indent=line.indent if line else None,
            source_location=line.location if line else None,
            env_snapshot=env_snapshot,
        )
        self.entries.append(entry)
        if frame:
            self.frame_last_entry[frame.frame_id] = entry
        self.next_state_index += 1
        return entry

    def last_entry_for_frame(self, frame_id: str) -> Optional[StateEntry]:
        return self.frame_last_entry.get(frame_id)

    def forget_frame(self, frame_id: str) -> None:
        self.frame_last_entry.pop(frame_id, None)


LineHandler = Callable[[LogicalLine], None]


class Interpreter:
    def __init__(
        self,
        *,
        source: str,
        filename: str = "<string>",
        tokens: Optional[Sequence[Token]] = None,
        verbose: bool = False,
        services: Optional[RuntimeServices] = None,
        output_sink: Optional[Callable[[str], None]] = None,
        variables: Optional[Environment] = None,
        max_steps: Optional[int] = None,
        history: int = DEFAULT_HISTORY,
    ) -> None:
        self.source = source
        self.filename = filename
        self.tokens: Optional[List[Token]] = list(tokens) if tokens is not None else None
        self.verbose = verbose
        self.services = services or build_default_services()
        self.hook_registry: HookRegistry = self.services.hook_registry
        self.output_sink = output_sink or (lambda text: print(text))
        self.variables = variables if variables is not None else Environment()
        self.max_steps = max_steps
        self.evaluator = ExpressionEvaluator()

        self.program = Program(lines=())
        self.pc = 0

        self.logger = StateLogger(verbose=verbose, history=history)
        self.logger.record(rule="SEED", frame=None, pc=None, line=None)
        self.io_log: List[Dict[str, Any]] = []
        self.call_stack: List[Frame] = []
        self.frame_counter = 0

        # Leading token kind -> (rule name, handler). Kinds missing here are no-ops.
        self.handlers: Dict[str, Tuple[str, LineHandler]] = {
            "IDENT": ("ASSIGN", self._execute_assignment),
            "PRINT": ("PRINT", self._execute_print),
            "IF": ("IF", self._execute_if),
            "WHILE": ("WHILE", self._execute_while),
            "ELSE": ("ELSE", self._execute_stray_else),
        }

    def parse(self) -> Program:
        tokens = self.tokens
        if tokens is None:
            tokens = Lexer(self.source, self.filename).tokenize()
        return LineSegmenter(tokens, self.source, self.filename).segment()

    def run(self) -> None:
        program = self.parse()
        self.program = program
        self.pc = 0
        global_frame = self._new_frame("<top-level>", None)
        self.call_stack = [global_frame]
        try:
            self._emit_event("program_start", self, program)
            while self.pc < len(program):
                self._dispatch(program[self.pc])
        except MiniPyRuntimeError as error:
            self._emit_event("on_error", self, error)
            if self.logger.entries and error.step_index is None:
                error.step_index = self.logger.entries[-1].step_index
            raise
        except Exception as exc:
            self._emit_event("on_error", self, exc)
            # Surface Python-level faults (e.g. nesting too deep for the
            # recursion limit) as interpreter errors with a location.
            loc = None
            if self.logger.entries:
                loc = self.logger.entries[-1].source_location
            wrapped = MiniPyRuntimeError(f"Internal interpreter error: {exc}", location=loc, rule="internal")
            if self.logger.entries:
                wrapped.step_index = self.logger.entries[-1].step_index
            raise wrapped from exc
        else:
            self._emit_event("program_end", self)
            self.call_stack.pop()

    # ---- dispatch ----

    def _dispatch(self, line: LogicalLine) -> None:
        entry = self.handlers.get(line.kind) if line.kind is not None else None
        rule = entry[0] if entry is not None else "NOOP"
        self._log_step(rule=rule, line=line)
        self._emit_event("before_line", self, line)
        if entry is None:
            self.pc += 1
        else:
            entry[1](line)
        self._emit_event("after_line", self, line)

    def _execute_assignment(self, line: LogicalLine) -> None:
        tokens = line.tokens
        if len(tokens) < 3 or tokens[1].type != "EQ":
            self._skip_malformed(line, "ASSIGN")
            return
        value = self._evaluate(tokens[2:], line)
        self.variables.set(tokens[0].value, value)
        self.pc += 1

    def _execute_print(self, line: LogicalLine) -> None:
        tokens = line.tokens
        if len(tokens) < 2:
            self._skip_malformed(line, "PRINT")
            return
        # print(expr) and print expr are the same statement.
        start, end = 1, len(tokens)
        if tokens[start].type == "LPAREN":
            start += 1
        if tokens[end - 1].type == "RPAREN":
            end -= 1
        if start >= end:
            self._skip_malformed(line, "PRINT")
            return
        value = self._evaluate(tokens[start:end], line)
        self._emit_output(value, line)
        self.pc += 1

    def _execute_if(self, line: LogicalLine) -> None:
        colon = self._find_colon(line.tokens)
        if colon < 0:
            self._skip_malformed(line, "IF")
            return
        condition = self._evaluate(line.tokens[1:colon], line)
        base_indent = line.indent
        self.pc += 1

        if condition != 0:
            self._execute_block(base_indent, "if", line)
            if_ran = True
        else:
            self._skip_block(base_indent)
            if_ran = False

        if self.pc >= len(self.program):
            return
        else_line = self.program[self.pc]
        if else_line.kind == "ELSE" and else_line.indent == base_indent:
            self._log_step(rule="ELSE", line=else_line)
            self._emit_event("before_line", self, else_line)
            self.pc += 1
            if if_ran:
                self._skip_block(else_line.indent)
            else:
                self._execute_block(else_line.indent, "else", else_line)
            self._emit_event("after_line", self, else_line)

    def _execute_stray_else(self, line: LogicalLine) -> None:
        # An else with no paired if is consumed along with its block.
        self.pc += 1
        self._skip_block(line.indent)

    def _execute_while(self, line: LogicalLine) -> None:
        colon = self._find_colon(line.tokens)
        if colon < 0:
            self._skip_malformed(line, "WHILE")
            return
        start = self.pc
        base_indent = line.indent
        condition = self._evaluate(line.tokens[1:colon], line)
        self.pc += 1

        while condition != 0:
            self._execute_block(base_indent, "while", line)
            self.pc = start
            header = self.program[start]
            self._log_step(rule="WHILE_CHECK", line=header)
            condition = self._evaluate(header.tokens[1:self._find_colon(header.tokens)], header)
            self._emit_event("while_check", self, header, condition)
            self.pc += 1

        self._skip_block(base_indent)

    def _execute_block(self, base_indent: int, frame_name: str, owner: LogicalLine) -> None:
        frame = self._new_frame(frame_name, owner.location, base_indent)
        self.call_stack.append(frame)
        program = self.program
        dispatch = self._dispatch
        while self.pc < len(program):
            line = program[self.pc]
            if line.indent <= base_indent:
                break
            dispatch(line)
        self.call_stack.pop()
        self.logger.forget_frame(frame.frame_id)

    def _skip_block(self, base_indent: int) -> None:
        program = self.program
        while self.pc < len(program) and program[self.pc].indent > base_indent:
            self.pc += 1

    def _skip_malformed(self, line: LogicalLine, rule: str) -> None:
        # Malformed statements are no-ops; only observers get to see them.
        self._emit_event("skip", self, line, rule)
        self.pc += 1

    # ---- helpers ----

    @staticmethod
    def _find_colon(tokens: Sequence[Token]) -> int:
        for index, token in enumerate(tokens):
            if token.type == "COLON":
                return index
        return -1

    def _evaluate(self, tokens: Sequence[Token], line: LogicalLine) -> int:
        return self.evaluator.evaluate(tokens, self.variables.get, line.location)

    def _emit_output(self, value: int, line: LogicalLine) -> None:
        self.output_sink(str(value))
        self.io_log.append({"event": "PRINT", "value": value, "line": line.location.line})
        self._emit_event("print", self, value)

    def _new_frame(self, name: str, location: Optional[SourceLocation], base_indent: Optional[int] = None) -> Frame:
        frame_id = f"f_{self.frame_counter:04d}"
        self.frame_counter += 1
        return Frame(name=name, frame_id=frame_id, location=location, base_indent=base_indent)

    def _emit_event(self, event: str, *args: Any) -> None:
        try:
            self.hook_registry.emit(event, *args)
        except MiniPyRuntimeError:
            raise
        except Exception as exc:
            loc = None
            if self.logger.entries:
                loc = self.logger.entries[-1].source_location
            raise MiniPyRuntimeError(
                f"Extension hook '{event}' failed: {exc}",
                location=loc,
                rule="EXT",
            ) from exc

    def _log_step(self, *, rule: str, line: LogicalLine) -> None:
        frame = self.call_stack[-1] if self.call_stack else None
        env_snapshot = self.variables.snapshot() if self.verbose else None
        entry = self.logger.record(rule=rule, frame=frame, pc=self.pc, line=line, env_snapshot=env_snapshot)

        if self.max_steps is not None and entry.step_index > self.max_steps:
            raise StepLimitError(
                f"Step limit of {self.max_steps} exceeded",
                location=line.location,
                rule="STEPS",
            )

        if not self.hook_registry.step_rules:
            return
        ctx = StepContext(step_index=entry.step_index, rule=rule, pc=self.pc, line=line, depth=len(self.call_stack) - 1)
        try:
            self.hook_registry.run_step_rules(self, ctx)
        except MiniPyRuntimeError:
            raise
        except Exception as exc:
            raise MiniPyRuntimeError(
                f"Extension step rule failed: {exc}",
                location=line.location,
                rule="EXT",
            ) from exc


@dataclass
class TracebackFrame:
    name: str
    base_indent: Optional[int]
    location: Optional[SourceLocation]
    state_entry: Optional[StateEntry]


class TracebackFormatter:
    """Renders the open blocks innermost-last, each at the last line it ran."""

    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def build_frames(self) -> List[TracebackFrame]:
        logger = self.interpreter.logger
        frames: List[TracebackFrame] = []
        for frame in self.interpreter.call_stack:
            entry = logger.last_entry_for_frame(frame.frame_id)
            frames.append(
                TracebackFrame(
                    name=frame.name,
                    base_indent=frame.base_indent,
                    location=entry.source_location if entry else frame.location,
                    state_entry=entry,
                )
            )
        return frames

    @staticmethod
    def _block_label(frame: TracebackFrame) -> str:
        if frame.base_indent is None:
            return frame.name
        return f"{frame.name} (block indent > {frame.base_indent})"

    def format_text(self, error: MiniPyRuntimeError, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        for frame in self.build_frames():
            label = self._block_label(frame)
            if frame.location:
                lines.append(f"  File \"{frame.location.file}\", line {frame.location.line}, in {label}")
                if frame.location.statement:
                    lines.append(f"    {frame.location.statement}")
            else:
                lines.append(f"  <unknown location> in {label}")
            entry = frame.state_entry
            if entry:
                lines.append(f"    Step {entry.step_index} ({entry.state_id}): {entry.rule} at pc {entry.pc}, indent {entry.indent}")
                if verbose and entry.env_snapshot is not None:
                    snapshot = ", ".join(f"{k}={v}" for k, v in entry.env_snapshot.items())
                    lines.append(f"    Variables: {snapshot}")
        rule = error.rule or "runtime"
        lines.append(f"{error.__class__.__name__}: {error.message} (rule: {rule})")
        return "\n".join(lines)

    def to_json(self, error: MiniPyRuntimeError) -> str:
        frames_json: List[Dict[str, Any]] = []
        for index, frame in enumerate(self.build_frames()):
            item: Dict[str, Any] = {"frame_index": index, "name": frame.name, "base_indent": frame.base_indent}
            if frame.location:
                item["source_location"] = {
                    "file": frame.location.file,
                    "line": frame.location.line,
                    "statement": frame.location.statement,
                }
            entry = frame.state_entry
            if entry:
                item["step"] = {
                    "index": entry.step_index,
                    "state_id": entry.state_id,
                    "rule": entry.rule,
                    "pc": entry.pc,
                    "indent": entry.indent,
                }
                if entry.env_snapshot is not None:
                    item["variables"] = entry.env_snapshot
            frames_json.append(item)
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "rule": error.rule,
                "failing_step_index": error.step_index,
            },
            "traceback": frames_json,
        }
        return json.dumps(data, indent=2)
