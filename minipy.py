"""MiniPy entry point and REPL wiring."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from demos import DEMOS, Demo, demo_names, get_demo
from extensions import MiniPyExtensionError, RuntimeServices, build_default_services, load_runtime_services
from interpreter import Environment, Interpreter, MiniPyParseError, MiniPyRuntimeError, TracebackFormatter


BLOCK_KEYWORDS = ("if", "while", "else")


def _report_runtime_error(interpreter: Interpreter, error: MiniPyRuntimeError, *, verbose: bool, as_json: bool) -> None:
    formatter = TracebackFormatter(interpreter)
    print(formatter.format_text(error, verbose=verbose), file=sys.stderr)
    if as_json:
        print(formatter.to_json(error), file=sys.stderr)


def _starts_block(stripped: str) -> bool:
    first = stripped.split(None, 1)[0] if stripped else ""
    return first.rstrip(":") in BLOCK_KEYWORDS or stripped.endswith(":")


def run_repl(verbose: bool, services: Optional[RuntimeServices] = None, max_steps: Optional[int] = None) -> int:
    print("\x1b[38;2;153;221;255mMiniPy\033[0m REPL. Enter statements, blank line to run a block.")
    # Variables outlive each chunk so later input sees earlier assignments.
    variables = Environment()
    buffer: List[str] = []

    def _run_chunk(source_text: str) -> None:
        interpreter = Interpreter(
            source=source_text,
            filename="<stdin>",
            verbose=verbose,
            services=services,
            variables=variables,
            max_steps=max_steps,
        )
        try:
            interpreter.run()
        except MiniPyParseError as error:
            print(f"ParseError: {error}", file=sys.stderr)
        except MiniPyRuntimeError as error:
            _report_runtime_error(interpreter, error, verbose=verbose, as_json=False)

    while True:
        prompt = "\x1b[38;2;153;221;255m>>>\033[0m " if not buffer else "\x1b[38;2;153;221;255m..>\033[0m "
        try:
            line = input(prompt)
        except EOFError:
            print()
            break

        stripped = line.strip()

        if not buffer and stripped != "" and not _starts_block(stripped):
            _run_chunk(line + "\n")
            continue

        if stripped == "" and buffer:
            source_text = "\n".join(buffer) + "\n"
            buffer.clear()
            _run_chunk(source_text)
            continue

        if stripped != "" or buffer:
            buffer.append(line)

    return 0


def _run_demo(demo: Demo, *, verbose: bool, services: RuntimeServices, max_steps: Optional[int]) -> int:
    print(f"----- {demo.title} -----")
    interpreter = Interpreter(
        source=demo.source,
        filename=f"<demo:{demo.name}>",
        verbose=verbose,
        services=services,
        max_steps=max_steps,
    )
    try:
        interpreter.run()
    except MiniPyRuntimeError as error:
        _report_runtime_error(interpreter, error, verbose=verbose, as_json=False)
        return 1
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="MiniPy line interpreter")
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Emit variable snapshots in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    parser.add_argument("--ext", dest="extensions", action="append", default=[], metavar="PATH", help="Load an extension module (repeatable)")
    parser.add_argument("--max-steps", type=int, default=None, metavar="N", help="Abort after N executed steps")
    parser.add_argument("--demo", metavar="NAME", help="Run a bundled demo program ('all' runs every demo)")
    parser.add_argument("--list-demos", action="store_true", help="List bundled demo programs")
    args = parser.parse_args(argv)

    if args.list_demos:
        for name in demo_names():
            print(f"{name:<14} {DEMOS[name].title}")
        return 0

    try:
        services = load_runtime_services(args.extensions) if args.extensions else build_default_services()
    except MiniPyExtensionError as error:
        print(f"ExtensionError: {error}", file=sys.stderr)
        return 1

    if args.demo is not None:
        try:
            selected = [DEMOS[name] for name in demo_names()] if args.demo == "all" else [get_demo(args.demo)]
        except KeyError as exc:
            print(exc.args[0], file=sys.stderr)
            return 1
        status = 0
        for demo in selected:
            status = max(status, _run_demo(demo, verbose=args.verbose, services=services, max_steps=args.max_steps))
        return status

    if args.program is None:
        if args.source_mode:
            print("-source requires a program string", file=sys.stderr)
            return 1
        return run_repl(verbose=args.verbose, services=services, max_steps=args.max_steps)

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    interpreter = Interpreter(
        source=source_text,
        filename=filename,
        verbose=args.verbose,
        services=services,
        max_steps=args.max_steps,
    )
    try:
        interpreter.run()
    except MiniPyParseError as error:
        print(f"ParseError: {error}", file=sys.stderr)
        return 1
    except MiniPyRuntimeError as error:
        _report_runtime_error(interpreter, error, verbose=args.verbose, as_json=args.traceback_json)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(run_cli())
