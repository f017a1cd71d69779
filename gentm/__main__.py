#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
gentm/__main__.py
=================

Command-line entry point.

Usage
-----
    gentm [-v] <command> [options] [FILE]

FILE defaults to ``-`` (standard input).

Commands
--------
    generate      Print the machine in turingmachinesimulator.com format
    interactive   Step through the machine in a debugger
    run           Run the machine on a tape and report accept/reject
    check         Parse and specialise only; report statistics and warnings

Pipeline
--------
    program text
        │
        ▼
    ┌──────────┐
    │  Parser   │   parsimonious PEG → Program
    └────┬─────┘
         ▼
    ┌──────────┐
    │ Expander  │   generic states → SpecializedTable
    └────┬─────┘
         ├──────────────► codegen   (generate)
         └──────────────► runtime / debugger   (run, interactive)

Exit codes
----------
    0   Success (accepted, generated, or valid).
    1   The program has a syntax or resolution error.
    2   Infrastructure failure (unreadable file, bad arguments).
    3   The machine rejected its input (stuck or step limit).
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Sequence, TextIO, Tuple

from gentm import __version__
from gentm.codegen import NAMING_SCHEMES, GeneratorConfig, generate
from gentm.debugger import Debugger, DebuggerShell
from gentm.errors import GentmError, RuntimeError as MachineRuntimeError
from gentm.expander import SpecializedTable, expand
from gentm.parser import parse
from gentm.runtime import Machine, RuntimeConfig, Tape

_log = logging.getLogger("gentm")

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2
EXIT_REJECTED: int = 3


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``gentm`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("gentm")
    root.setLevel(level)
    # Replace rather than reuse: sys.stderr may have been swapped since.
    for stale in [h for h in root.handlers if getattr(h, "_gentm_cli", False)]:
        root.removeHandler(stale)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    handler._gentm_cli = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def _read_source(raw: str) -> Tuple[str, str]:
    """Return ``(text, filename)``; ``-`` reads standard input."""
    if raw == "-":
        return sys.stdin.read(), "<stdin>"
    p = Path(raw).expanduser()
    if not p.is_file():
        _log.error("program file not found: %s", p)
        raise SystemExit(EXIT_INFRA)
    try:
        return p.read_text(encoding="utf-8"), str(raw)
    except UnicodeDecodeError as exc:
        _log.error("program file is not valid UTF-8: %s (%s)", p, exc)
        raise SystemExit(EXIT_INFRA)


def _open_output(dest: Optional[str]) -> TextIO:
    """*dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path."""
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _report(exc: GentmError, source: str) -> None:
    sys.stderr.write(exc.to_gcc_format(source) + "\n")


# ===========================================================================
# Pipeline
# ===========================================================================

class Pipeline:
    """Parse and specialise a program, timing each phase."""

    def __init__(self, source: str, filename: str) -> None:
        self.source = source
        self.filename = filename
        self.timings: Dict[str, float] = {}

    @contextmanager
    def _timed(self, phase: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            self.timings[phase] = elapsed
            _log.debug("[%s] completed in %.3fs", phase, elapsed)

    def build(self) -> SpecializedTable:
        with self._timed("parse"):
            program = parse(self.source, filename=self.filename)
        with self._timed("expand"):
            return expand(program)


def _load_table(args: argparse.Namespace) -> Tuple[Optional[SpecializedTable], str]:
    source, filename = _read_source(args.file)
    try:
        return Pipeline(source, filename).build(), source
    except GentmError as exc:
        _report(exc, source)
        return None, source


def _runtime_config(args: argparse.Namespace) -> RuntimeConfig:
    config = RuntimeConfig(record_trace=getattr(args, "trace", False))
    if args.max_steps is not None:
        config.max_steps = args.max_steps
    return config


# ===========================================================================
# Commands
# ===========================================================================

def cmd_generate(args: argparse.Namespace) -> int:
    """Write the specialised machine in simulator format."""
    table, source = _load_table(args)
    if table is None:
        return EXIT_ERROR
    config = GeneratorConfig(naming=args.naming)
    if args.name:
        config.name = args.name
    try:
        text = generate(table, config)
    except GentmError as exc:
        _report(exc, source)
        return EXIT_ERROR
    out = _open_output(args.output)
    try:
        out.write(text)
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


def cmd_run(args: argparse.Namespace) -> int:
    """Run to completion and report the verdict."""
    table, source = _load_table(args)
    if table is None:
        return EXIT_ERROR
    machine = Machine(table, Tape.from_text(args.tape), _runtime_config(args))
    try:
        result = machine.run()
    except MachineRuntimeError as exc:
        if args.trace:
            for record in machine.trace:
                sys.stdout.write(f"{record}\n")
        sys.stderr.write(f"{exc}\n")
        return EXIT_REJECTED
    if args.trace:
        for record in result.trace:
            sys.stdout.write(f"{record}\n")
    sys.stdout.write(f"accepted after {result.steps} step(s)\n")
    sys.stdout.write(f"tape: {result.tape.render()}\n")
    return EXIT_OK


def cmd_interactive(args: argparse.Namespace) -> int:
    """Start the debugger shell."""
    table, _ = _load_table(args)
    if table is None:
        return EXIT_ERROR
    tape = args.tape
    if tape is None:
        try:
            tape = input("Input tape (space or _ for blank): ")
        except EOFError:
            return EXIT_OK
    debugger = Debugger(table, tape, _runtime_config(args))
    DebuggerShell(debugger).cmdloop()
    return EXIT_OK


def cmd_check(args: argparse.Namespace) -> int:
    """Validate only."""
    table, _ = _load_table(args)
    if table is None:
        return EXIT_ERROR
    definitions = len(table.program.definitions) if table.program else 0
    transitions = sum(1 for _ in table.transitions())
    sys.stdout.write(
        f"{args.file}: {definitions} definition(s), {len(table)} specialised "
        f"state(s), {transitions} transition(s)\n"
    )
    for definition in table.unreachable:
        sys.stdout.write(
            f"{definition.loc}: warning: unreachable state '{definition.name}'\n"
        )
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the gentm CLI."""
    parser = argparse.ArgumentParser(
        prog="gentm",
        description="Compile, run and debug Turing machines with generic states.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              %(prog)s generate machine.tm -o machine.txt
              %(prog)s run machine.tm --tape 110
              %(prog)s interactive machine.tm --tape 110
              %(prog)s check machine.tm
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    def _add_file_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "file",
            nargs="?",
            default="-",
            help="Program file (default: '-' for stdin).",
        )

    def _add_runtime_args(p: argparse.ArgumentParser) -> None:
        g = p.add_argument_group("runtime tuning")
        g.add_argument(
            "--tape",
            default=None,
            metavar="TEXT",
            help="Initial tape; spaces and _ are blank cells.",
        )
        g.add_argument(
            "--max-steps",
            type=int,
            default=None,
            metavar="N",
            help="Step cap (default: from RuntimeConfig).",
        )

    # --- generate ---------------------------------------------------------
    p_gen = subparsers.add_parser(
        "generate",
        help="Emit turingmachinesimulator.com input",
    )
    _add_file_arg(p_gen)
    p_gen.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Output file ("-" or omit for stdout).',
    )
    p_gen.add_argument(
        "--naming",
        choices=NAMING_SCHEMES,
        default="escape",
        help="How specialised states are named (default: escape).",
    )
    p_gen.add_argument(
        "--name",
        default=None,
        help="Machine name written in the header.",
    )
    p_gen.set_defaults(func=cmd_generate)

    # --- interactive ------------------------------------------------------
    p_int = subparsers.add_parser(
        "interactive",
        help="Run the machine in an interactive debugger",
    )
    _add_file_arg(p_int)
    _add_runtime_args(p_int)
    p_int.set_defaults(func=cmd_interactive)

    # --- run --------------------------------------------------------------
    p_run = subparsers.add_parser(
        "run",
        help="Run the machine on a tape",
    )
    _add_file_arg(p_run)
    _add_runtime_args(p_run)
    p_run.add_argument(
        "--trace",
        action="store_true",
        default=False,
        help="Print every applied transition.",
    )
    p_run.set_defaults(func=cmd_run, tape="")

    # --- check ------------------------------------------------------------
    p_check = subparsers.add_parser(
        "check",
        help="Parse and specialise without running",
    )
    _add_file_arg(p_check)
    p_check.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the gentm CLI.

    Returns
    -------
    int
        Exit code (see module docstring).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except OSError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA


if __name__ == "__main__":
    sys.exit(main())
