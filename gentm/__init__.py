"""gentm: generic Turing machine compiler, interpreter and debugger.

Programs describe Turing machines whose states may be *generic*: a state
definition can take other states as parameters and is specialised once per
distinct argument list before anything runs.

Submodules
----------
ast_nodes
    Immutable syntax tree: symbols, moves, references, rules, definitions.
grammar
    parsimonious PEG grammar for the source language.
parser
    Parse tree → ``Program``, with the line-level validation rules.
expander
    Monomorphisation: ``Program`` → ``SpecializedTable`` keyed by
    ``InstanceKey``.
runtime
    ``Tape``, ``Machine`` and ``RuntimeConfig``: executing a table.
debugger
    Breakpoint-aware stepping core plus a ``cmd.Cmd`` front-end.
codegen
    Export to the turingmachinesimulator.com transition format.
errors
    Hierarchical exception classes with ``GTM-XXXX`` codes.

Usage
-----
Command-line::

    gentm generate machine.tm
    gentm run machine.tm --tape 110
    gentm interactive machine.tm

Library::

    from gentm import parse, expand, Machine, Tape

    table = expand(parse(source))
    result = Machine(table, Tape.from_text("110")).run()
"""

from __future__ import annotations

__version__ = "0.2.0"

from gentm.ast_nodes import Move, Program
from gentm.codegen import generate
from gentm.expander import InstanceKey, SpecializedTable, expand
from gentm.parser import parse, parse_file
from gentm.runtime import Machine, RuntimeConfig, Tape

__all__ = [
    "__version__",
    "InstanceKey",
    "Machine",
    "Move",
    "Program",
    "RuntimeConfig",
    "SpecializedTable",
    "Tape",
    "expand",
    "generate",
    "parse",
    "parse_file",
]
