# gentm/ast_nodes.py
"""
Syntax tree for generic Turing machine programs.

Nodes are immutable once the parser hands them out. References are a
small recursive variant: a ``StateRef`` names a state and carries
argument references, a ``Placeholder`` stands for one generic parameter
of the enclosing definition.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple, Union


FINISH = "finish"


# ── Source Location ──────────────────────────────────────────────

@dataclass(frozen=True)
class Loc:
    """Source location for diagnostics."""
    file: str = "<input>"
    line: int = 0
    col: int = 0

    def __str__(self):
        return f"{self.file}:{self.line}:{self.col}"


# ── Symbols and Moves ────────────────────────────────────────────

# A tape symbol is a single character; the blank cell is ``None``.
Symbol = Optional[str]
BLANK: Symbol = None


def symbol_text(symbol: Symbol) -> str:
    """Source spelling of a symbol: ``_`` for blank, digits bare, others quoted."""
    if symbol is None:
        return "_"
    if symbol.isdigit():
        return symbol
    return f"'{symbol}'"


class Move(Enum):
    PREV = -1
    CURRENT = 0
    NEXT = 1

    @property
    def keyword(self) -> str:
        return self.name.lower()

    @property
    def offset(self) -> int:
        return self.value

    @classmethod
    def from_keyword(cls, word: str) -> "Move":
        return cls[word.upper()]


# ── References ───────────────────────────────────────────────────

@dataclass(frozen=True)
class Placeholder:
    name: str
    loc: Loc = field(default_factory=Loc, compare=False)

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class StateRef:
    name: str
    args: Tuple["RefExpr", ...] = ()
    loc: Loc = field(default_factory=Loc, compare=False)

    def __str__(self):
        if not self.args:
            return self.name
        return f"{self.name}<{', '.join(str(a) for a in self.args)}>"

    def placeholders(self) -> Iterator[Placeholder]:
        for arg in self.args:
            if isinstance(arg, Placeholder):
                yield arg
            else:
                yield from arg.placeholders()


RefExpr = Union[StateRef, Placeholder]


# ── Definitions ──────────────────────────────────────────────────

@dataclass(frozen=True)
class TransitionRule:
    read: Symbol
    write: Symbol
    target: RefExpr
    move: Move
    loc: Loc = field(default_factory=Loc, compare=False)


@dataclass(frozen=True)
class StateDefinition:
    """All rules for one state name, merged across the lines that define it."""
    name: str
    params: Tuple[str, ...]
    rules: Tuple[TransitionRule, ...]
    loc: Loc = field(default_factory=Loc, compare=False)

    @property
    def is_generic(self) -> bool:
        return bool(self.params)

    @property
    def arity(self) -> int:
        return len(self.params)

    def rule_for(self, symbol: Symbol) -> Optional[TransitionRule]:
        for rule in self.rules:
            if rule.read == symbol:
                return rule
        return None


@dataclass(frozen=True)
class StartDirective:
    target: StateRef
    loc: Loc = field(default_factory=Loc, compare=False)


@dataclass(frozen=True)
class Program:
    definitions: Tuple[StateDefinition, ...]
    start: StartDirective
    source: str = field(default="", compare=False, repr=False)
    filename: str = "<input>"

    def lookup(self, name: str) -> Optional[StateDefinition]:
        for definition in self.definitions:
            if definition.name == name:
                return definition
        return None

    def by_name(self) -> Dict[str, StateDefinition]:
        return {d.name: d for d in self.definitions}

    def source_line(self, line: int) -> str:
        lines = self.source.splitlines()
        if 1 <= line <= len(lines):
            return lines[line - 1]
        return ""
