# gentm/codegen.py
"""
Export to the turingmachinesimulator.com transition format.

Output layout::

    name: generated turing machine
    init: right_Lback_Lfinish_R_R
    accept: finish

    right_Lback_Lfinish_R_R,0
    right_Lback_Lfinish_R_R,0,>

    ...

Each transition is two lines, ``<state>,<read>`` then
``<next-state>,<write>,<move>`` with moves ``<`` (prev), ``-`` (current)
and ``>`` (next); the blank cell is ``_``. Instance keys contain ``<``
and ``>``, which the format does not allow in state names, so keys are
renamed injectively (see ``escape_key``) or numbered in table order.

``load_generated`` reads the format back and simulates it independently
of ``gentm.runtime``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import StringIO
from typing import Dict, List, Optional, Set, Tuple

from gentm.ast_nodes import BLANK, Move, Symbol
from gentm.errors import CodeGenError
from gentm.expander import InstanceKey, SpecializedTable

logger = logging.getLogger(__name__)

MOVE_LETTERS: Dict[Move, str] = {
    Move.PREV: "<",
    Move.CURRENT: "-",
    Move.NEXT: ">",
}
LETTER_MOVES: Dict[str, Move] = {letter: move for move, letter in MOVE_LETTERS.items()}

NAMING_SCHEMES = ("escape", "ordinal")

# Characters with a meaning of their own in the transition lines. Whitespace
# symbols are refused as well: readers of the format strip it.
_FORBIDDEN_SYMBOLS = frozenset(",")


@dataclass
class GeneratorConfig:
    """Settings for ``generate``."""
    name: str = "generated turing machine"
    naming: str = "escape"

    def validate(self) -> List[str]:
        warnings: List[str] = []
        if self.naming not in NAMING_SCHEMES:
            warnings.append(
                f"unknown naming scheme {self.naming!r}, using 'escape'"
            )
        if "\n" in self.name:
            warnings.append("machine name contains a newline; it will be cut")
        return warnings


def escape_key(key: InstanceKey) -> str:
    """``_`` → ``__``, ``<`` → ``_L``, ``>`` → ``_R``.

    Every ``_`` in the output starts a two-character escape, so distinct
    keys always give distinct names.
    """
    return (
        str(key)
        .replace("_", "__")
        .replace("<", "_L")
        .replace(">", "_R")
    )


class CodeEmitter:
    """Line buffer for generated text."""

    def __init__(self) -> None:
        self._buffer = StringIO()

    def emit(self, line: str) -> None:
        self._buffer.write(line)
        self._buffer.write("\n")

    def emit_blank(self, count: int = 1) -> None:
        for _ in range(count):
            self._buffer.write("\n")

    def get_output(self) -> str:
        return self._buffer.getvalue()


class CodeGenerator:
    """Serialises a ``SpecializedTable``; performs no execution."""

    def __init__(self, config: Optional[GeneratorConfig] = None) -> None:
        self.config = config or GeneratorConfig()
        for warning in self.config.validate():
            logger.warning("GeneratorConfig: %s", warning)

    def state_names(self, table: SpecializedTable) -> Dict[InstanceKey, str]:
        keys = table.keys()
        if table.finish not in table:
            keys.append(table.finish)
        if self.config.naming == "ordinal":
            names = {key: f"q{i}" for i, key in enumerate(keys)}
            names[table.finish] = "finish"
            return names
        return {key: escape_key(key) for key in keys}

    def _symbol(self, symbol: Symbol, key: InstanceKey) -> str:
        if symbol is BLANK:
            return "_"
        if symbol in _FORBIDDEN_SYMBOLS or symbol.isspace():
            raise CodeGenError(
                f"symbol {symbol!r} used by state '{key}' cannot be "
                f"written in the simulator format"
            )
        return symbol

    def generate(self, table: SpecializedTable) -> str:
        names = self.state_names(table)
        out = CodeEmitter()
        out.emit(f"name: {self.config.name.splitlines()[0] if self.config.name else ''}")
        out.emit(f"init: {names[table.start]}")
        out.emit(f"accept: {names[table.finish]}")
        count = 0
        for key, symbol, transition in table.transitions():
            out.emit_blank()
            out.emit(f"{names[key]},{self._symbol(symbol, key)}")
            out.emit(
                f"{names[transition.target]},"
                f"{self._symbol(transition.write, key)},"
                f"{MOVE_LETTERS[transition.move]}"
            )
            count += 1
        logger.info("generated %d transition(s) for %d state(s)", count, len(names))
        return out.get_output()


def generate(table: SpecializedTable, config: Optional[GeneratorConfig] = None) -> str:
    """Render *table* in the simulator's transition format."""
    return CodeGenerator(config).generate(table)


# ═══════════════════════════════════════════════════════════════════
#  Reading the format back
# ═══════════════════════════════════════════════════════════════════

@dataclass
class SimulatorProgram:
    name: str
    init: str
    accept: Set[str]
    delta: Dict[Tuple[str, str], Tuple[str, str, Move]] = field(default_factory=dict)

    def simulate(self, tape_text: str, max_steps: int = 10_000) -> str:
        """Run with the simulator's semantics.

        Returns ``"accept"``, ``"reject"`` (no transition) or ``"timeout"``.
        """
        tape = {i: ch for i, ch in enumerate(tape_text) if ch not in " _"}
        state, head = self.init, 0
        for _ in range(max_steps):
            if state in self.accept:
                return "accept"
            entry = self.delta.get((state, tape.get(head, "_")))
            if entry is None:
                return "reject"
            state, write, move = entry
            if write == "_":
                tape.pop(head, None)
            else:
                tape[head] = write
            head += move.offset
        return "accept" if state in self.accept else "timeout"


def load_generated(text: str) -> SimulatorProgram:
    """Parse text produced by ``generate`` (or written by hand in the same format)."""
    header: Dict[str, str] = {}
    body: List[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("//"):
            continue
        prefix, sep, value = line.partition(":")
        if sep and prefix in ("name", "init", "accept") and not body:
            header[prefix] = value.strip()
        else:
            body.append(line)

    if "init" not in header:
        raise CodeGenError("generated text has no 'init:' line")
    if len(body) % 2:
        raise CodeGenError("transition lines must come in pairs")

    program = SimulatorProgram(
        name=header.get("name", ""),
        init=header["init"],
        accept={s.strip() for s in header.get("accept", "").split(",") if s.strip()},
    )
    for i in range(0, len(body), 2):
        match = body[i].split(",")
        action = body[i + 1].split(",")
        if len(match) != 2 or len(action) != 3 or action[2] not in LETTER_MOVES:
            raise CodeGenError(f"malformed transition: {body[i]!r} / {body[i + 1]!r}")
        program.delta[(match[0], match[1])] = (action[0], action[1], LETTER_MOVES[action[2]])
    return program
