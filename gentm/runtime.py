# gentm/runtime.py
"""
Execution engine for specialised machines.

A ``Machine`` owns one ``MachineState`` (current key, tape, head, step
count) and advances it against a ``SpecializedTable``. ``step()`` applies
exactly one transition; ``run()`` steps until the machine enters
``finish`` or fails. Failures raise ``gentm.errors.RuntimeError``
subclasses; the table itself is never modified, so a failed run can be
``reset()`` and tried again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from gentm.ast_nodes import BLANK, Symbol, symbol_text
from gentm.errors import MachineHaltedError, StepLimitExceededError, StuckError
from gentm.expander import InstanceKey, SpecializedTable, Transition

logger = logging.getLogger(__name__)

# Characters that denote an empty cell when reading tape text.
BLANK_CHARS = frozenset(" _")


# ===================================================================== #
#  Configuration                                                         #
# ===================================================================== #

@dataclass
class RuntimeConfig:
    """Tuning knobs for machine execution."""
    max_steps: int = 100_000
    record_trace: bool = False
    window: int = 5

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.max_steps <= 0:
            warnings.append("max_steps must be positive")
        if self.window < 0:
            warnings.append("window must be non-negative")
        return warnings


# ===================================================================== #
#  Tape                                                                  #
# ===================================================================== #

class Tape:
    """Sparse tape: position → symbol, every unset position reads blank.

    Writing the blank removes the cell, so ``cells`` only ever holds
    non-blank symbols.
    """

    def __init__(self, cells: Optional[Dict[int, Symbol]] = None) -> None:
        self._cells: Dict[int, str] = {
            pos: sym for pos, sym in (cells or {}).items() if sym is not BLANK
        }

    @classmethod
    def from_text(cls, text: str, offset: int = 0) -> "Tape":
        """Character *i* of *text* goes to position ``offset + i``; spaces and
        underscores are blank."""
        return cls({
            offset + i: ch for i, ch in enumerate(text) if ch not in BLANK_CHARS
        })

    @property
    def cells(self) -> Dict[int, str]:
        return dict(self._cells)

    def read(self, pos: int) -> Symbol:
        return self._cells.get(pos, BLANK)

    def write(self, pos: int, symbol: Symbol) -> None:
        if symbol is BLANK:
            self._cells.pop(pos, None)
        else:
            self._cells[pos] = symbol

    def copy(self) -> "Tape":
        return Tape(self._cells)

    def bounds(self) -> Optional[Tuple[int, int]]:
        """Lowest and highest non-blank positions, or ``None`` for an empty tape."""
        if not self._cells:
            return None
        return min(self._cells), max(self._cells)

    def window(self, center: int, radius: int) -> List[Symbol]:
        return [self.read(pos) for pos in range(center - radius, center + radius + 1)]

    def render(self, blank: str = "_") -> str:
        """Non-blank extent of the tape as text."""
        span = self.bounds()
        if span is None:
            return ""
        lo, hi = span
        return "".join(
            self._cells.get(pos, blank) for pos in range(lo, hi + 1)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tape):
            return NotImplemented
        return self._cells == other._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        return f"Tape({self._cells!r})"


def render_cells(symbols: Iterable[Symbol], blank: str = "_") -> str:
    return "".join(blank if sym is BLANK else sym for sym in symbols)


# ===================================================================== #
#  Machine state and results                                             #
# ===================================================================== #

@dataclass
class MachineState:
    key: InstanceKey
    tape: Tape
    head: int = 0
    steps: int = 0

    def copy(self) -> "MachineState":
        return MachineState(self.key, self.tape.copy(), self.head, self.steps)


@dataclass(frozen=True)
class StepRecord:
    """One applied transition."""
    step: int
    key: InstanceKey
    read: Symbol
    transition: Transition
    head_before: int
    head_after: int

    def __str__(self) -> str:
        t = self.transition
        return (
            f"{self.step:>6}  {self.key} {symbol_text(self.read)} -> "
            f"{symbol_text(t.write)}; {t.target} {t.move.keyword}"
        )


@dataclass
class RunResult:
    accepted: bool
    key: InstanceKey
    steps: int
    head: int
    tape: Tape
    trace: List[StepRecord] = field(default_factory=list)


# ===================================================================== #
#  Machine                                                               #
# ===================================================================== #

class Machine:
    """
    Executes a ``SpecializedTable`` against a tape.

    Usage::

        machine = Machine(table, Tape.from_text("110"))
        result = machine.run(max_steps=1_000)
        assert result.accepted
    """

    def __init__(
        self,
        table: SpecializedTable,
        tape: Optional[Tape] = None,
        config: Optional[RuntimeConfig] = None,
    ) -> None:
        self.table = table
        self.config = config or RuntimeConfig()
        for warning in self.config.validate():
            logger.warning("RuntimeConfig: %s", warning)
        self._initial_tape = tape.copy() if tape is not None else Tape()
        self.state = MachineState(self.table.start, self._initial_tape.copy())
        self.trace: List[StepRecord] = []

    def reset(self, tape: Optional[Tape] = None) -> None:
        """Return to the initial state, optionally with a new initial tape."""
        if tape is not None:
            self._initial_tape = tape.copy()
        self.state = MachineState(self.table.start, self._initial_tape.copy())
        self.trace = []

    @property
    def halted(self) -> bool:
        return self.state.key == self.table.finish

    @property
    def symbol(self) -> Symbol:
        return self.state.tape.read(self.state.head)

    def next_transition(self) -> Optional[Transition]:
        """The transition the next ``step()`` would apply, if any."""
        return self.table.lookup(self.state.key, self.symbol)

    def step(self) -> StepRecord:
        state = self.state
        if self.halted:
            raise MachineHaltedError(step=state.steps)
        read = state.tape.read(state.head)
        transition = self.table.lookup(state.key, read)
        if transition is None:
            raise StuckError(
                str(state.key), symbol_text(read), state.head, step=state.steps
            )

        head_before = state.head
        state.tape.write(state.head, transition.write)
        state.head += transition.move.offset
        record = StepRecord(
            step=state.steps + 1,
            key=state.key,
            read=read,
            transition=transition,
            head_before=head_before,
            head_after=state.head,
        )
        state.key = transition.target
        state.steps += 1
        if self.config.record_trace:
            self.trace.append(record)
        return record

    def run(self, max_steps: Optional[int] = None) -> RunResult:
        """Step until ``finish``.

        Raises ``StuckError`` when no rule applies and
        ``StepLimitExceededError`` once *max_steps* steps (default
        ``config.max_steps``) have been taken in this call without
        accepting.
        """
        limit = self.config.max_steps if max_steps is None else max_steps
        taken = 0
        while not self.halted:
            if taken >= limit:
                raise StepLimitExceededError(
                    limit, str(self.state.key), step=self.state.steps
                )
            self.step()
            taken += 1
        logger.info("accepted after %d step(s)", self.state.steps)
        return RunResult(
            accepted=True,
            key=self.state.key,
            steps=self.state.steps,
            head=self.state.head,
            tape=self.state.tape.copy(),
            trace=list(self.trace),
        )
