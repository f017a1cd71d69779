# gentm/debugger.py
"""
Interactive debugger.

``Debugger`` is the synchronous core: it wraps a ``Machine`` and adds
breakpoints, stepping, continue-until and tape inspection. It does no I/O
and every call returns as soon as it is done.

Breakpoints name a *definition*, not an instance: ``break mark`` stops in
``mark<finish>`` and in ``mark<mark<finish>>`` alike. A numeric breakpoint
stops before applying a rule written on that source line.

``DebuggerShell`` is a ``cmd.Cmd`` front-end speaking the textual command
vocabulary (step / continue / break / clear / inspect / reset / quit).
"""

from __future__ import annotations

import cmd
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, TextIO, Tuple, Union

from gentm.ast_nodes import Symbol
from gentm.errors import (
    BreakpointError,
    GentmError,
    StepLimitExceededError,
    StuckError,
)
from gentm.expander import InstanceKey, SpecializedTable
from gentm.runtime import Machine, RuntimeConfig, StepRecord, Tape, render_cells

logger = logging.getLogger(__name__)


class Status(Enum):
    RUNNING = "running"
    BREAKPOINT = "breakpoint"
    ACCEPTED = "accepted"
    STUCK = "stuck"
    STEP_LIMIT = "step-limit"

    @property
    def finished(self) -> bool:
        return self in (Status.ACCEPTED, Status.STUCK, Status.STEP_LIMIT)


@dataclass(frozen=True)
class Breakpoint:
    id: int
    state: Optional[str] = None
    line: Optional[int] = None

    def __str__(self) -> str:
        if self.state is not None:
            return f"#{self.id} state {self.state}"
        return f"#{self.id} line {self.line}"


@dataclass(frozen=True)
class Outcome:
    """Result of one ``step()`` or ``continue_()`` call."""
    status: Status
    steps_taken: int = 0
    last: Optional[StepRecord] = None
    breakpoint: Optional[Breakpoint] = None
    error: Optional[GentmError] = None


@dataclass(frozen=True)
class Snapshot:
    key: InstanceKey
    head: int
    steps: int
    status: Status
    radius: int
    window: Tuple[Symbol, ...]
    rule_line: int = 0
    rule_source: str = ""

    def render(self) -> str:
        lines = [f"state {self.key}  step {self.steps}  head {self.head}"]
        if self.rule_line:
            lines.append(f"{self.rule_line:>5} | {self.rule_source.strip()}")
        lines.append(f"tape  {render_cells(self.window)}")
        lines.append(f"      {' ' * self.radius}^")
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════════
#  Core
# ═══════════════════════════════════════════════════════════════════

class Debugger:
    """Breakpoint-aware driver around a ``Machine``."""

    def __init__(
        self,
        table: SpecializedTable,
        tape_text: str = "",
        config: Optional[RuntimeConfig] = None,
    ) -> None:
        self.table = table
        self.config = config or RuntimeConfig()
        self.machine = Machine(table, Tape.from_text(tape_text), self.config)
        self.breakpoints: Dict[int, Breakpoint] = {}
        self._next_id = 1
        self.status = Status.RUNNING
        self.error: Optional[GentmError] = None
        self._sync_status()

    def _sync_status(self) -> None:
        if self.machine.halted:
            self.status = Status.ACCEPTED

    # ── Breakpoints ──────────────────────────────────────────────

    def _known_states(self) -> List[str]:
        if self.table.program is not None:
            return [d.name for d in self.table.program.definitions]
        return [key.name for key in self.table.keys()]

    def add_breakpoint(self, target: Union[str, int]) -> Breakpoint:
        """Break on every instance of definition *target*, or on source line *target*."""
        if isinstance(target, int):
            lines = {t.loc.line for _, _, t in self.table.transitions()}
            if target not in lines:
                raise BreakpointError(f"no specialised rule on line {target}")
            bp = Breakpoint(self._next_id, line=target)
        else:
            if target not in self._known_states():
                raise BreakpointError(f"no such state: '{target}'")
            bp = Breakpoint(self._next_id, state=target)
        self.breakpoints[bp.id] = bp
        self._next_id += 1
        logger.debug("added breakpoint %s", bp)
        return bp

    def clear_breakpoint(self, target: Union[None, int, str] = None) -> List[Breakpoint]:
        """Clear by id or state name; ``None`` clears everything."""
        if target is None:
            removed = list(self.breakpoints.values())
            self.breakpoints.clear()
            return removed
        if isinstance(target, int):
            bp = self.breakpoints.pop(target, None)
            if bp is None:
                raise BreakpointError(f"no breakpoint #{target}")
            return [bp]
        removed = [bp for bp in self.breakpoints.values() if bp.state == target]
        if not removed:
            raise BreakpointError(f"no breakpoint on state '{target}'")
        for bp in removed:
            del self.breakpoints[bp.id]
        return removed

    def _hit(self) -> Optional[Breakpoint]:
        key = self.machine.state.key
        upcoming = self.machine.next_transition()
        for bp in self.breakpoints.values():
            if bp.state is not None and bp.state == key.name:
                return bp
            if bp.line is not None and upcoming is not None and upcoming.loc.line == bp.line:
                return bp
        return None

    # ── Execution ────────────────────────────────────────────────

    def step(self) -> Outcome:
        return self._advance(1, stop_at_breakpoints=False)

    def continue_(self, max_steps: Optional[int] = None) -> Outcome:
        """Step at least once, then until a breakpoint, acceptance or failure."""
        limit = self.config.max_steps if max_steps is None else max_steps
        return self._advance(limit, stop_at_breakpoints=True)

    def _advance(self, limit: int, stop_at_breakpoints: bool) -> Outcome:
        if self.status.finished:
            return Outcome(self.status, error=self.error)
        taken = 0
        last: Optional[StepRecord] = None
        self.status = Status.RUNNING
        while taken < limit:
            try:
                last = self.machine.step()
            except StuckError as exc:
                self.status, self.error = Status.STUCK, exc
                return Outcome(self.status, taken, last, error=exc)
            taken += 1
            if self.machine.halted:
                self.status = Status.ACCEPTED
                return Outcome(self.status, taken, last)
            if stop_at_breakpoints:
                bp = self._hit()
                if bp is not None:
                    self.status = Status.BREAKPOINT
                    return Outcome(self.status, taken, last, breakpoint=bp)
        if stop_at_breakpoints:
            exc = StepLimitExceededError(
                limit, str(self.machine.state.key), step=self.machine.state.steps
            )
            self.status, self.error = Status.STEP_LIMIT, exc
            return Outcome(self.status, taken, last, error=exc)
        return Outcome(self.status, taken, last)

    def inspect(self, radius: Optional[int] = None) -> Snapshot:
        radius = self.config.window if radius is None else radius
        state = self.machine.state
        upcoming = self.machine.next_transition()
        rule_line = upcoming.loc.line if upcoming is not None else 0
        return Snapshot(
            key=state.key,
            head=state.head,
            steps=state.steps,
            status=self.status,
            radius=radius,
            window=tuple(state.tape.window(state.head, radius)),
            rule_line=rule_line,
            rule_source=self.table.source_line(upcoming.loc) if upcoming else "",
        )

    def reset(self, tape_text: Optional[str] = None) -> None:
        """Back to the initial state; breakpoints are kept."""
        tape = Tape.from_text(tape_text) if tape_text is not None else None
        self.machine.reset(tape)
        self.status = Status.RUNNING
        self.error = None
        self._sync_status()


# ═══════════════════════════════════════════════════════════════════
#  Command loop
# ═══════════════════════════════════════════════════════════════════

class DebuggerShell(cmd.Cmd):
    """Line-oriented front-end. An empty line repeats the previous command."""

    intro = (
        "Interactive turing machine debugger.\n"
        "Commands: step (s, next, n), continue (c, run), break (b) <state|line>,\n"
        "clear [id|state], breakpoints, inspect (i) [radius], tape <text>,\n"
        "reset, quit (q). Type 'help <command>' for details."
    )
    prompt = "(gentm) "

    def __init__(
        self,
        debugger: Debugger,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> None:
        super().__init__(stdin=stdin, stdout=stdout)
        if stdin is not None:
            self.use_rawinput = False
        self.debugger = debugger

    def _say(self, text: str) -> None:
        self.stdout.write(text + "\n")

    def _report(self, outcome: Outcome) -> None:
        if outcome.status is Status.ACCEPTED:
            self._say("accepted: machine has entered the finish state")
        elif outcome.status is Status.STUCK:
            self._say(outcome.error.message)
        elif outcome.status is Status.STEP_LIMIT:
            self._say(f"stopped: {outcome.error.message}")
        elif outcome.breakpoint is not None:
            self._say(f"breakpoint {outcome.breakpoint}")
        if outcome.status.finished and outcome.steps_taken == 0:
            self._say("session is over; use 'reset' to start again")
        self._say(self.debugger.inspect().render())

    def preloop(self) -> None:
        self._say(self.debugger.inspect().render())

    # ── Execution ────────────────────────────────────────────────

    def do_step(self, arg: str) -> None:
        """step: apply one transition."""
        self._report(self.debugger.step())

    do_s = do_step
    do_next = do_step
    do_n = do_step

    def do_continue(self, arg: str) -> None:
        """continue: run until a breakpoint, acceptance or failure."""
        self._report(self.debugger.continue_())

    do_c = do_continue
    do_run = do_continue

    def do_reset(self, arg: str) -> None:
        """reset: return to the initial tape and start state."""
        self.debugger.reset()
        self._say(self.debugger.inspect().render())

    def do_tape(self, arg: str) -> None:
        """tape <text>: load a new input tape and reset. Spaces and _ are blank."""
        self.debugger.reset(arg)
        self._say(self.debugger.inspect().render())

    # ── Breakpoints ──────────────────────────────────────────────

    def do_break(self, arg: str) -> None:
        """break <state|line>: stop in every instance of a state, or before a rule line."""
        target = arg.strip()
        if not target:
            self._say("usage: break <state|line>")
            return
        try:
            bp = self.debugger.add_breakpoint(int(target) if target.isdigit() else target)
        except BreakpointError as exc:
            self._say(f"error: {exc.message}")
            return
        self._say(f"breakpoint {bp} created")

    do_b = do_break

    def do_clear(self, arg: str) -> None:
        """clear [id|state]: remove one breakpoint, or all of them."""
        target = arg.strip()
        try:
            removed = self.debugger.clear_breakpoint(
                None if not target else int(target) if target.isdigit() else target
            )
        except BreakpointError as exc:
            self._say(f"error: {exc.message}")
            return
        self._say(f"removed {len(removed)} breakpoint(s)")

    def do_breakpoints(self, arg: str) -> None:
        """breakpoints: list breakpoints."""
        if not self.debugger.breakpoints:
            self._say("no breakpoints")
        for bp in self.debugger.breakpoints.values():
            self._say(str(bp))

    # ── Inspection ───────────────────────────────────────────────

    def do_inspect(self, arg: str) -> None:
        """inspect [radius]: show state, step count and the tape around the head."""
        radius = int(arg) if arg.strip().isdigit() else None
        self._say(self.debugger.inspect(radius).render())

    do_i = do_inspect

    # ── Leaving ──────────────────────────────────────────────────

    def do_quit(self, arg: str) -> bool:
        """quit: leave the debugger."""
        return True

    do_q = do_quit

    def do_EOF(self, arg: str) -> bool:
        self._say("")
        return True

    def default(self, line: str) -> None:
        self._say(f"unknown command: {line.split()[0]}")
