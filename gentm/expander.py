# gentm/expander.py
"""
Monomorphisation: ``Program`` → ``SpecializedTable``.

Every generic reference reachable from ``start`` is specialised into a
concrete state identified by an ``InstanceKey``: the definition name plus
the fully-resolved keys of its arguments. Specialisation is a work-list
pass seeded with the start reference; a key is built once and every later
reference to it (including a state looping back to itself) reuses it.

Before the work-list runs, the definitions reachable from ``start`` are
checked for *expansive* instantiation cycles, e.g.::

    r<x> 0 = 0; r<r<x>> next

where each instance would demand a strictly larger one. Those raise
``InstantiationCycleError`` instead of expanding forever. Finite nesting
such as ``start = r<r<r<f>>>`` shrinking one layer per step is fine.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterator, List, Optional, Tuple

from gentm.ast_nodes import (
    FINISH,
    Loc,
    Move,
    Placeholder,
    Program,
    RefExpr,
    StateDefinition,
    StateRef,
    Symbol,
)
from gentm.errors import (
    ArityMismatchError,
    InstantiationCycleError,
    SourceSpan,
    UndefinedStateError,
)

logger = logging.getLogger(__name__)


# ── Keys and tables ──────────────────────────────────────────────

@dataclass(frozen=True)
class InstanceKey:
    """Identity of one concrete state.

    Equality is structural. ``name`` is the originating definition, kept
    apart from the argument encoding so callers never parse ``str(key)``.
    """
    name: str
    args: Tuple["InstanceKey", ...] = ()

    def __str__(self) -> str:
        return self.name + "".join(f"<{arg}>" for arg in self.args)

    @property
    def origin(self) -> str:
        return self.name

    @property
    def depth(self) -> int:
        return 1 + max((arg.depth for arg in self.args), default=0)


FINISH_KEY = InstanceKey(FINISH)


@dataclass(frozen=True)
class Transition:
    write: Symbol
    target: InstanceKey
    move: Move
    loc: Loc = field(default_factory=Loc, compare=False)


@dataclass
class SpecializedTable:
    """Flat transition table produced by ``expand``.

    ``rows`` preserves the order in which keys were first reached, so
    anything iterating it (code generation in particular) is deterministic.
    """
    start: InstanceKey
    rows: Dict[InstanceKey, Dict[Symbol, Transition]]
    finish: InstanceKey = FINISH_KEY
    unreachable: Tuple[StateDefinition, ...] = ()
    program: Optional[Program] = field(default=None, compare=False, repr=False)

    def __len__(self) -> int:
        return len(self.rows)

    def __contains__(self, key: object) -> bool:
        return key in self.rows

    def keys(self) -> List[InstanceKey]:
        return list(self.rows)

    def row(self, key: InstanceKey) -> Dict[Symbol, Transition]:
        return self.rows.get(key, {})

    def lookup(self, key: InstanceKey, symbol: Symbol) -> Optional[Transition]:
        return self.rows.get(key, {}).get(symbol)

    def transitions(self) -> Iterator[Tuple[InstanceKey, Symbol, Transition]]:
        for key, row in self.rows.items():
            for symbol, transition in row.items():
                yield key, symbol, transition

    def instances_of(self, name: str) -> List[InstanceKey]:
        return [key for key in self.rows if key.name == name]

    def source_line(self, loc: Loc) -> str:
        if self.program is None:
            return ""
        return self.program.source_line(loc.line)


# ── Static expansion check ───────────────────────────────────────

@dataclass(frozen=True)
class _Edge:
    """Parameter ``source`` of one definition flows into parameter ``target``
    of another at reference ``ref``; ``expanding`` when it is wrapped inside
    a larger reference on the way."""
    source: Tuple[str, int]
    target: Tuple[str, int]
    expanding: bool
    ref: StateRef


def _subrefs(ref: RefExpr) -> Iterator[StateRef]:
    if isinstance(ref, StateRef):
        yield ref
        for arg in ref.args:
            yield from _subrefs(arg)


def _placeholders_in(ref: RefExpr) -> Iterator[Placeholder]:
    if isinstance(ref, Placeholder):
        yield ref
    else:
        yield from ref.placeholders()


# ═══════════════════════════════════════════════════════════════════
#  Expander
# ═══════════════════════════════════════════════════════════════════

class Expander:
    """Specialises a parsed program into a ``SpecializedTable``."""

    def __init__(self, program: Program) -> None:
        self.program = program
        self._defs = program.by_name()
        self._queue: Deque[InstanceKey] = deque()
        # key -> (parent key, location of the reference that produced it)
        self._origins: Dict[InstanceKey, Tuple[Optional[InstanceKey], Loc]] = {}

    # ── Public entry point ───────────────────────────────────────

    def expand(self) -> SpecializedTable:
        self._check_expansion()

        start_ref = self.program.start.target
        start_key = self._instantiate(start_ref, {})
        self._enqueue(start_key, None, start_ref.loc)

        rows: Dict[InstanceKey, Dict[Symbol, Transition]] = {}
        while self._queue:
            key = self._queue.popleft()
            if key in rows:
                continue
            rows[key] = self._build_row(key)

        reached = {key.name for key in rows}
        unreachable = tuple(
            d for d in self.program.definitions if d.name not in reached
        )
        for definition in unreachable:
            logger.warning(
                "%s: unreachable state definition '%s'",
                definition.loc, definition.name,
            )
        logger.info(
            "specialised %d instance(s) from %d definition(s)",
            len(rows), len(self.program.definitions),
        )
        return SpecializedTable(
            start=start_key,
            rows=rows,
            finish=FINISH_KEY,
            unreachable=unreachable,
            program=self.program,
        )

    # ── Work-list helpers ────────────────────────────────────────

    def _instantiate(self, ref: RefExpr, env: Dict[str, InstanceKey]) -> InstanceKey:
        if isinstance(ref, Placeholder):
            return env[ref.name]
        return InstanceKey(
            ref.name, tuple(self._instantiate(arg, env) for arg in ref.args)
        )

    def _enqueue(self, key: InstanceKey, parent: Optional[InstanceKey], loc: Loc) -> None:
        if key in self._origins:
            return
        self._origins[key] = (parent, loc)
        self._queue.append(key)

    def _chain(self, key: InstanceKey) -> List[str]:
        chain: List[str] = []
        current: Optional[InstanceKey] = key
        while current is not None:
            chain.append(str(current))
            current = self._origins[current][0]
        chain.reverse()
        return chain

    def _span(self, key: InstanceKey) -> SourceSpan:
        return SourceSpan.from_node(self._origins[key][1])

    def _build_row(self, key: InstanceKey) -> Dict[Symbol, Transition]:
        if key.name == FINISH:
            if key.args:
                raise ArityMismatchError(
                    FINISH, 0, len(key.args),
                    span=self._span(key), chain=self._chain(key),
                )
            return {}

        definition = self._defs.get(key.name)
        if definition is None:
            raise UndefinedStateError(
                key.name, span=self._span(key), chain=self._chain(key)
            )
        if definition.arity != len(key.args):
            raise ArityMismatchError(
                key.name, definition.arity, len(key.args),
                span=self._span(key), chain=self._chain(key),
            )

        site = self._origins[key][1]
        for arg in key.args:
            self._enqueue(arg, key, site)

        env = dict(zip(definition.params, key.args))
        row: Dict[Symbol, Transition] = {}
        for rule in definition.rules:
            target = self._instantiate(rule.target, env)
            self._enqueue(target, key, rule.target.loc)
            row[rule.read] = Transition(rule.write, target, rule.move, rule.loc)
        logger.debug("built %s (%d rule(s))", key, len(row))
        return row

    # ── Expansive cycle detection ────────────────────────────────

    def _reachable(self) -> List[StateDefinition]:
        """Definitions whose name occurs in the start reference or, transitively,
        in the rules of a reachable definition."""
        order: List[StateDefinition] = []
        seen = set()
        pending = deque(ref.name for ref in _subrefs(self.program.start.target))
        while pending:
            name = pending.popleft()
            if name in seen:
                continue
            seen.add(name)
            definition = self._defs.get(name)
            if definition is None:
                continue
            order.append(definition)
            for rule in definition.rules:
                pending.extend(ref.name for ref in _subrefs(rule.target))
        return order

    def _edges(self, definition: StateDefinition) -> Iterator[_Edge]:
        index = {param: i for i, param in enumerate(definition.params)}
        for rule in definition.rules:
            for ref in _subrefs(rule.target):
                callee = self._defs.get(ref.name)
                if callee is None:
                    continue
                for j, arg in enumerate(ref.args[:callee.arity]):
                    exact = isinstance(arg, Placeholder)
                    for placeholder in _placeholders_in(arg):
                        yield _Edge(
                            source=(definition.name, index[placeholder.name]),
                            target=(ref.name, j),
                            expanding=not exact,
                            ref=ref,
                        )

    def _check_expansion(self) -> None:
        graph: Dict[Tuple[str, int], List[_Edge]] = {}
        expanding: List[_Edge] = []
        for definition in self._reachable():
            for edge in self._edges(definition):
                graph.setdefault(edge.source, []).append(edge)
                if edge.expanding:
                    expanding.append(edge)

        for edge in expanding:
            path = _find_path(graph, edge.target, edge.source)
            if path is None:
                continue
            owner = self._defs[edge.source[0]]
            cycle = [f"{owner.name}<{', '.join(owner.params)}>"]
            cycle.extend(str(step.ref) for step in [edge] + path)
            raise InstantiationCycleError(
                cycle, span=SourceSpan.from_node(edge.ref)
            )


def _find_path(
    graph: Dict[Tuple[str, int], List[_Edge]],
    start: Tuple[str, int],
    goal: Tuple[str, int],
) -> Optional[List[_Edge]]:
    """Breadth-first path of edges from *start* to *goal*; ``[]`` if equal."""
    if start == goal:
        return []
    parents: Dict[Tuple[str, int], _Edge] = {}
    pending = deque([start])
    while pending:
        node = pending.popleft()
        for edge in graph.get(node, ()):
            nxt = edge.target
            if nxt in parents or nxt == start:
                continue
            parents[nxt] = edge
            if nxt == goal:
                path = [edge]
                while path[0].source != start:
                    path.insert(0, parents[path[0].source])
                return path
            pending.append(nxt)
    return None


def expand(program: Program) -> SpecializedTable:
    """Specialise *program*. See ``Expander``."""
    return Expander(program).expand()
