# gentm/parser.py
"""
Parser: program text → ``Program``.

Two stages:

1. ``GentmASTBuilder`` walks the parsimonious parse tree and produces one
   raw record per statement line. At this point every name in a reference
   is a plain ``StateRef``.
2. ``ProgramAssembler`` scans those records in source order, merges rule
   lines into ``StateDefinition`` objects, turns parameter names into
   ``Placeholder`` nodes and enforces the line-level rules (single start,
   reserved ``finish``, consistent arity, no duplicate rules, declared
   placeholders).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from parsimonious.exceptions import ParseError
from parsimonious.nodes import Node, NodeVisitor

from gentm.ast_nodes import (
    BLANK,
    FINISH,
    Loc,
    Move,
    Placeholder,
    Program,
    RefExpr,
    StartDirective,
    StateDefinition,
    StateRef,
    Symbol,
    TransitionRule,
    symbol_text,
)
from gentm.errors import (
    DuplicateRuleError,
    GenericRedeclarationError,
    GentmError,
    GentmErrorCodes,
    MissingStartError,
    MultipleStartError,
    ReservedStateError,
    SourceSpan,
    SyntaxError,
    UndeclaredPlaceholderError,
)
from gentm.grammar import GRAMMAR

logger = logging.getLogger(__name__)


# Friendly names for grammar rules that show up as the furthest failure.
_EXPECTED = {
    "movement": "a movement (prev, current or next)",
    "symbol": "a tape symbol (a digit, _ or 'c')",
    "blank": "a tape symbol (a digit, _ or 'c')",
    "digit": "a tape symbol (a digit, _ or 'c')",
    "quoted": "a tape symbol (a digit, _ or 'c')",
    "name": "a state name",
    "reference": "a state reference",
    "state_head": "a state name",
    "params": "'<' or a tape symbol",
    "args": "'<' or a movement",
    "start_stmt": "'='",
}


# ── Raw statement records ────────────────────────────────────────

@dataclass(frozen=True)
class RuleLine:
    """One ``head read = write; target move`` line before assembly."""
    head: str
    params: Tuple[str, ...]
    read: Symbol
    write: Symbol
    target: StateRef
    move: Move
    loc: Loc


Statement = Union[StartDirective, RuleLine]


def _optional(value: Any) -> Any:
    """Unwrap the result of an ``x?`` node: the child's value or ``None``."""
    if isinstance(value, list) and value:
        return value[0]
    return None


def _items(value: Any) -> List[Any]:
    """Children of an ``x*`` node; an unmatched repetition visits as the bare node."""
    if isinstance(value, list):
        return value
    return []


def _line_col(text: str, pos: int) -> Tuple[int, int]:
    line = text.count("\n", 0, pos) + 1
    col = pos - (text.rfind("\n", 0, pos) + 1) + 1
    return line, col


# ═══════════════════════════════════════════════════════════════════
#  Parse tree → statements
# ═══════════════════════════════════════════════════════════════════

class GentmASTBuilder(NodeVisitor):
    """Transforms a parsimonious parse tree into raw statements."""

    grammar = GRAMMAR
    unwrapped_exceptions = (GentmError, RecursionError)

    def __init__(self, filename: str = "<input>") -> None:
        self.filename = filename

    def _loc(self, node: Node) -> Loc:
        line, col = _line_col(node.full_text, node.start)
        return Loc(self.filename, line, col)

    def generic_visit(self, node, visited_children):
        return visited_children or node

    # ── Structure ────────────────────────────────────────────────

    def visit_program(self, node, visited_children) -> List[Statement]:
        lines, last = visited_children
        statements = [item[0] for item in _items(lines)] + [last]
        return [stmt for stmt in statements if stmt is not None]

    def visit_line(self, node, visited_children):
        _, statement, _, _ = visited_children
        return _optional(statement)

    def visit_statement(self, node, visited_children):
        return visited_children[0]

    def visit_start_stmt(self, node, visited_children) -> StartDirective:
        *_, target = visited_children
        return StartDirective(target=target, loc=self._loc(node))

    def visit_rule_stmt(self, node, visited_children) -> RuleLine:
        (head, _, read, _, _, _, write, _, _, _,
         target, _, move) = visited_children
        name, params = head
        return RuleLine(
            head=name,
            params=params,
            read=read,
            write=write,
            target=target,
            move=move,
            loc=self._loc(node),
        )

    # ── States and references ────────────────────────────────────

    def visit_state_head(self, node, visited_children):
        name, _, params = visited_children
        return name, tuple(_optional(params) or ())

    def visit_params(self, node, visited_children) -> List[str]:
        _, _, first, rest, _, _ = visited_children
        return [first] + [item[-1] for item in _items(rest)]

    def visit_reference(self, node, visited_children) -> StateRef:
        name, _, args = visited_children
        return StateRef(name, tuple(_optional(args) or ()), self._loc(node))

    def visit_args(self, node, visited_children) -> List[StateRef]:
        _, _, first, rest, _, _ = visited_children
        return [first] + [item[-1] for item in _items(rest)]

    def visit_name(self, node, visited_children) -> str:
        return node.text

    # ── Symbols ──────────────────────────────────────────────────

    def visit_symbol(self, node, visited_children) -> Symbol:
        return visited_children[0]

    def visit_blank(self, node, visited_children) -> Symbol:
        return BLANK

    def visit_digit(self, node, visited_children) -> Symbol:
        return node.text

    def visit_quoted(self, node, visited_children) -> Symbol:
        char = node.text[1]
        if char in ("_", " "):
            loc = self._loc(node)
            raise SyntaxError(
                f"quoted symbol {node.text} is indistinguishable from the blank",
                code=GentmErrorCodes.INVALID_SYMBOL,
                span=SourceSpan(loc.file, loc.line, loc.col),
                hint="write _ for the blank cell",
            )
        return char

    def visit_movement(self, node, visited_children) -> Move:
        return Move.from_keyword(node.text)


# ═══════════════════════════════════════════════════════════════════
#  Statements → Program
# ═══════════════════════════════════════════════════════════════════

@dataclass
class _Pending:
    """A definition being accumulated across rule lines."""
    name: str
    params: Tuple[str, ...]
    loc: Loc
    lines: List[RuleLine]


class ProgramAssembler:
    """Merges rule lines into definitions and validates them."""

    def __init__(self, source: str, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self._lines = source.splitlines()

    def _span(self, loc: Loc) -> SourceSpan:
        return SourceSpan(loc.file, loc.line, loc.col)

    def _source_line(self, loc: Loc) -> str:
        if 1 <= loc.line <= len(self._lines):
            return self._lines[loc.line - 1]
        return ""

    def assemble(self, statements: Sequence[Statement]) -> Program:
        start: Optional[StartDirective] = None
        pending: Dict[str, _Pending] = {}

        for stmt in statements:
            if isinstance(stmt, StartDirective):
                if start is not None:
                    raise MultipleStartError(
                        span=self._span(stmt.loc),
                        previous=self._span(start.loc),
                        source_line=self._source_line(stmt.loc),
                    )
                start = stmt
                continue
            self._check_head(stmt)
            entry = pending.get(stmt.head)
            if entry is None:
                pending[stmt.head] = _Pending(stmt.head, stmt.params, stmt.loc, [stmt])
                continue
            if len(entry.params) != len(stmt.params):
                raise GenericRedeclarationError(
                    stmt.head,
                    expected=len(entry.params),
                    got=len(stmt.params),
                    span=self._span(stmt.loc),
                    first=self._span(entry.loc),
                    source_line=self._source_line(stmt.loc),
                )
            entry.lines.append(stmt)

        if start is None:
            raise MissingStartError(span=SourceSpan(self.filename))

        defined = set(pending)
        definitions = tuple(
            self._build_definition(entry, defined) for entry in pending.values()
        )
        logger.debug(
            "assembled %d definition(s) from %s", len(definitions), self.filename
        )
        return Program(
            definitions=definitions,
            start=start,
            source=self.source,
            filename=self.filename,
        )

    def _check_head(self, line: RuleLine) -> None:
        if line.head == FINISH:
            raise ReservedStateError(
                FINISH, span=self._span(line.loc),
                source_line=self._source_line(line.loc),
            )
        seen = set()
        for param in line.params:
            if param == FINISH:
                raise ReservedStateError(
                    FINISH, span=self._span(line.loc),
                    source_line=self._source_line(line.loc),
                )
            if param in seen:
                raise SyntaxError(
                    f"generic parameter '{param}' is declared twice",
                    span=self._span(line.loc),
                    source_line=self._source_line(line.loc),
                )
            seen.add(param)

    def _build_definition(self, entry: _Pending, defined: set) -> StateDefinition:
        rules: List[TransitionRule] = []
        first_seen: Dict[Symbol, Loc] = {}
        for line in entry.lines:
            if line.read in first_seen:
                raise DuplicateRuleError(
                    entry.name,
                    symbol_text(line.read),
                    span=self._span(line.loc),
                    first=self._span(first_seen[line.read]),
                    source_line=self._source_line(line.loc),
                )
            first_seen[line.read] = line.loc
            # Parameter names are scoped to their own line; rename them to
            # the names of the first declaration.
            scope = dict(zip(line.params, entry.params))
            target = self._convert(line.target, scope, entry.name, defined, line)
            rules.append(
                TransitionRule(
                    read=line.read,
                    write=line.write,
                    target=target,
                    move=line.move,
                    loc=line.loc,
                )
            )
        return StateDefinition(
            name=entry.name,
            params=entry.params,
            rules=tuple(rules),
            loc=entry.loc,
        )

    def _convert(
        self,
        ref: StateRef,
        scope: Dict[str, str],
        owner: str,
        defined: set,
        line: RuleLine,
    ) -> RefExpr:
        if ref.name in scope:
            if ref.args:
                raise SyntaxError(
                    f"generic parameter '{ref.name}' cannot take arguments",
                    span=self._span(ref.loc),
                    source_line=self._source_line(ref.loc),
                )
            return Placeholder(scope[ref.name], ref.loc)
        if scope and not ref.args and ref.name not in defined and ref.name != FINISH:
            raise UndeclaredPlaceholderError(
                ref.name,
                owner,
                span=self._span(ref.loc),
                source_line=self._source_line(ref.loc),
            )
        args = tuple(
            self._convert(arg, scope, owner, defined, line) for arg in ref.args
        )
        return StateRef(ref.name, args, ref.loc)


# ═══════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════

def _syntax_error(text: str, exc: ParseError, filename: str) -> SyntaxError:
    """Convert a parsimonious failure into a located ``SyntaxError``.

    ``IncompleteParseError`` only reports where the program stopped
    matching, i.e. the start of the bad line; re-match that line to find
    the furthest point any rule reached.
    """
    pos = exc.pos
    line_start = text.rfind("\n", 0, pos) + 1
    probe = ParseError(text)
    GRAMMAR["line"].match_core(text, line_start, defaultdict(dict), probe)
    expected = None
    if probe.pos > pos:
        pos = probe.pos
        expected = getattr(probe.expr, "name", None)
    line, col = _line_col(text, pos)
    lines = text.splitlines()
    source_line = lines[line - 1] if line <= len(lines) else ""
    rest = text[pos:].split(None, 1)
    got = rest[0] if rest else "end of input"
    message = f"unexpected {got!r}"
    hint = ""
    if expected in _EXPECTED:
        hint = f"expected {_EXPECTED[expected]}"
    return SyntaxError(
        message,
        span=SourceSpan(filename, line, col),
        source_line=source_line,
        hint=hint,
    )


def _nesting_error(text: str, filename: str) -> SyntaxError:
    """Locate the deepest ``<`` when a reference nests past the recursion limit."""
    depth = deepest = 0
    pos = 0
    for i, ch in enumerate(text):
        if ch == "<":
            depth += 1
            if depth > deepest:
                deepest, pos = depth, i
        elif ch == ">":
            depth = max(depth - 1, 0)
        elif ch == "\n":
            depth = 0
    line, col = _line_col(text, pos)
    lines = text.splitlines()
    return SyntaxError(
        f"state reference nested {deepest} levels deep is too deep to parse",
        span=SourceSpan(filename, line, col),
        source_line=lines[line - 1] if line <= len(lines) else "",
        hint="split the reference across intermediate states",
    )


def parse(text: str, filename: str = "<input>") -> Program:
    """Parse program text into a validated ``Program``.

    Raises
    ------
    gentm.errors.SyntaxError
        Malformed lines or any of the line-level validation failures.
    """
    try:
        tree = GRAMMAR.parse(text)
        statements = GentmASTBuilder(filename).visit(tree)
    except ParseError as exc:
        raise _syntax_error(text, exc, filename) from None
    except RecursionError:
        raise _nesting_error(text, filename) from None
    return ProgramAssembler(text, filename).assemble(statements)


def parse_file(path: Union[str, Path]) -> Program:
    """Read and parse a program file."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    logger.info("parsing %s", p)
    return parse(text, filename=str(p))
