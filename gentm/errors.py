# gentm/errors.py
"""
gentm Error Types and Reporting

Structured exceptions for every phase of the pipeline: parsing,
monomorphisation, code generation, execution and the debugger.

Error Hierarchy:
────────────────
┌─────────────────────────────────────────────────────────────────────────┐
│  GentmError (base)                                                      │
│  ├── SyntaxError                 - Grammar and line-level violations    │
│  │   ├── MultipleStartError                                             │
│  │   ├── MissingStartError                                              │
│  │   ├── ReservedStateError                                             │
│  │   ├── GenericRedeclarationError                                      │
│  │   ├── DuplicateRuleError                                             │
│  │   └── UndeclaredPlaceholderError                                     │
│  ├── ResolutionError             - Monomorphisation failures            │
│  │   ├── UndefinedStateError                                            │
│  │   ├── ArityMismatchError                                             │
│  │   └── InstantiationCycleError                                        │
│  ├── CodeGenError                - Export failures                      │
│  ├── RuntimeError                - Execution failures                   │
│  │   ├── StuckError                                                     │
│  │   ├── StepLimitExceededError                                         │
│  │   └── MachineHaltedError                                             │
│  └── BreakpointError             - Debugger misuse                      │
└─────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Codes follow the pattern GTM-XXXX:
  - 1000-1999: Syntax errors
  - 3000-3999: Resolution errors
  - 4000-4999: Code generation errors
  - 5000-5999: Runtime errors
  - 6000-6999: Debugger errors

Note that ``SyntaxError`` and ``RuntimeError`` deliberately shadow the
builtins inside this module; import them qualified or aliased::

    from gentm import errors
    from gentm.errors import RuntimeError as MachineRuntimeError
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto, unique
from typing import Any, List, Optional, Sequence, Tuple


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorPhase(Enum):
    """Pipeline phase where the error occurred."""

    SYNTAX = "syntax"          # Parsing and line validation
    RESOLUTION = "resolution"  # Monomorphisation
    CODEGEN = "codegen"        # Export
    RUNTIME = "runtime"        # Execution
    DEBUGGER = "debugger"      # Interactive session


@unique
class ErrorCategory(Enum):
    """Fine-grained categories for filtering and statistics."""

    # Syntax
    UNEXPECTED_INPUT = auto()
    INVALID_SYMBOL = auto()
    MULTIPLE_START = auto()
    MISSING_START = auto()
    RESERVED_NAME = auto()
    REDECLARATION = auto()
    DUPLICATE_RULE = auto()
    UNDECLARED_PLACEHOLDER = auto()

    # Resolution
    UNDEFINED_STATE = auto()
    ARITY_MISMATCH = auto()
    INSTANTIATION_CYCLE = auto()

    # Codegen
    UNSUPPORTED_SYMBOL = auto()

    # Runtime
    STUCK = auto()
    STEP_LIMIT = auto()
    HALTED = auto()

    # Debugger
    INVALID_BREAKPOINT = auto()


class ErrorCode:
    """
    Structured error code.

    Codes are ``GTM-NNNN``; the number range encodes the phase (see the
    module docstring).
    """

    __slots__ = ("prefix", "number", "category", "phase")

    def __init__(
        self,
        prefix: str,
        number: int,
        category: ErrorCategory,
        phase: ErrorPhase,
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.category = category
        self.phase = phase

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.category.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class GentmErrorCodes:
    """Predefined error codes."""

    # ── Syntax (1000-1999) ──────────────────────────────────────────────
    UNEXPECTED_INPUT = ErrorCode(
        "GTM", 1001, ErrorCategory.UNEXPECTED_INPUT, ErrorPhase.SYNTAX
    )
    INVALID_SYMBOL = ErrorCode(
        "GTM", 1002, ErrorCategory.INVALID_SYMBOL, ErrorPhase.SYNTAX
    )
    MULTIPLE_START = ErrorCode(
        "GTM", 1010, ErrorCategory.MULTIPLE_START, ErrorPhase.SYNTAX
    )
    MISSING_START = ErrorCode(
        "GTM", 1011, ErrorCategory.MISSING_START, ErrorPhase.SYNTAX
    )
    RESERVED_NAME = ErrorCode(
        "GTM", 1020, ErrorCategory.RESERVED_NAME, ErrorPhase.SYNTAX
    )
    GENERIC_REDECLARATION = ErrorCode(
        "GTM", 1021, ErrorCategory.REDECLARATION, ErrorPhase.SYNTAX
    )
    DUPLICATE_RULE = ErrorCode(
        "GTM", 1030, ErrorCategory.DUPLICATE_RULE, ErrorPhase.SYNTAX
    )
    UNDECLARED_PLACEHOLDER = ErrorCode(
        "GTM", 1040, ErrorCategory.UNDECLARED_PLACEHOLDER, ErrorPhase.SYNTAX
    )

    # ── Resolution (3000-3999) ──────────────────────────────────────────
    UNDEFINED_STATE = ErrorCode(
        "GTM", 3001, ErrorCategory.UNDEFINED_STATE, ErrorPhase.RESOLUTION
    )
    ARITY_MISMATCH = ErrorCode(
        "GTM", 3002, ErrorCategory.ARITY_MISMATCH, ErrorPhase.RESOLUTION
    )
    INSTANTIATION_CYCLE = ErrorCode(
        "GTM", 3003, ErrorCategory.INSTANTIATION_CYCLE, ErrorPhase.RESOLUTION
    )

    # ── Codegen (4000-4999) ─────────────────────────────────────────────
    UNSUPPORTED_SYMBOL = ErrorCode(
        "GTM", 4001, ErrorCategory.UNSUPPORTED_SYMBOL, ErrorPhase.CODEGEN
    )

    # ── Runtime (5000-5999) ─────────────────────────────────────────────
    STUCK = ErrorCode("GTM", 5001, ErrorCategory.STUCK, ErrorPhase.RUNTIME)
    STEP_LIMIT = ErrorCode(
        "GTM", 5002, ErrorCategory.STEP_LIMIT, ErrorPhase.RUNTIME
    )
    HALTED = ErrorCode("GTM", 5003, ErrorCategory.HALTED, ErrorPhase.RUNTIME)

    # ── Debugger (6000-6999) ────────────────────────────────────────────
    INVALID_BREAKPOINT = ErrorCode(
        "GTM", 6001, ErrorCategory.INVALID_BREAKPOINT, ErrorPhase.DEBUGGER
    )


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE LOCATIONS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceSpan:
    """A position in program text. Lines and columns are 1-based; 0 is unknown."""

    file: str = ""
    line: int = 0
    column: int = 0

    @classmethod
    def from_node(cls, node: Any) -> "SourceSpan":
        """Create a span from anything carrying a ``loc``."""
        loc = getattr(node, "loc", node)
        return cls(
            file=getattr(loc, "file", "") or "",
            line=getattr(loc, "line", 0) or 0,
            column=getattr(loc, "column", 0) or getattr(loc, "col", 0) or 0,
        )

    def __bool__(self) -> bool:
        return self.line > 0

    def __str__(self) -> str:
        if not self.file and self.line == 0:
            return "<unknown location>"
        parts = []
        if self.file:
            parts.append(self.file)
        if self.line > 0:
            parts.append(str(self.line))
            if self.column > 0:
                parts.append(str(self.column))
        return ":".join(parts)


@dataclass
class ErrorNote:
    """Extra context attached to an error, e.g. where a rule first appeared."""

    message: str
    span: Optional[SourceSpan] = None
    label: str = "note"

    def __str__(self) -> str:
        prefix = f"{self.label}: " if self.label else ""
        if self.span:
            return f"{self.span}: {prefix}{self.message}"
        return f"{prefix}{self.message}"


def render_source_excerpt(source: str, line: int, column: int = 0) -> str:
    """Return the offending source line with a caret under *column*.

    Returns an empty string when *line* is outside *source*.
    """
    lines = source.splitlines()
    if line < 1 or line > len(lines):
        return ""
    text = lines[line - 1]
    width = len(str(line))
    out = [f"{line:>{width}} | {text}"]
    if column > 0:
        out.append(f"{' ' * width} | {' ' * (column - 1)}^")
    return "\n".join(out)


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class GentmError(Exception):
    """
    Base exception for all gentm errors.

    Carries a structured code, an optional source span, notes and a hint.
    ``str()`` gives the GCC-style rendering.
    """

    default_code: ErrorCode = GentmErrorCodes.UNEXPECTED_INPUT

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        notes: Optional[List[ErrorNote]] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.span = span or SourceSpan()
        self.notes: List[ErrorNote] = list(notes or [])
        self.hint = hint

    @property
    def phase(self) -> ErrorPhase:
        return self.code.phase

    def add_note(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        label: str = "note",
    ) -> "GentmError":
        self.notes.append(ErrorNote(message=message, span=span, label=label))
        return self

    def to_gcc_format(self, source: Optional[str] = None) -> str:
        """Format as a GCC-style message, with a caret excerpt when *source* is given."""
        head = f"{self.span}: error: {self.message} [{self.code}]"
        if not self.span:
            head = f"error: {self.message} [{self.code}]"
        lines = [head]
        if source is not None and self.span:
            excerpt = render_source_excerpt(source, self.span.line, self.span.column)
            if excerpt:
                lines.append(excerpt)
        lines.extend(str(note) for note in self.notes)
        if self.hint:
            lines.append(f"hint: {self.hint}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.to_gcc_format()


# ───────────────────────────────────────────────────────────────────────────────
# SYNTAX ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class SyntaxError(GentmError):
    """Malformed program text. Always carries the offending line."""

    default_code = GentmErrorCodes.UNEXPECTED_INPUT

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        source_line: str = "",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, code=code, span=span, **kwargs)
        self.source_line = source_line

    @property
    def line(self) -> int:
        return self.span.line


class MultipleStartError(SyntaxError):
    """More than one ``start`` directive."""

    default_code = GentmErrorCodes.MULTIPLE_START

    def __init__(
        self,
        span: Optional[SourceSpan] = None,
        previous: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            "start state is already declared",
            span=span,
            hint="a program has exactly one 'start = ...' line",
            **kwargs,
        )
        if previous:
            self.add_note("first declared here", previous)


class MissingStartError(SyntaxError):
    """No ``start`` directive at all."""

    default_code = GentmErrorCodes.MISSING_START

    def __init__(self, span: Optional[SourceSpan] = None, **kwargs: Any) -> None:
        super().__init__(
            "no start state declared",
            span=span,
            hint="add a line such as 'start = my_state'",
            **kwargs,
        )


class ReservedStateError(SyntaxError):
    """A user definition or placeholder named after a built-in state."""

    default_code = GentmErrorCodes.RESERVED_NAME

    def __init__(
        self,
        name: str,
        span: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"'{name}' is a built-in state and cannot be redefined",
            span=span,
            **kwargs,
        )
        self.name = name


class GenericRedeclarationError(SyntaxError):
    """A state redeclared with a different number of placeholders."""

    default_code = GentmErrorCodes.GENERIC_REDECLARATION

    def __init__(
        self,
        name: str,
        expected: int,
        got: int,
        span: Optional[SourceSpan] = None,
        first: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"state '{name}' was declared with {expected} generic "
            f"parameter(s), redeclared with {got}",
            span=span,
            **kwargs,
        )
        self.name = name
        self.expected = expected
        self.got = got
        if first:
            self.add_note("first declared here", first)


class DuplicateRuleError(SyntaxError):
    """Two rules for the same (state, read symbol) pair."""

    default_code = GentmErrorCodes.DUPLICATE_RULE

    def __init__(
        self,
        name: str,
        symbol: str,
        span: Optional[SourceSpan] = None,
        first: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"state '{name}' already handles input {symbol}",
            span=span,
            **kwargs,
        )
        self.name = name
        self.symbol = symbol
        self.first = first
        if first:
            self.add_note("previous rule is here", first)


class UndeclaredPlaceholderError(SyntaxError):
    """A generic definition refers to a name that is not one of its parameters."""

    default_code = GentmErrorCodes.UNDECLARED_PLACEHOLDER

    def __init__(
        self,
        name: str,
        definition: str,
        span: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"'{name}' is neither a parameter of '{definition}' nor a defined state",
            span=span,
            **kwargs,
        )
        self.name = name
        self.definition = definition


# ───────────────────────────────────────────────────────────────────────────────
# RESOLUTION ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class ResolutionError(GentmError):
    """
    Failure while specialising the program.

    ``chain`` lists the instance keys (as text) from the start state down
    to the reference that failed.
    """

    default_code = GentmErrorCodes.UNDEFINED_STATE

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        chain: Sequence[str] = (),
        **kwargs: Any,
    ) -> None:
        super().__init__(message, code=code, span=span, **kwargs)
        self.chain: Tuple[str, ...] = tuple(chain)
        if self.chain:
            self.add_note("reached via " + " -> ".join(self.chain))


class UndefinedStateError(ResolutionError):
    default_code = GentmErrorCodes.UNDEFINED_STATE

    def __init__(
        self,
        name: str,
        span: Optional[SourceSpan] = None,
        chain: Sequence[str] = (),
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"no such state: '{name}'", span=span, chain=chain, **kwargs
        )
        self.name = name


class ArityMismatchError(ResolutionError):
    default_code = GentmErrorCodes.ARITY_MISMATCH

    def __init__(
        self,
        name: str,
        expected: int,
        got: int,
        span: Optional[SourceSpan] = None,
        chain: Sequence[str] = (),
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"state '{name}' takes {expected} generic argument(s), "
            f"{got} supplied",
            span=span,
            chain=chain,
            **kwargs,
        )
        self.name = name
        self.expected = expected
        self.got = got


class InstantiationCycleError(ResolutionError):
    """A generic definition feeds its own parameter back into itself nested
    inside a larger reference, so specialisation would never terminate."""

    default_code = GentmErrorCodes.INSTANTIATION_CYCLE

    def __init__(
        self,
        cycle: Sequence[str],
        span: Optional[SourceSpan] = None,
        chain: Sequence[str] = (),
        **kwargs: Any,
    ) -> None:
        super().__init__(
            "infinitely expanding generic instantiation: "
            + " -> ".join(cycle),
            span=span,
            chain=chain,
            hint="each instantiation wraps its argument in another layer; "
            "pass the parameter through unchanged instead",
            **kwargs,
        )
        self.cycle: Tuple[str, ...] = tuple(cycle)


# ───────────────────────────────────────────────────────────────────────────────
# CODE GENERATION ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class CodeGenError(GentmError):
    default_code = GentmErrorCodes.UNSUPPORTED_SYMBOL


# ───────────────────────────────────────────────────────────────────────────────
# RUNTIME ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class RuntimeError(GentmError):
    """Execution failure. The specialised table stays valid and reusable."""

    default_code = GentmErrorCodes.STUCK

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        step: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, code=code, span=span, **kwargs)
        self.step = step


class StuckError(RuntimeError):
    """No transition for the current state and the symbol under the head."""

    default_code = GentmErrorCodes.STUCK

    def __init__(
        self,
        state: str,
        symbol: str,
        head: int,
        step: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"rejected: state '{state}' has no rule for input {symbol} "
            f"(head {head}, step {step})",
            step=step,
            **kwargs,
        )
        self.state = state
        self.symbol = symbol
        self.head = head


class StepLimitExceededError(RuntimeError):
    default_code = GentmErrorCodes.STEP_LIMIT

    def __init__(self, limit: int, state: str, step: int = 0, **kwargs: Any) -> None:
        super().__init__(
            f"step limit of {limit} reached in state '{state}' without "
            f"accepting",
            step=step,
            hint="raise --max-steps if the machine legitimately needs more",
            **kwargs,
        )
        self.limit = limit
        self.state = state


class MachineHaltedError(RuntimeError):
    default_code = GentmErrorCodes.HALTED

    def __init__(self, step: int = 0, **kwargs: Any) -> None:
        super().__init__(
            "machine has already entered the finish state",
            step=step,
            hint="reset the machine to run it again",
            **kwargs,
        )


# ───────────────────────────────────────────────────────────────────────────────
# DEBUGGER ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class BreakpointError(GentmError):
    default_code = GentmErrorCodes.INVALID_BREAKPOINT
