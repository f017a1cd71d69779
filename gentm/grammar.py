# gentm/grammar.py
"""
PEG grammar for generic Turing machine programs (parsimonious syntax).

One statement per line::

    start = right<back<finish>>
    right<k> 0 = 0; right<k> next     // sweep right
    right<k> _ = _; k prev

Whitespace inside a line is free-form; ``/* ... */`` block comments may
appear anywhere whitespace may, ``//`` comments run to end of line.
"""

from __future__ import annotations

from parsimonious.grammar import Grammar


GENTM_GRAMMAR = r'''
    # ─────────────────────────────────────────────────────────────
    # Program structure
    # ─────────────────────────────────────────────────────────────

    program      = (line eol)* line
    line         = _ statement? _ line_comment?
    eol          = ~r"\r?\n"

    statement    = start_stmt / rule_stmt

    start_stmt   = "start" _ "=" _ reference
    rule_stmt    = state_head _ symbol _ "=" _ symbol _ ";" _ reference _ movement

    # ─────────────────────────────────────────────────────────────
    # States and references
    # ─────────────────────────────────────────────────────────────

    state_head   = name _ params?
    params       = "<" _ name (_ "," _ name)* _ ">"

    reference    = name _ args?
    args         = "<" _ reference (_ "," _ reference)* _ ">"

    # ─────────────────────────────────────────────────────────────
    # Tape symbols and head movement
    # ─────────────────────────────────────────────────────────────

    symbol       = blank / digit / quoted
    blank        = "_"
    digit        = ~r"[0-9]"
    quoted       = ~r"'[^\r\n]'"

    movement     = ~r"(prev|current|next)\b"

    # ─────────────────────────────────────────────────────────────
    # Lexical
    # ─────────────────────────────────────────────────────────────

    name         = ~r"(?!(?:start|prev|current|next)\b)[a-zA-Z][a-zA-Z0-9_]*"
    _            = ~r"(?:[ \t]+|/\*[\s\S]*?\*/)*"
    line_comment = ~r"//[^\r\n]*"
'''

GRAMMAR = Grammar(GENTM_GRAMMAR)
