# tests/conftest.py
"""
Shared program sources and helpers for the gentm test-suite.
"""

import pytest

from gentm.expander import expand
from gentm.parser import parse


# ── Programs ─────────────────────────────────────────────────────

# Accepts binary numbers divisible by three; undefined otherwise.
# even / switch / odd track the remainder 0 / 1 / 2.
DIVISIBLE_BY_3 = """\
start = even
even 0 = 0; even next
even 1 = 1; switch next
even _ = _; finish current
switch 0 = 0; odd next
switch 1 = 1; even next
odd 0 = 0; switch next
odd 1 = 1; odd next
"""

# Sweeps right to the first blank, then back left to the blank before the
# input, parameterised by the state to continue in.
SWEEP = """\
start = right<back<finish>>
right<k> 0 = 0; right<k> next
right<k> 1 = 1; right<k> next
right<k> _ = _; k prev
back<k> 0 = 0; back<k> prev
back<k> 1 = 1; back<k> prev
back<k> _ = _; k next
"""

# Binary increment, head starts on the most significant bit.
INCREMENT = """\
// Increment a binary number in place.
start = seek<carry>

seek<k> 0 = 0; seek<k> next
seek<k> 1 = 1; seek<k> next
seek<k> _ = _; k prev      // last digit reached

carry 1 = 0; carry prev
carry 0 = 1; rewind<finish> prev
carry _ = 1; finish current

/* generic rewind to the left end */
rewind<k> 0 = 0; rewind<k> prev
rewind<k> 1 = 1; rewind<k> prev
rewind<k> _ = _; k next
"""

# Two states bouncing forever on a blank tape.
PING_PONG = """\
start = ping
ping _ = _; pong current
pong _ = _; ping current
"""

# Each instance of r demands r<r<...>>: never terminates.
EXPANSIVE = """\
start = r<f>
r<x> 0 = 0; r<r<x>> next
r<x> _ = _; x current
f _ = _; finish current
"""

# Finite nesting: r<r<r<f>>> shrinks by one layer per step.
NESTED = """\
start = r<r<r<f>>>
r<x> 1 = 1; x next
f _ = _; finish current
"""

# Two instances of the same generic definition in one run.
MARKS = """\
start = begin
begin _ = _; mark<mark<finish>> current
mark<k> _ = _; k current
"""


def build(source: str):
    """Parse and specialise in one go."""
    return expand(parse(source))


@pytest.fixture
def divisible_table():
    return build(DIVISIBLE_BY_3)


@pytest.fixture
def sweep_table():
    return build(SWEEP)


@pytest.fixture
def marks_table():
    return build(MARKS)


@pytest.fixture
def ping_pong_table():
    return build(PING_PONG)
