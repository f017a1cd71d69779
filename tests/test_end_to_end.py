# tests/test_end_to_end.py
"""
End-to-end tests: program text → parse → expand → run / debug / generate,
with every consumer fed the same specialised table.
"""

import pytest

from gentm import Machine, Tape, expand, generate, parse
from gentm.codegen import load_generated
from gentm.debugger import Debugger, Status
from gentm import errors
from tests.conftest import DIVISIBLE_BY_3, INCREMENT, SWEEP


# Copies a block of 1s to the right of a blank separator, one cell at a
# time. Each generic state carries the state to resume in once the copy
# of one cell is written.
UNARY_COPY = """\
start = pick

pick 1 = 'x'; go<pick> next
pick _ = _; finish current

go<k> 1 = 1; go<k> next
go<k> _ = _; skip<k> next
skip<k> 1 = 1; skip<k> next
skip<k> _ = 1; back<k> prev

back<k> 1 = 1; back<k> prev
back<k> _ = _; back<k> prev
back<k> 'x' = 1; k next
"""


class TestPipeline:

    def test_public_api(self):
        table = expand(parse(DIVISIBLE_BY_3))
        assert Machine(table, Tape.from_text("1001")).run().accepted

    @pytest.mark.parametrize("before, after", [
        ("1", "1_1"),
        ("11", "11_11"),
        ("111", "111_111"),
    ])
    def test_unary_copy(self, before, after):
        table = expand(parse(UNARY_COPY))
        result = Machine(table, Tape.from_text(before)).run()
        assert result.tape.render() == after

    def test_unary_copy_instances(self):
        table = expand(parse(UNARY_COPY))
        assert [str(k) for k in table.keys()] == [
            "pick", "go<pick>", "finish", "skip<pick>", "back<pick>",
        ]

    def test_increment_all_three_consumers(self):
        table = expand(parse(INCREMENT))

        result = Machine(table, Tape.from_text("1011")).run()
        assert result.tape.render() == "1100"

        dbg = Debugger(table, "1011")
        dbg.add_breakpoint("carry")
        assert dbg.continue_().status is Status.BREAKPOINT
        assert dbg.continue_().status is Status.BREAKPOINT
        assert dbg.continue_().status is Status.BREAKPOINT
        assert dbg.continue_().status is Status.ACCEPTED
        assert dbg.machine.state.tape.render() == "1100"

        exported = load_generated(generate(table))
        assert exported.simulate("1011") == "accept"

    def test_sweep_debugger_and_engine_agree(self):
        table = expand(parse(SWEEP))
        dbg = Debugger(table, "0110")
        while not dbg.status.finished:
            dbg.step()
        engine = Machine(table, Tape.from_text("0110")).run()
        assert dbg.machine.state.steps == engine.steps
        assert dbg.machine.state.head == engine.head

    def test_failed_run_leaves_table_usable(self):
        table = expand(parse(DIVISIBLE_BY_3))
        with pytest.raises(errors.StuckError):
            Machine(table, Tape.from_text("10")).run()
        assert load_generated(generate(table)).simulate("11") == "accept"


class TestPipelineErrors:

    def test_syntax_error_stops_before_expansion(self):
        with pytest.raises(errors.SyntaxError):
            expand(parse("start = a\na 0 = 0 a next\n"))

    def test_bare_unknown_name_in_generic_is_rejected_early(self):
        source = "start = a\na 0 = 0; b<a> next\nb<k> _ = _; c current\n"
        with pytest.raises(errors.UndeclaredPlaceholderError):
            parse(source)

    def test_gcc_rendering_with_excerpt(self):
        source = "start = a\na 0 = 0; ghost next\n"
        with pytest.raises(errors.UndefinedStateError) as exc_info:
            expand(parse(source, filename="m.tm"))
        text = exc_info.value.to_gcc_format(source)
        assert text.startswith("m.tm:2:")
        assert "[GTM-3001]" in text
        assert "a 0 = 0; ghost next" in text
