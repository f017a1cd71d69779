# tests/test_runtime.py
"""
Tests for the tape model and the execution engine.
"""

import pytest

from gentm import errors
from gentm.ast_nodes import BLANK
from gentm.expander import FINISH_KEY, InstanceKey
from gentm.runtime import Machine, RuntimeConfig, Tape
from tests.conftest import INCREMENT, NESTED, build


class TestTape:

    def test_from_text_blanks(self):
        tape = Tape.from_text("1 0_1")
        assert tape.cells == {0: "1", 2: "0", 4: "1"}

    def test_unset_reads_blank(self):
        tape = Tape()
        assert tape.read(0) is BLANK
        assert tape.read(-1000) is BLANK

    def test_write_blank_removes_cell(self):
        tape = Tape.from_text("11")
        tape.write(0, BLANK)
        assert tape.cells == {1: "1"}
        assert len(tape) == 1

    def test_negative_positions(self):
        tape = Tape()
        tape.write(-3, "x")
        assert tape.read(-3) == "x"
        assert tape.bounds() == (-3, -3)

    def test_window(self):
        tape = Tape.from_text("abc")
        assert tape.window(1, 2) == [BLANK, "a", "b", "c", BLANK]

    def test_render(self):
        tape = Tape({-1: "1", 2: "0"})
        assert tape.render() == "1__0"
        assert Tape().render() == ""

    def test_copy_is_independent(self):
        tape = Tape.from_text("1")
        clone = tape.copy()
        clone.write(0, "0")
        assert tape.read(0) == "1"
        assert tape != clone


class TestRuntimeConfig:

    def test_defaults_valid(self):
        assert RuntimeConfig().validate() == []

    def test_invalid_values(self):
        warnings = RuntimeConfig(max_steps=0, window=-1).validate()
        assert len(warnings) == 2


class TestMachineStep:

    def test_single_step(self, divisible_table):
        machine = Machine(divisible_table, Tape.from_text("110"))
        record = machine.step()
        assert record.step == 1
        assert record.key == InstanceKey("even")
        assert record.read == "1"
        assert (record.head_before, record.head_after) == (0, 1)
        assert machine.state.key == InstanceKey("switch")
        assert machine.state.head == 1
        assert machine.state.steps == 1

    def test_write_and_move_prev(self):
        table = build("start = a\na 0 = 1; b prev\nb _ = 'x'; finish current\n")
        machine = Machine(table, Tape.from_text("0"))
        machine.step()
        assert machine.state.tape.read(0) == "1"
        assert machine.state.head == -1
        machine.step()
        assert machine.state.tape.read(-1) == "x"
        assert machine.state.head == -1
        assert machine.halted

    def test_stuck(self, divisible_table):
        machine = Machine(divisible_table, Tape.from_text("101"))
        for _ in range(3):
            machine.step()
        with pytest.raises(errors.StuckError) as exc_info:
            machine.step()
        err = exc_info.value
        assert err.state == "odd"
        assert err.symbol == "_"
        assert err.head == 3
        assert err.step == 3

    def test_step_after_finish(self, divisible_table):
        machine = Machine(divisible_table)
        machine.step()
        assert machine.halted
        with pytest.raises(errors.MachineHaltedError):
            machine.step()

    def test_next_transition(self, divisible_table):
        machine = Machine(divisible_table, Tape.from_text("1"))
        assert machine.next_transition().target == InstanceKey("switch")


class TestMachineRun:

    def test_divisible_by_three_accepts_six(self, divisible_table):
        result = Machine(divisible_table, Tape.from_text("110")).run()
        assert result.accepted
        assert result.key == FINISH_KEY
        assert result.steps == 4

    def test_divisible_by_three_sticks_on_five(self, divisible_table):
        with pytest.raises(errors.StuckError) as exc_info:
            Machine(divisible_table, Tape.from_text("101")).run()
        assert exc_info.value.state == "odd"
        assert exc_info.value.symbol == "_"

    @pytest.mark.parametrize("n", range(0, 40))
    def test_divisible_by_three_matches_arithmetic(self, divisible_table, n):
        machine = Machine(divisible_table, Tape.from_text(format(n, "b")))
        if n % 3 == 0:
            assert machine.run().accepted
        else:
            with pytest.raises(errors.StuckError):
                machine.run()

    def test_step_limit(self, ping_pong_table):
        machine = Machine(ping_pong_table)
        with pytest.raises(errors.StepLimitExceededError) as exc_info:
            machine.run(max_steps=50)
        assert exc_info.value.limit == 50
        assert machine.state.steps == 50

    def test_step_limit_from_config(self, ping_pong_table):
        machine = Machine(ping_pong_table, config=RuntimeConfig(max_steps=7))
        with pytest.raises(errors.StepLimitExceededError) as exc_info:
            machine.run()
        assert exc_info.value.step == 7

    def test_accepting_exactly_at_limit(self, divisible_table):
        result = Machine(divisible_table, Tape.from_text("110")).run(max_steps=4)
        assert result.steps == 4

    def test_limit_is_per_call(self, divisible_table):
        machine = Machine(divisible_table, Tape.from_text("110"))
        with pytest.raises(errors.StepLimitExceededError):
            machine.run(max_steps=2)
        assert machine.run(max_steps=2).accepted

    def test_generic_sweep(self, sweep_table):
        result = Machine(sweep_table, Tape.from_text("101")).run()
        assert result.steps == 8
        assert result.head == 0
        assert result.tape.render() == "101"

    def test_nested_instances(self):
        table = build(NESTED)
        assert Machine(table, Tape.from_text("111")).run().steps == 4
        with pytest.raises(errors.StuckError) as exc_info:
            Machine(table, Tape.from_text("11")).run()
        assert exc_info.value.state == "r<f>"

    @pytest.mark.parametrize("before, after", [
        ("1011", "1100"),
        ("111", "1000"),
        ("0", "1"),
        ("", "1"),
    ])
    def test_increment(self, before, after):
        result = Machine(build(INCREMENT), Tape.from_text(before)).run()
        assert result.tape.render() == after

    def test_trace_recorded(self, divisible_table):
        config = RuntimeConfig(record_trace=True)
        result = Machine(divisible_table, Tape.from_text("11"), config).run()
        assert [str(r.key) for r in result.trace] == ["even", "switch", "even"]

    def test_reset(self, divisible_table):
        machine = Machine(divisible_table, Tape.from_text("110"))
        machine.run()
        machine.reset()
        assert machine.state.steps == 0
        assert machine.state.key == InstanceKey("even")
        assert machine.state.tape == Tape.from_text("110")

    def test_reset_with_new_tape(self, divisible_table):
        machine = Machine(divisible_table, Tape.from_text("110"))
        machine.reset(Tape.from_text("101"))
        with pytest.raises(errors.StuckError):
            machine.run()

    def test_table_survives_failure(self, divisible_table):
        with pytest.raises(errors.StuckError):
            Machine(divisible_table, Tape.from_text("1")).run()
        assert Machine(divisible_table, Tape.from_text("11")).run().accepted

    def test_start_at_finish(self):
        table = build("start = finish\n")
        result = Machine(table).run()
        assert result.steps == 0
