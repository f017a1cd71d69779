# tests/test_codegen.py
"""
Tests for export to the turingmachinesimulator.com format, and for reading
that format back to check the export runs like the engine does.
"""

import itertools

import pytest

from gentm import errors
from gentm.codegen import (
    CodeGenerator,
    GeneratorConfig,
    escape_key,
    generate,
    load_generated,
)
from gentm.expander import FINISH_KEY, InstanceKey
from gentm.runtime import Machine, Tape
from tests.conftest import (
    DIVISIBLE_BY_3, INCREMENT, MARKS, NESTED, PING_PONG, SWEEP, build,
)

SMALL = "start = a\na 0 = 1; a next\na _ = _; finish prev\n"


def _engine_verdict(table, tape, limit):
    try:
        Machine(table, Tape.from_text(tape)).run(max_steps=limit)
    except errors.StuckError:
        return "reject"
    except errors.StepLimitExceededError:
        return "timeout"
    return "accept"


def _tapes(max_len=4):
    for n in range(max_len + 1):
        for bits in itertools.product("01", repeat=n):
            yield "".join(bits)


class TestEscapeKey:

    def test_nested_key(self):
        key = InstanceKey("right", (InstanceKey("back", (FINISH_KEY,)),))
        assert escape_key(key) == "right_Lback_Lfinish_R_R"

    def test_plain_key(self):
        assert escape_key(InstanceKey("even")) == "even"

    def test_underscores_doubled(self):
        assert escape_key(InstanceKey("a_b")) == "a__b"

    def test_injective_on_lookalikes(self):
        keys = [
            InstanceKey("a_Lb"),
            InstanceKey("a_Lb_R"),
            InstanceKey("a", (InstanceKey("b"),)),
            InstanceKey("a_", (InstanceKey("b"),)),
            InstanceKey("a", (InstanceKey("_b"),)),
            InstanceKey("a", (InstanceKey("b"), InstanceKey("c"))),
            InstanceKey("a", (InstanceKey("b", (InstanceKey("c"),)),)),
        ]
        names = [escape_key(k) for k in keys]
        assert len(set(names)) == len(keys)

    @pytest.mark.parametrize("source", [SWEEP, INCREMENT, NESTED, MARKS])
    def test_injective_on_tables(self, source):
        table = build(source)
        names = [escape_key(k) for k in table.keys()]
        assert len(set(names)) == len(names)
        assert not any(c in name for name in names for c in "<>,")


class TestGenerate:

    def test_exact_output(self):
        assert generate(build(SMALL)) == (
            "name: generated turing machine\n"
            "init: a\n"
            "accept: finish\n"
            "\n"
            "a,0\n"
            "a,1,>\n"
            "\n"
            "a,_\n"
            "finish,_,<\n"
        )

    def test_ordinal_naming(self):
        text = generate(build(SMALL), GeneratorConfig(naming="ordinal"))
        assert text == (
            "name: generated turing machine\n"
            "init: q0\n"
            "accept: finish\n"
            "\n"
            "q0,0\n"
            "q0,1,>\n"
            "\n"
            "q0,_\n"
            "finish,_,<\n"
        )

    def test_ordinal_names_follow_table_order(self):
        table = build(SWEEP)
        names = CodeGenerator(GeneratorConfig(naming="ordinal")).state_names(table)
        assert [names[k] for k in table.keys()] == ["q0", "q1", "finish"]

    def test_custom_name(self):
        text = generate(build(SMALL), GeneratorConfig(name="div3"))
        assert text.startswith("name: div3\n")

    def test_generic_init(self):
        text = generate(build(SWEEP))
        assert "init: right_Lback_Lfinish_R_R\n" in text
        assert "\nright_Lback_Lfinish_R_R,_\nback_Lfinish_R,_,<\n" in text

    def test_current_move_letter(self):
        text = generate(build(PING_PONG))
        assert "\nping,_\npong,_,-\n" in text

    def test_finish_declared_even_if_never_reached(self):
        text = generate(build(PING_PONG))
        assert "accept: finish\n" in text

    def test_one_pair_per_transition(self):
        table = build(DIVISIBLE_BY_3)
        text = generate(table)
        blocks = text.split("\n\n")[1:]
        assert len(blocks) == sum(1 for _ in table.transitions())

    def test_deterministic(self):
        assert generate(build(INCREMENT)) == generate(build(INCREMENT))

    def test_comma_symbol_rejected(self):
        table = build("start = a\na ',' = 0; finish current\n")
        with pytest.raises(errors.CodeGenError) as exc_info:
            generate(table)
        assert exc_info.value.code == "GTM-4001"

    def test_whitespace_symbol_rejected(self):
        table = build("start = a\na '\t' = 1; finish current\n")
        assert Machine(table, Tape.from_text("\t")).run().accepted
        with pytest.raises(errors.CodeGenError) as exc_info:
            generate(table)
        assert exc_info.value.code == "GTM-4001"

    def test_unknown_naming_scheme_warns(self):
        assert GeneratorConfig(naming="fancy").validate()


class TestLoadGenerated:

    def test_round_trip_header(self):
        program = load_generated(generate(build(SWEEP)))
        assert program.name == "generated turing machine"
        assert program.init == "right_Lback_Lfinish_R_R"
        assert program.accept == {"finish"}

    def test_hand_written(self):
        program = load_generated(
            "// comment\n"
            "init: a\n"
            "accept: b\n"
            "\n"
            "a,0\n"
            "b,1,>\n"
        )
        assert program.simulate("0") == "accept"
        assert program.simulate("1") == "reject"

    def test_missing_init(self):
        with pytest.raises(errors.CodeGenError):
            load_generated("name: x\n\na,0\na,1,>\n")

    def test_unpaired_lines(self):
        with pytest.raises(errors.CodeGenError):
            load_generated("init: a\n\na,0\n")

    def test_bad_move(self):
        with pytest.raises(errors.CodeGenError):
            load_generated("init: a\n\na,0\na,1,L\n")


class TestEquivalence:
    """The exported machine must give the engine's verdict on every tape."""

    @pytest.mark.parametrize("source", [
        DIVISIBLE_BY_3, SWEEP, INCREMENT, NESTED, MARKS, PING_PONG,
    ])
    @pytest.mark.parametrize("naming", ["escape", "ordinal"])
    def test_same_verdicts(self, source, naming):
        table = build(source)
        exported = load_generated(generate(table, GeneratorConfig(naming=naming)))
        for tape in _tapes():
            assert exported.simulate(tape, max_steps=200) == _engine_verdict(
                table, tape, 200
            ), tape
