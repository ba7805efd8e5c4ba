import pytest

from ramcore.emulator import Emulator, execute
from ramcore.instructions import DivisionByZero, InputUnderflow, InvalidStoreTarget, StepLimitExceeded
from ramcore.linker import UndefinedLabel, link, load_program
from ramcore.parser import MalformedLine, parse_program


COUNTDOWN = """\
read 0
loop: load 0
jzero end
write 0
load 0
sub =1
store 0
jump loop
end: halt
"""


def _run(source, inputs=(), **kwargs):
    return execute(link(parse_program(source)), inputs, **kwargs)


def test_store_and_write():
    assert _run("load =5\nstore 0\nwrite 0\nhalt") == [5]


def test_countdown_loop():
    assert _run(COUNTDOWN, [3]) == [3, 2, 1]


def test_countdown_from_zero_writes_nothing():
    assert _run(COUNTDOWN, [0]) == []


def test_division_by_zero_aborts():
    program = link(parse_program("load =10\ndiv =0\nhalt"))
    emulator = Emulator(program)

    with pytest.raises(DivisionByZero) as exc:
        emulator.run()

    assert exc.value.line_no == 2
    assert emulator.state.output == []


def test_undefined_label_stops_before_execution():
    with pytest.raises(UndefinedLabel) as exc:
        load_program("jump nowhere\nhalt")

    assert exc.value.name == "nowhere"


def test_malformed_line_stops_before_execution():
    with pytest.raises(MalformedLine) as exc:
        load_program("load =5 extra\nhalt")

    assert exc.value.line_no == 1


def test_read_with_empty_input():
    with pytest.raises(InputUnderflow):
        _run("read 0\nhalt", [])


def test_read_into_literal():
    with pytest.raises(InvalidStoreTarget):
        _run("read =0\nhalt", [1])


def test_program_without_halt_terminates_on_implicit_halt():
    assert _run("write =1\nwrite =2") == [1, 2]


def test_indirect_addressing_walks_an_array():
    # Sum M[10..12] using M[0] as a pointer.
    source = """\
load =10
store 0
read 10
read 11
read 12
loop: load 0
sub =13
jzero done
load 1
add ^0
store 1
load 0
add =1
store 0
jump loop
done: write 1
"""
    assert _run(source, [4, 5, 6]) == [15]


def test_input_can_be_a_lazy_iterator():
    def values():
        yield 2
        yield 3

    assert _run("read 0\nread 1\nload 0\nmult 1\nstore 2\nwrite 2", values()) == [6]


def test_step_outcomes_and_halt():
    program = load_program("write =7\nhalt")
    emulator = Emulator(program)

    first = emulator.step()
    assert first.output == 7 and not first.halted
    second = emulator.step()
    assert second.halted
    assert emulator.halted
    assert emulator.step().halted
    assert emulator.state.steps == 2


def test_step_reports_error_instead_of_raising():
    emulator = Emulator(load_program("div =0"))

    outcome = emulator.step()

    assert isinstance(outcome.error, DivisionByZero)
    assert emulator.halted


def test_reset_restarts_with_new_inputs():
    emulator = Emulator(load_program("read 0\nwrite 0"), [1])
    assert emulator.run() == [1]

    emulator.reset([9])

    assert emulator.run() == [9]


def test_step_limit_stops_divergent_program():
    with pytest.raises(StepLimitExceeded):
        _run("loop: jump loop", max_steps=50)


def test_word_width_wraps_results():
    program = link(parse_program("load =100\nmult =3\nstore 0\nwrite 0", word_bits=8))

    assert execute(program) == [44]


def test_machine_width_follows_parsed_program():
    program = link(parse_program("load =100\nadd =100\nstore 0\nwrite 0\nwrite =100", word_bits=8))
    emulator = Emulator(program)

    assert emulator.state.word_bits == 8
    assert emulator.run() == [-56, 100]


def test_unlinked_program_is_refused():
    with pytest.raises(ValueError):
        execute(parse_program("halt"))


def test_execution_does_not_mutate_program():
    program = load_program(COUNTDOWN)
    before = [(stmt.line_no, str(stmt.instruction)) for stmt in program.statements]

    assert execute(program, [2]) == [2, 1]
    assert execute(program, [1]) == [1]
    assert [(stmt.line_no, str(stmt.instruction)) for stmt in program.statements] == before
