import pytest

from ramcore.instructions import (
    INSTRUCTION_SET,
    DivisionByZero,
    InputUnderflow,
    InvalidStoreTarget,
    address_of,
    exec_add,
    exec_div,
    exec_halt,
    exec_jgtz,
    exec_jump,
    exec_jzero,
    exec_load,
    exec_mult,
    exec_read,
    exec_store,
    exec_sub,
    exec_write,
    get_instruction_defs,
    value_of,
)
from ramcore.machine import MachineState, check_inputs
from ramcore.model import Direct, Indirect, Instruction, Label, Literal, Opcode, Statement


def _stmt(opcode, operand=None, label=None, line_no=1):
    return Statement(line_no, Instruction(opcode, operand=operand, label=label), [], f"{opcode.value.lower()}")


def _state(inputs=(), **memory):
    state = MachineState()
    state.reset(inputs)
    for key, value in memory.items():
        state.write_mem(int(key[1:]), value)
    return state


def test_every_opcode_has_an_executor():
    assert set(INSTRUCTION_SET) == set(Opcode)
    assert [d.opcode for d in get_instruction_defs()] == list(Opcode)


def test_operand_evaluation():
    state = _state(m3=7, m7=42)

    assert value_of(Literal(3), state) == 3
    assert value_of(Direct(3), state) == 7
    assert value_of(Indirect(3), state) == 42
    assert value_of(Direct(1000), state) == 0


def test_address_of_memory_operands():
    state = _state(m3=7)
    stmt = _stmt(Opcode.STORE, Direct(3))

    assert address_of(Direct(3), state, stmt) == 3
    assert address_of(Indirect(3), state, stmt) == 7


def test_load_and_store():
    state = _state(m5=11)
    exec_load(state, _stmt(Opcode.LOAD, Direct(5)))
    exec_store(state, _stmt(Opcode.STORE, Direct(6)))
    exec_store(state, _stmt(Opcode.STORE, Indirect(5)))

    assert state.accumulator == 11
    assert state.read_mem(6) == 11
    assert state.read_mem(11) == 11


@pytest.mark.parametrize(
    ("executor", "opcode", "start", "operand", "expected"),
    [
        (exec_add, Opcode.ADD, 10, Literal(5), 15),
        (exec_sub, Opcode.SUB, 10, Literal(13), -3),
        (exec_mult, Opcode.MULT, -4, Literal(6), -24),
        (exec_div, Opcode.DIV, 7, Literal(2), 3),
        (exec_div, Opcode.DIV, -7, Literal(2), -3),
        (exec_div, Opcode.DIV, 7, Literal(-2), -3),
        (exec_div, Opcode.DIV, -7, Literal(-2), 3),
    ],
)
def test_arithmetic(executor, opcode, start, operand, expected):
    state = _state()
    state.set_acc(start)

    result = executor(state, _stmt(opcode, operand))

    assert state.accumulator == expected
    assert result.next_pc is None and not result.halt


def test_arithmetic_wraps_to_word_width():
    state = MachineState(word_bits=8)
    state.reset()
    state.set_acc(127)

    exec_add(state, _stmt(Opcode.ADD, Literal(1)))

    assert state.accumulator == -128


@pytest.mark.parametrize("operand", [Literal(0), Direct(9), Indirect(4)])
def test_division_by_zero_for_every_operand_kind(operand):
    state = _state(m4=9)
    state.set_acc(10)

    with pytest.raises(DivisionByZero) as exc:
        exec_div(state, _stmt(Opcode.DIV, operand, line_no=3))

    assert exc.value.line_no == 3
    assert state.accumulator == 10


@pytest.mark.parametrize(
    ("executor", "opcode"), [(exec_store, Opcode.STORE), (exec_read, Opcode.READ)]
)
def test_literal_store_target_is_rejected(executor, opcode):
    state = _state(inputs=[1])

    with pytest.raises(InvalidStoreTarget):
        executor(state, _stmt(opcode, Literal(4)))

    # READ fails before consuming input.
    assert state.next_input() == 1


def test_read_consumes_input_in_order():
    state = _state(inputs=[4, 9], m2=0)
    exec_read(state, _stmt(Opcode.READ, Direct(0)))
    exec_read(state, _stmt(Opcode.READ, Indirect(0)))

    assert state.read_mem(0) == 4
    assert state.read_mem(4) == 9


def test_read_on_empty_input():
    state = _state()

    with pytest.raises(InputUnderflow):
        exec_read(state, _stmt(Opcode.READ, Direct(0)))


def test_write_reports_value():
    state = _state(m1=8)

    assert exec_write(state, _stmt(Opcode.WRITE, Direct(1))).output == 8
    assert exec_write(state, _stmt(Opcode.WRITE, Literal(-2))).output == -2


def test_branches():
    label = Label("target")
    label.resolve(5)
    state = _state()

    assert exec_jump(state, _stmt(Opcode.JUMP, label=label)).next_pc == 5
    assert exec_jzero(state, _stmt(Opcode.JZERO, label=label)).next_pc == 5
    assert exec_jgtz(state, _stmt(Opcode.JGTZ, label=label)).next_pc is None

    state.set_acc(1)
    assert exec_jgtz(state, _stmt(Opcode.JGTZ, label=label)).next_pc == 5
    assert exec_jzero(state, _stmt(Opcode.JZERO, label=label)).next_pc is None

    state.set_acc(-1)
    assert exec_jgtz(state, _stmt(Opcode.JGTZ, label=label)).next_pc is None


def test_halt():
    assert exec_halt(_state(), _stmt(Opcode.HALT)).halt


def test_malformed_statements_raise_type_error():
    with pytest.raises(TypeError):
        exec_load(_state(), _stmt(Opcode.LOAD))
    with pytest.raises(TypeError):
        exec_jump(_state(), _stmt(Opcode.JUMP, label=Label("unlinked")))


def test_check_inputs_bounds_values_by_word_width():
    assert check_inputs(iter([-128, 127]), 8) == [-128, 127]
    with pytest.raises(ValueError):
        check_inputs([128], 8)
