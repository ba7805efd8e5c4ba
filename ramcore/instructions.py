from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List

from ramcore.machine import MachineState
from ramcore.model import Direct, Indirect, Literal, Opcode, Operand, Statement


@dataclass
class ExecResult:
    next_pc: int | None = None
    halt: bool = False
    output: int | None = None


Executor = Callable[[MachineState, Statement], ExecResult]


@dataclass(frozen=True)
class InstructionDef:
    opcode: Opcode
    summary: str
    syntax: str
    executor: Executor

    @property
    def mnemonic(self) -> str:
        return self.opcode.value


class ExecutionError(Exception):
    def __init__(self, message: str, line_no: int, text: str) -> None:
        super().__init__(message)
        self.message = message
        self.line_no = line_no
        self.text = text

    def __str__(self) -> str:
        return f"{self.message} (line {self.line_no})"


class DivisionByZero(ExecutionError):
    pass


class InputUnderflow(ExecutionError):
    pass


class InvalidStoreTarget(ExecutionError):
    pass


class StepLimitExceeded(ExecutionError):
    pass


INSTRUCTION_SET: Dict[Opcode, InstructionDef] = {}


def register_instruction(opcode: Opcode, summary: str, syntax: str, executor: Executor) -> None:
    if opcode in INSTRUCTION_SET:
        raise ValueError(f"Instruction already registered: {opcode.value}")
    INSTRUCTION_SET[opcode] = InstructionDef(opcode, summary, syntax, executor)


def get_instruction_defs() -> List[InstructionDef]:
    return [INSTRUCTION_SET[opcode] for opcode in Opcode]


def get_executor(opcode: Opcode) -> Executor:
    return INSTRUCTION_SET[opcode].executor


def value_of(op: Operand, state: MachineState) -> int:
    if isinstance(op, Literal):
        return op.value
    if isinstance(op, Direct):
        return state.read_mem(op.address)
    if isinstance(op, Indirect):
        return state.read_mem(state.read_mem(op.address))
    raise TypeError(f"Unknown operand kind: {op!r}")


def address_of(op: Operand, state: MachineState, stmt: Statement) -> int:
    if isinstance(op, Direct):
        return op.address
    if isinstance(op, Indirect):
        return state.read_mem(op.address)
    if isinstance(op, Literal):
        raise InvalidStoreTarget(
            f"Cannot store into literal operand {op} ({stmt.instruction.opcode.value})",
            stmt.line_no,
            stmt.text,
        )
    raise TypeError(f"Unknown operand kind: {op!r}")


def _operand(stmt: Statement) -> Operand:
    op = stmt.instruction.operand
    if op is None:
        raise TypeError(f"{stmt.instruction.opcode.value} without operand")
    return op


def _target(stmt: Statement) -> int:
    label = stmt.instruction.label
    if label is None or label.index is None:
        raise TypeError(f"{stmt.instruction.opcode.value} on unlinked label")
    return label.index


def _truncating_div(dividend: int, divisor: int) -> int:
    quotient = abs(dividend) // abs(divisor)
    return quotient if (dividend < 0) == (divisor < 0) else -quotient


def exec_load(state: MachineState, stmt: Statement) -> ExecResult:
    state.set_acc(value_of(_operand(stmt), state))
    return ExecResult()


def exec_store(state: MachineState, stmt: Statement) -> ExecResult:
    state.write_mem(address_of(_operand(stmt), state, stmt), state.accumulator)
    return ExecResult()


def exec_add(state: MachineState, stmt: Statement) -> ExecResult:
    state.set_acc(state.accumulator + value_of(_operand(stmt), state))
    return ExecResult()


def exec_sub(state: MachineState, stmt: Statement) -> ExecResult:
    state.set_acc(state.accumulator - value_of(_operand(stmt), state))
    return ExecResult()


def exec_mult(state: MachineState, stmt: Statement) -> ExecResult:
    state.set_acc(state.accumulator * value_of(_operand(stmt), state))
    return ExecResult()


def exec_div(state: MachineState, stmt: Statement) -> ExecResult:
    divisor = value_of(_operand(stmt), state)
    if divisor == 0:
        raise DivisionByZero("Division by zero", stmt.line_no, stmt.text)
    state.set_acc(_truncating_div(state.accumulator, divisor))
    return ExecResult()


def exec_read(state: MachineState, stmt: Statement) -> ExecResult:
    addr = address_of(_operand(stmt), state, stmt)
    value = state.next_input()
    if value is None:
        raise InputUnderflow("Input exhausted", stmt.line_no, stmt.text)
    state.write_mem(addr, value)
    return ExecResult()


def exec_write(state: MachineState, stmt: Statement) -> ExecResult:
    return ExecResult(output=value_of(_operand(stmt), state))


def exec_jump(state: MachineState, stmt: Statement) -> ExecResult:
    return ExecResult(next_pc=_target(stmt))


def exec_jgtz(state: MachineState, stmt: Statement) -> ExecResult:
    if state.accumulator > 0:
        return ExecResult(next_pc=_target(stmt))
    return ExecResult()


def exec_jzero(state: MachineState, stmt: Statement) -> ExecResult:
    if state.accumulator == 0:
        return ExecResult(next_pc=_target(stmt))
    return ExecResult()


def exec_halt(state: MachineState, stmt: Statement) -> ExecResult:
    return ExecResult(halt=True)


register_instruction(Opcode.LOAD, "Load accumulator", "load =N | N | ^N", exec_load)
register_instruction(Opcode.STORE, "Store accumulator", "store N | ^N", exec_store)
register_instruction(Opcode.ADD, "Add to accumulator", "add =N | N | ^N", exec_add)
register_instruction(Opcode.SUB, "Subtract from accumulator", "sub =N | N | ^N", exec_sub)
register_instruction(Opcode.MULT, "Multiply accumulator", "mult =N | N | ^N", exec_mult)
register_instruction(Opcode.DIV, "Divide accumulator (truncating)", "div =N | N | ^N", exec_div)
register_instruction(Opcode.READ, "Read next input into memory", "read N | ^N", exec_read)
register_instruction(Opcode.WRITE, "Append value to output", "write =N | N | ^N", exec_write)
register_instruction(Opcode.JUMP, "Jump to label", "jump label", exec_jump)
register_instruction(Opcode.JGTZ, "Jump if accumulator > 0", "jgtz label", exec_jgtz)
register_instruction(Opcode.JZERO, "Jump if accumulator == 0", "jzero label", exec_jzero)
register_instruction(Opcode.HALT, "Stop execution", "halt", exec_halt)

_missing = [opcode.value for opcode in Opcode if opcode not in INSTRUCTION_SET]
if _missing:
    raise ImportError(f"No executor registered for: {', '.join(_missing)}")
