from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ramcore.instructions import ExecResult, ExecutionError, StepLimitExceeded, get_executor
from ramcore.machine import MachineState
from ramcore.model import Program


logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    halted: bool = False
    error: Optional[ExecutionError] = None
    output: Optional[int] = None


class Emulator:
    """Runs a linked program against a fresh :class:`MachineState`.

    The machine word width is the one the program was parsed with.
    """

    def __init__(
        self,
        program: Program,
        inputs: Iterable[int] = (),
        max_steps: Optional[int] = None,
    ) -> None:
        if not program.linked:
            raise ValueError("Program must be linked before execution")
        self.program = program
        self.max_steps = max_steps
        self.state = MachineState(word_bits=program.word_bits)
        self.state.reset(inputs)

    @property
    def halted(self) -> bool:
        return self.state.halted

    def reset(self, inputs: Iterable[int] = ()) -> None:
        self.state.reset(inputs)

    def step(self) -> StepOutcome:
        state = self.state
        if state.halted:
            return StepOutcome(halted=True)

        stmt = self.program.statements[state.pc]
        if self.max_steps is not None and state.steps >= self.max_steps:
            error = StepLimitExceeded(
                f"Step limit of {self.max_steps} exceeded", stmt.line_no, stmt.text
            )
            state.halted = True
            return StepOutcome(error=error)

        logger.debug("@%d (line %d): %s acc=%d", state.pc, stmt.line_no, stmt.instruction, state.accumulator)
        try:
            result: ExecResult = get_executor(stmt.instruction.opcode)(state, stmt)
        except ExecutionError as exc:
            state.halted = True
            return StepOutcome(error=exc)

        state.steps += 1
        if result.output is not None:
            state.output.append(result.output)

        if result.halt:
            state.halted = True
            return StepOutcome(halted=True, output=result.output)

        if result.next_pc is None:
            state.pc += 1
        else:
            state.pc = result.next_pc
        return StepOutcome(output=result.output)

    def run(self) -> List[int]:
        while True:
            outcome = self.step()
            if outcome.error is not None:
                raise outcome.error
            if outcome.halted:
                return list(self.state.output)


def execute(
    program: Program,
    inputs: Iterable[int] = (),
    max_steps: Optional[int] = None,
) -> List[int]:
    emulator = Emulator(program, inputs, max_steps=max_steps)
    output = emulator.run()
    logger.info("halted after %d steps with %d output values", emulator.state.steps, len(output))
    return output
