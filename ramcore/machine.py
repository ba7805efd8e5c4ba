from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from ramcore.model import DEFAULT_WORD_BITS, word_range, wrap_word


def check_inputs(values: Iterable[int], word_bits: int = DEFAULT_WORD_BITS) -> List[int]:
    low, high = word_range(word_bits)
    checked = list(values)
    for value in checked:
        if not low <= value <= high:
            raise ValueError(f"Input value {value} does not fit in a {word_bits}-bit word")
    return checked


@dataclass
class MachineState:
    word_bits: int = DEFAULT_WORD_BITS
    accumulator: int = 0
    memory: Dict[int, int] = field(default_factory=dict)
    pc: int = 0
    halted: bool = False
    steps: int = 0
    output: List[int] = field(default_factory=list)
    _inputs: Iterator[int] = field(default_factory=lambda: iter(()), repr=False)

    def reset(self, inputs: Iterable[int] = ()) -> None:
        self.accumulator = 0
        self.memory = {}
        self.pc = 0
        self.halted = False
        self.steps = 0
        self.output = []
        self._inputs = iter(inputs)

    def wrap(self, value: int) -> int:
        return wrap_word(value, self.word_bits)

    def set_acc(self, value: int) -> None:
        self.accumulator = self.wrap(value)

    def read_mem(self, addr: int) -> int:
        return self.memory.get(addr, 0)

    def write_mem(self, addr: int, value: int) -> None:
        self.memory[addr] = self.wrap(value)

    def next_input(self) -> Optional[int]:
        return next(self._inputs, None)

    def memory_snapshot(self) -> List[tuple[int, int]]:
        return sorted(self.memory.items())
