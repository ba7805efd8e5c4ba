from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union


DEFAULT_WORD_BITS = 64


def word_range(bits: int = DEFAULT_WORD_BITS) -> Tuple[int, int]:
    return -(1 << (bits - 1)), (1 << (bits - 1)) - 1


def wrap_word(value: int, bits: int = DEFAULT_WORD_BITS) -> int:
    mask = (1 << bits) - 1
    value &= mask
    if value & (1 << (bits - 1)):
        value -= 1 << bits
    return value


@dataclass(frozen=True)
class Literal:
    value: int

    def __str__(self) -> str:
        return f"={self.value}"


@dataclass(frozen=True)
class Direct:
    address: int

    def __str__(self) -> str:
        return str(self.address)


@dataclass(frozen=True)
class Indirect:
    address: int

    def __str__(self) -> str:
        return f"^{self.address}"


Operand = Union[Literal, Direct, Indirect]


class Opcode(Enum):
    LOAD = "LOAD"
    STORE = "STORE"
    ADD = "ADD"
    SUB = "SUB"
    MULT = "MULT"
    DIV = "DIV"
    READ = "READ"
    WRITE = "WRITE"
    JUMP = "JUMP"
    JGTZ = "JGTZ"
    JZERO = "JZERO"
    HALT = "HALT"

    @classmethod
    def from_mnemonic(cls, mnemonic: str) -> Optional["Opcode"]:
        try:
            return cls(mnemonic.upper())
        except ValueError:
            return None

    @property
    def takes_label(self) -> bool:
        return self in BRANCH_OPCODES

    @property
    def takes_operand(self) -> bool:
        return self not in BRANCH_OPCODES and self is not Opcode.HALT


BRANCH_OPCODES = frozenset({Opcode.JUMP, Opcode.JGTZ, Opcode.JZERO})


@dataclass
class Label:
    """A symbolic name; ``index`` is filled in exactly once by the linker."""

    name: str
    index: Optional[int] = None

    @property
    def resolved(self) -> bool:
        return self.index is not None

    def resolve(self, index: int) -> None:
        if self.index is not None:
            raise ValueError(f"Label {self.name!r} is already resolved to {self.index}")
        self.index = index

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    operand: Optional[Operand] = None
    label: Optional[Label] = None

    def __str__(self) -> str:
        mnemonic = self.opcode.value.lower()
        if self.label is not None:
            return f"{mnemonic} {self.label.name}"
        if self.operand is not None:
            return f"{mnemonic} {self.operand}"
        return mnemonic


@dataclass
class Statement:
    line_no: int
    instruction: Instruction
    labels: List[Label] = field(default_factory=list)
    text: str = ""

    @property
    def implicit(self) -> bool:
        return self.line_no == 0


@dataclass
class Program:
    statements: List[Statement]
    labels: Dict[str, int] = field(default_factory=dict)
    linked: bool = False
    word_bits: int = DEFAULT_WORD_BITS

    def __len__(self) -> int:
        return len(self.statements)

    def get_label(self, name: str) -> Optional[int]:
        return self.labels.get(name)

    def source_lines(self) -> List[int]:
        return [stmt.line_no for stmt in self.statements if not stmt.implicit]
