from __future__ import annotations

import re
from typing import List, Optional, Tuple

from ramcore.model import (
    DEFAULT_WORD_BITS,
    Direct,
    Indirect,
    Instruction,
    Label,
    Literal,
    Opcode,
    Operand,
    Program,
    Statement,
    word_range,
)


class ParseError(Exception):
    def __init__(self, message: str, line_no: int, text: str) -> None:
        super().__init__(message)
        self.message = message
        self.line_no = line_no
        self.text = text

    def __str__(self) -> str:
        return f"{self.message} (line {self.line_no})"


class MalformedLine(ParseError):
    pass


class InvalidOperand(ParseError):
    pass


class UnknownInstruction(ParseError):
    pass


class MissingLabel(ParseError):
    pass


class DuplicateLabel(ParseError):
    pass


INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def _strip_comment(line: str) -> str:
    return line.split("#", 1)[0]


def _parse_integer(raw: str, word_bits: int) -> Optional[int]:
    if not INTEGER_RE.fullmatch(raw):
        return None
    value = int(raw, 10)
    low, high = word_range(word_bits)
    if not low <= value <= high:
        return None
    return value


def _parse_operand(raw: str, word_bits: int) -> Optional[Operand]:
    if raw.startswith("="):
        value = _parse_integer(raw[1:], word_bits)
        return Literal(value) if value is not None else None
    if raw.startswith("^"):
        address = _parse_integer(raw[1:], word_bits)
        return Indirect(address) if address is not None else None
    address = _parse_integer(raw, word_bits)
    return Direct(address) if address is not None else None


def _parse_instruction(tokens: List[str], line_no: int, raw_line: str, word_bits: int) -> Instruction:
    mnemonic = tokens[0]
    arg = tokens[1] if len(tokens) > 1 else ""
    opcode = Opcode.from_mnemonic(mnemonic)
    if opcode is None:
        raise UnknownInstruction(f"Unknown instruction: {mnemonic}", line_no, raw_line)

    if opcode is Opcode.HALT:
        # a trailing operand on halt is ignored
        return Instruction(opcode)

    if opcode.takes_label:
        if not arg:
            raise MissingLabel(f"Label not provided for {opcode.value}", line_no, raw_line)
        return Instruction(opcode, label=Label(arg))

    operand = _parse_operand(arg, word_bits)
    if operand is None:
        raise InvalidOperand(f"Invalid operand for {opcode.value}: {arg!r}", line_no, raw_line)
    return Instruction(opcode, operand=operand)


def parse_line(
    raw_line: str, line_no: int, word_bits: int = DEFAULT_WORD_BITS
) -> Tuple[Optional[Label], Optional[Instruction]]:
    tokens = _strip_comment(raw_line).split()
    label: Optional[Label] = None
    if tokens and tokens[0].endswith(":"):
        label = Label(tokens.pop(0)[:-1])

    if not tokens:
        return label, None
    if len(tokens) > 2:
        raise MalformedLine(f"Wrong line format: {raw_line.strip()!r}", line_no, raw_line)
    return label, _parse_instruction(tokens, line_no, raw_line, word_bits)


def parse_program(
    text: str,
    word_bits: int = DEFAULT_WORD_BITS,
    allow_duplicate_labels: bool = False,
) -> Program:
    """Parse RAM source into an unlinked :class:`Program`.

    Labels found on their own lines are carried forward to the next
    instruction. The result always ends with a HALT; one is appended when the
    source does not end with it or when trailing labels need a target.
    """
    statements: List[Statement] = []
    pending: List[Label] = []
    seen: set[str] = set()

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        label, instruction = parse_line(raw_line, line_no, word_bits)
        if label is not None:
            if label.name in seen and not allow_duplicate_labels:
                raise DuplicateLabel(f"Duplicate label: {label.name}", line_no, raw_line)
            seen.add(label.name)
            pending.append(label)
        if instruction is None:
            continue
        statements.append(Statement(line_no, instruction, pending, raw_line.rstrip("\n")))
        pending = []

    if pending or not statements or statements[-1].instruction.opcode is not Opcode.HALT:
        statements.append(Statement(0, Instruction(Opcode.HALT), pending))

    return Program(statements=statements, word_bits=word_bits)
