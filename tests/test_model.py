import pytest

from ramcore.model import Direct, Indirect, Instruction, Label, Literal, Opcode, word_range, wrap_word


def test_opcode_lookup_is_case_insensitive():
    assert Opcode.from_mnemonic("jZeRo") is Opcode.JZERO
    assert Opcode.from_mnemonic("nop") is None


def test_opcode_payload_kinds():
    assert Opcode.JUMP.takes_label and not Opcode.JUMP.takes_operand
    assert Opcode.READ.takes_operand and not Opcode.READ.takes_label
    assert not Opcode.HALT.takes_operand and not Opcode.HALT.takes_label


def test_instruction_renders_source_form():
    assert str(Instruction(Opcode.LOAD, operand=Literal(-3))) == "load =-3"
    assert str(Instruction(Opcode.STORE, operand=Indirect(2))) == "store ^2"
    assert str(Instruction(Opcode.WRITE, operand=Direct(0))) == "write 0"
    assert str(Instruction(Opcode.JGTZ, label=Label("top"))) == "jgtz top"
    assert str(Instruction(Opcode.HALT)) == "halt"


def test_label_resolves_once():
    label = Label("x")
    assert not label.resolved

    label.resolve(4)

    assert label.resolved and label.index == 4
    with pytest.raises(ValueError):
        label.resolve(5)


@pytest.mark.parametrize(
    ("value", "bits", "expected"),
    [(127, 8, 127), (128, 8, -128), (-129, 8, 127), (2**63, 64, -(2**63)), (-5, 64, -5)],
)
def test_wrap_word(value, bits, expected):
    assert wrap_word(value, bits) == expected


def test_word_range():
    assert word_range(16) == (-32768, 32767)
