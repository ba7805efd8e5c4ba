from pathlib import Path

import pytest

from ramcore.cli import main, parse_inputs
from ramcore.profiles import profile_manager


def _source(tmp_path: Path, text: str) -> str:
    path = tmp_path / "prog.ram"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_runs_program_and_prints_output(tmp_path: Path, capsys):
    path = _source(tmp_path, "read 0\nload 0\nmult =2\nstore 1\nwrite 1\nwrite 0\n")

    assert main([path, "-i", "21"]) == 0

    assert capsys.readouterr().out.split() == ["42", "21"]


def test_reads_inputs_from_file(tmp_path: Path, capsys):
    path = _source(tmp_path, "read 0\nread 1\nwrite 1\nwrite 0")
    inputs = tmp_path / "in.txt"
    inputs.write_text("1, 2\n", encoding="utf-8")

    assert main([path, "--input-file", str(inputs)]) == 0

    assert capsys.readouterr().out.split() == ["2", "1"]


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("load =5 extra\nhalt", "parse error (line 1)"),
        ("jump nowhere\nhalt", "undefined label 'nowhere'"),
        ("load =10\ndiv =0\nhalt", "DivisionByZero"),
        ("read 0\nhalt", "InputUnderflow"),
    ],
)
def test_errors_exit_non_zero(tmp_path: Path, capsys, text, expected):
    assert main([_source(tmp_path, text)]) == 1

    captured = capsys.readouterr()
    assert expected in captured.err
    assert captured.out == ""


def test_missing_file(tmp_path: Path, capsys):
    assert main([str(tmp_path / "absent.ram")]) == 1
    assert "error" in capsys.readouterr().err


def test_max_steps_option(tmp_path: Path, capsys):
    assert main([_source(tmp_path, "loop: jump loop"), "--max-steps", "10"]) == 1
    assert "StepLimitExceeded" in capsys.readouterr().err


def test_dump_lists_linked_program(tmp_path: Path, capsys):
    path = _source(tmp_path, "start: load =1\njgtz start")

    main([path, "--dump", "--max-steps", "5"])

    out = capsys.readouterr().out
    assert "start:" in out
    assert "jgtz start -> 0" in out
    assert "line    -" in out


def test_parse_inputs_accepts_commas_and_whitespace():
    assert parse_inputs("1, -2\n3") == [1, -2, 3]


def test_profile_option_restricts_vocabulary(tmp_path: Path, capsys):
    bundled = {path.stem: str(path) for path in profile_manager.list_bundled()}
    path = _source(tmp_path, "load =3\nmult =3\nhalt")

    assert main([path, "--profile", bundled["counter_machine"]]) == 1

    assert "MULT is not available" in capsys.readouterr().err


def test_input_outside_word_width_is_rejected(tmp_path: Path, capsys):
    bundled = {path.stem: str(path) for path in profile_manager.list_bundled()}
    path = _source(tmp_path, "read 0\nwrite 0")

    assert main([path, "--profile", bundled["counter_machine"], "-i", "70000"]) == 1

    captured = capsys.readouterr()
    assert "70000" in captured.err and "16-bit" in captured.err
    assert captured.out == ""


def test_input_file_values_are_range_checked(tmp_path: Path, capsys):
    path = _source(tmp_path, "read 0\nwrite 0")
    inputs = tmp_path / "in.txt"
    inputs.write_text(str(2**63), encoding="utf-8")

    assert main([path, "--input-file", str(inputs)]) == 1
    assert "error:" in capsys.readouterr().err


@pytest.mark.parametrize("value", ["0", "-1", "ten"])
def test_max_steps_must_be_positive(tmp_path: Path, capsys, value):
    with pytest.raises(SystemExit) as exc:
        main([_source(tmp_path, "halt"), "--max-steps", value])

    assert exc.value.code == 2
    assert "--max-steps" in capsys.readouterr().err
