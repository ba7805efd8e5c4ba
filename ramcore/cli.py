from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from ramcore.emulator import execute
from ramcore.instructions import ExecutionError
from ramcore.linker import LinkError, UndefinedLabel, load_program
from ramcore.machine import check_inputs
from ramcore.model import Program
from ramcore.parser import ParseError
from ramcore.profiles import ProfileError, ProfileValidationError, profile_manager


logger = logging.getLogger("ramcore")

LOGGING_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_inputs(text: str) -> List[int]:
    return [int(token) for token in text.replace(",", " ").split()]


def dump_program(program: Program, out: TextIO) -> None:
    for index, stmt in enumerate(program.statements):
        labels = " ".join(f"{label.name}:" for label in stmt.labels)
        line = "-" if stmt.implicit else str(stmt.line_no)
        target = ""
        if stmt.instruction.label is not None:
            target = f" -> {stmt.instruction.label.index}"
        out.write(f"[{index:4d}] line {line:>4} {labels:<16} {stmt.instruction}{target}\n")


def positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {raw}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ram-run", description="Run a RAM machine program.")
    parser.add_argument("file", help="program source file")
    parser.add_argument("--input", "-i", type=int, nargs="*", default=[], help="input values, in order")
    parser.add_argument("--input-file", help="file of whitespace or comma separated input values")
    parser.add_argument("--profile", "-p", help="machine profile JSON file")
    parser.add_argument("--max-steps", type=positive_int, help="abort after this many executed instructions")
    parser.add_argument("--dump", "-d", action="store_true", help="print the linked program before running")
    parser.add_argument("--log-level", "-l", choices=tuple(LOGGING_LEVELS), default="error")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig()
    logger.setLevel(LOGGING_LEVELS[args.log_level])

    try:
        profile = profile_manager.load_from_path(args.profile) if args.profile else profile_manager.active_profile
        source = Path(args.file).read_text(encoding="utf-8")
        inputs = list(args.input)
        if args.input_file:
            inputs.extend(parse_inputs(Path(args.input_file).read_text(encoding="utf-8")))
        inputs = check_inputs(inputs, profile.word_bits)
    except (OSError, ValueError, ProfileError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        program = load_program(source, profile)
    except (ParseError, ProfileValidationError) as exc:
        print(f"parse error (line {exc.line_no}): {exc.message}", file=sys.stderr)
        return 1
    except UndefinedLabel as exc:
        print(f"link error: undefined label {exc.name!r} (line {exc.line_no})", file=sys.stderr)
        return 1
    except LinkError as exc:
        print(f"link error: {exc.message}", file=sys.stderr)
        return 1

    if args.dump:
        dump_program(program, sys.stdout)

    max_steps = args.max_steps if args.max_steps is not None else profile.max_steps
    try:
        output = execute(program, inputs, max_steps=max_steps)
    except ExecutionError as exc:
        print(f"runtime error (line {exc.line_no}): {type(exc).__name__}: {exc.message}", file=sys.stderr)
        return 1

    for value in output:
        print(value)
    return 0


if __name__ == "__main__":
    sys.exit(main())
