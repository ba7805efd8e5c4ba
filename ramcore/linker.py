from __future__ import annotations

import logging
from typing import Dict, Optional

from ramcore.model import Program
from ramcore.parser import parse_program
from ramcore.profiles import Profile, profile_manager


logger = logging.getLogger(__name__)


class LinkError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UndefinedLabel(LinkError):
    def __init__(self, name: str, line_no: int, text: str) -> None:
        super().__init__(f"Undefined label: {name!r}")
        self.name = name
        self.line_no = line_no
        self.text = text


def link(program: Program) -> Program:
    """Resolve every branch label of ``program`` in place and return it.

    A name defined more than once maps to its last definition.
    """
    if program.linked:
        raise LinkError("Program is already linked")

    mapping: Dict[str, int] = {}
    for index, stmt in enumerate(program.statements):
        for label in stmt.labels:
            if label.name in mapping:
                logger.warning(
                    "label %r redefined at line %d; statement %d replaces %d",
                    label.name,
                    stmt.line_no,
                    index,
                    mapping[label.name],
                )
            mapping[label.name] = index

    for stmt in program.statements:
        label = stmt.instruction.label
        if label is not None and label.name not in mapping:
            raise UndefinedLabel(label.name, stmt.line_no, stmt.text)

    # nothing is resolved until every reference is known to exist
    for index, stmt in enumerate(program.statements):
        for label in stmt.labels:
            label.resolve(index)
        if stmt.instruction.label is not None:
            stmt.instruction.label.resolve(mapping[stmt.instruction.label.name])

    program.labels = mapping
    program.linked = True
    logger.debug("linked %d statements, %d labels", len(program), len(mapping))
    return program


def load_program(text: str, profile: Optional[Profile] = None) -> Program:
    """Parse, check against ``profile`` (default: the active one) and link."""
    if profile is None:
        profile = profile_manager.active_profile
    program = parse_program(
        text,
        word_bits=profile.word_bits,
        allow_duplicate_labels=profile.duplicate_labels == "last_wins",
    )
    profile.validate_program(program)
    return link(program)
