from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional

from ramcore.model import Opcode, Program


ALLOWED_WORD_BITS = {8, 16, 32, 64}
DUPLICATE_LABEL_POLICIES = {"reject", "last_wins"}


class ProfileError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProfileValidationError(Exception):
    def __init__(self, message: str, line_no: int, text: str) -> None:
        super().__init__(message)
        self.message = message
        self.line_no = line_no
        self.text = text


@dataclass(frozen=True)
class Profile:
    schema_version: int
    name: str
    description: str = ""
    word_bits: int = 64
    duplicate_labels: str = "reject"
    max_steps: Optional[int] = None
    opcodes: FrozenSet[Opcode] = frozenset(Opcode)
    notes: Dict[str, str] = field(default_factory=dict)

    def allows(self, opcode: Opcode) -> bool:
        return opcode in self.opcodes

    def validate_program(self, program: Program) -> None:
        for stmt in program.statements:
            opcode = stmt.instruction.opcode
            if self.allows(opcode):
                continue
            raise ProfileValidationError(
                f"{opcode.value} is not available in profile {self.name!r}",
                stmt.line_no,
                stmt.text,
            )


def _bundled_dir() -> Path:
    return Path(__file__).resolve().parent / "assets" / "profiles"


class ProfileManager:
    def __init__(self, default_path: Optional[Path] = None) -> None:
        self.default_path = default_path or _bundled_dir() / "default.json"
        self.active_profile: Optional[Profile] = None
        self.active_path: Optional[Path] = None
        self._callbacks: List[Callable[[Profile], None]] = []
        self.load_default()

    def on_change(self, callback: Callable[[Profile], None]) -> None:
        self._callbacks.append(callback)

    def _emit_change(self) -> None:
        if not self.active_profile:
            return
        for callback in list(self._callbacks):
            callback(self.active_profile)

    def list_bundled(self) -> List[Path]:
        if not self.default_path.exists():
            return []
        return sorted(self.default_path.parent.glob("*.json"))

    def load_default(self) -> Profile:
        return self.load_from_path(self.default_path)

    def load_from_path(self, path: Path | str) -> Profile:
        resolved = Path(path).expanduser().resolve()
        data = self._load_json(resolved)
        profile = self._validate_profile(data)
        self.active_profile = profile
        self.active_path = resolved
        self._emit_change()
        return profile

    def reload(self) -> Profile:
        if self.active_path:
            return self.load_from_path(self.active_path)
        return self.load_default()

    def validate_program(self, program: Program) -> None:
        if not self.active_profile:
            raise ProfileError("No active profile.")
        self.active_profile.validate_program(program)

    def _load_json(self, path: Path) -> dict:
        if not path.exists():
            raise ProfileError(f"Profile not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except json.JSONDecodeError as exc:
            raise ProfileError(f"Invalid JSON in {path}: {exc}") from exc
        except OSError as exc:
            raise ProfileError(f"Failed to read profile: {exc}") from exc

    def _validate_profile(self, data: dict) -> Profile:
        if not isinstance(data, dict):
            raise ProfileError("Profile must be a JSON object.")
        schema_version = data.get("schema_version")
        if not isinstance(schema_version, int) or isinstance(schema_version, bool):
            raise ProfileError("schema_version must be an integer.")
        if schema_version != 1:
            raise ProfileError(f"Unsupported schema_version: {schema_version}")
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ProfileError("name is required and must be a string.")
        description = data.get("description") or ""
        if not isinstance(description, str):
            raise ProfileError("description must be a string if provided.")
        word_bits = data.get("word_bits", 64)
        if not isinstance(word_bits, int) or isinstance(word_bits, bool) or word_bits not in ALLOWED_WORD_BITS:
            raise ProfileError("word_bits must be one of: 8, 16, 32, 64.")
        duplicate_labels = data.get("duplicate_labels", "reject")
        if duplicate_labels not in DUPLICATE_LABEL_POLICIES:
            raise ProfileError("duplicate_labels must be one of: reject, last_wins.")
        max_steps = data.get("max_steps")
        if max_steps is not None:
            if not isinstance(max_steps, int) or isinstance(max_steps, bool) or max_steps <= 0:
                raise ProfileError("max_steps must be a positive integer or null.")
        opcodes = self._validate_opcodes(data.get("opcodes"))
        notes = data.get("notes") or {}
        if not isinstance(notes, dict) or any(not isinstance(v, str) for v in notes.values()):
            raise ProfileError("notes must be an object of strings.")
        return Profile(
            schema_version=schema_version,
            name=name.strip(),
            description=description.strip(),
            word_bits=word_bits,
            duplicate_labels=duplicate_labels,
            max_steps=max_steps,
            opcodes=opcodes,
            notes={key.upper(): value for key, value in notes.items()},
        )

    def _validate_opcodes(self, entries) -> FrozenSet[Opcode]:
        if entries is None:
            return frozenset(Opcode)
        if not isinstance(entries, list) or not entries:
            raise ProfileError("opcodes must be a non-empty array if provided.")
        opcodes = set()
        for entry in entries:
            opcode = Opcode.from_mnemonic(entry) if isinstance(entry, str) else None
            if opcode is None:
                raise ProfileError(f"Unknown opcode in profile: {entry}")
            if opcode in opcodes:
                raise ProfileError(f"Duplicate opcode in profile: {opcode.value}")
            opcodes.add(opcode)
        if Opcode.HALT not in opcodes:
            raise ProfileError("opcodes must include HALT.")
        return frozenset(opcodes)


profile_manager = ProfileManager()
