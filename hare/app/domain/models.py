"""Domain models."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ScriptInvocation:
    """One pending script run: where it lives and what it receives."""

    script_path: Path
    headers: dict[str, str]
    environment: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ScriptResult:
    """Outcome of a finished script. Exit status is recorded, never acted on."""

    script_path: Path
    returncode: int
    stdout: bytes

    @property
    def output_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")
