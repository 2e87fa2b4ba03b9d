"""
Command Resolver
================
Maps a pipeline stage to the cargo command it runs.

Resolver never executes commands — it only returns argument lists.
Deterministic: same stage → same command, always.
"""
from dataclasses import dataclass
from typing import Optional

from safex.core.config import CARGO_BIN


@dataclass(frozen=True)
class ResolvedCommand:
    """
    Immutable cargo invocation.

    Fields
    ------
    stage : str
        Pipeline stage ("clippy" or "fuzz_test").
    args : tuple[str, ...]
        Arguments after the cargo binary.
    """
    stage: str
    args: tuple[str, ...]

    def argv(self, cargo_bin: str = CARGO_BIN) -> list[str]:
        return [cargo_bin, *self.args]

    def shell(self, cargo_bin: str = "cargo") -> str:
        return " ".join([cargo_bin, *self.args])


_COMMAND_MAP: dict[str, ResolvedCommand] = {
    # Structured diagnostics, one JSON object per line
    "clippy": ResolvedCommand(
        stage="clippy",
        args=("clippy", "--message-format=json"),
    ),
    # Harness crate: library tests with the Anchor integration feature on
    "fuzz_test": ResolvedCommand(
        stage="fuzz_test",
        args=("test", "--lib", "--features=anchor"),
    ),
}


def resolve_command(stage: str) -> Optional[ResolvedCommand]:
    """Look up the cargo command for a stage. None if the stage is unknown."""
    return _COMMAND_MAP.get(stage)
