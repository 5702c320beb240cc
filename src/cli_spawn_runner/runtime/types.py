"""Runtime data types.

cli-spawn-runner runtime module v0.1.0

Defines the command specification handed to ProcessRunner and the outcome
variants it settles with.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

__all__ = [
    "DEFAULT_SUCCESS_EXIT_CODES",
    "CommandSpec",
    "RunResult",
    "FailureKind",
    "Success",
    "Failure",
    "RunOutcome",
]

DEFAULT_SUCCESS_EXIT_CODES: frozenset[int] = frozenset({0})


@dataclass(frozen=True)
class CommandSpec:
    """Specification for one invocation of an external tool.

    Attributes:
        arguments: Arguments passed to the executable (must not be empty)
        working_directory: Working directory for the process
        label: Human-readable invocation label used in logs and errors
        success_exit_codes: Exit codes treated as success (None = {0}).
            An explicit empty set is kept: no exit code is then a success.
        executable: Tool to run
        env: Environment variables (None = inherit parent)
    """

    arguments: tuple[str, ...]
    working_directory: Path
    label: str
    success_exit_codes: frozenset[int] | None = None
    executable: str = "git"
    env: Mapping[str, str] | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.arguments, (str, bytes)):
            raise TypeError("arguments must be a sequence of strings, not a single string")
        # frozen: assign through object.__setattr__
        object.__setattr__(self, "arguments", tuple(self.arguments))
        if not self.arguments:
            raise ValueError("arguments must not be empty")
        if not isinstance(self.working_directory, Path):
            object.__setattr__(self, "working_directory", Path(self.working_directory))
        if self.success_exit_codes is not None and not isinstance(
            self.success_exit_codes, frozenset
        ):
            codes: Iterable[int] = self.success_exit_codes
            object.__setattr__(self, "success_exit_codes", frozenset(codes))

    @property
    def argv(self) -> list[str]:
        """Full command line, executable first."""
        return [self.executable, *self.arguments]

    @property
    def command_name(self) -> str:
        """Name used in log lines, e.g. ``status: git status --porcelain``."""
        return f"{self.label}: {self.executable} {' '.join(self.arguments)}"

    @property
    def effective_success_exit_codes(self) -> frozenset[int]:
        if self.success_exit_codes is None:
            return DEFAULT_SUCCESS_EXIT_CODES
        return self.success_exit_codes


@dataclass(frozen=True)
class RunResult:
    """Captured output of a finished invocation."""

    stdout: bytes
    stderr: bytes


class FailureKind(str, Enum):
    """Failure classification.

    - SPAWN_OR_IO: the process could not be created or a stream read failed
    - UNEXPECTED_EXIT_CODE: exit code not in the success set
    """

    SPAWN_OR_IO = "spawn_or_io"
    UNEXPECTED_EXIT_CODE = "unexpected_exit_code"


@dataclass(frozen=True)
class Success:
    result: RunResult

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> RunResult:
        return self.result


@dataclass(frozen=True)
class Failure:
    """Failed invocation.

    Attributes:
        kind: Failure classification
        message: Human-readable description
        error: The exception to surface to callers (the original OSError or
            spawn-time ValueError for spawn/I-O faults,
            UnexpectedExitCodeError otherwise)
    """

    kind: FailureKind
    message: str
    error: BaseException

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> RunResult:
        raise self.error


RunOutcome = Union[Success, Failure]
