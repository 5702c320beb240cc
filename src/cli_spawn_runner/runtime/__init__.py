"""Runtime module for running external tools to completion.

This module spawns a command, collects its complete stdout and stderr as
bytes, and reconciles stream completion with the exit status into a single
outcome.
"""

from __future__ import annotations

from .accumulator import StreamAccumulator
from .completion import CompletionState
from .errors import SpawnOrIOFault, SpawnRunnerError, UnexpectedExitCodeError
from .process_runner import ProcessRunner, monotonic_ms, spawn_and_complete
from .types import (
    DEFAULT_SUCCESS_EXIT_CODES,
    CommandSpec,
    Failure,
    FailureKind,
    RunOutcome,
    RunResult,
    Success,
)

__all__ = [
    "CommandSpec",
    "CompletionState",
    "DEFAULT_SUCCESS_EXIT_CODES",
    "Failure",
    "FailureKind",
    "ProcessRunner",
    "RunOutcome",
    "RunResult",
    "SpawnOrIOFault",
    "SpawnRunnerError",
    "StreamAccumulator",
    "Success",
    "UnexpectedExitCodeError",
    "monotonic_ms",
    "spawn_and_complete",
]
