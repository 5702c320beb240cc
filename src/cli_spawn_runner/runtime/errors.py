"""Runtime error taxonomy.

cli-spawn-runner runtime module v0.1.0

Two kinds of failure end an invocation:
- spawn/I-O faults: the original ``OSError`` raised by the spawn primitive or
  a stream read, carried unchanged
- unexpected exit codes: ``UnexpectedExitCodeError``
"""

from __future__ import annotations

__all__ = [
    "SpawnRunnerError",
    "SpawnOrIOFault",
    "UnexpectedExitCodeError",
    "format_exit_code_message",
]

# Spawn and stream faults are propagated as the primitive raised them.
SpawnOrIOFault = OSError


def format_exit_code_message(label: str, exit_code: int | None) -> str:
    """Build the message reported for an exit code outside the success set."""
    return (
        f"{label} returned an unexpected exit code '{exit_code}' "
        f"which should be handled by the caller."
    )


class SpawnRunnerError(Exception):
    """Base exception for cli-spawn-runner."""
    pass


class UnexpectedExitCodeError(SpawnRunnerError):
    """The process exited with a code that is not in the success set.

    Attributes:
        label: Invocation label
        exit_code: Exit code reported by the process (None if killed by a signal)
        signal: Terminating signal number, if any
    """

    def __init__(
        self,
        label: str,
        exit_code: int | None,
        signal: int | None = None,
    ) -> None:
        self.label = label
        self.exit_code = exit_code
        self.signal = signal
        self.message = format_exit_code_message(label, exit_code)
        super().__init__(self.message)
