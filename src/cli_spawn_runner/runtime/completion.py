"""Completion state machine for a single invocation.

cli-spawn-runner runtime module v0.1.0

Five event sources feed one invocation:
- stdout data / end-of-stream
- stderr data / end-of-stream
- process error (spawn failure, stream I/O error)
- process exit (code and/or signal)

They may arrive in any order. CompletionState reconciles them into exactly one
RunOutcome:
- Success only once both streams have reached end-of-stream
- Failure on the first process error or exit code outside the success set
- Every event after settlement is ignored
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import anyio

from .accumulator import StreamAccumulator
from .errors import UnexpectedExitCodeError
from .types import CommandSpec, Failure, FailureKind, RunOutcome, RunResult, Success

__all__ = ["CompletionState"]

logger = logging.getLogger(__name__)


class CompletionState:
    """Settlement state machine for one invocation.

    Attributes:
        spec: Command being run
        stdout_done: stdout reached end-of-stream
        stderr_done: stderr reached end-of-stream
        settled: An outcome has been produced
        outcome: The outcome, once settled
    """

    def __init__(
        self,
        spec: CommandSpec,
        on_stdout_end: Callable[[], None] | None = None,
    ) -> None:
        self.spec = spec
        self.stdout = StreamAccumulator("stdout")
        self.stderr = StreamAccumulator("stderr")
        self.stdout_done = False
        self.stderr_done = False
        self.settled = False
        self.outcome: RunOutcome | None = None
        self._on_stdout_end = on_stdout_end
        self._event: anyio.Event | None = None

    # -- stream events ------------------------------------------------------

    def stdout_data(self, chunk: bytes | str) -> None:
        if self.settled or self.stdout_done:
            return
        self.stdout.append(chunk)

    def stderr_data(self, chunk: bytes | str) -> None:
        if self.settled or self.stderr_done:
            return
        self.stderr.append(chunk)

    def stdout_end(self) -> None:
        if self.stdout_done:
            return
        self.stdout_done = True
        self.stdout.finalize()
        # elapsed time is measured at stdout end
        if self._on_stdout_end is not None:
            self._on_stdout_end()
        self._maybe_succeed()

    def stderr_end(self) -> None:
        if self.stderr_done:
            return
        self.stderr_done = True
        self.stderr.finalize()
        self._maybe_succeed()

    # -- process events -----------------------------------------------------

    def process_error(self, error: BaseException) -> None:
        self._settle(Failure(FailureKind.SPAWN_OR_IO, str(error), error))

    def process_exit(self, exit_code: int | None, signal: int | None = None) -> None:
        if exit_code in self.spec.effective_success_exit_codes:
            return
        error = UnexpectedExitCodeError(self.spec.label, exit_code, signal)
        self._settle(Failure(FailureKind.UNEXPECTED_EXIT_CODE, error.message, error))

    # -- settlement ---------------------------------------------------------

    def _maybe_succeed(self) -> None:
        if self.stdout_done and self.stderr_done:
            result = RunResult(stdout=self.stdout.finalize(), stderr=self.stderr.finalize())
            self._settle(Success(result))

    def _settle(self, outcome: RunOutcome) -> None:
        if self.settled:
            logger.debug(
                f"Ignoring {type(outcome).__name__} for {self.spec.label}: already settled"
            )
            return
        self.settled = True
        self.outcome = outcome
        if self._event is not None:
            self._event.set()

    async def wait(self) -> RunOutcome:
        """Wait until the invocation settles and return its outcome."""
        if not self.settled:
            if self._event is None:
                self._event = anyio.Event()
            await self._event.wait()
        if self.outcome is None:
            raise RuntimeError(f"{self.spec.label} woke without an outcome")
        return self.outcome
