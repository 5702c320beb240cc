"""Process runner that captures complete output and settles exactly once.

cli-spawn-runner runtime module v0.1.0

This module provides:
- Spawning an external tool with stdout/stderr piped as raw bytes
- Concurrent draining of both streams and the exit status
- A single RunOutcome per invocation (see completion.CompletionState)
- Slow-invocation timing logs
- Cancel-safe cleanup of the reader tasks and any child left running

Key design points:
- POSIX: start_new_session=True so cleanup can signal the whole process group
- Windows: CREATE_NEW_PROCESS_GROUP for CTRL_BREAK_EVENT delivery
- The exit status comes from SubprocessProtocol.process_exited, independent
  of pipe closure
- A stream's end-of-stream is reported no earlier than the process exit,
  so the exit-code check always runs before Success can settle
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import anyio

from ..config import (
    DEFAULT_KILL_TIMEOUT,
    DEFAULT_READ_SIZE,
    DEFAULT_SLOW_THRESHOLD_MS,
    DEFAULT_TERM_TIMEOUT,
    Config,
)
from .completion import CompletionState
from .types import CommandSpec, RunOutcome, RunResult

__all__ = [
    "ExitNotifyingProtocol",
    "ProcessRunner",
    "monotonic_ms",
    "spawn_and_complete",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# StreamReader buffer limit (asyncio default)
STREAM_LIMIT = 2 ** 16

Clock = Callable[[], float]
Log = Union[logging.Logger, logging.LoggerAdapter]


def monotonic_ms() -> float:
    """High-resolution monotonic clock in milliseconds."""
    return time.perf_counter() * 1000.0


class ExitNotifyingProtocol(asyncio.subprocess.SubprocessStreamProtocol):
    """Stream protocol that resolves a future as soon as the child exits.

    The future gets the return code even while a descendant still holds
    stdout or stderr open.
    """

    def __init__(
        self,
        exit_future: asyncio.Future[int],
        limit: int,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        super().__init__(limit=limit, loop=loop)
        self._exit_future = exit_future
        self._exit_transport: asyncio.SubprocessTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._exit_transport = transport  # type: ignore[assignment]
        super().connection_made(transport)

    def process_exited(self) -> None:
        super().process_exited()
        if self._exit_transport is None or self._exit_future.done():
            return
        returncode = self._exit_transport.get_returncode()
        if returncode is not None:
            self._exit_future.set_result(returncode)


@dataclass
class ProcessRunner:
    """Run an external tool and collect its full stdout and stderr.

    Example:
        runner = ProcessRunner()
        spec = CommandSpec(
            arguments=["status", "--porcelain"],
            working_directory=Path("/repo"),
            label="status",
        )

        outcome = await runner.run(spec)
        if outcome.ok:
            parse(outcome.result.stdout)

    Attributes:
        slow_threshold_ms: Runs slower than this log their elapsed time at info
        term_timeout: Seconds to wait after SIGTERM during cleanup
        kill_timeout: Seconds to wait after SIGKILL during cleanup
        read_size: Bytes requested per stream read
        clock: Monotonic millisecond clock; None disables timing entirely
        log: Logger receiving the debug/info entries
    """

    slow_threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    read_size: int = DEFAULT_READ_SIZE
    clock: Clock | None = monotonic_ms
    log: Log = field(default=logger, repr=False)

    @classmethod
    def from_config(cls, config: Config, **overrides: Any) -> "ProcessRunner":
        """Build a runner from a Config, with optional field overrides."""
        values: dict[str, Any] = {
            "slow_threshold_ms": config.slow_threshold_ms,
            "term_timeout": config.term_timeout,
            "kill_timeout": config.kill_timeout,
            "read_size": config.read_size,
        }
        values.update(overrides)
        return cls(**values)

    async def run(self, spec: CommandSpec) -> RunOutcome:
        """Run the command and return its outcome.

        This method:
        1. Spawns the process (spawn errors settle as a SPAWN_OR_IO failure)
        2. Records the start time if a clock is available
        3. Drains stdout and stderr concurrently while watching the exit status
        4. Returns as soon as the invocation settles
        5. Cancels leftover readers and terminates the child if still running

        A child that never closes one of its streams keeps this coroutine
        pending; callers that need a deadline wrap it themselves.

        Args:
            spec: Command specification

        Returns:
            Success with both buffers, or Failure
        """
        command_name = spec.command_name
        self.log.debug(f"Executing {command_name}")

        process: asyncio.subprocess.Process | None = None
        try:
            exit_future: asyncio.Future[int] = asyncio.get_running_loop().create_future()
            try:
                process = await self._spawn(spec, exit_future)
            except (OSError, ValueError) as e:
                # ValueError: e.g. embedded null byte in argv/env
                state = CompletionState(spec)
                state.process_error(e)
                return await state.wait()

            start_time = self.clock() if self.clock is not None else None
            state = CompletionState(
                spec,
                on_stdout_end=lambda: self._report_timings(command_name, start_time),
            )
            exited = anyio.Event()

            async with anyio.create_task_group() as tg:
                tg.start_soon(
                    self._pump, process.stdout, state.stdout_data, state.stdout_end, state, exited
                )
                tg.start_soon(
                    self._pump, process.stderr, state.stderr_data, state.stderr_end, state, exited
                )
                tg.start_soon(self._watch_exit, process, exit_future, state, exited)

                outcome = await state.wait()
                tg.cancel_scope.cancel()

            self.log.debug(f"Settled {command_name}: {type(outcome).__name__}")
            return outcome

        finally:
            await self._safe_cleanup(process)

    async def run_checked(self, spec: CommandSpec) -> RunResult:
        """Run the command and return its output, raising on failure.

        Raises:
            OSError: The spawn or stream error, unchanged
            UnexpectedExitCodeError: Exit code outside the success set
        """
        outcome = await self.run(spec)
        return outcome.unwrap()

    def _report_timings(self, command_name: str, start_time: float | None) -> None:
        if start_time is None or self.clock is None:
            return
        raw_time = self.clock() - start_time
        if raw_time > self.slow_threshold_ms:
            self.log.info(f"Executing {command_name} (took {raw_time / 1000:.3f}s)")

    def _build_subprocess_kwargs(self, spec: CommandSpec) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs."""
        kwargs: dict[str, Any] = {}

        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        return kwargs

    async def _pump(
        self,
        stream: asyncio.StreamReader | None,
        on_data: Callable[[bytes], None],
        on_end: Callable[[], None],
        state: CompletionState,
        exited: anyio.Event,
    ) -> None:
        """Feed one stream into the state machine.

        End-of-stream is reported only after the exit notification.

        Args:
            stream: stdout or stderr of the child
            on_data: Chunk handler
            on_end: End-of-stream handler
            state: Invocation state (receives I/O errors)
            exited: Set once the exit status has been reported
        """
        if stream is not None:
            try:
                while True:
                    chunk = await stream.read(self.read_size)
                    if not chunk:
                        break
                    on_data(chunk)
            except OSError as e:
                state.process_error(e)
                return

        await exited.wait()
        on_end()

    async def _spawn(
        self,
        spec: CommandSpec,
        exit_future: asyncio.Future[int],
    ) -> asyncio.subprocess.Process:
        """Start the child with an exit callback independent of its pipes.

        Process.wait() may not resolve until every pipe has closed, so the
        return code is taken from SubprocessProtocol.process_exited instead.
        """
        loop = asyncio.get_running_loop()
        # stdin=None would inherit the parent's stdin; use DEVNULL
        transport, protocol = await loop.subprocess_exec(
            lambda: ExitNotifyingProtocol(exit_future, limit=STREAM_LIMIT, loop=loop),
            *spec.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=spec.working_directory,
            **self._build_subprocess_kwargs(spec),
        )
        return asyncio.subprocess.Process(transport, protocol, loop)

    async def _watch_exit(
        self,
        process: asyncio.subprocess.Process,
        exit_future: asyncio.Future[int],
        state: CompletionState,
        exited: anyio.Event,
    ) -> None:
        returncode = await exit_future

        exit_code: int | None = returncode
        term_signal: int | None = None
        if returncode < 0 and not IS_WINDOWS:
            # Negative return code: terminated by signal -returncode
            exit_code = None
            term_signal = -returncode

        self.log.debug(
            f"Subprocess exited pid={process.pid} "
            f"returncode={returncode} label={state.spec.label}"
        )
        state.process_exit(exit_code, term_signal)
        exited.set()

    async def _safe_cleanup(self, process: asyncio.subprocess.Process | None) -> None:
        """Terminate the child if still running, shielded from cancellation."""
        if process is None or process.returncode is not None:
            return
        with anyio.CancelScope(shield=True):
            await self._terminate_process(process)

    async def _terminate_process(self, process: asyncio.subprocess.Process) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. SIGTERM to the process group (CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout
        3. SIGKILL to the process group (kill() on Windows)
        4. Wait up to kill_timeout
        """
        pid = process.pid
        self.log.debug(f"Terminating subprocess pid={pid}")

        try:
            self._send_signal(process, graceful=True)
            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                return
            except asyncio.TimeoutError:
                pass

            self.log.debug(f"Force killing subprocess pid={pid}")
            self._send_signal(process, graceful=False)
            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
            except asyncio.TimeoutError:
                self.log.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            self.log.debug(f"Subprocess already exited pid={pid}")
        except OSError as e:
            self.log.warning(f"Error terminating subprocess pid={pid}: {e}")

    def _send_signal(self, process: asyncio.subprocess.Process, *, graceful: bool) -> None:
        if IS_WINDOWS:
            if graceful:
                try:
                    os.kill(process.pid, signal.CTRL_BREAK_EVENT)
                    return
                except OSError as e:
                    self.log.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
                    process.terminate()
            else:
                process.kill()
            return

        sig = signal.SIGTERM if graceful else signal.SIGKILL
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, sig)
            self.log.debug(f"Sent {sig.name} to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            self.log.debug(f"killpg failed, falling back to send_signal: {e}")
            process.send_signal(sig)


# Convenience function for simple use cases
async def spawn_and_complete(
    arguments: Iterable[str],
    path: str | Path,
    name: str,
    success_exit_codes: Iterable[int] | None = None,
    *,
    runner: ProcessRunner | None = None,
) -> RunResult:
    """Run ``git <arguments>`` in ``path`` and return its complete output.

    Args:
        arguments: Git arguments
        path: Working directory
        name: Invocation label
        success_exit_codes: Exit codes treated as success (None = {0})
        runner: Runner to use (default: a new ProcessRunner)

    Returns:
        RunResult with stdout and stderr bytes

    Raises:
        OSError: Spawn or stream error
        UnexpectedExitCodeError: Exit code outside the success set
    """
    spec = CommandSpec(
        arguments=tuple(arguments),
        working_directory=Path(path),
        label=name,
        success_exit_codes=(
            frozenset(success_exit_codes) if success_exit_codes is not None else None
        ),
    )
    return await (runner or ProcessRunner()).run_checked(spec)
