"""CLI Spawn Runner - run command-line tools and capture their complete output.

环境变量:
    CSR_SLOW_THRESHOLD_MS: 慢调用日志阈值 (默认 1000ms)
    CSR_LOG_DEBUG: 调试日志输出到临时文件 (默认 false)

用法:
    python -m cli_spawn_runner -C /repo --label status -- status --porcelain
"""

__version__ = "0.1.0"

from .runtime import (
    CommandSpec,
    Failure,
    FailureKind,
    ProcessRunner,
    RunOutcome,
    RunResult,
    Success,
    UnexpectedExitCodeError,
    spawn_and_complete,
)

__all__ = [
    "__version__",
    "CommandSpec",
    "Failure",
    "FailureKind",
    "ProcessRunner",
    "RunOutcome",
    "RunResult",
    "Success",
    "UnexpectedExitCodeError",
    "spawn_and_complete",
]
