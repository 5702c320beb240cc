"""命令行入口。

运行一次外部命令，将捕获的 stdout/stderr 字节原样写回，并按结果设置退出码：
- 成功: 0
- 非预期退出码: 子进程的退出码（被信号终止时为 1）
- 启动/IO 错误: 127
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import BinaryIO, Sequence

from .config import Config, get_config
from .runtime import CommandSpec, FailureKind, ProcessRunner, RunOutcome, UnexpectedExitCodeError

__all__ = ["build_parser", "configure_logging", "exit_code_for", "main", "run_cli"]

logger = logging.getLogger(__name__)

EXIT_SPAWN_FAILURE = 127

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(config: Config) -> None:
    """配置日志输出。

    LOG_DEBUG 模式下 DEBUG 级别写入临时文件，否则 INFO 级别写到 stderr。
    root logger（第三方库）固定为 WARNING，减少噪音。
    """
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    logging.basicConfig(level=logging.WARNING, handlers=log_handlers)
    # 只对 cli_spawn_runner 命名空间启用详细日志
    logging.getLogger("cli_spawn_runner").setLevel(log_level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cli-spawn-runner",
        description="Run a command-line tool and capture its complete output.",
    )
    parser.add_argument(
        "-C",
        "--cwd",
        type=Path,
        default=Path.cwd(),
        help="Working directory (default: current directory)",
    )
    parser.add_argument("--label", default="cli", help="Invocation label for logs and errors")
    parser.add_argument("--executable", default="git", help="Tool to run (default: git)")
    parser.add_argument(
        "--ok-code",
        dest="ok_codes",
        type=int,
        action="append",
        help="Exit code treated as success (repeatable, default: 0)",
    )
    parser.add_argument("arguments", nargs=argparse.REMAINDER, help="Tool arguments")
    return parser


def exit_code_for(outcome: RunOutcome) -> int:
    """将 RunOutcome 映射为本进程的退出码。"""
    if outcome.ok:
        return 0
    if outcome.kind == FailureKind.SPAWN_OR_IO:
        return EXIT_SPAWN_FAILURE
    error = outcome.error
    if isinstance(error, UnexpectedExitCodeError) and error.exit_code:
        return error.exit_code
    return 1


async def run_cli(
    argv: Sequence[str] | None = None,
    *,
    stdout: BinaryIO | None = None,
    stderr: BinaryIO | None = None,
    runner: ProcessRunner | None = None,
) -> int:
    """解析参数，执行一次调用，返回退出码。"""
    parser = build_parser()
    args = parser.parse_args(argv)

    arguments = list(args.arguments)
    if arguments and arguments[0] == "--":
        arguments = arguments[1:]
    if not arguments:
        parser.error("no tool arguments given")

    out = stdout if stdout is not None else sys.stdout.buffer
    err = stderr if stderr is not None else sys.stderr.buffer

    spec = CommandSpec(
        arguments=tuple(arguments),
        working_directory=args.cwd,
        label=args.label,
        success_exit_codes=frozenset(args.ok_codes) if args.ok_codes else None,
        executable=args.executable,
    )
    runner = runner or ProcessRunner.from_config(get_config())
    outcome = await runner.run(spec)

    if outcome.ok:
        out.write(outcome.result.stdout)
        err.write(outcome.result.stderr)
        out.flush()
        err.flush()
    else:
        logger.debug(f"{spec.label} failed: kind={outcome.kind.value}")
        err.write(f"{outcome.message}\n".encode("utf-8", errors="replace"))
        err.flush()

    return exit_code_for(outcome)


def main(argv: Sequence[str] | None = None) -> None:
    """主入口点。"""
    configure_logging(get_config())
    sys.exit(asyncio.run(run_cli(argv)))


if __name__ == "__main__":
    main()
