"""CSR 环境变量配置管理。

环境变量:
    CSR_SLOW_THRESHOLD_MS: 慢调用阈值（毫秒）
        - 执行耗时超过此值时输出 info 级别的耗时日志
        - 默认 1000，限制在 0-3600000 范围

    CSR_TERM_TIMEOUT: SIGTERM 后等待退出的时间（秒）
        - 默认 2.0，限制在 0.1-30 秒范围

    CSR_KILL_TIMEOUT: SIGKILL 后等待退出的时间（秒）
        - 默认 1.0，限制在 0.1-30 秒范围

    CSR_READ_SIZE: 每次读取 stdout/stderr 的字节数
        - 默认 4096，限制在 1-1048576 范围

    CSR_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_SLOW_THRESHOLD_MS = 1000.0
DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_KILL_TIMEOUT = 1.0
DEFAULT_READ_SIZE = 4096


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_float(value: str | None, default: float, low: float, high: float) -> float:
    """解析浮点数环境变量，无效值返回默认值，超出范围则截断。"""
    if not value:
        return default
    try:
        number = float(value)
    except ValueError:
        return default
    if number != number:  # NaN
        return default
    return max(low, min(number, high))


def _parse_int(value: str | None, default: int, low: int, high: int) -> int:
    """解析整数环境变量。"""
    if not value:
        return default
    try:
        number = int(value)
    except ValueError:
        return default
    return max(low, min(number, high))


@dataclass
class Config:
    """CSR 配置。

    Attributes:
        slow_threshold_ms: 慢调用阈值（毫秒）
        term_timeout: SIGTERM 后等待时间（秒）
        kill_timeout: SIGKILL 后等待时间（秒）
        read_size: 单次读取字节数
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    slow_threshold_ms: float = DEFAULT_SLOW_THRESHOLD_MS
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    read_size: int = DEFAULT_READ_SIZE
    log_debug: bool = False
    log_file: str | None = None


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "cli-spawn-runner"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"csr_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("CSR_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        slow_threshold_ms=_parse_float(
            os.environ.get("CSR_SLOW_THRESHOLD_MS"),
            DEFAULT_SLOW_THRESHOLD_MS,
            0.0,
            3_600_000.0,
        ),
        term_timeout=_parse_float(
            os.environ.get("CSR_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT, 0.1, 30.0
        ),
        kill_timeout=_parse_float(
            os.environ.get("CSR_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT, 0.1, 30.0
        ),
        read_size=_parse_int(
            os.environ.get("CSR_READ_SIZE"), DEFAULT_READ_SIZE, 1, 1_048_576
        ),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
