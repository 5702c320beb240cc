"""Config 模块测试。

测试 CSR_* 环境变量解析和配置管理。
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from cli_spawn_runner.config import (
    DEFAULT_KILL_TIMEOUT,
    DEFAULT_READ_SIZE,
    DEFAULT_SLOW_THRESHOLD_MS,
    DEFAULT_TERM_TIMEOUT,
    Config,
    get_config,
    load_config,
    reload_config,
)

CSR_VARS = (
    "CSR_SLOW_THRESHOLD_MS",
    "CSR_TERM_TIMEOUT",
    "CSR_KILL_TIMEOUT",
    "CSR_READ_SIZE",
    "CSR_LOG_DEBUG",
)


@pytest.fixture
def clean_env():
    """移除所有 CSR_* 环境变量。"""
    env = {k: v for k, v in os.environ.items() if k not in CSR_VARS}
    with mock.patch.dict(os.environ, env, clear=True):
        yield


class TestDefaults:
    def test_unset_means_defaults(self, clean_env):
        config = load_config()
        assert config.slow_threshold_ms == DEFAULT_SLOW_THRESHOLD_MS
        assert config.term_timeout == DEFAULT_TERM_TIMEOUT
        assert config.kill_timeout == DEFAULT_KILL_TIMEOUT
        assert config.read_size == DEFAULT_READ_SIZE
        assert config.log_debug is False
        assert config.log_file is None

    def test_dataclass_defaults_match(self):
        assert Config() == Config(
            slow_threshold_ms=1000.0,
            term_timeout=2.0,
            kill_timeout=1.0,
            read_size=4096,
        )


class TestSlowThreshold:
    def test_custom_value(self, clean_env):
        with mock.patch.dict(os.environ, {"CSR_SLOW_THRESHOLD_MS": "250"}):
            assert load_config().slow_threshold_ms == 250.0

    @pytest.mark.parametrize("value", ["abc", "", "nan"])
    def test_invalid_falls_back(self, clean_env, value: str):
        with mock.patch.dict(os.environ, {"CSR_SLOW_THRESHOLD_MS": value}):
            assert load_config().slow_threshold_ms == DEFAULT_SLOW_THRESHOLD_MS

    def test_negative_clamped_to_zero(self, clean_env):
        with mock.patch.dict(os.environ, {"CSR_SLOW_THRESHOLD_MS": "-5"}):
            assert load_config().slow_threshold_ms == 0.0


class TestTimeouts:
    def test_custom_values(self, clean_env):
        with mock.patch.dict(os.environ, {"CSR_TERM_TIMEOUT": "5", "CSR_KILL_TIMEOUT": "0.5"}):
            config = load_config()
            assert config.term_timeout == 5.0
            assert config.kill_timeout == 0.5

    def test_clamped(self, clean_env):
        with mock.patch.dict(os.environ, {"CSR_TERM_TIMEOUT": "100", "CSR_KILL_TIMEOUT": "0"}):
            config = load_config()
            assert config.term_timeout == 30.0
            assert config.kill_timeout == 0.1


class TestReadSize:
    def test_custom_value(self, clean_env):
        with mock.patch.dict(os.environ, {"CSR_READ_SIZE": "65536"}):
            assert load_config().read_size == 65536

    @pytest.mark.parametrize("value,expected", [("0", 1), ("99999999", 1_048_576), ("1.5", 4096)])
    def test_bounds_and_invalid(self, clean_env, value: str, expected: int):
        with mock.patch.dict(os.environ, {"CSR_READ_SIZE": value}):
            assert load_config().read_size == expected


class TestLogDebug:
    @pytest.mark.parametrize("value", ["true", "True", "1", "yes", "on"])
    def test_truthy_values(self, clean_env, value: str):
        with mock.patch.dict(os.environ, {"CSR_LOG_DEBUG": value}):
            config = load_config()
            assert config.log_debug is True
            assert config.log_file is not None
            assert Path(config.log_file).parent.name == "cli-spawn-runner"

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", ""])
    def test_falsy_values(self, clean_env, value: str):
        with mock.patch.dict(os.environ, {"CSR_LOG_DEBUG": value}):
            config = load_config()
            assert config.log_debug is False
            assert config.log_file is None


class TestGlobalConfig:
    def test_get_config_is_cached(self, clean_env):
        reload_config()
        assert get_config() is get_config()

    def test_reload_config_reads_environment(self, clean_env):
        with mock.patch.dict(os.environ, {"CSR_SLOW_THRESHOLD_MS": "42"}):
            assert reload_config().slow_threshold_ms == 42.0
            assert get_config().slow_threshold_ms == 42.0
        reload_config()
