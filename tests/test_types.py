"""CommandSpec / outcome type tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from cli_spawn_runner.runtime.errors import UnexpectedExitCodeError
from cli_spawn_runner.runtime.types import (
    DEFAULT_SUCCESS_EXIT_CODES,
    CommandSpec,
    Failure,
    FailureKind,
    RunResult,
    Success,
)


class TestCommandSpec:
    def test_frozen(self):
        spec = CommandSpec(arguments=("status",), working_directory=Path("."), label="status")
        with pytest.raises(AttributeError):
            spec.label = "other"  # type: ignore[misc]

    def test_empty_arguments_rejected(self):
        with pytest.raises(ValueError):
            CommandSpec(arguments=(), working_directory=Path("."), label="x")

    @pytest.mark.parametrize("value", ["status", b"status"])
    def test_single_string_arguments_rejected(self, value):
        with pytest.raises(TypeError):
            CommandSpec(arguments=value, working_directory=Path("."), label="x")  # type: ignore[arg-type]

    def test_inputs_normalized(self):
        spec = CommandSpec(
            arguments=["log", "-1"],  # type: ignore[arg-type]
            working_directory="/repo",  # type: ignore[arg-type]
            label="log",
            success_exit_codes={0, 128},  # type: ignore[arg-type]
        )
        assert spec.arguments == ("log", "-1")
        assert spec.working_directory == Path("/repo")
        assert spec.success_exit_codes == frozenset({0, 128})

    def test_argv_and_command_name(self):
        spec = CommandSpec(
            arguments=("status", "--porcelain"), working_directory=Path("."), label="status"
        )
        assert spec.argv == ["git", "status", "--porcelain"]
        assert spec.command_name == "status: git status --porcelain"

    def test_default_success_codes(self):
        spec = CommandSpec(arguments=("status",), working_directory=Path("."), label="s")
        assert spec.success_exit_codes is None
        assert spec.effective_success_exit_codes == DEFAULT_SUCCESS_EXIT_CODES == {0}

    def test_empty_success_codes_kept(self):
        spec = CommandSpec(
            arguments=("status",),
            working_directory=Path("."),
            label="s",
            success_exit_codes=frozenset(),
        )
        assert spec.effective_success_exit_codes == frozenset()


class TestOutcome:
    def test_success_unwrap(self):
        result = RunResult(stdout=b"o", stderr=b"e")
        outcome = Success(result)
        assert outcome.ok
        assert outcome.unwrap() is result

    def test_failure_unwrap_raises(self):
        error = UnexpectedExitCodeError("fetch", 128)
        outcome = Failure(FailureKind.UNEXPECTED_EXIT_CODE, error.message, error)
        assert not outcome.ok
        with pytest.raises(UnexpectedExitCodeError, match="fetch returned an unexpected exit code '128'"):
            outcome.unwrap()

    def test_failure_kind_values(self):
        assert FailureKind.SPAWN_OR_IO.value == "spawn_or_io"
        assert FailureKind("unexpected_exit_code") is FailureKind.UNEXPECTED_EXIT_CODE
