"""Tests for error classification helpers."""

import errno

import pytest

from pipewright.errors import (
    CycleError,
    ExecutionError,
    MissingArtifactError,
    SecretLeakError,
    StageTimeoutError,
    TransientError,
    UnknownSecretError,
    is_retryable,
    is_transient,
    truncate_error,
)


class TestClassification:
    @pytest.mark.parametrize(
        "error",
        [
            TransientError("registry unavailable"),
            ConnectionResetError("reset by peer"),
            OSError(errno.ECONNREFUSED, "refused"),
        ],
    )
    def test_transient(self, error: BaseException) -> None:
        assert is_transient(error)
        assert is_retryable(error)

    def test_transient_cause_is_found(self) -> None:
        try:
            try:
                raise TransientError("circuit open")
            except TransientError as inner:
                raise RuntimeError("pool call failed") from inner
        except RuntimeError as outer:
            assert is_transient(outer)

    @pytest.mark.parametrize(
        "error",
        [ExecutionError("exit 1"), StageTimeoutError("exceeded timeout of 5s")],
    )
    def test_execution_failures_are_retryable(self, error: BaseException) -> None:
        assert not is_transient(error)
        assert is_retryable(error)

    @pytest.mark.parametrize(
        "error",
        [
            CycleError("cycle", ["a", "b"]),
            UnknownSecretError("NPM_TOKEN"),
            MissingArtifactError("compile/jar missing"),
            SecretLeakError("output contains a secret"),
            ValueError("bug"),
        ],
    )
    def test_not_retryable(self, error: BaseException) -> None:
        assert not is_retryable(error)

    def test_error_str_includes_code_and_cause(self) -> None:
        error = ExecutionError("docker push failed", cause=OSError("broken pipe"))

        assert error.message == "docker push failed"
        assert "(code=200)" in str(error)
        assert "caused by: broken pipe" in str(error)


class TestTruncateError:
    def test_short_message_unchanged(self) -> None:
        assert truncate_error("BUILD FAILURE") == "BUILD FAILURE"

    def test_long_message_truncated(self) -> None:
        result = truncate_error("x" * 100, max_bytes=40)

        assert result.endswith(" [TRUNCATED]")
        assert len(result.encode("utf-8")) <= 40

    def test_multibyte_boundary(self) -> None:
        result = truncate_error("é" * 50, max_bytes=25)

        assert result.endswith(" [TRUNCATED]")
        result.encode("utf-8")
