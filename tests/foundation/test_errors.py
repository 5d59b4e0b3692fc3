"""Tests for the error system."""

import pytest

from dripfeed.foundation.errors import (
    DripfeedError,
    ErrorCode,
    GitCommandError,
    config_error,
    plan_error,
    precondition_error,
)


class TestErrorCode:
    """Categories and exit statuses."""

    @pytest.mark.parametrize(
        ("code", "category", "status"),
        [
            (ErrorCode.TARGET_DIRTY, "precondition", 2),
            (ErrorCode.CHECKSUM_MISMATCH, "integrity", 3),
            (ErrorCode.GIT_COMMAND_FAILED, "external", 4),
            (ErrorCode.PLAN_NOT_APPROVED, "plan", 5),
            (ErrorCode.CONFIG_INVALID, "config", 6),
        ],
    )
    def test_category_and_status(self, code: ErrorCode, category: str, status: int) -> None:
        assert code.category == category
        assert code.exit_status == status

    def test_statuses_are_distinct_per_category(self) -> None:
        by_category = {code.category: code.exit_status for code in ErrorCode}
        assert len(set(by_category.values())) == len(by_category)


class TestDripfeedError:
    """Formatting and serialization."""

    def test_message_and_id(self) -> None:
        error = DripfeedError(ErrorCode.TARGET_DIRTY, {"path": "/tmp/repo"}, step="S0.3")
        assert str(error) == "[DF-1005] Target working tree '/tmp/repo' is not clean."
        assert error.error_id == "DF-1005"
        assert error.step == "S0.3"

    def test_missing_context_keeps_template(self) -> None:
        error = DripfeedError(ErrorCode.SOURCE_MISSING)
        assert "{path}" in error.message

    def test_recovery_hints_are_formatted(self) -> None:
        error = DripfeedError(ErrorCode.TARGET_DIRTY, {"path": "/r"})
        assert any("git -C /r status" in hint for hint in error.recovery_hints)

    def test_at_step(self) -> None:
        error = DripfeedError(ErrorCode.PLAN_INVALID, {"detail": "x"})
        assert error.step == "MAIN"
        assert error.at_step("S1.4") is error
        assert error.step == "S1.4"

    def test_to_dict(self) -> None:
        data = DripfeedError(ErrorCode.CHECKSUM_MISMATCH, {
            "path": "a.ts", "expected": "1", "actual": "2",
        }, step="S3.C3").to_dict()
        assert data["error_id"] == "DF-2001"
        assert data["category"] == "integrity"
        assert data["step"] == "S3.C3"
        assert data["recovery_hints"]


class TestFactories:
    """Convenience constructors."""

    def test_git_command_error(self) -> None:
        error = GitCommandError(["commit", "-m", "x"], 128, "fatal: boom\n", step="S3.C5")
        assert error.code is ErrorCode.GIT_COMMAND_FAILED
        assert error.message == "git commit -m x failed (exit 128): fatal: boom"
        assert error.git_args == ["commit", "-m", "x"]
        assert error.exit_status == 4

    def test_git_command_error_without_stderr(self) -> None:
        assert "no output" in GitCommandError(["push"], 1, "").message

    def test_precondition_error(self) -> None:
        error = precondition_error(ErrorCode.SOURCE_MISSING, "S0.2", path="/nope")
        assert error.step == "S0.2"
        assert "/nope" in error.message

    def test_config_error(self) -> None:
        assert config_error("total_days", "must be >= 1").code is ErrorCode.CONFIG_INVALID
        assert config_error("source_dir").code is ErrorCode.CONFIG_MISSING

    def test_plan_error(self) -> None:
        error = plan_error("bad", step="S1.1")
        assert error.code is ErrorCode.PLAN_INVALID
        assert error.step == "S1.1"
