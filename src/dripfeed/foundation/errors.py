"""Dripfeed Error System.

Provides structured error handling with:
- Numeric error codes grouped by halt category
- User-friendly messages
- Recovery hints for the operator
- A stable step identifier naming where the run halted
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Numeric error codes organized by category.

    Format: XYYY where X = category, YYY = specific error

    Categories:
        1xxx - Precondition errors (nothing has happened yet)
        2xxx - Integrity errors (copy did not match its source)
        3xxx - External tool errors (git or filesystem operation failed)
        4xxx - Plan/state errors (artifacts missing, unapproved or inconsistent)
        5xxx - Configuration errors
    """

    # 1xxx - Precondition Errors
    RUNTIME_TOO_OLD = 1001
    GIT_UNAVAILABLE = 1002
    SOURCE_MISSING = 1003
    TARGET_NOT_REPOSITORY = 1004
    TARGET_DIRTY = 1005

    # 2xxx - Integrity Errors
    CHECKSUM_MISMATCH = 2001

    # 3xxx - External Tool Errors
    GIT_COMMAND_FAILED = 3001
    FILE_COPY_FAILED = 3002
    FILE_WRITE_FAILED = 3003
    FILE_READ_FAILED = 3004

    # 4xxx - Plan/State Errors
    PLAN_NOT_FOUND = 4001
    PLAN_NOT_APPROVED = 4002
    PLAN_INVALID = 4003
    STATE_INVALID = 4004
    COMMIT_NOT_FOUND = 4005
    PLAN_LOCKED = 4006

    # 5xxx - Configuration Errors
    CONFIG_MISSING = 5001
    CONFIG_INVALID = 5002

    @property
    def category(self) -> str:
        """Get the error category name."""
        prefix = self.value // 1000
        return {
            1: "precondition",
            2: "integrity",
            3: "external",
            4: "plan",
            5: "config",
        }.get(prefix, "unknown")

    @property
    def exit_status(self) -> int:
        """Process exit status for this error's category."""
        return {
            "precondition": 2,
            "integrity": 3,
            "external": 4,
            "plan": 5,
            "config": 6,
        }.get(self.category, 1)


ERROR_MESSAGES: dict[ErrorCode, str] = {
    # Precondition errors
    ErrorCode.RUNTIME_TOO_OLD: "Python {required}+ required (running {found}).",
    ErrorCode.GIT_UNAVAILABLE: "No 'git' executable found on PATH.",
    ErrorCode.SOURCE_MISSING: "Source directory '{path}' does not exist or is not readable.",
    ErrorCode.TARGET_NOT_REPOSITORY: "Target directory '{path}' is not a Git repository.",
    ErrorCode.TARGET_DIRTY: "Target working tree '{path}' is not clean.",

    # Integrity errors
    ErrorCode.CHECKSUM_MISMATCH: "Integrity check failed for {path}: source {expected} != copy {actual}.",

    # External tool errors
    ErrorCode.GIT_COMMAND_FAILED: "git {command} failed (exit {status}): {detail}",
    ErrorCode.FILE_COPY_FAILED: "Failed to copy {path}: {detail}",
    ErrorCode.FILE_WRITE_FAILED: "Failed to write {path}: {detail}",
    ErrorCode.FILE_READ_FAILED: "Failed to read {path}: {detail}",

    # Plan/state errors
    ErrorCode.PLAN_NOT_FOUND: "No commit plan found at {path}.",
    ErrorCode.PLAN_NOT_APPROVED: "Commit plan has not been approved.",
    ErrorCode.PLAN_INVALID: "Commit plan is invalid: {detail}",
    ErrorCode.STATE_INVALID: "Execution state is inconsistent with the plan: {detail}",
    ErrorCode.COMMIT_NOT_FOUND: "No commit with id '{commit_id}' in the plan.",
    ErrorCode.PLAN_LOCKED: "Cannot reword '{commit_id}': {detail}.",

    # Config errors
    ErrorCode.CONFIG_MISSING: "Required configuration '{key}' not set.",
    ErrorCode.CONFIG_INVALID: "Invalid configuration for '{key}': {detail}",
}


RECOVERY_HINTS: dict[ErrorCode, list[str]] = {
    ErrorCode.TARGET_DIRTY: [
        "Inspect the leftovers with 'git -C {path} status'",
        "Discard an interrupted commit with 'git -C {path} reset --hard && git -C {path} clean -fd'",
        "Re-run dripfeed; it resumes from the last recorded commit",
    ],
    ErrorCode.CHECKSUM_MISMATCH: [
        "Check the disk holding the target repository",
        "Clean the target working tree, then re-run to retry the same commit",
    ],
    ErrorCode.PLAN_NOT_FOUND: [
        "Run 'dripfeed run SOURCE TARGET' to create a plan",
    ],
    ErrorCode.PLAN_NOT_APPROVED: [
        "Review the plan with 'dripfeed run SOURCE TARGET'",
        "Approve it non-interactively with 'dripfeed approve TARGET'",
    ],
    ErrorCode.PLAN_LOCKED: [
        "Approved plans are fixed; commits already in history keep their message",
        "To change history, start over with a fresh target repository",
    ],
    ErrorCode.GIT_UNAVAILABLE: [
        "Install git and make sure it is on PATH",
    ],
    ErrorCode.CONFIG_MISSING: [
        "Pass it on the command line or set DRIPFEED_{var}",
    ],
}


class DripfeedError(Exception):
    """Base error type for all Dripfeed errors.

    Every error that reaches the CLI is a halt: it is logged with the step
    identifier that raised it and the process exits with the status of the
    error's category.

    Example:
        >>> err = DripfeedError(
        ...     code=ErrorCode.TARGET_DIRTY,
        ...     context={"path": "/tmp/repo"},
        ...     step="S0.3",
        ... )
        >>> print(err)
        [DF-1005] Target working tree '/tmp/repo' is not clean.
    """

    def __init__(
        self,
        code: ErrorCode,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        step: str = "MAIN",
    ):
        self.code = code
        self.context = context or {}
        self.cause = cause
        self.step = step
        super().__init__(str(self))

    @property
    def message(self) -> str:
        """Get the formatted user-friendly message."""
        template = ERROR_MESSAGES.get(self.code, "An error occurred: {detail}")
        try:
            return template.format(**self.context)
        except KeyError:
            return template

    @property
    def recovery_hints(self) -> list[str]:
        """Get recovery suggestions for this error."""
        formatted = []
        for hint in RECOVERY_HINTS.get(self.code, []):
            try:
                formatted.append(hint.format(**self.context))
            except KeyError:
                formatted.append(hint)
        return formatted

    @property
    def category(self) -> str:
        """Get the error category."""
        return self.code.category

    @property
    def exit_status(self) -> int:
        return self.code.exit_status

    @property
    def error_id(self) -> str:
        """Get the error ID string (e.g., 'DF-2001')."""
        return f"DF-{self.code.value}"

    def at_step(self, step: str) -> DripfeedError:
        """Re-tag the error with the step that surfaced it."""
        self.step = step
        return self

    def __str__(self) -> str:
        return f"[{self.error_id}] {self.message}"

    def __repr__(self) -> str:
        return f"DripfeedError(code={self.code!r}, step={self.step!r}, context={self.context!r})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for logging and JSON output."""
        return {
            "error_id": self.error_id,
            "code": self.code.value,
            "category": self.category,
            "step": self.step,
            "message": self.message,
            "recovery_hints": self.recovery_hints,
            "context": self.context,
        }


class GitCommandError(DripfeedError):
    """A git subprocess exited non-zero."""

    def __init__(self, args: list[str], status: int, output: str, step: str = "MAIN"):
        self.git_args = list(args)
        self.status = status
        self.output = output
        super().__init__(
            code=ErrorCode.GIT_COMMAND_FAILED,
            context={
                "command": " ".join(args),
                "status": status,
                "detail": output.strip() or "no output",
            },
            step=step,
        )


# Convenience factory functions

def precondition_error(code: ErrorCode, step: str, **context: Any) -> DripfeedError:
    """Create a Setup-phase precondition error."""
    return DripfeedError(code=code, context=context, step=step)


def config_error(key: str, detail: str = "", var: str = "") -> DripfeedError:
    """Create a configuration error."""
    code = ErrorCode.CONFIG_INVALID if detail else ErrorCode.CONFIG_MISSING
    return DripfeedError(
        code=code,
        context={"key": key, "detail": detail, "var": var or key.upper()},
        step="CONFIG",
    )


def plan_error(detail: str, step: str = "MAIN") -> DripfeedError:
    """Create a PLAN_INVALID error."""
    return DripfeedError(code=ErrorCode.PLAN_INVALID, context={"detail": detail}, step=step)
