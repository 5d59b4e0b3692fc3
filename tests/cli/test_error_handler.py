"""Tests for halt reporting."""

import json

import pytest

from dripfeed.cli.error_handler import INTERRUPTED_STATUS, handle_error, handle_interrupt
from dripfeed.foundation.errors import DripfeedError, ErrorCode


class TestHandleError:
    """Exit statuses and output formats."""

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        error = DripfeedError(
            ErrorCode.CHECKSUM_MISMATCH,
            context={"path": "src/a.ts", "expected": "aa", "actual": "bb"},
            step="S3.C3",
        )
        with pytest.raises(SystemExit) as exc_info:
            handle_error(error, json_output=True)
        assert exc_info.value.code == 3

        payload = json.loads(capsys.readouterr().err)
        assert payload["step"] == "S3.C3"
        assert payload["category"] == "integrity"
        assert payload["error_id"] == "DF-2001"

    def test_cause_is_included(self, capsys: pytest.CaptureFixture[str]) -> None:
        error = DripfeedError(
            ErrorCode.STATE_INVALID, context={"detail": "bad cursor"}, cause=ValueError("boom")
        )
        with pytest.raises(SystemExit):
            handle_error(error, json_output=True)
        assert json.loads(capsys.readouterr().err)["cause"] == "boom"

    def test_panel_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        error = DripfeedError(ErrorCode.TARGET_DIRTY, context={"path": "/tmp/repo"}, step="S0.3")
        with pytest.raises(SystemExit) as exc_info:
            handle_error(error)
        assert exc_info.value.code == 2
        err = capsys.readouterr().err
        assert "HALT" in err
        assert "DF-1005" in err


def test_interrupt_status() -> None:
    with pytest.raises(SystemExit) as exc_info:
        handle_interrupt()
    assert exc_info.value.code == INTERRUPTED_STATUS == 130
