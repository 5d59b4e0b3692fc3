"""Tests for the dripfeed command line."""

import shutil
from pathlib import Path

import pytest
from click.testing import CliRunner

from dripfeed import __version__
from dripfeed.cli.main import main
from dripfeed.execution.git import GitRepository

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

SCENARIO_OPTIONS = [
    "--days", "2",
    "--commits-per-day", "2",
    "--max-files", "2",
    "--commit-mode", "auto",
]


@pytest.fixture
def runner(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    """Runner isolated from any dripfeed.yaml in the cwd or home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    return CliRunner()


def _run(runner: CliRunner, source: Path, target: Path, *extra: str, input: str | None = None):
    return runner.invoke(main, ["run", str(source), str(target), *SCENARIO_OPTIONS, *extra], input=input)


class TestRun:
    """``dripfeed run``."""

    def test_deferred_review_then_approve_then_execute(
        self, runner: CliRunner, source_tree: Path, target_dir: Path
    ) -> None:
        result = _run(runner, source_tree, target_dir, "--review-mode", "skip")
        assert result.exit_code == 0, result.output
        assert "Plan awaits approval" in result.output

        result = runner.invoke(main, ["approve", str(target_dir)])
        assert result.exit_code == 0, result.output
        assert "Approved" in result.output

        result = _run(runner, source_tree, target_dir)
        assert result.exit_code == 0, result.output
        assert "DONE: S3.C5" in result.output
        assert "2/4 commits" in result.output
        assert GitRepository(target_dir).commit_count() == 2

        result = _run(runner, source_tree, target_dir)
        assert result.exit_code == 0, result.output
        assert "Done." in result.output
        assert GitRepository(target_dir).commit_count() == 4

    def test_interactive_review(self, runner: CliRunner, source_tree: Path, target_dir: Path) -> None:
        result = _run(runner, source_tree, target_dir, input="n\ny\n")
        assert result.exit_code == 0, result.output
        assert "DONE: S2.5 - Plan approved" in result.output
        assert GitRepository(target_dir).commit_count() == 2

    def test_dry_run(self, runner: CliRunner, source_tree: Path, target_dir: Path) -> None:
        result = _run(runner, source_tree, target_dir, "--dry-run")
        assert result.exit_code == 0, result.output
        assert "d2-c2" in result.output
        assert not target_dir.exists()

    def test_dirty_target_exits_with_precondition_status(
        self, runner: CliRunner, source_tree: Path, target_dir: Path
    ) -> None:
        GitRepository(target_dir).init()
        (target_dir / "stray.txt").write_text("x")
        result = _run(runner, source_tree, target_dir)
        assert result.exit_code == 2
        assert "HALT: S0.3" in result.output

    def test_missing_source_exits_with_precondition_status(
        self, runner: CliRunner, tmp_path: Path, target_dir: Path
    ) -> None:
        result = _run(runner, tmp_path / "missing", target_dir)
        assert result.exit_code == 2

    def test_invalid_option_exits_with_config_status(
        self, runner: CliRunner, source_tree: Path, target_dir: Path
    ) -> None:
        result = runner.invoke(main, ["run", str(source_tree), str(target_dir), "--days", "0"])
        assert result.exit_code == 6


class TestInspection:
    """``status``, ``preview`` and ``reword``."""

    @pytest.fixture
    def planned(self, runner: CliRunner, source_tree: Path, target_dir: Path) -> Path:
        result = _run(runner, source_tree, target_dir, "--review-mode", "skip")
        assert result.exit_code == 0, result.output
        return target_dir

    def test_status_before_execution(self, runner: CliRunner, planned: Path) -> None:
        result = runner.invoke(main, ["status", str(planned)])
        assert result.exit_code == 0, result.output
        assert "Progress: 0/4 commits (0 skipped)" in result.output
        assert "Next: d1-c1" in result.output

    def test_status_after_a_day(self, runner: CliRunner, planned: Path, source_tree: Path) -> None:
        runner.invoke(main, ["approve", str(planned)])
        _run(runner, source_tree, planned)
        result = runner.invoke(main, ["status", str(planned)])
        assert "Progress: 2/4 commits (0 skipped)" in result.output
        assert "Next: d2-c1" in result.output

    def test_preview(self, runner: CliRunner, planned: Path) -> None:
        result = runner.invoke(main, ["preview", str(planned)])
        assert result.exit_code == 0, result.output
        assert "# Commit Plan Preview" in result.output
        assert "**d2-c1**: feat(auth): implement auth functionality" in result.output

    def test_reword(self, runner: CliRunner, planned: Path) -> None:
        result = runner.invoke(main, ["reword", str(planned), "d2-c1", "feat(auth): add login flow"])
        assert result.exit_code == 0, result.output
        preview = runner.invoke(main, ["preview", str(planned)])
        assert "**d2-c1**: feat(auth): add login flow" in preview.output

    def test_reword_unknown_commit(self, runner: CliRunner, planned: Path) -> None:
        result = runner.invoke(main, ["reword", str(planned), "d9-c9", "nope"])
        assert result.exit_code == 5

    def test_reword_refused_once_approved(self, runner: CliRunner, planned: Path) -> None:
        runner.invoke(main, ["approve", str(planned)])
        result = runner.invoke(main, ["reword", str(planned), "d2-c1", "feat(auth): too late"])
        assert result.exit_code == 5
        assert "already approved" in result.output
        preview = runner.invoke(main, ["preview", str(planned)])
        assert "too late" not in preview.output

    def test_reword_refused_for_executed_commit(
        self, runner: CliRunner, planned: Path, source_tree: Path
    ) -> None:
        runner.invoke(main, ["approve", str(planned)])
        _run(runner, source_tree, planned)
        result = runner.invoke(main, ["reword", str(planned), "d1-c1", "rewritten"])
        assert result.exit_code == 5
        assert "already been executed" in result.output
        assert GitRepository(planned).log_messages()[0].startswith("chore(")

    def test_approve_twice(self, runner: CliRunner, planned: Path) -> None:
        runner.invoke(main, ["approve", str(planned)])
        result = runner.invoke(main, ["approve", str(planned)])
        assert result.exit_code == 0
        assert "already approved" in result.output

    def test_status_without_repository(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(main, ["status", str(tmp_path)])
        assert result.exit_code == 2

    def test_status_without_plan(self, runner: CliRunner, target_dir: Path) -> None:
        GitRepository(target_dir).init()
        result = runner.invoke(main, ["status", str(target_dir)])
        assert result.exit_code == 5


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
