"""Pytest fixtures for Dripfeed tests."""

import io
from collections.abc import Callable
from pathlib import Path

import pytest
from rich.console import Console

from dripfeed.execution import ExecutionEngine, GitRepository, ScriptedOperator
from dripfeed.foundation.config import DripfeedConfig
from dripfeed.foundation.logging import StepLog

SCENARIO_FILES = {
    ".gitignore": "node_modules\n*.log\n",
    "LICENSE": "MIT\n",
    "package.json": '{"name": "demo"}\n',
    "src/auth/login.ts": "export const login = () => 1;\n",
    "src/auth/logout.ts": "export const logout = () => 0;\n",
    "src/utils/date.ts": "export const today = () => new Date();\n",
    "src/utils/format.ts": "export const fmt = (s: string) => s;\n",
}
"""Seven files: 2 scaffold, 1 build, 4 feature."""


def write_tree(root: Path, files: dict[str, str]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture
def make_tree() -> Callable[[Path, dict[str, str]], Path]:
    """``make_tree(root, {relative: content})`` writes a file tree."""
    return write_tree


@pytest.fixture(autouse=True)
def git_identity(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Deterministic git identity, isolated from the user's git config."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Committer")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "committer@example.com")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for key in ("DRIPFEED_LOG_LEVEL", "DRIPFEED_DEBUG", "DRIPFEED_SOURCE_DIR"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """The seven-file scenario source tree."""
    return write_tree(tmp_path / "source", SCENARIO_FILES)


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    """A target path that does not exist yet."""
    return tmp_path / "target"


@pytest.fixture
def scenario_config(source_tree: Path, target_dir: Path) -> DripfeedConfig:
    """2 days x 2 commits, 2 files per commit, no prompts."""
    return DripfeedConfig(
        source_dir=source_tree,
        target_dir=target_dir,
        total_days=2,
        commits_per_day=2,
        max_files_per_commit=2,
        commit_mode="auto",
        project_id="project-test",
    )


@pytest.fixture
def quiet_log() -> StepLog:
    """Step log writing to an in-memory console."""
    return StepLog(Console(record=True, width=200, file=io.StringIO()))


@pytest.fixture
def make_engine(quiet_log: StepLog) -> Callable[..., ExecutionEngine]:
    """Factory: ``make_engine(config, operator=None, **kwargs)``.

    The default operator approves the plan and proceeds at every commit gate.
    """

    def factory(config: DripfeedConfig, operator=None, **kwargs) -> ExecutionEngine:
        return ExecutionEngine(
            config,
            operator=operator or ScriptedOperator(confirms=[True]),
            step_log=quiet_log,
            **kwargs,
        )

    return factory


@pytest.fixture
def repo(target_dir: Path) -> GitRepository:
    return GitRepository(target_dir)
