"""Tests for configuration loading and layering."""

from pathlib import Path

import pytest

from dripfeed.foundation.config import DripfeedConfig, load_config
from dripfeed.foundation.errors import DripfeedError, ErrorCode


@pytest.fixture
def isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run from an empty directory with an empty home."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    return work


class TestDefaults:
    """Built-in values."""

    def test_defaults(self, isolated: Path) -> None:
        config = load_config(overrides={"source_dir": "src"}, environ={})
        assert config.total_days == 5
        assert config.commits_per_day == 3
        assert config.max_files_per_commit is None
        assert config.daily_run_hours == 3.0
        assert config.commit_mode == "manual"
        assert config.review_mode == "ask"
        assert config.push_mode == "manual"
        assert config.dry_run is False
        assert config.project_id.startswith("project-")

    def test_paths_resolved(self, isolated: Path) -> None:
        config = load_config(overrides={"source_dir": "src", "target_dir": "out"}, environ={})
        assert config.source_dir == (isolated / "src").resolve()
        assert config.target_dir == (isolated / "out").resolve()

    def test_source_required(self, isolated: Path) -> None:
        with pytest.raises(DripfeedError) as exc_info:
            load_config(environ={})
        assert exc_info.value.code is ErrorCode.CONFIG_MISSING
        assert "DRIPFEED_SOURCE_DIR" in exc_info.value.recovery_hints[0]


class TestLayering:
    """File < environment < overrides."""

    def test_local_file(self, isolated: Path) -> None:
        (isolated / "dripfeed.yaml").write_text("source_dir: src\ntotal_days: 7\nskip_patterns: [tmp, '*.bak']\n")
        config = load_config(environ={})
        assert config.total_days == 7
        assert config.skip_patterns == ("tmp", "*.bak")

    def test_home_file(self, isolated: Path, tmp_path: Path) -> None:
        home_config = tmp_path / "home" / ".dripfeed" / "config.yaml"
        home_config.parent.mkdir()
        home_config.write_text("source_dir: src\ncommits_per_day: 4\n")
        assert load_config(environ={}).commits_per_day == 4

    def test_explicit_file_wins_over_local(self, isolated: Path) -> None:
        (isolated / "dripfeed.yaml").write_text("source_dir: src\ntotal_days: 7\n")
        explicit = isolated / "other.yaml"
        explicit.write_text("source_dir: src\ntotal_days: 9\n")
        assert load_config(explicit, environ={}).total_days == 9

    def test_environment_beats_file(self, isolated: Path) -> None:
        (isolated / "dripfeed.yaml").write_text("source_dir: src\ntotal_days: 7\n")
        config = load_config(
            environ={
                "DRIPFEED_TOTAL_DAYS": "8",
                "DRIPFEED_DRY_RUN": "true",
                "DRIPFEED_SKIP_PATTERNS": "a, b",
                "DRIPFEED_DAILY_RUN_HOURS": "0.5",
            }
        )
        assert config.total_days == 8
        assert config.dry_run is True
        assert config.skip_patterns == ("a", "b")
        assert config.daily_run_hours == 0.5

    def test_overrides_beat_environment(self, isolated: Path) -> None:
        config = load_config(
            overrides={"source_dir": "src", "total_days": 2, "commits_per_day": None},
            environ={"DRIPFEED_TOTAL_DAYS": "8", "DRIPFEED_COMMITS_PER_DAY": "6"},
        )
        assert config.total_days == 2
        assert config.commits_per_day == 6

    def test_unknown_keys_ignored(self, isolated: Path) -> None:
        (isolated / "dripfeed.yaml").write_text("source_dir: src\ncolour: blue\n")
        assert load_config(environ={}).source_dir.name == "src"


class TestValidation:
    """Out-of-range and malformed values."""

    @pytest.mark.parametrize(
        "override",
        [
            {"total_days": 0},
            {"commits_per_day": -1},
            {"max_files_per_commit": 0},
            {"daily_run_hours": 0},
            {"commit_mode": "sometimes"},
            {"review_mode": "never"},
            {"push_mode": "force"},
        ],
    )
    def test_invalid_values(self, isolated: Path, override: dict) -> None:
        with pytest.raises(DripfeedError) as exc_info:
            load_config(overrides={"source_dir": "src", **override}, environ={})
        assert exc_info.value.code is ErrorCode.CONFIG_INVALID
        assert exc_info.value.exit_status == 6

    def test_not_a_number(self, isolated: Path) -> None:
        with pytest.raises(DripfeedError):
            load_config(overrides={"source_dir": "src"}, environ={"DRIPFEED_TOTAL_DAYS": "many"})

    def test_missing_explicit_file(self, isolated: Path) -> None:
        with pytest.raises(DripfeedError) as exc_info:
            load_config(isolated / "nope.yaml", overrides={"source_dir": "src"}, environ={})
        assert exc_info.value.code is ErrorCode.CONFIG_INVALID

    def test_yaml_must_be_mapping(self, isolated: Path) -> None:
        (isolated / "dripfeed.yaml").write_text("- a\n- b\n")
        with pytest.raises(DripfeedError):
            load_config(overrides={"source_dir": "src"}, environ={})


class TestDripfeedConfig:
    """Derived values."""

    def test_author_requires_both_parts(self, tmp_path: Path) -> None:
        assert DripfeedConfig(source_dir=tmp_path, author_name="Ada").author is None
        config = DripfeedConfig(source_dir=tmp_path, author_name="Ada", author_email="ada@example.com")
        assert config.author == "Ada <ada@example.com>"

    def test_frozen(self, tmp_path: Path) -> None:
        config = DripfeedConfig(source_dir=tmp_path)
        with pytest.raises(AttributeError):
            config.total_days = 3  # type: ignore[misc]

    def test_summary(self, tmp_path: Path) -> None:
        summary = DripfeedConfig(source_dir=tmp_path, project_id="p").summary()
        assert summary["project_id"] == "p"
        assert summary["source_dir"] == str(tmp_path)
