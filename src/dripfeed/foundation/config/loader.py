"""Dripfeed configuration management.

Builds one immutable DripfeedConfig at startup. The engine and every
collaborator receive it explicitly; nothing reads configuration from
process-wide state.

Layers (lowest to highest priority):
1. Built-in defaults (the dataclass field defaults)
2. YAML file: explicit path, else ./dripfeed.yaml, else ~/.dripfeed/config.yaml
3. Environment variables (DRIPFEED_*)
4. Explicit overrides (CLI options)
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from dripfeed.foundation.errors import DripfeedError, ErrorCode, config_error

logger = logging.getLogger(__name__)

ENV_PREFIX = "DRIPFEED_"

COMMIT_MODES = ("manual", "auto")
REVIEW_MODES = ("ask", "skip")
PUSH_MODES = ("manual", "auto")


def _default_project_id() -> str:
    return f"project-{int(time.time() * 1000)}"


@dataclass(frozen=True, slots=True)
class DripfeedConfig:
    """Everything the engine needs for one invocation."""

    source_dir: Path
    """Read-only source tree to replay."""

    target_dir: Path = field(default_factory=Path.cwd)
    """Git working tree that receives the commits."""

    total_days: int = 5
    """Number of simulated days the plan is spread over."""

    commits_per_day: int = 3
    """Commit slots per day; also the per-run commit quota."""

    max_files_per_commit: int | None = None
    """Fixed chunk size. None spreads files evenly over all slots."""

    skip_patterns: tuple[str, ...] = ()
    """Extra ignore rules applied on top of .gitignore files."""

    daily_run_hours: float = 3.0
    """Wall-clock budget per run, checked before each commit."""

    commit_mode: str = "manual"
    """'manual' asks before each commit, 'auto' commits straight away."""

    review_mode: str = "ask"
    """'ask' offers review right after planning, 'skip' defers it."""

    push_mode: str = "manual"
    """'auto' pushes at the end of each run when a remote exists."""

    author_name: str | None = None
    author_email: str | None = None

    project_id: str = field(default_factory=_default_project_id)
    """Stable identifier written into the plan and state documents."""

    timezone: str = "America/Chicago"
    """Descriptive only; recorded in the plan."""

    dry_run: bool = False
    """Plan and preview without writing anything to the target."""

    @property
    def author(self) -> str | None:
        """``Name <email>`` when both parts of the override are set."""
        if self.author_name and self.author_email:
            return f"{self.author_name} <{self.author_email}>"
        return None

    def validate(self) -> DripfeedConfig:
        """Raise a configuration error for out-of-range values."""
        if self.total_days < 1:
            raise config_error("total_days", f"must be >= 1, got {self.total_days}")
        if self.commits_per_day < 1:
            raise config_error("commits_per_day", f"must be >= 1, got {self.commits_per_day}")
        if self.max_files_per_commit is not None and self.max_files_per_commit < 1:
            raise config_error(
                "max_files_per_commit", f"must be >= 1, got {self.max_files_per_commit}"
            )
        if self.daily_run_hours <= 0:
            raise config_error("daily_run_hours", f"must be > 0, got {self.daily_run_hours}")
        if self.commit_mode not in COMMIT_MODES:
            raise config_error("commit_mode", f"expected one of {COMMIT_MODES}")
        if self.review_mode not in REVIEW_MODES:
            raise config_error("review_mode", f"expected one of {REVIEW_MODES}")
        if self.push_mode not in PUSH_MODES:
            raise config_error("push_mode", f"expected one of {PUSH_MODES}")
        return self

    def summary(self) -> dict[str, Any]:
        """Flat view for the Setup config printout."""
        return {
            "project_id": self.project_id,
            "source_dir": str(self.source_dir),
            "target_dir": str(self.target_dir),
            "total_days": self.total_days,
            "commits_per_day": self.commits_per_day,
            "max_files_per_commit": self.max_files_per_commit,
            "daily_run_hours": self.daily_run_hours,
            "commit_mode": self.commit_mode,
            "review_mode": self.review_mode,
            "push_mode": self.push_mode,
            "timezone": self.timezone,
        }


_FIELD_NAMES = {f.name for f in fields(DripfeedConfig)}
_INT_FIELDS = {"total_days", "commits_per_day", "max_files_per_commit"}
_FLOAT_FIELDS = {"daily_run_hours"}
_BOOL_FIELDS = {"dry_run"}
_PATH_FIELDS = {"source_dir", "target_dir"}
_OPTIONAL_FIELDS = {"max_files_per_commit", "author_name", "author_email"}


def _coerce(key: str, value: Any) -> Any:
    """Coerce a raw YAML/env/CLI value to the field's type."""
    if value is None:
        return None
    try:
        if key in _INT_FIELDS:
            return int(value)
        if key in _FLOAT_FIELDS:
            return float(value)
    except (TypeError, ValueError) as e:
        raise config_error(key, f"not a number: {value!r}") from e
    if key in _BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        return str(value).lower() in ("true", "1", "yes")
    if key in _PATH_FIELDS:
        return Path(value).expanduser().resolve()
    if key == "skip_patterns":
        if isinstance(value, str):
            value = value.split(",")
        return tuple(p.strip() for p in value if str(p).strip())
    return value


def _read_config_file(path: Path | None) -> dict[str, Any]:
    """Load the first existing YAML config file."""
    candidates = []
    if path:
        candidates.append(Path(path))
    candidates.extend([
        Path("dripfeed.yaml"),
        Path.home() / ".dripfeed" / "config.yaml",
    ])

    for candidate in candidates:
        if not candidate.exists():
            if path and candidate == Path(path):
                raise DripfeedError(
                    code=ErrorCode.CONFIG_INVALID,
                    context={"key": "config", "detail": f"{candidate} does not exist"},
                    step="CONFIG",
                )
            continue
        try:
            with open(candidate, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise config_error("config", f"invalid YAML in {candidate}: {e}") from e
        if not isinstance(data, dict):
            raise config_error("config", f"{candidate} must contain a mapping")
        logger.debug("Loaded config file %s", candidate)
        return data
    return {}


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect DRIPFEED_<FIELD> variables, e.g. DRIPFEED_COMMITS_PER_DAY=4."""
    overrides: dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in _FIELD_NAMES:
            overrides[name] = value
    return overrides


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> DripfeedConfig:
    """Load configuration from file, environment and explicit overrides.

    Args:
        path: Optional explicit YAML config file path.
        overrides: Highest-priority values (typically CLI options). ``None``
            values are ignored so unset options don't mask lower layers.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated DripfeedConfig.

    Raises:
        DripfeedError: CONFIG_MISSING when no source directory was given,
            CONFIG_INVALID for malformed or out-of-range values.
    """
    merged: dict[str, Any] = {}

    for key, value in _read_config_file(Path(path) if path else None).items():
        if key not in _FIELD_NAMES:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        merged[key] = value

    merged.update(_env_overrides(environ if environ is not None else os.environ))

    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value

    if not merged.get("source_dir"):
        raise config_error("source_dir", var="SOURCE_DIR")

    typed: dict[str, Any] = {}
    for key, value in merged.items():
        coerced = _coerce(key, value)
        if coerced is None and key not in _OPTIONAL_FIELDS:
            continue
        typed[key] = coerced

    source_dir = typed.pop("source_dir")
    config = DripfeedConfig(source_dir=source_dir)
    config = replace(config, **typed)
    return config.validate()
