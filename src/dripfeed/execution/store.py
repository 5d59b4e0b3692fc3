"""Durable plan and state documents.

Both documents live in the target's private storage area
(``<git-dir>/dripfeed/``), so they are never tracked and never make the
working tree dirty. Every save replaces the whole document atomically:
temp file in the same directory, fsync, then ``os.replace``. A crash leaves
either the old document or the new one, never a torn write.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from dripfeed.execution.git import GitRepository
from dripfeed.execution.types import ExecutionState
from dripfeed.foundation.errors import DripfeedError, ErrorCode
from dripfeed.planning.planner import render_preview
from dripfeed.planning.types import Plan

logger = logging.getLogger(__name__)

STORAGE_DIRNAME = "dripfeed"
PLAN_FILENAME = "plan.json"
STATE_FILENAME = "state.json"
PREVIEW_FILENAME = "PREVIEW.md"
LOG_FILENAME = "dripfeed.log"


def storage_dir(git_dir: Path) -> Path:
    """Private storage area for a repository whose git dir is ``git_dir``."""
    return git_dir / STORAGE_DIRNAME


def atomic_write_text(path: Path, text: str) -> Path:
    """Replace ``path`` with ``text`` in one step.

    On failure the temp file is removed and ``path`` keeps its old content.
    """
    temp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)
    except OSError as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise DripfeedError(
            code=ErrorCode.FILE_WRITE_FAILED,
            context={"path": str(path), "detail": str(e)},
            cause=e,
        ) from e
    return path


def atomic_write_json(path: Path, data: dict[str, Any]) -> Path:
    return atomic_write_text(path, json.dumps(data, indent=2) + "\n")


def _read_json(path: Path, code: ErrorCode) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise DripfeedError(code=code, context={"detail": f"{path.name}: {e}"}, cause=e) from e
    if not isinstance(data, dict):
        raise DripfeedError(code=code, context={"detail": f"{path.name} is not an object"})
    return data


class PlanStore:
    """The single source of truth for what should happen."""

    def __init__(self, root: Path):
        self.root = root

    @property
    def path(self) -> Path:
        return self.root / PLAN_FILENAME

    @property
    def preview_path(self) -> Path:
        return self.root / PREVIEW_FILENAME

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Plan:
        """Load and validate the plan.

        Raises:
            DripfeedError: PLAN_NOT_FOUND when absent, PLAN_INVALID when the
                document is malformed or breaks the partition invariant.
        """
        if not self.exists():
            raise DripfeedError(code=ErrorCode.PLAN_NOT_FOUND, context={"path": str(self.path)})
        return Plan.from_dict(_read_json(self.path, ErrorCode.PLAN_INVALID)).validate()

    def save(self, plan: Plan) -> Path:
        """Overwrite the plan and regenerate the preview next to it."""
        atomic_write_json(self.path, plan.to_dict())
        atomic_write_text(self.preview_path, render_preview(plan))
        logger.debug("Saved plan %s (%d commits)", self.path, plan.total_commits)
        return self.path


class StateStore:
    """Cursor and audit trail; saved after every unit of work."""

    def __init__(self, root: Path):
        self.root = root

    @property
    def path(self) -> Path:
        return self.root / STATE_FILENAME

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> ExecutionState | None:
        """Load the state, or None if none has been written yet."""
        if not self.exists():
            return None
        return ExecutionState.from_dict(_read_json(self.path, ErrorCode.STATE_INVALID))

    def save(self, state: ExecutionState) -> Path:
        atomic_write_json(self.path, state.to_dict())
        logger.debug(
            "Saved state %s (next d%d-c%d)", self.path, state.next.day, state.next.index
        )
        return self.path


def open_stores(target_dir: Path) -> tuple[PlanStore, StateStore]:
    """Stores for an existing target repository.

    Raises:
        DripfeedError: TARGET_NOT_REPOSITORY when ``target_dir`` is not a
            git working tree.
    """
    repo = GitRepository(target_dir)
    if not repo.is_repository():
        raise DripfeedError(code=ErrorCode.TARGET_NOT_REPOSITORY, context={"path": str(target_dir)})
    root = storage_dir(repo.git_dir())
    return PlanStore(root), StateStore(root)
