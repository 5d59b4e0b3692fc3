"""Execution state: the resumable cursor and the audit trail.

Kept apart from the Plan so that re-planning never discards progress.
``completed`` and ``skipped`` are append-only; ``next`` is the only field
that moves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from dripfeed.foundation.errors import DripfeedError, ErrorCode
from dripfeed.planning.types import Plan, PlannedCommit


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Phase(Enum):
    """States of the execution engine."""

    SETUP = "setup"
    PLANNING = "planning"
    REVIEW = "review"
    EXECUTION = "execution"
    FINISH = "finish"
    HALTED = "halted"
    """Absorbing error state, reachable from any other phase."""


@dataclass(frozen=True, slots=True)
class Cursor:
    """Position of the next commit to run, 1-based."""

    day: int = 1
    index: int = 1

    def advance(self, plan: Plan) -> Cursor:
        """Step to the following slot, rolling over at day boundaries.

        After the last planned commit the cursor points one day past the end.
        """
        entry = plan.get_day(self.day)
        if entry is not None and self.index < len(entry.commits):
            return Cursor(self.day, self.index + 1)
        return Cursor(self.day + 1, 1)

    def to_dict(self) -> dict[str, int]:
        return {"day": self.day, "index": self.index}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Cursor:
        return cls(day=int(data["day"]), index=int(data["index"]))


@dataclass(frozen=True, slots=True)
class CompletedCommit:
    """A revision that was actually created. Never mutated after append."""

    id: str
    day: int
    finished_at: datetime
    commit_sha: str
    file_checksums: dict[str, str]
    """Relative path -> sha256 of the committed content."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "day": self.day,
            "finishedAt": self.finished_at.isoformat(),
            "commitSha": self.commit_sha,
            "fileChecksums": dict(self.file_checksums),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompletedCommit:
        return cls(
            id=data["id"],
            day=int(data["day"]),
            finished_at=datetime.fromisoformat(data["finishedAt"]),
            commit_sha=data["commitSha"],
            file_checksums=dict(data.get("fileChecksums", {})),
        )


@dataclass(frozen=True, slots=True)
class SkippedCommit:
    """A commit the operator abandoned at the confirmation gate."""

    id: str
    day: int
    skipped_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "day": self.day, "skippedAt": self.skipped_at.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SkippedCommit:
        return cls(
            id=data["id"],
            day=int(data["day"]),
            skipped_at=datetime.fromisoformat(data["skippedAt"]),
        )


@dataclass(slots=True)
class ExecutionState:
    """Durable progress record for one target repository."""

    project_id: str
    completed: list[CompletedCommit] = field(default_factory=list)
    skipped: list[SkippedCommit] = field(default_factory=list)
    next: Cursor = field(default_factory=Cursor)
    source_checksums: dict[str, str] = field(default_factory=dict)

    @classmethod
    def fresh(cls, project_id: str) -> ExecutionState:
        return cls(project_id=project_id)

    @property
    def accounted(self) -> int:
        """Commits that are done one way or another."""
        return len(self.completed) + len(self.skipped)

    def is_finished(self, plan: Plan) -> bool:
        return self.accounted == plan.total_commits

    def completed_ids(self) -> set[str]:
        return {c.id for c in self.completed}

    def skipped_ids(self) -> set[str]:
        return {s.id for s in self.skipped}

    def pending(self, plan: Plan) -> PlannedCommit | None:
        """The commit ``next`` points at, or None when the plan is exhausted."""
        return plan.commit_at(self.next.day, self.next.index)

    def check_against(self, plan: Plan) -> ExecutionState:
        """Raise STATE_INVALID unless the cursor sits right after the accounted commits.

        Completed and skipped commits must be exactly the plan's first
        ``accounted`` commits, and ``next`` must be the one after them.
        """
        ordered = list(plan.commits())
        if self.accounted > len(ordered):
            raise _state_error(f"{self.accounted} commits recorded but plan has {len(ordered)}")

        done = self.completed_ids() | self.skipped_ids()
        expected_done = {c.id for c in ordered[: self.accounted]}
        if done != expected_done:
            raise _state_error("recorded commits are not a prefix of the plan")

        if self.accounted < len(ordered):
            upcoming = ordered[self.accounted]
            if (upcoming.day, upcoming.index) != (self.next.day, self.next.index):
                raise _state_error(
                    f"cursor at d{self.next.day}-c{self.next.index}, expected {upcoming.id}"
                )
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "completed": [c.to_dict() for c in self.completed],
            "skipped": [s.to_dict() for s in self.skipped],
            "next": self.next.to_dict(),
            "sourceChecksums": dict(self.source_checksums),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExecutionState:
        try:
            return cls(
                project_id=data["projectId"],
                completed=[CompletedCommit.from_dict(c) for c in data.get("completed", [])],
                skipped=[SkippedCommit.from_dict(s) for s in data.get("skipped", [])],
                next=Cursor.from_dict(data.get("next", {"day": 1, "index": 1})),
                source_checksums=dict(data.get("sourceChecksums", {})),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise _state_error(f"malformed state document: {e}") from e


def _state_error(detail: str) -> DripfeedError:
    return DripfeedError(code=ErrorCode.STATE_INVALID, context={"detail": detail})
