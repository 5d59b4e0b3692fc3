"""Plan data model.

A Plan is the full, ordered schedule of commits: days in sequence, each with
commits in sequence. Serialized field names follow the on-disk document
(camelCase) so plans stay readable by other tooling.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from dripfeed.foundation.errors import plan_error
from dripfeed.planning.classifier import FileCategory


def commit_id(day: int, index: int) -> str:
    """Deterministic commit id, e.g. ``d2-c1``."""
    return f"d{day}-c{index}"


@dataclass(slots=True)
class PlannedCommit:
    """One commit slot in the plan.

    Only ``message`` may change after planning (the review reword edit).

    Attributes:
        id: ``d{day}-c{index}``, globally orderable by (day, index)
        day: 1-based day number
        index: 1-based position within the day
        category: Category of the first file in the chunk
        type: Conventional-commit type (chore, build, feat, test, docs)
        scope: Directory name of the first file
        message: Full commit message
        files: Absolute source paths, never empty
        why: Short rationale for display
    """

    id: str
    day: int
    index: int
    category: FileCategory
    type: str
    scope: str
    message: str
    files: list[str]
    why: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "scope": self.scope,
            "message": self.message,
            "files": list(self.files),
            "category": self.category.value,
            "why": self.why,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], day: int, index: int) -> PlannedCommit:
        return cls(
            id=data["id"],
            day=day,
            index=index,
            category=FileCategory(data["category"]),
            type=data["type"],
            scope=data["scope"],
            message=data["message"],
            files=list(data["files"]),
            why=data.get("why", ""),
        )


@dataclass(slots=True)
class DayPlan:
    """A day's commits in order."""

    day: int
    commits: list[PlannedCommit] = field(default_factory=list)
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day,
            "summary": self.summary,
            "commits": [c.to_dict() for c in self.commits],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DayPlan:
        day = int(data["day"])
        return cls(
            day=day,
            summary=data.get("summary", ""),
            commits=[
                PlannedCommit.from_dict(c, day, i)
                for i, c in enumerate(data.get("commits", []), start=1)
            ],
        )


@dataclass(slots=True)
class Plan:
    """The root planning artifact.

    Invariant: the commits' file lists partition the classified file set.
    Execution is forbidden while ``approved`` is False.
    """

    project_id: str
    total_days: int
    commits_per_day: int
    days: list[DayPlan] = field(default_factory=list)
    approved: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    timezone: str = ""
    runtime_version_checked: str = ""
    settings: dict[str, Any] = field(default_factory=dict)

    def commits(self) -> Iterator[PlannedCommit]:
        """All commits in program order (day, then index)."""
        for day in self.days:
            yield from day.commits

    @property
    def total_commits(self) -> int:
        return sum(len(day.commits) for day in self.days)

    def all_files(self) -> list[str]:
        return [f for commit in self.commits() for f in commit.files]

    def get_day(self, day: int) -> DayPlan | None:
        for entry in self.days:
            if entry.day == day:
                return entry
        return None

    def get_commit(self, cid: str) -> PlannedCommit | None:
        for commit in self.commits():
            if commit.id == cid:
                return commit
        return None

    def commit_at(self, day: int, index: int) -> PlannedCommit | None:
        entry = self.get_day(day)
        if entry is None or not 1 <= index <= len(entry.commits):
            return None
        return entry.commits[index - 1]

    def reword(self, cid: str, message: str) -> PlannedCommit | None:
        """Replace one commit's message. Returns the commit, or None if unknown."""
        commit = self.get_commit(cid)
        if commit is not None:
            commit.message = message
        return commit

    def validate(self) -> Plan:
        """Check structural invariants, raising PLAN_INVALID on violation."""
        seen: set[str] = set()
        expected_day = 1
        for entry in self.days:
            if entry.day != expected_day:
                raise plan_error(f"day {entry.day} out of sequence (expected {expected_day})")
            expected_day += 1
            if not entry.commits:
                raise plan_error(f"day {entry.day} has no commits")
            for index, commit in enumerate(entry.commits, start=1):
                if commit.id != commit_id(entry.day, index):
                    raise plan_error(
                        f"commit {commit.id} should be {commit_id(entry.day, index)}"
                    )
                if not commit.files:
                    raise plan_error(f"commit {commit.id} has no files")
                for path in commit.files:
                    if path in seen:
                        raise plan_error(f"{path} appears in more than one commit")
                    seen.add(path)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "projectId": self.project_id,
            "createdAt": self.created_at.isoformat(),
            "timezone": self.timezone,
            "runtimeVersionChecked": self.runtime_version_checked,
            "totalDays": self.total_days,
            "commitsPerDay": self.commits_per_day,
            "settings": self.settings,
            "days": [d.to_dict() for d in self.days],
            "approved": self.approved,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Plan:
        try:
            return cls(
                project_id=data["projectId"],
                total_days=int(data["totalDays"]),
                commits_per_day=int(data["commitsPerDay"]),
                days=[DayPlan.from_dict(d) for d in data.get("days", [])],
                approved=bool(data.get("approved", False)),
                created_at=datetime.fromisoformat(data["createdAt"]),
                timezone=data.get("timezone", ""),
                runtime_version_checked=data.get("runtimeVersionChecked", ""),
                settings=data.get("settings", {}),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise plan_error(f"malformed plan document: {e}") from e
