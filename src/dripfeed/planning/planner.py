"""Commit planner: bin-pack classified files into day/commit slots.

The work queue is every file, grouped by category in ``CATEGORY_ORDER`` and
kept in scan order within a category. The queue is cut into consecutive
chunks and the chunks fill ``(day, index)`` slots row-major:

    d1-c1, d1-c2, ..., d1-cN, d2-c1, ...

Chunk size is ``max_files_per_commit`` when given, otherwise the queue is
spread evenly (``ceil(len(queue) / slots)``). A chunk never crosses a
category boundary, so each commit is one kind of work. Two edge rules keep
the partition exact:

- Queue runs out early: remaining slots and days are simply left out.
- Queue does not fit: the last slot absorbs every remaining file.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from dripfeed.planning.classifier import CATEGORY_ORDER, FileCategory
from dripfeed.planning.types import DayPlan, Plan, PlannedCommit, commit_id

logger = logging.getLogger(__name__)

# category -> (conventional type, message template)
_MESSAGE_TEMPLATES: dict[FileCategory, tuple[str, str]] = {
    FileCategory.SCAFFOLD: ("chore", "add project scaffolding and configuration"),
    FileCategory.BUILD: ("build", "setup build configuration and tooling"),
    FileCategory.SKELETON: ("feat", "add core application structure"),
    FileCategory.FEATURE: ("feat", "implement {scope} functionality"),
    FileCategory.TEST: ("test", "add tests for {scope}"),
    FileCategory.DOCS: ("docs", "add documentation for {scope}"),
    FileCategory.ASSET: ("chore", "add assets and styling"),
}


def describe_commit(category: FileCategory, first_file: str) -> tuple[str, str, str]:
    """Derive ``(type, scope, message)`` for a chunk.

    Depends only on the chunk's first file, so it is stable for a given
    classification.
    """
    scope = Path(first_file).parent.name or "repo"
    commit_type, template = _MESSAGE_TEMPLATES[category]
    subject = template.format(scope=scope)
    return commit_type, scope, f"{commit_type}({scope}): {subject}"


def build_queue(
    files: Sequence[str],
    categorized: Mapping[str, FileCategory],
) -> list[tuple[str, FileCategory]]:
    """Flatten files into the category-ordered work queue."""
    queue: list[tuple[str, FileCategory]] = []
    for category in CATEGORY_ORDER:
        queue.extend((f, category) for f in files if categorized[f] == category)
    return queue


def build_plan(
    files: Sequence[str],
    categorized: Mapping[str, FileCategory],
    total_days: int,
    commits_per_day: int,
    max_files_per_commit: int | None = None,
    *,
    project_id: str,
    timezone: str = "",
    runtime_version: str = "",
    settings: dict[str, Any] | None = None,
) -> Plan:
    """Build an unapproved plan.

    Args:
        files: Absolute source paths in scan order
        categorized: Category for every entry of ``files``
        total_days: Number of days
        commits_per_day: Slots per day
        max_files_per_commit: Fixed chunk size, or None to spread evenly
        project_id: Stable project identifier
        timezone: Recorded for display
        runtime_version: Interpreter version that passed the Setup check
        settings: Audit block (defaults + tweakables)

    Returns:
        Plan whose commits partition ``files`` exactly.
    """
    queue = build_queue(files, categorized)
    slot_count = total_days * commits_per_day
    chunk_size = max_files_per_commit or max(1, math.ceil(len(queue) / slot_count))

    days: list[DayPlan] = []
    cursor = 0
    slot = 0

    for day in range(1, total_days + 1):
        day_commits: list[PlannedCommit] = []
        for index in range(1, commits_per_day + 1):
            if cursor >= len(queue):
                break
            slot += 1
            chunk = queue[cursor:] if slot == slot_count else _take_chunk(queue, cursor, chunk_size)
            cursor += len(chunk)

            category = chunk[0][1]
            commit_type, scope, message = describe_commit(category, chunk[0][0])
            day_commits.append(PlannedCommit(
                id=commit_id(day, index),
                day=day,
                index=index,
                category=category,
                type=commit_type,
                scope=scope,
                message=message,
                files=[path for path, _ in chunk],
                why=f"{category.value} work ({len(chunk)} files)",
            ))

        if day_commits:
            days.append(DayPlan(day=day, commits=day_commits, summary=_day_summary(day, day_commits)))

    logger.debug(
        "Planned %d files into %d commits (chunk size %d, %d slots)",
        len(queue), sum(len(d.commits) for d in days), chunk_size, slot_count,
    )

    return Plan(
        project_id=project_id,
        total_days=total_days,
        commits_per_day=commits_per_day,
        days=days,
        approved=False,
        timezone=timezone,
        runtime_version_checked=runtime_version,
        settings=settings or {},
    )


def _take_chunk(
    queue: list[tuple[str, FileCategory]],
    start: int,
    size: int,
) -> list[tuple[str, FileCategory]]:
    """Up to ``size`` queue entries sharing the first entry's category."""
    category = queue[start][1]
    end = start
    while end < len(queue) and end - start < size and queue[end][1] == category:
        end += 1
    return queue[start:end]


def _day_summary(day: int, commits: list[PlannedCommit]) -> str:
    categories = list(dict.fromkeys(c.category.value for c in commits))
    return f"Day {day}: {', '.join(categories)} work"


def build_settings(
    *,
    commits_per_day: int,
    total_days: int,
    max_files_per_commit: int | None,
    skip_patterns: Sequence[str],
    push_mode: str,
    commit_mode: str,
    author_name: str | None,
    author_email: str | None,
) -> dict[str, Any]:
    """Denormalized settings block stored with the plan for audit/display."""
    return {
        "defaults": [
            {"key": "respectGitignore", "value": True, "notes": "Avoids noise and accidental secrets."},
            {"key": "applySkipPatterns", "value": True, "notes": "Extra safety for logs/temp/cache."},
            {"key": "conventionalCommits", "value": True, "notes": "Readable, automatable history."},
            {"key": "atomicCommits", "value": True, "notes": "Easier review & revert."},
            {
                "key": "commitOrdering",
                "value": " > ".join(c.value for c in CATEGORY_ORDER),
                "notes": "Every commit boundary builds.",
            },
            {"key": "realTimestamps", "value": True, "notes": "No backdating."},
            {"key": "integrityChecks", "value": "sha256", "notes": "Copy correctness."},
            {"key": "balancedDistribution", "value": True, "notes": "Steady progress cadence."},
            {"key": "pushModeDefault", "value": "manual", "notes": "Avoid accidental pushes."},
        ],
        "tweakables": [
            {"key": "commitsPerDay", "value": commits_per_day},
            {"key": "totalDays", "value": total_days},
            {"key": "maxFilesPerCommit", "value": max_files_per_commit},
            {"key": "skipPatterns", "value": list(skip_patterns)},
            {"key": "pushMode", "value": push_mode},
            {"key": "commitMode", "value": commit_mode},
            {"key": "authorName", "value": author_name},
            {"key": "authorEmail", "value": author_email},
        ],
    }


def render_preview(plan: Plan) -> str:
    """Human-readable preview: day -> commit id -> message."""
    lines = ["# Commit Plan Preview", ""]
    for day in plan.days:
        lines.append(f"## {day.summary}")
        lines.append("")
        for commit in day.commits:
            lines.append(f"- **{commit.id}**: {commit.message}")
        lines.append("")
    return "\n".join(lines)
