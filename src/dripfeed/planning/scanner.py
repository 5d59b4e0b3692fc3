"""Source tree scanning with ignore rules.

Collects ignore rules from every ``.gitignore`` in the source tree plus the
configured extra patterns, then walks the tree deterministically (entries
sorted by name) and returns the files worth replaying.

Matching is deliberately simple: a rule matches when the relative path
contains it, starts with it, or matches it as a glob. This errs on the side
of skipping too much rather than committing something unwanted.
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

SECURITY_PATTERNS: tuple[str, ...] = (
    ".env",
    ".env.*",
    "*.pem",
    "*.key",
    "id_rsa*",
    "id_dsa*",
    "id_ecdsa*",
    "id_ed25519*",
    "*.p12",
    "*.keystore",
    "*.sqlite",
    "*.credentials",
    "*.token",
    "*.bak",
    "node_modules",
    "dist",
    "build",
    ".next",
    ".cache",
    ".turbo",
    ".parcel-cache",
)
"""Never replayed, whatever the .gitignore files say. Matched per path segment."""


def parse_gitignore(path: Path) -> list[str]:
    """Read one ignore file into a list of rules.

    Blank lines, comments and negations (unsupported) are dropped; leading
    and trailing slashes are stripped.
    Returns an empty list when the file does not exist.
    """
    if not path.is_file():
        return []
    rules = []
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = line.strip()
        if not line or line.startswith(("#", "!")):
            continue
        rules.append(line.strip("/"))
    return [rule for rule in rules if rule]


@dataclass(frozen=True, slots=True)
class IgnoreRules:
    """The effective ignore rules for one source tree."""

    gitignore_patterns: tuple[str, ...] = ()
    skip_patterns: tuple[str, ...] = ()

    @property
    def patterns(self) -> tuple[str, ...]:
        return self.gitignore_patterns + self.skip_patterns

    def is_ignored(self, relative_path: str) -> bool:
        """True if the POSIX-style relative path must not be replayed."""
        parts = relative_path.split("/")
        if ".git" in parts:
            return True

        for pattern in self.patterns:
            if pattern in relative_path or relative_path.startswith(pattern):
                return True
            if any(ch in pattern for ch in "*?[") and (
                fnmatch.fnmatch(relative_path, pattern)
                or any(fnmatch.fnmatch(part, pattern) for part in parts)
            ):
                return True

        return any(
            fnmatch.fnmatch(part, pattern)
            for pattern in SECURITY_PATTERNS
            for part in parts
        )


def load_ignore_rules(source_dir: Path, skip_patterns: Iterable[str] = ()) -> IgnoreRules:
    """Gather rules from the root and every nested ``.gitignore``.

    Rules are de-duplicated keeping first-seen order. Nested ignore files are
    found with a raw walk (no rules applied) so that an ignore file inside an
    ignored directory still contributes, matching a plain recursive search.
    """
    seen: dict[str, None] = {}
    for rule in parse_gitignore(source_dir / ".gitignore"):
        seen.setdefault(rule, None)

    for path in _walk(source_dir, source_dir, None):
        if path.name == ".gitignore" and path.parent != source_dir:
            for rule in parse_gitignore(path):
                seen.setdefault(rule, None)

    return IgnoreRules(
        gitignore_patterns=tuple(seen),
        skip_patterns=tuple(p for p in skip_patterns if p),
    )


def scan_directory(source_dir: Path, rules: IgnoreRules | None = None) -> list[Path]:
    """List replayable files under ``source_dir`` in deterministic order.

    Args:
        source_dir: Root of the source tree
        rules: Ignore rules; None applies only the built-in security list

    Returns:
        Absolute file paths, depth-first with entries sorted by name.
        Symlinked directories are not followed.

    Raises:
        OSError: If a directory cannot be listed
    """
    files = list(_walk(source_dir, source_dir, rules if rules is not None else IgnoreRules()))
    logger.debug("Scanned %d files under %s", len(files), source_dir)
    return files


def _walk(current: Path, root: Path, rules: IgnoreRules | None) -> Iterable[Path]:
    for entry in sorted(current.iterdir(), key=lambda p: p.name):
        if entry.is_symlink() and not entry.exists():
            continue
        relative = entry.relative_to(root).as_posix()
        if entry.is_dir():
            # linked directories can loop back into the tree
            if entry.is_symlink():
                logger.debug("Skipping directory symlink %s", relative)
                continue
            if rules is None and entry.name == ".git":
                continue
            if rules is not None and rules.is_ignored(relative):
                continue
            yield from _walk(entry, root, rules)
        elif entry.is_file():
            if rules is not None and rules.is_ignored(relative):
                continue
            yield entry


def cluster_by_feature(relative_paths: Iterable[str]) -> dict[str, list[str]]:
    """Group paths by their first segment (``root`` for top-level files)."""
    clusters: dict[str, list[str]] = {}
    for relative in relative_paths:
        parts = relative.split("/")
        domain = parts[0] if len(parts) > 1 else "root"
        clusters.setdefault(domain, []).append(relative)
    return clusters
