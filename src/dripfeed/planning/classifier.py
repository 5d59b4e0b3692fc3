"""File classification for commit ordering.

Every discovered file lands in exactly one category. The checks run in a
fixed order and the first match wins, so a file that looks like several
things (``tests/README.md``) always resolves the same way.

    scaffold -> build -> test -> docs -> asset -> skeleton -> feature

Note that the *match* order above differs from the *commit* order in
``CATEGORY_ORDER``: a test file must be recognised as a test before the
looser skeleton heuristics see it, but skeleton files are committed first.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath


class FileCategory(Enum):
    """Classifier buckets, also used as the commit's category."""

    SCAFFOLD = "scaffold"
    """Ignore files, licenses, readmes, editor config."""

    BUILD = "build"
    """Package manifests, bundler/tool configs, anything under config/."""

    SKELETON = "skeleton"
    """Entry points: index files, main, app."""

    FEATURE = "feature"
    """Catch-all for source code."""

    TEST = "test"
    DOCS = "docs"
    ASSET = "asset"


CATEGORY_ORDER: tuple[FileCategory, ...] = (
    FileCategory.SCAFFOLD,
    FileCategory.BUILD,
    FileCategory.SKELETON,
    FileCategory.FEATURE,
    FileCategory.TEST,
    FileCategory.DOCS,
    FileCategory.ASSET,
)
"""Commit order. Scaffolding and tooling first so every boundary builds."""

_SCAFFOLD_MARKERS = ("gitignore", "license", "readme", "editorconfig")

_BUILD_MARKERS = (
    "package.json",
    "tsconfig",
    "webpack",
    "vite",
    "rollup",
    "babel.config",
    "pyproject.toml",
    "setup.cfg",
    "setup.py",
    "requirements",
    "cargo.toml",
    "go.mod",
    "pom.xml",
    "build.gradle",
    "makefile",
)

_TEST_MARKERS = ("test", "spec")

_ASSET_SUFFIXES = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico",
    ".css", ".scss", ".less",
})

_SKELETON_MARKERS = ("main", "app")


def classify(relative_path: str | PurePosixPath) -> FileCategory:
    """Assign a source-relative path to its category.

    Pure and total: the same path always yields the same category and every
    path yields one (``FEATURE`` when nothing else matches).

    Args:
        relative_path: Path relative to the source root. Either separator
            style is accepted.

    Returns:
        The file's category.

    Example:
        >>> classify("src/utils/date.ts")
        <FileCategory.FEATURE: 'feature'>
        >>> classify("config/routes.yaml")
        <FileCategory.BUILD: 'build'>
    """
    path = PurePosixPath(str(relative_path).replace("\\", "/"))
    basename = path.name.lower()
    dirname = str(path.parent).lower() if str(path.parent) != "." else ""
    dir_parts = [part.lower() for part in path.parent.parts]

    if any(marker in basename for marker in _SCAFFOLD_MARKERS):
        return FileCategory.SCAFFOLD

    if any(marker in basename for marker in _BUILD_MARKERS) or "config" in dir_parts:
        return FileCategory.BUILD

    if any(marker in basename for marker in _TEST_MARKERS) or "test" in dirname or "spec" in dirname:
        return FileCategory.TEST

    if basename.endswith(".md") or "doc" in dirname:
        return FileCategory.DOCS

    if "asset" in dirname or path.suffix.lower() in _ASSET_SUFFIXES:
        return FileCategory.ASSET

    if "index" in str(path).lower() or any(marker in basename for marker in _SKELETON_MARKERS):
        return FileCategory.SKELETON

    return FileCategory.FEATURE


def categorize(relative_paths: list[str]) -> dict[str, FileCategory]:
    """Classify many paths at once, preserving input order."""
    return {path: classify(path) for path in relative_paths}
