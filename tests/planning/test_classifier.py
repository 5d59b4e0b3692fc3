"""Tests for file classification."""

import pytest

from dripfeed.planning.classifier import CATEGORY_ORDER, FileCategory, categorize, classify


class TestClassify:
    """Each category and the precedence between them."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            (".gitignore", FileCategory.SCAFFOLD),
            ("LICENSE", FileCategory.SCAFFOLD),
            ("README.md", FileCategory.SCAFFOLD),
            (".editorconfig", FileCategory.SCAFFOLD),
            ("package.json", FileCategory.BUILD),
            ("tsconfig.base.json", FileCategory.BUILD),
            ("vite.config.ts", FileCategory.BUILD),
            ("pyproject.toml", FileCategory.BUILD),
            ("config/routes.yaml", FileCategory.BUILD),
            ("src/auth/login.test.ts", FileCategory.TEST),
            ("tests/helpers.py", FileCategory.TEST),
            ("src/__spec__/thing.ts", FileCategory.TEST),
            ("CHANGELOG.md", FileCategory.DOCS),
            ("docs/guide.txt", FileCategory.DOCS),
            ("assets/font.woff", FileCategory.ASSET),
            ("public/logo.svg", FileCategory.ASSET),
            ("src/styles/site.css", FileCategory.ASSET),
            ("src/index.ts", FileCategory.SKELETON),
            ("src/main.py", FileCategory.SKELETON),
            ("src/App.tsx", FileCategory.SKELETON),
            ("src/utils/date.ts", FileCategory.FEATURE),
        ],
    )
    def test_categories(self, path: str, expected: FileCategory) -> None:
        assert classify(path) is expected

    def test_scaffold_beats_test_directory(self) -> None:
        """tests/README.md matches scaffold, test and docs; scaffold is checked first."""
        assert classify("tests/README.md") is FileCategory.SCAFFOLD

    def test_build_beats_test(self) -> None:
        assert classify("test/package.json") is FileCategory.BUILD

    def test_test_beats_docs(self) -> None:
        assert classify("test/notes.md") is FileCategory.TEST

    def test_docs_beats_skeleton(self) -> None:
        assert classify("docs/index.html") is FileCategory.DOCS

    def test_config_must_be_a_whole_directory_name(self) -> None:
        assert classify("src/configuration/loader.ts") is FileCategory.FEATURE

    def test_backslash_paths_accepted(self) -> None:
        assert classify("src\\index.ts") is FileCategory.SKELETON

    def test_deterministic(self) -> None:
        assert classify("src/feature/widget.ts") == classify("src/feature/widget.ts")


class TestCategorize:
    """Bulk classification."""

    def test_every_path_gets_one_category(self) -> None:
        paths = ["LICENSE", "src/index.ts", "src/a.ts", "docs/x.md"]
        result = categorize(paths)
        assert list(result) == paths
        assert all(isinstance(c, FileCategory) for c in result.values())

    def test_commit_order_covers_every_category(self) -> None:
        assert set(CATEGORY_ORDER) == set(FileCategory)
        assert CATEGORY_ORDER[0] is FileCategory.SCAFFOLD
        assert CATEGORY_ORDER[-1] is FileCategory.ASSET
