"""Tests for source file discovery and file helpers."""

import os

import pytest
from helpers import write_files

from ormlens.config import AnalysisConfig
from ormlens.discovery import discover_files
from ormlens.exceptions import FileAccessError
from ormlens.file_ops import atomic_write_text, read_text_file, should_skip_file


@pytest.fixture
def tree(tmp_path):
    write_files(
        tmp_path,
        {
            "app/models.py": "",
            "app/views.py": "",
            "app/templates/index.html": "",
            "venv/lib/site.py": "",
            "app/__pycache__/models.cpython-312.py": "",
            ".ormlens/cache/x.py": "",
            "scripts/seed.py": "",
        },
    )
    return tmp_path


class TestDiscoverFiles:
    def test_default_patterns(self, tree):
        assert discover_files(tree, tree, AnalysisConfig()) == [
            "app/models.py",
            "app/views.py",
            "scripts/seed.py",
        ]

    def test_source_dir_keeps_workspace_relative_ids(self, tree):
        assert discover_files(tree, tree / "app", AnalysisConfig()) == [
            "app/models.py",
            "app/views.py",
        ]

    def test_overlapping_patterns_are_deduplicated(self, tree):
        config = AnalysisConfig(include_patterns=["**/*.py", "app/*.py"])
        assert discover_files(tree, tree, config).count("app/models.py") == 1

    def test_extra_excludes(self, tree):
        config = AnalysisConfig(exclude_patterns=["scripts/*", "*views.py"])
        assert "scripts/seed.py" not in discover_files(tree, tree, config)
        assert "app/views.py" not in discover_files(tree, tree, config)

    def test_size_limit(self, tree):
        (tree / "app" / "big.py").write_bytes(b"#" * 2048)
        config = AnalysisConfig(max_file_size_mb=1 / 1024)
        assert "app/big.py" not in discover_files(tree, tree, config)

    def test_missing_source_dir(self, tree):
        assert discover_files(tree, tree / "absent", AnalysisConfig()) == []

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlinks(self, tree):
        (tree / "app" / "alias.py").symlink_to(tree / "app" / "models.py")
        assert "app/alias.py" not in discover_files(tree, tree, AnalysisConfig())
        config = AnalysisConfig(follow_symlinks=True)
        assert "app/alias.py" in discover_files(tree, tree, config)


class TestShouldSkipFile:
    @pytest.mark.parametrize(
        "path",
        ["venv/x.py", "app/venv/lib/x.py", "pkg.egg-info/x.py", ".git/hooks/x.py"],
    )
    def test_excluded(self, path):
        assert should_skip_file(path, AnalysisConfig().exclude_patterns)

    @pytest.mark.parametrize("path", ["app/models.py", "environment.py", "distance/calc.py"])
    def test_included(self, path):
        assert not should_skip_file(path, AnalysisConfig().exclude_patterns)


class TestFileOps:
    def test_read_missing_file(self, tmp_path):
        with pytest.raises(FileAccessError, match="Cannot access file"):
            read_text_file(tmp_path / "absent.py")

    def test_read_replaces_bad_bytes_by_default(self, tmp_path):
        path = tmp_path / "latin.py"
        path.write_bytes(b"name = '\xe9'\n")
        assert "\ufffd" in read_text_file(path)

    def test_strict_read_rejects_bad_bytes(self, tmp_path):
        path = tmp_path / "latin.py"
        path.write_bytes(b"name = '\xe9'\n")
        with pytest.raises(FileAccessError):
            read_text_file(path, errors="strict")

    def test_atomic_write_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "out.json"
        atomic_write_text(target, "{}\n")
        assert target.read_text() == "{}\n"
        assert [p.name for p in target.parent.iterdir()] == ["out.json"]

    def test_atomic_write_replaces(self, tmp_path):
        target = tmp_path / "out.json"
        atomic_write_text(target, "old")
        atomic_write_text(target, "new")
        assert target.read_text() == "new"
