"""Tests for featuretree.core.walker module."""

from __future__ import annotations

from pathlib import Path

import pytest

from featuretree.core.errors import ManifestError, WorkspaceError
from featuretree.core.walker import (
    WorkspaceManifest,
    _is_excluded,
    _normalize,
    find_workspace_root,
    iter_manifest_paths,
    read_workspace_manifest,
)

PACKAGE = """
[package]
name = "{name}"
version = "0.1.0"
"""


def _member(write_manifest, directory: Path, name: str | None = None) -> Path:
    return write_manifest(directory, PACKAGE.format(name=name or directory.name)).resolve()


class TestNormalize:
    """Tests for _normalize helper."""

    def test_strips_dot_slash_and_trailing_slash(self) -> None:
        assert _normalize("./crates/legacy/") == "crates/legacy"

    def test_backslashes(self) -> None:
        assert _normalize("crates\\legacy") == "crates/legacy"


class TestIsExcluded:
    """Tests for _is_excluded helper."""

    def test_exact(self) -> None:
        assert _is_excluded("crates/legacy", ["crates/legacy"]) is True

    def test_prefix_directory(self) -> None:
        assert _is_excluded("crates/legacy/inner", ["crates/legacy"]) is True

    def test_prefix_is_not_substring(self) -> None:
        assert _is_excluded("crates/legacy2", ["crates/legacy"]) is False

    def test_glob(self) -> None:
        assert _is_excluded("examples/demo", ["examples/*"]) is True

    def test_no_patterns(self) -> None:
        assert _is_excluded("crates/core", []) is False


class TestReadWorkspaceManifest:
    """Tests for read_workspace_manifest."""

    def test_missing_root(self, tmp_path: Path) -> None:
        with pytest.raises(WorkspaceError, match="not found"):
            read_workspace_manifest(tmp_path)

    def test_invalid_toml_is_manifest_error(self, tmp_path: Path) -> None:
        (tmp_path / "Cargo.toml").write_text("[workspace\n")
        with pytest.raises(ManifestError):
            read_workspace_manifest(tmp_path)

    def test_accepts_manifest_file(self, tmp_path: Path, write_manifest) -> None:
        manifest = write_manifest(tmp_path, '[workspace]\nmembers = ["a"]\n')
        info = read_workspace_manifest(manifest)
        assert info.root == tmp_path.resolve()
        assert info.manifest_path == manifest.resolve()

    def test_workspace_tables(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(
            tmp_path,
            """
            [workspace]
            members = ["crates/*"]
            exclude = ["crates/legacy"]

            [workspace.package]
            version = "1.2.3"

            [workspace.dependencies]
            serde = { version = "1", features = ["derive"] }
            anyhow = "1"
            """,
        )
        info = read_workspace_manifest(tmp_path)
        assert isinstance(info, WorkspaceManifest)
        assert info.is_workspace is True
        assert info.is_package is False
        assert info.members == ["crates/*"]
        assert info.exclude == ["crates/legacy"]
        assert info.package == {"version": "1.2.3"}
        assert list(info.dependencies) == ["serde", "anyhow"]
        assert info.dependencies["serde"].features == ["derive"]

    def test_members_must_be_strings(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, "[workspace]\nmembers = [1, 2]\n")
        with pytest.raises(WorkspaceError, match="members"):
            read_workspace_manifest(tmp_path)

    def test_to_dict(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[workspace]\nmembers = ["a"]\n')
        d = read_workspace_manifest(tmp_path).to_dict()
        assert d["members"] == ["a"]
        assert d["is_workspace"] is True


class TestIterManifestPaths:
    """Tests for iter_manifest_paths."""

    def test_missing_root(self, tmp_path: Path) -> None:
        with pytest.raises(WorkspaceError):
            list(iter_manifest_paths(tmp_path))

    def test_is_lazy(self, tmp_path: Path) -> None:
        # Nothing is read until the first item is requested
        paths = iter_manifest_paths(tmp_path)
        with pytest.raises(WorkspaceError):
            next(paths)

    def test_single_package(self, tmp_path: Path, write_manifest) -> None:
        root = _member(write_manifest, tmp_path, "solo")
        assert list(iter_manifest_paths(tmp_path)) == [root]

    def test_neither_workspace_nor_package(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[dependencies]\nserde = "1"\n')
        with pytest.raises(WorkspaceError):
            list(iter_manifest_paths(tmp_path))

    def test_empty_members(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, "[workspace]\nmembers = []\n")
        with pytest.raises(WorkspaceError, match="no members"):
            list(iter_manifest_paths(tmp_path))

    def test_root_package_without_members(self, tmp_path: Path, write_manifest) -> None:
        root = write_manifest(
            tmp_path,
            """
            [workspace]

            [package]
            name = "root"
            """,
        ).resolve()
        assert list(iter_manifest_paths(tmp_path)) == [root]

    def test_root_package_comes_first(self, tmp_path: Path, write_manifest) -> None:
        root = write_manifest(
            tmp_path,
            """
            [workspace]
            members = ["member"]

            [package]
            name = "root"
            """,
        ).resolve()
        member = _member(write_manifest, tmp_path / "member")
        assert list(iter_manifest_paths(tmp_path)) == [root, member]

    def test_explicit_members_keep_declaration_order(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[workspace]\nmembers = ["zeta", "alpha"]\n')
        zeta = _member(write_manifest, tmp_path / "zeta")
        alpha = _member(write_manifest, tmp_path / "alpha")
        assert list(iter_manifest_paths(tmp_path)) == [zeta, alpha]

    def test_glob_members_sorted(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[workspace]\nmembers = ["crates/*"]\n')
        b = _member(write_manifest, tmp_path / "crates" / "b")
        a = _member(write_manifest, tmp_path / "crates" / "a")
        assert list(iter_manifest_paths(tmp_path)) == [a, b]

    def test_glob_skips_dirs_without_manifest(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[workspace]\nmembers = ["crates/*"]\n')
        a = _member(write_manifest, tmp_path / "crates" / "a")
        (tmp_path / "crates" / "docs").mkdir()
        (tmp_path / "crates" / "README.md").write_text("not a crate")
        assert list(iter_manifest_paths(tmp_path)) == [a]

    def test_explicit_member_without_manifest(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[workspace]\nmembers = ["missing"]\n')
        with pytest.raises(WorkspaceError, match="missing"):
            list(iter_manifest_paths(tmp_path))

    def test_exclude_wins_over_include(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(
            tmp_path,
            """
            [workspace]
            members = ["crates/*"]
            exclude = ["crates/legacy"]
            """,
        )
        core = _member(write_manifest, tmp_path / "crates" / "core")
        _member(write_manifest, tmp_path / "crates" / "legacy")
        assert list(iter_manifest_paths(tmp_path)) == [core]

    def test_exclude_applies_to_explicit_member(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(
            tmp_path,
            """
            [workspace]
            members = ["crates/core", "crates/legacy"]
            exclude = ["./crates/legacy/"]
            """,
        )
        core = _member(write_manifest, tmp_path / "crates" / "core")
        # Excluded members need no manifest at all
        assert list(iter_manifest_paths(tmp_path)) == [core]

    def test_deduplicates_overlapping_patterns(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(
            tmp_path,
            """
            [workspace]
            members = ["crates/core", "crates/*", "./crates/core"]
            """,
        )
        core = _member(write_manifest, tmp_path / "crates" / "core")
        util = _member(write_manifest, tmp_path / "crates" / "util")
        paths = list(iter_manifest_paths(tmp_path))
        assert paths == [core, util]
        assert len(paths) == len(set(paths))

    def test_reuses_given_workspace_manifest(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[workspace]\nmembers = ["a"]\n')
        a = _member(write_manifest, tmp_path / "a")
        info = read_workspace_manifest(tmp_path)
        assert list(iter_manifest_paths(tmp_path, workspace=info)) == [a]


class TestFindWorkspaceRoot:
    """Tests for find_workspace_root."""

    def test_nothing_found(self, tmp_path: Path) -> None:
        start = tmp_path / "empty"
        start.mkdir()
        # tmp_path lives outside any Cargo project
        assert find_workspace_root(start) is None

    def test_from_member_directory(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[workspace]\nmembers = ["crates/*"]\n')
        _member(write_manifest, tmp_path / "crates" / "core")
        src = tmp_path / "crates" / "core" / "src"
        src.mkdir()
        assert find_workspace_root(src) == tmp_path.resolve()

    def test_single_package_falls_back_to_nearest(self, tmp_path: Path, write_manifest) -> None:
        _member(write_manifest, tmp_path / "solo")
        assert find_workspace_root(tmp_path / "solo") == (tmp_path / "solo").resolve()

    def test_from_file(self, tmp_path: Path, write_manifest) -> None:
        manifest = write_manifest(tmp_path, '[workspace]\nmembers = ["a"]\n')
        assert find_workspace_root(manifest) == tmp_path.resolve()

    def test_workspace_header_with_comment(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[workspace] # root\nmembers = ["a"]\n')
        _member(write_manifest, tmp_path / "a")
        assert find_workspace_root(tmp_path / "a") == tmp_path.resolve()

    def test_inline_workspace_table(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, 'workspace = { members = ["a"] }\n')
        _member(write_manifest, tmp_path / "a")
        assert find_workspace_root(tmp_path / "a") == tmp_path.resolve()

    def test_unparseable_ancestor_is_skipped(self, tmp_path: Path, write_manifest) -> None:
        write_manifest(tmp_path, '[workspace]\nmembers = ["mid/a"]\n')
        (tmp_path / "mid").mkdir()
        (tmp_path / "mid" / "Cargo.toml").write_bytes(b"[workspace\n\xff")
        _member(write_manifest, tmp_path / "mid" / "a")
        assert find_workspace_root(tmp_path / "mid" / "a") == tmp_path.resolve()
