"""Discover member package manifests of a Cargo-style workspace."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any

from featuretree.core.errors import ManifestError, WorkspaceError
from featuretree.core.manifest import (
    MANIFEST_NAME,
    DependencyDeclaration,
    parse_dependency_tables,
    read_manifest,
)
from featuretree.utils.logging import get_logger

logger = get_logger(__name__)

_GLOB_CHARS = ("*", "?", "[")


@dataclass
class WorkspaceManifest:
    """The parts of a root manifest that drive member discovery and inheritance."""

    root: Path
    manifest_path: Path
    is_workspace: bool = False
    is_package: bool = False
    members: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    dependencies: dict[str, DependencyDeclaration] = field(default_factory=dict)
    package: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "root": str(self.root),
            "manifest_path": str(self.manifest_path),
            "is_workspace": self.is_workspace,
            "is_package": self.is_package,
            "members": list(self.members),
            "exclude": list(self.exclude),
        }


def _root_manifest_path(root: Path) -> Path:
    root = Path(root)
    if root.name == MANIFEST_NAME and not root.is_dir():
        return root
    return root / MANIFEST_NAME


def _pattern_list(manifest_path: Path, workspace: dict[str, Any], key: str) -> list[str]:
    value = workspace.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise WorkspaceError(f"`workspace.{key}` must be an array of strings", manifest_path)
    return list(value)


def read_workspace_manifest(root: Path) -> WorkspaceManifest:
    """
    Read the root manifest of a workspace.

    `root` is the workspace directory or its Cargo.toml.

    Raises WorkspaceError if the root manifest is missing, ManifestError if it
    cannot be parsed.
    """
    manifest_path = _root_manifest_path(root)
    if not manifest_path.is_file():
        raise WorkspaceError("workspace root manifest not found", manifest_path)
    manifest_path = manifest_path.resolve()
    data = read_manifest(manifest_path)

    info = WorkspaceManifest(
        root=manifest_path.parent,
        manifest_path=manifest_path,
        is_package="package" in data,
    )
    workspace = data.get("workspace")
    if workspace is None:
        return info
    if not isinstance(workspace, dict):
        raise WorkspaceError("`workspace` must be a table", manifest_path)

    info.is_workspace = True
    info.members = _pattern_list(manifest_path, workspace, "members")
    info.exclude = _pattern_list(manifest_path, workspace, "exclude")
    package = workspace.get("package", {})
    if not isinstance(package, dict):
        raise WorkspaceError("`workspace.package` must be a table", manifest_path)
    info.package = package
    inherited = parse_dependency_tables(
        manifest_path,
        {"dependencies": workspace.get("dependencies", {})},
        prefix="workspace.",
    )
    info.dependencies = {d.name: d for d in inherited}
    return info


def _normalize(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern.rstrip("/")


def _is_excluded(relative: str, exclude: list[str]) -> bool:
    """True if a member path equals, glob-matches, or lies under an exclude entry."""
    for raw in exclude:
        pattern = _normalize(raw)
        if not pattern:
            continue
        if relative == pattern or relative.startswith(pattern + "/"):
            return True
        if fnmatchcase(relative, pattern):
            return True
    return False


def _relative(path: Path, root: Path) -> str:
    try:
        return path.resolve().relative_to(root).as_posix()
    except ValueError:
        # Members outside the root are matched on their absolute path
        return path.resolve().as_posix()


def _expand_member(root: Path, pattern: str) -> tuple[list[Path], bool]:
    """Expand one member entry into candidate directories; the flag marks glob patterns."""
    normalized = _normalize(pattern)
    if any(c in normalized for c in _GLOB_CHARS):
        matches = sorted(p for p in root.glob(normalized) if p.is_dir())
        return matches, True
    return [root / normalized], False


def iter_manifest_paths(
    root: Path,
    *,
    workspace: WorkspaceManifest | None = None,
) -> Iterator[Path]:
    """
    Yield the manifest path of every workspace member, in discovery order.

    The root package (if the root manifest has a `[package]`) comes first, then
    members in the order their patterns are declared. Exclusions win over
    inclusions. Paths are canonical and never repeated.

    Raises WorkspaceError when the root manifest is missing or the workspace has
    no members and is not itself a package.
    """
    if workspace is None:
        workspace = read_workspace_manifest(root)

    if not workspace.is_workspace:
        if not workspace.is_package:
            raise WorkspaceError(
                "manifest declares neither `[workspace]` nor `[package]`",
                workspace.manifest_path,
            )
        yield workspace.manifest_path
        return

    if not workspace.members and not workspace.is_package:
        raise WorkspaceError("workspace declares no members", workspace.manifest_path)

    seen: set[Path] = set()
    if workspace.is_package:
        seen.add(workspace.manifest_path)
        yield workspace.manifest_path

    for pattern in workspace.members:
        candidates, is_glob = _expand_member(workspace.root, pattern)
        for candidate in candidates:
            relative = _relative(candidate, workspace.root)
            if _is_excluded(relative, workspace.exclude):
                logger.debug("member excluded", member=relative, pattern=pattern)
                continue
            manifest = candidate / MANIFEST_NAME
            if not manifest.is_file():
                if is_glob:
                    logger.debug("glob match has no manifest", member=relative)
                    continue
                raise WorkspaceError(
                    f"workspace member `{pattern}` has no {MANIFEST_NAME}",
                    workspace.manifest_path,
                )
            canonical = manifest.resolve()
            if canonical in seen:
                continue
            seen.add(canonical)
            yield canonical


def find_workspace_root(start: Path | None = None) -> Path | None:
    """
    Locate the workspace root for a directory.

    Walks upward from `start` (default: current directory) and returns the
    nearest directory whose Cargo.toml declares `[workspace]`. If none does,
    returns the nearest directory containing a Cargo.toml, or None.
    """
    current = Path(start).resolve() if start is not None else Path.cwd().resolve()
    if current.is_file():
        current = current.parent

    nearest: Path | None = None
    for directory in (current, *current.parents):
        manifest = directory / MANIFEST_NAME
        if not manifest.is_file():
            continue
        if nearest is None:
            nearest = directory
        try:
            data = read_manifest(manifest)
        except ManifestError as e:
            logger.debug("skipping unreadable manifest", path=str(manifest), error=e.message)
            continue
        if "workspace" in data:
            return directory
    return nearest
