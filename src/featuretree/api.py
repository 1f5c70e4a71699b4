"""Public API: use featuretree from Python or from other tools."""

from __future__ import annotations

from pathlib import Path

from featuretree.core.query import FeatureRow, select_rows
from featuretree.core.resolver import ResolvedFeatureView, resolve_workspace_features
from featuretree.core.walker import find_workspace_root
from featuretree.core.workspace import Workspace
from featuretree.core.workspace import load_workspace as _load_workspace


def load_workspace(root: Path, *, jobs: int = 1) -> Workspace:
    """
    Discover and load all member packages under a workspace root.

    Raises WorkspaceError or ManifestError when the workspace cannot be listed.
    """
    return _load_workspace(Path(root), jobs=jobs)


def resolve_workspace(workspace: Workspace) -> list[ResolvedFeatureView]:
    """
    Resolve the dependency features of every package in a loaded workspace.

    Views come back in the workspace's discovery order. Dependencies that are
    themselves workspace members get their declared features in `available`.
    """
    return resolve_workspace_features(workspace.packages)


def list_features(
    root: Path,
    *,
    package: str | None = None,
    dependency: str | None = None,
    all_: bool = False,
    jobs: int = 1,
) -> list[FeatureRow]:
    """
    List (package, dependency, features) rows for a workspace.

    Args:
        root: Workspace directory or its Cargo.toml.
        package: Only rows of the package with exactly this name.
        dependency: Only rows of the dependency with exactly this name.
        all_: Return every row, ignoring package and dependency.
        jobs: Threads used to read manifests.

    Returns:
        Rows in discovery and declaration order; empty when nothing matches.
    """
    workspace = load_workspace(root, jobs=jobs)
    views = resolve_workspace(workspace)
    return select_rows(views, package=package, dependency=dependency, all_=all_)


def locate_workspace(start: Path | None = None) -> Path | None:
    """
    Find the workspace root that contains `start` (default: current directory).

    Returns None when no Cargo.toml exists in `start` or any parent.
    """
    return find_workspace_root(start)
