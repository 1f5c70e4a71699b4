"""Load every member package of a workspace."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from featuretree.core.errors import WorkspaceError
from featuretree.core.manifest import Package, load_manifest
from featuretree.core.walker import (
    WorkspaceManifest,
    iter_manifest_paths,
    read_workspace_manifest,
)
from featuretree.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Workspace:
    """A workspace root and its member packages in discovery order."""

    root: Path
    manifest_path: Path
    packages: list[Package] = field(default_factory=list)

    @property
    def package_names(self) -> list[str]:
        return [p.name for p in self.packages]

    def package(self, name: str) -> Package | None:
        """Return the member package with this exact name, or None."""
        for pkg in self.packages:
            if pkg.name == name:
                return pkg
        return None

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "root": str(self.root),
            "manifest_path": str(self.manifest_path),
            "packages": [p.to_dict() for p in self.packages],
        }


def _load_all(
    paths: list[Path],
    workspace: WorkspaceManifest,
    jobs: int,
) -> list[Package]:
    if jobs <= 1 or len(paths) <= 1:
        return [load_manifest(p, workspace=workspace) for p in paths]

    results: list[tuple[int, Package]] = []
    with ThreadPoolExecutor(max_workers=jobs) as pool:
        futures = {
            pool.submit(load_manifest, path, workspace=workspace): index
            for index, path in enumerate(paths)
        }
        for future in as_completed(futures):
            # First failing manifest aborts the whole load
            results.append((futures[future], future.result()))
    results.sort(key=lambda item: item[0])
    return [pkg for _index, pkg in results]


def load_workspace(root: Path, *, jobs: int = 1) -> Workspace:
    """
    Discover and load every member package of a workspace.

    Args:
        root: Workspace directory or its Cargo.toml.
        jobs: Number of threads used to read manifests; 1 reads them in order.

    Returns:
        Workspace with packages in discovery order.

    Raises:
        WorkspaceError: root manifest missing, no members, or duplicate package names.
        ManifestError: any member manifest is unreadable or malformed.
    """
    info = read_workspace_manifest(root)
    paths = list(iter_manifest_paths(info.root, workspace=info))
    packages = _load_all(paths, info, jobs)

    seen: dict[str, Path] = {}
    for pkg in packages:
        if pkg.name in seen:
            raise WorkspaceError(
                f"package `{pkg.name}` is declared by both {seen[pkg.name]} and {pkg.manifest_path}",
                info.manifest_path,
            )
        seen[pkg.name] = pkg.manifest_path

    logger.info("workspace loaded", root=str(info.root), packages=len(packages))
    return Workspace(root=info.root, manifest_path=info.manifest_path, packages=packages)
