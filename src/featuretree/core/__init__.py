"""Core library: workspace discovery, manifest loading, feature resolution, row selection."""

from featuretree.core.errors import FeatureTreeError, ManifestError, WorkspaceError
from featuretree.core.manifest import DependencyDeclaration, Package, load_manifest, read_manifest
from featuretree.core.query import FeatureRow, select_rows
from featuretree.core.resolver import (
    ResolvedDependency,
    ResolvedFeatureView,
    UnresolvedReference,
    resolve_features,
    resolve_workspace_features,
)
from featuretree.core.walker import (
    WorkspaceManifest,
    find_workspace_root,
    iter_manifest_paths,
    read_workspace_manifest,
)
from featuretree.core.workspace import Workspace, load_workspace

__all__ = [
    "FeatureTreeError",
    "ManifestError",
    "WorkspaceError",
    "DependencyDeclaration",
    "Package",
    "load_manifest",
    "read_manifest",
    "FeatureRow",
    "select_rows",
    "ResolvedDependency",
    "ResolvedFeatureView",
    "UnresolvedReference",
    "resolve_features",
    "resolve_workspace_features",
    "WorkspaceManifest",
    "find_workspace_root",
    "iter_manifest_paths",
    "read_workspace_manifest",
    "Workspace",
    "load_workspace",
]
