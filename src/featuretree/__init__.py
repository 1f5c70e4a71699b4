"""featuretree: list the dependency features enabled across a Cargo workspace (library, TUI, CLI)."""

from importlib.metadata import version, PackageNotFoundError

from featuretree.api import (
    list_features,
    load_workspace,
    locate_workspace,
    resolve_workspace,
)
from featuretree.core.errors import FeatureTreeError, ManifestError, WorkspaceError
from featuretree.core.query import FeatureRow

__all__ = [
    "list_features",
    "load_workspace",
    "locate_workspace",
    "resolve_workspace",
    "FeatureRow",
    "FeatureTreeError",
    "ManifestError",
    "WorkspaceError",
    "__version__",
]

try:
    __version__ = version("featuretree")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"  # Not installed as package
