"""Errors raised while loading workspace manifests."""

from __future__ import annotations

from pathlib import Path


class FeatureTreeError(Exception):
    """Base class for errors that abort a featuretree run."""


class ManifestError(FeatureTreeError):
    """A manifest could not be read, parsed, or is missing required fields."""

    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        self.message = message
        super().__init__(f"{self.path}: {message}")


class WorkspaceError(FeatureTreeError):
    """The workspace root is unusable as a whole."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self.message = message
        super().__init__(f"{self.path}: {message}" if self.path is not None else message)
