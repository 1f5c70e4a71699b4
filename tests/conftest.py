"""Shared fixtures: build Cargo workspaces on disk."""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from featuretree.utils.logging import configure_logging


def write_manifest(directory: Path, content: str) -> Path:
    """Write a dedented Cargo.toml into directory (created if needed)."""
    directory.mkdir(parents=True, exist_ok=True)
    manifest = directory / "Cargo.toml"
    manifest.write_text(textwrap.dedent(content))
    return manifest


@pytest.fixture(autouse=True)
def _reset_logging():
    """Put logging back to warnings on stderr after tests that reconfigure it."""
    yield
    configure_logging()


@pytest.fixture(name="write_manifest")
def _write_manifest_fixture() -> Callable[[Path, str], Path]:
    """The write_manifest helper, for tests that lay out their own trees."""
    return write_manifest


@pytest.fixture
def serde_workspace(tmp_path: Path) -> Path:
    """Workspace with `core` (serde + derive, defaults on) and `cli` (serde, defaults off)."""
    write_manifest(
        tmp_path,
        """
        [workspace]
        members = ["crates/*"]
        """,
    )
    write_manifest(
        tmp_path / "crates" / "core",
        """
        [package]
        name = "core"
        version = "0.1.0"

        [dependencies]
        serde = { version = "1.0", features = ["derive"] }
        """,
    )
    write_manifest(
        tmp_path / "crates" / "cli",
        """
        [package]
        name = "cli"
        version = "0.2.0"

        [dependencies]
        serde = { version = "1.0", default-features = false }
        """,
    )
    return tmp_path
