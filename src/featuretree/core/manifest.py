"""Parse a package's Cargo.toml into package metadata, dependencies and features."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from featuretree.core.errors import ManifestError

if TYPE_CHECKING:
    from featuretree.core.walker import WorkspaceManifest

MANIFEST_NAME = "Cargo.toml"

# Dependency tables in the order they are read, with the kind each one declares.
DEPENDENCY_TABLES = (
    ("dependencies", "normal"),
    ("dev-dependencies", "dev"),
    ("build-dependencies", "build"),
)

DEFAULT_VERSION = "0.0.0"


@dataclass
class DependencyDeclaration:
    """One entry of a dependency table."""

    name: str
    requirement: str = "*"
    source: str | None = None
    optional: bool = False
    features: list[str] = field(default_factory=list)
    default_features: bool = True
    kind: str = "normal"
    target: str | None = None
    package: str | None = None  # real package name when renamed
    path: Path | None = None

    def __post_init__(self) -> None:
        # Set semantics, declaration order kept
        self.features = list(dict.fromkeys(self.features))

    @property
    def package_name(self) -> str:
        """Name of the package this dependency points at (rename-aware)."""
        return self.package or self.name

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "name": self.name,
            "requirement": self.requirement,
            "source": self.source,
            "optional": self.optional,
            "features": list(self.features),
            "default_features": self.default_features,
            "kind": self.kind,
            "target": self.target,
            "package": self.package,
            "path": str(self.path) if self.path is not None else None,
        }


@dataclass
class Package:
    """Metadata parsed from one Cargo.toml."""

    name: str
    version: str
    manifest_path: Path
    dependencies: list[DependencyDeclaration] = field(default_factory=list)
    features: dict[str, list[str]] = field(default_factory=dict)

    @property
    def directory(self) -> Path:
        return self.manifest_path.parent

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "name": self.name,
            "version": self.version,
            "manifest_path": str(self.manifest_path),
            "dependencies": [d.to_dict() for d in self.dependencies],
            "features": {k: list(v) for k, v in self.features.items()},
        }


def read_manifest(path: Path) -> dict[str, Any]:
    """
    Read and TOML-parse a manifest file.

    Raises ManifestError if the file cannot be read or decoded as UTF-8 TOML.
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ManifestError(path, f"cannot read manifest: {e.strerror or e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(path, f"invalid TOML: {e}") from e
    except UnicodeDecodeError as e:
        raise ManifestError(path, f"manifest is not valid UTF-8: {e.reason}") from e


def _expect_table(path: Path, value: Any, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ManifestError(path, f"`{where}` must be a table")
    return value


def _expect_bool(path: Path, value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise ManifestError(path, f"`{where}` must be a boolean")
    return value


def _expect_str_list(path: Path, value: Any, where: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ManifestError(path, f"`{where}` must be an array of strings")
    return list(value)


def _source_of(path: Path, spec: dict[str, Any], where: str) -> tuple[str | None, Path | None]:
    """Return the opaque source string and, for path dependencies, the resolved path."""
    if "path" in spec:
        if not isinstance(spec["path"], str):
            raise ManifestError(path, f"`{where}.path` must be a string")
        dep_path = (path.parent / spec["path"]).resolve()
        return f"path+{spec['path']}", dep_path
    if "git" in spec:
        if not isinstance(spec["git"], str):
            raise ManifestError(path, f"`{where}.git` must be a string")
        source = f"git+{spec['git']}"
        for ref in ("branch", "tag", "rev"):
            if ref in spec:
                source += f"?{ref}={spec[ref]}"
                break
        return source, None
    if "registry" in spec:
        return f"registry+{spec['registry']}", None
    return None, None


def _parse_dependency(
    path: Path,
    name: str,
    value: Any,
    *,
    kind: str,
    target: str | None,
    where: str,
    workspace: WorkspaceManifest | None,
) -> DependencyDeclaration:
    if isinstance(value, str):
        return DependencyDeclaration(name=name, requirement=value, kind=kind, target=target)
    spec = _expect_table(path, value, where)

    inherited: DependencyDeclaration | None = None
    if spec.get("workspace") is True:
        if workspace is None or name not in workspace.dependencies:
            raise ManifestError(
                path, f"`{where}` is inherited but not found in `workspace.dependencies`"
            )
        inherited = workspace.dependencies[name]

    if "version" in spec and not isinstance(spec["version"], str):
        raise ManifestError(path, f"`{where}.version` must be a string")
    optional = _expect_bool(path, spec.get("optional", False), f"{where}.optional")
    features = _expect_str_list(path, spec.get("features", []), f"{where}.features")
    default_key = "default-features" if "default-features" in spec else "default_features"
    default_features = _expect_bool(path, spec.get(default_key, True), f"{where}.{default_key}")
    package = spec.get("package")
    if package is not None and not isinstance(package, str):
        raise ManifestError(path, f"`{where}.package` must be a string")

    if inherited is not None:
        return DependencyDeclaration(
            name=name,
            requirement=inherited.requirement,
            source=inherited.source,
            optional=optional,
            features=[*inherited.features, *features],
            default_features=inherited.default_features,
            kind=kind,
            target=target,
            package=package or inherited.package,
            path=inherited.path,
        )

    source, dep_path = _source_of(path, spec, where)
    return DependencyDeclaration(
        name=name,
        requirement=spec.get("version", "*"),
        source=source,
        optional=optional,
        features=features,
        default_features=default_features,
        kind=kind,
        target=target,
        package=package,
        path=dep_path,
    )


def parse_dependency_tables(
    path: Path,
    data: dict[str, Any],
    *,
    target: str | None = None,
    prefix: str = "",
    workspace: WorkspaceManifest | None = None,
) -> list[DependencyDeclaration]:
    """Collect declarations from the dependency tables of one manifest section."""
    deps: list[DependencyDeclaration] = []
    for table_name, kind in DEPENDENCY_TABLES:
        if table_name not in data:
            continue
        where = f"{prefix}{table_name}"
        table = _expect_table(path, data[table_name], where)
        for name, value in table.items():
            deps.append(
                _parse_dependency(
                    path,
                    name,
                    value,
                    kind=kind,
                    target=target,
                    where=f"{where}.{name}",
                    workspace=workspace,
                )
            )
    return deps


def _parse_version(path: Path, value: Any, workspace: WorkspaceManifest | None) -> str:
    if value is None:
        return DEFAULT_VERSION
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and value.get("workspace") is True:
        version = workspace.package.get("version") if workspace is not None else None
        if not isinstance(version, str):
            raise ManifestError(
                path, "`package.version` is inherited but not found in `workspace.package`"
            )
        return version
    raise ManifestError(path, "`package.version` must be a string")


def load_manifest(
    path: Path,
    *,
    workspace: WorkspaceManifest | None = None,
) -> Package:
    """
    Load one package manifest.

    Absent tables (features, any dependency table) default to empty collections.
    `workspace` supplies `[workspace.dependencies]` and `[workspace.package]` for
    fields declared with `workspace = true`.

    Raises ManifestError if the file is unreadable, malformed, or has no package name.
    """
    path = Path(path)
    data = read_manifest(path)

    package_table = _expect_table(path, data.get("package", {}), "package")
    name = package_table.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(path, "missing `package.name`")
    version = _parse_version(path, package_table.get("version"), workspace)

    deps = parse_dependency_tables(path, data, workspace=workspace)
    targets = _expect_table(path, data.get("target", {}), "target")
    for cfg, section in targets.items():
        section = _expect_table(path, section, f"target.{cfg}")
        deps.extend(
            parse_dependency_tables(
                path, section, target=cfg, prefix=f"target.{cfg}.", workspace=workspace
            )
        )

    features: dict[str, list[str]] = {}
    for feature, targets_list in _expect_table(path, data.get("features", {}), "features").items():
        features[feature] = _expect_str_list(path, targets_list, f"features.{feature}")

    return Package(
        name=name.strip(),
        version=version,
        manifest_path=path.resolve(),
        dependencies=deps,
        features=features,
    )
