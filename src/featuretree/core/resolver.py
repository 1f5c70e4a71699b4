"""Compute which features each package turns on for its direct dependencies."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from featuretree.core.manifest import DependencyDeclaration, Package
from featuretree.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_FEATURE = "default"


@dataclass
class UnresolvedReference:
    """A feature-group target that names a dependency the package does not declare."""

    feature: str
    target: str
    dependency: str

    def to_dict(self) -> dict:
        return {"feature": self.feature, "target": self.target, "dependency": self.dependency}

    def __str__(self) -> str:
        return (
            f"feature `{self.feature}` references `{self.target}`, "
            f"but `{self.dependency}` is not a dependency"
        )


@dataclass
class ResolvedDependency:
    """Display-level feature set of one dependency declaration."""

    name: str
    kind: str = "normal"
    optional: bool = False
    requirement: str = "*"
    target: str | None = None
    features: list[str] = field(default_factory=list)
    # dependency feature -> package features that turn it on
    activated_by: dict[str, list[str]] = field(default_factory=dict)
    # package features that switch on this (optional) dependency
    enabled_by: list[str] = field(default_factory=list)
    available: list[str] | None = None
    unresolved: bool = False

    def add_feature(self, feature: str) -> None:
        if feature not in self.features:
            self.features.append(feature)

    def activate(self, feature: str, by: str) -> None:
        self.add_feature(feature)
        sources = self.activated_by.setdefault(feature, [])
        if by not in sources:
            sources.append(by)

    def enable(self, by: str) -> None:
        if by not in self.enabled_by:
            self.enabled_by.append(by)

    @property
    def uses_default_features(self) -> bool:
        return DEFAULT_FEATURE in self.features

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "name": self.name,
            "kind": self.kind,
            "optional": self.optional,
            "requirement": self.requirement,
            "target": self.target,
            "features": list(self.features),
            "activated_by": {k: list(v) for k, v in self.activated_by.items()},
            "enabled_by": list(self.enabled_by),
            "available": list(self.available) if self.available is not None else None,
            "unresolved": self.unresolved,
        }


@dataclass
class ResolvedFeatureView:
    """Per-package mapping from dependency to its enabled features."""

    package: str
    version: str = ""
    dependencies: list[ResolvedDependency] = field(default_factory=list)
    unresolved: list[UnresolvedReference] = field(default_factory=list)

    def as_mapping(self) -> dict[str, list[str]]:
        """Dependency name -> features, merged across kinds, declaration order."""
        result: dict[str, list[str]] = {}
        for dep in self.dependencies:
            merged = result.setdefault(dep.name, [])
            for feature in dep.features:
                if feature not in merged:
                    merged.append(feature)
        return result

    def get(self, name: str) -> list[ResolvedDependency]:
        return [d for d in self.dependencies if d.name == name]

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "package": self.package,
            "version": self.version,
            "dependencies": [d.to_dict() for d in self.dependencies],
            "unresolved": [u.to_dict() for u in self.unresolved],
        }


def _split_target(target: str) -> tuple[str | None, str, bool]:
    """
    Split a feature-group target into (dependency, feature, weak).

    `dep/feat` and `dep?/feat` name a dependency feature, `dep:name` an optional
    dependency (feature is empty), and a bare name has no dependency part.
    """
    if target.startswith("dep:"):
        return target[4:], "", False
    if "/" in target:
        dep, feature = target.split("/", 1)
        weak = dep.endswith("?")
        return dep.rstrip("?"), feature, weak
    return None, target, False


def _available_features(
    decl: DependencyDeclaration,
    workspace_features: Mapping[str, Sequence[str]] | None,
) -> list[str] | None:
    if workspace_features is None:
        return None
    features = workspace_features.get(decl.package_name)
    return list(features) if features is not None else None


def resolve_features(
    package: Package,
    *,
    workspace_features: Mapping[str, Sequence[str]] | None = None,
) -> ResolvedFeatureView:
    """
    Build the ResolvedFeatureView of a package.

    Each dependency starts with the "default" sentinel (when default features are
    on) followed by its explicit features. Package feature groups are then
    expanded one level: `dep/feat` targets add `feat` to `dep`, `dep:name` and
    bare optional-dependency names enable that dependency. A group naming another
    group is left unexpanded. Targets naming a dependency declared in no table
    are recorded as unresolved instead of failing; targets that only miss
    because the dependency is a dev-dependency or not optional are skipped.

    Args:
        package: The loaded package.
        workspace_features: Optional map of workspace package name -> declared
            feature names, used to fill in `available` for local dependencies.

    Returns:
        ResolvedFeatureView in declaration order.
    """
    view = ResolvedFeatureView(package=package.name, version=package.version)
    by_name: dict[str, list[ResolvedDependency]] = {}

    for decl in package.dependencies:
        resolved = ResolvedDependency(
            name=decl.name,
            kind=decl.kind,
            optional=decl.optional,
            requirement=decl.requirement,
            target=decl.target,
            available=_available_features(decl, workspace_features),
        )
        if decl.default_features:
            resolved.add_feature(DEFAULT_FEATURE)
        for feature in decl.features:
            resolved.add_feature(feature)
        view.dependencies.append(resolved)
        # Feature groups cannot reach dev-dependencies
        if decl.kind != "dev":
            by_name.setdefault(decl.name, []).append(resolved)

    declared = {decl.name for decl in package.dependencies}
    placeholders: dict[str, ResolvedDependency] = {}

    def _unresolved(feature: str, target: str, dependency: str) -> ResolvedDependency:
        reference = UnresolvedReference(feature=feature, target=target, dependency=dependency)
        view.unresolved.append(reference)
        logger.warning("unresolved feature reference", package=package.name, reference=str(reference))
        placeholder = placeholders.get(dependency)
        if placeholder is None:
            placeholder = ResolvedDependency(name=dependency, unresolved=True)
            placeholders[dependency] = placeholder
        return placeholder

    for feature, targets in package.features.items():
        for target in targets:
            dep_name, dep_feature, weak = _split_target(target)
            if dep_name is None:
                if dep_feature in package.features:
                    # Group-to-group chaining is not expanded
                    continue
                optional = [d for d in by_name.get(dep_feature, []) if d.optional]
                if optional:
                    for dep in optional:
                        dep.enable(feature)
                elif dep_feature in declared:
                    logger.debug(
                        "feature target is not an optional dependency",
                        package=package.name,
                        feature=feature,
                        target=target,
                    )
                else:
                    _unresolved(feature, target, dep_feature)
                continue

            matches = by_name.get(dep_name)
            if not matches and dep_name in declared:
                logger.debug(
                    "feature target names a dev-dependency",
                    package=package.name,
                    feature=feature,
                    target=target,
                )
                continue
            if not matches:
                placeholder = _unresolved(feature, target, dep_name)
                if dep_feature:
                    placeholder.activate(dep_feature, feature)
                continue
            for dep in matches:
                if dep_feature:
                    dep.activate(dep_feature, feature)
                if dep.optional and not weak:
                    dep.enable(feature)

    view.dependencies.extend(placeholders.values())
    return view


def resolve_workspace_features(packages: Sequence[Package]) -> list[ResolvedFeatureView]:
    """Resolve every package of a workspace, filling in features of local dependencies."""
    workspace_features = {p.name: list(p.features) for p in packages}
    return [resolve_features(p, workspace_features=workspace_features) for p in packages]
