"""Select (package, dependency, features) rows from resolved workspace data."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from featuretree.core.resolver import ResolvedDependency, ResolvedFeatureView


@dataclass
class FeatureRow:
    """One package/dependency pair and the features enabled on it."""

    package: str
    dependency: str
    features: list[str] = field(default_factory=list)
    kind: str = "normal"
    optional: bool = False
    requirement: str = "*"
    target: str | None = None
    unresolved: bool = False
    activated_by: dict[str, list[str]] = field(default_factory=dict)
    enabled_by: list[str] = field(default_factory=list)
    available: list[str] | None = None

    @classmethod
    def from_resolved(cls, package: str, dep: ResolvedDependency) -> FeatureRow:
        return cls(
            package=package,
            dependency=dep.name,
            features=list(dep.features),
            kind=dep.kind,
            optional=dep.optional,
            requirement=dep.requirement,
            target=dep.target,
            unresolved=dep.unresolved,
            activated_by={k: list(v) for k, v in dep.activated_by.items()},
            enabled_by=list(dep.enabled_by),
            available=list(dep.available) if dep.available is not None else None,
        )

    def as_triple(self) -> tuple[str, str, frozenset[str]]:
        return (self.package, self.dependency, frozenset(self.features))

    def to_dict(self) -> dict:
        """Serialize to dict for JSON output."""
        return {
            "package": self.package,
            "dependency": self.dependency,
            "features": list(self.features),
            "kind": self.kind,
            "optional": self.optional,
            "requirement": self.requirement,
            "target": self.target,
            "unresolved": self.unresolved,
            "activated_by": {k: list(v) for k, v in self.activated_by.items()},
            "enabled_by": list(self.enabled_by),
            "available": list(self.available) if self.available is not None else None,
        }


def select_rows(
    views: Iterable[ResolvedFeatureView],
    *,
    package: str | None = None,
    dependency: str | None = None,
    all_: bool = False,
) -> list[FeatureRow]:
    """
    Filter resolved views down to the requested rows.

    Names match exactly and case-sensitively. With both filters a row must match
    both. `all_` ignores the filters and returns every package/dependency pair.
    No match yields an empty list.
    """
    if all_:
        package = dependency = None

    rows: list[FeatureRow] = []
    for view in views:
        if package is not None and view.package != package:
            continue
        for dep in view.dependencies:
            if dependency is not None and dep.name != dependency:
                continue
            rows.append(FeatureRow.from_resolved(view.package, dep))
    return rows
