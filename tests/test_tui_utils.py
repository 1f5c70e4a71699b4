"""Tests for TUI utility functions (non-interactive parts)."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from unittest import mock

from textual.worker import WorkerState

from featuretree.core.resolver import ResolvedDependency, ResolvedFeatureView, UnresolvedReference
from featuretree.tui.app import (
    FeatureTreeApp,
    _dependency_label,
    _expand_to_depth,
    _feature_label,
    _format_dependency,
    _format_package,
    _populate_textual_tree,
    _view_stats,
)


class MockNode:
    """Mock tree node recording what gets added under it."""

    def __init__(self, label: str = "root") -> None:
        self.label = label
        self.children: list[MockNode] = []
        self.data = None
        self.expanded = False

    def add(self, label: str, expand: bool = False) -> MockNode:
        child = MockNode(label)
        self.children.append(child)
        return child

    def add_leaf(self, label: str) -> MockNode:
        return self.add(label)

    def expand(self) -> None:
        self.expanded = True


def _view() -> ResolvedFeatureView:
    return ResolvedFeatureView(
        package="app",
        version="0.3.0",
        dependencies=[
            ResolvedDependency(name="serde", requirement="1.0", features=["default", "derive"]),
            ResolvedDependency(name="log", requirement="0.4", features=[]),
            ResolvedDependency(name="ghost", unresolved=True, features=["x"]),
        ],
        unresolved=[UnresolvedReference(feature="extra", target="ghost/x", dependency="ghost")],
    )


class TestViewStats:
    """Tests for _view_stats helper."""

    def test_counts_declared_only(self) -> None:
        assert _view_stats(_view()) == (2, 2, 1)

    def test_empty(self) -> None:
        assert _view_stats(ResolvedFeatureView(package="empty")) == (0, 0, 0)


class TestLabels:
    """Tests for dependency and feature labels."""

    def test_plain_dependency(self) -> None:
        label = _dependency_label(ResolvedDependency(name="serde", requirement="1.0"))
        assert "serde" in label
        assert "1.0" in label
        assert "optional" not in label

    def test_markers(self) -> None:
        dep = ResolvedDependency(name="criterion", requirement="0.5", kind="dev", optional=True)
        label = _dependency_label(dep)
        assert "dev" in label
        assert "optional" in label

    def test_unresolved(self) -> None:
        label = _dependency_label(ResolvedDependency(name="ghost", unresolved=True))
        assert "ghost" in label
        assert "(unresolved)" in label

    def test_feature_via_group(self) -> None:
        dep = ResolvedDependency(name="tokio", features=["rt"], activated_by={"rt": ["full"]})
        assert "via full" in _feature_label(dep, "rt")
        assert "via" not in _feature_label(dep, "net")


class TestPopulateTree:
    """Tests for _populate_textual_tree."""

    def test_structure(self) -> None:
        root = MockNode()
        view = _view()
        count = _populate_textual_tree(root, [view])
        (pkg,) = root.children
        assert pkg.data is view
        assert "app" in pkg.label
        assert [c.data[1].name for c in pkg.children] == ["serde", "log", "ghost"]
        serde, log, ghost = pkg.children
        assert len(serde.children) == 2
        assert "(no features)" in log.children[0].label
        assert len(ghost.children) == 1
        # 1 package + 3 dependencies + 3 features
        assert count == 7

    def test_truncates(self) -> None:
        root = MockNode()
        views = [ResolvedFeatureView(package=f"p{i}") for i in range(5)]
        count = _populate_textual_tree(root, views, max_nodes=3)
        assert count == 3
        assert "truncated" in root.children[-1].label

    def test_expand_to_depth(self) -> None:
        root = MockNode()
        _populate_textual_tree(root, [_view()])
        _expand_to_depth(root, 1)
        assert root.expanded
        assert not root.children[0].expanded


class TestDetailPanels:
    """Tests for the package and dependency detail text."""

    def test_format_package(self) -> None:
        text = _format_package(_view())
        assert "app" in text
        assert "v0.3.0" in text
        assert "Warnings" in text
        assert "ghost" in text

    def test_format_package_without_warnings(self) -> None:
        text = _format_package(ResolvedFeatureView(package="clean", version="1.0.0"))
        assert "Warnings" not in text

    def test_format_dependency(self) -> None:
        view = _view()
        dep = ResolvedDependency(
            name="core",
            requirement="*",
            features=["std"],
            enabled_by=["full"],
            target="cfg(unix)",
            available=["default", "std"],
        )
        text = _format_dependency(view, dep)
        assert "of app" in text
        assert "target: cfg(unix)" in text
        assert "enabled by: full" in text
        assert "Available features" in text
        assert "\\[[green]x[/]] std" in text
        assert "\\[ ] default" in text

    def test_format_dependency_no_features(self) -> None:
        text = _format_dependency(_view(), ResolvedDependency(name="log", requirement="0.4"))
        assert "(none)" in text
        assert "Available features" not in text


class TestWorkspaceLoading:
    """Background loads follow the workspace that was opened last."""

    def _app(self, root: Path) -> FeatureTreeApp:
        app = FeatureTreeApp(root=root)
        app.query_one = mock.MagicMock()
        app.run_worker = mock.MagicMock(side_effect=lambda *args, **kwargs: mock.MagicMock())
        return app

    def test_reopen_restarts_load(self, tmp_path: Path) -> None:
        app = self._app(tmp_path / "old")
        app._start_load()
        app._root = tmp_path / "new"
        app._start_load()
        assert app.run_worker.call_count == 2
        work = app.run_worker.call_args.args[0]
        assert work.args == (tmp_path / "new",)

    def test_superseded_result_is_ignored(self, tmp_path: Path) -> None:
        app = self._app(tmp_path / "old")
        app._start_load()
        old = app._active_load
        app._root = tmp_path / "new"
        app._start_load()
        new = app._active_load

        old.result = [ResolvedFeatureView(package="stale")]
        app.on_worker_state_changed(SimpleNamespace(worker=old, state=WorkerState.SUCCESS))
        assert app._views is None
        assert app._loading is True

        new.result = [ResolvedFeatureView(package="fresh")]
        app.on_worker_state_changed(SimpleNamespace(worker=new, state=WorkerState.SUCCESS))
        assert [v.package for v in app._views] == ["fresh"]
        assert app._loading is False
