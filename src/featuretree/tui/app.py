"""Textual TUI for browsing workspace packages, their dependencies and enabled features."""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Input, LoadingIndicator, Static, Tree
from textual.widgets.tree import TreeNode
from textual.worker import Worker, WorkerState

from featuretree.api import load_workspace, locate_workspace, resolve_workspace
from featuretree.core.resolver import DEFAULT_FEATURE, ResolvedDependency, ResolvedFeatureView

WELCOME_BANNER = """\
[bold cyan]
┌─┐┌─┐┌─┐┌┬┐┬ ┬┬─┐┌─┐┌┬┐┬─┐┌─┐┌─┐
├┤ ├┤ ├─┤ │ │ │├┬┘├┤  │ ├┬┘├┤ ├┤
└  └─┘┴ ┴ ┴ └─┘┴└─└─┘ ┴ ┴└─└─┘└─┘
[/bold cyan]"""

WELCOME_DESC = """[dim]Browse the packages of a Cargo workspace and the features
each one enables on its dependencies.
Search packages, dependencies and features interactively.[/]"""

MAX_TREE_NODES = 2000
EXPAND_DEPTH_DEFAULT = 1

COLOR_HEADER = "bold magenta"
COLOR_PKG = "bold green"
COLOR_DEP = "white"
COLOR_DEV = "dim"
COLOR_OPTIONAL = "bold yellow"
COLOR_UNRESOLVED = "bold red"
COLOR_FEATURE = "cyan"
COLOR_DEFAULT = "dim cyan"
COLOR_STATS = "cyan"


def _view_stats(view: ResolvedFeatureView) -> tuple[int, int, int]:
    """Return (dependencies, enabled features, unresolved references) for a package view."""
    declared = [d for d in view.dependencies if not d.unresolved]
    features = sum(len(d.features) for d in declared)
    return len(declared), features, len(view.unresolved)


def _dependency_label(dep: ResolvedDependency) -> str:
    """Markup label for a dependency node."""
    if dep.unresolved:
        return f"[{COLOR_UNRESOLVED}]{dep.name}[/] [dim](unresolved)[/]"
    color = COLOR_DEV if dep.kind == "dev" else COLOR_DEP
    label = f"[{color}]{dep.name}[/] [dim]{dep.requirement}[/]"
    if dep.kind != "normal":
        label += f" [dim]{dep.kind}[/]"
    if dep.optional:
        label += f" [{COLOR_OPTIONAL}]optional[/]"
    return label


def _feature_label(dep: ResolvedDependency, feature: str) -> str:
    color = COLOR_DEFAULT if feature == DEFAULT_FEATURE else COLOR_FEATURE
    label = f"[{color}]{feature}[/]"
    sources = dep.activated_by.get(feature)
    if sources:
        label += f" [dim]via {', '.join(sources)}[/]"
    return label


def _populate_textual_tree(
    tn: TreeNode,
    views: list[ResolvedFeatureView],
    *,
    max_nodes: int = MAX_TREE_NODES,
) -> int:
    """Add package -> dependency -> feature nodes; cap total nodes. Returns nodes added."""
    count = 0
    for view in views:
        if count >= max_nodes:
            tn.add_leaf(f"[dim]… truncated ({max_nodes} nodes max)[/]")
            return count
        deps, _features, unresolved = _view_stats(view)
        warn = f" [{COLOR_UNRESOLVED}]⚠ {unresolved}[/]" if unresolved else ""
        pkg_tn = tn.add(
            f"[{COLOR_PKG}]{view.package}[/] [dim]v{view.version or '?'} · {deps} deps[/]{warn}",
            expand=False,
        )
        pkg_tn.data = view
        count += 1
        for dep in view.dependencies:
            if count >= max_nodes:
                pkg_tn.add_leaf(f"[dim]… truncated ({max_nodes} nodes max)[/]")
                return count
            dep_tn = pkg_tn.add(_dependency_label(dep), expand=False)
            dep_tn.data = (view, dep)
            count += 1
            if not dep.features:
                dep_tn.add_leaf("[dim](no features)[/]")
                continue
            for feature in dep.features:
                dep_tn.add_leaf(_feature_label(dep, feature))
                count += 1
    return count


def _expand_to_depth(tn: TreeNode, depth: int, current: int = 0) -> None:
    """Expand tree nodes up to given depth (0 = root only)."""
    if current >= depth:
        return
    tn.expand()
    for child in tn.children:
        _expand_to_depth(child, depth, current + 1)


def _format_package(view: ResolvedFeatureView) -> str:
    deps, features, unresolved = _view_stats(view)
    lines = [
        f"[{COLOR_HEADER}]Package[/]",
        f"  [{COLOR_PKG}]{view.package}[/]  [dim]v{view.version or '?'}[/]",
        "",
        f"[{COLOR_HEADER}]Stats[/]",
        f"  Dependencies:        [{COLOR_STATS}]{deps}[/]",
        f"  Enabled features:    [{COLOR_STATS}]{features}[/]",
        f"  Unresolved targets:  [{COLOR_STATS}]{unresolved}[/]",
    ]
    if view.unresolved:
        lines.append("")
        lines.append(f"[{COLOR_HEADER}]Warnings[/]")
        for ref in view.unresolved:
            lines.append(f"  [{COLOR_UNRESOLVED}]{ref}[/]")
    return "\n".join(lines)


def _format_dependency(view: ResolvedFeatureView, dep: ResolvedDependency) -> str:
    lines = [
        f"[{COLOR_HEADER}]Dependency[/]",
        f"  {_dependency_label(dep)}  [dim]of {view.package}[/]",
    ]
    if dep.target:
        lines.append(f"  [dim]target: {dep.target}[/]")
    if dep.enabled_by:
        lines.append(f"  [dim]enabled by: {', '.join(dep.enabled_by)}[/]")
    lines += ["", f"[{COLOR_HEADER}]Enabled features[/]"]
    if dep.features:
        lines += [f"  {_feature_label(dep, f)}" for f in dep.features]
    else:
        lines.append("  [dim](none)[/]")
    if dep.available is not None:
        lines += ["", f"[{COLOR_HEADER}]Available features[/]"]
        for feature in dep.available:
            mark = "[green]x[/]" if feature in dep.features else " "
            lines.append(f"  \\[{mark}] {feature}")
    return "\n".join(lines)


class SearchScreen(ModalScreen[str | None]):
    """Modal to search packages, dependencies and features in the tree. Keyboard-only."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancel", show=True),
    ]

    DEFAULT_CSS = """
    SearchScreen {
        align: center middle;
        padding: 2 4;
    }
    SearchScreen #search_title {
        text-align: center;
        padding-bottom: 1;
    }
    SearchScreen #search_input {
        width: 60;
        margin: 1 0;
    }
    SearchScreen #search_hint {
        text-align: center;
        padding-top: 1;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._input: Input | None = None

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(
                "[bold cyan]Search[/]\n\n"
                "Type a package, dependency or feature name (partial match).",
                id="search_title",
                markup=True,
            )
            yield Input(
                placeholder="name...",
                id="search_input",
            )
            yield Static(
                "[dim]Enter[/] = Search  ·  [dim]Escape[/] = Cancel\n"
                "[dim]After search: [bold]n[/bold] = next match, [bold]N[/bold] = previous[/]",
                id="search_hint",
                markup=True,
            )

    def on_mount(self) -> None:
        self._input = self.query_one("#search_input", Input)
        self._input.focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "search_input":
            return
        value = self._input.value.strip() if self._input else ""
        self.dismiss(value if value else None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class OpenWorkspaceScreen(ModalScreen[Path | None]):
    """Modal to switch to another workspace. Type a path, Enter to open, Escape to cancel."""

    BINDINGS = [
        Binding("escape", "cancel", "Cancel", show=True),
    ]

    DEFAULT_CSS = """
    OpenWorkspaceScreen {
        align: center middle;
        padding: 2 4;
    }
    OpenWorkspaceScreen #open_title {
        text-align: center;
        padding-bottom: 1;
    }
    OpenWorkspaceScreen #open_input {
        width: 60;
        margin: 1 0;
    }
    OpenWorkspaceScreen #open_hint {
        text-align: center;
        padding-top: 1;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._input: Input | None = None

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(
                "[bold cyan]Open workspace[/]\n\n"
                "Type a directory inside a Cargo workspace (or its Cargo.toml).",
                id="open_title",
                markup=True,
            )
            yield Input(
                placeholder="/path/to/workspace",
                id="open_input",
            )
            yield Static(
                "[dim]Enter[/] = Open  ·  [dim]Escape[/] = Cancel",
                id="open_hint",
                markup=True,
            )

    def on_mount(self) -> None:
        self._input = self.query_one("#open_input", Input)
        self._input.focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "open_input":
            return
        self._do_submit()

    def _do_submit(self) -> None:
        value = self._input.value.strip() if self._input else ""
        if not value:
            self.dismiss(None)
            return
        p = Path(value).expanduser().resolve()
        if not p.exists():
            self.notify(f"Path does not exist: {p}", severity="warning", timeout=3)
            return
        root = locate_workspace(p)
        if root is None:
            self.notify(f"No Cargo.toml found at or above: {p}", severity="warning", timeout=3)
            return
        self.dismiss(root)

    def action_cancel(self) -> None:
        self.dismiss(None)


class FeatureTreeApp(App[None]):
    """Terminal UI to explore the dependency features of a Cargo workspace."""

    TITLE = "featuretree"
    BINDINGS = [
        Binding("enter", "start_main", "Start", show=False),
        Binding("o", "open_workspace", "Open workspace"),
        Binding("/", "search", "Search"),
        Binding("f", "search", "Search", show=False),
        Binding("n", "next_match", "Next match", show=False),
        Binding("N", "prev_match", "Prev match", show=False),
        Binding("d", "toggle_details", "Details"),
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("e", "expand_all", "Expand all"),
        Binding("c", "collapse_all", "Collapse"),
    ]

    def __init__(self, root: Path | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._root = root
        self._main_started = False
        self._search_matches: list[TreeNode] = []
        self._search_index: int = 0
        self._details_visible: bool = True
        # Background loading state
        self._views: list[ResolvedFeatureView] | None = None
        self._loading: bool = False
        self._load_error: str | None = None
        self._active_load: Worker | None = None

    DEFAULT_CSS = """
    #welcome_container {
        align: center middle;
        width: 100%;
        height: 100%;
    }
    #welcome_banner {
        text-align: center;
        content-align: center middle;
        width: 100%;
    }
    #welcome_desc {
        text-align: center;
        padding: 2 4;
    }
    #welcome_hint {
        text-align: center;
        padding-top: 1;
    }
    #welcome_loading {
        text-align: center;
        padding-top: 1;
        display: none;
    }
    #welcome_loading.loading {
        display: block;
    }
    #welcome_loading LoadingIndicator {
        background: transparent;
    }
    #main_container {
        display: none;
    }
    #details {
        padding: 1 2;
        border: solid $primary;
        height: auto;
        min-height: 8;
    }
    """

    def compose(self) -> ComposeResult:
        yield Header(show_clock=False)
        with Container(id="welcome_container"):
            yield Static(WELCOME_BANNER, id="welcome_banner", markup=True)
            yield Static(WELCOME_DESC, id="welcome_desc", markup=True)
            yield Static(
                "[cyan]Enter[/] to explore  ·  [dim]q[/] to quit",
                id="welcome_hint",
                markup=True,
            )
            with Container(id="welcome_loading"):
                yield LoadingIndicator()
                yield Static("[dim]Reading manifests...[/]", id="loading_text", markup=True)
        with Container(id="main_container"):
            yield Tree("Workspace", id="feature_tree")
            yield Static(
                "[dim]↑/↓[/] move  ·  [dim]Enter[/]/[dim]Space[/] select  ·  [dim]o[/] = Open workspace",
                id="details",
            )
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = str(self._root) if self._root else "no workspace"
        self._start_load()

    def on_key(self, event: Any) -> None:
        """Enter on the welcome screen opens the main view."""
        if not self._main_started and event.key == "enter":
            event.prevent_default()
            event.stop()
            self.action_start_main()

    def _start_load(self) -> None:
        """Load and resolve the workspace in a background thread, replacing any load in flight."""
        if self._root is None:
            return
        self._loading = True
        self._views = None
        self._load_error = None
        self.query_one("#welcome_loading").add_class("loading")
        self._active_load = self.run_worker(
            partial(self._load_worker, self._root), thread=True, exclusive=True
        )

    def _load_worker(self, root: Path) -> list[ResolvedFeatureView]:
        workspace = load_workspace(root)
        return resolve_workspace(workspace)

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        if event.worker is not self._active_load:
            # Superseded by a later load
            return
        if event.state == WorkerState.SUCCESS:
            self._views = event.worker.result
            self._loading = False
            self._update_loading_status()
        elif event.state == WorkerState.ERROR:
            self._loading = False
            self._load_error = str(event.worker.error)
            self._update_loading_status()
        else:
            return
        if self._main_started:
            self._load_main_view()

    def _update_loading_status(self) -> None:
        self.query_one("#welcome_loading").remove_class("loading")
        hint = self.query_one("#welcome_hint", Static)
        if self._views is not None:
            hint.update(
                f"[green]✓[/] {len(self._views)} packages loaded  ·  "
                "[cyan]Enter[/] to explore  ·  [dim]q[/] to quit"
            )
        elif self._load_error:
            hint.update(f"[red]Error: {self._load_error}[/]  ·  [dim]q[/] to quit")

    def action_start_main(self) -> None:
        """Transition from welcome screen to main view."""
        if self._main_started:
            return
        self._main_started = True
        self.query_one("#welcome_container").styles.display = "none"
        self.query_one("#main_container").styles.display = "block"
        self._load_main_view()

    def _clear_tree(self, tree: Tree) -> None:
        while tree.root.children:
            tree.root.children[0].remove()

    def _load_main_view(self) -> None:
        tree = self.query_one("#feature_tree", Tree)
        self._clear_tree(tree)
        self._search_matches = []
        tree.focus()
        if self._root is None:
            tree.root.label = f"[{COLOR_HEADER}]No workspace[/]"
            self._set_details("No Cargo.toml found.\n\n[dim]o[/] = Open workspace")
            return
        if self._loading:
            tree.root.label = f"[{COLOR_HEADER}]Loading workspace...[/]"
            tree.root.add_leaf("[dim]Reading manifests, please wait...[/]")
            return
        if self._load_error:
            tree.root.label = f"[{COLOR_HEADER}]Workspace[/]"
            tree.root.add_leaf("[dim]Error loading workspace[/]")
            self._set_details(f"[red]Error: {self._load_error}[/]")
            return

        views = self._views or []
        tree.root.label = f"[{COLOR_HEADER}]{self._root}[/] [dim]({len(views)} packages)[/]"
        _populate_textual_tree(tree.root, views)
        _expand_to_depth(tree.root, EXPAND_DEPTH_DEFAULT)
        unresolved = sum(len(v.unresolved) for v in views)
        self._set_details(
            f"[{COLOR_HEADER}]Workspace[/]\n\n"
            f"Packages: [{COLOR_STATS}]{len(views)}[/]  ·  "
            f"Unresolved feature targets: [{COLOR_STATS}]{unresolved}[/]\n\n"
            "[dim]↑/↓[/] move  ·  [dim]Enter[/] or [dim]Space[/] = details  ·  "
            "[dim]/[/] = Search  ·  [dim]o[/] = Open workspace"
        )

    def _set_details(self, text: str) -> None:
        self.query_one("#details", Static).update(text)

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        data = event.node.data
        if isinstance(data, ResolvedFeatureView):
            self._set_details(_format_package(data))
        elif isinstance(data, tuple):
            view, dep = data
            self._set_details(_format_dependency(view, dep))

    def action_refresh(self) -> None:
        self._start_load()
        if self._main_started:
            self._load_main_view()

    def action_expand_all(self) -> None:
        self.query_one("#feature_tree", Tree).root.expand_all()

    def action_collapse_all(self) -> None:
        tree = self.query_one("#feature_tree", Tree)
        tree.root.collapse_all()
        tree.root.expand()

    def action_open_workspace(self) -> None:
        self.push_screen(OpenWorkspaceScreen(), self._on_open_done)

    def _on_open_done(self, root: Path | None) -> None:
        if root is None or root == self._root:
            return
        self._root = root
        self.sub_title = str(root)
        self.notify(f"Opened: {root}", severity="information", timeout=2)
        self.action_refresh()

    def action_search(self) -> None:
        if not self._main_started:
            return
        self.push_screen(SearchScreen(), self._on_search_done)

    def _on_search_done(self, query: str | None) -> None:
        if not query:
            return
        self._search_matches = []
        self._search_index = 0

        tree = self.query_one("#feature_tree", Tree)
        self._collect_matches(tree.root, query.lower())

        if not self._search_matches:
            self.notify(f"No matches for '{query}'", severity="warning", timeout=2)
            return

        self.notify(
            f"Found {len(self._search_matches)} match(es) for '{query}'",
            severity="information",
            timeout=2,
        )
        self._goto_match(0)

    def _collect_matches(self, node: TreeNode, query: str) -> None:
        """Recursively collect nodes whose label contains the query."""
        if query in str(node.label).lower():
            self._search_matches.append(node)
        for child in node.children:
            self._collect_matches(child, query)

    def _goto_match(self, index: int) -> None:
        if not self._search_matches:
            return
        self._search_index = index % len(self._search_matches)
        match_node = self._search_matches[self._search_index]

        parent = match_node.parent
        ancestors = []
        while parent is not None:
            ancestors.append(parent)
            parent = parent.parent
        for ancestor in reversed(ancestors):
            ancestor.expand()

        tree = self.query_one("#feature_tree", Tree)
        tree.select_node(match_node)
        tree.scroll_to_node(match_node)
        self.notify(
            f"Match {self._search_index + 1}/{len(self._search_matches)}: {match_node.label}",
            severity="information",
            timeout=2,
        )

    def action_next_match(self) -> None:
        if not self._search_matches:
            self.notify("No active search. Press / to search.", severity="information", timeout=2)
            return
        self._goto_match(self._search_index + 1)

    def action_prev_match(self) -> None:
        if not self._search_matches:
            self.notify("No active search. Press / to search.", severity="information", timeout=2)
            return
        self._goto_match(self._search_index - 1)

    def action_toggle_details(self) -> None:
        self._details_visible = not self._details_visible
        details = self.query_one("#details", Static)
        details.styles.display = "block" if self._details_visible else "none"

    def action_quit(self) -> None:
        self.exit()
