"""Command-line interface for featuretree: list workspace packages and dependency features."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from featuretree import __version__
from featuretree.core.errors import FeatureTreeError, WorkspaceError
from featuretree.core.query import FeatureRow, select_rows
from featuretree.core.resolver import resolve_workspace_features
from featuretree.core.walker import find_workspace_root
from featuretree.core.workspace import load_workspace
from featuretree.utils.logging import configure_logging


def _resolve_root(manifest_path: str | None) -> Path:
    """Workspace root from --manifest-path, or the one containing the current directory."""
    if manifest_path:
        return Path(manifest_path)
    root = find_workspace_root(Path.cwd())
    if root is None:
        raise WorkspaceError("could not find Cargo.toml in the current directory or any parent")
    return root


def _format_feature(row: FeatureRow, feature: str) -> str:
    sources = row.activated_by.get(feature)
    if sources:
        return f"{feature} (via {', '.join(sources)})"
    return feature


def _format_row(row: FeatureRow) -> str:
    """One dependency line: name, requirement, markers, then enabled features."""
    head = row.dependency
    if not row.unresolved:
        head += f" ({row.requirement})"
    markers = []
    if row.unresolved:
        markers.append("unresolved")
    if row.kind != "normal":
        markers.append(row.kind)
    if row.target:
        markers.append(f"target: {row.target}")
    if row.optional:
        if row.enabled_by:
            markers.append(f"optional, enabled by: {', '.join(row.enabled_by)}")
        else:
            markers.append("optional")
    if markers:
        head += f" [{'; '.join(markers)}]"
    features = ", ".join(_format_feature(row, f) for f in row.features)
    return f"{head}: {features}" if features else f"{head}:"


def _print_rows_text(rows: list[FeatureRow], *, show_available: bool = False) -> None:
    """Print rows grouped under their package."""
    current: str | None = None
    for row in rows:
        if row.package != current:
            current = row.package
            print(f"{row.package}:")
        print(f"  {_format_row(row)}")
        if show_available and row.available is not None:
            for feature in row.available:
                mark = "x" if feature in row.features else " "
                print(f"    [{mark}] {feature}")


def cmd_list(args: argparse.Namespace) -> int:
    """List dependency features of workspace packages."""
    root = _resolve_root(args.manifest_path)
    workspace = load_workspace(root, jobs=args.jobs)
    views = resolve_workspace_features(workspace.packages)
    rows = select_rows(
        views,
        package=args.package,
        dependency=args.dependency,
        all_=args.all,
    )

    if args.json:
        print(json.dumps([row.to_dict() for row in rows], indent=2))
        return 0
    if not rows:
        print("No matching dependencies.", file=sys.stderr)
        return 0
    _print_rows_text(rows, show_available=args.available)
    return 0


def cmd_packages(args: argparse.Namespace) -> int:
    """List workspace member packages."""
    root = _resolve_root(args.manifest_path)
    workspace = load_workspace(root)

    if args.json:
        print(
            json.dumps(
                [
                    {
                        "name": p.name,
                        "version": p.version,
                        "manifest_path": str(p.manifest_path),
                        "dependencies": len(p.dependencies),
                        "features": list(p.features),
                    }
                    for p in workspace.packages
                ],
                indent=2,
            )
        )
        return 0

    print(f"Found {len(workspace.packages)} package(s) in {workspace.root}:\n")
    for pkg in workspace.packages:
        if args.verbose:
            print(f"  {pkg.name} {pkg.version}: {pkg.manifest_path}")
        else:
            print(f"  {pkg.name} {pkg.version}")
    return 0


def cmd_tui(args: argparse.Namespace) -> int:
    """Launch the interactive TUI."""
    from featuretree.tui.app import FeatureTreeApp

    root = _resolve_root(getattr(args, "manifest_path", None))
    app = FeatureTreeApp(root=root)
    app.run()
    return 0


def _add_manifest_path(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--manifest-path",
        metavar="PATH",
        help="Workspace directory or root Cargo.toml (default: search upward from cwd)",
    )


def _add_verbose(parser: argparse.ArgumentParser, help_text: str) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help=help_text,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="featuretree",
        description="Inspect dependency features across the packages of a Cargo workspace.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Render log lines on stderr as JSON",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # featuretree list
    list_parser = subparsers.add_parser(
        "list",
        help="List dependency features per workspace package",
        description="Show which features each workspace package enables on its dependencies.",
    )
    list_parser.add_argument(
        "-p",
        "--package",
        metavar="PACKAGE",
        help="Only this workspace package (exact name)",
    )
    list_parser.add_argument(
        "-d",
        "--dependency",
        metavar="DEPENDENCY",
        help="Only this dependency (exact name)",
    )
    list_parser.add_argument(
        "-a",
        "--all",
        action="store_true",
        help="Show every package and dependency (overrides --package/--dependency)",
    )
    list_parser.add_argument(
        "--available",
        action="store_true",
        help="Also show the features declared by dependencies that are workspace members",
    )
    list_parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=1,
        help="Threads used to read manifests (default: 1)",
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    _add_manifest_path(list_parser)
    _add_verbose(list_parser, "Log discovery details to stderr")
    list_parser.set_defaults(func=cmd_list)

    # featuretree packages
    packages_parser = subparsers.add_parser(
        "packages",
        help="List workspace member packages",
        description="List the packages discovered in the workspace, in discovery order.",
    )
    packages_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    _add_manifest_path(packages_parser)
    _add_verbose(packages_parser, "Show manifest paths and log discovery details")
    packages_parser.set_defaults(func=cmd_packages)

    # featuretree tui (default if no command)
    tui_parser = subparsers.add_parser(
        "tui",
        help="Launch the interactive terminal UI",
        description="Browse packages, dependencies and their features interactively.",
    )
    _add_manifest_path(tui_parser)
    tui_parser.set_defaults(func=cmd_tui)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the featuretree CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        "DEBUG" if getattr(args, "verbose", False) else "WARNING",
        json_output=args.log_json,
    )

    # Default to TUI if no command specified
    if args.command is None:
        args = argparse.Namespace(command="tui", manifest_path=None, func=cmd_tui)

    try:
        return args.func(args)
    except FeatureTreeError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
