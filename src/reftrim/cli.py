#!/usr/bin/env python3
"""
reftrim command line entrypoint

    reftrim [--root DIR] [--compile-if-needed] [--restore-if-needed] [--binlog DIR]
            [--json PATH] [--graph BASE] [--config FILE] [-v|-q]
    reftrim --init

Prints one line per Reference / ProjectReference / PackageReference that can
be removed. Config file values are overridden by explicit flags.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config_loader import ReftrimConfig, load_config, save_example_config
from .errors import ConfigError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reftrim",
        description="Find Reference/ProjectReference/PackageReference items that compiled assemblies do not use",
    )
    parser.add_argument("--root", "-r", default=None, help="Directory to scan for project files (default: config or cwd)")
    parser.add_argument("--config", "-c", default=None, help="Config file (reftrim.yaml or pyproject.toml)")
    parser.add_argument("--configuration", default=None, help="Build configuration used to locate assemblies (default Debug)")
    parser.add_argument("--compile-if-needed", action="store_true", default=None, help="Compile projects whose assembly is missing")
    parser.add_argument("--restore-if-needed", action="store_true", default=None, help="Restore projects whose assets file is missing")
    parser.add_argument("--dotnet", default=None, help="dotnet executable used for restore/compile")
    parser.add_argument("--binlog", default=None, help="Write MSBuild binary logs of restore/compile runs to this directory")
    parser.add_argument("--json", dest="json_report", default=None, help="Write a JSON report to this path")
    parser.add_argument("--graph", default=None, help="Render the project reference graph to BASE.dot/BASE.<format>")
    parser.add_argument("--format", dest="graph_format", default=None, help="Graphviz output format (default svg)")
    parser.add_argument("--fail-on-unused", action="store_true", default=None, help="Exit with code 1 if anything can be removed")
    parser.add_argument("--init", action="store_true", help="Write an example reftrim.yaml and exit")
    parser.add_argument("--force", action="store_true", help="Overwrite reftrim.yaml with --init")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    return parser


def _setup_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _apply_overrides(config: ReftrimConfig, args: argparse.Namespace) -> ReftrimConfig:
    for key in (
        "root",
        "configuration",
        "compile_if_needed",
        "restore_if_needed",
        "dotnet",
        "binlog",
        "json_report",
        "graph",
        "graph_format",
        "fail_on_unused",
    ):
        value = getattr(args, key)
        if value is not None:
            setattr(config, key, value)
    return config


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose, args.quiet)

    if args.init:
        try:
            target = save_example_config(force=args.force)
        except ConfigError as e:
            print(f"❌ {e}")
            return 2
        print(f"✓ Wrote example config: {target}")
        return 0

    try:
        config = load_config(Path(args.config) if args.config else None)
    except (ConfigError, ImportError) as e:
        print(f"❌ Failed to load config: {e}")
        return 2
    config = _apply_overrides(config, args)

    # Lazy import keeps --init/--help free of dnfile/graphviz
    from .runner import run, save_json_report

    result = run(config)

    for diagnostic in result.diagnostics:
        print(diagnostic.message)

    if config.json_report:
        report = save_json_report(result, Path(config.json_report))
        print(f"📄 JSON report written to: {report}")

    if config.graph:
        from .graphviz_render import render_unit_graph

        dot_path, rendered = render_unit_graph(result.units, result.diagnostics, config.graph, config.graph_format)
        if rendered:
            print(f"📊 Graph written to: {rendered}")
        else:
            print(f"⚠ Graphviz 'dot' not found; wrote DOT source only: {dot_path}")

    logging.getLogger(__name__).info(
        "%d units analyzed, %d skipped, %d removable items",
        len(result.units), len(result.skipped), len(result.diagnostics),
    )

    if config.fail_on_unused and result.diagnostics:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
