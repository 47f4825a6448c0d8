#!/usr/bin/env python3
"""
Trellis - command-line interface.

Commands:
- id parse: Split a unique ID into its segments
- id resolve: Resolve a unique ID to a class or method
- discover: Print the discovered test tree
- extensions: Print the ordered extension points of each node

Usage:
    trellis id parse "[engine:trellis]/[class:tests.sample.Outer]"
    trellis id parse "[engine:trellis]/[class:tests.sample.Outer]" --format json
    trellis id resolve "[engine:trellis]/[class:tests.sample.Outer]/[method:works()]"
    trellis discover tests.sample                 # Whole module
    trellis discover tests.sample:Outer.Inner     # One (nested) class
    trellis discover tests.sample:Outer#works     # One method
    trellis discover tests.sample --format json
    trellis extensions tests.sample:Outer         # Extension order per node
    trellis -v discover tests.sample              # Debug logging
    trellis --help                                # Show help
"""

import argparse
import logging
import sys
from pathlib import Path

from trellis import __version__
from trellis.commands.discover import DiscoveryCommand


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trellis",
        description="Unique IDs and test discovery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"trellis {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--root", type=Path, default=None, help="Project root (default: search for .trellis/)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ----- id -----
    id_parser = subparsers.add_parser("id", help="Work with unique IDs")
    id_subparsers = id_parser.add_subparsers(dest="id_command", help="Unique ID commands")

    parse_parser = id_subparsers.add_parser("parse", help="Split a unique ID into segments")
    parse_parser.add_argument("unique_id", help="Serialized unique ID")
    parse_parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")

    resolve_parser = id_subparsers.add_parser("resolve", help="Resolve a unique ID to a class or method")
    resolve_parser.add_argument("unique_id", help="Serialized unique ID")

    # ----- discover -----
    discover_parser = subparsers.add_parser("discover", help="Discover tests")
    discover_parser.add_argument(
        "targets",
        nargs="+",
        help="Module, module:Class, module:Class#method or a unique ID",
    )
    discover_parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")

    # ----- extensions -----
    extensions_parser = subparsers.add_parser("extensions", help="Show ordered extension points per node")
    extensions_parser.add_argument("target", help="Module, module:Class, module:Class#method or a unique ID")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    command = DiscoveryCommand(args.root)

    if args.command == "id":
        if args.id_command == "parse":
            return command.parse(args.unique_id, format=args.format)
        if args.id_command == "resolve":
            return command.resolve(args.unique_id)
        parser.parse_args(["id", "--help"])
        return 1

    if args.command == "discover":
        return command.discover(args.targets, format=args.format)

    if args.command == "extensions":
        return command.extensions(args.target)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
