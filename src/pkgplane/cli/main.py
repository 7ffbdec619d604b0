"""
pkgplane command line entry point.

Commands:
    pkgplane apply FILE...                  - Load package manifests into the store
    pkgplane reconcile [--timeout SECONDS]  - Run controllers until they settle
    pkgplane get packages|revisions         - List packages or revisions
"""

from __future__ import annotations

import argparse
import logging
import sys

from pkgplane import __version__
from pkgplane.config import get_settings
from pkgplane.core.errors import main_with_error_handling
from pkgplane.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pkgplane", description="Package lifecycle manager")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON")
    subparsers = parser.add_subparsers(dest="command")

    apply_parser = subparsers.add_parser("apply", help="Apply package manifests")
    apply_parser.add_argument(
        "files", nargs="+", help="YAML files with Provider, Configuration or Function objects"
    )

    reconcile_parser = subparsers.add_parser("reconcile", help="Reconcile packages until settled")
    reconcile_parser.add_argument(
        "--timeout", type=float, default=30.0, help="Seconds to wait for controllers to settle"
    )

    get_parser = subparsers.add_parser("get", help="List packages or revisions")
    get_parser.add_argument("resource", choices=["packages", "revisions"])
    get_parser.add_argument(
        "--format", dest="output_format", choices=["table", "json"], default="table"
    )

    return parser


@main_with_error_handling()
def run(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING, json=args.log_json)
    settings = get_settings()

    if args.command == "apply":
        from pkgplane.cli.apply import apply_command

        return apply_command(args.files, settings=settings)

    if args.command == "reconcile":
        from pkgplane.cli.reconcile import reconcile_command

        return reconcile_command(timeout=args.timeout, settings=settings)

    if args.command == "get":
        from pkgplane.cli.get import get_command

        return get_command(args.resource, output_format=args.output_format, settings=settings)

    parser.print_help()
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
