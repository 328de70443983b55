"""Command line interface for OpenAPI to Word export."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .pipeline import ConfigLoadError, WriteError, list_operations, run_export


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    parser = argparse.ArgumentParser(
        prog="openapi-to-docx-generator",
        description="Generate Word documents describing OpenAPI operations and schemas",
    )
    parser.add_argument("--config", required=True, help="Path to the YAML export configuration")
    parser.add_argument(
        "--only",
        nargs="+",
        metavar="FILE",
        help="Only create the listed Word files of the configuration",
    )
    parser.add_argument(
        "--list-operations",
        action="store_true",
        help="List paths and operation ids of the configured OpenAPI files and exit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config_path = Path(args.config)

    try:
        if args.list_operations:
            for line in list_operations(config_path=config_path):
                print(line)
            return 0
        run = run_export(config_path=config_path, only_files=args.only)
    except (ConfigLoadError, WriteError) as exc:
        parser.error(str(exc))
        return 2

    for warning in run.warnings:
        print(f"Warning: {warning}")
    for written in run.written_files:
        print(f"Wrote {written}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
