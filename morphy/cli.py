"""Command-line entry point.

Usage::

    morphy create my-app
    morphy create my-app https://github.com/acme/template
    morphy test ./my-template
    morphy test ./my-template 2
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import traceback
from pathlib import Path

from morphy.config import Config
from morphy.errors import MorphyError
from morphy.generator import ProjectCreator
from morphy.harness import TemplateTester
from morphy.utils import console, print_error


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="morphy",
        description="Morphy -- create projects from reducible templates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  morphy create my-app\n"
            "  morphy create my-app https://github.com/acme/template\n"
            "  morphy test ./my-template 2\n"
        ),
    )
    subparsers = parser.add_subparsers(dest="command", metavar="command")

    create = subparsers.add_parser(
        "create", help="Create a new project in the specified directory"
    )
    create.add_argument("destination", help="Directory to create the project in")
    create.add_argument(
        "template",
        nargs="?",
        default=None,
        help="Template: GitHub repository URL or local directory (default: bundled template)",
    )
    create.add_argument(
        "--skip-install",
        action="store_true",
        help="Do not run the package manager after reduction",
    )

    test = subparsers.add_parser(
        "test", help="Test a template against its own test configuration set"
    )
    test.add_argument(
        "template",
        nargs="?",
        default=None,
        help="Template: GitHub repository URL or local directory (default: bundled template)",
    )
    test.add_argument(
        "case",
        nargs="?",
        type=int,
        default=None,
        help="Number of the single case to test (1-based)",
    )
    test.add_argument(
        "--test-root",
        default=None,
        help="Directory for the disposable working directories (default: current directory)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``morphy`` and ``python -m morphy``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = Config.from_env()

    try:
        if args.command == "create":
            if args.skip_install:
                config.skip_install = True
            asyncio.run(ProjectCreator(config).create(args.destination, args.template))
        else:
            if args.case is not None and args.case < 1:
                print_error(f"Invalid case number: {args.case} (must be 1 or greater)")
                sys.exit(1)
            if args.test_root:
                config.test_root = Path(args.test_root)
            asyncio.run(TemplateTester(config).run(args.template, args.case))
    except MorphyError as exc:
        print_error(str(exc))
        sys.exit(1)
    except KeyboardInterrupt:
        print_error("Interrupted")
        sys.exit(130)
    except Exception as exc:
        print_error(str(exc) or type(exc).__name__)
        console.print(f"[dim]{traceback.format_exc()}[/dim]")
        sys.exit(1)


if __name__ == "__main__":
    main()
