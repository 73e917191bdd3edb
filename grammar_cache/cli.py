"""
grammar-cache CLI

Entry point for the grammar-cache command.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from grammar_cache import __version__
from grammar_cache.client import (
    EXIT_USAGE,
    client_compose,
    client_enable,
    client_example,
    client_find,
    client_list,
    client_rescan,
)
from grammar_cache.composer import Dialect
from grammar_cache.config import Config
from grammar_cache.server import run_server


def setup_logging(verbose: bool = False) -> None:
    """Configure logging"""
    level = logging.DEBUG if verbose else logging.INFO
    format_str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        stream=sys.stdout,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        prog="grammar-cache",
        description="Hot-reloading speech grammar cache",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"grammar-cache {__version__}",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        help="Path to config file (default: config.yml in the project root)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the server daemon",
    )
    serve_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    client_parser = subparsers.add_parser(
        "client",
        help="Client commands",
    )
    client_subparsers = client_parser.add_subparsers(
        dest="client_command",
        help="Client subcommands",
    )

    compose_parser = client_subparsers.add_parser(
        "compose",
        help="Replace a grammar's root rule with a rule body",
    )
    compose_parser.add_argument("name", help="Grammar name")
    compose_parser.add_argument("body", help="Rule body XML")
    compose_parser.add_argument(
        "--dialect",
        choices=[d.value for d in Dialect],
        default=Dialect.W3C.value,
        help="Semantic tag format (default: w3c)",
    )

    find_parser = client_subparsers.add_parser("find", help="Show a cached grammar")
    find_parser.add_argument("name", help="Grammar name")

    example_parser = client_subparsers.add_parser("example", help="Show a rule's example")
    example_parser.add_argument("rule_id", help="Rule id")

    enable_parser = client_subparsers.add_parser("enable", help="Enable or disable a grammar")
    enable_parser.add_argument("name", help="Grammar name")
    enable_parser.add_argument("state", choices=["on", "off"])

    client_subparsers.add_parser("list", help="List cached grammars")
    client_subparsers.add_parser("rescan", help="Rescan the grammar directory")

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return EXIT_USAGE

    if parsed.command == "serve":
        setup_logging(verbose=parsed.verbose)
        config = Config.load(parsed.config)
        run_server(config, verbose=parsed.verbose)
        return 0

    elif parsed.command == "client":
        if not parsed.client_command:
            parser.parse_args(["client", "--help"])
            return EXIT_USAGE

        # Minimal logging for client
        logging.basicConfig(
            level=logging.ERROR,
            format="%(message)s",
            stream=sys.stderr,
        )
        config = Config.load(parsed.config)

        if parsed.client_command == "compose":
            return client_compose(config, parsed.name, parsed.body, parsed.dialect)
        elif parsed.client_command == "find":
            return client_find(config, parsed.name)
        elif parsed.client_command == "example":
            return client_example(config, parsed.rule_id)
        elif parsed.client_command == "enable":
            return client_enable(config, parsed.name, parsed.state == "on")
        elif parsed.client_command == "list":
            return client_list(config)
        elif parsed.client_command == "rescan":
            return client_rescan(config)
        else:
            print(f"Unknown client command: {parsed.client_command}", file=sys.stderr)
            return EXIT_USAGE

    else:
        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
