"""Command-line entry point for detect."""

import argparse
import logging
import os
import sys
from collections.abc import Iterable
from typing import NoReturn

from rich.console import Console
from rich.markup import escape
from rich.text import Text

from .config import DetectConfig, load_config
from .engine import evaluate
from .entity import Entity, walk_fs, walk_git
from .errors import (
    DirectoryNotFoundError,
    GitCommandError,
    QueryError,
    QuerySyntaxError,
    QueryTypeError,
    RootNotADirectoryError,
)
from .query import Expr, parse_query, to_canonical_string
from .query.values import parse_size

logger = logging.getLogger(__name__)

# Errors go to stderr; matches are written to stdout as plain lines
console = Console(stderr=True, highlight=False)


def _create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="detect",
        description="Find files, directories and git tree entries matching a query",
        epilog="Example: detect 'ext == py && content contains TODO' src",
    )
    parser.add_argument("expr", help="Query expression, e.g. 'ext == rs && size > 1kb'")
    parser.add_argument(
        "root", nargs="?", default=".", help="Directory to search (default: .)"
    )
    # Options (keep sorted alphabetically by long option name)
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only parse the query and print its canonical form",
    )
    parser.add_argument(
        "--config",
        help="Config file (default: $DETECT_CONFIG or ~/.config/detect/detect.yml)",
    )
    parser.add_argument(
        "--follow-symlinks",
        action="store_true",
        default=None,
        help="Descend into symlinked directories",
    )
    parser.add_argument(
        "--git",
        metavar="REV",
        help="Search the tree of git revision REV instead of the working tree",
    )
    parser.add_argument(
        "--include-hidden",
        action="store_true",
        default=None,
        help="Also visit entries whose names start with '.'",
    )
    parser.add_argument(
        "--max-structured-size",
        metavar="SIZE",
        help="Largest YAML/JSON/TOML document to parse, e.g. 10mb",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log evaluation details to stderr",
    )
    return parser


def _apply_overrides(config: DetectConfig, args: argparse.Namespace) -> None:
    """Let command-line flags override config file values."""
    if args.include_hidden is not None:
        config.include_hidden = args.include_hidden
    if args.follow_symlinks is not None:
        config.follow_symlinks = args.follow_symlinks
    if args.max_structured_size is not None:
        config.max_structured_size = parse_size(args.max_structured_size)
    if args.verbose:
        config.log_level = "DEBUG"


def print_query_error(error: QueryError) -> None:
    """Render a query error with a caret under the offending position."""
    console.print(f"[bold red]error:[/bold red] {escape(str(error))}")
    console.print(Text(f"  {error.query}"))
    console.print(Text("  " + " " * error.position + "^", style="bold red"))
    if isinstance(error, QuerySyntaxError) and error.expected:
        expected = ", ".join(sorted(error.expected))
        console.print(f"[dim]expected one of: {escape(expected)}[/dim]")
    elif isinstance(error, QueryTypeError) and error.suggestion:
        console.print(f"[dim]help: {escape(error.suggestion)}[/dim]")


def _entities(args: argparse.Namespace, config: DetectConfig) -> Iterable[Entity]:
    if args.git:
        return walk_git(args.root, args.git)
    return walk_fs(args.root, config)


def _display_path(path: str) -> str:
    """``path`` with undecodable name bytes shown as U+FFFD."""
    return path.encode("utf-8", errors="surrogateescape").decode(
        "utf-8", errors="replace"
    )


def _print_matches(expr: Expr, entities: Iterable[Entity], config: DetectConfig) -> int:
    """Evaluate every entity and print the matching paths."""
    count = 0
    for entity in entities:
        if evaluate(expr, entity, config):
            print(_display_path(entity.path))
            count += 1
    logger.info(f"{count} matching entities")
    return count


def run(argv: list[str] | None = None) -> int:
    """Run detect and return the process exit code.

    Exit codes: 0 on success, 1 if the root cannot be searched, 2 if the
    query (or a command-line value) is invalid.
    """
    parser = _create_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    try:
        _apply_overrides(config, args)
    except ValueError as e:
        console.print(f"[bold red]error:[/bold red] {escape(str(e))}")
        return 2

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        expr = parse_query(args.expr)
    except QueryError as e:
        print_query_error(e)
        return 2

    if args.check:
        print(to_canonical_string(expr))
        return 0

    try:
        _print_matches(expr, _entities(args, config), config)
    except (DirectoryNotFoundError, RootNotADirectoryError, GitCommandError) as e:
        console.print(f"[bold red]error:[/bold red] {escape(str(e))}")
        return 1
    except BrokenPipeError:
        # The reader went away (e.g. `detect ... | head`); stop quietly
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    return 0


def main() -> NoReturn:
    """Main entry point for the detect CLI tool."""
    sys.exit(run())
