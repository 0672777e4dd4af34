"""
Console output for OpenList Deploy.

User-facing progress lines are tagged [INFO], [WARN] or [ERROR] and
printed through a shared rich Console. Debug detail (full docker command
lines, HTTP status codes) goes to stdlib logging and only shows with
--verbose.
"""

import logging

from rich.console import Console
from rich.markup import escape

console = Console(highlight=False, soft_wrap=True)


def log_info(message: str):
    console.print(f"[green]\\[INFO][/green] {escape(message)}")


def log_warn(message: str):
    console.print(f"[yellow]\\[WARN][/yellow] {escape(message)}")


def log_error(message: str):
    console.print(f"[red]\\[ERROR][/red] {escape(message)}")


def configure_logging(verbose: bool = False):
    """Route package loggers to stderr; DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("openlist_deploy").setLevel(logging.DEBUG if verbose else logging.WARNING)
    # urllib3 is noisy at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO if verbose else logging.WARNING)
