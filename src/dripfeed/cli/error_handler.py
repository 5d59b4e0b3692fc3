"""CLI error handling.

Turns a DripfeedError into a rich error panel with recovery hints and exits
with the status of the error's category, so wrappers can tell a dirty
target (2) from an integrity failure (3) or a git failure (4).
"""

from __future__ import annotations

import json
import sys
from typing import NoReturn

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from dripfeed.foundation.errors import DripfeedError

INTERRUPTED_STATUS = 130


def handle_error(error: DripfeedError, json_output: bool = False) -> NoReturn:
    """Report ``error`` and exit.

    Args:
        error: The halt to report
        json_output: Print the structured error as JSON instead of a panel

    Raises:
        SystemExit: Always, with the category's exit status
    """
    if json_output:
        error_dict = error.to_dict()
        if error.cause:
            error_dict["cause"] = str(error.cause)
        print(json.dumps(error_dict), file=sys.stderr)
        sys.exit(error.exit_status)

    _print_human_error(error)
    sys.exit(error.exit_status)


def _print_human_error(error: DripfeedError) -> None:
    console = Console(stderr=True)

    body = Text()
    body.append(error.error_id, style="bold red")
    body.append(f" {error.message}\n")
    body.append(f"step {error.step}, {error.category} error", style="dim")

    if error.recovery_hints:
        body.append("\n\nWhat you can do:", style="bold")
        for i, hint in enumerate(error.recovery_hints, 1):
            body.append(f"\n  {i}. {hint}")

    console.print(Panel(body, title="HALT", border_style="red", expand=False))


def handle_interrupt() -> NoReturn:
    Console(stderr=True).print("[yellow]Interrupted.[/yellow] Progress up to the last commit is saved.")
    sys.exit(INTERRUPTED_STATUS)
