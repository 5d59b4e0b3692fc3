"""Logging configuration for Dripfeed.

Two channels:
- Module loggers (``logging.getLogger(__name__)``) for developer diagnostics.
  Default WARNING, ``--debug`` for DEBUG, overridable with env vars.
- The step log: one line per state-machine step with a stable step
  identifier and a verdict (DONE / STOP / HALT). Printed to the console and
  appended to the diagnostic log file in the target's private storage area.

Usage:
    from dripfeed.foundation.logging import configure_logging
    configure_logging(debug=args.debug)

Priority for level resolution (highest to lowest):
    1. Explicit `level` parameter (programmatic override)
    2. DRIPFEED_LOG_LEVEL env var (any level: DEBUG, INFO, WARNING, etc.)
    3. DRIPFEED_DEBUG=true env var (simple boolean)
    4. `debug=True` parameter (--debug flag)
    5. WARNING (default)
"""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.text import Text

# Format includes module path for tracing issues
_DEBUG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"
_DEFAULT_FORMAT = "%(name)s: %(message)s"

# Step lines in the diagnostic file: "<ISO-8601 UTC>: DONE: S0.1 - ..."
_STEP_FORMAT = "%(asctime)s: %(message)s"
_STEP_DATEFMT = "%Y-%m-%dT%H:%M:%SZ"

STEP_LOGGER_NAME = "dripfeed.steps"

DONE = "DONE"
STOP = "STOP"
HALT = "HALT"


def configure_logging(
    *,
    debug: bool = False,
    level: int | str | None = None,
    stream: object = None,
) -> None:
    """Configure logging for the Dripfeed CLI.

    Call this early in the CLI entrypoint.

    Args:
        debug: Enable DEBUG level with detailed format
        level: Override log level (int or string like "DEBUG", "INFO")
        stream: Output stream (default: stderr)
    """
    resolved_level: int
    if level is not None:
        resolved_level = _parse_level(level)
    elif env_level := os.environ.get("DRIPFEED_LOG_LEVEL"):
        resolved_level = _parse_level(env_level)
    elif os.environ.get("DRIPFEED_DEBUG", "").lower() in ("true", "1", "yes"):
        resolved_level = logging.DEBUG
    elif debug:
        resolved_level = logging.DEBUG
    else:
        resolved_level = logging.WARNING

    console_format = _DEBUG_FORMAT if resolved_level <= logging.DEBUG else _DEFAULT_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(resolved_level)
    console_handler.setFormatter(logging.Formatter(console_format))
    root_logger.addHandler(console_handler)

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s, debug=%s",
        logging.getLevelName(resolved_level),
        debug,
    )


def _parse_level(level: int | str) -> int:
    """Parse log level from int or string."""
    if isinstance(level, int):
        return level
    numeric = getattr(logging, level.upper(), None)
    if isinstance(numeric, int):
        return numeric
    try:
        return int(level)
    except ValueError:
        return logging.WARNING


class StepLog:
    """Step-by-step progress reporter for the engine.

    Each call produces exactly one line. The step logger does not propagate
    to the root logger, so step lines reach the diagnostic file regardless of
    the console log level.
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._logger = logging.getLogger(STEP_LOGGER_NAME)
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False
        self._file_handler: logging.FileHandler | None = None
        # lines emitted before a file is attached, replayed on attach
        self._backlog: list[logging.LogRecord] = []

    @property
    def log_file(self) -> Path | None:
        if self._file_handler is None:
            return None
        return Path(self._file_handler.baseFilename)

    def attach_file(self, path: Path) -> None:
        """Start appending step lines to ``path`` (idempotent per path)."""
        if self._file_handler is not None:
            if Path(self._file_handler.baseFilename) == path.resolve():
                return
            self.detach_file()

        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        formatter = logging.Formatter(_STEP_FORMAT, datefmt=_STEP_DATEFMT)
        formatter.converter = time.gmtime
        handler.setFormatter(formatter)
        self._logger.addHandler(handler)
        self._file_handler = handler
        for record in self._backlog:
            handler.handle(record)
        self._backlog.clear()

    def detach_file(self) -> None:
        if self._file_handler is None:
            return
        self._logger.removeHandler(self._file_handler)
        self._file_handler.close()
        self._file_handler = None

    def phase(self, title: str) -> None:
        """Announce a phase banner."""
        self.console.print(f"\n[bold cyan]=== {title} ===[/bold cyan]")
        self._record(f"=== {title} ===")

    def info(self, message: str) -> None:
        """Informational line that is not a step verdict."""
        self.console.print(Text(message))
        self._record(message)

    def done(self, step: str, summary: str) -> None:
        self._emit(DONE, step, summary, "green")

    def stop(self, step: str, reason: str) -> None:
        """Clean early termination (budget exhausted); never a failure."""
        self._emit(STOP, step, reason, "yellow")

    def halt(self, step: str, cause: str) -> None:
        self._emit(HALT, step, cause, "bold red")

    def _emit(self, verdict: str, step: str, text: str, style: str) -> None:
        line = f"{verdict}: {step} - {text}"
        self.console.print(Text.assemble((verdict, style), f": {step} - {text}"))
        self._record(line)

    def _record(self, line: str) -> None:
        if self._file_handler is None:
            self._backlog.append(
                self._logger.makeRecord(self._logger.name, logging.INFO, __file__, 0, "%s", (line,), None)
            )
            return
        self._logger.info("%s", line)
