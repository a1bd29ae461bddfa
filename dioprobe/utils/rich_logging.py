"""Rich logging integration for dioprobe.

Provides a Rich console handler with correlation ID support and a plain
file formatter that strips Rich markup.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import TYPE_CHECKING, Any

from rich.console import Console as RichConsole
from rich.logging import RichHandler
from rich.markup import escape

if TYPE_CHECKING:
    from rich.console import Console

_MARKUP_PATTERN = re.compile(r"\[/?[^\]]+\]")
NO_CORRELATION_ID = "no-correlation-id"


class CorrelationRichHandler(RichHandler):
    """RichHandler that stamps records with the current correlation ID.

    The first eight characters of the correlation ID prefix each message so
    console lines from one scrape can be matched up. Operation names
    (``op=read``, ``op=write``) are highlighted so failing probe phases stand
    out. Output goes to stderr, keeping stdout free for command results.
    """

    OP_PATTERN = re.compile(r"\bop=(read|write)\b")

    def __init__(
        self,
        *args: Any,
        console: Console | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize handler, defaulting to a stderr console."""
        if console is None:
            console = RichConsole(file=sys.stderr, markup=True)
        kwargs.setdefault("markup", True)
        super().__init__(*args, console=console, **kwargs)

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record with correlation ID and op highlighting."""
        try:
            if not hasattr(record, "correlation_id"):
                from dioprobe.utils.logging_config import correlation_id

                record.correlation_id = correlation_id.get() or NO_CORRELATION_ID

            # Escape user content before adding our own markup
            message = escape(record.getMessage())
            message = self.OP_PATTERN.sub(
                r"[bright_cyan]op=\1[/bright_cyan]", message
            )
            if record.correlation_id != NO_CORRELATION_ID:
                message = f"[dim]{escape(record.correlation_id[:8])}[/dim] {message}"
            record.msg = message
            record.args = ()
            super().emit(record)
        except Exception:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        """Report handler failures on stderr without re-entering logging."""
        try:
            sys.stderr.write(
                f"Logging error (suppressed): {record.levelname} {record.name}\n"
            )
            sys.stderr.flush()
        except OSError:
            pass


def strip_rich_markup(text: str) -> str:
    """Strip Rich markup from text for file logging."""
    return _MARKUP_PATTERN.sub("", text)


class FileFormatter(logging.Formatter):
    """Formatter for file output that strips Rich markup."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record, stripping Rich markup for file output."""
        return strip_rich_markup(super().format(record))


def create_rich_handler(
    console: Console | None = None,
    level: int | str = logging.INFO,
    show_path: bool = False,
    rich_tracebacks: bool = True,
) -> logging.Handler:
    """Create a RichHandler with correlation ID support.

    Args:
        console: Optional Rich Console instance
        level: Log level
        show_path: Whether to show file paths in log output
        rich_tracebacks: Whether to use rich tracebacks

    Returns:
        Configured RichHandler instance

    """
    return CorrelationRichHandler(
        console=console,
        level=level,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
    )
