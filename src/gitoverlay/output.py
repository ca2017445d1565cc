"""Colored output utilities for git-overlay."""

import os
import sys
from typing import TextIO


class Output:
    """Handles colored and formatted output."""

    # ANSI color codes
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"

    def __init__(
        self,
        *,
        no_color: bool = False,
        quiet: bool = False,
        debug: bool = False,
        stream: TextIO | None = None,
        err_stream: TextIO | None = None,
    ):
        """Initialize output handler.

        Args:
            no_color: Disable colored output
            quiet: Suppress informational output
            debug: Print debug messages to the error stream
            stream: Output stream (default stdout)
            err_stream: Error stream (default stderr)
        """
        self.stream = stream or sys.stdout
        self.err_stream = err_stream or sys.stderr
        self.quiet = quiet
        self.debug_enabled = debug

        self._use_color = self._should_use_color(no_color)

    def _should_use_color(self, no_color: bool) -> bool:
        """Determine if colored output should be used.

        Args:
            no_color: Explicit flag to disable color

        Returns:
            True if color should be used
        """
        if no_color:
            return False

        if os.environ.get("NO_COLOR"):
            return False

        if not hasattr(self.stream, "isatty") or not self.stream.isatty():
            return False

        return True

    def _colorize(self, text: str, *codes: str) -> str:
        if not self._use_color:
            return text
        return f"{''.join(codes)}{text}{self.RESET}"

    def success(self, message: str) -> None:
        """Print a success message (green)."""
        if self.quiet:
            return
        print(self._colorize(message, self.GREEN), file=self.stream)

    def warning(self, message: str) -> None:
        """Print a warning message (yellow)."""
        print(self._colorize(f"Warning: {message}", self.YELLOW), file=self.err_stream)

    def error(self, message: str) -> None:
        """Print an error message (red)."""
        print(self._colorize(f"Error: {message}", self.RED), file=self.err_stream)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if self.quiet:
            return
        print(message, file=self.stream)

    def note(self, message: str) -> None:
        """Print a note about a special case taken by an operation."""
        if self.quiet:
            return
        print(self._colorize(f"Note: {message}", self.YELLOW), file=self.stream)

    def debug(self, message: str) -> None:
        """Print a debug message when debug output is enabled.

        Debug lines go to the error stream so they never mix with output
        meant for other programs.
        """
        if not self.debug_enabled:
            return
        print(self._colorize(f"debug: {message}", self.DIM), file=self.err_stream)

    def path(self, path: str) -> str:
        """Format a path with color (cyan)."""
        return self._colorize(path, self.CYAN)

    def created(self, path: str, detail: str | None = None) -> None:
        """Print a 'created' message for a path.

        Args:
            path: Path that was created
            detail: Optional suffix such as the link mode
        """
        if self.quiet:
            return
        suffix = f" ({detail})" if detail else ""
        print(f"  {self._colorize('+', self.GREEN)} {self.path(path)}{suffix}", file=self.stream)

    def removed(self, path: str) -> None:
        """Print a 'removed' message for a path."""
        if self.quiet:
            return
        print(f"  {self._colorize('-', self.RED)} {self.path(path)}", file=self.stream)


# Global default output instance
_default_output: Output | None = None


def get_output() -> Output:
    """Get the default output instance.

    Returns:
        Default Output instance
    """
    global _default_output
    if _default_output is None:
        _default_output = Output()
    return _default_output


def set_output(output: Output) -> None:
    """Set the default output instance.

    Args:
        output: Output instance to use as default
    """
    global _default_output
    _default_output = output
