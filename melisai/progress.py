"""Progress messages written to standard error during a collection run."""

from __future__ import annotations

import sys
import time


def _format_elapsed(seconds: float) -> str:
    """Elapsed time rounded to milliseconds, e.g. ``0s``, ``12ms``, ``1m2.5s``."""
    ms = int(seconds * 1000 + 0.5) if seconds > 0 else 0
    if ms == 0:
        return "0s"
    if ms < 1000:
        return f"{ms}ms"
    hours, rest = divmod(ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    whole, fraction = divmod(rest, 1000)
    text = str(whole)
    if fraction:
        text += "." + f"{fraction:03d}".rstrip("0")
    text += "s"
    if hours or minutes:
        text = f"{minutes}m" + text
    if hours:
        text = f"{hours}h" + text
    return text


class Progress:
    """Reports collection status on stderr, prefixed with the time since creation.

    ``verbose`` enables debug messages and implies ``enabled``.
    """

    def __init__(self, enabled: bool = True, verbose: bool = False) -> None:
        self.enabled = enabled or verbose
        self.verbose = verbose
        self._start = time.monotonic()

    def _emit(self, prefix: str, fmt: str, args: tuple) -> None:
        message = fmt % args if args else fmt
        elapsed = _format_elapsed(time.monotonic() - self._start)
        print(f"[{elapsed}] {prefix}{message}", file=sys.stderr)

    def log(self, fmt: str, *args) -> None:
        """Print a %-style formatted message when enabled."""
        if self.enabled:
            self._emit("", fmt, args)

    def debug(self, fmt: str, *args) -> None:
        """Print a %-style formatted debug message when verbose."""
        if self.verbose:
            self._emit("DEBUG: ", fmt, args)