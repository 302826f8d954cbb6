"""Plain diagnostics written to standard error, with fatal variants."""

from __future__ import annotations

import os
import sys


class FatalError(Exception):
    """Raised after a fatal diagnostic has been reported; the run must stop."""

    status = 1


def _describe(error: int | BaseException | str | None) -> str:
    if isinstance(error, int):
        return os.strerror(error)
    if isinstance(error, OSError) and error.strerror:
        return error.strerror
    return "" if error is None else str(error)


def warn(message: str, error: int | BaseException | str | None) -> None:
    """Print a warning followed by the description of a system error."""
    sys.stderr.write(f"warning: {message}: {_describe(error)}\n")


def warnx(message: str) -> None:
    """Print a warning."""
    sys.stderr.write(f"warning: {message}\n")


def err(message: str, error: int | BaseException | str | None) -> None:
    """Print an error with a system error description, then raise FatalError."""
    sys.stderr.write(f"error: {message}: {_describe(error)}\n")
    raise FatalError(message)


def errx(message: str) -> None:
    """Print an error, then raise FatalError."""
    sys.stderr.write(f"error: {message}\n")
    raise FatalError(message)