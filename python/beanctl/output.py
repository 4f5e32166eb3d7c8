"""Output helpers for beanctl."""

from __future__ import annotations

import sys
from typing import Iterable


def emit_result(message: str) -> None:
    """Print a command result on stdout."""
    print(message)


def emit_lines(lines: Iterable[str]) -> None:
    for line in lines:
        print(line)


def emit_error(message: str) -> None:
    """Print an operator facing error on stderr."""
    print(f"error: {message}", file=sys.stderr)


__all__ = ["emit_result", "emit_lines", "emit_error"]
