"""Command line tokenisation for beanctl."""

from __future__ import annotations

import shlex
from typing import List

from .errors import CommandSyntaxError


def split_command(line: str) -> List[str]:
    """Split an input line into tokens using shell quoting rules.

    Quoting lets a single argument carry blanks: ``cache put key "a b"``.
    """
    if not line:
        return []
    try:
        return shlex.split(line, comments=False, posix=True)
    except ValueError as exc:
        raise CommandSyntaxError(f"cannot parse '{line.strip()}': {exc}") from exc
