"""File backed command history for the interactive shell."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from prompt_toolkit.history import History, InMemoryHistory

LOGGER = logging.getLogger("beanctl.history")

DEFAULT_LIMIT = 500


class HistoryStore:
    """Bounded list of past command lines mirrored to a text file.

    Without a path the store only lives in memory.  Failing to read or
    write the file never interrupts the shell.
    """

    def __init__(self, path: Optional[Union[str, Path]], *, limit: int = DEFAULT_LIMIT) -> None:
        self.limit = max(1, int(limit or 1))
        self.path = Path(path).expanduser() if path else None
        self.entries: List[str] = []
        if self.path:
            self._load()

    def _load(self) -> None:
        if not self.path:
            return
        try:
            data = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError as exc:
            LOGGER.warning("cannot read history %s: %s", self.path, exc)
            return
        lines = [line.strip() for line in data.splitlines() if line.strip()]
        self.entries = lines[-self.limit :]

    def append(self, line: str) -> None:
        text = line.strip()
        if not text or (self.entries and self.entries[-1] == text):
            return
        self.entries.append(text)
        del self.entries[: -self.limit]
        self._persist()

    def _persist(self) -> None:
        if not self.path:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("\n".join(self.entries) + "\n", encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("cannot write history %s: %s", self.path, exc)

    def snapshot(self) -> List[str]:
        return list(self.entries)

    def to_prompt_history(self) -> History:
        """Seed a prompt_toolkit history with the stored entries."""
        history = InMemoryHistory()
        for entry in self.entries:
            history.append_string(entry)
        return history


__all__ = ["HistoryStore", "DEFAULT_LIMIT"]
