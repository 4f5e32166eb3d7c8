"""Completion data for the interactive shell and its prompt_toolkit adapter."""

from __future__ import annotations

import logging
import shlex
from typing import Callable, Iterable, List, Optional

from prompt_toolkit.completion import CompleteEvent, Completer, Completion
from prompt_toolkit.document import Document

from .catalog import BeanCatalog
from .errors import BeanctlError, ConnectionLostError
from .interpreter import ATTRIBUTES_TOKEN, GET_TOKEN, SET_TOKEN
from .transport import BeanTransport

LOGGER = logging.getLogger("beanctl.completion")

SUBCOMMANDS = (SET_TOKEN, GET_TOKEN, "operations", ATTRIBUTES_TOKEN)

DisconnectHandler = Callable[[BaseException], None]


def split_words(text: str) -> List[str]:
    """Tokenise a partial line; a trailing blank starts a new empty word."""
    if not text:
        return []
    try:
        words = shlex.split(text, posix=True)
    except ValueError:
        # unterminated quote while typing
        words = text.split()
    if text[-1].isspace():
        words.append("")
    return words


class CompletionProvider:
    """Suggests bean names, operation names and attribute names."""

    def __init__(
        self,
        catalog: BeanCatalog,
        transport: BeanTransport,
        *,
        on_disconnect: Optional[DisconnectHandler] = None,
    ) -> None:
        self.catalog = catalog
        self.transport = transport
        self.on_disconnect = on_disconnect

    def suggest(self, line: str) -> List[str]:
        try:
            return self._suggest(line)
        except ConnectionLostError as exc:
            LOGGER.error("connection lost during completion: %s", exc)
            if self.on_disconnect is not None:
                self.on_disconnect(exc)
            return []
        except BeanctlError as exc:
            LOGGER.error("completion failed for %r: %s", line, exc)
            return []

    def _suggest(self, line: str) -> List[str]:
        if not line or " " not in line:
            return list(self.catalog.list_beans())
        words = split_words(line)
        name = self.catalog.resolve(words[0])
        if name is None:
            return []
        info = self.transport.get_bean_info(name)
        if len(words) == 3 and words[1] in (SET_TOKEN, GET_TOKEN):
            return [attr.name for attr in info.attributes]
        if len(words) <= 2:
            operations = dict.fromkeys(op.name for op in info.operations)
            return list(operations) + list(SUBCOMMANDS)
        return []


class BeanCompleter(Completer):
    """prompt_toolkit completer backed by a CompletionProvider."""

    def __init__(self, provider: CompletionProvider) -> None:
        self.provider = provider

    def get_completions(self, document: Document, complete_event: CompleteEvent) -> Iterable[Completion]:
        text = document.text_before_cursor
        words = split_words(text)
        prefix = words[-1] if words else ""
        for candidate in self.provider.suggest(text):
            if candidate.startswith(prefix):
                yield Completion(candidate, start_position=-len(prefix))


__all__ = ["BeanCompleter", "CompletionProvider", "SUBCOMMANDS", "split_words"]
