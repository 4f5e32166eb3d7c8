"""Interactive REPL for beanctl."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout

from .completion import BeanCompleter, CompletionProvider
from .errors import EXIT_OK, EXIT_UNEXPECTED, CommandSyntaxError
from .history import HistoryStore
from .output import emit_error
from .parser import split_command
from .session import BeanSession

LOGGER = logging.getLogger("beanctl.repl")

PROMPT = "$> "
BANNER = "Welcome to the beanctl console. Type help to get started."

PromptFactory = Callable[..., PromptSession]


class BeanREPL:
    """Read a line, run it against the session, repeat.

    The loop ends only through the session: ``exit``/``quit``, Ctrl-C or
    Ctrl-D at the prompt, or a lost connection.
    """

    def __init__(
        self,
        session: BeanSession,
        *,
        history_store: Optional[HistoryStore] = None,
        prompt_factory: Optional[PromptFactory] = None,
    ) -> None:
        self.session = session
        self.history_store = history_store or HistoryStore(None)
        self.provider = CompletionProvider(
            session.catalog,
            session.transport,
            on_disconnect=session.handle_connection_loss,
        )
        self._prompt_factory = prompt_factory or PromptSession

    def run(self) -> int:
        prompt = self._prompt_factory(
            PROMPT,
            history=self.history_store.to_prompt_history(),
            completer=BeanCompleter(self.provider),
            complete_while_typing=False,
        )
        print(BANNER)
        while True:
            try:
                with patch_stdout():
                    line = prompt.prompt()
                self.dispatch(line)
            except (EOFError, KeyboardInterrupt):
                # Ctrl-D / Ctrl-C, or the main thread interrupted after a disconnect
                print()
                self.session.stop(EXIT_OK)
                return self.session.exit_code or EXIT_OK

    def dispatch(self, line: str) -> int:
        stripped = line.strip()
        if not stripped:
            return EXIT_OK
        self.history_store.append(stripped)
        try:
            argv = split_command(stripped)
        except CommandSyntaxError as exc:
            emit_error(str(exc))
            return exc.exit_code
        try:
            return self.session.execute(argv)
        except (SystemExit, KeyboardInterrupt):
            raise
        except Exception as exc:
            LOGGER.exception("command failed")
            emit_error(f"command '{stripped}' failed: {exc}")
            return EXIT_UNEXPECTED


__all__ = ["BeanREPL", "PROMPT", "BANNER"]
