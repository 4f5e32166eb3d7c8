"""Process lifetime session: one agent connection, one liveness probe.

The session is the single place that ends the process.  Components below
it raise errors; :meth:`BeanSession.stop` cancels the probe, closes the
transport exactly once and terminates with the recorded exit code.

The liveness probe shares the transport with the foreground command loop
without extra locking.  That only holds while the probe stays a read-only
``count`` request whose failures are discarded; anything that mutates
shared state from the probe thread needs its own synchronisation.
"""

from __future__ import annotations

import _thread
import logging
import sys
import threading
from typing import TYPE_CHECKING, Callable, Optional, Sequence, Union

from .catalog import BeanCatalog
from .errors import EXIT_CONNECTION, EXIT_OK, ConnectionLostError, ExitRequested
from .interpreter import Command, CommandInterpreter
from .transport import BeanTransport, TransportConfig

if TYPE_CHECKING:  # pragma: no cover
    from .config import ConnectionSettings

LOGGER = logging.getLogger("beanctl.session")

PROBE_INTERVAL = 1.0

Terminator = Callable[[int], None]
TransportFactory = Callable[[TransportConfig], BeanTransport]


def terminate_process(code: int) -> None:
    """Leave the process with *code*.

    Off the main thread this only interrupts the main thread; the main loop
    then calls :meth:`BeanSession.stop` again, which exits with the code
    recorded by the first call.
    """
    sys.stdout.flush()
    if threading.current_thread() is threading.main_thread():
        raise SystemExit(code)
    _thread.interrupt_main()


class BeanSession:
    """Owns the transport, the catalog and the interpreter for one run."""

    def __init__(
        self,
        transport: BeanTransport,
        *,
        domain: str = "*",
        probe_interval: float = PROBE_INTERVAL,
        terminate: Optional[Terminator] = None,
    ) -> None:
        self.transport = transport
        self.catalog = BeanCatalog(transport, domain)
        self.interpreter = CommandInterpreter(self.catalog, transport)
        self.probe_interval = probe_interval
        self.connected = False
        self.last_exit_code = EXIT_OK
        self.exit_code: Optional[int] = None
        self._terminate = terminate or terminate_process
        self._stop_lock = threading.Lock()
        self._stopped = False
        self._probe_stop = threading.Event()
        self._probe_thread: Optional[threading.Thread] = None
        transport.register_on_disconnect(self._on_disconnect)

    @classmethod
    def start(
        cls,
        settings: "ConnectionSettings",
        *,
        transport_factory: Optional[TransportFactory] = None,
        probe_interval: float = PROBE_INTERVAL,
        terminate: Optional[Terminator] = None,
    ) -> "BeanSession":
        """Connect to the agent described by *settings*.

        Raises AgentConnectError when the agent cannot be reached.
        """
        factory = transport_factory or BeanTransport
        transport = factory(TransportConfig(host=settings.host, port=int(settings.port)))
        session = cls(transport, domain=settings.domain, probe_interval=probe_interval, terminate=terminate)
        session.open()
        return session

    @property
    def url(self) -> str:
        return f"{self.transport.config.host}:{self.transport.config.port}"

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def probe_running(self) -> bool:
        thread = self._probe_thread
        return bool(thread and thread.is_alive())

    def open(self) -> None:
        self.transport.connect()
        self.connected = True
        self._start_probe()
        LOGGER.info("connected to %s", self.url)

    def execute(self, command: Union[Command, Sequence[str]]) -> int:
        """Run one command; the returned code is also kept in last_exit_code."""
        self.last_exit_code = EXIT_OK
        try:
            self.last_exit_code = self.interpreter.execute(command)
        except ExitRequested as exc:
            self.last_exit_code = exc.code
            self.stop(exc.code)
        except ConnectionLostError as exc:
            self.last_exit_code = EXIT_CONNECTION
            self.handle_connection_loss(exc)
        return self.last_exit_code

    def handle_connection_loss(self, exc: BaseException) -> None:
        if not self._stopped:
            LOGGER.error("disconnected from %s: %s", self.url, exc)
            print(f"\nDisconnected from {self.url}! \n{exc}", file=sys.stderr)
        self.stop(EXIT_CONNECTION)

    def stop(self, code: int = EXIT_OK) -> None:
        """Shut the session down and terminate the process.

        Only the first call closes anything; later calls terminate with the
        code recorded by the first one.
        """
        with self._stop_lock:
            first = not self._stopped
            if first:
                self._stopped = True
                self.exit_code = code
        if first:
            self.connected = False
            self._stop_probe()
            try:
                self.transport.close()
            except Exception:
                LOGGER.error("unexpected error on stop", exc_info=True)
        self._terminate(self.exit_code if self.exit_code is not None else code)

    def _on_disconnect(self, reason: str) -> None:
        if self._stopped:
            return
        LOGGER.warning("agent %s disconnected: %s", self.url, reason)
        print(f"\nDisconnected from {self.url}!", file=sys.stderr)
        self.stop(EXIT_CONNECTION)

    # Liveness probe ---------------------------------------------------------

    def _start_probe(self) -> None:
        if self.probe_running:
            return
        self._probe_stop.clear()
        thread = threading.Thread(target=self._probe_loop, name="beanctl-probe", daemon=True)
        self._probe_thread = thread
        thread.start()

    def _stop_probe(self) -> None:
        self._probe_stop.set()
        thread = self._probe_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._probe_thread = None

    def _probe_loop(self) -> None:
        while not self._probe_stop.wait(timeout=self.probe_interval):
            try:
                self.transport.bean_count()
            except Exception as exc:
                # disconnects surface through the transport callback
                LOGGER.debug("liveness probe failed: %s", exc)


__all__ = ["BeanSession", "PROBE_INTERVAL", "terminate_process"]
