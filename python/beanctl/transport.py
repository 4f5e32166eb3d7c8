"""
Transport layer for beanctl.

Responsibilities:
    * Hold one JSON-over-TCP connection to a bean agent (one JSON object per
      line in both directions, requests tagged with a ``seq`` number).
    * Match responses to requests so that the foreground command loop and the
      liveness probe can share the connection.
    * Surface connection loss to registered disconnect callbacks.

A transport never reconnects: once the socket is gone every request raises
:class:`ConnectionLostError`.
"""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .coercion import TypedValue
from .errors import AgentConnectError, ConnectionLostError, UnexpectedProtocolError, remote_error
from .model import BeanInfo, RemoteValue
from .names import ObjectName

LOGGER = logging.getLogger("beanctl.transport")

DisconnectCallback = Callable[[str], None]


@dataclass
class TransportConfig:
    host: str = "localhost"
    port: int = 9875
    connect_timeout: float = 5.0
    read_timeout: float = 30.0


@dataclass
class BeanTransport:
    """Synchronous request/response client for the bean agent protocol."""

    config: TransportConfig = field(default_factory=TransportConfig)

    _sock: Optional[socket.socket] = field(init=False, default=None)
    _send_lock: threading.Lock = field(init=False, default_factory=threading.Lock)
    _seq_lock: threading.Lock = field(init=False, default_factory=threading.Lock)
    _state_lock: threading.Lock = field(init=False, default_factory=threading.Lock)
    _state: str = field(init=False, default="disconnected")
    _shutdown: bool = field(init=False, default=False)
    _next_id: int = field(init=False, default=1)
    _reader_thread: Optional[threading.Thread] = field(init=False, default=None)
    _responses: Dict[int, Dict[str, Any]] = field(init=False, default_factory=dict)
    _pending: set = field(init=False, default_factory=set)
    _resp_cv: threading.Condition = field(init=False, default_factory=lambda: threading.Condition(threading.Lock()))
    _on_disconnect: List[DisconnectCallback] = field(init=False, default_factory=list)
    _disconnect_reason: str = field(init=False, default="")

    @property
    def url(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    @property
    def state(self) -> str:
        with self._state_lock:
            return self._state

    def register_on_disconnect(self, callback: DisconnectCallback) -> None:
        self._on_disconnect.append(callback)

    #
    # Connection lifecycle
    #
    def connect(self) -> None:
        """Open the TCP connection to the agent."""
        if self._sock:
            return
        if self._shutdown:
            raise AgentConnectError("transport closed")
        try:
            sock = socket.create_connection(
                (self.config.host, self.config.port),
                timeout=self.config.connect_timeout,
            )
        except OSError as exc:
            raise AgentConnectError(f"cannot connect to {self.url}: {exc}") from exc
        # the reader thread blocks in recv(); request timeouts are enforced by _wait_for_response
        sock.settimeout(None)
        self._sock = sock
        self._set_state("connected")
        self._reader_thread = threading.Thread(target=self._reader_loop, name="beanctl-reader", daemon=True)
        self._reader_thread.start()
        LOGGER.debug("connected to %s", self.url)

    def close(self) -> None:
        self._shutdown = True
        self._handle_disconnect("closed")
        thread = self._reader_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=0.5)

    #
    # Bean operations
    #
    def query_names(self, pattern: str) -> List[ObjectName]:
        response = self.send_request({"cmd": "query", "pattern": pattern})
        names = response.get("names")
        if not isinstance(names, list):
            raise UnexpectedProtocolError(f"query response missing names: {response}")
        return [ObjectName.parse(entry) for entry in names]

    def bean_count(self) -> int:
        response = self.send_request({"cmd": "count"})
        try:
            return int(response.get("count", 0))
        except (TypeError, ValueError) as exc:
            raise UnexpectedProtocolError(f"invalid count: {response}") from exc

    def get_bean_info(self, name: ObjectName) -> BeanInfo:
        response = self.send_request({"cmd": "info", "name": str(name)})
        return BeanInfo.from_wire(response.get("info"))

    def get_attribute(self, name: ObjectName, attribute: str) -> RemoteValue:
        response = self.send_request({"cmd": "get", "name": str(name), "attribute": attribute})
        return RemoteValue(response.get("value"), response.get("type"))

    def set_attribute(self, name: ObjectName, attribute: str, value: TypedValue) -> None:
        self.send_request(
            {
                "cmd": "set",
                "name": str(name),
                "attribute": attribute,
                "value": value.value,
                "type": value.type_name,
            }
        )

    def invoke(
        self,
        name: ObjectName,
        operation: str,
        args: Sequence[TypedValue],
        signature: Sequence[str],
    ) -> Any:
        response = self.send_request(
            {
                "cmd": "invoke",
                "name": str(name),
                "operation": operation,
                "args": [arg.value for arg in args],
                "signature": list(signature),
            }
        )
        return response.get("value")

    #
    # Request plumbing
    #
    def send_request(self, payload: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        """Send one request and wait for its response; raise on error status."""
        response = self._send_single_request(dict(payload), timeout=timeout)
        if response.get("status") != "ok":
            raise remote_error(response.get("error"), response.get("message"))
        return response

    def _next_seq(self) -> int:
        with self._seq_lock:
            seq = self._next_id
            self._next_id += 1
            return seq

    def _send_single_request(self, payload: Dict[str, Any], timeout: Optional[float]) -> Dict[str, Any]:
        sock = self._sock
        if self._shutdown or sock is None:
            raise ConnectionLostError(f"not connected to {self.url}")
        request_id = self._next_seq()
        payload["seq"] = request_id
        data = json.dumps(payload).encode("utf-8") + b"\n"
        with self._resp_cv:
            self._pending.add(request_id)
        try:
            with self._send_lock:
                sock.sendall(data)
        except OSError as exc:
            with self._resp_cv:
                self._pending.discard(request_id)
            self._handle_disconnect(str(exc))
            raise ConnectionLostError(f"send to {self.url} failed: {exc}") from exc
        return self._wait_for_response(request_id, timeout=timeout)

    def _wait_for_response(self, request_id: int, timeout: Optional[float]) -> Dict[str, Any]:
        deadline = time.perf_counter() + (timeout or self.config.read_timeout)
        with self._resp_cv:
            while request_id not in self._responses:
                if self._sock is None:
                    self._pending.discard(request_id)
                    raise ConnectionLostError(f"connection to {self.url} lost: {self._disconnect_reason}")
                remaining = deadline - time.perf_counter()
                if remaining <= 0:
                    self._pending.discard(request_id)
                    raise ConnectionLostError(f"no response from {self.url}")
                self._resp_cv.wait(timeout=remaining)
            return self._responses.pop(request_id)

    def _reader_loop(self) -> None:
        buffer = b""
        reason = "connection closed by agent"
        while not self._shutdown:
            sock = self._sock
            if not sock:
                break
            try:
                chunk = sock.recv(4096)
            except OSError as exc:
                reason = str(exc)
                break
            if not chunk:
                break
            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                if not line.strip():
                    continue
                try:
                    message = json.loads(line.decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError):
                    LOGGER.warning("dropping malformed frame from %s: %r", self.url, line[:80])
                    continue
                if isinstance(message, dict):
                    self._handle_response(message)
        self._handle_disconnect(reason)

    def _handle_response(self, message: Dict[str, Any]) -> None:
        seq = message.get("seq")
        with self._resp_cv:
            if seq not in self._pending:
                LOGGER.debug("unsolicited message from %s: %s", self.url, message)
                return
            self._pending.discard(seq)
            self._responses[seq] = message
            self._resp_cv.notify_all()

    def _handle_disconnect(self, reason: str = "") -> None:
        sock = self._sock
        self._sock = None
        if sock:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                sock.close()
            except OSError:
                pass
        with self._resp_cv:
            if reason and not self._disconnect_reason:
                self._disconnect_reason = reason
            self._resp_cv.notify_all()
        self._set_state("disconnected")

    def _set_state(self, new_state: str) -> None:
        with self._state_lock:
            if self._state == new_state:
                return
            self._state = new_state
        if new_state != "disconnected":
            return
        for callback in list(self._on_disconnect):
            try:
                callback(self._disconnect_reason)
            except Exception:
                LOGGER.exception("disconnect callback failed")


__all__ = ["BeanTransport", "TransportConfig", "DisconnectCallback"]
