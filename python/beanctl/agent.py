"""
Bean agent: serves registered Python objects to beanctl clients.

A service embeds a :class:`BeanAgent`, registers the objects it wants to
expose together with their declared attributes and operations, and runs
``serve_forever()`` (usually on a daemon thread).  Each client connection
speaks the newline delimited JSON protocol implemented by
:class:`beanctl.transport.BeanTransport`.

Example::

    agent = BeanAgent(("127.0.0.1", 9875))
    agent.register(
        "app:type=Cache,name=users",
        cache,
        attributes=[AttributeInfo("Size", "int", writable=False),
                    AttributeInfo("MaxSize", "int")],
        operations=[OperationInfo("clear")],
    )
    threading.Thread(target=agent.serve_forever, daemon=True).start()
"""

from __future__ import annotations

import json
import logging
import socketserver
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .coercion import ScalarKind, is_supported, scalar_kind
from .errors import MalformedNameError
from .model import AttributeInfo, BeanInfo, OperationInfo
from .names import ObjectName

LOGGER = logging.getLogger("beanctl.agent")

DEFAULT_ADDRESS = ("127.0.0.1", 9875)

_INT_BITS = {ScalarKind.BYTE: 8, ScalarKind.SHORT: 16, ScalarKind.INT: 32, ScalarKind.LONG: 64}


class AgentError(Exception):
    """Request failure reported to the client as ``{"status": "error"}``."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


@dataclass
class _Registration:
    name: ObjectName
    bean: Any
    info: BeanInfo


class _AgentHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        peer = self.client_address
        LOGGER.debug("client connected: %s", peer)
        while True:
            line = self.rfile.readline()
            if not line:
                break
            if not line.strip():
                continue
            try:
                request = json.loads(line.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                self._send({"status": "error", "error": "invalid_json", "message": "invalid JSON request"})
                continue
            if not isinstance(request, dict):
                self._send({"status": "error", "error": "invalid_json", "message": "request must be an object"})
                continue
            self._send(self.server.handle_payload(request))
        LOGGER.debug("client disconnected: %s", peer)

    def _send(self, payload: Dict[str, Any]) -> None:
        data = json.dumps(payload, separators=(",", ":")).encode("utf-8") + b"\n"
        try:
            self.wfile.write(data)
            self.wfile.flush()
        except OSError as exc:
            LOGGER.debug("reply to %s failed: %s", self.client_address, exc)


class BeanAgent(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, server_address: Tuple[str, int] = DEFAULT_ADDRESS) -> None:
        super().__init__(server_address, _AgentHandler)
        self._beans: Dict[ObjectName, _Registration] = {}
        self._lock = threading.Lock()

    @property
    def port(self) -> int:
        return self.server_address[1]

    #
    # Registry
    #
    def register(
        self,
        name: Union[str, ObjectName],
        bean: Any,
        *,
        attributes: Iterable[AttributeInfo] = (),
        operations: Iterable[OperationInfo] = (),
    ) -> ObjectName:
        object_name = ObjectName.parse(name) if isinstance(name, str) else name
        if object_name.is_pattern:
            raise ValueError(f"cannot register a pattern: {object_name}")
        info = BeanInfo(tuple(attributes), tuple(operations))
        with self._lock:
            if object_name in self._beans:
                raise ValueError(f"{object_name} is already registered")
            self._beans[object_name] = _Registration(object_name, bean, info)
        LOGGER.info("registered %s", object_name)
        return object_name

    def unregister(self, name: Union[str, ObjectName]) -> None:
        object_name = ObjectName.parse(name) if isinstance(name, str) else name
        with self._lock:
            if self._beans.pop(object_name, None) is None:
                raise KeyError(str(object_name))
        LOGGER.info("unregistered %s", object_name)

    def names(self) -> List[ObjectName]:
        with self._lock:
            return sorted(self._beans)

    #
    # Request handling
    #
    def handle_payload(self, request: Dict[str, Any]) -> Dict[str, Any]:
        cmd = str(request.get("cmd", "")).lower()
        seq = request.get("seq")
        try:
            result = self._dispatch(cmd, request)
            response: Dict[str, Any] = {"status": "ok"}
            response.update(result)
        except AgentError as exc:
            LOGGER.debug("%s failed: %s %s", cmd, exc.reason, exc.message)
            response = {"status": "error", "error": exc.reason, "message": exc.message}
        except MalformedNameError as exc:
            response = {"status": "error", "error": "malformed_name", "message": str(exc)}
        if seq is not None:
            response["seq"] = seq
        return response

    def _dispatch(self, cmd: str, request: Dict[str, Any]) -> Dict[str, Any]:
        if cmd == "count":
            with self._lock:
                return {"count": len(self._beans)}
        if cmd == "query":
            pattern = ObjectName.parse(str(request.get("pattern") or "*:*"))
            return {"names": [str(name) for name in self.names() if pattern.matches(name)]}
        if cmd == "info":
            return {"info": self._lookup(request).info.to_wire()}
        if cmd == "get":
            return self._get(self._lookup(request), str(request.get("attribute", "")))
        if cmd == "set":
            self._set(self._lookup(request), str(request.get("attribute", "")), request.get("value"))
            return {}
        if cmd == "invoke":
            return self._invoke(
                self._lookup(request),
                str(request.get("operation", "")),
                request.get("args") or [],
                request.get("signature") or [],
            )
        raise AgentError("unknown_cmd", f"unknown command '{cmd}'")

    def _lookup(self, request: Dict[str, Any]) -> _Registration:
        name = ObjectName.parse(str(request.get("name", "")))
        with self._lock:
            registration = self._beans.get(name)
        if registration is None:
            raise AgentError("instance_not_found", str(name))
        return registration

    def _attribute(self, registration: _Registration, attribute: str) -> AttributeInfo:
        info = registration.info.attribute(attribute)
        if info is None:
            raise AgentError("attribute_not_found", f"no attribute {attribute} in {registration.name}")
        return info

    def _get(self, registration: _Registration, attribute: str) -> Dict[str, Any]:
        info = self._attribute(registration, attribute)
        try:
            value = getattr(registration.bean, info.name)
        except Exception as exc:
            raise AgentError("mbean_exception", f"{type(exc).__name__}: {exc}") from exc
        return {"value": _wire_value(value), "type": _runtime_type(value, info.type)}

    def _set(self, registration: _Registration, attribute: str, value: Any) -> None:
        info = self._attribute(registration, attribute)
        if not info.writable:
            raise AgentError("attribute_not_found", f"attribute {attribute} of {registration.name} is read-only")
        _check_value(value, info.type)
        try:
            setattr(registration.bean, info.name, value)
        except (TypeError, ValueError) as exc:
            raise AgentError("invalid_value", str(exc)) from exc
        except Exception as exc:
            raise AgentError("mbean_exception", f"{type(exc).__name__}: {exc}") from exc

    def _invoke(
        self,
        registration: _Registration,
        operation: str,
        args: Sequence[Any],
        signature: Sequence[str],
    ) -> Dict[str, Any]:
        target: Optional[OperationInfo] = None
        for candidate in registration.info.operations_named(operation):
            if candidate.signature_types == list(signature):
                target = candidate
                break
        if target is None or len(args) != target.arity:
            raise AgentError(
                "operation_not_found",
                f"no operation {operation}({', '.join(signature)}) in {registration.name}",
            )
        for value, param in zip(args, target.params):
            _check_value(value, param.type)
        method = getattr(registration.bean, target.name, None)
        if not callable(method):
            raise AgentError("reflection", f"{registration.name} has no callable {target.name}")
        try:
            result = method(*args)
        except Exception as exc:
            LOGGER.debug("operation %s on %s raised", operation, registration.name, exc_info=True)
            raise AgentError("mbean_exception", f"{type(exc).__name__}: {exc}") from exc
        return {"value": _wire_value(result)}


def _check_value(value: Any, type_name: str) -> None:
    """Reject wire values that do not fit a declared scalar type."""
    if not is_supported(type_name):
        return
    kind = scalar_kind(type_name)
    ok: bool
    if kind in _INT_BITS:
        bits = _INT_BITS[kind]
        ok = isinstance(value, int) and not isinstance(value, bool) and -(2 ** (bits - 1)) <= value < 2 ** (bits - 1)
    elif kind in (ScalarKind.DOUBLE, ScalarKind.FLOAT):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif kind is ScalarKind.BOOLEAN:
        ok = isinstance(value, bool)
    elif kind is ScalarKind.CHAR:
        ok = isinstance(value, str) and len(value) == 1
    else:
        ok = isinstance(value, str)
    if not ok:
        raise AgentError("invalid_value", f"{value!r} is not a valid {type_name}")


def _runtime_type(value: Any, declared: str) -> Optional[str]:
    """Type name of a live attribute value; None for a null value.

    Scalar declarations are reported as declared.  Otherwise the type is
    taken from the Python value, so an attribute declared as a general
    object that holds a scalar can still be written.
    """
    if value is None:
        return None
    if is_supported(declared):
        return declared
    if isinstance(value, bool):
        return "java.lang.Boolean"
    if isinstance(value, int):
        return "java.lang.Integer" if -(2**31) <= value < 2**31 else "java.lang.Long"
    if isinstance(value, float):
        return "java.lang.Double"
    if isinstance(value, str):
        return "java.lang.String"
    return declared


def _wire_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_wire_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _wire_value(item) for key, item in value.items()}
    return str(value)


__all__ = ["BeanAgent", "AgentError", "DEFAULT_ADDRESS"]
