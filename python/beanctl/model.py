"""Bean metadata descriptors and their JSON wire form."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .coercion import format_value, short_type_name
from .errors import UnexpectedProtocolError


@dataclass(frozen=True)
class AttributeInfo:
    name: str
    type: str
    writable: bool = True
    description: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "writable": self.writable,
            "description": self.description,
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "AttributeInfo":
        return cls(
            name=_required(payload, "name"),
            type=_required(payload, "type"),
            writable=bool(payload.get("writable", True)),
            description=str(payload.get("description") or ""),
        )


@dataclass(frozen=True)
class ParameterInfo:
    name: str
    type: str

    def to_wire(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type}

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "ParameterInfo":
        return cls(name=_required(payload, "name"), type=_required(payload, "type"))


@dataclass(frozen=True)
class OperationInfo:
    name: str
    return_type: str = "void"
    params: Tuple[ParameterInfo, ...] = ()
    description: str = ""

    @property
    def arity(self) -> int:
        return len(self.params)

    @property
    def signature_types(self) -> List[str]:
        return [param.type for param in self.params]

    def signature(self) -> str:
        """Human readable signature, e.g. ``String echo(String text, int times)``."""
        args = ", ".join(f"{short_type_name(p.type)} {p.name}" for p in self.params)
        return f"{short_type_name(self.return_type)} {self.name}({args})"

    def to_wire(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "return_type": self.return_type,
            "params": [param.to_wire() for param in self.params],
            "description": self.description,
        }

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "OperationInfo":
        params = payload.get("params") or []
        if not isinstance(params, list):
            raise UnexpectedProtocolError(f"operation params must be a list: {params!r}")
        return cls(
            name=_required(payload, "name"),
            return_type=str(payload.get("return_type") or "void"),
            params=tuple(ParameterInfo.from_wire(entry) for entry in params),
            description=str(payload.get("description") or ""),
        )


@dataclass(frozen=True)
class BeanInfo:
    attributes: Tuple[AttributeInfo, ...] = ()
    operations: Tuple[OperationInfo, ...] = ()

    def attribute(self, name: str) -> Optional[AttributeInfo]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    def operations_named(self, name: str) -> List[OperationInfo]:
        return [op for op in self.operations if op.name == name]

    def find_operation(self, name: str, arity: int) -> Optional[OperationInfo]:
        """First operation in metadata order matching *name* and *arity*."""
        for op in self.operations:
            if op.name == name and op.arity == arity:
                return op
        return None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "attributes": [attr.to_wire() for attr in self.attributes],
            "operations": [op.to_wire() for op in self.operations],
        }

    @classmethod
    def from_wire(cls, payload: Any) -> "BeanInfo":
        if not isinstance(payload, Mapping):
            raise UnexpectedProtocolError(f"bean info must be an object: {payload!r}")
        try:
            return cls(
                attributes=tuple(AttributeInfo.from_wire(a) for a in payload.get("attributes") or []),
                operations=tuple(OperationInfo.from_wire(o) for o in payload.get("operations") or []),
            )
        except (TypeError, AttributeError) as exc:
            raise UnexpectedProtocolError(f"malformed bean info: {exc}") from exc


@dataclass(frozen=True)
class RemoteValue:
    """Attribute value together with the runtime type reported by the agent."""

    value: Any
    type_name: Optional[str] = field(default=None)

    def __str__(self) -> str:
        return format_value(self.value)


def _required(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise UnexpectedProtocolError(f"missing '{key}' in {dict(payload)!r}")
    return value


__all__ = ["AttributeInfo", "ParameterInfo", "OperationInfo", "BeanInfo", "RemoteValue"]
