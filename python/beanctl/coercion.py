"""Conversion of operator supplied literals into typed scalar values.

Remote metadata reports declared types either by primitive name (``int``)
or by boxed class name (``java.lang.Integer``); both spellings map to the
same :class:`ScalarKind`.  Only the closed set of kinds below is supported,
anything else is rejected with :class:`UnsupportedTypeError`.
"""

from __future__ import annotations

import enum
import math
import re
import struct
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import TypeCoercionError, UnsupportedTypeError

TYPE_NAMESPACE = "java.lang."


class ScalarKind(enum.Enum):
    INT = "int"
    LONG = "long"
    SHORT = "short"
    BYTE = "byte"
    DOUBLE = "double"
    FLOAT = "float"
    BOOLEAN = "boolean"
    STRING = "string"
    CHAR = "char"


_TYPE_KINDS: Dict[str, ScalarKind] = {
    "int": ScalarKind.INT,
    "java.lang.Integer": ScalarKind.INT,
    "long": ScalarKind.LONG,
    "java.lang.Long": ScalarKind.LONG,
    "short": ScalarKind.SHORT,
    "java.lang.Short": ScalarKind.SHORT,
    "byte": ScalarKind.BYTE,
    "java.lang.Byte": ScalarKind.BYTE,
    "double": ScalarKind.DOUBLE,
    "java.lang.Double": ScalarKind.DOUBLE,
    "float": ScalarKind.FLOAT,
    "java.lang.Float": ScalarKind.FLOAT,
    "boolean": ScalarKind.BOOLEAN,
    "java.lang.Boolean": ScalarKind.BOOLEAN,
    "string": ScalarKind.STRING,
    "java.lang.String": ScalarKind.STRING,
    "char": ScalarKind.CHAR,
    "java.lang.Character": ScalarKind.CHAR,
}

# (min, max) for the fixed width integer kinds
_INT_RANGES = {
    ScalarKind.BYTE: (-(2**7), 2**7 - 1),
    ScalarKind.SHORT: (-(2**15), 2**15 - 1),
    ScalarKind.INT: (-(2**31), 2**31 - 1),
    ScalarKind.LONG: (-(2**63), 2**63 - 1),
}

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:NaN|Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?[fFdD]?)"
)


@dataclass(frozen=True)
class TypedValue:
    """A coerced literal together with the type it was coerced to."""

    kind: ScalarKind
    value: Any
    type_name: str

    def __str__(self) -> str:
        return format_value(self.value)


def scalar_kind(type_name: str) -> ScalarKind:
    """Return the kind for a declared type name or raise UnsupportedTypeError."""
    kind = _TYPE_KINDS.get(type_name)
    if kind is None:
        raise UnsupportedTypeError(type_name)
    return kind


def is_supported(type_name: Optional[str]) -> bool:
    return type_name in _TYPE_KINDS


def coerce(literal: str, declared_type: str) -> TypedValue:
    """Convert *literal* to the scalar type named by *declared_type*."""
    kind = scalar_kind(declared_type)
    if kind in _INT_RANGES:
        value: Any = _parse_integer(literal, declared_type, kind)
    elif kind is ScalarKind.DOUBLE:
        value = _parse_float(literal, declared_type)
    elif kind is ScalarKind.FLOAT:
        value = _to_single(_parse_float(literal, declared_type), literal, declared_type)
    elif kind is ScalarKind.BOOLEAN:
        # anything but "true" is false, no error on garbage
        value = literal.lower() == "true"
    elif kind is ScalarKind.CHAR:
        if not literal:
            raise TypeCoercionError(literal, declared_type, "empty literal")
        value = literal[0]
    else:
        value = literal
    return TypedValue(kind, value, declared_type)


def _parse_integer(literal: str, type_name: str, kind: ScalarKind) -> int:
    if not _INTEGER_RE.fullmatch(literal):
        raise TypeCoercionError(literal, type_name, "not an integer")
    value = int(literal, 10)
    low, high = _INT_RANGES[kind]
    if not low <= value <= high:
        raise TypeCoercionError(literal, type_name, f"out of range [{low}, {high}]")
    return value


def _parse_float(literal: str, type_name: str) -> float:
    text = literal.strip()
    if not _FLOAT_RE.fullmatch(text):
        raise TypeCoercionError(literal, type_name, "not a number")
    if text[-1] in "fFdD":
        text = text[:-1]
    value = float(text)
    if math.isinf(value) and "Infinity" not in text:
        raise TypeCoercionError(literal, type_name, "out of range")
    return value


def _to_single(value: float, literal: str, type_name: str) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError as exc:
        raise TypeCoercionError(literal, type_name, "out of single precision range") from exc


def format_value(value: Any) -> str:
    """Render a remote value the way the managed process prints it."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return repr(value)
    return str(value)


def short_type_name(type_name: Optional[str]) -> str:
    """Strip the common namespace prefix from a type name for display."""
    if not type_name:
        return ""
    if type_name.startswith(TYPE_NAMESPACE):
        return type_name[len(TYPE_NAMESPACE):]
    return type_name


__all__ = [
    "ScalarKind",
    "TypedValue",
    "coerce",
    "format_value",
    "is_supported",
    "scalar_kind",
    "short_type_name",
]
