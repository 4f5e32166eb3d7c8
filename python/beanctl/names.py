"""Object names: the remote handle identifying one managed bean.

A name has the form ``domain:key=value[,key=value...]``.  The canonical form
lists key properties sorted by key; names sort by domain first and then by that
canonical key list string.  Query patterns may use ``*``/``?`` in the domain and end the
key list with ``*``.
"""

from __future__ import annotations

import fnmatch
import functools
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .errors import MalformedNameError


@functools.total_ordering
@dataclass(frozen=True)
class ObjectName:
    domain: str
    properties: Tuple[Tuple[str, str], ...] = ()
    property_pattern: bool = False

    @classmethod
    def parse(cls, text: str) -> "ObjectName":
        if not isinstance(text, str):
            raise MalformedNameError(f"object name must be a string, got {type(text).__name__}")
        domain, sep, rest = text.partition(":")
        if not sep:
            raise MalformedNameError(f"missing domain separator in '{text}'")
        if not rest:
            raise MalformedNameError(f"empty key property list in '{text}'")
        props: Dict[str, str] = {}
        pattern = False
        for part in rest.split(","):
            if part == "*":
                if pattern:
                    raise MalformedNameError(f"repeated wildcard in '{text}'")
                pattern = True
                continue
            key, eq, value = part.partition("=")
            if not eq or not key or not value:
                raise MalformedNameError(f"invalid key property '{part}' in '{text}'")
            if key in props:
                raise MalformedNameError(f"duplicate key '{key}' in '{text}'")
            props[key] = value
        return cls(domain, tuple(sorted(props.items())), pattern)

    @property
    def key_list(self) -> str:
        parts = [f"{key}={value}" for key, value in self.properties]
        if self.property_pattern:
            parts.append("*")
        return ",".join(parts)

    @property
    def canonical(self) -> str:
        return f"{self.domain}:{self.key_list}"

    def __lt__(self, other: "ObjectName") -> bool:
        if not isinstance(other, ObjectName):
            return NotImplemented
        return (self.domain, self.key_list) < (other.domain, other.key_list)

    @property
    def is_pattern(self) -> bool:
        return self.property_pattern or any(ch in self.domain for ch in "*?")

    def key_property(self, key: str) -> Optional[str]:
        for name, value in self.properties:
            if name == key:
                return value
        return None

    def matches(self, name: "ObjectName") -> bool:
        """True when *name* is selected by this name used as a pattern."""
        if not fnmatch.fnmatchcase(name.domain, self.domain):
            return False
        if self.property_pattern:
            wanted = dict(name.properties)
            return all(wanted.get(key) == value for key, value in self.properties)
        return self.properties == name.properties

    def __str__(self) -> str:
        return self.canonical


def domain_pattern(domain: str) -> ObjectName:
    """Pattern selecting every bean of *domain* (wildcards allowed)."""
    return ObjectName.parse(f"{domain or '*'}:*")


__all__ = ["ObjectName", "domain_pattern"]
