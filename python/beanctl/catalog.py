"""Name resolution from operator friendly names to object names."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from .errors import CatalogUnavailableError, ConnectionLostError
from .names import ObjectName, domain_pattern
from .transport import BeanTransport

LOGGER = logging.getLogger("beanctl.catalog")

DISPLAY_KEY = "type"


def display_name(name: ObjectName) -> str:
    """Short name shown to the operator for *name*.

    Prefers the ``type`` key property, then whatever follows the last ``=``
    of the canonical name, then the canonical name itself.
    """
    short = name.key_property(DISPLAY_KEY)
    if short is None:
        canonical = name.canonical
        short = canonical.rpartition("=")[2] if "=" in canonical else ""
    return short or name.canonical


class BeanCatalog:
    """Lists the beans of one domain; nothing is cached between calls."""

    def __init__(self, transport: BeanTransport, domain: str = "*") -> None:
        self.transport = transport
        self.domain = domain or "*"

    @property
    def pattern(self) -> str:
        return domain_pattern(self.domain).canonical

    def list_beans(self) -> Dict[str, ObjectName]:
        """Display name -> object name, in ascending object name order.

        When two beans share a display name the later one wins.
        """
        try:
            names = self.transport.query_names(self.pattern)
        except ConnectionLostError as exc:
            raise CatalogUnavailableError(str(exc)) from exc
        beans: Dict[str, ObjectName] = {}
        for name in sorted(set(names)):
            short = display_name(name)
            if short in beans:
                LOGGER.debug("display name %s shadows %s with %s", short, beans[short], name)
            beans[short] = name
        return beans

    def resolve(self, short_name: str) -> Optional[ObjectName]:
        return self.list_beans().get(short_name)


__all__ = ["BeanCatalog", "display_name", "DISPLAY_KEY"]
