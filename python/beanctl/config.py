"""Connection settings for beanctl.

Each setting is taken from, in ascending precedence: the built-in default,
the properties file, the environment, an explicit command line flag.

The properties file is ``beanctl.properties`` in the working directory
unless ``BEANCTL_PROPERTIES`` or ``--properties`` names another one.  It
uses the usual ``.properties`` syntax::

    # agent address
    host = app01.example.org
    port: 9875
    domain=com.example.*
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from .errors import ConfigurationError

LOGGER = logging.getLogger("beanctl.config")

DEFAULT_HOST = "localhost"
DEFAULT_DOMAIN = "*"
DEFAULT_PROPERTIES_FILE = "beanctl.properties"

PROPERTIES_ENV = "BEANCTL_PROPERTIES"
ENV_KEYS = {
    "host": "BEANCTL_HOST",
    "port": "BEANCTL_PORT",
    "domain": "BEANCTL_DOMAIN",
    "history": "BEANCTL_HISTORY",
}

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


@dataclass
class ConnectionSettings:
    host: str = DEFAULT_HOST
    port: Optional[int] = None
    domain: str = DEFAULT_DOMAIN
    history: Optional[Path] = None
    properties_file: Optional[Path] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def parse_properties(lines: Iterable[str]) -> Dict[str, str]:
    """Parse ``.properties`` text into a dict (later keys win)."""
    result: Dict[str, str] = {}
    pending = ""
    for raw in lines:
        line = raw.rstrip("\r\n")
        if not pending:
            line = line.lstrip()
            if not line or line[0] in "#!":
                continue
        else:
            line = line.lstrip()
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending += line[:-1]
            continue
        logical, pending = pending + line, ""
        key, value = _split_entry(logical)
        result[key] = value
    if pending:
        key, value = _split_entry(pending)
        result[key] = value
    return result


def _split_entry(line: str) -> tuple:
    key_chars = []
    idx = 0
    while idx < len(line):
        ch = line[idx]
        if ch == "\\" and idx + 1 < len(line):
            key_chars.append(line[idx : idx + 2])
            idx += 2
            continue
        if ch in "=:" or ch.isspace():
            break
        key_chars.append(ch)
        idx += 1
    rest = line[idx:].lstrip()
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip()
    return _unescape("".join(key_chars)), _unescape(rest)


def _unescape(text: str) -> str:
    out = []
    idx = 0
    while idx < len(text):
        ch = text[idx]
        if ch != "\\" or idx + 1 >= len(text):
            out.append(ch)
            idx += 1
            continue
        nxt = text[idx + 1]
        if nxt == "u" and idx + 6 <= len(text):
            try:
                out.append(chr(int(text[idx + 2 : idx + 6], 16)))
                idx += 6
                continue
            except ValueError:
                pass
        out.append(_ESCAPES.get(nxt, nxt))
        idx += 2
    return "".join(out)


def load_properties(path: Path) -> Dict[str, str]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return parse_properties(handle)
    except OSError as exc:
        raise ConfigurationError(f"unable to read {path}: {exc}") from exc


def _properties_path(explicit: Optional[str], environ: Mapping[str, str], cwd: Path) -> tuple:
    if explicit:
        return Path(explicit).expanduser(), True
    if environ.get(PROPERTIES_ENV):
        return Path(environ[PROPERTIES_ENV]).expanduser(), True
    return cwd / DEFAULT_PROPERTIES_FILE, False


def load_settings(
    overrides: Optional[Mapping[str, Optional[str]]] = None,
    *,
    properties: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
) -> ConnectionSettings:
    """Resolve connection settings; raise ConfigurationError when unusable.

    *overrides* holds the command line values (``None`` meaning unset).
    """
    environ = os.environ if environ is None else environ
    overrides = overrides or {}
    cwd = cwd or Path.cwd()

    values: Dict[str, Optional[str]] = {"host": DEFAULT_HOST, "port": None, "domain": DEFAULT_DOMAIN, "history": None}

    path, required = _properties_path(properties, environ, cwd)
    if path.is_file():
        from_file = load_properties(path)
        LOGGER.debug("loaded %d properties from %s", len(from_file), path)
        for key in values:
            if from_file.get(key):
                values[key] = from_file[key]
    elif required:
        raise ConfigurationError(f"unable to find {path}")
    else:
        path = None

    for key, env_name in ENV_KEYS.items():
        if environ.get(env_name):
            values[key] = environ[env_name]
    for key in values:
        if overrides.get(key) not in (None, ""):
            values[key] = str(overrides[key])

    if not values["port"]:
        raise ConfigurationError("property port not found")
    try:
        port = int(str(values["port"]).strip())
    except ValueError as exc:
        raise ConfigurationError(f"invalid port '{values['port']}'") from exc
    if not 0 < port < 65536:
        raise ConfigurationError(f"port {port} out of range")

    history = values["history"]
    return ConnectionSettings(
        host=str(values["host"]),
        port=port,
        domain=str(values["domain"]),
        history=Path(history).expanduser() if history else None,
        properties_file=path,
    )


__all__ = [
    "ConnectionSettings",
    "DEFAULT_PROPERTIES_FILE",
    "ENV_KEYS",
    "PROPERTIES_ENV",
    "load_properties",
    "load_settings",
    "parse_properties",
]
