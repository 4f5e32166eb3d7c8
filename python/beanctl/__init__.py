"""
beanctl - interactive shell for managed beans.

Attach to a bean agent, list its beans, read and write attributes and
invoke operations.  Use ``beanctl`` or ``python -m beanctl``; run
``beanctl --help`` for connection options.

    coercion.py    -> literal to scalar conversion
    names.py       -> object names (remote handles)
    transport.py   -> JSON-over-TCP agent client
    catalog.py     -> display name resolution
    interpreter.py -> command dispatch
    session.py     -> connection lifetime, liveness probe, shutdown
    completion.py  -> completion data and prompt_toolkit adapter
    agent.py       -> server side for services exposing beans
"""

from __future__ import annotations

from .agent import BeanAgent  # noqa: F401
from .catalog import BeanCatalog  # noqa: F401
from .cli import main  # noqa: F401
from .coercion import ScalarKind, TypedValue, coerce, format_value  # noqa: F401
from .interpreter import Command, CommandInterpreter, parse_command  # noqa: F401
from .model import AttributeInfo, BeanInfo, OperationInfo, ParameterInfo, RemoteValue  # noqa: F401
from .names import ObjectName  # noqa: F401
from .session import BeanSession  # noqa: F401
from .transport import BeanTransport, TransportConfig  # noqa: F401

__all__ = [
    "main",
    "BeanAgent",
    "BeanCatalog",
    "BeanSession",
    "BeanTransport",
    "TransportConfig",
    "Command",
    "CommandInterpreter",
    "parse_command",
    "ObjectName",
    "AttributeInfo",
    "ParameterInfo",
    "OperationInfo",
    "BeanInfo",
    "RemoteValue",
    "ScalarKind",
    "TypedValue",
    "coerce",
    "format_value",
]

__version__ = "0.1.0"
