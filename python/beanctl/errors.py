"""Error taxonomy and process exit codes for beanctl."""

from __future__ import annotations

from typing import Optional

EXIT_OK = 0
EXIT_CONNECTION = 1
EXIT_CONFIGURATION = 2
EXIT_MISSING_ARGUMENTS = 3
EXIT_INVALID = 4
EXIT_UNEXPECTED = 5


class BeanctlError(Exception):
    """Base class for every error raised by beanctl components."""

    exit_code = EXIT_UNEXPECTED


class ConfigurationError(BeanctlError):
    """Connection settings could not be resolved."""

    exit_code = EXIT_CONFIGURATION


class ConnectionLostError(BeanctlError):
    """The agent connection is unusable; fatal to the session."""

    exit_code = EXIT_CONNECTION


class AgentConnectError(ConnectionLostError):
    """The initial connection to the agent failed."""


class CatalogUnavailableError(ConnectionLostError):
    """Listing beans failed because the transport is gone."""


class MissingArgumentsError(BeanctlError):
    """A command was given too few tokens."""

    exit_code = EXIT_MISSING_ARGUMENTS


class CommandSyntaxError(BeanctlError):
    """An input line could not be tokenised (e.g. unbalanced quotes)."""

    exit_code = EXIT_INVALID


class ResolutionError(BeanctlError):
    """A target, attribute or operation name could not be resolved."""

    exit_code = EXIT_INVALID


class CoercionError(BeanctlError):
    """A literal could not be converted to the requested scalar type."""

    exit_code = EXIT_INVALID


class TypeCoercionError(CoercionError):
    def __init__(self, literal: str, type_name: str, reason: str = "") -> None:
        message = f"cannot convert '{literal}' to {type_name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.literal = literal
        self.type_name = type_name


class UnsupportedTypeError(CoercionError):
    def __init__(self, type_name: str) -> None:
        super().__init__(f"unsupported non primitive data type {type_name}")
        self.type_name = type_name


class RemoteInvocationError(BeanctlError):
    """The agent reported a failure while serving a request."""

    reason = "remote_error"

    def __init__(self, message: str, *, reason: Optional[str] = None) -> None:
        super().__init__(message)
        if reason:
            self.reason = reason


class InstanceNotFoundError(RemoteInvocationError):
    reason = "instance_not_found"


class AttributeNotFoundError(RemoteInvocationError):
    reason = "attribute_not_found"
    exit_code = EXIT_INVALID


class InvalidAttributeValueError(RemoteInvocationError):
    reason = "invalid_value"
    exit_code = EXIT_INVALID


class OperationNotFoundError(RemoteInvocationError):
    reason = "operation_not_found"
    exit_code = EXIT_INVALID


class UnexpectedProtocolError(BeanctlError):
    """Malformed data or an introspection failure on the wire."""


class MalformedNameError(UnexpectedProtocolError):
    pass


class ExitRequested(Exception):
    """Raised by the interpreter when the operator asks to leave."""

    def __init__(self, code: int = EXIT_OK) -> None:
        super().__init__(code)
        self.code = code


_REMOTE_ERRORS = {
    cls.reason: cls
    for cls in (
        InstanceNotFoundError,
        AttributeNotFoundError,
        InvalidAttributeValueError,
        OperationNotFoundError,
    )
}


def remote_error(reason: Optional[str], message: Optional[str] = None) -> BeanctlError:
    """Build the exception matching an agent error reason."""
    text = message or reason or "remote error"
    if reason == "malformed_name":
        return MalformedNameError(text)
    cls = _REMOTE_ERRORS.get(reason or "")
    if cls is not None:
        return cls(text)
    return RemoteInvocationError(text, reason=reason)


__all__ = [
    "EXIT_OK",
    "EXIT_CONNECTION",
    "EXIT_CONFIGURATION",
    "EXIT_MISSING_ARGUMENTS",
    "EXIT_INVALID",
    "EXIT_UNEXPECTED",
    "BeanctlError",
    "ConfigurationError",
    "ConnectionLostError",
    "AgentConnectError",
    "CatalogUnavailableError",
    "MissingArgumentsError",
    "CommandSyntaxError",
    "ResolutionError",
    "CoercionError",
    "TypeCoercionError",
    "UnsupportedTypeError",
    "RemoteInvocationError",
    "InstanceNotFoundError",
    "AttributeNotFoundError",
    "InvalidAttributeValueError",
    "OperationNotFoundError",
    "UnexpectedProtocolError",
    "MalformedNameError",
    "ExitRequested",
    "remote_error",
]
