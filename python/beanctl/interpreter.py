"""Command interpreter: turns one tokenised line into remote calls.

Dispatch order (operators rely on it, keep it stable):

    ?                         list bean names
    exit | quit               leave the shell
    help                      usage text
    <bean> set <attr> <value> write an attribute (coerced to its live type)
    <bean> get <attr>         read an attribute
    <bean> ? | operations     list operation signatures
    <bean> attributes         list attribute values
    <bean> <op> ?             show the signatures of <op>
    <bean> <op> [args...]     invoke <op>, overload chosen by argument count

Every command returns an exit code; only connection loss and exit requests
escape as exceptions (the session owns those paths).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from .catalog import BeanCatalog
from .coercion import TypedValue, coerce, format_value
from .errors import (
    EXIT_INVALID,
    EXIT_OK,
    EXIT_UNEXPECTED,
    AttributeNotFoundError,
    BeanctlError,
    CoercionError,
    ConnectionLostError,
    ExitRequested,
    InvalidAttributeValueError,
    MissingArgumentsError,
    OperationNotFoundError,
    ResolutionError,
    UnsupportedTypeError,
)
from .names import ObjectName
from .output import emit_error, emit_lines, emit_result
from .transport import BeanTransport

LOGGER = logging.getLogger("beanctl.interpreter")

LIST_TOKEN = "?"
EXIT_TOKENS = ("exit", "quit")
HELP_TOKEN = "help"
SET_TOKEN = "set"
GET_TOKEN = "get"
OPERATIONS_TOKENS = ("?", "operations")
ATTRIBUTES_TOKEN = "attributes"
LINE_BREAK_MARKER = "<br>"

USAGE = (
    "type '?' to get the list of the beans",
    "Use tab to autocomplete your commands",
    "List operations:   <bean> operations   (or <bean> ?)",
    "List attributes:   <bean> attributes",
    "Set an attribute:  <bean> set <attribute> <value>",
    "Get an attribute:  <bean> get <attribute>",
    "Call an operation: <bean> <operation> [arguments...]",
    "Show a signature:  <bean> <operation> ?",
    "Leave:             exit | quit",
)


class Action(enum.Enum):
    LIST = "list"
    EXIT = "exit"
    HELP = "help"
    MISSING = "missing"
    GET = "get"
    SET = "set"
    LIST_ATTRIBUTES = "attributes"
    LIST_OPERATIONS = "operations"
    INVOKE = "invoke"


@dataclass(frozen=True)
class Command:
    """One parsed input line."""

    target: str
    action: Action
    verb: str = ""
    args: Tuple[str, ...] = ()
    tokens: Tuple[str, ...] = ()


def parse_command(tokens: Sequence[str]) -> Command:
    tokens = tuple(tokens)
    head = tokens[0] if tokens else ""
    if head == LIST_TOKEN:
        return Command(head, Action.LIST, tokens=tokens)
    if head in EXIT_TOKENS:
        return Command(head, Action.EXIT, tokens=tokens)
    if head == HELP_TOKEN:
        return Command(head, Action.HELP, tokens=tokens)
    if len(tokens) < 2:
        return Command(head, Action.MISSING, tokens=tokens)
    verb, args = tokens[1], tokens[2:]
    if verb == SET_TOKEN:
        action = Action.SET
    elif verb == GET_TOKEN:
        action = Action.GET
    elif verb in OPERATIONS_TOKENS:
        action = Action.LIST_OPERATIONS
    elif verb == ATTRIBUTES_TOKEN:
        action = Action.LIST_ATTRIBUTES
    else:
        action = Action.INVOKE
    return Command(head, action, verb=verb, args=args, tokens=tokens)


class CommandInterpreter:
    def __init__(self, catalog: BeanCatalog, transport: BeanTransport) -> None:
        self.catalog = catalog
        self.transport = transport

    def execute(self, command: Union[Command, Sequence[str]]) -> int:
        """Run one command and return its exit code.

        Raises ExitRequested for exit/quit and lets ConnectionLostError
        through; every other failure is reported and mapped to a code.
        """
        if not isinstance(command, Command):
            command = parse_command(command)
        try:
            return self._dispatch(command)
        except (ConnectionLostError, ExitRequested):
            raise
        except BeanctlError as exc:
            if exc.exit_code == EXIT_INVALID or isinstance(exc, MissingArgumentsError):
                LOGGER.warning("%s: %s", list(command.tokens), exc)
                emit_error(str(exc))
            else:
                LOGGER.error("unexpected failure for %s", list(command.tokens), exc_info=True)
                emit_error(f"unexpected exception: {exc}")
            return exc.exit_code
        except Exception as exc:
            LOGGER.error("unexpected failure for %s", list(command.tokens), exc_info=True)
            emit_error(f"unexpected exception: {exc}")
            return EXIT_UNEXPECTED

    def _dispatch(self, command: Command) -> int:
        action = command.action
        if action is Action.LIST:
            emit_lines(self.catalog.list_beans())
            return EXIT_OK
        if action is Action.EXIT:
            raise ExitRequested(EXIT_OK)
        if action is Action.HELP:
            emit_lines(USAGE)
            return EXIT_OK
        if action is Action.MISSING:
            raise MissingArgumentsError("missing arguments")
        name = self.catalog.resolve(command.target)
        if name is None:
            raise ResolutionError(f"invalid target {command.target}")
        if action is Action.SET:
            return self._set_attribute(name, command)
        if action is Action.GET:
            return self._get_attribute(name, command)
        if action is Action.LIST_OPERATIONS:
            return self._list_operations(name)
        if action is Action.LIST_ATTRIBUTES:
            return self._list_attributes(name, command)
        return self._invoke(name, command)

    def _set_attribute(self, name: ObjectName, command: Command) -> int:
        if len(command.args) < 2:
            raise MissingArgumentsError("missing arguments for set operation")
        attribute, literal = command.args[0], command.args[1]
        try:
            current = self.transport.get_attribute(name, attribute)
        except AttributeNotFoundError as exc:
            raise AttributeNotFoundError(f"invalid attribute {attribute} for {command.target}. {exc}") from exc
        type_name = current.type_name
        if type_name is None:
            # null live value: fall back to the declared type
            declared = self.transport.get_bean_info(name).attribute(attribute)
            if declared is None:
                raise AttributeNotFoundError(f"invalid attribute {attribute} for {command.target}")
            type_name = declared.type
        try:
            value = coerce(literal, type_name)
        except CoercionError as exc:
            raise InvalidAttributeValueError(f"invalid value for {attribute}. {exc}") from exc
        try:
            self.transport.set_attribute(name, attribute, value)
        except InvalidAttributeValueError as exc:
            raise InvalidAttributeValueError(f"invalid value for {attribute}. {exc}") from exc
        except AttributeNotFoundError as exc:
            raise AttributeNotFoundError(f"invalid attribute {attribute} for {command.target}. {exc}") from exc
        emit_result(f"{attribute} has been set to {value}")
        LOGGER.info("successful call to %s", list(command.tokens))
        return EXIT_OK

    def _get_attribute(self, name: ObjectName, command: Command) -> int:
        if not command.args:
            raise MissingArgumentsError("missing arguments for get operation")
        attribute = command.args[0]
        try:
            value = self.transport.get_attribute(name, attribute)
        except AttributeNotFoundError as exc:
            raise AttributeNotFoundError(f"invalid attribute {attribute} for {command.target}. {exc}") from exc
        emit_result(str(value))
        LOGGER.info("successful call to %s", list(command.tokens))
        return EXIT_OK

    def _list_operations(self, name: ObjectName) -> int:
        info = self.transport.get_bean_info(name)
        emit_lines(op.signature() for op in info.operations)
        return EXIT_OK

    def _list_attributes(self, name: ObjectName, command: Command) -> int:
        info = self.transport.get_bean_info(name)
        code = EXIT_OK
        for attribute in info.attributes:
            try:
                value = self.transport.get_attribute(name, attribute.name)
            except ConnectionLostError:
                raise
            except BeanctlError as exc:
                LOGGER.warning("cannot read %s of %s: %s", attribute.name, command.target, exc)
                emit_error(f"cannot read attribute {attribute.name}: {exc}")
                code = EXIT_INVALID
                continue
            emit_result(f"{attribute.name}={value}")
        return code

    def _invoke(self, name: ObjectName, command: Command) -> int:
        info = self.transport.get_bean_info(name)
        if command.args and command.args[0] == LIST_TOKEN:
            emit_lines(op.signature() for op in info.operations_named(command.verb))
            return EXIT_OK
        operation = info.find_operation(command.verb, len(command.args))
        if operation is None:
            raise OperationNotFoundError(f"operation {command.verb} not found")
        params: List[TypedValue] = []
        failures = 0
        for param, literal in zip(operation.params, command.args):
            try:
                params.append(coerce(literal, param.type))
            except UnsupportedTypeError:
                emit_error(f"cannot call an operation using the non primitive data type {param.type}")
                failures += 1
            except CoercionError as exc:
                emit_error(f"invalid value for parameter {param.name}: {exc}")
                failures += 1
        if failures:
            LOGGER.warning("not invoking %s: %d invalid argument(s)", list(command.tokens), failures)
            return EXIT_INVALID
        result = self.transport.invoke(name, operation.name, params, operation.signature_types)
        if result is not None:
            emit_result(format_value(result).replace(LINE_BREAK_MARKER, "\n"))
        LOGGER.info("successful call to %s", list(command.tokens))
        return EXIT_OK


__all__ = ["Action", "Command", "CommandInterpreter", "USAGE", "parse_command"]
