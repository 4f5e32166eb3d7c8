"""beanctl CLI entry point."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from .config import ENV_KEYS, PROPERTIES_ENV, load_settings
from .errors import EXIT_CONFIGURATION, EXIT_CONNECTION, EXIT_OK, ConfigurationError, ConnectionLostError
from .history import HistoryStore
from .repl import BeanREPL
from .session import BeanSession

LOG = logging.getLogger("beanctl.cli")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(level: str, log_file: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.ERROR),
        format=LOG_FORMAT,
        filename=log_file,
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beanctl",
        description="Inspect and operate the managed beans of a running service.",
        epilog=f"Settings may also come from a properties file (${PROPERTIES_ENV}) "
        f"or the environment ({', '.join(ENV_KEYS.values())}).",
    )
    parser.add_argument("--host", help="Agent host (default localhost)")
    parser.add_argument("--port", help="Agent port")
    parser.add_argument("--domain", help="Only show beans of this domain (wildcards allowed)")
    parser.add_argument("--properties", help="Properties file with host/port/domain/history")
    parser.add_argument("--history", help="Path to the command history file")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("BEANCTL_LOG", "ERROR"),
        help="Logging level (default ERROR)",
    )
    parser.add_argument("--log-file", help="Write log records to this file instead of stderr")
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="Run one command and exit, e.g. 'Memory get HeapUsage'; interactive when omitted",
    )
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level, args.log_file)
    try:
        settings = load_settings(
            {"host": args.host, "port": args.port, "domain": args.domain, "history": args.history},
            properties=args.properties,
        )
    except ConfigurationError as exc:
        LOG.critical("configuration error: %s", exc)
        print(exc, file=sys.stderr)
        return EXIT_CONFIGURATION
    try:
        session = BeanSession.start(settings)
    except ConnectionLostError as exc:
        LOG.error("cannot connect to %s: %s", settings.address, exc)
        print(f"Cannot connect to {settings.address}! \n{exc}", file=sys.stderr)
        return EXIT_CONNECTION
    try:
        return _run(session, args.command, HistoryStore(settings.history))
    except SystemExit as exc:
        return int(exc.code or 0)


def _run(session: BeanSession, command: List[str], history: HistoryStore) -> int:
    try:
        if command:
            code = session.execute(command)
            session.stop(code)
            return code
        return BeanREPL(session, history_store=history).run()
    except KeyboardInterrupt:
        # Ctrl-C, or the main thread interrupted after a disconnect
        session.stop(EXIT_OK)
        return session.exit_code or EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
