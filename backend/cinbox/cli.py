#!/usr/bin/env python3
"""
cinbox CLI - Thin entrypoint for running an inbox.

Usage:
======
    cinbox /mnt/inbox
    cinbox /mnt/inbox --forever -v
    cinbox /mnt/inbox -p /var/state/inbox -c /etc/cinbox/inbox.ini
    cinbox /mnt/inbox --init
    cinbox /mnt/inbox --forever --serve 0.0.0.0:8085

Design Principles:
==================
- CLI is a dispatcher only
- No processing logic inside CLI
- Surface errors verbatim from the inbox layer
- Exit non-zero on failure

Exit Codes:
===========
- 0: Success
- 10: Argument error
- 11: Init error (config, processing folders, temp folder)
- 12: Runtime error
- 20: One or more items ended in ERROR
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional, Tuple

from . import __version__
from .inbox import Inbox

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_ARGUMENT_ERROR = 10
EXIT_INIT_ERROR = 11
EXIT_RUNTIME_ERROR = 12
EXIT_ITEM_ERRORS = 20

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def _setup_logging(args: argparse.Namespace) -> None:
    """
    Root handler on stderr. WARNING by default, but the inbox loop always
    reports at INFO so operators can follow progress.
    """
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if args.log:
        handlers.append(logging.FileHandler(args.log, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    logging.getLogger("cinbox.inbox").setLevel(min(level, logging.INFO))


def _parse_address(value: str) -> Tuple[str, int]:
    """
    Parse ``HOST:PORT``.

    Raises:
        argparse.ArgumentTypeError: On missing host, port or a non-numeric port
    """
    host, sep, port = value.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise argparse.ArgumentTypeError(f"Expected HOST:PORT, got '{value}'")
    return host, int(port)


def _start_monitor(inbox: Inbox, host: str, port: int) -> threading.Thread:
    """Serve the monitoring API in a daemon thread."""
    import uvicorn
    from .monitoring import create_app

    config = uvicorn.Config(create_app(inbox), host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="cinbox-monitor", daemon=True)
    thread.start()
    logger.info(f"Monitoring API listening on http://{host}:{port}/monitor")
    return thread


def _install_signal_handlers(inbox: Inbox) -> dict:
    """SIGINT/SIGTERM stop the loop at the next item. Returns the previous handlers."""
    def _handle(signum, frame):
        logger.warning(f"Received signal {signum}. Stopping after the current item.")
        inbox.request_stop()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle)
    return previous


def cmd_run(args: argparse.Namespace) -> int:
    """
    Initialize the inbox and run it.

    Exit codes:
        0: All items processed (or none found)
        11: Inbox could not be initialized
        12: The loop itself failed
        20: One or more items failed
    """
    source = Path(args.source_folder)
    if not source.is_dir():
        print(f"ERROR: Source folder not found: {source}", file=sys.stderr)
        return EXIT_ARGUMENT_ERROR

    inbox = Inbox(
        source_folder=source,
        processing_folder=args.processing_folder,
        config_file=args.config,
        log_style=args.logstyle,
    )

    try:
        inbox.init(create_folders=args.init)
    except Exception as e:
        print(f"ERROR: Could not initialize inbox '{source}': {e}", file=sys.stderr)
        return EXIT_INIT_ERROR

    if args.serve:
        _start_monitor(inbox, *args.serve)

    previous_handlers = _install_signal_handlers(inbox)

    try:
        errors = inbox.run(forever=args.forever)
    except Exception as e:
        logger.exception(f"Inbox '{inbox.name}' stopped")
        print(f"FATAL: Inbox runtime error: {e}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    if errors:
        print(f"{errors} item(s) ended in error.", file=sys.stderr)
        return EXIT_ITEM_ERRORS
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cinbox",
        description="cinbox - Common Inbox for archival ingest",
    )
    parser.add_argument(
        "source_folder",
        metavar="SOURCE_FOLDER",
        help="Inbox folder",
    )
    parser.add_argument(
        "-p", "--processing-folder",
        default=None,
        help="Base for the processing folders (default: SOURCE_FOLDER)",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Config file (default: SOURCE_FOLDER/cinbox.ini)",
    )
    parser.add_argument(
        "--log",
        default=None,
        help="Also write the application log to this file",
    )
    parser.add_argument(
        "--logstyle",
        default=None,
        help="Item logfile style (overrides ITEM_LOGSTYLE)",
    )
    parser.add_argument(
        "--language",
        default=None,
        help="Accepted for compatibility; messages are English only",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log at INFO level",
    )
    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Log at DEBUG level",
    )
    parser.add_argument(
        "-f", "--forever",
        action="store_true",
        help="Keep waiting for new items instead of exiting",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Create missing processing folders",
    )
    parser.add_argument(
        "--serve",
        type=_parse_address,
        default=None,
        metavar="HOST:PORT",
        help="Serve the read-only monitoring API",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.set_defaults(func=cmd_run)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entrypoint.

    Parses arguments and dispatches to the run command.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # --help / --version exit with 0
        return EXIT_OK if not e.code else EXIT_ARGUMENT_ERROR

    _setup_logging(args)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
