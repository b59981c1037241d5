"""
=============================================================================
USERSERVER CLI ENTRY POINT
=============================================================================

    # Defaults: 0.0.0.0:8080, form contract
    python -m userserver

    # JSON passthrough on another port
    python -m userserver --contract json --port 3000

    # Installed console script, verbose
    userserver --log-level DEBUG --workers 8

Precedence, lowest first:

    dataclass defaults  ──►  USERSERVER_* environment  ──►  command line

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .app import create_app
from .config import ServerConfig, CONTRACTS, LOG_LEVELS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userserver",
        description="In-memory users HTTP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  userserver                          # 0.0.0.0:8080, form contract
  userserver --port 3000              # Custom port
  userserver --contract json          # POST /users echoes the JSON body
  userserver --workers 8              # Up to 8 worker threads
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOUR
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--contract", "-c",
        choices=CONTRACTS,
        default=None,
        help="How POST /users reads its body (default: form)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Maximum worker threads (default: 16)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        type=str.upper,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"userserver {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment config with every given command-line option applied on top."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.contract is not None:
        config.contract = args.contract
    if args.workers is not None:
        config.set_workers(args.workers)
    if args.log_level is not None:
        config.log_level = args.log_level

    return config


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = create_app(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
