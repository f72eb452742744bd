"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    unresponsive [OPTIONS] PORT DELAY
    python -m unresponsive [OPTIONS] PORT DELAY

=============================================================================
USAGE
=============================================================================

    # Hold every client for 30 seconds
    unresponsive 9000 30

    # One client at a time
    unresponsive -1 9000 30

    # Quieter, numeric peer addresses only
    unresponsive --no-resolve --log-level WARNING 9000 30

=============================================================================
EXIT STATUS
=============================================================================

    1   bad arguments (usage on stdout), or the listening socket failed

=============================================================================
ENVIRONMENT
=============================================================================

    UNRESPONSIVE_SINGLE_CLIENT  default for -1
    UNRESPONSIVE_HOST           default for --host
    UNRESPONSIVE_LOG_LEVEL      default for --log-level

=============================================================================
"""

import argparse
import sys
from typing import Optional

from . import __version__
from .config import ServerConfig
from .server import UnresponsiveServer


class UsageParser(argparse.ArgumentParser):
    """ArgumentParser whose usage errors go to stdout with exit status 1."""

    def error(self, message):
        self.print_usage(sys.stdout)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser(defaults: Optional[ServerConfig] = None) -> argparse.ArgumentParser:
    """
    Build the CLI parser.

    Args:
        defaults: Supplies the option defaults (normally from the
                  environment). ServerConfig() when omitted.
    """
    defaults = defaults or ServerConfig()

    parser = UsageParser(
        prog="unresponsive",
        description="TCP server that accepts connections and answers only after DELAY seconds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  unresponsive 9000 30          # Every client waits 30 seconds
  unresponsive -1 9000 30       # Only one client at a time
        """
    )

    parser.add_argument("port", metavar="PORT", type=int, help="Port to listen on (1-65535)")
    parser.add_argument("delay", metavar="DELAY", type=int, help="Seconds to wait before responding (> 0)")

    parser.add_argument(
        "-1", "--single-client",
        dest="single_client",
        action="store_true",
        default=defaults.single_client,
        help="Only one client at a time"
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=defaults.host,
        help=f"Address to bind to (default: {defaults.host})"
    )

    parser.add_argument(
        "--no-resolve",
        dest="resolve_names",
        action="store_false",
        help="Log numeric peer addresses instead of reverse-resolving them"
    )

    parser.add_argument(
        "--buffer-size",
        type=int,
        default=4096,
        help="Bytes of client input kept for protocol sniffing (default: 4096)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # META ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=defaults.log_level,
        help=f"Logging level (default: {defaults.log_level})"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"unresponsive {__version__}"
    )

    return parser


def main(argv=None):
    """
    Main CLI entry point.

    Exits the process: never returns normally while the server runs.
    """
    try:
        env = ServerConfig.from_env()
    except ValueError as e:
        print(f"unresponsive: bad environment: {e}", file=sys.stderr)
        sys.exit(1)

    parser = build_parser(env)
    args = parser.parse_args(argv)

    # PORT 0 ("any free port") is fine when embedded, not on the command line
    if args.port <= 0:
        parser.print_help(sys.stdout)
        sys.exit(1)

    config = ServerConfig(
        port=args.port,
        delay=args.delay,
        single_client=args.single_client,
        host=args.host,
        buffer_size=args.buffer_size,
        resolve_names=args.resolve_names,
        log_level=args.log_level,
    )

    try:
        server = UnresponsiveServer(config)
    except ValueError as e:
        print(f"{parser.prog}: {e}", file=sys.stderr)
        parser.print_help(sys.stdout)
        sys.exit(1)

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
