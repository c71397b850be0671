#!/usr/bin/env python3
"""
Remote Display CLI - Command line interface for starting/stopping the viewer.
"""

import argparse
import logging
import os
import signal
import sys
from pathlib import Path

# PID file location
PID_FILE = Path("/tmp/remote-display.pid")


def get_pid() -> int | None:
    """Get PID from file if the process is still running."""
    if PID_FILE.exists():
        try:
            pid = int(PID_FILE.read_text().strip())
            os.kill(pid, 0)
            return pid
        except (ValueError, OSError):
            PID_FILE.unlink(missing_ok=True)
    return None


def write_pid() -> None:
    PID_FILE.write_text(str(os.getpid()))


def remove_pid() -> None:
    PID_FILE.unlink(missing_ok=True)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cmd_start(args) -> int:
    """Start the viewer."""
    existing_pid = get_pid()
    if existing_pid:
        print(f"❌ Remote Display is already running (PID: {existing_pid})")
        print(f"   Run 'remote-display stop' first")
        return 1

    # Import here to avoid loading aiohttp when not needed
    from .config import ConfigError, reload_config
    from .server import run_server

    try:
        config = reload_config(Path(args.config) if args.config else None)

        # CLI flags win over the config file
        if args.port:
            config.set("server", "port", args.port)
        if args.host:
            config.set("server", "host", args.host)
        if args.retry_delay is not None:
            config.set("poller", "retry_delay_ms", args.retry_delay)
    except ConfigError as e:
        print(f"❌ Invalid configuration: {e}")
        return 1

    setup_logging(config.log_level)
    write_pid()

    try:
        run_server(config, address=args.ip)
    except KeyboardInterrupt:
        pass
    finally:
        remove_pid()

    return 0


def cmd_stop(args) -> int:
    """Stop the viewer."""
    pid = get_pid()

    if not pid:
        print("ℹ️  Remote Display is not running")
        return 0

    try:
        os.kill(pid, signal.SIGTERM)
        print(f"✅ Stopped Remote Display (PID: {pid})")
        remove_pid()
        return 0
    except OSError as e:
        print(f"❌ Failed to stop: {e}")
        remove_pid()
        return 1


def cmd_status(args) -> int:
    """Check viewer status."""
    pid = get_pid()

    if not pid:
        print("❌ Remote Display is not running")
        return 1

    from .config import get_config
    from .store import AddressStore

    config = get_config()
    print(f"✅ Remote Display is running (PID: {pid})")
    print(f"   URL: http://{config.host}:{config.port}")

    address = AddressStore(config.address_file).load()
    if address:
        print(f"   Last address: {address}")

    return 0


def cmd_config(args) -> int:
    """Show current configuration."""
    from .config import ConfigError, get_config_paths, reload_config

    print("📝 Configuration:")
    print()

    print("   Config file search paths:")
    for path in get_config_paths():
        exists = "✓" if path.exists() else " "
        print(f"   [{exists}] {path}")
    print()

    try:
        config = reload_config(Path(args.config) if args.config else None)
    except ConfigError as e:
        print(f"❌ Invalid configuration: {e}")
        return 1

    print("   Current settings:")
    print(f"   - Host: {config.host}")
    print(f"   - Port: {config.port} (state feed {config.ws_port})")
    print(f"   - Scheme: {config.scheme}")
    print(f"   - Retry delay: {config.retry_delay * 1000:.0f} ms")
    print(f"   - Request timeout: {config.timeout_seconds} s")
    print(f"   - Address file: {config.address_file}")
    print(f"   - Hide controls after: {config.idle_hide_seconds} s")
    print(f"   - Log level: {config.log_level}")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remote-display",
        description="Live view of a remote screen image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  remote-display start                      # Resume the last display host
  remote-display start --ip 192.168.1.100   # Show a specific host
  remote-display start --port 9090          # Serve the viewer on another port
  remote-display stop                       # Stop the viewer
  remote-display status                     # Check if running
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    start_parser = subparsers.add_parser("start", help="Start the viewer")
    start_parser.add_argument("--ip", type=str, help="Display host address (saved for next time)")
    start_parser.add_argument("--port", "-p", type=int, help="Viewer port (default: 8080)")
    start_parser.add_argument("--host", type=str, help="Viewer bind address (default: 0.0.0.0)")
    start_parser.add_argument("--retry-delay", type=int, help="Retry delay in ms (default: 100)")
    start_parser.add_argument("--config", "-c", type=str, help="Config file path")
    start_parser.set_defaults(func=cmd_start)

    stop_parser = subparsers.add_parser("stop", help="Stop the viewer")
    stop_parser.set_defaults(func=cmd_stop)

    status_parser = subparsers.add_parser("status", help="Check viewer status")
    status_parser.set_defaults(func=cmd_status)

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--config", "-c", type=str, help="Config file path")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
