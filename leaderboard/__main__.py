"""
Run the leaderboard server.

Usage:
    python -m leaderboard --port 3000 --transport socketio
    python -m leaderboard --transport sse --data-dir /var/lib/leaderboard
"""

from __future__ import annotations

import eventlet

eventlet.monkey_patch()

import argparse
import os
import sys

from leaderboard.configurations import leaderboard_config
from leaderboard.configurations.configuration_constants import (
    VALID_TRANSPORT_MODES, StorageDefaults, TransportModes)
from leaderboard.server import app
from leaderboard.server.errors import PersistenceError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Usability testing leaderboard server")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    parser.add_argument(
        "--port", type=int, default=int(os.environ.get("PORT", 3000)), help="Port number to listen on"
    )
    parser.add_argument(
        "--data-dir",
        default=os.environ.get("LEADERBOARD_DATA_DIR", StorageDefaults.DataDir),
        help="Directory for the JSON snapshot documents",
    )
    parser.add_argument(
        "--transport",
        choices=VALID_TRANSPORT_MODES,
        default=os.environ.get("LEADERBOARD_TRANSPORT", TransportModes.SocketIO),
        help="Live-update transport",
    )
    parser.add_argument(
        "--keepalive", type=float, default=30.0, help="Seconds between keep-alive signals"
    )
    parser.add_argument("--log-file", default="./leaderboard.log", help="Log file path ('' to disable)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    config = (
        leaderboard_config.LeaderboardConfig()
        .hosting(host=args.host, port=args.port)
        .storage(data_dir=args.data_dir)
        .transport(mode=args.transport, keepalive_interval_s=args.keepalive)
        .logging(log_file=args.log_file or None, level="DEBUG" if args.debug else "INFO")
    )
    if args.debug:
        config.hosting(debug=True)

    try:
        app.run(config)
    except PersistenceError as e:
        sys.exit(f"Cannot start leaderboard: {e}")


if __name__ == "__main__":
    main()
