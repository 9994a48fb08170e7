from __future__ import annotations

import logging
import os

from leaderboard.configurations.configuration_constants import (
    VALID_TRANSPORT_MODES, Limits, StorageDefaults, TransportModes)
from leaderboard.utils.sentinels import NotProvided

logger = logging.getLogger(__name__)


class LeaderboardConfig:
    def __init__(self):

        # Hosting
        self.host = "0.0.0.0"
        self.port = 3000
        self.secret_key: str = os.environ.get("SECRET_KEY", "secret!")
        self.debug: bool = os.getenv("FLASK_ENV", "production") == "development"

        # Storage
        self.data_dir: str = StorageDefaults.DataDir
        self.active_filename: str = StorageDefaults.ActiveFilename
        self.completed_filename: str = StorageDefaults.CompletedFilename

        # Live-update transport
        self.transport_mode: str = TransportModes.SocketIO
        self.keepalive_interval_s: float = 30.0
        self.ping_interval: int = 25
        self.ping_timeout: int = 20
        self.cors_allowed_origins: str | list[str] = "*"

        # Board
        self.max_completed: int = Limits.MaxCompletedResults

        # Logging
        self.log_file: str | None = "./leaderboard.log"
        self.log_level: int = logging.INFO

    def hosting(
        self,
        host: str = NotProvided,
        port: int = NotProvided,
        debug: bool = NotProvided,
        secret_key: str = NotProvided,
    ) -> LeaderboardConfig:
        if host is not NotProvided:
            self.host = host

        if port is not NotProvided:
            assert isinstance(port, int) and 0 < port < 65536, \
                "port must be an integer between 1 and 65535"
            self.port = port

        if debug is not NotProvided:
            self.debug = debug

        if secret_key is not NotProvided:
            self.secret_key = secret_key

        return self

    def storage(
        self,
        data_dir: str = NotProvided,
        active_filename: str = NotProvided,
        completed_filename: str = NotProvided,
    ) -> LeaderboardConfig:
        """Configure where the two JSON snapshot documents are written.

        :param data_dir: Directory holding both documents. Created on first run.
        :type data_dir: str, optional
        :param active_filename: File name for the active sessions array.
        :type active_filename: str, optional
        :param completed_filename: File name for the completed results array.
        :type completed_filename: str, optional
        :return: The LeaderboardConfig instance (self)
        :rtype: LeaderboardConfig
        """
        if data_dir is not NotProvided:
            assert data_dir, "data_dir must be a non-empty path"
            self.data_dir = os.fspath(data_dir)

        if active_filename is not NotProvided:
            self.active_filename = active_filename

        if completed_filename is not NotProvided:
            self.completed_filename = completed_filename

        assert self.active_filename != self.completed_filename, \
            "active and completed documents must use different file names"

        return self

    def transport(
        self,
        mode: str = NotProvided,
        keepalive_interval_s: float = NotProvided,
        ping_interval: int = NotProvided,
        ping_timeout: int = NotProvided,
        cors_allowed_origins: str | list[str] = NotProvided,
    ) -> LeaderboardConfig:
        """Select and tune the live-update transport.

        :param mode: ``"socketio"`` for the bidirectional socket transport or
            ``"sse"`` for REST requests plus a server-sent event stream.
        :type mode: str, optional
        :param keepalive_interval_s: Seconds between keep-alive comments on
            idle event streams.
        :type keepalive_interval_s: float, optional
        :param ping_interval: Socket.IO ping interval in seconds.
        :type ping_interval: int, optional
        :param ping_timeout: Seconds to wait for a pong before dropping a socket.
        :type ping_timeout: int, optional
        :param cors_allowed_origins: Origins allowed to connect, or ``"*"``.
        :type cors_allowed_origins: str | list[str], optional
        :return: The LeaderboardConfig instance (self)
        :rtype: LeaderboardConfig
        """
        if mode is not NotProvided:
            assert mode in VALID_TRANSPORT_MODES, \
                f"transport mode must be one of {VALID_TRANSPORT_MODES}"
            self.transport_mode = mode

        if keepalive_interval_s is not NotProvided:
            assert isinstance(keepalive_interval_s, (int, float)) and keepalive_interval_s > 0, \
                "keepalive_interval_s must be a positive number"
            self.keepalive_interval_s = float(keepalive_interval_s)

        if ping_interval is not NotProvided:
            self.ping_interval = ping_interval

        if ping_timeout is not NotProvided:
            self.ping_timeout = ping_timeout

        if cors_allowed_origins is not NotProvided:
            self.cors_allowed_origins = cors_allowed_origins

        return self

    def leaderboard(self, max_completed: int = NotProvided) -> LeaderboardConfig:
        if max_completed is not NotProvided:
            assert isinstance(max_completed, int) and max_completed > 0, \
                "max_completed must be a positive integer"
            self.max_completed = max_completed

        return self

    def logging(
        self,
        log_file: str | None = NotProvided,
        level: int | str = NotProvided,
    ) -> LeaderboardConfig:
        if log_file is not NotProvided:
            self.log_file = log_file

        if level is not NotProvided:
            if isinstance(level, str):
                resolved = logging.getLevelName(level.upper())
                assert isinstance(resolved, int), f"Unknown log level: {level}"
                level = resolved
            self.log_level = level

        return self

    def get_public_config(self) -> dict:
        """Settings a browser client needs to pick its transport.

        :return: Dictionary with the transport mode and keep-alive interval
        :rtype: dict
        """
        return {
            "transport": self.transport_mode,
            "keepalive_interval_s": self.keepalive_interval_s,
            "max_completed": self.max_completed,
        }
