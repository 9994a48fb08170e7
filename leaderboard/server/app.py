from __future__ import annotations

import atexit
import logging
import socket

import flask
import flask_socketio

from leaderboard.configurations.configuration_constants import TransportModes
from leaderboard.configurations.leaderboard_config import LeaderboardConfig
from leaderboard.server.api import api_bp
from leaderboard.server.broadcast_hub import BroadcastHub
from leaderboard.server.leaderboard_service import LeaderboardService
from leaderboard.server.persistence import JsonSnapshotStore
from leaderboard.server.session_registry import SessionRegistry
from leaderboard.server.transports.socket_namespace import LeaderboardNamespace
from leaderboard.server.transports.sse import sse_bp


def setup_logger(name, log_file, level=logging.INFO):
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # run() may be called more than once in a process (tests, reloads)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        handler = logging.FileHandler(log_file)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


logger = logging.getLogger(__name__)


def create_app(config: LeaderboardConfig) -> tuple[flask.Flask, flask_socketio.SocketIO]:
    """
    Build the Flask app and SocketIO server around one registry/hub pair.

    The registry is loaded from disk here, so a data directory that cannot be
    created raises PersistenceError before anything is served.

    Args:
        config: LeaderboardConfig for this process

    Returns:
        (app, socketio); the LeaderboardService is in
        ``app.extensions["leaderboard"]``.
    """
    app = flask.Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["DEBUG"] = config.debug
    app.config["LEADERBOARD_KEEPALIVE_S"] = config.keepalive_interval_s

    store = JsonSnapshotStore(
        config.data_dir,
        active_filename=config.active_filename,
        completed_filename=config.completed_filename,
    )
    registry = SessionRegistry(store=store, max_completed=config.max_completed)
    registry.load()
    hub = BroadcastHub(snapshot_provider=registry.get_snapshot)
    service = LeaderboardService(registry, hub)

    app.extensions["leaderboard"] = service
    app.extensions["leaderboard_config"] = config

    socketio = flask_socketio.SocketIO(
        app,
        cors_allowed_origins=config.cors_allowed_origins,
        logger=config.debug,
        ping_interval=config.ping_interval,
        ping_timeout=config.ping_timeout,
    )

    app.register_blueprint(api_bp)

    if config.transport_mode == TransportModes.SocketIO:
        socketio.on_namespace(LeaderboardNamespace("/", service))
        logger.info("Live updates over SocketIO on namespace /")
    else:
        app.register_blueprint(sse_bp)
        logger.info(
            f"Live updates over server-sent events at /api/events "
            f"(keep-alive every {config.keepalive_interval_s}s)"
        )

    allowed_origins = config.cors_allowed_origins

    @app.after_request
    def add_cors_headers(response):
        if flask.request.path.startswith("/api"):
            if isinstance(allowed_origins, str):
                response.headers["Access-Control-Allow-Origin"] = allowed_origins
            else:
                # The header takes a single origin, so echo the caller's if allowed
                origin = flask.request.headers.get("Origin")
                if origin in allowed_origins:
                    response.headers["Access-Control-Allow-Origin"] = origin
                response.vary.add("Origin")
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, Cache-Control"
        return response

    return app, socketio


def run(config: LeaderboardConfig):
    # Module loggers under leaderboard.* propagate to this one
    setup_logger("leaderboard", config.log_file, level=config.log_level)

    app, socketio = create_app(config)
    service: LeaderboardService = app.extensions["leaderboard"]

    atexit.register(service.registry.persist)

    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        local_ip = s.getsockname()[0]
        s.close()
    except Exception:
        local_ip = "unavailable"

    print("\n" + "="*70)
    print("Usability Testing Leaderboard")
    print("="*70)
    print(f"\nServer starting on:")
    print(f"  Local:   http://localhost:{config.port}")
    print(f"  Network: http://{local_ip}:{config.port}")
    print(f"  Transport: {config.transport_mode}")
    print(f"  Data:      {config.data_dir}")
    print("="*70 + "\n")

    socketio.run(
        app,
        log_output=config.debug,
        port=config.port,
        host=config.host,
    )
