"""
Administrative REST routes, registered with either transport.

Provides:
- GET  /api/leaderboard - Full snapshot
- POST /api/reset       - Clear the board (broadcasts like any mutation)
- GET  /api/health      - Liveness plus counters
- GET  /api/config      - Transport settings for browser clients
"""
from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from leaderboard.server.errors import ValidationError
from leaderboard.server.leaderboard_service import LeaderboardService

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")


def get_service() -> LeaderboardService:
    return current_app.extensions["leaderboard"]


def json_body() -> dict:
    """Request JSON body as a dict, or ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def validation_failed(error: ValidationError):
    return jsonify({"success": False, "error": str(error)}), 400


@api_bp.route("/leaderboard", methods=["GET"])
def leaderboard():
    return jsonify(get_service().get_state())


@api_bp.route("/reset", methods=["POST"])
def reset():
    get_service().reset()
    return jsonify({"success": True, "message": "Leaderboard reset successfully"})


@api_bp.route("/health", methods=["GET"])
def health():
    return jsonify(get_service().health())


@api_bp.route("/config", methods=["GET"])
def public_config():
    return jsonify(current_app.extensions["leaderboard_config"].get_public_config())
