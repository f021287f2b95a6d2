"""
Status routes — JSON view of the gate and the units.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify

logger = logging.getLogger(__name__)

status_bp = Blueprint("status", __name__)


@status_bp.route("/status")
def status():  # type: ignore[no-untyped-def]
    """Gate state, unit validity and latest stats."""
    ext = current_app.extensions["lazybuild"]
    gate = ext["gate"]
    return jsonify({
        "name": ext["config"].name,
        "gate": gate.status() if gate is not None else None,
        "server": ext["dev_server"].status(),
    })
