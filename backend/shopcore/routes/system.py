# backend/shopcore/routes/system.py
"""System health and version endpoints."""

import os
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from ..extensions import db
from shopcore.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "response_time_ms": round((time.time() - start_time) * 1000, 2),
        }
    except Exception as exc:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": exc.__class__.__name__}


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), 200 if healthy else 503


@system_bp.get("/version")
def version():
    return jsonify({
        "name": "shopcore",
        "version": current_app.config.get("VERSION", "0.1.0"),
        "git_sha": os.environ.get("GIT_SHA"),
    })
