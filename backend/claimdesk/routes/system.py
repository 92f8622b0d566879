# backend/claimdesk/routes/system.py
"""
System health endpoint and receipt file serving.
"""

import os
import time

from flask import Blueprint, current_app, send_from_directory
from sqlalchemy import text
from werkzeug.exceptions import NotFound

from ..extensions import db
from ..responses import error_response, success_response
from claimdesk.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity.

    Returns dict with status and latency.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_upload_folder_health() -> dict:
    folder = current_app.config["UPLOAD_FOLDER"]
    writable = os.path.isdir(folder) and os.access(folder, os.W_OK)
    return {"status": "healthy" if writable else "degraded", "writable": writable}


@system_bp.get("/health")
@system_bp.get("/api/health")
def health():
    checks = {
        "database": check_database_health(),
        "uploads": check_upload_folder_health(),
    }
    healthy = checks["database"]["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": checks,
    }
    if not healthy:
        return error_response("Service unhealthy", 503, errors=[{"field": "database", "message": "unreachable"}])
    return success_response(body)


@system_bp.get("/uploads/<int:owner_id>/<path:filename>")
def serve_receipt(owner_id: int, filename: str):
    """Serve a stored receipt. Stored names are random and unguessable."""
    folder = os.path.join(current_app.config["UPLOAD_FOLDER"], str(owner_id))
    try:
        return send_from_directory(folder, filename)
    except NotFound:
        return error_response("File not found", 404)
