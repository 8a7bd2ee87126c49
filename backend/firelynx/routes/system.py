# backend/firelynx/routes/system.py
"""
System health and version endpoints.

Health verifies the database answers and the document counter table is
readable. Version reports non-sensitive deployment details.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Project, SequenceCounter
from firelynx.time_utils import current_year, utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        project_count = db.session.query(Project).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"projects": project_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_sequence_health() -> dict:
    """
    Check the counter store. A missing row for the current year is normal
    (it is created by the first document of the year).
    """
    start_time = time.time()
    try:
        year = current_year()
        row = db.session.query(SequenceCounter).filter_by(year=year).first()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "year": year,
                "initialized": row is not None,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Sequence store health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Sequence store error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: All checks healthy
    - 503: One or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    sequence_health = check_sequence_health()

    all_checks = [database_health, sequence_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "sequences": sequence_health,
        },
    }
    return response, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secret keys, database credentials or internal paths.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
