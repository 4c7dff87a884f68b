"""Health check endpoint."""
import sqlite3

from flask import Blueprint, jsonify, current_app

from app.db import get_db

health_bp = Blueprint('health', __name__)


@health_bp.route('/healthz')
def healthz():
    """Return health status of the application and its records database."""
    try:
        get_db().execute('SELECT 1').fetchone()
    except sqlite3.Error as e:
        current_app.logger.error(f"Health check database error: {e}")
        return jsonify({'status': 'error', 'database': 'unavailable'}), 503
    return jsonify({'status': 'ok', 'database': 'ok'})
