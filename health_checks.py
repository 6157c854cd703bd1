"""
Health Check & Monitoring Endpoints
Provides endpoints for Render deployment health checks and monitoring
"""
import sys
import os
import time
import psutil
from datetime import datetime
from typing import Dict, Any
from flask import Blueprint, jsonify
import logging

logger = logging.getLogger(__name__)

# Create Blueprint for health check routes
health_bp = Blueprint('health', __name__)

# Track application start time
START_TIME = time.time()

SLACK_WEBHOOK_SETTINGS = (
    'SLACK_WEBHOOK_URL',
    'SLACK_WEBHOOK_URL_REMINDERS',
    'SLACK_MAINTENANCE_WEBHOOK_URL',
    'SLACK_WEBHOOK_URL_INSURANCE',
    'SLACK_WEBHOOK_URL_UPCOMING',
)


def get_system_metrics() -> Dict[str, Any]:
    """
    Get basic system metrics

    Returns:
        Dictionary of system metrics
    """
    try:
        process = psutil.Process()

        return {
            'cpu_percent': process.cpu_percent(interval=0.1),
            'memory_mb': process.memory_info().rss / 1024 / 1024,
            'memory_percent': process.memory_percent(),
            'threads': process.num_threads(),
            'open_files': len(process.open_files()),
        }
    except psutil.Error as e:
        logger.warning(f"Failed to get system metrics: {e}")
        return {}


def get_uptime() -> Dict[str, Any]:
    """
    Get application uptime

    Returns:
        Dictionary with uptime information
    """
    uptime_seconds = time.time() - START_TIME

    return {
        'uptime_seconds': round(uptime_seconds, 2),
        'uptime_minutes': round(uptime_seconds / 60, 2),
        'uptime_hours': round(uptime_seconds / 3600, 2),
        'started_at': datetime.fromtimestamp(START_TIME).isoformat()
    }


def check_integrations(app) -> Dict[str, bool]:
    """
    Check which outbound integrations are configured

    Args:
        app: Flask application instance

    Returns:
        Dictionary of integration availability
    """
    return {
        'slack_enabled': bool(app.config.get('ENABLE_SLACK')),
        'slack_webhooks': {
            name: bool(app.config.get(name)) for name in SLACK_WEBHOOK_SETTINGS
        },
        'geo_lookup': bool(app.config.get('ENABLE_GEO_LOOKUP')),
        'google_maps': bool(app.config.get('GOOGLE_MAPS_SERVER_KEY')),
        'scheduler': bool(app.config.get('ENABLE_SCHEDULER')),
    }


def check_database() -> Dict[str, Any]:
    """
    Check that the database answers a trivial query

    Returns:
        {'configured': bool, 'healthy': bool, 'error'?: str}
    """
    from database.connection import is_db_configured, check_db_connection

    if not is_db_configured():
        return {'configured': False, 'healthy': False}

    try:
        check_db_connection()
        return {'configured': True, 'healthy': True}
    except RuntimeError as e:
        return {'configured': True, 'healthy': False, 'error': str(e)}


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Basic health check endpoint
    Returns 200 if application is running

    Used by: Render health checks, monitoring tools
    """
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'service': 'jrv-rental-admin'
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """
    Readiness probe endpoint
    Returns 200 when the database is reachable and, with Slack enabled,
    the default webhook is configured

    Used by: Render deployment, load balancers
    """
    from flask import current_app

    try:
        database = check_database()
        integrations = check_integrations(current_app)

        slack_ready = (
            not integrations['slack_enabled']
            or integrations['slack_webhooks']['SLACK_WEBHOOK_URL']
        )
        is_ready = database['healthy'] and slack_ready

        response = {
            'status': 'ready' if is_ready else 'not_ready',
            'timestamp': datetime.utcnow().isoformat(),
            'checks': {
                'database': database,
                'integrations': integrations,
                'slack_ready': slack_ready
            }
        }

        status_code = 200 if is_ready else 503

        return jsonify(response), status_code

    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return jsonify({
            'status': 'error',
            'error': str(e),
            'timestamp': datetime.utcnow().isoformat()
        }), 503


@health_bp.route('/metrics', methods=['GET'])
def metrics():
    """
    Basic metrics endpoint
    Returns system metrics and application statistics

    Used by: Monitoring dashboards, performance analysis
    """
    from flask import current_app

    try:
        response = {
            'timestamp': datetime.utcnow().isoformat(),
            'service': 'jrv-rental-admin',
            'version': '1.0.0',
            'environment': os.environ.get('FLASK_ENV', 'production'),
            'uptime': get_uptime(),
            'system': get_system_metrics(),
            'integrations': check_integrations(current_app),
            'python_version': sys.version.split()[0]
        }

        return jsonify(response), 200

    except Exception as e:
        logger.error(f"Metrics collection failed: {e}")
        return jsonify({
            'status': 'error',
            'error': str(e),
            'timestamp': datetime.utcnow().isoformat()
        }), 500


@health_bp.route('/ping', methods=['GET'])
def ping():
    """
    Simple ping endpoint
    Returns immediate response for basic connectivity tests
    """
    return 'pong', 200


def register_health_checks(app):
    """
    Register health check blueprint with Flask app

    Args:
        app: Flask application instance
    """
    app.register_blueprint(health_bp, url_prefix='/api')
    logger.info("Health check endpoints registered")
    logger.info("Available endpoints: /api/health, /api/ready, /api/metrics, /api/ping")
