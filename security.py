"""
Security Utilities & Middleware
CORS, headers, JSON error handlers, request logging and cron protection
"""
import os
import hmac
import secrets
from functools import wraps
from typing import Callable, Dict, Any
from flask import Flask, request, jsonify, Response
from flask_cors import CORS
import logging

logger = logging.getLogger(__name__)

# Paths excluded from request logging
QUIET_PATHS = ('/api/health', '/api/ping', '/api/track')


class SecurityConfig:
    """Security configuration and validation"""

    @staticmethod
    def generate_secret_key() -> str:
        """
        Generate a cryptographically secure secret key

        Returns:
            Hex-encoded secret key
        """
        return secrets.token_hex(32)

    @staticmethod
    def validate_secret_key(secret_key: str) -> bool:
        """
        Validate that secret key is sufficiently secure

        Args:
            secret_key: Secret key to validate

        Returns:
            True if key is secure, False otherwise
        """
        if not secret_key:
            return False

        if len(secret_key) < 32:
            logger.warning("Secret key is too short (minimum 32 characters)")
            return False

        weak_keys = ['dev', 'secret', 'password', '12345', 'changeme']
        if any(weak in secret_key.lower() for weak in weak_keys):
            logger.warning("Secret key appears to be weak or default")
            return False

        return True

    @staticmethod
    def ensure_secret_key(config: Dict[str, Any]) -> str:
        """
        Ensure a secure secret key is configured

        Args:
            config: Application configuration dictionary

        Returns:
            Secure secret key
        """
        secret_key = config.get('SECRET_KEY')

        if not secret_key or not SecurityConfig.validate_secret_key(secret_key):
            if os.environ.get('FLASK_ENV') == 'production':
                logger.error("No secure SECRET_KEY in production! Admin sessions will not survive restarts.")

            secret_key = SecurityConfig.generate_secret_key()
            logger.warning(f"Generated new secret key (length: {len(secret_key)})")

        return secret_key


def setup_security_headers(app: Flask):
    """
    Add security headers to all responses

    Args:
        app: Flask application instance
    """
    @app.after_request
    def add_security_headers(response: Response) -> Response:
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        # HTTPS only outside debug
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # JSON API: nothing to render
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"
        response.headers['Cache-Control'] = 'no-store'

        return response

    logger.info("Security headers configured")


def setup_cors(app: Flask, config: Dict[str, Any]):
    """
    Configure CORS for the admin frontend and the public tracking script

    Args:
        app: Flask application instance
        config: Application configuration dictionary
    """
    cors_origins = config.get('CORS_ORIGINS', ['*'])
    cors_methods = config.get('CORS_METHODS', ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'])
    cors_headers = config.get('CORS_ALLOW_HEADERS', ['Content-Type', 'Authorization'])

    if not app.debug and '*' in cors_origins:
        logger.warning("⚠️  Using wildcard CORS in production! Set CORS_ORIGINS environment variable.")

    CORS(
        app,
        origins=cors_origins,
        methods=cors_methods,
        allow_headers=cors_headers,
        supports_credentials=True,
        max_age=3600
    )

    logger.info(f"CORS configured: origins={cors_origins}")


def cron_secret_required(f: Callable) -> Callable:
    """
    Decorator protecting cron endpoints with CRON_SECRET

    Accepts 'Authorization: Bearer <secret>' or 'X-Cron-Secret: <secret>'.
    When CRON_SECRET is not configured the endpoint is open.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        from config import get_setting

        expected = get_setting('CRON_SECRET')
        if not expected:
            return f(*args, **kwargs)

        provided = request.headers.get('X-Cron-Secret')
        auth_header = request.headers.get('Authorization', '')
        if not provided and auth_header.startswith('Bearer '):
            provided = auth_header[len('Bearer '):].strip()

        if not provided:
            logger.warning(f"Missing cron secret for {request.path}")
            return jsonify({'success': False, 'error': 'Unauthorized'}), 401

        if not hmac.compare_digest(str(provided), str(expected)):
            logger.warning(f"Invalid cron secret for {request.path}")
            return jsonify({'success': False, 'error': 'Forbidden'}), 403

        return f(*args, **kwargs)

    return decorated_function


def sanitize_error_response(error: Exception, include_details: bool = False) -> Dict[str, Any]:
    """
    Sanitize error response to prevent information leakage

    Args:
        error: Exception object
        include_details: Whether to include detailed error info (dev only)

    Returns:
        Sanitized error response dictionary
    """
    error_response = {
        'success': False,
        'error': 'Internal Server Error'
    }

    if include_details:
        error_response['details'] = str(error)
        error_response['type'] = type(error).__name__

    return error_response


# status -> generic message for unhandled HTTP errors
HTTP_ERROR_MESSAGES = {
    400: 'Bad Request',
    401: 'Unauthenticated',
    403: 'Forbidden',
    404: 'Not Found',
    405: 'Method Not Allowed',
    413: 'Payload Too Large',
    429: 'Too Many Requests',
    503: 'Service Unavailable',
}


def setup_error_handlers(app: Flask):
    """
    Register JSON error handlers that don't expose stack traces

    Args:
        app: Flask application instance
    """
    include_details = app.debug

    def make_handler(status, message):
        def handler(error):
            return jsonify({'success': False, 'error': message}), status
        return handler

    for status, message in HTTP_ERROR_MESSAGES.items():
        app.register_error_handler(status, make_handler(status, message))

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify(sanitize_error_response(error, include_details)), 500

    logger.info("Error handlers registered")


def setup_request_logging(app: Flask):
    """
    Setup request/response logging

    Args:
        app: Flask application instance
    """
    @app.before_request
    def log_request():
        if request.path in QUIET_PATHS:
            return

        logger.info(
            f"Request: {request.method} {request.path} "
            f"from {request.remote_addr}"
        )

    @app.after_request
    def log_response(response: Response) -> Response:
        if request.path in QUIET_PATHS:
            return response

        logger.info(
            f"Response: {request.method} {request.path} "
            f"status={response.status_code}"
        )

        return response

    logger.info("Request logging configured")


def validate_environment_variables(required_vars: list, app: Flask):
    """
    Validate that required environment variables are set

    Args:
        required_vars: List of required environment variable names
        app: Flask application instance
    """
    missing_vars = [var for var in required_vars if not os.environ.get(var)]

    for var in missing_vars:
        logger.warning(f"Missing environment variable: {var}")

    if missing_vars and not app.debug:
        logger.error(f"Missing required environment variables in production: {missing_vars}")

    return len(missing_vars) == 0


def setup_security(app: Flask, config: Dict[str, Any]):
    """
    Setup all security features for the application

    Args:
        app: Flask application instance
        config: Application configuration dictionary
    """
    logger.info("Configuring application security...")

    app.secret_key = SecurityConfig.ensure_secret_key(config)
    setup_cors(app, config)
    setup_security_headers(app)
    setup_error_handlers(app)
    setup_request_logging(app)

    if not app.debug:
        validate_environment_variables(['SECRET_KEY', 'DATABASE_URL'], app)

    logger.info("✅ Security configuration complete")
