"""
Input Validation & Sanitization Utilities
Shared request validation for the admin API
"""
import re
from typing import Dict, Any, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
DATE_KEY_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')

MIN_PASSWORD_LENGTH = 6


class ValidationError(Exception):
    """
    Raised by services when input or a business rule is violated.

    Routes turn it into {'success': False, 'error': message} with `status`.
    """
    def __init__(self, message: str, field: Optional[str] = None, status: int = 400):
        self.message = message
        self.field = field
        self.status = status
        super().__init__(self.message)


class NotFoundError(ValidationError):
    """Requested record does not exist"""
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field, status=404)


class PermissionDenied(ValidationError):
    """Caller is authenticated but not allowed to do this"""
    def __init__(self, message: str = 'Forbidden', field: Optional[str] = None):
        super().__init__(message, field=field, status=403)


def require_fields(data: Dict[str, Any], messages: Dict[str, str]):
    """
    Raise ValidationError with the field-specific message of the first missing field

    Args:
        data: Dictionary of input data
        messages: Ordered mapping of field name to error message
    """
    for field, message in messages.items():
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(message, field=field)


def validate_email(email: str) -> Tuple[bool, Optional[str]]:
    """
    Validate email format

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email must be a non-empty string"

    if not EMAIL_PATTERN.match(email):
        return False, "Invalid email format"

    if len(email) > 254:  # RFC 5321
        return False, "Email address too long"

    return True, None


def validate_password(password: Any, message: str) -> str:
    """Password must be a string of at least MIN_PASSWORD_LENGTH characters."""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(message, field='password')
    return password


def is_date_key(value: Any) -> bool:
    """True for YYYY-MM-DD strings."""
    return isinstance(value, str) and bool(DATE_KEY_PATTERN.match(value))
