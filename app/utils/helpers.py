"""
Helper utility functions for request payload cleaning and common conversions.
"""

import re
import json
import math


def as_str(value):
    """
    Coerce a payload value to a stripped string.

    Args:
        value: Any JSON value (None becomes '')

    Returns:
        Stripped string
    """
    if value is None:
        return ''
    return str(value).strip()


def safe_text(value, max_len=500):
    """
    Truncate a text value for storage.

    Args:
        value: Any value; None and '' stay None
        max_len: Maximum length kept

    Returns:
        String of at most max_len characters, or None
    """
    if value is None:
        return None
    text = str(value)
    if not text:
        return None
    return text[:max_len]


def safe_obj(value):
    """Return value when it is a dict, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def safe_json_list(value):
    """
    Parse a JSON list that may arrive as a list or a JSON string.

    Invalid input gives [].
    """
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value.strip():
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        return parsed if isinstance(parsed, list) else []
    return []


def to_number(value):
    """Parse a number, returning None for blanks, garbage, NaN and infinities."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def to_num_or_null(value):
    """Alias kept for payload cleaning: numeric value or None."""
    return to_number(value)


def to_money_string(value):
    """
    Format an amount as a two-decimal string.

    Non-numeric input gives "0.00".
    """
    number = to_number(value)
    if number is None:
        number = 0.0
    return f"{number:.2f}"


def to_int_or_none(value):
    number = to_number(value)
    return int(number) if number is not None else None


def to_bool(value):
    """Interpret checkbox style values ('true', 'on', 1, True) as booleans."""
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'on')
    return bool(value)


def clean_identifier(value):
    """Strip everything except letters, digits and '+' from an IC/phone value."""
    return re.sub(r'[^a-zA-Z0-9+]', '', as_str(value))


def parse_int_arg(value, default, lo=None, hi=None):
    """
    Parse an integer query argument and clamp it.

    Args:
        value: Raw argument (string or None)
        default: Value used when missing or invalid
        lo: Lower bound (inclusive)
        hi: Upper bound (inclusive)
    """
    try:
        number = int(value) if value not in (None, '') else default
    except (TypeError, ValueError):
        number = default
    if lo is not None:
        number = max(lo, number)
    if hi is not None:
        number = min(hi, number)
    return number


def is_truthy_flag(value):
    """Query-string flags: '1' or 'true'."""
    return str(value or '').strip().lower() in ('1', 'true')


UUID_RE = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)


def is_uuid(value):
    """Search boxes treat a pasted UUID as an id lookup instead of text."""
    return bool(UUID_RE.match(as_str(value)))
