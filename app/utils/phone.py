"""
Malaysian mobile number normalisation and WhatsApp links.
"""

import re
from urllib.parse import quote

from validators import ValidationError


def normalize_phone_international(value):
    """
    Normalise a mobile number to +<digits>.

    Local numbers starting with 01 get the Malaysian +60 prefix, a leading
    00 becomes +. Between 8 and 15 digits are accepted.

    Raises:
        ValidationError: when empty or out of range
    """
    raw = str(value or '').strip()
    if not raw:
        raise ValidationError("Mobile required", field='mobile')

    cleaned = re.sub(r'[^\d+]', '', raw)
    if cleaned.startswith('00'):
        cleaned = '+' + cleaned[2:]
    elif cleaned.startswith('01'):
        cleaned = '+60' + cleaned[1:]
    if not cleaned.startswith('+'):
        cleaned = '+' + cleaned

    digits = re.sub(r'\D', '', cleaned)
    if len(digits) < 8 or len(digits) > 15:
        raise ValidationError("Invalid mobile number", field='mobile')

    return '+' + digits


def phone_digits(value):
    return re.sub(r'\D', '', str(value or ''))


def build_whatsapp_url(mobile, message):
    """https://wa.me/<digits>?text=<message> link for a customer."""
    return f"https://wa.me/{phone_digits(mobile)}?text={quote(message, safe='')}"
