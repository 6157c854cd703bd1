"""
Utilities Package

Shared helper functions used across the application.
"""

from app.utils.helpers import (
    as_str,
    safe_text,
    safe_obj,
    safe_json_list,
    to_number,
    to_num_or_null,
    to_money_string,
    clean_identifier,
    parse_int_arg,
    is_uuid,
)

from app.utils.vehicles import (
    normalize_plate,
    plate_equals,
    format_plate,
    normalize_model,
    build_car_label,
)

from app.utils.phone import (
    normalize_phone_international,
    build_whatsapp_url,
)

__all__ = [
    'as_str',
    'safe_text',
    'safe_obj',
    'safe_json_list',
    'to_number',
    'to_num_or_null',
    'to_money_string',
    'clean_identifier',
    'parse_int_arg',
    'is_uuid',
    'normalize_plate',
    'plate_equals',
    'format_plate',
    'normalize_model',
    'build_car_label',
    'normalize_phone_international',
    'build_whatsapp_url',
]
