"""
Plate and model normalisation shared by revenue, fleet and agreement code.
"""

import re

PLATE_PARTS = re.compile(r'^([A-Z]+)(\d+)([A-Z]*)$')

# Ordered keyword -> canonical model. First match wins.
MODEL_KEYWORDS = [
    # Perodua
    ('bezza', 'Perodua Bezza'),
    ('myvi', 'Perodua Myvi'),
    ('axia', 'Perodua Axia'),
    ('alza', 'Perodua Alza'),
    ('aruz', 'Perodua Aruz'),
    ('ativa', 'Perodua Ativa'),
    # Proton
    ('saga', 'Proton Saga'),
    ('person', 'Proton Persona'),
    ('exora', 'Proton Exora'),
    ('x50', 'Proton X50'),
    ('x70', 'Proton X70'),
    ('x90', 'Proton X90'),
    # Toyota
    ('vios', 'Toyota Vios'),
    ('yaris', 'Toyota Yaris'),
    ('alphard', 'Toyota Alphard'),
    ('vellfire', 'Toyota Vellfire'),
    ('innova', 'Toyota Innova'),
    # Honda
    ('city', 'Honda City'),
    ('civic', 'Honda Civic'),
    ('brv', 'Honda BR-V'),
    ('br-v', 'Honda BR-V'),
    ('crv', 'Honda CR-V'),
    ('cr-v', 'Honda CR-V'),
    # Mitsubishi
    ('xpander', 'Mitsubishi Xpander'),
    ('triton', 'Mitsubishi Triton'),
]


def normalize_plate(value):
    """Uppercase and keep only A-Z and 0-9: 'wxy-1234 a' -> 'WXY1234A'."""
    return re.sub(r'[^A-Z0-9]', '', str(value or '').upper())


def plate_equals(a, b):
    """Compare plates ignoring spacing and case. Empty plates never match."""
    na, nb = normalize_plate(a), normalize_plate(b)
    if not na or not nb:
        return False
    return na == nb


def format_plate(value):
    """
    Display form of a plate number.

    'QM3601N' -> 'QM 3601 N'. Values that already contain spaces only get
    their whitespace collapsed; values that do not look like a plate are
    returned unchanged.
    """
    raw = str(value or '').strip()
    if not raw:
        return ''
    if re.search(r'\s', raw):
        return re.sub(r'\s+', ' ', raw.upper())

    match = PLATE_PARTS.match(normalize_plate(raw))
    if not match:
        return raw
    return ' '.join(part for part in match.groups() if part)


def normalize_model(raw):
    """Map free-text car type/model to a canonical 'Make Model' label."""
    if not raw:
        return 'Unknown'
    text = str(raw).strip()
    if not text:
        return 'Unknown'

    lowered = text.lower()
    for keyword, label in MODEL_KEYWORDS:
        if keyword in lowered:
            return label

    return ' '.join(word[:1].upper() + word[1:].lower() for word in text.split())


def build_car_label(make, model):
    """'Perodua' + 'Myvi' -> 'Perodua Myvi'; missing parts are skipped."""
    return ' '.join(part.strip() for part in (make or '', model or '') if part and part.strip())
