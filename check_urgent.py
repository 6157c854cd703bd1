#!/usr/bin/env python3
"""
Print cars whose insurance or roadtax expires within a day (or already has)
Run against the production database: DATABASE_URL=... python check_urgent.py
"""

import sys
import logging

from database.connection import get_db_session, is_db_configured
from services.reminder_service import ReminderService


def check_urgent():
    """Print urgent insurance/roadtax expiries and return how many were found"""
    if not is_db_configured():
        print("❌ DATABASE_URL not set. Database is not configured.")
        return None

    with get_db_session() as session:
        urgent = ReminderService(session).find_urgent()

    for item in urgent:
        parts = []
        if 'insurance_days' in item:
            parts.append(f"insurance {item['insurance_expiry']} ({item['insurance_days']}d)")
        if 'roadtax_days' in item:
            parts.append(f"roadtax {item['roadtax_expiry']} ({item['roadtax_days']}d)")
        name = f"{item.get('make') or ''} {item.get('model') or ''}".strip()
        print(f"⚠️  {item['plate_number']} {name}: {', '.join(parts)}")

    print(f"Urgent count: {len(urgent)}")
    return len(urgent)


if __name__ == '__main__':
    logging.basicConfig(level=logging.WARNING)
    count = check_urgent()
    sys.exit(1 if count is None else 0)
