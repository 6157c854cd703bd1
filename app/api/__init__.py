"""
API Blueprints Package

All HTTP route handlers for the application, organized by domain.
Each module defines a Flask Blueprint registered in app/__init__.py.

BLUEPRINT REFERENCE:
====================

Rentals:
- agreements.py   : Rental agreements, returning customers, change log
- cars.py         : Fleet, make/model catalog, maintenance, insurance
- blacklist.py    : Blacklisted IC/passport and phone numbers
- dashboard.py    : Revenue dashboard, reports, fleet status

Marketing:
- marketing.py    : Landing pages, social posts, marketing tracker
- site_events.py  : Website hit tracking and traffic analytics

Other:
- auth_routes.py  : Authentication (/api/auth/*)
- admin.py        : Superadmin management of admin accounts
- cron.py         : Slack checks for external schedulers
- scheduler.py    : In-process scheduler status
"""

# All blueprints are imported and registered in app/__init__.py
# This file serves as documentation only

__all__ = []
