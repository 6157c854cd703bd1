"""
Services package for the JRV car rental admin backend.
Contains repository classes for database access and the scheduled checks.
"""

from services.admin_users_repository import AdminUsersRepository
from services.agreements_repository import AgreementsRepository
from services.blacklist_repository import BlacklistRepository
from services.fleet_repository import FleetRepository
from services.marketing_repository import MarketingRepository
from services.revenue_service import RevenueService
from services.reminder_service import ReminderService

__all__ = [
    'AdminUsersRepository',
    'AgreementsRepository',
    'BlacklistRepository',
    'FleetRepository',
    'MarketingRepository',
    'RevenueService',
    'ReminderService',
]
