"""
Blacklist Repository - Customers flagged by IC/passport or phone number.
"""

import logging
from typing import List, Dict
from sqlalchemy.orm import Session

from database.models import BlacklistEntry
from app.utils.helpers import as_str, clean_identifier
from validators import ValidationError, NotFoundError

logger = logging.getLogger(__name__)


class BlacklistRepository:
    """Repository for blacklist entries."""

    def __init__(self, session: Session):
        self.session = session

    def list_entries(self) -> List[Dict]:
        rows = self.session.query(BlacklistEntry).order_by(BlacklistEntry.created_at.desc()).all()
        return [r.to_dict() for r in rows]

    def create_entry(self, entry_type: str, value: str, reason: str = None) -> Dict:
        entry_type = as_str(entry_type)
        if not entry_type:
            raise ValidationError("Type required", field='type')
        cleaned = clean_identifier(value)
        if not cleaned:
            raise ValidationError("Value required", field='value')

        entry = BlacklistEntry(type=entry_type, value=cleaned, reason=as_str(reason) or None)
        self.session.add(entry)
        self.session.flush()
        logger.info(f"Blacklisted {entry_type}: {cleaned}")
        return entry.to_dict()

    def delete_entry(self, entry_id: str) -> bool:
        entry = self.session.query(BlacklistEntry).filter(BlacklistEntry.id == entry_id).first()
        if not entry:
            raise NotFoundError("Entry not found")
        self.session.delete(entry)
        self.session.flush()
        return True

    def check(self, entry_type: str, value: str) -> Dict:
        """
        Is this IC/phone blacklisted?

        Both the query and the stored values are reduced to letters, digits
        and '+', so '900101-14-5555' matches a stored '900101145555' and
        the other way around. Letter case is ignored.
        """
        needle = clean_identifier(value).lower()
        if not needle:
            return {'blacklisted': False, 'entry': None}

        candidates = self.session.query(BlacklistEntry).filter(
            BlacklistEntry.type == as_str(entry_type)
        ).all()
        for entry in candidates:
            if needle in clean_identifier(entry.value).lower():
                return {'blacklisted': True, 'entry': entry.to_dict()}
        return {'blacklisted': False, 'entry': None}
