"""
Agreements Repository - Rental agreements, their history and customer lookups.

Agreements are never hard-deleted: a delete sets status 'Deleted' and every
mutation writes a before/after entry to agreement_logs.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Dict, Optional, Any
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from auth import has_permission
from database.models import Agreement, AgreementLog, Car
from services.audit_logger import AuditLogger
from services.time_windows import to_utc_naive, from_kl, to_iso_z
from app.utils.helpers import as_str, to_money_string, to_int_or_none
from app.utils.phone import normalize_phone_international, build_whatsapp_url
from app.utils.vehicles import build_car_label, format_plate
from validators import (
    ValidationError, NotFoundError, PermissionDenied, require_fields, is_date_key
)

logger = logging.getLogger(__name__)

# Status values that take an agreement out of revenue and reminders
EXCLUDED_STATUSES = ('Cancelled', 'Deleted')
DEFAULT_STATUS = 'New'
EDITED_STATUS = 'Editted'

DEFAULT_PAGE_SIZE = 20
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 50

REQUIRED_FIELDS = {
    'customer_name': "Customer name required",
    'id_number': "IC/Passport required",
    'mobile': "Mobile required",
    'car_id': "Car selection required",
    'plate_number': "Plate required",
    'car_type': "Car model required",
    'date_start_iso': "Start date/time required",
    'date_end_iso': "End date/time required",
    'total_price': "Total price required",
}

AGREEMENT_MESSAGE = "Your rental agreement with JRV Car Rental is available here: {url}"
GENERIC_MESSAGE = "Hi {name}, thank you for renting with JRV Car Rental."


def _kl_day_start(date_key: str) -> datetime:
    return from_kl(datetime.strptime(date_key, '%Y-%m-%d'))


class AgreementsRepository:
    """Repository for rental agreements."""

    def __init__(self, session: Session, actor: Dict = None):
        self.session = session
        self.actor = actor or {}
        self.audit = AuditLogger(session, self.actor.get('id'), self.actor.get('email'))

    # =========================================================================
    # READS
    # =========================================================================

    def _cars_with_labels(self) -> List[Car]:
        return self.session.query(Car).options(joinedload(Car.catalog)).all()

    def _flatten(self, agreement: Agreement) -> Dict:
        data = agreement.to_dict()
        car = agreement.car
        data['plate_number'] = (car.plate_number if car else None) or agreement.plate_number or '—'
        data['car_label'] = (build_car_label(car.make, car.model) if car else '') or 'Unknown'
        if car and not data.get('catalog_id'):
            data['catalog_id'] = car.catalog_id
        return data

    def get_agreement(self, agreement_id: str) -> Dict:
        agreement = self.session.query(Agreement).options(
            joinedload(Agreement.car).joinedload(Car.catalog)
        ).filter(Agreement.id == agreement_id).first()
        if not agreement:
            raise NotFoundError("Agreement not found")
        return self._flatten(agreement)

    def filter_options(self) -> Dict[str, List[Dict]]:
        """Plate and model choices for the list filters."""
        plates, models = set(), set()
        for car in self._cars_with_labels():
            if (car.plate_number or '').strip():
                plates.add(car.plate_number.strip())
            label = build_car_label(car.make, car.model)
            if label:
                models.add(label)
        return {
            'plates': [{'value': p, 'label': format_plate(p)} for p in sorted(plates)],
            'models': [{'value': m, 'label': m} for m in sorted(models)],
        }

    def list_agreements(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE, q: str = None,
                        status: str = None, plate: str = None, model: str = None,
                        actor: str = None, date: str = None, end_date: str = None) -> Dict:
        """
        Paged agreement list, newest rental first.

        Without an explicit status, Deleted agreements are hidden.
        """
        page = max(1, page or 1)
        limit = min(MAX_PAGE_SIZE, max(MIN_PAGE_SIZE, limit or DEFAULT_PAGE_SIZE))
        filters = self.filter_options()
        empty = {'page': page, 'limit': limit, 'total': 0, 'rows': [], 'filters': filters}

        query = self.session.query(Agreement).options(
            joinedload(Agreement.car).joinedload(Car.catalog)
        )

        if status:
            query = query.filter(Agreement.status == status)
        else:
            query = query.filter(or_(Agreement.status.is_(None), Agreement.status != 'Deleted'))

        if plate or model:
            car_ids = None
            cars = self._cars_with_labels()
            if plate:
                needle = plate.strip().lower()
                car_ids = {c.id for c in cars if needle in (c.plate_number or '').lower()}
            if model:
                model_ids = {c.id for c in cars if build_car_label(c.make, c.model) == model}
                car_ids = model_ids if car_ids is None else car_ids & model_ids
            if not car_ids:
                return empty
            query = query.filter(Agreement.car_id.in_(car_ids))

        if actor:
            ids = [row[0] for row in self.session.query(AgreementLog.agreement_id).filter(
                AgreementLog.actor_email.ilike(f"%{actor.strip()}%")
            ).distinct().all()]
            if not ids:
                return empty
            query = query.filter(Agreement.id.in_(ids))

        if date and is_date_key(date):
            day_start = _kl_day_start(date)
            query = query.filter(
                Agreement.date_start >= day_start,
                Agreement.date_start < day_start + timedelta(days=1)
            )

        if end_date and is_date_key(end_date):
            query = query.filter(Agreement.date_end >= _kl_day_start(end_date))

        if q:
            like = f"%{q.strip()}%"
            query = query.filter(or_(
                Agreement.customer_name.ilike(like),
                Agreement.id_number.ilike(like),
                Agreement.mobile.ilike(like),
                Agreement.status.ilike(like)
            ))

        total = query.count()
        rows = query.order_by(
            Agreement.date_start.desc(),
            Agreement.date_end.desc(),
            Agreement.updated_at.desc()
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            'page': page,
            'limit': limit,
            'total': total,
            'rows': [self._flatten(a) for a in rows],
            'filters': filters
        }

    # =========================================================================
    # WRITES
    # =========================================================================

    def _build_fields(self, payload: Dict, existing: Optional[Agreement] = None) -> Dict[str, Any]:
        require_fields(payload, REQUIRED_FIELDS)

        mobile = normalize_phone_international(payload.get('mobile'))
        date_start = to_utc_naive(payload.get('date_start_iso'))
        if date_start is None:
            raise ValidationError("Invalid start date/time", field='date_start_iso')
        date_end = to_utc_naive(payload.get('date_end_iso'))
        if date_end is None:
            raise ValidationError("Invalid end date/time", field='date_end_iso')

        car_id = as_str(payload.get('car_id'))
        car = self.session.query(Car).filter(Car.id == car_id).first()
        if not car:
            raise ValidationError("Car selection required", field='car_id')

        catalog_id = as_str(payload.get('catalog_id')) or car.catalog_id
        if existing is not None and not catalog_id:
            catalog_id = existing.catalog_id

        duration = to_int_or_none(payload.get('booking_duration_days'))
        if duration is None and existing is not None:
            duration = existing.booking_duration_days

        deposit = payload.get('deposit_price')
        if deposit in (None, '') and existing is not None:
            deposit = existing.deposit_price
        agreement_url = as_str(payload.get('agreement_url')) or (
            existing.agreement_url if existing is not None else None
        )
        customer_name = as_str(payload.get('customer_name'))

        if agreement_url:
            message = AGREEMENT_MESSAGE.format(url=agreement_url)
        else:
            message = GENERIC_MESSAGE.format(name=customer_name)

        return {
            'customer_name': customer_name,
            'id_number': as_str(payload.get('id_number')),
            'mobile': mobile.lstrip('+'),
            'ic_url': as_str(payload.get('ic_url')) or (existing.ic_url if existing is not None else None),
            'car_id': car.id,
            'catalog_id': catalog_id or None,
            'plate_number': as_str(payload.get('plate_number')),
            'car_type': as_str(payload.get('car_type')),
            'date_start': date_start,
            'date_end': date_end,
            'booking_duration_days': duration,
            'total_price': Decimal(to_money_string(payload.get('total_price'))),
            'deposit_price': Decimal(to_money_string(deposit or 0)),
            'agreement_url': agreement_url or None,
            'whatsapp_url': build_whatsapp_url(mobile, message),
        }

    def create_agreement(self, payload: Dict) -> Dict:
        fields = self._build_fields(payload or {})
        fields['status'] = as_str(payload.get('status')) or DEFAULT_STATUS
        fields['creator_email'] = as_str(payload.get('agent_email')) or self.actor.get('email')

        agreement = Agreement(**fields)
        self.session.add(agreement)
        self.session.flush()

        self.audit.log_agreement(agreement.id, 'created', before=None, after={
            'car_id': agreement.car_id,
            'catalog_id': agreement.catalog_id,
            'plate_number': agreement.plate_number,
            'car_type': agreement.car_type,
            'agreement_url': agreement.agreement_url,
            'whatsapp_url': agreement.whatsapp_url,
        })
        logger.info(f"Created agreement: {agreement.id}")
        return agreement.to_dict()

    def resolve_status(self, requested: Optional[str], existing_status: Optional[str]) -> str:
        """
        Status stored on update.

        Non-superadmins cannot pick a status: their edits become 'Editted',
        except that they may cancel.
        """
        status = as_str(requested) or as_str(existing_status) or EDITED_STATUS
        if self.actor.get('role') != 'superadmin' and status != 'Cancelled':
            status = EDITED_STATUS
        return status

    def update_agreement(self, payload: Dict) -> Dict:
        payload = payload or {}
        agreement_id = as_str(payload.get('id'))
        if not agreement_id:
            raise ValidationError("Missing agreement id", field='id')
        agreement = self.session.query(Agreement).filter(Agreement.id == agreement_id).first()
        if not agreement:
            raise NotFoundError("Agreement not found")

        before = agreement.to_dict()
        fields = self._build_fields(payload, existing=agreement)
        fields['status'] = self.resolve_status(payload.get('status'), agreement.status)

        for key, value in fields.items():
            setattr(agreement, key, value)
        agreement.updated_at = datetime.utcnow()
        self.session.flush()

        after = dict(fields)
        after['date_start'] = to_iso_z(fields['date_start'])
        after['date_end'] = to_iso_z(fields['date_end'])
        self.audit.log_agreement(agreement.id, 'updated_regenerated', before=before, after=after)
        logger.info(f"Updated agreement: {agreement.id}")
        return agreement.to_dict()

    def soft_delete(self, agreement_id: str) -> Dict:
        if not has_permission(self.actor.get('role'), 'deleteAgreements'):
            raise PermissionDenied("Forbidden")
        if not agreement_id:
            raise ValidationError("Missing agreement id", field='id')
        agreement = self.session.query(Agreement).filter(Agreement.id == agreement_id).first()
        if not agreement:
            raise NotFoundError("Agreement not found")

        before = agreement.to_dict()
        agreement.status = 'Deleted'
        agreement.updated_at = datetime.utcnow()
        self.session.flush()

        self.audit.log_agreement(agreement.id, 'soft_deleted', before=before, after={'status': 'Deleted'})
        logger.info(f"Soft-deleted agreement: {agreement.id}")
        return agreement.to_dict()

    # =========================================================================
    # CUSTOMER LOOKUPS
    # =========================================================================

    def check_history(self, ic: str = None, mobile: str = None) -> Dict:
        """Most recent agreement of a returning customer, skipping blank and excluded statuses."""
        ic, mobile = as_str(ic), as_str(mobile)
        if not ic and not mobile:
            return {'found': False, 'agreement': None}

        conditions = []
        if ic:
            conditions.append(Agreement.id_number == ic)
        if mobile:
            conditions.append(Agreement.mobile == mobile)

        agreement = self.session.query(Agreement).filter(
            or_(*conditions),
            Agreement.status.isnot(None),
            Agreement.status.notin_(EXCLUDED_STATUSES)
        ).order_by(Agreement.created_at.desc()).first()

        if not agreement:
            return {'found': False, 'agreement': None}
        return {'found': True, 'agreement': agreement.to_dict()}

    def previous_agreements(self, ic: str = None, mobile: str = None, limit: int = 3) -> List[Dict]:
        ic, mobile = as_str(ic), as_str(mobile)
        if not ic and not mobile:
            raise ValidationError("Missing params")

        query = self.session.query(Agreement).options(joinedload(Agreement.car))
        if ic:
            query = query.filter(Agreement.id_number == ic)
        else:
            query = query.filter(Agreement.mobile == mobile)

        rows = query.order_by(Agreement.date_start.desc()).limit(limit).all()
        return [
            {
                'id': a.id,
                'date_start': a.date_start.isoformat() if a.date_start else None,
                'status': a.status,
                'total_price': float(a.total_price) if a.total_price is not None else None,
                'plate': (a.car.plate_number if a.car else None) or a.plate_number
            }
            for a in rows
        ]

    def list_logs(self, agreement_id: str) -> List[Dict]:
        if not agreement_id:
            raise ValidationError("Missing agreement_id", field='agreement_id')
        return self.audit.get_agreement_history(agreement_id, limit=200)
