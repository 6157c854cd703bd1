"""
Fleet Repository - Cars, the make/model catalog and maintenance records.
"""

import logging
import math
from typing import List, Dict, Any
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from auth import has_permission
from database.models import AdminUser, Car, CarAuditLog, CarCatalog
from services.audit_logger import AuditLogger
from services.time_windows import to_utc_naive, days_until
from app.utils.helpers import as_str, to_num_or_null, to_int_or_none, to_bool, safe_json_list, is_uuid
from app.utils.vehicles import build_car_label
from validators import ValidationError, NotFoundError, PermissionDenied

logger = logging.getLogger(__name__)

MAX_CAR_IMAGES = 4

PRICE_FIELDS = ['daily_price', 'price_3_days', 'weekly_price', 'monthly_price', 'deposit']
TEXT_FIELDS = ['body_type', 'transmission', 'color', 'primary_image_url', 'fuel_type', 'notes']
FEATURE_FLAGS = ['bluetooth', 'smoking_allowed', 'aux', 'usb', 'android_auto', 'apple_carplay']
MILEAGE_TARGETS = ['next_service_mileage', 'next_gear_oil_mileage',
                   'next_tyre_mileage', 'next_brake_pad_mileage']


def _parse_date(value):
    dt = to_utc_naive(value)
    return dt.date() if dt else None


def clean_car_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalise a car form payload into column values.

    Raises:
        ValidationError: plate or catalog missing
    """
    plate = as_str(payload.get('plate_number'))
    if not plate:
        raise ValidationError("Plate number required", field='plate_number')
    catalog_id = as_str(payload.get('catalog_id'))
    if not catalog_id:
        raise ValidationError("Catalog (make/model) required", field='catalog_id')

    clean = {
        'plate_number': plate,
        'catalog_id': catalog_id,
        'status': as_str(payload.get('status')) or 'available',
        'location': as_str(payload.get('location')) or 'Seremban',
        'seats': to_int_or_none(payload.get('seats')),
        'images': safe_json_list(payload.get('images'))[:MAX_CAR_IMAGES],
        'track_insurance': to_bool(payload['track_insurance']) if 'track_insurance' in payload else True,
        'insurance_expiry': _parse_date(payload.get('insurance_expiry')),
        'roadtax_expiry': _parse_date(payload.get('roadtax_expiry')),
    }
    for field in PRICE_FIELDS:
        clean[field] = to_num_or_null(payload.get(field))
    for field in TEXT_FIELDS:
        clean[field] = as_str(payload.get(field)) or None
    for field in FEATURE_FLAGS:
        clean[field] = to_bool(payload.get(field))
    if 'current_mileage' in payload:
        clean['current_mileage'] = to_num_or_null(payload.get('current_mileage'))
    for field in MILEAGE_TARGETS:
        if field in payload:
            clean[field] = to_num_or_null(payload.get(field))
    return clean


def evaluate_maintenance(car: Dict[str, Any], warn_km: int = 2000):
    """
    Compare mileage with the next-service targets.

    Returns:
        (issues, is_overdue): human readable issue strings and whether any
        target has been passed
    """
    current = to_num_or_null(car.get('current_mileage')) or 0
    checks = [
        ('Service', car.get('next_service_mileage')),
        ('Gear Oil', car.get('next_gear_oil_mileage')),
        ('Tyres', car.get('next_tyre_mileage')),
        ('Brake Pads', car.get('next_brake_pad_mileage')),
    ]
    issues = []
    overdue = False
    for label, target in checks:
        target = to_num_or_null(target)
        if not target:
            continue
        diff = int(round(target - current))
        if diff <= 0:
            issues.append(f"{label} OVERDUE ({abs(diff)}km)")
            overdue = True
        elif diff <= warn_km:
            issues.append(f"{label} due in {diff}km")
    return issues, overdue


class FleetRepository:
    """Repository for cars, catalog and maintenance."""

    def __init__(self, session: Session, actor: Dict = None):
        self.session = session
        self.actor = actor or {}
        self.audit = AuditLogger(session, self.actor.get('id'), self.actor.get('email'))

    # =========================================================================
    # CATALOG
    # =========================================================================

    def list_catalog(self) -> List[Dict]:
        rows = self.session.query(CarCatalog).filter(
            CarCatalog.is_active.is_(True)
        ).order_by(CarCatalog.model).all()
        return [{'id': r.id, 'make': r.make, 'model': r.model} for r in rows]

    def create_catalog(self, make: str, model: str, default_images=None) -> Dict:
        make, model = as_str(make), as_str(model)
        if not make or not model:
            raise ValidationError("Make and Model are required.")
        entry = CarCatalog(
            make=make,
            model=model,
            default_images=safe_json_list(default_images),
            is_active=True
        )
        self.session.add(entry)
        self.session.flush()
        logger.info(f"Created catalog entry: {make} {model}")
        return entry.to_dict()

    def update_catalog(self, catalog_id: str, make: str, model: str, default_images=None) -> Dict:
        make, model = as_str(make), as_str(model)
        if not catalog_id or not make or not model:
            raise ValidationError("ID, Make and Model are required.")
        entry = self.session.query(CarCatalog).filter(CarCatalog.id == catalog_id).first()
        if not entry:
            raise NotFoundError("Catalog entry not found")
        entry.make = make
        entry.model = model
        if default_images is not None:
            entry.default_images = safe_json_list(default_images)
        self.session.flush()
        return entry.to_dict()

    # =========================================================================
    # CARS
    # =========================================================================

    def _car_query(self):
        return self.session.query(Car).options(joinedload(Car.catalog))

    def _car_dict(self, car: Car) -> Dict:
        data = car.to_dict()
        data['car_label'] = build_car_label(car.make, car.model)
        return data

    def list_cars(self, status: str = None) -> List[Dict]:
        query = self._car_query()
        if status:
            query = query.filter(Car.status == status)
        return [self._car_dict(c) for c in query.order_by(Car.plate_number).all()]

    def dropdown(self) -> List[Dict]:
        cars = self._car_query().order_by(Car.plate_number).all()
        return [
            {
                'id': c.id,
                'plate_number': c.plate_number,
                'catalog_id': c.catalog_id,
                'car_label': build_car_label(c.make, c.model)
            }
            for c in cars if (c.plate_number or '').strip()
        ]

    def _get_car_row(self, car_id: str) -> Car:
        if not car_id:
            raise ValidationError("Missing car id", field='id')
        car = self._car_query().filter(Car.id == car_id).first()
        if not car:
            raise NotFoundError("Car not found")
        return car

    def get_car(self, car_id: str) -> Dict:
        return self._car_dict(self._get_car_row(car_id))

    def _ensure_catalog(self, catalog_id: str):
        exists = self.session.query(CarCatalog.id).filter(CarCatalog.id == catalog_id).first()
        if not exists:
            raise ValidationError("Catalog entry not found", field='catalog_id')

    def create_car(self, payload: Dict) -> Dict:
        if not payload:
            raise ValidationError("Missing payload")
        clean = clean_car_payload(payload)
        self._ensure_catalog(clean['catalog_id'])

        car = Car(**clean)
        self.session.add(car)
        self.session.flush()
        self.session.refresh(car)

        self.audit.log_car('CREATE_CAR', car.id, {'after': car.to_dict()})
        logger.info(f"Created car: {car.plate_number}")
        return self._car_dict(car)

    def update_car(self, car_id: str, payload: Dict) -> Dict:
        if not payload:
            raise ValidationError("Missing payload")
        car = self._get_car_row(car_id)
        clean = clean_car_payload(payload)
        self._ensure_catalog(clean['catalog_id'])

        before = car.to_dict()
        for key, value in clean.items():
            setattr(car, key, value)
        self.session.flush()
        self.session.refresh(car)

        self.audit.log_car('UPDATE_CAR', car.id, {'before': before, 'after': car.to_dict()})
        logger.info(f"Updated car: {car.plate_number}")
        return self._car_dict(car)

    def delete_car(self, car_id: str) -> bool:
        if not has_permission(self.actor.get('role'), 'deleteCars'):
            raise PermissionDenied("Forbidden")
        car = self._get_car_row(car_id)
        before = car.to_dict()
        self.session.delete(car)
        self.session.flush()

        self.audit.log_car('DELETE_CAR', car_id, {'before': before})
        logger.info(f"Deleted car: {before.get('plate_number')}")
        return True

    # =========================================================================
    # MAINTENANCE & DOCUMENTS
    # =========================================================================

    def update_maintenance(self, car_id: str, data: Dict) -> Dict:
        if not car_id:
            raise ValidationError("Missing car id", field='id')
        current = to_num_or_null(data.get('current_mileage'))
        if current is None:
            raise ValidationError("Invalid current mileage", field='current_mileage')
        car = self._get_car_row(car_id)

        old = {'current_mileage': car.current_mileage}
        new = {'current_mileage': current}
        for field in MILEAGE_TARGETS:
            old[field] = getattr(car, field)
            new[field] = to_num_or_null(data.get(field))

        for key, value in new.items():
            setattr(car, key, value)
        self.session.flush()

        self.audit.log_car('UPDATE_MAINTENANCE', car.id, {'old': old, 'new': new})
        return self._car_dict(car)

    def list_maintenance(self) -> List[Dict]:
        """Maintenance status of every car that is not inactive."""
        cars = self._car_query().filter(Car.status != 'inactive').order_by(Car.plate_number).all()
        result = []
        for car in cars:
            data = self._car_dict(car)
            issues, overdue = evaluate_maintenance(data)
            data['issues'] = issues
            data['is_overdue'] = overdue
            result.append(data)
        return result

    def list_insurance(self, today=None) -> List[Dict]:
        """Insurance and roadtax expiry per car with days remaining."""
        cars = self._car_query().filter(Car.status != 'inactive').order_by(Car.plate_number).all()
        return [
            {
                'id': c.id,
                'plate_number': c.plate_number,
                'make': c.make,
                'model': c.model,
                'track_insurance': c.track_insurance,
                'insurance_expiry': c.insurance_expiry.isoformat() if c.insurance_expiry else None,
                'insurance_days': days_until(c.insurance_expiry, today),
                'roadtax_expiry': c.roadtax_expiry.isoformat() if c.roadtax_expiry else None,
                'roadtax_days': days_until(c.roadtax_expiry, today),
            }
            for c in cars
        ]

    # =========================================================================
    # CHANGE LOG
    # =========================================================================

    def list_car_logs(self, q: str = None, action: str = None, car_id: str = None,
                      actor_user_id: str = None, page: int = 1, page_size: int = 25) -> Dict:
        """
        Car audit trail, newest first, with the actor's email and the plate.

        A UUID in q matches the car or the actor; other text matches the
        action. The actor filter only offers admins who appear in the log.
        """
        query = self.session.query(CarAuditLog)
        if action:
            query = query.filter(CarAuditLog.action == action)
        if car_id:
            query = query.filter(CarAuditLog.car_id == car_id)
        if actor_user_id:
            query = query.filter(CarAuditLog.actor_user_id == actor_user_id)
        q = as_str(q)
        if q and is_uuid(q):
            query = query.filter(or_(CarAuditLog.car_id == q, CarAuditLog.actor_user_id == q))
        elif q:
            query = query.filter(CarAuditLog.action.ilike(f'%{q}%'))

        total = query.count()
        logs = query.order_by(CarAuditLog.created_at.desc()).offset(
            (page - 1) * page_size
        ).limit(page_size).all()

        logged_actors = [uid for (uid,) in self.session.query(CarAuditLog.actor_user_id).filter(
            CarAuditLog.actor_user_id.isnot(None)
        ).distinct()]
        actors = self.session.query(AdminUser.user_id, AdminUser.email).filter(
            AdminUser.user_id.in_(logged_actors)
        ).order_by(AdminUser.email).all()
        emails = dict(actors)
        cars = self.session.query(Car.id, Car.plate_number).order_by(Car.created_at.desc()).all()
        plates = dict(cars)

        rows = []
        for log in logs:
            row = log.to_dict()
            row['actor_email'] = emails.get(log.actor_user_id)
            row['plate_number'] = plates.get(log.car_id)
            rows.append(row)

        return {
            'rows': rows,
            'total': total,
            'page': page,
            'page_size': page_size,
            'total_pages': max(1, math.ceil(total / page_size)),
            'options': {
                'actors': [{'user_id': uid, 'email': email} for uid, email in actors],
                'cars': [{'id': cid, 'plate_number': plate} for cid, plate in cars],
            },
        }
