"""
Appointment lifecycle.

pending -> confirmed | rejected, confirmed -> completed. ``rejected`` and
``completed`` are terminal. Unless STRICT_STATUS_TRANSITIONS is enabled, the
shop owner and the creating customer may both set any of the four statuses.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .. import config
from ..exceptions import AuthorizationError, NotFoundError, StoreError, ValidationError
from ..models import Appointment, AppointmentStatus, Shop
from ..policy import Action, authorize
from ..utils import as_utc

logger = logging.getLogger(__name__)

TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.CONFIRMED, AppointmentStatus.REJECTED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.COMPLETED},
    AppointmentStatus.REJECTED: set(),
    AppointmentStatus.COMPLETED: set(),
}
TERMINAL_STATUSES = {status for status, targets in TRANSITIONS.items() if not targets}


def can_transition(current, target) -> bool:
    return AppointmentStatus(target) in TRANSITIONS[AppointmentStatus(current)]


def _query(db: Session):
    return db.query(Appointment).options(joinedload(Appointment.shop), joinedload(Appointment.user))


def _commit(db: Session, action: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Failed to %s appointment", action)
        raise StoreError() from e


def list_appointments(db: Session, identity) -> list[Appointment]:
    query = _query(db)
    if identity.is_customer:
        query = query.filter(Appointment.user_id == identity.id)
    else:
        query = query.join(Shop, Appointment.shop_id == Shop.id).filter(Shop.owner_id == identity.id)
    return query.order_by(Appointment.appointment_date.desc(), Appointment.id.desc()).all()


def _get(db: Session, appointment_id: int) -> Appointment:
    appointment = _query(db).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def get_appointment(db: Session, identity, appointment_id: int) -> Appointment:
    appointment = _get(db, appointment_id)
    authorize(identity, Action.APPOINTMENT_VIEW, appointment)
    return appointment


def create_appointment(
    db: Session,
    identity,
    shop_id: int,
    car_model: str,
    appointment_date: datetime,
    service_type: str,
    note: Optional[str] = None,
) -> Appointment:
    authorize(identity, Action.APPOINTMENT_CREATE)

    shop = db.query(Shop).filter(Shop.id == shop_id).first()
    if not shop:
        raise NotFoundError("Shop not found")
    if not shop.is_open:
        raise ValidationError("Shop is not accepting appointments at this time")

    appointment = Appointment(
        shop_id=shop_id,
        user_id=identity.id,
        car_model=car_model,
        appointment_date=as_utc(appointment_date),
        service_type=service_type,
        note=note,
        status=AppointmentStatus.PENDING.value,
    )
    db.add(appointment)
    _commit(db, "create")
    logger.info("Appointment %s booked by user %s at shop %s", appointment.id, identity.id, shop_id)
    return _get(db, appointment.id)


def update_status(db: Session, identity, appointment_id: int, status) -> Appointment:
    try:
        target = AppointmentStatus(status)
    except ValueError as e:
        raise ValidationError("Invalid status") from e

    appointment = _get(db, appointment_id)
    authorize(identity, Action.APPOINTMENT_UPDATE_STATUS, appointment)

    if config.STRICT_STATUS_TRANSITIONS and target.value != appointment.status:
        if appointment.shop.owner_id != identity.id:
            raise AuthorizationError("Only the shop owner can change the appointment status")
        if not can_transition(appointment.status, target):
            raise ValidationError(f"Cannot change status from {appointment.status} to {target.value}")

    previous = appointment.status
    appointment.status = target.value
    _commit(db, "update")
    logger.info("Appointment %s: %s -> %s by user %s", appointment_id, previous, target.value, identity.id)
    return _get(db, appointment_id)


def delete_appointment(db: Session, identity, appointment_id: int) -> None:
    appointment = _get(db, appointment_id)
    authorize(identity, Action.APPOINTMENT_DELETE, appointment)
    db.delete(appointment)
    _commit(db, "delete")
    logger.info("Appointment %s deleted by user %s", appointment_id, identity.id)
