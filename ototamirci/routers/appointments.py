from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import Identity, get_current_identity
from ..database import get_db
from ..responses import success
from ..services import appointments

router = APIRouter(prefix="/appointments", tags=["Appointments"])


@router.get("", response_model=schemas.Envelope[List[schemas.AppointmentOut]])
def get_appointments(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    items = appointments.list_appointments(db, identity)
    return success([schemas.AppointmentOut.model_validate(a) for a in items])


@router.get("/{appointment_id}", response_model=schemas.Envelope[schemas.AppointmentOut])
def get_appointment(
    appointment_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    appointment = appointments.get_appointment(db, identity, appointment_id)
    return success(schemas.AppointmentOut.model_validate(appointment))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=schemas.Envelope[schemas.AppointmentOut])
def create_appointment(
    req: schemas.AppointmentCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    appointment = appointments.create_appointment(
        db,
        identity,
        shop_id=req.shop_id,
        car_model=req.car_model,
        appointment_date=req.appointment_date,
        service_type=req.service_type,
        note=req.note,
    )
    return success(schemas.AppointmentOut.model_validate(appointment))


@router.patch("/{appointment_id}", response_model=schemas.Envelope[schemas.AppointmentOut])
def update_status(
    appointment_id: int,
    req: schemas.AppointmentStatusUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    appointment = appointments.update_status(db, identity, appointment_id, req.status)
    return success(schemas.AppointmentOut.model_validate(appointment))


@router.delete("/{appointment_id}")
def delete_appointment(
    appointment_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    appointments.delete_appointment(db, identity, appointment_id)
    return success(message="Appointment deleted successfully")
