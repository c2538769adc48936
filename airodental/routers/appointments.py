from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload

from ..database import get_db
from ..deps import get_availability_service, get_clock, get_policy, get_repository
from ..exceptions import DependencyUnavailable, PolicyViolation, SchedulingError, SlotConflict, ValidationError
from .. import models, schemas
from ..services.availability import AvailabilityService, build_window
from ..services.calendar_policy import CalendarPolicy
from ..services.repository import AppointmentRepository
from ..services.timeutils import to_utc

router = APIRouter(prefix="/api", tags=["appointments"])

# target status -> statuses it may be reached from
_TRANSITIONS = {
    models.AppointmentStatus.CONFIRMED: {models.AppointmentStatus.SCHEDULED},
    models.AppointmentStatus.CANCELLED: set(models.ACTIVE_STATUSES),
    models.AppointmentStatus.COMPLETED: set(models.ACTIVE_STATUSES),
}


def _http_error(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, (ValidationError, PolicyViolation)):
        return HTTPException(status_code=400, detail=exc.public_message)
    if isinstance(exc, SlotConflict):
        return HTTPException(status_code=409, detail=exc.public_message)
    if isinstance(exc, DependencyUnavailable):
        return HTTPException(status_code=503, detail=exc.public_message)
    return HTTPException(status_code=500, detail=exc.public_message)


def _get_or_404(db: Session, appointment_id: int) -> models.Appointment:
    appt = (
        db.query(models.Appointment)
        .options(joinedload(models.Appointment.patient))
        .filter(models.Appointment.id == appointment_id)
        .first()
    )
    if not appt:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appt


@router.get("/availability", response_model=schemas.SlotsResponse)
def list_availability(
    start: str = Query(..., description="ISO date or datetime"),
    end: str = Query(..., description="ISO date or datetime"),
    service: AvailabilityService = Depends(get_availability_service),
    policy: CalendarPolicy = Depends(get_policy),
):
    """Every free slot between start and end, for the dashboard calendar."""
    try:
        window = build_window(start, end, policy)
        slots = service.list_free(window)
    except SchedulingError as e:
        raise _http_error(e)
    return schemas.SlotsResponse(timezone=str(policy.tz), slots=slots)


@router.get("/appointments", response_model=list[schemas.AppointmentOut])
def list_appointments(db: Session = Depends(get_db)):
    return (
        db.query(models.Appointment)
        .options(joinedload(models.Appointment.patient))
        .order_by(models.Appointment.start_at.asc())
        .all()
    )


@router.post("/appointments", response_model=schemas.AppointmentOut, status_code=201)
def create_appointment(
    req: schemas.AppointmentIn,
    db: Session = Depends(get_db),
    repo: AppointmentRepository = Depends(get_repository),
    policy: CalendarPolicy = Depends(get_policy),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Staff booking: same calendar policy and slot uniqueness as the voice agent."""
    if db.get(models.Patient, req.patient_id) is None:
        raise HTTPException(status_code=404, detail="Patient not found")

    # Naive times from the dashboard are practice-local
    start_at = to_utc(req.start_at, policy.tz)
    eligibility = policy.check(start_at, clock())
    if not eligibility.eligible:
        raise HTTPException(status_code=400, detail=eligibility.reason)

    try:
        if repo.find_active_at(start_at) is not None:
            raise SlotConflict()
        appt = repo.create_appointment(
            patient_id=req.patient_id,
            start_at=start_at,
            reason=req.reason,
            patient_type=req.patient_type,
            notes=req.notes or "",
        )
    except SchedulingError as e:
        raise _http_error(e)
    return _get_or_404(db, appt.id)


@router.get("/appointments/{appointment_id}", response_model=schemas.AppointmentOut)
def get_appointment(appointment_id: int, db: Session = Depends(get_db)):
    return _get_or_404(db, appointment_id)


@router.delete("/appointments/{appointment_id}")
def delete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    appt = _get_or_404(db, appointment_id)
    db.delete(appt)
    db.commit()
    return {"ok": True, "appointment_id": appointment_id}


def _transition(db: Session, appointment_id: int, target: models.AppointmentStatus) -> models.Appointment:
    appt = _get_or_404(db, appointment_id)
    if appt.status not in _TRANSITIONS[target]:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot change appointment from {appt.status.value} to {target.value}",
        )
    appt.status = target
    db.commit()
    db.refresh(appt)
    return appt


@router.post("/appointments/{appointment_id}/confirm", response_model=schemas.AppointmentOut)
def confirm_appointment(appointment_id: int, db: Session = Depends(get_db)):
    return _transition(db, appointment_id, models.AppointmentStatus.CONFIRMED)


@router.post("/appointments/{appointment_id}/cancel", response_model=schemas.AppointmentOut)
def cancel_appointment(appointment_id: int, db: Session = Depends(get_db)):
    # Cancelling drops the row out of the active-slot index, freeing the slot
    return _transition(db, appointment_id, models.AppointmentStatus.CANCELLED)


@router.post("/appointments/{appointment_id}/complete", response_model=schemas.AppointmentOut)
def complete_appointment(appointment_id: int, db: Session = Depends(get_db)):
    return _transition(db, appointment_id, models.AppointmentStatus.COMPLETED)
