from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models, schemas

router = APIRouter(prefix="/api/patients", tags=["patients"])


@router.get("", response_model=list[schemas.PatientOut])
def list_patients(db: Session = Depends(get_db)):
    return (
        db.query(models.Patient)
        .order_by(models.Patient.last_name.asc(), models.Patient.first_name.asc())
        .all()
    )


@router.post("", response_model=schemas.PatientOut, status_code=201)
def create_patient(req: schemas.PatientIn, db: Session = Depends(get_db)):
    if db.get(models.User, req.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    patient = models.Patient(
        first_name=req.first_name.strip(),
        last_name=req.last_name.strip(),
        # stored lowercase so the voice agent's lookup matches regardless of case
        email=req.email.strip().lower() if req.email else None,
        phone_number=req.phone_number,
        date_of_birth=req.date_of_birth,
        user_id=req.user_id,
    )
    db.add(patient)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A patient with this email already exists")
    db.refresh(patient)
    return patient
