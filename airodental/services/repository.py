# airodental/services/repository.py
from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..exceptions import DependencyUnavailable, DuplicatePatient, SchedulingError, SlotConflict
from .timeutils import to_utc

logger = logging.getLogger(__name__)


class AppointmentRepository(ABC):
    """Persistence operations the availability engine and booking depend on."""

    @abstractmethod
    def list_active_start_times(self, start: datetime, end: datetime) -> Set[datetime]:
        """Start instants (aware UTC) of SCHEDULED/CONFIRMED appointments in [start, end).

        Raises:
            DependencyUnavailable: If the store errors or times out.
        """

    @abstractmethod
    def find_active_at(self, instant: datetime) -> Optional[models.Appointment]:
        """The active appointment starting exactly at ``instant``, if any."""

    @abstractmethod
    def find_patient_by_email(self, email: str) -> Optional[models.Patient]:
        """Case-insensitive email lookup."""

    @abstractmethod
    def find_first_user_by_role(self, role: models.Role) -> Optional[models.User]:
        """Lowest-id staff user with ``role``."""

    @abstractmethod
    def create_patient(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        phone_number: Optional[str],
        user_id: int,
    ) -> models.Patient:
        """Insert and return a patient.

        Raises:
            DuplicatePatient: If a patient with this email already exists.
        """

    @abstractmethod
    def update_patient_phone(self, patient: models.Patient, phone_number: str) -> models.Patient:
        """Replace the patient's phone number."""

    @abstractmethod
    def delete_patient(self, patient_id: int) -> None:
        """Remove a patient (used to undo a patient created by a failed booking)."""

    @abstractmethod
    def create_appointment(
        self,
        *,
        patient_id: int,
        start_at: datetime,
        reason: str,
        patient_type: models.PatientType,
        notes: Optional[str] = None,
        status: models.AppointmentStatus = models.AppointmentStatus.SCHEDULED,
    ) -> models.Appointment:
        """Insert an appointment.

        Raises:
            SlotConflict: If another active appointment holds ``start_at``.
            DependencyUnavailable: If the store errors or times out.
        """


class SqlAlchemyAppointmentRepository(AppointmentRepository):
    """Repository over a request-scoped SQLAlchemy session.

    Each write commits on its own; the session itself is opened and closed by
    the caller (``get_db``).
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def _rollback_quietly(self) -> None:
        try:
            self._db.rollback()
        except SQLAlchemyError as e:
            logger.warning("Rollback failed after database error: %s", e)

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SchedulingError:
            raise
        except SQLAlchemyError as exc:
            self._rollback_quietly()
            logger.error("Database error during %s: %s", operation, exc)
            raise DependencyUnavailable(f"{operation} failed: {exc}") from exc

    def list_active_start_times(self, start: datetime, end: datetime) -> Set[datetime]:
        with self._guard("list_active_start_times"):
            rows = (
                self._db.query(models.Appointment.start_at)
                .filter(models.Appointment.start_at >= to_utc(start))
                .filter(models.Appointment.start_at < to_utc(end))
                .filter(models.Appointment.status.in_(models.ACTIVE_STATUSES))
                .all()
            )
        booked = {to_utc(r.start_at) for r in rows}
        logger.debug("Active appointments in [%s, %s): %d", start.isoformat(), end.isoformat(), len(booked))
        return booked

    def find_active_at(self, instant: datetime) -> Optional[models.Appointment]:
        with self._guard("find_active_at"):
            return (
                self._db.query(models.Appointment)
                .filter(models.Appointment.start_at == to_utc(instant))
                .filter(models.Appointment.status.in_(models.ACTIVE_STATUSES))
                .first()
            )

    def find_patient_by_email(self, email: str) -> Optional[models.Patient]:
        with self._guard("find_patient_by_email"):
            return (
                self._db.query(models.Patient)
                .filter(models.Patient.email == email.strip().lower())
                .first()
            )

    def find_first_user_by_role(self, role: models.Role) -> Optional[models.User]:
        with self._guard("find_first_user_by_role"):
            return (
                self._db.query(models.User)
                .filter(models.User.role == role)
                .order_by(models.User.id.asc())
                .first()
            )

    def create_patient(self, *, first_name, last_name, email, phone_number, user_id) -> models.Patient:
        with self._guard("create_patient"):
            patient = models.Patient(
                first_name=first_name,
                last_name=last_name,
                email=email.strip().lower(),
                phone_number=phone_number,
                user_id=user_id,
            )
            self._db.add(patient)
            try:
                self._db.commit()
            except IntegrityError as exc:
                # patients.email is unique: a concurrent booking created this caller first
                self._rollback_quietly()
                raise DuplicatePatient(f"Patient with email {patient.email} already exists") from exc
            self._db.refresh(patient)
            return patient

    def update_patient_phone(self, patient: models.Patient, phone_number: str) -> models.Patient:
        with self._guard("update_patient_phone"):
            patient.phone_number = phone_number
            self._db.commit()
            self._db.refresh(patient)
            return patient

    def delete_patient(self, patient_id: int) -> None:
        with self._guard("delete_patient"):
            patient = self._db.get(models.Patient, patient_id)
            if patient is not None:
                self._db.delete(patient)
                self._db.commit()

    def create_appointment(
        self,
        *,
        patient_id,
        start_at,
        reason,
        patient_type,
        notes=None,
        status=models.AppointmentStatus.SCHEDULED,
    ) -> models.Appointment:
        with self._guard("create_appointment"):
            appt = models.Appointment(
                patient_id=patient_id,
                start_at=to_utc(start_at),
                reason=reason,
                patient_type=patient_type,
                status=status,
                notes=notes,
            )
            self._db.add(appt)
            try:
                self._db.commit()
            except IntegrityError as exc:
                # uq_appointments_active_start: someone else won the race for this instant
                self._rollback_quietly()
                raise SlotConflict(f"Active appointment already exists at {start_at.isoformat()}") from exc
            self._db.refresh(appt)
            return appt
