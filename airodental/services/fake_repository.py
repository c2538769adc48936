from __future__ import annotations
from datetime import datetime
from itertools import count
from typing import Optional, Set

from .. import models
from ..exceptions import DuplicatePatient, SlotConflict
from .repository import AppointmentRepository
from .timeutils import to_utc


class InMemoryAppointmentRepository(AppointmentRepository):
    """In-memory test double for ``AppointmentRepository``.

    Pre-load ``users`` / ``patients`` / ``appointments`` to control what the
    repository returns. Set ``create_appointment_error`` or
    ``delete_patient_error`` to make the corresponding method raise.

    The active-slot uniqueness the database enforces is enforced here too,
    so ``skip_active_lookup`` can simulate a racing writer that passed the
    pre-check.
    """

    def __init__(self) -> None:
        self.users: list[models.User] = []
        self.patients: list[models.Patient] = []
        self.appointments: list[models.Appointment] = []
        self.deleted_patient_ids: list[int] = []

        self.create_appointment_error: Exception | None = None
        self.delete_patient_error: Exception | None = None
        self.skip_active_lookup: bool = False

        self._ids = count(1)

    def add_user(self, name: str, email: str, role: models.Role) -> models.User:
        user = models.User(id=next(self._ids), name=name, email=email, role=role)
        self.users.append(user)
        return user

    def _active_at(self, instant: datetime) -> Optional[models.Appointment]:
        instant = to_utc(instant)
        for a in self.appointments:
            if to_utc(a.start_at) == instant and a.status in models.ACTIVE_STATUSES:
                return a
        return None

    def list_active_start_times(self, start: datetime, end: datetime) -> Set[datetime]:
        start, end = to_utc(start), to_utc(end)
        return {
            to_utc(a.start_at)
            for a in self.appointments
            if a.status in models.ACTIVE_STATUSES and start <= to_utc(a.start_at) < end
        }

    def find_active_at(self, instant: datetime) -> Optional[models.Appointment]:
        if self.skip_active_lookup:
            return None
        return self._active_at(instant)

    def find_patient_by_email(self, email: str) -> Optional[models.Patient]:
        email = email.strip().lower()
        return next((p for p in self.patients if p.email == email), None)

    def find_first_user_by_role(self, role: models.Role) -> Optional[models.User]:
        matches = sorted((u for u in self.users if u.role == role), key=lambda u: u.id)
        return matches[0] if matches else None

    def create_patient(self, *, first_name, last_name, email, phone_number, user_id) -> models.Patient:
        if self.find_patient_by_email(email) is not None:
            raise DuplicatePatient(f"Patient with email {email.strip().lower()} already exists")
        patient = models.Patient(
            id=next(self._ids),
            first_name=first_name,
            last_name=last_name,
            email=email.strip().lower(),
            phone_number=phone_number,
            user_id=user_id,
        )
        self.patients.append(patient)
        return patient

    def update_patient_phone(self, patient: models.Patient, phone_number: str) -> models.Patient:
        patient.phone_number = phone_number
        return patient

    def delete_patient(self, patient_id: int) -> None:
        if self.delete_patient_error:
            raise self.delete_patient_error
        self.deleted_patient_ids.append(patient_id)
        self.patients = [p for p in self.patients if p.id != patient_id]

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
        if self.create_appointment_error:
            raise self.create_appointment_error
        if status in models.ACTIVE_STATUSES and self._active_at(start_at):
            raise SlotConflict(f"Active appointment already exists at {start_at.isoformat()}")
        appt = models.Appointment(
            id=next(self._ids),
            patient_id=patient_id,
            start_at=to_utc(start_at),
            reason=reason,
            patient_type=patient_type,
            status=status,
            notes=notes,
        )
        self.appointments.append(appt)
        return appt
