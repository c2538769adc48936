# airodental/services/booking.py
from __future__ import annotations
import logging
import re
from datetime import datetime
from typing import Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .. import models
from ..exceptions import ConfigurationFault, DuplicatePatient, PolicyViolation, SlotConflict, ValidationError
from .calendar_policy import CalendarPolicy
from .formatting import format_confirmation
from .repository import AppointmentRepository
from .timeutils import to_utc, utcnow

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DEFAULT_REASON = "Appointment via voice assistant"
DEFAULT_FIRST_NAME = "Unknown"
DEFAULT_LAST_NAME = "Patient"


class BookingRequest(BaseModel):
    """A caller's request to reserve one slot."""

    model_config = ConfigDict(frozen=True)

    start_at: datetime
    name: str
    email: str
    sms_reminder_number: Optional[str] = None


class BookingConfirmation(BaseModel):
    model_config = ConfigDict(frozen=True)

    appointment_id: int
    patient_id: int
    patient_type: models.PatientType
    start_at: datetime
    message: str


def split_full_name(full_name: str) -> Tuple[str, str]:
    """``"John Daniel Smith"`` → ``("John", "Daniel Smith")``; a single word gets the placeholder last name."""
    parts = full_name.strip().split(None, 1)
    first = parts[0] if parts else DEFAULT_FIRST_NAME
    last = parts[1].strip() if len(parts) > 1 else DEFAULT_LAST_NAME
    return first, last


def resolve_owner_role(role: models.Role | str) -> models.Role:
    if isinstance(role, models.Role):
        return role
    try:
        return models.Role(role.strip().upper())
    except ValueError as e:
        raise ConfigurationFault(f"DEFAULT_OWNER_ROLE '{role}' is not a known role") from e


class BookingService:
    """Reserves a slot for a caller: policy, validation, conflict check, patient, appointment."""

    def __init__(
        self,
        repository: AppointmentRepository,
        policy: CalendarPolicy,
        owner_role: models.Role | str = models.Role.DENTIST,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = repository
        self._policy = policy
        self._owner_role = owner_role
        self._clock = clock

    def _validate(self, request: BookingRequest) -> None:
        if not request.name or not request.name.strip():
            raise ValidationError("Patient name is required.")
        if not request.email or not EMAIL_RE.match(request.email.strip()):
            raise ValidationError(f"Invalid email format provided: {request.email}.")

    def _resolve_patient(self, request: BookingRequest) -> Tuple[models.Patient, bool]:
        """Existing patient by email, or a new one owned by the default staff user."""
        patient = self._repo.find_patient_by_email(request.email)
        if patient is not None:
            logger.info("Existing patient found: id=%s", patient.id)
            if request.sms_reminder_number and patient.phone_number != request.sms_reminder_number:
                self._repo.update_patient_phone(patient, request.sms_reminder_number)
                logger.info("Updated phone number for existing patient %s", patient.id)
            return patient, False

        role = resolve_owner_role(self._owner_role)
        owner = self._repo.find_first_user_by_role(role)
        if owner is None:
            logger.critical("No %s user found in the database; cannot create patients", role.value)
            raise ConfigurationFault(f"No user with role {role.value} exists to own new patients")

        first_name, last_name = split_full_name(request.name)
        try:
            patient = self._repo.create_patient(
                first_name=first_name,
                last_name=last_name,
                email=request.email,
                phone_number=request.sms_reminder_number,
                user_id=owner.id,
            )
        except DuplicatePatient:
            # Another booking inserted this email after our lookup
            patient = self._repo.find_patient_by_email(request.email)
            if patient is None:
                raise
            logger.info("Patient %s created concurrently; treating as existing", patient.id)
            return patient, False
        logger.info("New patient created: id=%s", patient.id)
        return patient, True

    def _undo_patient(self, patient: models.Patient) -> None:
        logger.warning("Rolling back patient creation for %s", patient.id)
        try:
            self._repo.delete_patient(patient.id)
        except Exception:
            logger.critical("Failed to roll back patient creation for %s", patient.id, exc_info=True)

    def book(self, request: BookingRequest) -> BookingConfirmation:
        start_at = to_utc(request.start_at)

        eligibility = self._policy.check(start_at, self._clock())
        if not eligibility.eligible:
            raise PolicyViolation(eligibility.reason)
        self._validate(request)

        if self._repo.find_active_at(start_at) is not None:
            raise SlotConflict(f"Slot {start_at.isoformat()} already booked")

        logger.info("Processing booking at %s", start_at.isoformat())
        patient, created = self._resolve_patient(request)

        notes = "Booked via voice assistant."
        if request.sms_reminder_number:
            notes += f" SMS reminder: {request.sms_reminder_number}"

        try:
            appt = self._repo.create_appointment(
                patient_id=patient.id,
                start_at=start_at,
                reason=DEFAULT_REASON,
                patient_type=models.PatientType.NEW if created else models.PatientType.EXISTING,
                notes=notes,
                status=models.AppointmentStatus.SCHEDULED,
            )
        except Exception:
            logger.error("Appointment creation failed at %s", start_at.isoformat())
            if created:
                self._undo_patient(patient)
            raise

        logger.info("Appointment created: id=%s", appt.id)
        return BookingConfirmation(
            appointment_id=appt.id,
            patient_id=patient.id,
            patient_type=appt.patient_type,
            start_at=start_at,
            message=format_confirmation(request.name.strip(), start_at, self._policy.tz),
        )
