from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import date, datetime, timezone
from typing import Optional

from .models import AppointmentStatus, PatientType, Role


# ===== Voice tool responses =====
class ToolResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tool_call_id: str = Field(alias="toolCallId")
    result: Optional[str] = None
    error: Optional[str] = None


class ToolResponse(BaseModel):
    results: list[ToolResult]


# ===== Staff =====
class UserIn(BaseModel):
    name: Optional[str] = None
    email: str
    role: Role = Role.USER


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    email: str
    role: Role


# ===== Patients =====
class PatientIn(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    user_id: int


class PatientSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str


class PatientOut(PatientSummary):
    email: Optional[str] = None
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    user_id: int


# ===== Appointments =====
class AppointmentIn(BaseModel):
    start_at: datetime
    patient_id: int
    reason: str = Field(min_length=1)
    patient_type: PatientType = PatientType.EXISTING
    notes: Optional[str] = None


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    start_at: datetime
    reason: str
    patient_type: PatientType
    status: AppointmentStatus
    notes: Optional[str] = None
    patient_id: int
    patient: Optional[PatientSummary] = None

    @field_validator("start_at")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        # SQLite hands back naive values; they were written as UTC
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)


class SlotsResponse(BaseModel):
    timezone: str
    slots: list[datetime]
