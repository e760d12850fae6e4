import unicodedata
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from uuid import UUID
from datetime import date, datetime, time
from typing import Optional, List

class AppointmentStatus(str, Enum):
    NEW = "New"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No Show"

class PatientResponse(str, Enum):
    WILL_COME = "Will Come"
    WILL_NOT_COME = "Will Not Come"
    CALL_NOT_ANSWERED = "Call Not Answered"
    ASKED_TO_RESCHEDULE = "Asked to Reschedule"

class AppointmentType(str, Enum):
    NEW_PATIENT = "New Patient"
    FOLLOW_UP = "Follow-up"

ALLOWED_CONTROL_CHARS = {"\t", "\n", "\r"}

def check_free_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    for char in value:
        if char not in ALLOWED_CONTROL_CHARS and unicodedata.category(char) == "Cc":
            raise ValueError("text must not contain control characters")
    return value

class AppointmentRead(BaseModel):
    """An appointment as confirmed by the remote store. Immutable."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    full_name: str = Field(min_length=1)
    mobile_number: str = Field(min_length=1)
    age: Optional[int] = None
    gender: Optional[str] = None
    problem: Optional[str] = None
    preferred_date: date
    preferred_time: Optional[time] = None
    status: AppointmentStatus = AppointmentStatus.NEW
    patient_response: Optional[PatientResponse] = None
    appointment_type: Optional[AppointmentType] = None
    assigned_to: Optional[str] = None
    admin_note: Optional[str] = None
    assessment_images: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("assessment_images", mode="before")
    @classmethod
    def _null_images(cls, value):
        return [] if value is None else value

class AppointmentCreate(BaseModel):
    """A new appointment row to be inserted, e.g. a derived follow-up."""
    model_config = ConfigDict(use_enum_values=True)

    full_name: str = Field(min_length=1)
    mobile_number: str = Field(min_length=1)
    age: Optional[int] = None
    gender: Optional[str] = None
    problem: Optional[str] = None
    preferred_date: date
    preferred_time: Optional[time] = None
    status: AppointmentStatus = AppointmentStatus.NEW
    patient_response: Optional[PatientResponse] = None
    appointment_type: Optional[AppointmentType] = None
    assigned_to: Optional[str] = None
    admin_note: Optional[str] = None

class AppointmentUpdate(BaseModel):
    """Field edits submitted from the edit form.

    Only the fields present in the payload are written. Enumerated fields
    must be inside their domain or null; free text is passed through apart
    from rejecting control characters. Empty strings and empty image lists
    clear the column.
    """
    model_config = ConfigDict(extra="forbid", use_enum_values=True)

    status: Optional[AppointmentStatus] = None
    patient_response: Optional[PatientResponse] = None
    appointment_type: Optional[AppointmentType] = None
    assigned_to: Optional[str] = None
    admin_note: Optional[str] = None
    assessment_images: Optional[List[str]] = None
    preferred_date: Optional[date] = None
    preferred_time: Optional[time] = None

    @field_validator("status", mode="before")
    @classmethod
    def _cleared_status_is_new(cls, value):
        # status is NOT NULL in the store; clearing it resets to the default
        return AppointmentStatus.NEW if value is None else value

    @field_validator("patient_response", mode="before")
    @classmethod
    def _none_response(cls, value):
        if isinstance(value, str) and value.lower() == "none":
            return None
        return value

    @field_validator("assigned_to", "admin_note", mode="before")
    @classmethod
    def _free_text(cls, value):
        if value == "":
            return None
        if value is not None and not isinstance(value, str):
            raise ValueError("must be text")
        return check_free_text(value)

    @field_validator("assessment_images")
    @classmethod
    def _images(cls, value):
        return value or None

    @field_validator("preferred_date")
    @classmethod
    def _date_required(cls, value):
        if value is None:
            raise ValueError("preferred_date cannot be cleared")
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)

class FollowUpSelection(BaseModel):
    end_date: date
    selected_dates: List[date] = Field(default_factory=list)

class AppointmentSaveRequest(BaseModel):
    updates: dict = Field(default_factory=dict)
    follow_up: Optional[FollowUpSelection] = None

class PhaseResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ok: bool
    error_kind: Optional[str] = None
    message: Optional[str] = None

class SaveOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    state: str
    primary: PhaseResultResponse
    follow_up: Optional[PhaseResultResponse] = None
    created_count: int = 0
    appointment: Optional[AppointmentRead] = None
    follow_ups: List[AppointmentRead] = Field(default_factory=list)

class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentRead]
    total: int
    showing: int
    loading: bool
    error: Optional[str] = None

class FollowUpDatesResponse(BaseModel):
    appointment_id: UUID
    end_date: date
    dates: List[date]

class DashboardCountersResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    today: int
    new: int
    confirmed: int
