from sqlmodel import SQLModel, Field
from typing import List, Optional
from datetime import date, datetime, time, timezone
from uuid import UUID, uuid4
from sqlalchemy import Column, DateTime, Text
from sqlalchemy.dialects.postgresql import ARRAY

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    full_name: str
    mobile_number: str
    age: Optional[int] = None
    gender: Optional[str] = None
    problem: Optional[str] = None
    preferred_date: date = Field(index=True)
    preferred_time: Optional[time] = None
    status: str = Field(default="New") # New, Confirmed, Completed, Cancelled, No Show
    patient_response: Optional[str] = None
    appointment_type: Optional[str] = None
    assigned_to: Optional[str] = None
    admin_note: Optional[str] = None
    assessment_images: Optional[List[str]] = Field(default=None, sa_column=Column(ARRAY(Text)))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
