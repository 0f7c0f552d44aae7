"""
Pydantic schemas for request/response models.
"""

import uuid
from datetime import datetime, date, time
from typing import Optional, List
from pydantic import BaseModel, Field

from telecare.models import SlotStatus, RequestStatus, AppointmentStatus, ConsultationType


# Base schemas
class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = {
        "from_attributes": True,
        "use_enum_values": True
    }


# Doctor schemas
class DoctorResponse(BaseSchema):
    """Doctor profile response."""
    id: uuid.UUID
    full_name: str
    specialization: str
    experience_years: int
    bio: Optional[str] = None
    available: bool


class MatchRequest(BaseSchema):
    """Symptom-based doctor matching request."""
    symptoms: str = Field(..., min_length=1, max_length=5000)
    category: Optional[str] = Field(None, description="Symptom category; detected from symptoms when omitted")


class RankedDoctorResponse(BaseSchema):
    """One doctor in a ranked match list."""
    doctor: DoctorResponse
    score: int
    reasons: List[str] = []


class MatchResponse(BaseSchema):
    """Ranked doctors for the given symptoms."""
    category: str
    keywords: List[str] = []
    doctors: List[RankedDoctorResponse] = []


# Schedule schemas
class SlotCreate(BaseSchema):
    """Create slot request."""
    date: date
    start_time: time
    end_time: time
    notes: Optional[str] = Field(None, max_length=1000)


class SlotUpdate(BaseSchema):
    """Block or unblock a slot."""
    blocked: bool


class SlotResponse(BaseSchema):
    """Schedule slot response."""
    id: uuid.UUID
    doctor_id: uuid.UUID
    date: date
    start_time: time
    end_time: time
    status: SlotStatus
    notes: Optional[str] = None
    linked_patient_id: Optional[uuid.UUID] = None
    linked_request_id: Optional[uuid.UUID] = None


class AvailableSlotResponse(BaseSchema):
    """Open slot with the doctor offering it."""
    slot: SlotResponse
    doctor: DoctorResponse


# Consultation request schemas
class ConsultationRequestCreate(BaseSchema):
    """Patient consultation request."""
    doctor_id: uuid.UUID
    symptoms: str = Field(..., min_length=1, max_length=5000)
    consultation_type: ConsultationType = ConsultationType.VIDEO
    message: Optional[str] = Field(None, max_length=2000)


class ConsultationResponseCreate(BaseSchema):
    """Doctor's answer to a pending request."""
    accept: bool
    response_message: Optional[str] = Field(None, max_length=2000)


class ConsultationRequestResponse(BaseSchema):
    """Consultation request response."""
    id: uuid.UUID
    patient_id: uuid.UUID
    doctor_id: uuid.UUID
    symptoms: str
    consultation_type: str
    status: RequestStatus
    request_message: Optional[str] = None
    doctor_response: Optional[str] = None
    scheduled_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ScheduleRequestCreate(BaseSchema):
    """Place an accepted request into one of the doctor's slots."""
    slot_id: uuid.UUID


# Prescription schemas
class PrescriptionCreate(BaseSchema):
    """Prescription issued when completing a consultation."""
    medications: str = Field(..., min_length=1)
    dosage_instructions: str = Field(..., min_length=1)
    health_tips: Optional[str] = None
    follow_up_date: Optional[date] = None
    notes: Optional[str] = None


class PrescriptionResponse(BaseSchema):
    """Prescription response."""
    id: uuid.UUID
    consultation_request_id: uuid.UUID
    patient_id: uuid.UUID
    doctor_id: uuid.UUID
    medications: str
    dosage_instructions: str
    health_tips: Optional[str] = None
    follow_up_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime


# Booking schemas
class BookingCreate(BaseSchema):
    """Book an open slot."""
    slot_id: uuid.UUID
    notes: Optional[str] = Field(None, max_length=2000)


class AppointmentResponse(BaseSchema):
    """Appointment response."""
    id: uuid.UUID
    doctor_id: uuid.UUID
    patient_id: uuid.UUID
    consultation_request_id: uuid.UUID
    slot_id: Optional[uuid.UUID] = None
    scheduled_date: date
    scheduled_time: time
    appointment_type: str
    status: AppointmentStatus
    notes: Optional[str] = None


class BookingResponse(BaseSchema):
    """A successful booking: request, appointment and slot."""
    request: ConsultationRequestResponse
    appointment: AppointmentResponse
    slot: SlotResponse


# Error schemas
class ErrorResponse(BaseSchema):
    """Error response schema."""
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None


class HealthResponse(BaseSchema):
    """Health check response."""
    status: str
    database: str
    version: str
    timestamp: str
