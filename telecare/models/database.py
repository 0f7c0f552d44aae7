"""
SQLModel table models for the scheduling store.
"""

from datetime import date, datetime, time
from typing import Optional
from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, String as SQLString, Text, UniqueConstraint
import uuid

from telecare.core.clock import utc_now


class DoctorBase(SQLModel):
    """Base doctor profile model."""
    full_name: str
    specialization: str
    experience_years: int = Field(default=0)
    bio: Optional[str] = Field(default=None, sa_column=Column(Text))
    available: bool = Field(default=True)


class Doctor(DoctorBase, table=True):
    """Doctor profile, linked to an identity-provider subject."""
    __tablename__ = "doctors"
    __table_args__ = {'extend_existing': True}

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class PatientBase(SQLModel):
    """Base patient profile model."""
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None


class Patient(PatientBase, table=True):
    """Patient profile, linked to an identity-provider subject."""
    __tablename__ = "patients"
    __table_args__ = {'extend_existing': True}

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class ConsultationRequestBase(SQLModel):
    """Base consultation request model."""
    symptoms: str = Field(sa_column=Column(Text, nullable=False))
    consultation_type: str = Field(default="video")
    # pending, accepted, rejected, completed
    status: str = Field(
        default="pending",
        sa_column=Column(SQLString, nullable=False, server_default="pending", index=True)
    )
    request_message: Optional[str] = Field(default=None, sa_column=Column(Text))
    doctor_response: Optional[str] = Field(default=None, sa_column=Column(Text))
    scheduled_time: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class ConsultationRequest(ConsultationRequestBase, table=True):
    """A patient's ask for care with its own accept/reject lifecycle."""
    __tablename__ = "consultation_requests"
    __table_args__ = {'extend_existing': True}

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    patient_id: uuid.UUID = Field(foreign_key="patients.id", index=True)
    doctor_id: uuid.UUID = Field(foreign_key="doctors.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class SlotBase(SQLModel):
    """Base schedule slot model."""
    date: date
    start_time: time
    end_time: time
    # available, booked, blocked
    status: str = Field(
        default="available",
        sa_column=Column(SQLString, nullable=False, server_default="available", index=True)
    )
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))


class ScheduleSlot(SlotBase, table=True):
    """A bookable time window owned by one doctor on one date."""
    __tablename__ = "doctor_schedule"
    __table_args__ = (
        UniqueConstraint("doctor_id", "date", "start_time", name="uq_doctor_schedule_doctor_date_start"),
        {'extend_existing': True},
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    doctor_id: uuid.UUID = Field(foreign_key="doctors.id", index=True)
    # Set iff status == booked
    linked_patient_id: Optional[uuid.UUID] = Field(default=None, foreign_key="patients.id")
    linked_request_id: Optional[uuid.UUID] = Field(default=None, foreign_key="consultation_requests.id")
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class AppointmentBase(SQLModel):
    """Base appointment model."""
    scheduled_date: date
    scheduled_time: time
    appointment_type: str = Field(default="video")
    # confirmed, completed, cancelled
    status: str = Field(
        default="confirmed",
        sa_column=Column(SQLString, nullable=False, server_default="confirmed", index=True)
    )
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))


class Appointment(AppointmentBase, table=True):
    """Confirmed pairing of a booked slot with an accepted request."""
    __tablename__ = "appointments"
    __table_args__ = {'extend_existing': True}

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    doctor_id: uuid.UUID = Field(foreign_key="doctors.id", index=True)
    patient_id: uuid.UUID = Field(foreign_key="patients.id", index=True)
    consultation_request_id: uuid.UUID = Field(foreign_key="consultation_requests.id", unique=True)
    slot_id: Optional[uuid.UUID] = Field(default=None, foreign_key="doctor_schedule.id", ondelete="SET NULL")
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class PrescriptionBase(SQLModel):
    """Base prescription model."""
    medications: str = Field(sa_column=Column(Text, nullable=False))
    dosage_instructions: str = Field(sa_column=Column(Text, nullable=False))
    health_tips: Optional[str] = Field(default=None, sa_column=Column(Text))
    follow_up_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))


class Prescription(PrescriptionBase, table=True):
    """Prescription closing an accepted consultation request. Immutable."""
    __tablename__ = "prescriptions"
    __table_args__ = {'extend_existing': True}

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    consultation_request_id: uuid.UUID = Field(foreign_key="consultation_requests.id", unique=True)
    patient_id: uuid.UUID = Field(foreign_key="patients.id", index=True)
    doctor_id: uuid.UUID = Field(foreign_key="doctors.id", index=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
