"""
Core models for the Telecare scheduling service.
"""

from enum import Enum

from telecare.models.database import (
    Doctor,
    Patient,
    ScheduleSlot,
    ConsultationRequest,
    Appointment,
    Prescription,
)


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class AppointmentStatus(str, Enum):
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ConsultationType(str, Enum):
    VIDEO = "video"
    CHAT = "chat"


class UserRole(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    SUPPORT = "support"


__all__ = [
    "Doctor",
    "Patient",
    "ScheduleSlot",
    "ConsultationRequest",
    "Appointment",
    "Prescription",
    "SlotStatus",
    "RequestStatus",
    "AppointmentStatus",
    "ConsultationType",
    "UserRole",
]
