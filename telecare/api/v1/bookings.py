"""
Slot booking and appointment management.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Union
import uuid

from telecare.core.auth import get_current_doctor, get_current_patient, get_current_profile
from telecare.core.clock import Clock, get_clock
from telecare.core.retry import run_with_retry
from telecare.db.session import get_db_session
from telecare.models import Doctor, Patient
from telecare.schemas import AppointmentResponse, BookingCreate, BookingResponse
from telecare.services.booking_coordinator import BookingCoordinator

router = APIRouter(tags=["Bookings"])


@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def book_slot(
    booking_data: BookingCreate,
    current_patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """
    Book an open slot for the calling patient.

    Returns 409 when the slot was taken or closed in the meantime.
    """
    coordinator = BookingCoordinator(db, clock)
    booking = await run_with_retry(
        lambda: coordinator.book_slot(booking_data.slot_id, current_patient.id, booking_data.notes)
    )
    return BookingResponse.model_validate(booking)


@router.get("/appointments/mine", response_model=List[AppointmentResponse])
async def list_my_appointments(
    current_patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """The calling patient's appointments from today on."""
    coordinator = BookingCoordinator(db, clock)
    return await run_with_retry(lambda: coordinator.list_patient_appointments(current_patient.id))


@router.get("/appointments/upcoming", response_model=List[AppointmentResponse])
async def list_upcoming_appointments(
    current_doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """The calling doctor's next confirmed appointments."""
    coordinator = BookingCoordinator(db, clock)
    return await run_with_retry(lambda: coordinator.list_doctor_appointments(current_doctor.id))


@router.post("/appointments/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: uuid.UUID,
    current_profile: Union[Patient, Doctor] = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """Cancel a confirmed appointment and reopen its slot."""
    coordinator = BookingCoordinator(db, clock)
    return await run_with_retry(lambda: coordinator.cancel_appointment(appointment_id, current_profile.id))
