"""
Consultation request API
Patients ask a doctor for care; the doctor accepts or declines, schedules
accepted requests into a slot and closes them with a prescription.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Union
import uuid

from telecare.core.auth import get_current_doctor, get_current_patient, get_current_profile
from telecare.core.clock import Clock, get_clock
from telecare.core.retry import run_with_retry
from telecare.db.session import get_db_session
from telecare.models import Doctor, Patient, RequestStatus
from telecare.schemas import (
    BookingResponse,
    ConsultationRequestCreate,
    ConsultationRequestResponse,
    ConsultationResponseCreate,
    PrescriptionCreate,
    PrescriptionResponse,
    ScheduleRequestCreate,
)
from telecare.services.booking_coordinator import BookingCoordinator
from telecare.services.request_lifecycle import PrescriptionPayload, RequestLifecycle

router = APIRouter(prefix="/consultation-requests", tags=["Consultation Requests"])


@router.post("", response_model=ConsultationRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    request_data: ConsultationRequestCreate,
    current_patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """Send a consultation request to a doctor."""
    lifecycle = RequestLifecycle(db, clock)
    return await run_with_retry(
        lambda: lifecycle.submit_request(
            current_patient.id,
            request_data.doctor_id,
            request_data.symptoms,
            request_data.consultation_type,
            request_data.message,
        )
    )


@router.get("", response_model=List[ConsultationRequestResponse])
async def list_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    current_profile: Union[Patient, Doctor] = Depends(get_current_profile),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """
    The caller's own requests, newest first.

    Doctors see requests addressed to them and may filter by status;
    patients see the requests they made.
    """
    lifecycle = RequestLifecycle(db, clock)
    if isinstance(current_profile, Doctor):
        status_value = status_filter.value if status_filter else None
        return await run_with_retry(lambda: lifecycle.list_doctor_requests(current_profile.id, status_value))

    requests = await run_with_retry(lambda: lifecycle.list_patient_requests(current_profile.id))
    if status_filter:
        requests = [r for r in requests if r.status == status_filter.value]
    return requests


@router.post("/{request_id}/respond", response_model=ConsultationRequestResponse)
async def respond_to_request(
    request_id: uuid.UUID,
    response_data: ConsultationResponseCreate,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """Accept or decline a pending request."""
    lifecycle = RequestLifecycle(db, clock)
    return await run_with_retry(
        lambda: lifecycle.respond(
            request_id,
            response_data.accept,
            response_data.response_message,
            current_doctor.id,
        )
    )


@router.post("/{request_id}/complete", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def complete_request(
    request_id: uuid.UUID,
    prescription_data: PrescriptionCreate,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """Close an accepted request with a prescription."""
    lifecycle = RequestLifecycle(db, clock)
    payload = PrescriptionPayload(**prescription_data.model_dump())
    return await run_with_retry(lambda: lifecycle.complete(request_id, payload, current_doctor.id))


@router.post("/{request_id}/schedule", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def schedule_request(
    request_id: uuid.UUID,
    schedule_data: ScheduleRequestCreate,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """Place an accepted request into one of the calling doctor's open slots."""
    coordinator = BookingCoordinator(db, clock)
    booking = await run_with_retry(
        lambda: coordinator.schedule_request(request_id, schedule_data.slot_id, current_doctor.id)
    )
    return BookingResponse.model_validate(booking)
