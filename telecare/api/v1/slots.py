"""
Doctor schedule management and open-slot listing.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date
import uuid

from telecare.core.auth import Identity, get_current_doctor, get_current_identity
from telecare.core.clock import Clock, get_clock
from telecare.core.retry import run_with_retry
from telecare.db.session import get_db_session
from telecare.models import Doctor
from telecare.schemas import AvailableSlotResponse, DoctorResponse, SlotCreate, SlotResponse, SlotUpdate
from telecare.services.slot_store import SlotStore

router = APIRouter(tags=["Schedule"])


@router.get("/slots/available", response_model=List[AvailableSlotResponse])
async def list_available_slots(
    date: date = Query(..., description="Day to list open slots for"),
    doctor_id: Optional[uuid.UUID] = Query(None),
    specialization: Optional[str] = Query(None),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """Open slots across all doctors for one day, earliest first."""
    store = SlotStore(db, clock)
    available = await run_with_retry(lambda: store.list_available(date, doctor_id, specialization))
    return [
        AvailableSlotResponse(
            slot=SlotResponse.model_validate(item.slot),
            doctor=DoctorResponse.model_validate(item.doctor),
        )
        for item in available
    ]


@router.get("/schedule/slots", response_model=List[SlotResponse])
async def list_my_slots(
    date: date = Query(...),
    current_doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """The calling doctor's slots for one day."""
    store = SlotStore(db, clock)
    return await run_with_retry(lambda: store.list_slots(current_doctor.id, date))


@router.post("/schedule/slots", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
async def create_slot(
    slot_data: SlotCreate,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """Publish a new available slot."""
    store = SlotStore(db, clock)
    return await run_with_retry(
        lambda: store.create_slot(
            current_doctor.id,
            slot_data.date,
            slot_data.start_time,
            slot_data.end_time,
            slot_data.notes,
        )
    )


@router.patch("/schedule/slots/{slot_id}", response_model=SlotResponse)
async def update_slot(
    slot_id: uuid.UUID,
    slot_data: SlotUpdate,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """Block or unblock one of the calling doctor's slots."""
    store = SlotStore(db, clock)
    return await run_with_retry(lambda: store.set_blocked(slot_id, slot_data.blocked, current_doctor.id))


@router.delete("/schedule/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot(
    slot_id: uuid.UUID,
    current_doctor: Doctor = Depends(get_current_doctor),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """Remove a slot that is not booked."""
    store = SlotStore(db, clock)
    await run_with_retry(lambda: store.delete_slot(slot_id, current_doctor.id))
