"""
Patient prescriptions.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from telecare.core.auth import get_current_patient
from telecare.core.clock import Clock, get_clock
from telecare.core.retry import run_with_retry
from telecare.db.session import get_db_session
from telecare.models import Patient
from telecare.schemas import PrescriptionResponse
from telecare.services.request_lifecycle import RequestLifecycle

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])


@router.get("", response_model=List[PrescriptionResponse])
async def list_my_prescriptions(
    current_patient: Patient = Depends(get_current_patient),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock)
):
    """The calling patient's prescriptions, newest first."""
    lifecycle = RequestLifecycle(db, clock)
    return await run_with_retry(lambda: lifecycle.list_patient_prescriptions(current_patient.id))
