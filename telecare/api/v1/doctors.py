"""
Doctor directory and symptom-based matching.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List

from telecare.core.auth import Identity, get_current_identity
from telecare.core.logging import get_logger
from telecare.core.retry import run_with_retry
from telecare.db.session import get_db_session, transaction
from telecare.models import Doctor
from telecare.schemas import DoctorResponse, MatchRequest, MatchResponse, RankedDoctorResponse
from telecare.services import match_ranker

router = APIRouter(prefix="/doctors", tags=["Doctors"])

logger = get_logger(__name__)


async def _load_available_doctors(db: AsyncSession) -> List[Doctor]:
    async with transaction(db):
        result = await db.execute(
            select(Doctor).where(Doctor.available == True).order_by(Doctor.full_name)  # noqa: E712
        )
        return list(result.scalars().all())


@router.get("", response_model=List[DoctorResponse])
async def list_doctors(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session)
):
    """List doctors currently accepting consultations, ordered by name."""
    return await run_with_retry(lambda: _load_available_doctors(db))


@router.post("/match", response_model=MatchResponse)
async def match_doctors(
    match_data: MatchRequest,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db_session)
):
    """
    Rank available doctors against the patient's symptoms.

    When no category is given it is detected from the symptom text.
    """
    doctors = await run_with_retry(lambda: _load_available_doctors(db))
    category = match_data.category or match_ranker.detect_category(match_data.symptoms)
    ranked = match_ranker.rank(doctors, match_data.symptoms, category)

    logger.info("Doctors matched", category=category, candidates=len(doctors), results=len(ranked))
    return MatchResponse(
        category=category,
        keywords=match_ranker.matched_keywords(match_data.symptoms),
        doctors=[
            RankedDoctorResponse(
                doctor=DoctorResponse.model_validate(item.doctor),
                score=item.score,
                reasons=item.reasons,
            )
            for item in ranked
        ],
    )
