"""
Authentication dependencies for FastAPI.

The bearer token's ``sub`` claim is the identity-provider user id and its
``role`` claim one of patient, doctor or support. Profiles are resolved by
``user_id``.
"""

from dataclasses import dataclass
from typing import Union
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from telecare.core.security import security
from telecare.core.logging import audit_logger
from telecare.db.session import get_db_session, transaction
from telecare.models import Doctor, Patient, UserRole


# Security scheme
security_scheme = HTTPBearer()

PROFILE_MODELS = {
    UserRole.PATIENT.value: Patient,
    UserRole.DOCTOR.value: Doctor,
}


@dataclass
class Identity:
    """Authenticated caller as asserted by the token."""
    user_id: str
    role: str


class AuthDependencies:
    """Authentication dependencies for FastAPI endpoints."""

    @staticmethod
    async def get_current_identity(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
    ) -> Identity:
        """Verify the bearer token and return the caller's identity."""
        payload = security.verify_token(credentials.credentials, "access")

        if not payload:
            audit_logger.log_security_event(
                "invalid_token",
                ip_address=request.client.host if request.client else None,
                details={"path": request.url.path},
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )

        user_id = payload.get("sub")
        role = (payload.get("role") or "").lower()
        if not user_id or role not in {r.value for r in UserRole}:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token payload"
            )

        return Identity(user_id=str(user_id), role=role)

    @staticmethod
    async def _load_profile(identity: Identity, db: AsyncSession) -> Union[Patient, Doctor]:
        model = PROFILE_MODELS.get(identity.role)
        if model is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Patient or doctor access required"
            )

        async with transaction(db):
            result = await db.execute(select(model).where(model.user_id == identity.user_id))
            profile = result.scalar_one_or_none()
            if profile is not None:
                # Keep the caller readable after a rolled-back service call on this session.
                db.expunge(profile)

        if not profile:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{identity.role.capitalize()} profile not found"
            )
        return profile

    @staticmethod
    async def get_current_profile(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
        db: AsyncSession = Depends(get_db_session)
    ) -> Union[Patient, Doctor]:
        """Patient or doctor profile of the caller."""
        identity = await AuthDependencies.get_current_identity(request, credentials)
        return await AuthDependencies._load_profile(identity, db)

    @staticmethod
    async def get_current_patient(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
        db: AsyncSession = Depends(get_db_session)
    ) -> Patient:
        """Patient profile of the caller."""
        identity = await AuthDependencies.get_current_identity(request, credentials)
        if identity.role != UserRole.PATIENT.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Patient access required"
            )
        return await AuthDependencies._load_profile(identity, db)

    @staticmethod
    async def get_current_doctor(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security_scheme),
        db: AsyncSession = Depends(get_db_session)
    ) -> Doctor:
        """Doctor profile of the caller."""
        identity = await AuthDependencies.get_current_identity(request, credentials)
        if identity.role != UserRole.DOCTOR.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Doctor access required"
            )
        return await AuthDependencies._load_profile(identity, db)


# Convenience aliases
get_current_identity = AuthDependencies.get_current_identity
get_current_profile = AuthDependencies.get_current_profile
get_current_patient = AuthDependencies.get_current_patient
get_current_doctor = AuthDependencies.get_current_doctor
