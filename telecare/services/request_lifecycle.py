"""
Consultation request lifecycle.

    pending  -> accepted | rejected    doctor responds
    accepted -> completed              doctor issues a prescription

Every transition is a conditional UPDATE on the current status.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, system_clock
from ..core.errors import Forbidden, InvalidTransition, NotFound, ValidationError
from ..core.logging import audit_logger, get_logger
from ..db.session import transaction
from ..models import (
    Appointment,
    AppointmentStatus,
    ConsultationRequest,
    ConsultationType,
    Doctor,
    Patient,
    Prescription,
    RequestStatus,
)

logger = get_logger(__name__)

ACCEPT_MESSAGE_TEMPLATE = (
    "Your consultation request has been accepted! I'm ready to provide a {consultation} consultation. "
    "Please be available at your preferred time. For video calls, ensure you have a stable internet "
    "connection and a working camera/microphone."
)
DECLINE_MESSAGE = (
    "Thank you for your consultation request. Unfortunately, I am not available at your preferred time. "
    "Please consider rescheduling or consulting another doctor."
)


@dataclass
class PrescriptionPayload:
    medications: str
    dosage_instructions: str
    health_tips: Optional[str] = None
    follow_up_date: Optional[date] = None
    notes: Optional[str] = None


def default_response_message(accept: bool, consultation_type: str) -> str:
    """Message sent to the patient when the doctor leaves the response blank."""
    if not accept:
        return DECLINE_MESSAGE
    consultation = "video call" if consultation_type == ConsultationType.VIDEO.value else "chat"
    return ACCEPT_MESSAGE_TEMPLATE.format(consultation=consultation)


class RequestLifecycle:
    """Submit, respond to and complete consultation requests."""

    def __init__(self, session: AsyncSession, clock: Clock = system_clock):
        self.session = session
        self.clock = clock

    async def submit_request(
        self,
        patient_id: uuid.UUID,
        doctor_id: uuid.UUID,
        symptoms: str,
        consultation_type: str = ConsultationType.VIDEO.value,
        message: Optional[str] = None,
    ) -> ConsultationRequest:
        """Create a pending request from a patient to a doctor."""
        if not symptoms or not symptoms.strip():
            raise ValidationError("Symptoms are required")
        if consultation_type not in {t.value for t in ConsultationType}:
            raise ValidationError(f"Unknown consultation type: {consultation_type}")

        async with transaction(self.session):
            if await self.session.get(Patient, patient_id) is None:
                raise NotFound.for_entity("Patient", patient_id)
            doctor = await self.session.get(Doctor, doctor_id, populate_existing=True)
            if doctor is None:
                raise NotFound.for_entity("Doctor", doctor_id)
            if not doctor.available:
                raise ValidationError("Doctor is not accepting consultations")

            now = self.clock.now()
            request = ConsultationRequest(
                patient_id=patient_id,
                doctor_id=doctor_id,
                symptoms=symptoms.strip(),
                consultation_type=consultation_type,
                status=RequestStatus.PENDING.value,
                request_message=message,
                created_at=now,
                updated_at=now,
            )
            self.session.add(request)

        logger.info("Consultation request submitted", request_id=str(request.id), doctor_id=str(doctor_id))
        audit_logger.log_user_action("request_submitted", "consultation_request", request.id, actor_id=patient_id)
        return request

    async def respond(
        self,
        request_id: uuid.UUID,
        accept: bool,
        response_message: Optional[str] = None,
        doctor_id: Optional[uuid.UUID] = None,
    ) -> ConsultationRequest:
        """Accept or reject a pending request."""
        new_status = RequestStatus.ACCEPTED if accept else RequestStatus.REJECTED

        async with transaction(self.session):
            request = await self._load_for_doctor(request_id, doctor_id)
            if request.status != RequestStatus.PENDING.value:
                raise InvalidTransition(f"Request is {request.status} and can no longer be answered")

            message = (response_message or "").strip() or default_response_message(accept, request.consultation_type)
            result = await self.session.execute(
                update(ConsultationRequest)
                .where(
                    ConsultationRequest.id == request_id,
                    ConsultationRequest.status == RequestStatus.PENDING.value,
                )
                .values(status=new_status.value, doctor_response=message, updated_at=self.clock.now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidTransition("Request was answered concurrently")
            request = await self.session.get(ConsultationRequest, request_id, populate_existing=True)

        logger.info("Consultation request answered", request_id=str(request_id), status=new_status.value)
        audit_logger.log_user_action(
            "request_accepted" if accept else "request_rejected",
            "consultation_request", request_id, actor_id=doctor_id,
        )
        return request

    async def complete(
        self,
        request_id: uuid.UUID,
        payload: PrescriptionPayload,
        doctor_id: Optional[uuid.UUID] = None,
    ) -> Prescription:
        """
        Close an accepted request with a prescription.

        The status change, the prescription insert and the appointment
        completion commit together or not at all.
        """
        if not payload.medications or not payload.medications.strip():
            raise ValidationError("Medications are required")
        if not payload.dosage_instructions or not payload.dosage_instructions.strip():
            raise ValidationError("Dosage instructions are required")

        try:
            async with transaction(self.session):
                request = await self._load_for_doctor(request_id, doctor_id)
                if request.status != RequestStatus.ACCEPTED.value:
                    raise InvalidTransition(f"Request is {request.status} and cannot be completed")

                now = self.clock.now()
                result = await self.session.execute(
                    update(ConsultationRequest)
                    .where(
                        ConsultationRequest.id == request_id,
                        ConsultationRequest.status == RequestStatus.ACCEPTED.value,
                    )
                    .values(status=RequestStatus.COMPLETED.value, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise InvalidTransition("Request was completed concurrently")

                prescription = await self._insert_prescription(request, payload)

                await self.session.execute(
                    update(Appointment)
                    .where(
                        Appointment.consultation_request_id == request_id,
                        Appointment.status == AppointmentStatus.CONFIRMED.value,
                    )
                    .values(status=AppointmentStatus.COMPLETED.value, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError as e:
            raise InvalidTransition("Request already has a prescription") from e

        logger.info("Consultation completed", request_id=str(request_id), prescription_id=str(prescription.id))
        audit_logger.log_user_action(
            "request_completed", "consultation_request", request_id, actor_id=doctor_id,
            details={"prescription_id": str(prescription.id)},
        )
        return prescription

    async def get_request(self, request_id: uuid.UUID) -> ConsultationRequest:
        async with transaction(self.session):
            request = await self.session.get(ConsultationRequest, request_id, populate_existing=True)
        if request is None:
            raise NotFound.for_entity("Consultation request", request_id)
        return request

    async def list_doctor_requests(
        self,
        doctor_id: uuid.UUID,
        status: Optional[str] = None,
    ) -> List[ConsultationRequest]:
        """Requests addressed to a doctor, newest first."""
        query = select(ConsultationRequest).where(ConsultationRequest.doctor_id == doctor_id)
        if status:
            query = query.where(ConsultationRequest.status == status)
        query = query.order_by(ConsultationRequest.created_at.desc()).execution_options(populate_existing=True)

        async with transaction(self.session):
            result = await self.session.execute(query)
            return list(result.scalars().all())

    async def list_patient_requests(self, patient_id: uuid.UUID) -> List[ConsultationRequest]:
        """Requests a patient has made, newest first."""
        async with transaction(self.session):
            result = await self.session.execute(
                select(ConsultationRequest)
                .where(ConsultationRequest.patient_id == patient_id)
                .order_by(ConsultationRequest.created_at.desc())
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())

    async def list_patient_prescriptions(self, patient_id: uuid.UUID) -> List[Prescription]:
        async with transaction(self.session):
            result = await self.session.execute(
                select(Prescription)
                .where(Prescription.patient_id == patient_id)
                .order_by(Prescription.created_at.desc())
            )
            return list(result.scalars().all())

    async def _insert_prescription(self, request: ConsultationRequest, payload: PrescriptionPayload) -> Prescription:
        prescription = Prescription(
            consultation_request_id=request.id,
            patient_id=request.patient_id,
            doctor_id=request.doctor_id,
            medications=payload.medications.strip(),
            dosage_instructions=payload.dosage_instructions.strip(),
            health_tips=payload.health_tips,
            follow_up_date=payload.follow_up_date,
            notes=payload.notes,
            created_at=self.clock.now(),
        )
        self.session.add(prescription)
        await self.session.flush()
        return prescription

    async def _load_for_doctor(self, request_id: uuid.UUID, doctor_id: Optional[uuid.UUID]) -> ConsultationRequest:
        request = await self.session.get(ConsultationRequest, request_id, populate_existing=True)
        if request is None:
            raise NotFound.for_entity("Consultation request", request_id)
        if doctor_id is not None and request.doctor_id != doctor_id:
            raise Forbidden("Consultation request belongs to another doctor")
        return request
