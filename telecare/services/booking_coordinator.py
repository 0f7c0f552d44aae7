"""
Booking coordinator: turns a slot pick into a linked request, slot claim and
appointment, and undoes the slot side on cancellation.

All writes of one booking run in a single database transaction. The slot
claim is a compare-and-set, so of two concurrent bookings of the same slot
exactly one commits and the other gets SlotUnavailable.
"""

import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, system_clock
from ..core.config import settings
from ..core.errors import Forbidden, InvalidTransition, NotFound, SlotUnavailable, ValidationError
from ..core.logging import audit_logger, get_logger
from ..db.session import transaction
from ..models import (
    Appointment,
    AppointmentStatus,
    ConsultationRequest,
    ConsultationType,
    Patient,
    RequestStatus,
    ScheduleSlot,
    SlotStatus,
)
from .slot_store import SlotStore

logger = get_logger(__name__)

DEFAULT_BOOKING_SYMPTOMS = "Scheduled appointment"
DEFAULT_BOOKING_MESSAGE = "Direct booking via schedule"


@dataclass
class Booking:
    """Result of a successful booking: the three linked records."""
    request: ConsultationRequest
    appointment: Appointment
    slot: ScheduleSlot


class BookingCoordinator:
    """Atomic booking and cancellation across requests, slots and appointments."""

    def __init__(self, session: AsyncSession, clock: Clock = system_clock):
        self.session = session
        self.clock = clock
        self.slots = SlotStore(session, clock)

    async def book_slot(
        self,
        slot_id: uuid.UUID,
        patient_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Book an available slot for a patient.

        Creates an already-accepted consultation request, claims the slot and
        creates a confirmed appointment pointing at it. Raises NotFound for
        an unknown slot or patient, SlotUnavailable when the slot is not open
        or another booking claims it first. Nothing is persisted on failure.
        """
        async with transaction(self.session):
            slot = await self.session.get(ScheduleSlot, slot_id, populate_existing=True)
            if slot is None:
                raise NotFound.for_entity("Slot", slot_id)
            if slot.status != SlotStatus.AVAILABLE.value:
                raise SlotUnavailable(f"Slot is {slot.status} and can no longer be booked")
            if await self.session.get(Patient, patient_id) is None:
                raise NotFound.for_entity("Patient", patient_id)

            request = await self._create_direct_request(slot, patient_id, notes)
            await self._claim_slot(slot, patient_id, request.id)
            appointment = await self._create_appointment(slot, request, notes)
            slot = await self.session.get(ScheduleSlot, slot_id, populate_existing=True)

        logger.info(
            "Slot booked",
            slot_id=str(slot_id),
            patient_id=str(patient_id),
            request_id=str(request.id),
            appointment_id=str(appointment.id),
        )
        audit_logger.log_user_action(
            "slot_booked", "appointment", appointment.id, actor_id=patient_id,
            details={"slot_id": str(slot_id), "request_id": str(request.id)},
        )
        return Booking(request=request, appointment=appointment, slot=slot)

    async def schedule_request(
        self,
        request_id: uuid.UUID,
        slot_id: uuid.UUID,
        doctor_id: Optional[uuid.UUID] = None,
    ) -> Booking:
        """Attach an accepted request that has no appointment yet to one of its doctor's slots."""
        async with transaction(self.session):
            request = await self.session.get(ConsultationRequest, request_id, populate_existing=True)
            if request is None:
                raise NotFound.for_entity("Consultation request", request_id)
            if doctor_id is not None and request.doctor_id != doctor_id:
                raise Forbidden("Consultation request belongs to another doctor")
            if request.status != RequestStatus.ACCEPTED.value:
                raise InvalidTransition(f"Only accepted requests can be scheduled, request is {request.status}")

            existing = await self.session.execute(
                select(Appointment.id).where(Appointment.consultation_request_id == request_id)
            )
            if existing.first() is not None:
                raise InvalidTransition("Consultation request already has an appointment")

            slot = await self.session.get(ScheduleSlot, slot_id, populate_existing=True)
            if slot is None:
                raise NotFound.for_entity("Slot", slot_id)
            if slot.doctor_id != request.doctor_id:
                raise ValidationError("Slot belongs to a different doctor than the request")
            if slot.status != SlotStatus.AVAILABLE.value:
                raise SlotUnavailable(f"Slot is {slot.status} and can no longer be booked")

            await self._claim_slot(slot, request.patient_id, request.id)
            request.scheduled_time = self.clock.localize(slot.date, slot.start_time)
            request.updated_at = self.clock.now()
            try:
                appointment = await self._create_appointment(slot, request, None)
            except IntegrityError as e:
                # A concurrent call scheduled the same request.
                raise InvalidTransition("Consultation request already has an appointment") from e

            slot = await self.session.get(ScheduleSlot, slot_id, populate_existing=True)

        logger.info("Request scheduled", request_id=str(request_id), slot_id=str(slot_id))
        audit_logger.log_user_action(
            "request_scheduled", "appointment", appointment.id, actor_id=doctor_id,
            details={"slot_id": str(slot_id), "request_id": str(request_id)},
        )
        return Booking(request=request, appointment=appointment, slot=slot)

    async def cancel_appointment(
        self,
        appointment_id: uuid.UUID,
        requested_by: Optional[uuid.UUID] = None,
    ) -> Appointment:
        """
        Cancel a confirmed appointment and release exactly its slot.

        The slot is released only while it is still booked for this
        appointment's request. The consultation request keeps its status.
        """
        async with transaction(self.session):
            appointment = await self.session.get(Appointment, appointment_id, populate_existing=True)
            if appointment is None:
                raise NotFound.for_entity("Appointment", appointment_id)
            if requested_by is not None and requested_by not in (appointment.patient_id, appointment.doctor_id):
                raise Forbidden("Only the patient or the doctor of an appointment can cancel it")
            if appointment.status != AppointmentStatus.CONFIRMED.value:
                raise InvalidTransition(f"Appointment is {appointment.status} and cannot be cancelled")

            result = await self.session.execute(
                update(Appointment)
                .where(
                    Appointment.id == appointment_id,
                    Appointment.status == AppointmentStatus.CONFIRMED.value,
                )
                .values(status=AppointmentStatus.CANCELLED.value, updated_at=self.clock.now())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidTransition("Appointment was changed concurrently and cannot be cancelled")

            if appointment.slot_id is not None:
                released = await self.slots.compare_and_set_status(
                    appointment.slot_id,
                    SlotStatus.BOOKED,
                    SlotStatus.AVAILABLE,
                    expected_request_id=appointment.consultation_request_id,
                    linked_patient_id=None,
                    linked_request_id=None,
                )
                if not released:
                    raise InvalidTransition("Appointment slot is no longer booked for this appointment")
            else:
                logger.warning("Cancelled appointment has no slot to release", appointment_id=str(appointment_id))

            appointment = await self.session.get(Appointment, appointment_id, populate_existing=True)

        logger.info("Appointment cancelled", appointment_id=str(appointment_id), slot_id=str(appointment.slot_id))
        audit_logger.log_user_action(
            "appointment_cancelled", "appointment", appointment_id, actor_id=requested_by,
            details={"slot_id": str(appointment.slot_id)},
        )
        return appointment

    async def get_appointment(self, appointment_id: uuid.UUID) -> Appointment:
        async with transaction(self.session):
            appointment = await self.session.get(Appointment, appointment_id, populate_existing=True)
        if appointment is None:
            raise NotFound.for_entity("Appointment", appointment_id)
        return appointment

    async def list_patient_appointments(self, patient_id: uuid.UUID) -> List[Appointment]:
        """A patient's appointments from today on, soonest first."""
        async with transaction(self.session):
            result = await self.session.execute(
                select(Appointment)
                .where(
                    Appointment.patient_id == patient_id,
                    Appointment.scheduled_date >= self.clock.today(),
                )
                .order_by(Appointment.scheduled_date, Appointment.scheduled_time)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())

    async def list_doctor_appointments(self, doctor_id: uuid.UUID, limit: Optional[int] = None) -> List[Appointment]:
        """A doctor's confirmed appointments from today on, soonest first."""
        async with transaction(self.session):
            result = await self.session.execute(
                select(Appointment)
                .where(
                    Appointment.doctor_id == doctor_id,
                    Appointment.status == AppointmentStatus.CONFIRMED.value,
                    Appointment.scheduled_date >= self.clock.today(),
                )
                .order_by(Appointment.scheduled_date, Appointment.scheduled_time)
                .limit(limit or settings.upcoming_appointments_limit)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())

    async def _create_direct_request(
        self,
        slot: ScheduleSlot,
        patient_id: uuid.UUID,
        notes: Optional[str],
    ) -> ConsultationRequest:
        now = self.clock.now()
        request = ConsultationRequest(
            patient_id=patient_id,
            doctor_id=slot.doctor_id,
            symptoms=notes or DEFAULT_BOOKING_SYMPTOMS,
            consultation_type=ConsultationType.VIDEO.value,
            status=RequestStatus.ACCEPTED.value,
            request_message=notes or DEFAULT_BOOKING_MESSAGE,
            scheduled_time=self.clock.localize(slot.date, slot.start_time),
            created_at=now,
            updated_at=now,
        )
        self.session.add(request)
        await self.session.flush()
        return request

    async def _claim_slot(self, slot: ScheduleSlot, patient_id: uuid.UUID, request_id: uuid.UUID):
        claimed = await self.slots.compare_and_set_status(
            slot.id,
            SlotStatus.AVAILABLE,
            SlotStatus.BOOKED,
            linked_patient_id=patient_id,
            linked_request_id=request_id,
        )
        if not claimed:
            raise SlotUnavailable("Slot was booked by someone else")

    async def _create_appointment(
        self,
        slot: ScheduleSlot,
        request: ConsultationRequest,
        notes: Optional[str],
    ) -> Appointment:
        now = self.clock.now()
        appointment = Appointment(
            doctor_id=slot.doctor_id,
            patient_id=request.patient_id,
            consultation_request_id=request.id,
            slot_id=slot.id,
            scheduled_date=slot.date,
            scheduled_time=slot.start_time,
            appointment_type=request.consultation_type,
            status=AppointmentStatus.CONFIRMED.value,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        self.session.add(appointment)
        await self.session.flush()
        return appointment
