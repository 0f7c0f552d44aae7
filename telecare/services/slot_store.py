"""
Slot store: bookable time slots per doctor per day and their state machine.

    available <-> blocked       doctor toggle
    available  -> booked        booking coordinator only
    booked     -> available     cancellation only

Every status change is a conditional UPDATE checked by rowcount, so a
transition can never overwrite a concurrent one.
"""

import uuid
from dataclasses import dataclass
from datetime import date, time
from typing import Any, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, system_clock
from ..core.errors import Forbidden, InvalidTransition, NotFound, ValidationError
from ..core.logging import audit_logger, get_logger
from ..db.session import transaction
from ..models import Doctor, ScheduleSlot, SlotStatus

logger = get_logger(__name__)


@dataclass
class AvailableSlot:
    """An open slot joined with its doctor's profile."""
    slot: ScheduleSlot
    doctor: Doctor


class SlotStore:
    """Owns doctor schedules and enforces slot state transitions."""

    def __init__(self, session: AsyncSession, clock: Clock = system_clock):
        self.session = session
        self.clock = clock

    async def create_slot(
        self,
        doctor_id: uuid.UUID,
        slot_date: date,
        start_time: time,
        end_time: time,
        notes: Optional[str] = None,
    ) -> ScheduleSlot:
        """Publish a new available slot for a doctor."""
        if start_time >= end_time:
            raise ValidationError("Slot start time must be before its end time")
        if slot_date < self.clock.today():
            raise ValidationError("Cannot create a slot on a past date")

        try:
            async with transaction(self.session):
                if await self.session.get(Doctor, doctor_id) is None:
                    raise NotFound.for_entity("Doctor", doctor_id)

                existing = await self.session.execute(
                    select(ScheduleSlot.id).where(
                        ScheduleSlot.doctor_id == doctor_id,
                        ScheduleSlot.date == slot_date,
                        ScheduleSlot.start_time == start_time,
                    )
                )
                if existing.first() is not None:
                    raise ValidationError(
                        f"A slot starting at {start_time.strftime('%H:%M')} on {slot_date.isoformat()} already exists"
                    )

                now = self.clock.now()
                slot = ScheduleSlot(
                    doctor_id=doctor_id,
                    date=slot_date,
                    start_time=start_time,
                    end_time=end_time,
                    status=SlotStatus.AVAILABLE.value,
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
                self.session.add(slot)
        except IntegrityError as e:
            # Lost an insert race on (doctor_id, date, start_time).
            raise ValidationError(
                f"A slot starting at {start_time.strftime('%H:%M')} on {slot_date.isoformat()} already exists"
            ) from e

        logger.info("Slot created", slot_id=str(slot.id), doctor_id=str(doctor_id), date=slot_date.isoformat())
        audit_logger.log_user_action("slot_created", "slot", slot.id, actor_id=doctor_id)
        return slot

    async def get_slot(self, slot_id: uuid.UUID) -> ScheduleSlot:
        async with transaction(self.session):
            slot = await self.session.get(ScheduleSlot, slot_id, populate_existing=True)
        if slot is None:
            raise NotFound.for_entity("Slot", slot_id)
        return slot

    async def set_blocked(
        self,
        slot_id: uuid.UUID,
        blocked: bool,
        doctor_id: Optional[uuid.UUID] = None,
    ) -> ScheduleSlot:
        """Block or unblock a slot. Booked slots cannot be toggled."""
        target = SlotStatus.BLOCKED if blocked else SlotStatus.AVAILABLE
        source = SlotStatus.AVAILABLE if blocked else SlotStatus.BLOCKED

        async with transaction(self.session):
            slot = await self._load_owned(slot_id, doctor_id)
            if slot.status == SlotStatus.BOOKED.value:
                raise InvalidTransition("Booked slots cannot be blocked or unblocked")

            if slot.status != target.value:
                changed = await self.compare_and_set_status(slot_id, source, target)
                if not changed:
                    # Someone else moved it between our read and the update.
                    current = await self.session.get(ScheduleSlot, slot_id, populate_existing=True)
                    if current is None:
                        raise NotFound.for_entity("Slot", slot_id)
                    if current.status != target.value:
                        raise InvalidTransition(
                            f"Slot is {current.status} and cannot be {'blocked' if blocked else 'unblocked'}"
                        )
            slot = await self.session.get(ScheduleSlot, slot_id, populate_existing=True)

        logger.info("Slot status toggled", slot_id=str(slot_id), status=slot.status)
        audit_logger.log_user_action(
            "slot_blocked" if blocked else "slot_unblocked", "slot", slot_id, actor_id=doctor_id
        )
        return slot

    async def delete_slot(self, slot_id: uuid.UUID, doctor_id: Optional[uuid.UUID] = None):
        """Remove a slot that is not booked."""
        async with transaction(self.session):
            await self._load_owned(slot_id, doctor_id)
            result = await self.session.execute(
                delete(ScheduleSlot)
                .where(ScheduleSlot.id == slot_id, ScheduleSlot.status != SlotStatus.BOOKED.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidTransition("Booked slots cannot be deleted")

        logger.info("Slot deleted", slot_id=str(slot_id))
        audit_logger.log_user_action("slot_deleted", "slot", slot_id, actor_id=doctor_id)

    async def list_slots(self, doctor_id: uuid.UUID, slot_date: date) -> List[ScheduleSlot]:
        """A doctor's slots on one day, earliest first."""
        async with transaction(self.session):
            result = await self.session.execute(
                select(ScheduleSlot)
                .where(ScheduleSlot.doctor_id == doctor_id, ScheduleSlot.date == slot_date)
                .order_by(ScheduleSlot.start_time)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())

    async def list_available(
        self,
        slot_date: date,
        doctor_id: Optional[uuid.UUID] = None,
        specialization: Optional[str] = None,
    ) -> List[AvailableSlot]:
        """Open slots on one day across all doctors, joined with the doctor profile."""
        query = (
            select(ScheduleSlot, Doctor)
            .join(Doctor, Doctor.id == ScheduleSlot.doctor_id)
            .where(ScheduleSlot.date == slot_date, ScheduleSlot.status == SlotStatus.AVAILABLE.value)
        )
        if doctor_id:
            query = query.where(ScheduleSlot.doctor_id == doctor_id)
        if specialization:
            query = query.where(Doctor.specialization == specialization)
        query = query.order_by(ScheduleSlot.start_time, Doctor.full_name).execution_options(populate_existing=True)

        async with transaction(self.session):
            result = await self.session.execute(query)
            return [AvailableSlot(slot=slot, doctor=doctor) for slot, doctor in result.all()]

    async def compare_and_set_status(
        self,
        slot_id: uuid.UUID,
        expected: SlotStatus,
        new: SlotStatus,
        expected_request_id: Optional[uuid.UUID] = None,
        **values: Any,
    ) -> bool:
        """
        Move a slot from ``expected`` to ``new`` in a single conditional UPDATE.

        Extra column values are written in the same statement. With
        ``expected_request_id`` the slot must also still be linked to that
        request. Returns False when the slot is missing or no longer matches.
        Must be called inside the caller's transaction.
        """
        conditions = [ScheduleSlot.id == slot_id, ScheduleSlot.status == expected.value]
        if expected_request_id is not None:
            conditions.append(ScheduleSlot.linked_request_id == expected_request_id)
        result = await self.session.execute(
            update(ScheduleSlot)
            .where(*conditions)
            .values(status=new.value, updated_at=self.clock.now(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _load_owned(self, slot_id: uuid.UUID, doctor_id: Optional[uuid.UUID]) -> ScheduleSlot:
        slot = await self.session.get(ScheduleSlot, slot_id, populate_existing=True)
        if slot is None:
            raise NotFound.for_entity("Slot", slot_id)
        if doctor_id is not None and slot.doctor_id != doctor_id:
            raise Forbidden("Slot belongs to another doctor")
        return slot
