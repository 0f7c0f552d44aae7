"""
Tests for schedule slot management.
"""

import uuid
from datetime import time, timedelta

import pytest

from telecare.core.errors import Forbidden, InvalidTransition, NotFound, ValidationError
from telecare.models import SlotStatus
from telecare.services.booking_coordinator import BookingCoordinator
from telecare.services.slot_store import SlotStore

from tests.conftest import TODAY, TOMORROW


@pytest.fixture
def store(session, clock) -> SlotStore:
    return SlotStore(session, clock)


class TestCreateSlot:
    async def test_creates_available_slot(self, store, doctor):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30), notes="Follow-ups")

        assert slot.status == SlotStatus.AVAILABLE.value
        assert slot.doctor_id == doctor.id
        assert slot.linked_patient_id is None
        assert slot.linked_request_id is None
        assert slot.notes == "Follow-ups"

    async def test_today_is_allowed(self, store, doctor):
        slot = await store.create_slot(doctor.id, TODAY, time(17, 0), time(17, 30))

        assert slot.date == TODAY

    async def test_rejects_start_after_end(self, store, doctor):
        with pytest.raises(ValidationError):
            await store.create_slot(doctor.id, TOMORROW, time(10, 0), time(9, 30))

    async def test_rejects_zero_length_slot(self, store, doctor):
        with pytest.raises(ValidationError):
            await store.create_slot(doctor.id, TOMORROW, time(10, 0), time(10, 0))

    async def test_rejects_past_date(self, store, doctor):
        with pytest.raises(ValidationError):
            await store.create_slot(doctor.id, TODAY - timedelta(days=1), time(9, 0), time(9, 30))

    async def test_rejects_duplicate_start(self, store, doctor):
        await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))

        with pytest.raises(ValidationError):
            await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(10, 0))

    async def test_same_start_for_another_doctor_is_fine(self, store, doctor, other_doctor):
        await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))
        slot = await store.create_slot(other_doctor.id, TOMORROW, time(9, 0), time(9, 30))

        assert slot.doctor_id == other_doctor.id

    async def test_unknown_doctor(self, store):
        with pytest.raises(NotFound):
            await store.create_slot(uuid.uuid4(), TOMORROW, time(9, 0), time(9, 30))


class TestBlocking:
    async def test_block_and_unblock(self, store, doctor):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))

        blocked = await store.set_blocked(slot.id, True, doctor.id)
        assert blocked.status == SlotStatus.BLOCKED.value

        reopened = await store.set_blocked(slot.id, False, doctor.id)
        assert reopened.status == SlotStatus.AVAILABLE.value

    async def test_blocking_twice_is_a_no_op(self, store, doctor):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))

        await store.set_blocked(slot.id, True)
        again = await store.set_blocked(slot.id, True)

        assert again.status == SlotStatus.BLOCKED.value

    async def test_booked_slot_cannot_be_blocked(self, session, clock, store, doctor, patient):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))
        slot_id = slot.id
        await BookingCoordinator(session, clock).book_slot(slot_id, patient.id)

        with pytest.raises(InvalidTransition):
            await store.set_blocked(slot_id, True, doctor.id)

        current = await store.get_slot(slot_id)
        assert current.status == SlotStatus.BOOKED.value
        assert current.linked_patient_id == patient.id

    async def test_other_doctor_cannot_block(self, store, doctor, other_doctor):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))

        with pytest.raises(Forbidden):
            await store.set_blocked(slot.id, True, other_doctor.id)

    async def test_unknown_slot(self, store):
        with pytest.raises(NotFound):
            await store.set_blocked(uuid.uuid4(), True)


class TestDeleteSlot:
    async def test_deletes_open_slot(self, store, doctor):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))

        await store.delete_slot(slot.id, doctor.id)

        with pytest.raises(NotFound):
            await store.get_slot(slot.id)

    async def test_deletes_blocked_slot(self, store, doctor):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))
        await store.set_blocked(slot.id, True)

        await store.delete_slot(slot.id)

        assert await store.list_slots(doctor.id, TOMORROW) == []

    async def test_booked_slot_cannot_be_deleted(self, session, clock, store, doctor, patient):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))
        slot_id = slot.id
        await BookingCoordinator(session, clock).book_slot(slot_id, patient.id)

        with pytest.raises(InvalidTransition):
            await store.delete_slot(slot_id, doctor.id)

        assert (await store.get_slot(slot_id)).status == SlotStatus.BOOKED.value


class TestListing:
    async def test_list_slots_is_ordered_by_start(self, store, doctor):
        await store.create_slot(doctor.id, TOMORROW, time(14, 0), time(14, 30))
        await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))
        await store.create_slot(doctor.id, TOMORROW + timedelta(days=1), time(8, 0), time(8, 30))

        slots = await store.list_slots(doctor.id, TOMORROW)

        assert [s.start_time for s in slots] == [time(9, 0), time(14, 0)]

    async def test_list_available_across_doctors(self, store, doctor, other_doctor):
        late = await store.create_slot(doctor.id, TOMORROW, time(11, 0), time(11, 30))
        early_other = await store.create_slot(other_doctor.id, TOMORROW, time(9, 0), time(9, 30))
        early_own = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))
        blocked = await store.create_slot(doctor.id, TOMORROW, time(10, 0), time(10, 30))
        await store.set_blocked(blocked.id, True)

        available = await store.list_available(TOMORROW)

        # Same start time: ordered by doctor name
        assert [item.slot.id for item in available] == [early_other.id, early_own.id, late.id]
        assert available[0].doctor.full_name == "Dr. Michael Chen"

    async def test_list_available_filters(self, store, doctor, other_doctor):
        own = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))
        await store.create_slot(other_doctor.id, TOMORROW, time(9, 0), time(9, 30))

        by_doctor = await store.list_available(TOMORROW, doctor_id=doctor.id)
        by_specialization = await store.list_available(TOMORROW, specialization="Cardiology")

        assert [item.slot.id for item in by_doctor] == [own.id]
        assert [item.slot.id for item in by_specialization] == [own.id]

    async def test_booked_slot_leaves_available_list(self, session, clock, store, doctor, patient):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))
        await BookingCoordinator(session, clock).book_slot(slot.id, patient.id)

        assert await store.list_available(TOMORROW) == []


class TestCompareAndSet:
    async def test_only_changes_expected_state(self, session, store, doctor):
        slot = await store.create_slot(doctor.id, TOMORROW, time(9, 0), time(9, 30))

        async with session.begin():
            wrong = await store.compare_and_set_status(slot.id, SlotStatus.BLOCKED, SlotStatus.AVAILABLE)
            right = await store.compare_and_set_status(slot.id, SlotStatus.AVAILABLE, SlotStatus.BLOCKED)

        assert wrong is False
        assert right is True
        assert (await store.get_slot(slot.id)).status == SlotStatus.BLOCKED.value
