"""
Insert sample doctors, a patient and a week of slots for local development.
Safe to run more than once.
"""

import asyncio
from datetime import time, timedelta

from sqlalchemy import select

from telecare.core.clock import system_clock
from telecare.core.errors import ValidationError
from telecare.db.base import AsyncSessionLocal, async_engine, init_models
from telecare.db.session import transaction
from telecare.models import Doctor, Patient
from telecare.services.slot_store import SlotStore

SAMPLE_DOCTORS = [
    ("doctor-cardio", "Dr. Sarah Johnson", "Cardiology", 12, "Treats chest pain, palpitations and hypertension."),
    ("doctor-derma", "Dr. Michael Chen", "Dermatology", 6, "Acne, eczema and rash management."),
    ("doctor-general", "Dr. Emily Davis", "General Medicine", 3, "Fever, flu and general check-ups."),
    ("doctor-neuro", "Dr. Robert Wilson", "Neurology", 15, "Migraine and seizure specialist."),
]

SAMPLE_PATIENTS = [
    ("patient-demo", "Alex Morgan", "alex.morgan@example.com"),
]

SLOT_TIMES = [(time(9, 0), time(9, 30)), (time(10, 0), time(10, 30)), (time(14, 0), time(14, 30))]


async def insert_sample_data():
    await init_models(async_engine)

    async with AsyncSessionLocal() as session:
        doctors = []
        async with transaction(session):
            for user_id, name, specialization, years, bio in SAMPLE_DOCTORS:
                result = await session.execute(select(Doctor).where(Doctor.user_id == user_id))
                doctor = result.scalar_one_or_none()
                if not doctor:
                    doctor = Doctor(
                        user_id=user_id,
                        full_name=name,
                        specialization=specialization,
                        experience_years=years,
                        bio=bio,
                    )
                    session.add(doctor)
                doctors.append(doctor)

            for user_id, name, email in SAMPLE_PATIENTS:
                result = await session.execute(select(Patient).where(Patient.user_id == user_id))
                if not result.scalar_one_or_none():
                    session.add(Patient(user_id=user_id, full_name=name, email=email))
        print(f'✅ {len(doctors)} doctors and {len(SAMPLE_PATIENTS)} patients ready')

        store = SlotStore(session, system_clock)
        created = 0
        today = system_clock.today()
        for doctor in doctors:
            for offset in range(7):
                for start, end in SLOT_TIMES:
                    try:
                        await store.create_slot(doctor.id, today + timedelta(days=offset), start, end)
                        created += 1
                    except ValidationError:
                        # Already there from a previous run
                        pass
        print(f'✅ {created} slots created')

    await async_engine.dispose()


if __name__ == "__main__":
    asyncio.run(insert_sample_data())
