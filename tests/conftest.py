"""Shared test fixtures for clinic booking tests."""

from datetime import date, datetime, timedelta
from typing import Callable, Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from clinic_booking.database import Base, create_db_engine
from clinic_booking.domain.appointments.patients import PatientInfo
from clinic_booking.domain.scheduling.time_calculator import build_slot_id
from clinic_booking.models import (
    Professional,
    ProfessionalBreak,
    ProfessionalSchedule,
    ProfessionalService,
    WaitlistEntry,
)
from clinic_booking.shared.clock import Clock

# 2025-03-03 is a Monday; 13:00 UTC is 08:00 in Toronto (EST)
MONDAY = date(2025, 3, 3)
NEXT_MONDAY = date(2025, 3, 10)
NOW = datetime(2025, 3, 3, 13, 0)


class FrozenClock(Clock):
    """Clock pinned to a fixed UTC instant"""

    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, **kwargs) -> None:
        self.moment = self.moment + timedelta(**kwargs)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so threads get real, serialized transactions."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'booking.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def make_professional(db) -> Callable[..., Professional]:
    """Factory: professional working Monday 09:00-12:00 (30 min + 5 min buffer)."""

    def _make(
        schedule=((1, "09:00", "12:00"),),
        breaks=(),
        **overrides,
    ) -> Professional:
        data = {
            "first_name": "Ana",
            "last_name": "Silva",
            "email": "ana@clinic.test",
            "timezone": "America/Toronto",
            "appointment_duration": 30,
            "buffer_time": 5,
            "plan_type": "pro",
        }
        data.update(overrides)
        professional = Professional(**data)
        db.add(professional)
        db.flush()
        for day, start, end in schedule:
            db.add(
                ProfessionalSchedule(
                    professional_id=professional.id, day_of_week=day, start_time=start, end_time=end
                )
            )
        for day, start, end in breaks:
            db.add(
                ProfessionalBreak(
                    professional_id=professional.id, day_of_week=day, start_time=start, end_time=end
                )
            )
        db.commit()
        return professional

    return _make


@pytest.fixture
def professional(make_professional) -> Professional:
    return make_professional()


@pytest.fixture
def make_service(db) -> Callable[..., ProfessionalService]:
    def _make(professional: Professional, duration: int = 30, buffer_time=None, name="Consultation"):
        service = ProfessionalService(
            professional_id=professional.id, name=name, duration=duration, buffer_time=buffer_time
        )
        db.add(service)
        db.commit()
        return service

    return _make


@pytest.fixture
def make_waitlist_entry(db, clock) -> Callable[..., WaitlistEntry]:
    """Factory for pending waitlist entries; each one is created a minute after the last."""
    counter = {"n": 0}

    def _make(professional: Professional, preferred_date: date, service_id=None, **overrides):
        counter["n"] += 1
        data = {
            "professional_id": professional.id,
            "professional_service_id": service_id,
            "first_name": f"Wait{counter['n']}",
            "last_name": "Lister",
            "email": f"wait{counter['n']}@example.com",
            "phone": f"+1514555010{counter['n'] % 10}",
            "preferred_date": preferred_date,
            "token": f"waitlist-token-{counter['n']}",
            "status": "pending",
            "created_at": clock.now() - timedelta(days=30) + timedelta(minutes=counter["n"]),
        }
        data.update(overrides)
        entry = WaitlistEntry(**data)
        db.add(entry)
        db.commit()
        return entry

    return _make


@pytest.fixture
def patient_info() -> PatientInfo:
    return PatientInfo(
        first_name="John",
        last_name="Doe",
        email="john@example.com",
        phone="+15145550100",
    )


def slot_id(professional: Professional, day: date, start: str) -> str:
    return build_slot_id(professional.id, day, start)
