"""Concurrent booking tests: each thread gets its own session and transaction."""

import threading

from conftest import NEXT_MONDAY

from clinic_booking.domain.appointments.booking_service import BookingService
from clinic_booking.domain.appointments.patients import PatientInfo
from clinic_booking.exceptions import BookingError
from clinic_booking.models import Appointment, Professional, TimeSlot


def run_concurrently(session_factory, clock, requests):
    """Fire every (slot_id, patient) request at once; returns outcome codes in request order."""
    barrier = threading.Barrier(len(requests))
    outcomes = [None] * len(requests)

    def worker(index, slot, patient):
        session = session_factory()
        try:
            barrier.wait()
            BookingService(session, clock).book_slot(slot, patient)
            outcomes[index] = "booked"
        except BookingError as e:
            outcomes[index] = e.code
        finally:
            session.close()

    threads = [
        threading.Thread(target=worker, args=(i, slot, patient)) for i, (slot, patient) in enumerate(requests)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


def patient(n):
    return PatientInfo(first_name=f"Client{n}", last_name="Test", phone=f"+1514555020{n}")


class TestSameSlotRace:
    def test_exactly_one_of_two_requests_wins(self, db, session_factory, make_professional, clock):
        make_professional(id="prof1")
        slot = "prof1-2025-03-10-09:00"

        outcomes = run_concurrently(session_factory, clock, [(slot, patient(1)), (slot, patient(2))])

        assert sorted(outcomes) == ["booked", "slot_conflict"]
        assert db.query(Appointment).filter(Appointment.time_slot_id == slot).count() == 1

    def test_many_requests_for_a_materialized_slot(self, db, session_factory, make_professional, clock):
        make_professional(id="prof1")
        slot = "prof1-2025-03-10-09:00"
        db.add(
            TimeSlot(
                id=slot,
                professional_id="prof1",
                slot_date=NEXT_MONDAY,
                start_time="09:00",
                end_time="09:30",
            )
        )
        db.commit()

        outcomes = run_concurrently(session_factory, clock, [(slot, patient(n)) for n in range(6)])

        assert outcomes.count("booked") == 1
        assert outcomes.count("slot_conflict") == 5
        assert db.query(Appointment).count() == 1


class TestQuotaRace:
    def test_counter_never_passes_the_cap(self, db, session_factory, make_professional, clock):
        make_professional(id="prof1", plan_type="free", total_appointments_created=98)
        starts = ["09:00", "09:35", "10:10", "10:45", "11:20"]
        requests = [(f"prof1-2025-03-10-{start}", patient(n)) for n, start in enumerate(starts)]

        outcomes = run_concurrently(session_factory, clock, requests)

        assert outcomes.count("booked") == 2
        assert outcomes.count("quota_exceeded") == 3
        assert db.query(Appointment).count() == 2
        db.expire_all()
        assert db.get(Professional, "prof1").total_appointments_created == 100
