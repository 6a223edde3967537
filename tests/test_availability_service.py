"""Tests for the lazy slot generator."""

import types
from datetime import date, timedelta

import pytest
from conftest import MONDAY, NEXT_MONDAY, NOW, slot_id

from clinic_booking.domain.scheduling.availability_service import (
    iter_available_slots,
    list_available_slots,
)
from clinic_booking.exceptions import ProfessionalNotFound, ServiceNotFound
from clinic_booking.models import Appointment, Patient, ProfessionalSchedule, TimeSlot


def starts(slots):
    return [s.start_time for s in slots]


def add_appointment(db, professional, day, start, end, status="confirmed", created_at=None):
    patient = Patient(professional_id=professional.id, first_name="P", last_name="Q")
    db.add(patient)
    db.flush()
    appointment = Appointment(
        professional_id=professional.id,
        patient_id=patient.id,
        appointment_date=day,
        start_time=start,
        end_time=end,
        first_name="P",
        last_name="Q",
        status=status,
        created_at=created_at or NOW,
    )
    db.add(appointment)
    db.commit()
    return appointment


class TestSlotGeneration:
    def test_stride_includes_buffer(self, db, professional, clock):
        """Mon 09:00-12:00, 30 min + 5 min buffer."""
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)

        assert starts(slots) == ["09:00", "09:35", "10:10", "10:45", "11:20"]
        assert [s.end_time for s in slots] == ["09:30", "10:05", "10:40", "11:15", "11:50"]
        assert slots[0].id == slot_id(professional, MONDAY, "09:00")

    def test_returns_lazy_iterator(self, db, professional, clock):
        result = iter_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert isinstance(result, types.GeneratorType)
        assert next(result).start_time == "09:00"

    def test_repeated_calls_are_independent(self, db, professional, clock):
        first = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        second = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert first == second

    def test_breaks_remove_overlapping_slots(self, db, make_professional, clock):
        professional = make_professional(breaks=((1, "10:00", "10:30"),))
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert starts(slots) == ["09:00", "10:45", "11:20"]

    def test_service_overrides_duration_and_buffer(self, db, professional, make_service, clock):
        service = make_service(professional, duration=45, buffer_time=0)
        slots = list_available_slots(
            db, professional.id, from_date=MONDAY, to_date=MONDAY, service_id=service.id, clock=clock
        )
        assert starts(slots) == ["09:00", "09:45", "10:30", "11:15"]
        assert slots[-1].end_time == "12:00"

    def test_service_without_buffer_uses_professional_buffer(self, db, professional, make_service, clock):
        service = make_service(professional, duration=45, buffer_time=None)
        slots = list_available_slots(
            db, professional.id, from_date=MONDAY, to_date=MONDAY, service_id=service.id, clock=clock
        )
        assert starts(slots) == ["09:00", "09:50", "10:40"]

    def test_overlapping_blocks_do_not_duplicate_slots(self, db, make_professional, clock):
        professional = make_professional(schedule=((1, "09:00", "12:00"), (1, "09:00", "10:00")))
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        ids = [s.id for s in slots]
        assert len(ids) == len(set(ids))
        assert starts(slots) == ["09:00", "09:35", "10:10", "10:45", "11:20"]

    def test_unavailable_blocks_are_ignored(self, db, professional, clock):
        db.add(
            ProfessionalSchedule(
                professional_id=professional.id,
                day_of_week=2,
                start_time="09:00",
                end_time="12:00",
                is_available=False,
            )
        )
        db.commit()
        tuesday = MONDAY + timedelta(days=1)
        assert list_available_slots(db, professional.id, from_date=tuesday, to_date=tuesday, clock=clock) == []


class TestDateRange:
    def test_default_range_covers_fourteen_days(self, db, professional, clock):
        slots = list_available_slots(db, professional.id, clock=clock)
        assert sorted({s.slot_date for s in slots}) == [MONDAY, NEXT_MONDAY, date(2025, 3, 17)]
        assert len(slots) == 15

    def test_dates_before_today_are_skipped(self, db, professional, clock):
        clock.advance(days=1)
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=NEXT_MONDAY, clock=clock)
        assert {s.slot_date for s in slots} == {NEXT_MONDAY}

    def test_ordered_by_date_then_time(self, db, professional, clock):
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=NEXT_MONDAY, clock=clock)
        keys = [(s.slot_date, s.start_time) for s in slots]
        assert keys == sorted(keys)


class TestMinimumAdvance:
    def test_slots_starting_too_soon_are_hidden(self, db, professional, clock):
        clock.advance(hours=1)  # 09:00 local
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert starts(slots) == ["09:35", "10:10", "10:45", "11:20"]

    def test_boundary_is_inclusive(self, db, professional, clock):
        clock.advance(minutes=80)  # 09:20 local, 09:35 is exactly 15 minutes away
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert starts(slots) == ["10:10", "10:45", "11:20"]

    def test_skip_min_advance(self, db, professional, clock):
        clock.advance(hours=1)
        slots = list(
            iter_available_slots(
                db, professional.id, from_date=MONDAY, to_date=MONDAY, skip_min_advance=True, clock=clock
            )
        )
        assert starts(slots)[0] == "09:00"

    def test_future_dates_unaffected(self, db, professional, clock):
        clock.advance(hours=3)
        slots = list_available_slots(
            db, professional.id, from_date=NEXT_MONDAY, to_date=NEXT_MONDAY, clock=clock
        )
        assert len(slots) == 5


class TestConflicts:
    def test_confirmed_appointment_blocks_overlap(self, db, professional, clock):
        add_appointment(db, professional, MONDAY, "09:35", "10:05")
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert "09:35" not in starts(slots)

    def test_cancelled_and_rescheduled_do_not_block(self, db, professional, clock):
        add_appointment(db, professional, MONDAY, "09:35", "10:05", status="cancelled")
        add_appointment(db, professional, MONDAY, "10:10", "10:40", status="rescheduled")
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert len(slots) == 5

    def test_fresh_draft_blocks(self, db, professional, clock):
        add_appointment(
            db, professional, MONDAY, "09:35", "10:05", status="draft", created_at=clock.now() - timedelta(minutes=5)
        )
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert "09:35" not in starts(slots)

    def test_expired_draft_does_not_block(self, db, professional, clock):
        add_appointment(
            db, professional, MONDAY, "09:35", "10:05", status="draft", created_at=clock.now() - timedelta(minutes=15)
        )
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert "09:35" in starts(slots)

    def test_excluded_appointment_is_ignored(self, db, professional, clock):
        appointment = add_appointment(db, professional, MONDAY, "09:35", "10:05")
        slots = list_available_slots(
            db,
            professional.id,
            from_date=MONDAY,
            to_date=MONDAY,
            exclude_appointment_id=appointment.id,
            clock=clock,
        )
        assert "09:35" in starts(slots)

    def test_booked_slot_row_is_hidden(self, db, professional, clock):
        db.add(
            TimeSlot(
                id=slot_id(professional, MONDAY, "10:10"),
                professional_id=professional.id,
                slot_date=MONDAY,
                start_time="10:10",
                end_time="10:40",
                is_booked=True,
            )
        )
        db.commit()
        slots = list_available_slots(db, professional.id, from_date=MONDAY, to_date=MONDAY, clock=clock)
        assert "10:10" not in starts(slots)


class TestLookupErrors:
    def test_unknown_professional_raises_at_call_time(self, db, clock):
        with pytest.raises(ProfessionalNotFound):
            iter_available_slots(db, "missing", clock=clock)

    def test_foreign_service_raises(self, db, professional, make_professional, make_service, clock):
        other = make_professional(email="other@clinic.test")
        service = make_service(other)
        with pytest.raises(ServiceNotFound):
            iter_available_slots(db, professional.id, service_id=service.id, clock=clock)
