"""Tests for atomic slot booking."""

from datetime import timedelta

import pytest
from conftest import MONDAY, NEXT_MONDAY, slot_id

from clinic_booking.domain.appointments.booking_service import BookingService
from clinic_booking.domain.appointments.lifecycle_service import AppointmentLifecycleService
from clinic_booking.domain.appointments.patients import PatientInfo
from clinic_booking.domain.scheduling.availability_service import list_available_slots
from clinic_booking.exceptions import (
    OutsideWorkingHours,
    OverlapsBreak,
    QuotaExceeded,
    ServiceNotFound,
    SlotConflict,
    SlotInPast,
    SlotNotFound,
)
from clinic_booking.models import Appointment, Patient, TimeSlot
from clinic_booking.services.notification_service import APPOINTMENT_BOOKED


@pytest.fixture
def service(db, clock):
    return BookingService(db, clock)


class TestVirtualSlotBooking:
    def test_materializes_slot_and_books(self, db, service, professional, patient_info):
        sid = slot_id(professional, NEXT_MONDAY, "09:00")

        appointment = service.book_slot(sid, patient_info)

        assert appointment.status == "confirmed"
        assert appointment.time_slot_id == sid
        assert appointment.start_time == "09:00"
        assert appointment.end_time == "09:30"
        assert appointment.cancellation_token
        slot = db.get(TimeSlot, sid)
        assert slot is not None
        assert slot.is_booked is True

    def test_counts_against_quota(self, db, service, professional, patient_info):
        service.book_slot(slot_id(professional, NEXT_MONDAY, "09:00"), patient_info)
        db.refresh(professional)
        assert professional.total_appointments_created == 1

    def test_confirmed_booking_queues_notification(self, service, professional, patient_info):
        service.book_slot(slot_id(professional, NEXT_MONDAY, "09:00"), patient_info)
        assert [e.kind for e in service.notifications] == [APPOINTMENT_BOOKED]
        assert service.notifications[0].recipient_email == "john@example.com"

    def test_draft_queues_no_notification(self, service, professional, patient_info):
        appointment = service.book_slot(
            slot_id(professional, NEXT_MONDAY, "09:00"), patient_info, status="draft"
        )
        assert appointment.status == "draft"
        assert service.notifications == []

    def test_service_duration_sets_end_time(self, service, professional, make_service, patient_info):
        consult = make_service(professional, duration=45)
        appointment = service.book_slot(
            slot_id(professional, NEXT_MONDAY, "09:00"), patient_info, service_id=consult.id
        )
        assert appointment.end_time == "09:45"
        assert appointment.professional_service_id == consult.id

    def test_off_grid_window_inside_hours_is_bookable(self, service, professional, patient_info):
        appointment = service.book_slot(slot_id(professional, NEXT_MONDAY, "09:10"), patient_info)
        assert appointment.start_time == "09:10"


class TestBookingRejections:
    def test_second_booking_of_same_slot_conflicts(self, db, service, professional, patient_info):
        sid = slot_id(professional, NEXT_MONDAY, "09:00")
        service.book_slot(sid, patient_info)

        with pytest.raises(SlotConflict) as exc_info:
            service.book_slot(sid, PatientInfo(first_name="Mary", last_name="Major", phone="+15145550199"))

        assert exc_info.value.retryable is True
        assert db.query(Appointment).count() == 1

    def test_overlapping_off_grid_window_conflicts(self, service, professional, patient_info):
        service.book_slot(slot_id(professional, NEXT_MONDAY, "09:00"), patient_info)
        with pytest.raises(SlotConflict):
            service.book_slot(slot_id(professional, NEXT_MONDAY, "09:10"), patient_info)

    def test_slot_in_past(self, service, professional, patient_info, clock):
        clock.advance(hours=2)  # 10:00 local
        with pytest.raises(SlotInPast):
            service.book_slot(slot_id(professional, MONDAY, "09:00"), patient_info)

    def test_outside_working_hours(self, service, professional, patient_info):
        with pytest.raises(OutsideWorkingHours):
            service.book_slot(slot_id(professional, NEXT_MONDAY, "13:00"), patient_info)

    def test_day_without_schedule(self, service, professional, patient_info):
        sunday = NEXT_MONDAY - timedelta(days=1)
        with pytest.raises(OutsideWorkingHours):
            service.book_slot(slot_id(professional, sunday, "09:00"), patient_info)

    def test_window_running_past_block_end(self, service, professional, patient_info):
        with pytest.raises(OutsideWorkingHours):
            service.book_slot(slot_id(professional, NEXT_MONDAY, "11:45"), patient_info)

    def test_overlaps_break(self, db, make_professional, clock, patient_info):
        professional = make_professional(breaks=((1, "10:00", "10:30"),))
        with pytest.raises(OverlapsBreak):
            BookingService(db, clock).book_slot(slot_id(professional, NEXT_MONDAY, "09:45"), patient_info)

    def test_malformed_slot_id(self, service, professional, patient_info):
        with pytest.raises(SlotNotFound):
            service.book_slot("garbage", patient_info)

    def test_unknown_professional(self, service, patient_info):
        with pytest.raises(SlotNotFound):
            service.book_slot("missing-2025-03-10-09:00", patient_info)

    def test_foreign_service(self, service, professional, make_professional, make_service, patient_info):
        other = make_professional(email="other@clinic.test")
        with pytest.raises(ServiceNotFound):
            service.book_slot(
                slot_id(professional, NEXT_MONDAY, "09:00"), patient_info, service_id=make_service(other).id
            )

    def test_rejection_leaves_nothing_behind(self, db, service, professional, patient_info):
        with pytest.raises(OutsideWorkingHours):
            service.book_slot(slot_id(professional, NEXT_MONDAY, "13:00"), patient_info)
        assert db.query(TimeSlot).count() == 0
        assert db.query(Patient).count() == 0


class TestQuota:
    def test_free_plan_at_limit_is_rejected(self, db, make_professional, clock, patient_info):
        professional = make_professional(plan_type="free", total_appointments_created=100)
        service = BookingService(db, clock)

        with pytest.raises(QuotaExceeded):
            service.book_slot(slot_id(professional, NEXT_MONDAY, "09:00"), patient_info)

        assert db.query(Appointment).count() == 0
        assert db.query(TimeSlot).count() == 0
        db.refresh(professional)
        assert professional.total_appointments_created == 100

    def test_last_unit_can_be_used(self, db, make_professional, clock, patient_info):
        professional = make_professional(plan_type="free", total_appointments_created=99)
        BookingService(db, clock).book_slot(slot_id(professional, NEXT_MONDAY, "09:00"), patient_info)
        db.refresh(professional)
        assert professional.total_appointments_created == 100

    def test_unlimited_plan_keeps_counting(self, db, make_professional, clock, patient_info):
        professional = make_professional(plan_type="pro", total_appointments_created=500)
        BookingService(db, clock).book_slot(slot_id(professional, NEXT_MONDAY, "09:00"), patient_info)
        db.refresh(professional)
        assert professional.total_appointments_created == 501


class TestMaterializedSlots:
    def test_existing_unbooked_row_is_used(self, db, service, professional, patient_info):
        sid = slot_id(professional, NEXT_MONDAY, "09:00")
        db.add(
            TimeSlot(
                id=sid,
                professional_id=professional.id,
                slot_date=NEXT_MONDAY,
                start_time="09:00",
                end_time="09:30",
            )
        )
        db.commit()

        appointment = service.book_slot(sid, patient_info)

        assert appointment.time_slot_id == sid
        assert db.query(TimeSlot).count() == 1
        assert db.get(TimeSlot, sid).is_booked is True

    def test_slot_held_by_expired_draft_is_rebookable(self, db, service, professional, patient_info, clock):
        sid = slot_id(professional, NEXT_MONDAY, "09:00")
        service.book_slot(sid, patient_info, status="draft")

        with pytest.raises(SlotConflict):
            service.book_slot(sid, patient_info)

        clock.advance(minutes=15)
        appointment = service.book_slot(sid, patient_info)
        assert appointment.status == "confirmed"

    def test_released_row_is_resized_for_a_longer_service(
        self, db, service, professional, make_service, patient_info, clock
    ):
        sid = slot_id(professional, NEXT_MONDAY, "09:00")
        first = service.book_slot(sid, patient_info)
        AppointmentLifecycleService(db, clock).cancel_appointment(first.id, "client")
        long_visit = make_service(professional, duration=60, name="Assessment")

        offered = list_available_slots(
            db, professional.id, from_date=NEXT_MONDAY, to_date=NEXT_MONDAY, service_id=long_visit.id, clock=clock
        )
        assert (offered[0].id, offered[0].end_time) == (sid, "10:00")

        appointment = service.book_slot(sid, patient_info, service_id=long_visit.id)

        assert (appointment.start_time, appointment.end_time) == ("09:00", "10:00")
        assert db.get(TimeSlot, sid).end_time == "10:00"
        with pytest.raises(SlotConflict):
            service.book_slot(slot_id(professional, NEXT_MONDAY, "09:30"), patient_info)

    def test_existing_row_still_checks_working_hours(self, db, service, professional, make_service, patient_info):
        sid = slot_id(professional, NEXT_MONDAY, "11:20")
        db.add(
            TimeSlot(
                id=sid,
                professional_id=professional.id,
                slot_date=NEXT_MONDAY,
                start_time="11:20",
                end_time="11:50",
            )
        )
        db.commit()
        long_visit = make_service(professional, duration=60, name="Assessment")

        with pytest.raises(OutsideWorkingHours):
            service.book_slot(sid, patient_info, service_id=long_visit.id)
        assert db.query(Appointment).count() == 0
        assert db.get(TimeSlot, sid).end_time == "11:50"


class TestPatientResolution:
    def test_same_name_reuses_patient_and_updates_phone(self, db, service, professional, patient_info):
        first = service.book_slot(slot_id(professional, NEXT_MONDAY, "09:00"), patient_info)
        second = service.book_slot(
            slot_id(professional, NEXT_MONDAY, "09:35"),
            PatientInfo(first_name="john", last_name="DOE", email="john@example.com", phone="+15145550111"),
        )

        assert second.patient_id == first.patient_id
        assert db.query(Patient).count() == 1
        assert db.get(Patient, first.patient_id).phone == "+15145550111"

    def test_different_name_creates_new_patient(self, db, service, professional, patient_info):
        first = service.book_slot(slot_id(professional, NEXT_MONDAY, "09:00"), patient_info)
        second = service.book_slot(
            slot_id(professional, NEXT_MONDAY, "09:35"),
            PatientInfo(first_name="Jane", last_name="Doe", email="john@example.com"),
        )

        assert second.patient_id != first.patient_id
        assert db.query(Patient).count() == 2

    def test_clinic_shares_patients(self, db, make_professional, clock, patient_info):
        first_pro = make_professional(clinic_id="clinic-1")
        second_pro = make_professional(clinic_id="clinic-1", email="bo@clinic.test")
        service = BookingService(db, clock)

        first = service.book_slot(slot_id(first_pro, NEXT_MONDAY, "09:00"), patient_info)
        second = service.book_slot(slot_id(second_pro, NEXT_MONDAY, "09:00"), patient_info)

        assert first.patient_id == second.patient_id

    def test_patients_are_scoped_per_professional_without_clinic(self, db, make_professional, clock, patient_info):
        first_pro = make_professional()
        second_pro = make_professional(email="bo@clinic.test")
        service = BookingService(db, clock)

        first = service.book_slot(slot_id(first_pro, NEXT_MONDAY, "09:00"), patient_info)
        second = service.book_slot(slot_id(second_pro, NEXT_MONDAY, "09:00"), patient_info)

        assert first.patient_id != second.patient_id
