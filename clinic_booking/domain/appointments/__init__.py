"""
Appointments Domain

Atomic booking, patient resolution and the appointment lifecycle
(draft, confirmed, cancelled, rescheduled) with reschedule lineage.
"""
