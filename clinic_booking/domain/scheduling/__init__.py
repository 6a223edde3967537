"""
Scheduling Domain

Weekly availability, slot generation and the shared conflict predicate.

Structure:
- repository.py           # Read access to schedules, breaks, services, slots
- time_calculator.py      # HH:MM arithmetic and deterministic slot ids
- conflicts.py            # Active-appointment predicate (draft soft expiry)
- availability_service.py # Lazy slot generator and window validation
- router.py               # Public availability endpoint
"""
