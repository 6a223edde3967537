"""Clinic booking core: availability, atomic booking, lifecycle, quota and waitlist."""

__version__ = "1.0.0"
