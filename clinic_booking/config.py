import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_booking.db")

# Bounded lock waits (PostgreSQL only, milliseconds)
DB_LOCK_TIMEOUT_MS = int(os.getenv("DB_LOCK_TIMEOUT_MS", "5000"))
DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))

# Operating timezone for professionals that have none configured
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/Toronto")

# Booking rules
DRAFT_EXPIRY_MINUTES = int(os.getenv("DRAFT_EXPIRY_MINUTES", "15"))
MIN_ADVANCE_BOOKING_MINUTES = int(os.getenv("MIN_ADVANCE_BOOKING_MINUTES", "15"))
DEFAULT_SLOT_RANGE_DAYS = int(os.getenv("DEFAULT_SLOT_RANGE_DAYS", "14"))
DEFAULT_APPOINTMENT_DURATION = int(os.getenv("DEFAULT_APPOINTMENT_DURATION", "30"))
DEFAULT_BUFFER_TIME = int(os.getenv("DEFAULT_BUFFER_TIME", "5"))

# Plan quota
FREE_PLAN_APPOINTMENT_LIMIT = int(os.getenv("FREE_PLAN_APPOINTMENT_LIMIT", "100"))

# Waitlist
WAITLIST_MATCH_WINDOW_DAYS = int(os.getenv("WAITLIST_MATCH_WINDOW_DAYS", "14"))
WAITLIST_CLAIM_HOURS = int(os.getenv("WAITLIST_CLAIM_HOURS", "24"))
# Offer a released claim to the next waiting client
WAITLIST_CASCADE_ON_RELEASE = os.getenv("WAITLIST_CASCADE_ON_RELEASE", "true").lower() == "true"

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Clinic Booking <noreply@clinicbooking.app>")
