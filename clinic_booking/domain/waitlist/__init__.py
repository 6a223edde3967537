"""
Waitlist Domain

Clients waiting for a professional are offered freed slots oldest-first,
with an expiring single-use priority link.
"""
