"""Booking domains: scheduling, appointments, waitlist"""
