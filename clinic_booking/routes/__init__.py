"""Routers that sit outside the booking domains"""
