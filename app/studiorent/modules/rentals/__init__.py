"""
Rentals module.

Availability checks, room and instrument bookings, simulated payment with
late fees, and rental history.
"""
