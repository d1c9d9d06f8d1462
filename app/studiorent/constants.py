"""
Central constants for the StudioRent application.
"""
from __future__ import annotations

# Instrument lifecycle. Only READY instruments can be booked.
INSTRUMENT_READY = "Ready"
INSTRUMENT_IN_USE = "InUse"
INSTRUMENT_STATUSES = (INSTRUMENT_READY, INSTRUMENT_IN_USE, "Maintenance", "Retired")

PAYMENT_UNPAID = "Unpaid"
PAYMENT_PAID = "Paid"
PAYMENT_STATUSES = (PAYMENT_UNPAID, PAYMENT_PAID)

PAYMENT_METHODS = ("Card", "Cash", "Bank Transfer", "E-Wallet")

# Student IDs are 8 to 10 digits
STUDENT_ID_PATTERN = r"^\d{8,10}$"

ROLE_STUDENT = "student"
ROLE_STAFF = "staff"
ROLE_ADMIN = "admin"

# Entity names used by the audit log and the change feed
CATALOG_ENTITIES = frozenset({"Instrument", "Room"})
STUDENT_ENTITIES = frozenset({"Membership", "RentalTransaction", "Student"})
