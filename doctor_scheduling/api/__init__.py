"""
Doctor Scheduling API

Structure:
    api/
    ├── __init__.py              # This file
    ├── appointments/            # Re-exports booking and calendar endpoints
    │   └── __init__.py
    ├── shared/                  # Shared utilities
    │   ├── __init__.py          # Re-exports security helpers and validators
    │   └── validators.py        # Request format validators
    ├── appointment_api.py       # Patient booking and appointment endpoints
    ├── calendar_api.py          # Doctor availability editor endpoints
    └── security.py              # Rate limiting, honeypot, session checks

Usage:
    frappe.call("doctor_scheduling.api.appointments.get_free_slots", ...)
    frappe.call("doctor_scheduling.api.calendar_api.update_availability", ...)
"""

from . import appointments
from . import shared

__all__ = [
    "appointments",
    "shared",
]
