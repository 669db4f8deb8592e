"""
Appointments API Domain

Handles free-slot lookup, booking, rescheduling, appointment status and the
doctor's availability calendar.
"""

from doctor_scheduling.api.appointment_api import (
    # Slots
    get_free_slots,
    # Booking lifecycle
    book_appointment,
    reschedule_appointment,
    schedule_follow_up,
    set_appointment_status,
    set_payment_status,
    add_appointment_attachment,
    # User's appointments (authenticated)
    get_appointment_detail,
    get_my_appointments,
)

from doctor_scheduling.api.calendar_api import (
    # Availability editor
    get_availability_day,
    get_doctor_calendar,
    add_slot,
    remove_slot,
    set_day_availability,
    update_availability,
    rebuild_day,
)

__all__ = [
    "get_free_slots",
    "book_appointment",
    "reschedule_appointment",
    "schedule_follow_up",
    "set_appointment_status",
    "set_payment_status",
    "add_appointment_attachment",
    "get_appointment_detail",
    "get_my_appointments",
    "get_availability_day",
    "get_doctor_calendar",
    "add_slot",
    "remove_slot",
    "set_day_availability",
    "update_availability",
    "rebuild_day",
]
