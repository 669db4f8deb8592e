"""
Scheduling Services Module

This module provides core business logic for doctor appointment scheduling:
- Availability Store: per-day offered/booked slots (availability.py)
- Occupancy checks against the Reservation Ledger (occupancy.py)
- Slot Resolver: free slots for booking UIs (slots.py)
- Scheduler: book / reschedule / status changes (scheduler.py)
- Calendar Editor: doctor/admin slot edits (calendar_editor.py)
- Typed errors (exceptions.py)
"""
