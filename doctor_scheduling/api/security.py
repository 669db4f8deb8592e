"""
Security Utilities for Scheduling APIs

Provides rate limiting, honeypot validation, input sanitization and the
session checks used by the booking and calendar endpoints.

Authentication itself is handled by Frappe sessions: endpoints only decide
whether the logged-in user may act on a doctor's calendar or an appointment.
"""

import re
import frappe
from frappe import _
from frappe.utils import cint

CALENDAR_MANAGER_ROLE = "System Manager"


# ===================
# Rate Limiting
# ===================

def check_rate_limit(action: str, limit: int = 10, seconds: int = 60) -> None:
    """
    Check rate limit for an action by IP address.

    Uses Frappe's cache (Redis) to track request counts per IP.
    Skipped while running the test suite.

    Args:
        action: Identifier for the action being rate limited
        limit: Maximum number of requests allowed
        seconds: Time window in seconds

    Raises:
        frappe.TooManyRequestsError: If rate limit exceeded
    """
    if frappe.flags.in_test:
        return

    ip = get_client_ip()
    cache_key = f"rate_limit:doctor_scheduling:{action}:{ip}"

    current = cint(frappe.cache.get_value(cache_key) or 0)

    if current >= limit:
        frappe.log_error(
            title=_("Rate Limit Exceeded"),
            message=f"IP: {ip}, Action: {action}, Limit: {limit}/{seconds}s"
        )
        frappe.throw(
            _("Too many requests. Please wait a moment and try again."),
            frappe.TooManyRequestsError
        )

    frappe.cache.set_value(cache_key, current + 1, expires_in_sec=seconds)


def get_client_ip() -> str:
    """
    Get the real client IP address, handling proxies.

    Returns:
        str: Client IP address
    """
    request = getattr(frappe.local, "request", None)
    if not request:
        return "unknown"

    # X-Forwarded-For can contain multiple IPs, take the first one
    forwarded_for = request.headers.get('X-Forwarded-For', '')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-IP', '')
    if real_ip:
        return real_ip.strip()

    return request.remote_addr or 'unknown'


# ===================
# Honeypot Validation
# ===================

def check_honeypot(honeypot_value: str = None) -> None:
    """
    Check honeypot field to detect bot submissions.

    Bots typically fill all form fields, including hidden ones.
    If the honeypot field has a value, it's likely a bot.

    Raises:
        frappe.ValidationError: If honeypot is filled (bot detected)
    """
    if honeypot_value:
        ip = get_client_ip()
        frappe.log_error(
            title=_("Bot Detected (Honeypot)"),
            message=f"IP: {ip}, Honeypot value: {honeypot_value[:100]}"
        )
        # Generic error, do not reveal detection
        frappe.throw(_("Invalid request"), frappe.ValidationError)


# ===================
# Input Sanitization
# ===================

def sanitize_string(value: str, max_length: int = 500) -> str:
    """
    General string sanitization.

    Args:
        value: String to sanitize
        max_length: Maximum allowed length

    Returns:
        str: Sanitized string (None for empty input)
    """
    if not value:
        return None

    value = str(value).strip()

    if len(value) > max_length:
        value = value[:max_length]

    # Remove null bytes and other control characters
    value = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', value)

    return value


# ===================
# Session Checks
# ===================

def require_login() -> str:
    """
    Return the session user, rejecting Guest.

    Raises:
        frappe.PermissionError: If the request is not authenticated
    """
    user = frappe.session.user
    if not user or user == "Guest":
        frappe.throw(_("Login required"), frappe.PermissionError)
    return user


def is_calendar_manager(user: str = None) -> bool:
    return CALENDAR_MANAGER_ROLE in frappe.get_roles(user or frappe.session.user)


def require_calendar_access(doctor: str) -> None:
    """
    Only the doctor or a calendar manager may edit a doctor's calendar.

    Raises:
        frappe.PermissionError: If the session user cannot edit this calendar
    """
    user = require_login()
    if user != doctor and not is_calendar_manager(user):
        frappe.throw(_("You are not allowed to edit this calendar"), frappe.PermissionError)


def require_appointment_access(appointment_name: str) -> dict:
    """
    The patient, the doctor or a calendar manager may act on an appointment.

    Returns:
        dict: {"doctor": ..., "patient": ..., "status": ...}

    Raises:
        frappe.PermissionError: If the session user is unrelated to the appointment
    """
    user = require_login()
    appointment = frappe.db.get_value(
        "Appointment", appointment_name, ["doctor", "patient", "status"], as_dict=True
    )
    if not appointment:
        # Unknown names are reported by the scheduler as NotFoundError
        return {}

    if user not in (appointment.doctor, appointment.patient) and not is_calendar_manager(user):
        frappe.throw(_("You are not allowed to access this appointment"), frappe.PermissionError)

    return appointment
