"""
Scheduling-specific Validators

Format checks for request parameters, applied before any call reaches the
scheduling core.
"""

import re
import frappe
from frappe import _

from doctor_scheduling.doctor_scheduling.scheduling.utils import SERVICE_TYPES, TIME_PATTERN


def validate_date_string(date_str: str, field_name: str = "date") -> str:
    """
    Validate date string format (YYYY-MM-DD).

    Raises:
        frappe.ValidationError: If date format is invalid
    """
    if not date_str:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    date_str = str(date_str).strip()

    if not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        frappe.throw(
            _(f"Invalid {field_name} format. Use YYYY-MM-DD"), frappe.ValidationError
        )

    return date_str


def validate_time_string(time_str: str, field_name: str = "time") -> str:
    """
    Validate time string format (HH:MM, 24h).

    Raises:
        frappe.ValidationError: If time format is invalid
    """
    if not time_str:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    time_str = str(time_str).strip()

    if not TIME_PATTERN.match(time_str):
        frappe.throw(
            _(f"Invalid {field_name} format. Use HH:MM"), frappe.ValidationError
        )

    return time_str


def validate_service_type(service_type: str, field_name: str = "service_type") -> str:
    if service_type not in SERVICE_TYPES:
        frappe.throw(
            _(f"Invalid {field_name}. Use: {', '.join(SERVICE_TYPES)}"),
            frappe.ValidationError,
        )
    return service_type


def validate_docname(name: str, field_name: str = "name") -> str:
    """
    Validate a document name (ID).

    Ensures the name is not too long and doesn't contain injection patterns.

    Raises:
        frappe.ValidationError: If name is invalid
    """
    if not name:
        frappe.throw(_(f"{field_name} is required"), frappe.ValidationError)

    name = str(name).strip()

    if len(name) > 140:
        frappe.throw(_(f"{field_name} is too long"), frappe.ValidationError)

    dangerous_patterns = [
        r"<script", r"javascript:", r"onclick", r"onerror",
        r"SELECT\s+", r"INSERT\s+", r"UPDATE\s+", r"DELETE\s+",
        r"DROP\s+", r"UNION\s+", r"--", r";",
    ]

    for pattern in dangerous_patterns:
        if re.search(pattern, name, re.IGNORECASE):
            frappe.throw(_(f"Invalid {field_name}"), frappe.ValidationError)

    return name
