"""
Shared utilities for Doctor Scheduling API.

Rate limiting, session checks and sanitization live in api.security;
request format validators live in validators.
"""

from doctor_scheduling.api.security import (
    # Rate limiting
    check_rate_limit,
    get_client_ip,
    # Security
    check_honeypot,
    require_login,
    require_calendar_access,
    require_appointment_access,
    is_calendar_manager,
    # Sanitization
    sanitize_string,
)

from .validators import (
    validate_date_string,
    validate_time_string,
    validate_service_type,
    validate_docname,
)

__all__ = [
    "check_rate_limit",
    "get_client_ip",
    "check_honeypot",
    "require_login",
    "require_calendar_access",
    "require_appointment_access",
    "is_calendar_manager",
    "sanitize_string",
    "validate_date_string",
    "validate_time_string",
    "validate_service_type",
    "validate_docname",
]
