# Copyright (c) 2026, Doctor Scheduling contributors
# For license information, please see license.txt

"""
Scheduling Settings DocType

Configuracion global del motor de agendamiento (Single DocType).
"""

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import cint

DEFAULT_RANGE_DAYS = 30
DEFAULT_BOOKING_LEAD_TIME_MINUTES = 120


class SchedulingSettings(Document):
	def validate(self) -> None:
		if cint(self.booking_lead_time_minutes) < 0:
			frappe.throw(_("Booking Lead Time no puede ser negativo"))

		if self.default_range_days is not None and cint(self.default_range_days) <= 0:
			frappe.throw(_("Default Range Days debe ser mayor que 0"))


def get_scheduling_settings() -> Document:
	return frappe.get_cached_doc("Scheduling Settings")


def get_booking_lead_time_minutes() -> int:
	value = get_scheduling_settings().booking_lead_time_minutes
	return DEFAULT_BOOKING_LEAD_TIME_MINUTES if value is None else cint(value)


def allows_cross_service_overlap() -> bool:
	return bool(cint(get_scheduling_settings().allow_cross_service_overlap))


def get_default_range_days() -> int:
	return cint(get_scheduling_settings().default_range_days) or DEFAULT_RANGE_DAYS
