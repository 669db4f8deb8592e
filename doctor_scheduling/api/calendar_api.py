"""
Calendar API Endpoints

Whitelisted functions for the doctor's availability editor. Only the doctor
(editing their own calendar) or a System Manager may call the mutating
endpoints. Booked slots come back flagged so the UI can lock them.
"""

import frappe
from frappe import _
from frappe.utils import add_days, cint, getdate
from typing import Dict, List, Any, Optional

from doctor_scheduling.doctor_scheduling.scheduling import calendar_editor
from doctor_scheduling.doctor_scheduling.scheduling.availability import (
	day_as_dict,
	get_day,
	rebuild_booked_slots,
)
from doctor_scheduling.doctor_scheduling.scheduling import slots
from doctor_scheduling.doctor_scheduling.doctype.scheduling_settings.scheduling_settings import (
	get_default_range_days,
)

from doctor_scheduling.api.appointment_api import EXPECTED_ERRORS
from doctor_scheduling.api.shared import (
	check_rate_limit,
	require_calendar_access,
	require_login,
	validate_date_string,
	validate_docname,
	validate_service_type,
	validate_time_string,
)


@frappe.whitelist(methods=['GET'])
def get_availability_day(doctor: str, service_type: str, calendar_date: str) -> Optional[Dict[str, Any]]:
	"""
	Obtiene un dia de disponibilidad.

	Returns:
		dict | None: {
			"name": "dr@example.com::video::2026-01-15",
			"doctor": ..., "service_type": ..., "calendar_date": ...,
			"is_available": True,
			"offered_slots": ["09:00", "09:30"],
			"booked_slots": ["09:00"],
			"free_slots": ["09:30"]
		}
	"""
	require_login()

	doctor = validate_docname(doctor, "doctor")
	service_type = validate_service_type(service_type)
	calendar_date = validate_date_string(calendar_date, "calendar_date")

	day = get_day(doctor, service_type, calendar_date)
	return day_as_dict(day) if day else None


@frappe.whitelist(methods=['GET'])
def get_doctor_calendar(
	doctor: str,
	service_type: str,
	from_date: str,
	to_date: Optional[str] = None
) -> List[Dict[str, Any]]:
	"""
	Vista del calendario del medico por dia (slots ofrecidos, reservados y libres).
	"""
	require_calendar_access(doctor)

	service_type = validate_service_type(service_type)
	from_date = validate_date_string(from_date, "from_date")
	if to_date:
		to_date = validate_date_string(to_date, "to_date")
	else:
		to_date = str(add_days(getdate(from_date), get_default_range_days() - 1))

	return slots.get_doctor_calendar(doctor, service_type, from_date, to_date)


@frappe.whitelist(methods=['POST'])
def add_slot(doctor: str, service_type: str, calendar_date: str, slot_time: str) -> Dict[str, Any]:
	"""Agrega un horario ofrecido (crea el dia si no existe)."""
	check_rate_limit("calendar_edit", limit=60, seconds=60)
	require_calendar_access(doctor)

	service_type = validate_service_type(service_type)
	calendar_date = validate_date_string(calendar_date, "calendar_date")
	slot_time = validate_time_string(slot_time, "slot_time")

	try:
		return day_as_dict(calendar_editor.add_slot(doctor, service_type, calendar_date, slot_time))

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in add_slot: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def remove_slot(doctor: str, service_type: str, calendar_date: str, slot_time: str) -> Dict[str, Any]:
	"""
	Quita un horario ofrecido.

	Raises:
		ConflictError: el horario esta reservado (409)
	"""
	check_rate_limit("calendar_edit", limit=60, seconds=60)
	require_calendar_access(doctor)

	service_type = validate_service_type(service_type)
	calendar_date = validate_date_string(calendar_date, "calendar_date")
	slot_time = validate_time_string(slot_time, "slot_time")

	try:
		return day_as_dict(calendar_editor.remove_slot(doctor, service_type, calendar_date, slot_time))

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in remove_slot: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def set_day_availability(doctor: str, service_type: str, calendar_date: str, is_available: Any) -> Dict[str, Any]:
	"""Habilita o deshabilita un dia sin cancelar sus citas."""
	check_rate_limit("calendar_edit", limit=60, seconds=60)
	require_calendar_access(doctor)

	service_type = validate_service_type(service_type)
	calendar_date = validate_date_string(calendar_date, "calendar_date")

	try:
		day = calendar_editor.set_day_availability(
			doctor, service_type, calendar_date, cint(is_available)
		)
		return day_as_dict(day)

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in set_day_availability: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def update_availability(doctor: str, days: Any) -> List[Dict[str, Any]]:
	"""
	Publica varios dias en una sola operacion (todo o nada).

	Args:
		doctor: usuario del medico
		days: lista (o JSON) de {
			"date": "2026-01-15",
			"service_type": "video",
			"time_slots": ["09:00", "09:30"],
			"is_available": true
		}

	Raises:
		ConflictError: algun dia quitaria un slot reservado; no se aplica ningun dia
	"""
	check_rate_limit("calendar_edit", limit=60, seconds=60)
	require_calendar_access(doctor)

	if isinstance(days, str):
		try:
			days = frappe.parse_json(days)
		except ValueError:
			frappe.throw(_("days debe ser JSON valido"))

	if not isinstance(days, list):
		frappe.throw(_("days debe ser una lista"))

	for entry in days:
		if not isinstance(entry, dict):
			frappe.throw(_("Cada dia debe ser un objeto"))
		validate_date_string(entry.get("date"), "date")
		for slot_time in entry.get("time_slots") or []:
			validate_time_string(slot_time, "time_slots")

	try:
		return [day_as_dict(day) for day in calendar_editor.update_availability(doctor, days)]

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in update_availability: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def rebuild_day(doctor: str, service_type: str, calendar_date: str) -> Dict[str, Any]:
	"""
	Recalcula los slots reservados de un dia desde las citas. Solo System Manager.
	"""
	frappe.only_for("System Manager")

	doctor = validate_docname(doctor, "doctor")
	service_type = validate_service_type(service_type)
	calendar_date = validate_date_string(calendar_date, "calendar_date")

	return day_as_dict(rebuild_booked_slots(doctor, service_type, calendar_date))
