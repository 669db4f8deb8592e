"""
Occupancy Service

Answers "who occupies this coordinate?" from the Reservation Ledger
(Appointment), considering:
- Coordinate: (doctor, service_type, date, time)
- Appointment status (pending, confirmed occupy; completed keeps its slot)
"""

import frappe
from typing import Dict, List, Optional, Any

from .utils import ACTIVE_STATUSES, OCCUPYING_STATUSES, normalize_date, normalize_time


def make_occupancy_key(doctor: str, service_type: str, scheduled_date: Any, scheduled_time: str) -> str:
	"""
	Clave unica de la coordenada.

	Se guarda en Appointment.occupancy_key (indice unico en la base de datos):
	un segundo INSERT/UPDATE con la misma clave es rechazado por el motor,
	aunque dos requests validen el slot al mismo tiempo.
	"""
	return "::".join([
		doctor,
		service_type,
		normalize_date(scheduled_date),
		normalize_time(scheduled_time),
	])


def check_occupancy(
	doctor: str,
	service_type: str,
	scheduled_date: Any,
	scheduled_time: str,
	exclude_appointment: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Detecta citas activas que ocupan una coordenada.

	Args:
		doctor: usuario del medico
		service_type: video | home-visit
		scheduled_date: fecha (YYYY-MM-DD)
		scheduled_time: horario (HH:MM)
		exclude_appointment: nombre de la cita a excluir (para reprogramaciones)

	Returns:
		dict: {
			"is_occupied": bool,
			"occupying_appointments": [list of appointment names]
		}
	"""
	filters = {
		"doctor": doctor,
		"service_type": service_type,
		"scheduled_date": normalize_date(scheduled_date),
		"scheduled_time": normalize_time(scheduled_time),
		"status": ["in", list(ACTIVE_STATUSES)],
	}

	if exclude_appointment:
		filters["name"] = ["!=", exclude_appointment]

	occupants = frappe.get_all("Appointment", filters=filters, pluck="name")

	return {
		"is_occupied": bool(occupants),
		"occupying_appointments": occupants,
	}


def get_day_occupants(doctor: str, service_type: str, scheduled_date: Any) -> Dict[str, str]:
	"""
	Horarios ocupados de un dia segun el ledger.

	Returns:
		dict: {"09:00": "APT-2026-00001", ...}
	"""
	appointments: List[Dict[str, Any]] = frappe.get_all(
		"Appointment",
		filters={
			"doctor": doctor,
			"service_type": service_type,
			"scheduled_date": normalize_date(scheduled_date),
			"status": ["in", list(OCCUPYING_STATUSES)],
		},
		fields=["name", "scheduled_time"],
		order_by="scheduled_time asc",
	)

	return {appt.scheduled_time: appt.name for appt in appointments}
