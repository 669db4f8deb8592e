"""
Calendar Editor Service

Administrative mutation path for a doctor's calendar. Owns which slots are
offered and whether a day is available; never touches occupancy. Booked slots
are locked: removing one raises ConflictError.
"""

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import cint
from typing import Any, Dict, List

from .availability import get_day, get_day_or_throw, offered_slots, upsert_day
from .utils import atomic_unit, normalize_date, normalize_time, validate_service_type


def _logger():
	return frappe.logger("doctor_scheduling")


def add_slot(doctor: str, service_type: str, calendar_date: Any, slot_time: str) -> Document:
	"""
	Agrega un horario ofrecido. Crea el dia si no existe (habilitado).
	Agregar un horario ya ofrecido no hace nada.
	"""
	slot_time = normalize_time(slot_time)

	with atomic_unit("add_slot"):
		day = get_day(doctor, service_type, calendar_date, for_update=True)
		if day is None:
			day = upsert_day(doctor, service_type, calendar_date, [slot_time], is_available=True)
		elif slot_time not in offered_slots(day):
			day = upsert_day(
				doctor,
				service_type,
				calendar_date,
				offered_slots(day) + [slot_time],
				is_available=cint(day.is_available),
			)

	_logger().info(f"Slot agregado: {day.name} {slot_time}")
	return day


def remove_slot(doctor: str, service_type: str, calendar_date: Any, slot_time: str) -> Document:
	"""
	Quita un horario ofrecido.

	Raises:
		NotFoundError: el dia no existe
		ConflictError: el horario esta reservado (bloqueado en el editor)
	"""
	slot_time = normalize_time(slot_time)

	with atomic_unit("remove_slot"):
		day = get_day_or_throw(doctor, service_type, calendar_date, for_update=True)
		current = offered_slots(day)
		if slot_time not in current:
			return day

		day = upsert_day(
			doctor,
			service_type,
			calendar_date,
			[t for t in current if t != slot_time],
			is_available=cint(day.is_available),
		)

	_logger().info(f"Slot quitado: {day.name} {slot_time}")
	return day


def set_day_availability(doctor: str, service_type: str, calendar_date: Any, is_available: bool) -> Document:
	"""
	Habilita o deshabilita un dia completo.

	Deshabilitar no cancela citas existentes: solo retira el dia de los
	listados de slots libres.
	"""
	with atomic_unit("set_day_availability"):
		day = get_day_or_throw(doctor, service_type, calendar_date, for_update=True)
		day.is_available = 1 if cint(is_available) else 0
		day.save(ignore_permissions=True)

	_logger().info(f"Disponibilidad de {day.name}: {'habilitado' if day.is_available else 'deshabilitado'}")
	return day


def update_availability(doctor: str, days: List[Dict[str, Any]]) -> List[Document]:
	"""
	Aplica varios dias de calendario en una sola operacion (todo o nada).

	Args:
		doctor: usuario del medico
		days: [
			{
				"date": "2026-01-15",
				"service_type": "video",
				"time_slots": ["09:00", "09:30"],
				"is_available": True
			},
			...
		]

	Returns:
		list: Doctor Availability Day actualizados

	Raises:
		ConflictError: algun dia quitaria un slot reservado (no se aplica ninguno)
	"""
	if not days:
		frappe.throw(_("Debe enviar al menos un dia de disponibilidad"))

	results = []
	with atomic_unit("update_availability"):
		for entry in days:
			service_type = validate_service_type(entry.get("service_type") or entry.get("type"))
			time_slots = entry.get("time_slots")
			if time_slots is None:
				time_slots = entry.get("timeSlots") or []
			is_available = entry.get("is_available", entry.get("isAvailable", True))

			results.append(upsert_day(
				doctor,
				service_type,
				normalize_date(entry.get("date")),
				time_slots,
				is_available=cint(is_available),
			))

	_logger().info(f"Disponibilidad actualizada para {doctor}: {len(results)} dia(s)")
	return results
