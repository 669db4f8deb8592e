"""
Availability Service

Durable per-(doctor, service type) calendar: one Doctor Availability Day per
calendar date, holding the offered time slots and the subset already booked.

- Offered slots: every row of the `slots` child table
- Booked slots: rows with is_booked = 1 (cache of the Reservation Ledger)
- is_available: disables a whole day without clearing its slots
"""

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import cint
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import ConflictError, NotFoundError, SlotUnavailableError
from .occupancy import get_day_occupants
from .utils import normalize_date, normalize_time, normalize_times, validate_service_type

DAY_DOCTYPE = "Doctor Availability Day"


def make_day_name(doctor: str, service_type: str, calendar_date: Any) -> str:
	"""Nombre (PK) del dia: identidad unica (doctor, service_type, fecha)."""
	return f"{doctor}::{service_type}::{normalize_date(calendar_date)}"


def get_day(
	doctor: str,
	service_type: str,
	calendar_date: Any,
	for_update: bool = False
) -> Optional[Document]:
	"""
	Obtiene el Doctor Availability Day o None si no existe.

	Args:
		doctor: usuario del medico
		service_type: video | home-visit
		calendar_date: fecha (YYYY-MM-DD)
		for_update: bloquea la fila (SELECT ... FOR UPDATE) hasta el fin de la transaccion
	"""
	name = make_day_name(doctor, service_type, calendar_date)

	if not frappe.db.get_value(DAY_DOCTYPE, name, "name", for_update=for_update):
		return None

	return frappe.get_doc(DAY_DOCTYPE, name, for_update=for_update)


def get_day_or_throw(
	doctor: str,
	service_type: str,
	calendar_date: Any,
	for_update: bool = False
) -> Document:
	day = get_day(doctor, service_type, calendar_date, for_update=for_update)
	if not day:
		frappe.throw(
			_(f"No hay disponibilidad publicada para {doctor} ({service_type}) el {normalize_date(calendar_date)}"),
			NotFoundError
		)
	return day


def offered_slots(day: Document) -> List[str]:
	return sorted(row.slot_time for row in day.slots)


def booked_slots(day: Document) -> List[str]:
	return sorted(row.slot_time for row in day.slots if cint(row.is_booked))


def find_slot(day: Document, slot_time: str) -> Optional[Document]:
	slot_time = normalize_time(slot_time)
	for row in day.slots:
		if row.slot_time == slot_time:
			return row
	return None


def day_as_dict(day: Document) -> Dict[str, Any]:
	"""Representacion plana del dia para UIs (booked = slots bloqueados)."""
	offered = offered_slots(day)
	booked = booked_slots(day)
	return {
		"name": day.name,
		"doctor": day.doctor,
		"service_type": day.service_type,
		"calendar_date": normalize_date(day.calendar_date),
		"is_available": bool(cint(day.is_available)),
		"offered_slots": offered,
		"booked_slots": booked,
		"free_slots": [t for t in offered if t not in booked] if cint(day.is_available) else [],
	}


def upsert_day(
	doctor: str,
	service_type: str,
	calendar_date: Any,
	offered: Iterable[str],
	is_available: bool = True
) -> Document:
	"""
	Crea o reemplaza los slots ofrecidos de un dia.

	Algoritmo:
		1. Normalizar horarios (HH:MM, sin duplicados)
		2. Bloquear el dia (si existe)
		3. Si algun slot reservado quedaria fuera -> ConflictError (se rechaza todo)
		4. Reconstruir la tabla de slots conservando los reservados
		5. Guardar

	Raises:
		NotFoundError: el medico no existe
		ConflictError: se intento quitar un slot reservado
	"""
	validate_service_type(service_type)
	calendar_date = normalize_date(calendar_date)
	times = normalize_times(offered)

	if not frappe.db.exists("User", doctor):
		frappe.throw(_(f"Medico '{doctor}' no existe"), NotFoundError)

	day = get_day(doctor, service_type, calendar_date, for_update=True)

	if day is None:
		day = frappe.new_doc(DAY_DOCTYPE)
		day.doctor = doctor
		day.service_type = service_type
		day.calendar_date = calendar_date
		day.is_available = cint(is_available)
		for slot_time in times:
			day.append("slots", {"slot_time": slot_time, "is_booked": 0})
		day.insert(ignore_permissions=True)
		return day

	booked = {row.slot_time: row.appointment for row in day.slots if cint(row.is_booked)}
	removed_booked = sorted(set(booked) - set(times))

	if removed_booked:
		frappe.throw(
			_(f"No se pueden quitar slots reservados: {', '.join(removed_booked)}"),
			ConflictError
		)

	day.is_available = cint(is_available)
	day.set("slots", [])
	for slot_time in times:
		day.append("slots", {
			"slot_time": slot_time,
			"is_booked": 1 if slot_time in booked else 0,
			"appointment": booked.get(slot_time),
		})

	day.save(ignore_permissions=True)
	return day


def mark_booked(
	doctor: str,
	service_type: str,
	calendar_date: Any,
	slot_time: str,
	appointment: Optional[str] = None
) -> Document:
	"""
	Marca un slot como reservado.

	Solo tiene exito si el horario esta ofrecido y libre. Debe ejecutarse
	dentro de la misma unidad atomica que la escritura de la cita.

	Raises:
		SlotUnavailableError: el slot no esta ofrecido o ya esta reservado
	"""
	slot_time = normalize_time(slot_time)
	day = get_day(doctor, service_type, calendar_date, for_update=True)

	row = find_slot(day, slot_time) if day else None
	if not row or cint(row.is_booked):
		frappe.throw(
			_(f"El horario {slot_time} del {normalize_date(calendar_date)} ya no esta disponible"),
			SlotUnavailableError
		)

	row.is_booked = 1
	row.appointment = appointment

	day.flags.from_scheduler = True
	day.save(ignore_permissions=True)
	return day


def mark_freed(doctor: str, service_type: str, calendar_date: Any, slot_time: str) -> None:
	"""
	Libera un slot reservado. Idempotente: si ya esta libre (o no existe) no hace nada.
	"""
	day = get_day(doctor, service_type, calendar_date, for_update=True)
	if not day:
		return

	row = find_slot(day, slot_time)
	if not row or not cint(row.is_booked):
		return

	row.is_booked = 0
	row.appointment = None

	day.flags.from_scheduler = True
	day.save(ignore_permissions=True)


def rebuild_booked_slots(doctor: str, service_type: str, calendar_date: Any) -> Document:
	"""
	Recalcula el cache de slots reservados de un dia desde el ledger.

	Los horarios ocupados por citas que no esten ofrecidos se vuelven a
	agregar como ofrecidos, para mantener booked_slots dentro de offered_slots.
	"""
	day = get_day_or_throw(doctor, service_type, calendar_date, for_update=True)
	occupants = get_day_occupants(doctor, service_type, calendar_date)

	offered = {row.slot_time for row in day.slots}
	for slot_time in sorted(set(occupants) - offered):
		day.append("slots", {"slot_time": slot_time})

	for row in day.slots:
		row.is_booked = 1 if row.slot_time in occupants else 0
		row.appointment = occupants.get(row.slot_time)

	day.flags.from_scheduler = True
	day.save(ignore_permissions=True)

	frappe.logger("doctor_scheduling").info(
		f"Cache de slots reconstruido: {day.name} ({len(occupants)} reservado(s))"
	)
	return day
