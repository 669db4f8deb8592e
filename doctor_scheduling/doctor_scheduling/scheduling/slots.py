"""
Slot Resolution Service

Projects the Availability Store into bookable slots for booking UIs:
- Only days with is_available = 1
- Only offered slots that are not booked
- Ordered by date, then by HH:MM
"""

import frappe
from frappe.utils import cint, get_datetime
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .availability import DAY_DOCTYPE, day_as_dict
from .scheduler import earliest_bookable
from .utils import normalize_date, validate_service_type

SLOT_DOCTYPE = "Availability Day Slot"


class FreeSlots:
	"""
	Secuencia perezosa de slots libres (fecha, horario).

	Es finita y re-iterable: cada iteracion vuelve a leer el estado actual
	del store, no se cachea nada entre iteraciones.
	"""

	def __init__(
		self,
		doctor: str,
		service_type: str,
		from_date: Any,
		to_date: Any,
		not_before: Optional[datetime] = None
	) -> None:
		self.doctor = doctor
		self.service_type = validate_service_type(service_type)
		self.from_date = normalize_date(from_date)
		self.to_date = normalize_date(to_date)
		self.not_before = not_before

	def __iter__(self) -> Iterator[Tuple[str, str]]:
		days = _fetch_days(self.doctor, self.service_type, self.from_date, self.to_date)
		return resolve_free_slots(days, not_before=self.not_before)

	def as_list(self) -> List[Dict[str, str]]:
		return [{"date": slot_date, "time": slot_time} for slot_date, slot_time in self]


def list_free_slots(
	doctor: str,
	service_type: str,
	from_date: Any,
	to_date: Any
) -> FreeSlots:
	"""
	Obtiene los slots libres de un medico para un rango de fechas.

	Se omiten los slots que empiezan antes de now + booking_lead_time_minutes
	(Scheduling Settings); con lead time 0 igual se omiten los slots pasados.

	Returns:
		FreeSlots: iterable de tuplas ("2026-01-15", "09:00")
	"""
	return FreeSlots(doctor, service_type, from_date, to_date, not_before=earliest_bookable())


def resolve_free_slots(
	days: Iterable[Dict[str, Any]],
	not_before: Optional[datetime] = None
) -> Iterator[Tuple[str, str]]:
	"""
	Proyeccion pura de dias a slots libres.

	Args:
		days: [
			{
				"calendar_date": "2026-01-15",
				"is_available": 1,
				"slots": [{"slot_time": "09:00", "is_booked": 0}, ...]
			},
			...
		]
		not_before: si se indica, se omiten slots anteriores a este instante

	Yields:
		("2026-01-15", "09:00"), ... ordenados por fecha y horario
	"""
	for day in sorted(days, key=lambda d: normalize_date(d["calendar_date"])):
		# Un dia deshabilitado no aporta slots aunque tenga horarios ofrecidos
		if not cint(day.get("is_available")):
			continue

		day_date = normalize_date(day["calendar_date"])
		free_times = sorted(
			slot["slot_time"] for slot in day.get("slots") or [] if not cint(slot.get("is_booked"))
		)

		for slot_time in free_times:
			if not_before and get_datetime(f"{day_date} {slot_time}:00") < not_before:
				continue
			yield day_date, slot_time


def get_doctor_calendar(
	doctor: str,
	service_type: str,
	from_date: Any,
	to_date: Any
) -> List[Dict[str, Any]]:
	"""
	Vista del calendario para el editor: por dia, slots ofrecidos, reservados
	(bloqueados en la UI) y libres.
	"""
	validate_service_type(service_type)
	names = frappe.get_all(
		DAY_DOCTYPE,
		filters={
			"doctor": doctor,
			"service_type": service_type,
			"calendar_date": ["between", [normalize_date(from_date), normalize_date(to_date)]],
		},
		order_by="calendar_date asc",
		pluck="name",
	)

	return [day_as_dict(frappe.get_doc(DAY_DOCTYPE, name)) for name in names]


def _fetch_days(doctor: str, service_type: str, from_date: str, to_date: str) -> List[Dict[str, Any]]:
	"""Lee dias habilitados del rango con sus slots en dos queries."""
	days = frappe.get_all(
		DAY_DOCTYPE,
		filters={
			"doctor": doctor,
			"service_type": service_type,
			"calendar_date": ["between", [from_date, to_date]],
			"is_available": 1,
		},
		fields=["name", "calendar_date", "is_available"],
		order_by="calendar_date asc",
	)

	if not days:
		return []

	slots = frappe.get_all(
		SLOT_DOCTYPE,
		filters={
			"parenttype": DAY_DOCTYPE,
			"parent": ["in", [day.name for day in days]],
		},
		fields=["parent", "slot_time", "is_booked"],
		order_by="slot_time asc",
	)

	slots_by_day: Dict[str, List[Dict[str, Any]]] = {}
	for slot in slots:
		slots_by_day.setdefault(slot.parent, []).append(slot)

	for day in days:
		day["slots"] = slots_by_day.get(day.name, [])

	return days
