"""
Scheduling Utilities

Shared constants and normalizers for calendar coordinates. Dates travel as
plain YYYY-MM-DD strings and times as HH:MM (24h) strings compared lexically.
"""

import re
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterable, List, Union

import frappe
from frappe import _
from frappe.utils import getdate

SERVICE_VIDEO = "video"
SERVICE_HOME_VISIT = "home-visit"
SERVICE_TYPES = (SERVICE_VIDEO, SERVICE_HOME_VISIT)

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

# Estados que ocupan la coordenada
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)
# Una cita completada conserva su slot (la fecha ya paso)
OCCUPYING_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_COMPLETED)

PAYMENT_STATUSES = ("pending", "paid", "failed")

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def normalize_date(value: Union[date, datetime, str]) -> str:
	"""
	Convierte una fecha (date, datetime o string) a YYYY-MM-DD.
	"""
	if not value:
		frappe.throw(_("La fecha es requerida"))

	try:
		return getdate(value).strftime("%Y-%m-%d")
	except Exception:
		frappe.throw(_(f"Fecha invalida '{value}'. Use YYYY-MM-DD"))


def normalize_time(value: str) -> str:
	"""
	Valida y normaliza un horario HH:MM.

	Acepta "9:00" y "09:00:00" (como los guarda el cliente movil) y
	devuelve siempre "09:00".
	"""
	if value is None:
		frappe.throw(_("El horario es requerido"))

	value = str(value).strip()
	parts = value.split(":")
	if len(parts) == 3 and parts[2] == "00":
		parts = parts[:2]
	if len(parts) == 2 and len(parts[0]) == 1:
		parts[0] = f"0{parts[0]}"

	normalized = ":".join(parts)
	if not TIME_PATTERN.match(normalized):
		frappe.throw(_(f"Horario invalido '{value}'. Use HH:MM (24h)"))

	return normalized


def normalize_times(values: Iterable[str]) -> List[str]:
	"""Normaliza, elimina duplicados y ordena una lista de horarios."""
	return sorted({normalize_time(value) for value in values or []})


def validate_service_type(service_type: str) -> str:
	if service_type not in SERVICE_TYPES:
		frappe.throw(
			_(f"Tipo de servicio invalido '{service_type}'. Use: {', '.join(SERVICE_TYPES)}")
		)
	return service_type


def other_service_type(service_type: str) -> str:
	return SERVICE_HOME_VISIT if service_type == SERVICE_VIDEO else SERVICE_VIDEO


@contextmanager
def atomic_unit(label: str):
	"""
	Ejecuta un bloque como unidad atomica dentro de la transaccion del request.

	Abre un savepoint; si el bloque lanza cualquier excepcion se hace
	rollback hasta el savepoint (nada queda a medias) y se re-lanza.
	"""
	save_point = f"{label}_{frappe.generate_hash(length=8)}"
	frappe.db.savepoint(save_point)
	try:
		yield
	except Exception:
		frappe.db.rollback(save_point=save_point)
		raise
	else:
		frappe.db.release_savepoint(save_point)
