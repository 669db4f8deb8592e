"""
Scheduling Errors

Typed errors raised by the scheduling core. All of them are Frappe
exceptions, so `frappe.throw(msg, exc=...)` can raise them and the RPC layer
maps them to HTTP status codes.
"""

import frappe


class SchedulingError(frappe.ValidationError):
	pass


class SlotUnavailableError(SchedulingError):
	"""La coordenada pedida no esta libre (reserva o reprogramacion rechazada)."""

	http_status_code = 409


class ConflictError(SchedulingError):
	"""Edicion de calendario que quitaria o alteraria un slot reservado."""

	http_status_code = 409


class CrossServiceOverlapError(ConflictError):
	"""El mismo horario ya se ofrece para el otro tipo de servicio."""


class InvalidStateError(SchedulingError):
	"""Operacion sobre una cita en estado terminal o transicion no permitida."""

	http_status_code = 417


class NotFoundError(frappe.DoesNotExistError):
	"""Medico, dia de disponibilidad o cita desconocidos."""

	http_status_code = 404
