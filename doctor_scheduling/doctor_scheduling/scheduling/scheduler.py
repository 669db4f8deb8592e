"""
Scheduler Service

Transactional core of appointment scheduling. Every slot-affecting operation
runs as one atomic unit against the Availability Store and the Reservation
Ledger:
- Row lock on the affected Doctor Availability Day(s) (SELECT ... FOR UPDATE)
- Unique index on Appointment.occupancy_key as the storage-level guarantee
- Savepoint rollback on any failure (no partial book / free)
"""

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import add_to_date, cint, get_datetime, now_datetime
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from doctor_scheduling.doctor_scheduling.doctype.scheduling_settings.scheduling_settings import (
	get_booking_lead_time_minutes,
)

from .availability import find_slot, get_day, mark_booked, mark_freed, make_day_name
from .exceptions import InvalidStateError, NotFoundError, SlotUnavailableError
from .occupancy import check_occupancy
from .utils import (
	ACTIVE_STATUSES,
	PAYMENT_STATUSES,
	STATUS_CANCELLED,
	STATUS_CONFIRMED,
	STATUS_PENDING,
	SERVICE_HOME_VISIT,
	TERMINAL_STATUSES,
	atomic_unit,
	normalize_date,
	normalize_time,
	validate_service_type,
)

# Campos opcionales que el cliente puede enviar al reservar
BOOKING_DETAIL_FIELDS = (
	"consultation_fee",
	"total_amount",
	"payment_method",
	"patient_name",
	"patient_date_of_birth",
	"patient_gender",
	"problem",
	"visit_address",
	"notes",
)

ATTACHMENT_TYPES = ("Lab Test", "Instrumental Test", "Document")


def _logger():
	return frappe.logger("doctor_scheduling")


def earliest_bookable() -> datetime:
	"""Primer instante reservable: now + booking_lead_time_minutes (nunca antes de now)."""
	return add_to_date(now_datetime(), minutes=get_booking_lead_time_minutes(), as_datetime=True)


class RescheduleResult:
	"""Resultado de una reprogramacion: cita + coordenadas anterior y nueva."""

	def __init__(self, appointment: Document, previous: Tuple[str, str], current: Tuple[str, str]) -> None:
		self.appointment = appointment
		self.previous = previous
		self.current = current

	def as_dict(self) -> Dict[str, Any]:
		return {
			"appointment": self.appointment.name,
			"status": self.appointment.status,
			"previous": {"date": self.previous[0], "time": self.previous[1]},
			"current": {"date": self.current[0], "time": self.current[1]},
		}


def book(
	doctor: str,
	patient: str,
	service_type: str,
	scheduled_date: Any,
	scheduled_time: str,
	details: Optional[Dict[str, Any]] = None
) -> Document:
	"""
	Reserva un slot y crea la cita en estado pending.

	Algoritmo:
		1. Validar medico, paciente y formatos
		2. Bloquear el dia y validar que el slot este ofrecido y libre
		3. Insertar Appointment (occupancy_key unico) y mark_booked
		4. Cualquier fallo -> rollback completo, SlotUnavailableError si el slot se ocupo

	Raises:
		NotFoundError: medico o paciente desconocido
		SlotUnavailableError: el slot no esta libre
	"""
	validate_service_type(service_type)
	scheduled_date = normalize_date(scheduled_date)
	scheduled_time = normalize_time(scheduled_time)
	details = details or {}

	if not frappe.db.exists("User", doctor):
		frappe.throw(_(f"Medico '{doctor}' no existe"), NotFoundError)
	if not frappe.db.exists("User", patient):
		frappe.throw(_(f"Paciente '{patient}' no existe"), NotFoundError)

	_validate_lead_time(scheduled_date, scheduled_time)

	with atomic_unit("book"):
		_assert_slot_free(doctor, service_type, scheduled_date, scheduled_time)

		appointment = frappe.get_doc({
			"doctype": "Appointment",
			"doctor": doctor,
			"patient": patient,
			"service_type": service_type,
			"scheduled_date": scheduled_date,
			"scheduled_time": scheduled_time,
			"status": STATUS_PENDING,
			"payment_status": "pending",
			**{field: details.get(field) for field in BOOKING_DETAIL_FIELDS if details.get(field) is not None},
		})
		for attachment in details.get("attachments") or []:
			appointment.append("attachments", _attachment_row(attachment))

		appointment.flags.from_scheduler = True
		_write_occupying(appointment.insert, ignore_permissions=True)

		mark_booked(doctor, service_type, scheduled_date, scheduled_time, appointment.name)

	_logger().info(
		f"Cita reservada: {appointment.name} "
		f"({doctor}, {service_type}, {scheduled_date} {scheduled_time}, paciente {patient})"
	)
	return appointment


def reschedule(
	appointment_name: str,
	new_date: Any,
	new_time: str,
	reason: Optional[str] = None
) -> RescheduleResult:
	"""
	Mueve una cita activa a otro slot del mismo medico y tipo de servicio.

	Algoritmo:
		1. Leer la cita (bloqueada); NotFoundError / InvalidStateError
		2. Bloquear ambos dias en orden estable (evita deadlocks)
		3. Validar que el nuevo slot este libre
		4. Actualizar la cita, mark_freed del slot anterior, mark_booked del nuevo
		5. Si algo falla, la reserva original queda intacta

	Returns:
		RescheduleResult con la coordenada anterior y la nueva
	"""
	new_date = normalize_date(new_date)
	new_time = normalize_time(new_time)

	with atomic_unit("reschedule"):
		appointment = _get_appointment_for_update(appointment_name)
		if appointment.status in TERMINAL_STATUSES:
			frappe.throw(
				_(f"No se puede reprogramar la cita {appointment.name} en estado {appointment.status}"),
				InvalidStateError
			)

		doctor, service_type = appointment.doctor, appointment.service_type
		previous = (normalize_date(appointment.scheduled_date), normalize_time(appointment.scheduled_time))
		if previous == (new_date, new_time):
			frappe.throw(
				_(f"La cita {appointment.name} ya esta agendada el {new_date} a las {new_time}"),
				SlotUnavailableError
			)

		_validate_lead_time(new_date, new_time)
		_lock_days(doctor, service_type, previous[0], new_date)
		_assert_slot_free(doctor, service_type, new_date, new_time, exclude_appointment=appointment.name)

		appointment.previous_date = previous[0]
		appointment.previous_time = previous[1]
		appointment.scheduled_date = new_date
		appointment.scheduled_time = new_time
		appointment.reschedule_reason = reason
		appointment.rescheduled_at = now_datetime()
		appointment.reschedule_count = cint(appointment.reschedule_count) + 1

		appointment.flags.from_scheduler = True
		_write_occupying(appointment.save, ignore_permissions=True)

		mark_freed(doctor, service_type, previous[0], previous[1])
		mark_booked(doctor, service_type, new_date, new_time, appointment.name)

	_logger().info(
		f"Cita reprogramada: {appointment.name} {previous[0]} {previous[1]} -> {new_date} {new_time}"
	)
	return RescheduleResult(appointment, previous, (new_date, new_time))


def schedule_follow_up(
	appointment_name: str,
	scheduled_date: Any,
	scheduled_time: str,
	service_type: Optional[str] = None,
	visit_address: Optional[str] = None,
	notes: Optional[str] = None,
	reason: Optional[str] = None
) -> Document:
	"""
	Agenda una cita de seguimiento con el mismo medico y paciente.

	La cita nueva nace confirmed (la indica el medico) con pago pending y
	copia honorarios, metodo de pago y datos del paciente de la cita origen.
	La cita origen queda enlazada al seguimiento.

	Raises:
		NotFoundError: la cita origen no existe
		InvalidStateError: la cita origen esta cancelada
		SlotUnavailableError: el slot no esta libre
	"""
	scheduled_date = normalize_date(scheduled_date)
	scheduled_time = normalize_time(scheduled_time)

	with atomic_unit("follow_up"):
		source = _get_appointment_for_update(appointment_name)
		if source.status == STATUS_CANCELLED:
			frappe.throw(
				_(f"No se puede agendar un seguimiento de la cita cancelada {source.name}"),
				InvalidStateError
			)

		service_type = validate_service_type(service_type or source.service_type)
		if service_type == SERVICE_HOME_VISIT and not (visit_address or "").strip():
			frappe.throw(_("Visit Address es requerido para visitas a domicilio"))

		_validate_lead_time(scheduled_date, scheduled_time)
		_assert_slot_free(source.doctor, service_type, scheduled_date, scheduled_time)

		follow_up = frappe.get_doc({
			"doctype": "Appointment",
			"doctor": source.doctor,
			"patient": source.patient,
			"service_type": service_type,
			"scheduled_date": scheduled_date,
			"scheduled_time": scheduled_time,
			"status": STATUS_CONFIRMED,
			"payment_status": "pending",
			"consultation_fee": source.consultation_fee,
			"total_amount": source.total_amount,
			"payment_method": source.payment_method,
			"patient_name": source.patient_name,
			"patient_date_of_birth": source.patient_date_of_birth,
			"patient_gender": source.patient_gender,
			"problem": source.problem,
			"visit_address": visit_address,
			"notes": notes or reason or f"Seguimiento de la cita {source.name}",
			"follow_up_of": source.name,
		})

		follow_up.flags.from_scheduler = True
		_write_occupying(follow_up.insert, ignore_permissions=True)

		mark_booked(source.doctor, service_type, scheduled_date, scheduled_time, follow_up.name)

		source.follow_up_appointment = follow_up.name
		source.follow_up_reason = reason
		source.save(ignore_permissions=True)

	_logger().info(
		f"Seguimiento agendado: {follow_up.name} de {source.name} "
		f"({source.doctor}, {service_type}, {scheduled_date} {scheduled_time})"
	)
	return follow_up


def set_status(appointment_name: str, new_status: str) -> Document:
	"""
	Cambia el estado de una cita respetando la maquina de estados.

	- cancelled: libera el slot
	- completed: conserva el slot (la fecha ya paso) y cierra reprogramaciones

	Raises:
		NotFoundError: la cita no existe
		InvalidStateError: estado desconocido o transicion no permitida
	"""
	if new_status not in ACTIVE_STATUSES + TERMINAL_STATUSES:
		frappe.throw(_(f"Estado invalido: {new_status}"), InvalidStateError)

	with atomic_unit("set_status"):
		appointment = _get_appointment_for_update(appointment_name)
		old_status = appointment.status

		if old_status in TERMINAL_STATUSES:
			frappe.throw(
				_(f"La cita {appointment.name} esta en estado terminal ({old_status})"),
				InvalidStateError
			)

		if new_status == old_status:
			return appointment

		appointment.status = new_status
		appointment.flags.from_scheduler = True
		appointment.save(ignore_permissions=True)

		if new_status == STATUS_CANCELLED:
			mark_freed(
				appointment.doctor,
				appointment.service_type,
				appointment.scheduled_date,
				appointment.scheduled_time,
			)

	_logger().info(f"Cita {appointment.name}: {old_status} -> {new_status}")
	return appointment


def set_payment_status(
	appointment_name: str,
	payment_status: str,
	payment_method: Optional[str] = None
) -> Document:
	"""
	Registra el estado de pago informado por el subsistema de pagos.
	No afecta la ocupacion de slots.
	"""
	if payment_status not in PAYMENT_STATUSES:
		frappe.throw(_(f"Payment Status invalido: {payment_status}. Use: {', '.join(PAYMENT_STATUSES)}"))

	appointment = _get_appointment_for_update(appointment_name)
	appointment.payment_status = payment_status
	if payment_method:
		appointment.payment_method = payment_method
	appointment.save(ignore_permissions=True)

	_logger().info(f"Pago de {appointment.name}: {payment_status}")
	return appointment


def add_attachment(
	appointment_name: str,
	attachment_type: str,
	reference: str,
	description: Optional[str] = None
) -> Document:
	"""
	Agrega un adjunto (estudio de laboratorio, instrumental o documento) a la cita.
	No afecta la ocupacion de slots.
	"""
	appointment = _get_appointment_for_update(appointment_name)
	if appointment.status == STATUS_CANCELLED:
		frappe.throw(
			_(f"No se pueden agregar adjuntos a la cita cancelada {appointment.name}"),
			InvalidStateError
		)

	appointment.append("attachments", _attachment_row({
		"attachment_type": attachment_type,
		"reference": reference,
		"description": description,
	}))
	appointment.save(ignore_permissions=True)
	return appointment


# ===== HELPERS =====

def _get_appointment_for_update(appointment_name: str) -> Document:
	if not appointment_name or not frappe.db.get_value("Appointment", appointment_name, "name", for_update=True):
		frappe.throw(_(f"Cita '{appointment_name}' no existe"), NotFoundError)
	return frappe.get_doc("Appointment", appointment_name, for_update=True)


def _lock_days(doctor: str, service_type: str, *dates: str) -> None:
	"""Bloquea los dias involucrados siempre en el mismo orden."""
	for name in sorted({make_day_name(doctor, service_type, d) for d in dates}):
		frappe.db.get_value("Doctor Availability Day", name, "name", for_update=True)


def _assert_slot_free(
	doctor: str,
	service_type: str,
	scheduled_date: str,
	scheduled_time: str,
	exclude_appointment: Optional[str] = None
) -> None:
	"""
	Valida que la coordenada se pueda reservar: dia publicado y habilitado,
	horario ofrecido y sin reserva, ni en el dia ni en el ledger de citas.
	"""
	day = get_day(doctor, service_type, scheduled_date, for_update=True)
	row = find_slot(day, scheduled_time) if day else None

	if (
		not day
		or not cint(day.is_available)
		or not row
		or cint(row.is_booked)
		or check_occupancy(
			doctor, service_type, scheduled_date, scheduled_time, exclude_appointment=exclude_appointment
		)["is_occupied"]
	):
		frappe.throw(
			_(f"El horario {scheduled_time} del {scheduled_date} ya no esta disponible. Elija otro horario."),
			SlotUnavailableError
		)


def _write_occupying(write, **kwargs) -> None:
	"""
	Ejecuta el insert/save de una cita que ocupa una coordenada.

	Si otro request tomo la coordenada entre la validacion y el commit, el
	indice unico de occupancy_key lo rechaza: se reporta como SlotUnavailableError.
	"""
	try:
		write(**kwargs)
	except (frappe.UniqueValidationError, frappe.DuplicateEntryError):
		frappe.throw(
			_("El horario fue reservado por otra persona. Elija otro horario."),
			SlotUnavailableError
		)


def _validate_lead_time(scheduled_date: str, scheduled_time: str) -> None:
	"""Rechaza coordenadas pasadas o dentro del lead time configurado."""
	if get_datetime(f"{scheduled_date} {scheduled_time}:00") < earliest_bookable():
		frappe.throw(
			_(f"El horario {scheduled_time} del {scheduled_date} ya no se puede reservar "
			  f"(minimo {get_booking_lead_time_minutes()} minutos de anticipacion)"),
			SlotUnavailableError
		)


def _attachment_row(attachment: Dict[str, Any]) -> Dict[str, Any]:
	attachment_type = attachment.get("attachment_type")
	if attachment_type not in ATTACHMENT_TYPES:
		frappe.throw(_(f"Tipo de adjunto invalido: {attachment_type}. Use: {', '.join(ATTACHMENT_TYPES)}"))

	if not attachment.get("reference"):
		frappe.throw(_("El adjunto requiere una referencia"))

	return {
		"attachment_type": attachment_type,
		"reference": attachment.get("reference"),
		"description": attachment.get("description"),
		"added_on": now_datetime(),
	}
