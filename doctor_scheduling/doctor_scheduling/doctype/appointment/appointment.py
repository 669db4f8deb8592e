# Copyright (c) 2026, Doctor Scheduling contributors
# For license information, please see license.txt

"""
Appointment DocType

Reservation Ledger: cada cita ocupa exactamente una coordenada
(doctor, service_type, scheduled_date, scheduled_time).
"""

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import flt

from doctor_scheduling.doctor_scheduling.scheduling.exceptions import InvalidStateError
from doctor_scheduling.doctor_scheduling.scheduling.occupancy import make_occupancy_key
from doctor_scheduling.doctor_scheduling.scheduling.utils import (
	ACTIVE_STATUSES,
	OCCUPYING_STATUSES,
	PAYMENT_STATUSES,
	STATUS_CANCELLED,
	STATUS_COMPLETED,
	STATUS_CONFIRMED,
	STATUS_PENDING,
	SERVICE_HOME_VISIT,
	normalize_date,
	normalize_time,
	validate_service_type,
)

# Transiciones permitidas: pending -> confirmed -> completed, cancelled desde pending/confirmed
ALLOWED_TRANSITIONS = {
	STATUS_PENDING: (STATUS_CONFIRMED, STATUS_CANCELLED),
	STATUS_CONFIRMED: (STATUS_COMPLETED, STATUS_CANCELLED),
	STATUS_COMPLETED: (),
	STATUS_CANCELLED: (),
}


class Appointment(Document):
	"""
	Appointment DocType with state machine and occupancy validation.

	Flujo:
	1. El scheduler crea la cita (pending, o confirmed si es un seguimiento) y
	   reserva el slot en la misma transaccion
	2. confirmed / completed / cancelled via scheduler.set_status
	3. Reprogramar mueve la coordenada (solo via scheduler.reschedule)

	La fecha/horario y el estado no se editan directamente: Desk o la API
	de documentos no pueden romper la ocupacion de slots.
	"""

	def before_insert(self) -> None:
		if not self.flags.from_scheduler:
			frappe.throw(
				_("Las citas se crean unicamente a traves del agendamiento (book o seguimiento)"),
				InvalidStateError
			)

	def validate(self) -> None:
		"""
		Validacion antes de guardar.

		Ejecuta:
		1. Validar campos requeridos y formatos
		2. Validar transicion de estado
		3. Validar que la coordenada solo la cambie el scheduler
		4. Sincronizar occupancy_key con el estado
		5. Validar montos
		"""
		self._validate_required_fields()
		self._validate_status_transition()
		self._validate_coordinate_change()
		self._sync_occupancy_key()
		self._validate_payment()

	def on_update(self) -> None:
		# El permiso del scheduler vale solo para la escritura en curso
		self.flags.from_scheduler = False

	def on_trash(self) -> None:
		"""Borrar una cita que ocupa un slot dejaria la reserva huerfana."""
		if self.status in OCCUPYING_STATUSES:
			frappe.throw(
				_(f"No se puede eliminar la cita {self.name} en estado {self.status}. Cancele la cita primero."),
				InvalidStateError
			)

	@property
	def coordinate(self):
		return (
			self.doctor,
			self.service_type,
			normalize_date(self.scheduled_date),
			normalize_time(self.scheduled_time),
		)

	def is_active(self) -> bool:
		return self.status in ACTIVE_STATUSES

	# ===== VALIDATION METHODS =====

	def _validate_required_fields(self) -> None:
		"""Valida campos requeridos y normaliza fecha/horario."""
		if not self.doctor:
			frappe.throw(_("Doctor es requerido"))

		if not self.patient:
			frappe.throw(_("Patient es requerido"))

		validate_service_type(self.service_type)
		if self.service_type == SERVICE_HOME_VISIT and not (self.visit_address or "").strip():
			frappe.throw(_("Visit Address es requerido para visitas a domicilio"))

		self.scheduled_date = normalize_date(self.scheduled_date)
		self.scheduled_time = normalize_time(self.scheduled_time)

		if self.status not in ALLOWED_TRANSITIONS:
			frappe.throw(_(f"Estado invalido: {self.status}"))

	def _validate_status_transition(self) -> None:
		"""
		Valida la maquina de estados contra el valor guardado.

		Una cita nueva empieza activa: pending al reservar, confirmed si es un seguimiento.
		"""
		if self.is_new():
			if self.status not in ACTIVE_STATUSES:
				frappe.throw(_(f"Una cita nueva no puede crearse en estado {self.status}"), InvalidStateError)
			return

		before = self.get_doc_before_save()
		if not before or before.status == self.status:
			return

		if not self.flags.from_scheduler:
			frappe.throw(
				_("El estado de la cita solo cambia mediante el agendamiento (set_status)"),
				InvalidStateError
			)

		if self.status not in ALLOWED_TRANSITIONS.get(before.status, ()):
			frappe.throw(
				_(f"Transicion no permitida: {before.status} -> {self.status}"),
				InvalidStateError
			)

	def _validate_coordinate_change(self) -> None:
		"""La coordenada solo cambia via scheduler.reschedule."""
		if self.is_new() or self.flags.from_scheduler:
			return

		before = self.get_doc_before_save()
		if not before:
			return

		before_coordinate = (
			before.doctor,
			before.service_type,
			normalize_date(before.scheduled_date),
			normalize_time(before.scheduled_time),
		)
		if before_coordinate != self.coordinate or before.patient != self.patient:
			frappe.throw(
				_("Doctor, paciente, tipo, fecha y horario solo cambian mediante reprogramacion"),
				InvalidStateError
			)

	def _sync_occupancy_key(self) -> None:
		"""
		occupancy_key tiene indice unico: mientras la cita ocupa el slot guarda
		la coordenada, al cancelarse queda vacia y libera la coordenada.
		"""
		if self.status in OCCUPYING_STATUSES:
			self.occupancy_key = make_occupancy_key(*self.coordinate)
		else:
			self.occupancy_key = None

	def _validate_payment(self) -> None:
		if self.payment_status and self.payment_status not in PAYMENT_STATUSES:
			frappe.throw(_(f"Payment Status invalido: {self.payment_status}"))

		if flt(self.consultation_fee) < 0 or flt(self.total_amount) < 0:
			frappe.throw(_("Los montos no pueden ser negativos"))

		if self.consultation_fee and not self.total_amount:
			self.total_amount = self.consultation_fee

		if flt(self.total_amount) < flt(self.consultation_fee):
			frappe.throw(_("Total Amount no puede ser menor que Consultation Fee"))
