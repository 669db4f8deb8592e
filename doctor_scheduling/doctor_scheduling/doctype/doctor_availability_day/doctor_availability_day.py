# Copyright (c) 2026, Doctor Scheduling contributors
# For license information, please see license.txt

"""
Doctor Availability Day DocType

Calendario de un medico para un dia y tipo de servicio:
- slots: horarios ofrecidos (HH:MM)
- slots con is_booked = 1: horarios reservados (bloqueados para el editor)
- is_available: deshabilita el dia sin borrar sus horarios
"""

import frappe
from frappe import _
from frappe.model.document import Document
from frappe.utils import cint
from typing import Dict, Set

from doctor_scheduling.doctor_scheduling.scheduling.exceptions import (
	ConflictError,
	CrossServiceOverlapError,
)
from doctor_scheduling.doctor_scheduling.scheduling.utils import (
	normalize_date,
	normalize_time,
	other_service_type,
	validate_service_type,
)


class DoctorAvailabilityDay(Document):
	"""
	Doctor Availability Day with slot validations.

	Validations:
	- doctor, service_type, calendar_date required
	- slot times in HH:MM, no duplicates, sorted
	- booked slots cannot be removed or unbooked outside the scheduler
	- booked slots must reference an appointment
	- same time cannot be offered for both service types (unless allowed in settings)
	"""

	def autoname(self) -> None:
		from doctor_scheduling.doctor_scheduling.scheduling.availability import make_day_name

		self.name = make_day_name(self.doctor, self.service_type, self.calendar_date)

	def validate(self) -> None:
		"""
		Validacion antes de guardar.
		"""
		self._validate_required_fields()
		self._normalize_slots()
		self._validate_booked_slots_locked()
		self._validate_booked_slots_linked()
		self._validate_cross_service_overlap()

	def on_update(self) -> None:
		self.flags.from_scheduler = False

	def on_trash(self) -> None:
		"""Un dia con reservas nunca se borra fisicamente."""
		booked = self._booked_times()
		if booked:
			frappe.throw(
				_(f"No se puede eliminar {self.name}: tiene slots reservados ({', '.join(sorted(booked))})"),
				ConflictError
			)

	# ===== VALIDATION METHODS =====

	def _validate_required_fields(self) -> None:
		"""Valida campos requeridos."""
		if not self.doctor:
			frappe.throw(_("Doctor es requerido"))

		if not self.service_type:
			frappe.throw(_("Service Type es requerido"))
		validate_service_type(self.service_type)

		if not self.calendar_date:
			frappe.throw(_("Calendar Date es requerido"))
		self.calendar_date = normalize_date(self.calendar_date)

	def _normalize_slots(self) -> None:
		"""
		Normaliza horarios a HH:MM, rechaza duplicados y ordena la tabla.
		"""
		seen: Set[str] = set()

		for row in self.slots:
			row.slot_time = normalize_time(row.slot_time)
			if row.slot_time in seen:
				frappe.throw(_(f"Horario duplicado: {row.slot_time}"))
			seen.add(row.slot_time)

		self.slots.sort(key=lambda row: row.slot_time)
		for idx, row in enumerate(self.slots, 1):
			row.idx = idx

	def _validate_booked_slots_locked(self) -> None:
		"""
		Los slots reservados solo los cambia el scheduler (mark_booked / mark_freed).

		Desde el editor (o Desk) un slot reservado no se puede quitar y
		is_booked no se puede alterar.
		"""
		if self.flags.from_scheduler:
			return

		before = self.get_doc_before_save()
		booked_before: Dict[str, str] = {}
		if before:
			booked_before = {
				row.slot_time: row.appointment for row in before.slots if cint(row.is_booked)
			}

		current = {row.slot_time: row for row in self.slots}

		removed = sorted(t for t in booked_before if t not in current)
		if removed:
			frappe.throw(
				_(f"Los slots reservados no se pueden quitar: {', '.join(removed)}"),
				ConflictError
			)

		for slot_time, row in current.items():
			was_booked = slot_time in booked_before
			if bool(cint(row.is_booked)) != was_booked:
				frappe.throw(
					_(f"El estado de reserva del slot {slot_time} solo lo cambia el agendamiento de citas"),
					ConflictError
				)
			if was_booked:
				row.appointment = booked_before[slot_time]

	def _validate_booked_slots_linked(self) -> None:
		"""Todo slot reservado referencia la cita que lo ocupa."""
		for row in self.slots:
			if cint(row.is_booked) and not row.appointment:
				frappe.throw(_(f"El slot reservado {row.slot_time} no tiene cita asociada"))
			if not cint(row.is_booked):
				row.appointment = None

	def _validate_cross_service_overlap(self) -> None:
		"""
		Un medico no puede estar en dos lugares: un horario nuevo no puede estar
		ofrecido el mismo dia para el otro tipo de servicio.
		"""
		from doctor_scheduling.doctor_scheduling.doctype.scheduling_settings.scheduling_settings import (
			allows_cross_service_overlap,
		)

		if self.flags.from_scheduler or allows_cross_service_overlap():
			return

		before = self.get_doc_before_save()
		existing = {row.slot_time for row in before.slots} if before else set()
		new_times = {row.slot_time for row in self.slots} - existing
		if not new_times:
			return

		other_day = frappe.db.get_value(
			"Doctor Availability Day",
			{
				"doctor": self.doctor,
				"service_type": other_service_type(self.service_type),
				"calendar_date": self.calendar_date,
			},
			"name",
		)
		if not other_day:
			return

		other_times = set(frappe.get_all(
			"Availability Day Slot",
			filters={"parent": other_day, "parenttype": "Doctor Availability Day"},
			pluck="slot_time",
		))

		overlapping = sorted(new_times & other_times)
		if overlapping:
			frappe.throw(
				_(f"Los horarios {', '.join(overlapping)} ya estan ofrecidos para "
				  f"{other_service_type(self.service_type)} el {self.calendar_date}"),
				CrossServiceOverlapError
			)

	def _booked_times(self) -> Set[str]:
		return {row.slot_time for row in self.slots if cint(row.is_booked)}
