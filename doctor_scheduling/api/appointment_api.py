"""
Appointment API Endpoints

Whitelisted functions for the patient-facing booking UI and the doctor's
appointment views. Security protections:
- Rate limiting by IP address
- Honeypot validation on booking
- Input validation and sanitization
- Session checks (no guest booking)
"""

import frappe
from frappe import _
from frappe.utils import add_days, getdate
from typing import Dict, List, Any, Optional

from doctor_scheduling.doctor_scheduling.scheduling import scheduler
from doctor_scheduling.doctor_scheduling.scheduling.exceptions import SchedulingError
from doctor_scheduling.doctor_scheduling.scheduling.slots import list_free_slots
from doctor_scheduling.doctor_scheduling.scheduling.utils import STATUS_CANCELLED
from doctor_scheduling.doctor_scheduling.doctype.scheduling_settings.scheduling_settings import (
	get_default_range_days,
)

from doctor_scheduling.api.shared import (
	check_rate_limit,
	check_honeypot,
	is_calendar_manager,
	require_appointment_access,
	require_calendar_access,
	require_login,
	sanitize_string,
	validate_date_string,
	validate_docname,
	validate_service_type,
	validate_time_string,
)

# Errores esperados: se propagan sin registrar en Error Log
EXPECTED_ERRORS = (SchedulingError, frappe.ValidationError, frappe.PermissionError, frappe.DoesNotExistError)

APPOINTMENT_LIST_FIELDS = [
	"name",
	"doctor",
	"patient",
	"service_type",
	"scheduled_date",
	"scheduled_time",
	"status",
	"payment_status",
	"total_amount",
]


@frappe.whitelist(allow_guest=True, methods=['GET'])
def get_free_slots(
	doctor: str,
	service_type: str,
	from_date: str,
	to_date: Optional[str] = None
) -> List[Dict[str, str]]:
	"""
	Obtiene los slots libres de un medico para un rango de fechas.

	Rate limited: 30 requests per minute per IP.

	Args:
		doctor: usuario del medico
		service_type: video | home-visit
		from_date: fecha inicial (YYYY-MM-DD)
		to_date: fecha final (YYYY-MM-DD). Si se omite se usa
			Scheduling Settings.default_range_days

	Returns:
		list[dict]: [{"date": "2026-01-15", "time": "09:00"}, ...]

	Example:
		```javascript
		frappe.call({
			method: "doctor_scheduling.api.appointment_api.get_free_slots",
			args: {
				doctor: "dr.perez@example.com",
				service_type: "video",
				from_date: "2026-01-20"
			},
			callback: function(r) {
				console.log(r.message);
			}
		});
		```
	"""
	check_rate_limit("get_free_slots", limit=30, seconds=60)

	doctor = validate_docname(doctor, "doctor")
	service_type = validate_service_type(service_type)
	from_date = validate_date_string(from_date, "from_date")
	if to_date:
		to_date = validate_date_string(to_date, "to_date")
	else:
		to_date = str(add_days(getdate(from_date), get_default_range_days() - 1))

	if getdate(from_date) > getdate(to_date):
		frappe.throw(_("from_date debe ser menor o igual que to_date"))

	try:
		return list_free_slots(doctor, service_type, from_date, to_date).as_list()

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in get_free_slots: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def book_appointment(
	doctor: str,
	service_type: str,
	scheduled_date: str,
	scheduled_time: str,
	details: Optional[Any] = None,
	honeypot: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Reserva un slot para el paciente en sesion.

	Rate limited: 5 requests per minute per IP (write operation).
	Protected by honeypot field.

	Args:
		doctor: usuario del medico
		service_type: video | home-visit
		scheduled_date: fecha (YYYY-MM-DD)
		scheduled_time: horario (HH:MM)
		details: dict o JSON con consultation_fee, total_amount, payment_method,
			patient_name, patient_date_of_birth, patient_gender, problem,
			visit_address, notes, attachments
		honeypot: campo honeypot para deteccion de bots (debe estar vacio)

	Returns:
		dict: Appointment creado (status pending)

	Raises:
		SlotUnavailableError: el slot ya no esta libre (409)
	"""
	check_honeypot(honeypot)
	check_rate_limit("book_appointment", limit=5, seconds=60)

	patient = require_login()
	doctor = validate_docname(doctor, "doctor")
	service_type = validate_service_type(service_type)
	scheduled_date = validate_date_string(scheduled_date, "scheduled_date")
	scheduled_time = validate_time_string(scheduled_time, "scheduled_time")
	details = _sanitize_details(_parse_json(details, "details") or {})

	try:
		appointment = scheduler.book(
			doctor,
			patient,
			service_type,
			scheduled_date,
			scheduled_time,
			details=details
		)
		return appointment.as_dict()

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in book_appointment: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def reschedule_appointment(
	appointment_name: str,
	new_date: str,
	new_time: str,
	reason: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Reprograma una cita activa a otro slot libre del mismo medico y tipo.

	Rate limited: 5 requests per minute per IP.

	Returns:
		dict: {
			"appointment": "APT-2026-00001",
			"status": "pending",
			"previous": {"date": "2026-01-15", "time": "09:00"},
			"current": {"date": "2026-01-16", "time": "10:00"}
		}
	"""
	check_rate_limit("reschedule_appointment", limit=5, seconds=60)

	appointment_name = validate_docname(appointment_name, "appointment_name")
	new_date = validate_date_string(new_date, "new_date")
	new_time = validate_time_string(new_time, "new_time")
	reason = sanitize_string(reason, 1000)

	require_appointment_access(appointment_name)

	try:
		return scheduler.reschedule(appointment_name, new_date, new_time, reason=reason).as_dict()

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in reschedule_appointment: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def schedule_follow_up(
	appointment_name: str,
	scheduled_date: str,
	scheduled_time: str,
	service_type: Optional[str] = None,
	visit_address: Optional[str] = None,
	notes: Optional[str] = None,
	reason: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Agenda una cita de seguimiento (confirmed) para el paciente de una cita.

	Solo el medico de la cita o System Manager.

	Args:
		appointment_name: cita origen
		scheduled_date: fecha (YYYY-MM-DD)
		scheduled_time: horario (HH:MM)
		service_type: video | home-visit (por defecto el de la cita origen)
		visit_address: requerido para home-visit

	Returns:
		dict: Appointment de seguimiento creado

	Raises:
		SlotUnavailableError: el slot ya no esta libre (409)
	"""
	check_rate_limit("schedule_follow_up", limit=10, seconds=60)

	appointment_name = validate_docname(appointment_name, "appointment_name")
	scheduled_date = validate_date_string(scheduled_date, "scheduled_date")
	scheduled_time = validate_time_string(scheduled_time, "scheduled_time")
	if service_type:
		service_type = validate_service_type(service_type)
	visit_address = sanitize_string(visit_address, 2000)
	notes = sanitize_string(notes, 2000)
	reason = sanitize_string(reason, 1000)

	appointment = require_appointment_access(appointment_name)
	if appointment:
		require_calendar_access(appointment.doctor)

	try:
		follow_up = scheduler.schedule_follow_up(
			appointment_name,
			scheduled_date,
			scheduled_time,
			service_type=service_type,
			visit_address=visit_address,
			notes=notes,
			reason=reason
		)
		return follow_up.as_dict()

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in schedule_follow_up: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def set_appointment_status(appointment_name: str, status: str) -> Dict[str, Any]:
	"""
	Cambia el estado de una cita.

	- El paciente solo puede cancelar sus propias citas
	- El medico y System Manager pueden confirmar, completar o cancelar

	Returns:
		dict: {"name": ..., "status": ...}
	"""
	check_rate_limit("set_appointment_status", limit=10, seconds=60)

	appointment_name = validate_docname(appointment_name, "appointment_name")
	appointment = require_appointment_access(appointment_name)

	user = frappe.session.user
	if (
		appointment
		and user == appointment.patient
		and user != appointment.doctor
		and not is_calendar_manager(user)
		and status != STATUS_CANCELLED
	):
		frappe.throw(_("El paciente solo puede cancelar sus citas"), frappe.PermissionError)

	try:
		updated = scheduler.set_status(appointment_name, status)
		return {"name": updated.name, "status": updated.status}

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in set_appointment_status: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def set_payment_status(
	appointment_name: str,
	payment_status: str,
	payment_method: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Registra el resultado del pago (integracion con el subsistema de pagos).

	Solo System Manager.
	"""
	frappe.only_for("System Manager")

	appointment_name = validate_docname(appointment_name, "appointment_name")
	payment_method = sanitize_string(payment_method, 140)

	try:
		appointment = scheduler.set_payment_status(appointment_name, payment_status, payment_method)
		return {
			"name": appointment.name,
			"payment_status": appointment.payment_status,
			"payment_method": appointment.payment_method,
		}

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in set_payment_status: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['POST'])
def add_appointment_attachment(
	appointment_name: str,
	attachment_type: str,
	reference: str,
	description: Optional[str] = None
) -> Dict[str, Any]:
	"""
	Agrega un adjunto (Lab Test, Instrumental Test, Document) a una cita.

	reference es la URL o identificador del archivo en el almacenamiento externo.
	"""
	check_rate_limit("add_appointment_attachment", limit=10, seconds=60)

	appointment_name = validate_docname(appointment_name, "appointment_name")
	reference = sanitize_string(reference, 1000)
	description = sanitize_string(description, 1000)

	require_appointment_access(appointment_name)

	try:
		appointment = scheduler.add_attachment(appointment_name, attachment_type, reference, description)
		return {
			"name": appointment.name,
			"attachments": [row.as_dict() for row in appointment.attachments],
		}

	except EXPECTED_ERRORS:
		raise
	except Exception as e:
		frappe.log_error(f"Error in add_appointment_attachment: {str(e)}", "API Error")
		raise


@frappe.whitelist(methods=['GET'])
def get_appointment_detail(appointment_name: str) -> Dict[str, Any]:
	"""
	Detalle de una cita para el paciente, el medico o System Manager.
	"""
	appointment_name = validate_docname(appointment_name, "appointment_name")

	if not require_appointment_access(appointment_name):
		frappe.throw(_(f"Cita '{appointment_name}' no existe"), frappe.DoesNotExistError)

	appointment = frappe.get_doc("Appointment", appointment_name)
	detail = appointment.as_dict(no_default_fields=True)
	detail.pop("occupancy_key", None)
	detail["name"] = appointment.name
	return detail


@frappe.whitelist(methods=['GET'])
def get_my_appointments(
	role: str = "patient",
	status: Optional[str] = None,
	from_date: Optional[str] = None,
	to_date: Optional[str] = None
) -> List[Dict[str, Any]]:
	"""
	Citas del usuario en sesion, como paciente o como medico.

	Args:
		role: patient | doctor
		status: filtra por estado (opcional)
		from_date / to_date: rango de fechas (YYYY-MM-DD, opcional)

	Returns:
		list[dict]: ordenadas por fecha y horario
	"""
	user = require_login()

	if role not in ("patient", "doctor"):
		frappe.throw(_("role debe ser patient o doctor"))

	filters: Dict[str, Any] = {role: user}
	if status:
		filters["status"] = status
	if from_date and to_date:
		filters["scheduled_date"] = [
			"between",
			[validate_date_string(from_date, "from_date"), validate_date_string(to_date, "to_date")],
		]
	elif from_date:
		filters["scheduled_date"] = [">=", validate_date_string(from_date, "from_date")]
	elif to_date:
		filters["scheduled_date"] = ["<=", validate_date_string(to_date, "to_date")]

	return frappe.get_all(
		"Appointment",
		filters=filters,
		fields=APPOINTMENT_LIST_FIELDS,
		order_by="scheduled_date asc, scheduled_time asc",
	)


# ===== HELPERS =====

def _parse_json(value: Any, field_name: str) -> Any:
	"""Frappe entrega argumentos complejos como JSON string en form-data."""
	if value is None or isinstance(value, (dict, list)):
		return value

	try:
		return frappe.parse_json(value)
	except (TypeError, ValueError):
		frappe.throw(_(f"{field_name} debe ser JSON valido"))


def _sanitize_details(details: Dict[str, Any]) -> Dict[str, Any]:
	if not isinstance(details, dict):
		frappe.throw(_("details debe ser un objeto"))

	clean = {}
	for field in scheduler.BOOKING_DETAIL_FIELDS:
		value = details.get(field)
		if value is None:
			continue
		if field in ("consultation_fee", "total_amount"):
			clean[field] = value
		elif field in ("problem", "notes", "visit_address"):
			clean[field] = sanitize_string(value, 2000)
		else:
			clean[field] = sanitize_string(value, 140)

	attachments = details.get("attachments") or []
	if not isinstance(attachments, list):
		frappe.throw(_("attachments debe ser una lista"))
	if attachments:
		if not all(isinstance(item, dict) for item in attachments):
			frappe.throw(_("Cada adjunto debe ser un objeto"))
		clean["attachments"] = [
			{
				"attachment_type": item.get("attachment_type"),
				"reference": sanitize_string(item.get("reference"), 1000),
				"description": sanitize_string(item.get("description"), 1000),
			}
			for item in attachments
		]

	return clean
