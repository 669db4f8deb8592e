"""
Shared fixtures for the scheduling tests.
"""

import frappe
from frappe.utils import add_days, today


def make_user(email: str, first_name: str = None, roles=None) -> str:
	"""Crea (si no existe) un User de prueba y devuelve su nombre."""
	if not frappe.db.exists("User", email):
		user = frappe.get_doc({
			"doctype": "User",
			"email": email,
			"first_name": first_name or email.split("@")[0],
			"send_welcome_email": 0,
			"enabled": 1,
		})
		user.insert(ignore_permissions=True)
		if roles:
			user.add_roles(*roles)
	return email


def future_date(days: int) -> str:
	"""Fecha YYYY-MM-DD a `days` dias de hoy."""
	return str(add_days(today(), days))


def set_scheduling_settings(**values) -> None:
	settings = frappe.get_doc("Scheduling Settings")
	settings.update(values)
	settings.save(ignore_permissions=True)


def reset_scheduling_settings() -> None:
	"""Descarta la configuracion cacheada despues de un rollback."""
	frappe.clear_document_cache("Scheduling Settings", "Scheduling Settings")
