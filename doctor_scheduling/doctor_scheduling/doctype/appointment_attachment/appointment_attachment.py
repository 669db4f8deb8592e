# Copyright (c) 2026, Doctor Scheduling contributors
# For license information, please see license.txt

from frappe.model.document import Document


class AppointmentAttachment(Document):
	pass
