"""
Tests for api/appointment_api.py and api/calendar_api.py

Tests whitelisted endpoints: input validation, session checks and the
mapping onto the scheduling core.
"""

import json
import unittest
import frappe

from doctor_scheduling.api import appointments
from doctor_scheduling.api.appointment_api import (
	book_appointment,
	get_appointment_detail,
	get_free_slots,
	get_my_appointments,
	reschedule_appointment,
	schedule_follow_up,
	set_appointment_status,
	set_payment_status,
)
from doctor_scheduling.api.calendar_api import (
	add_slot,
	get_availability_day,
	get_doctor_calendar,
	rebuild_day,
	remove_slot,
	update_availability,
)
from doctor_scheduling.doctor_scheduling.scheduling.exceptions import (
	ConflictError,
	InvalidStateError,
	SlotUnavailableError,
)
from doctor_scheduling.doctor_scheduling.tests.helpers import (
	future_date,
	make_user,
	reset_scheduling_settings,
	set_scheduling_settings,
)


class TestAppointmentAPI(unittest.TestCase):
	"""Tests for API endpoints."""

	def setUp(self):
		self.doctor = make_user("dr.api@example.com", "Api")
		self.patient = make_user("patient.api@example.com", "Patient")
		self.stranger = make_user("stranger.api@example.com", "Stranger")
		set_scheduling_settings(booking_lead_time_minutes=0, allow_cross_service_overlap=0, default_range_days=30)
		self.d1 = future_date(70)
		self.d2 = future_date(71)

		frappe.set_user(self.doctor)
		update_availability(self.doctor, json.dumps([
			{"date": self.d1, "service_type": "video", "time_slots": ["09:00", "10:00"], "is_available": True},
			{"date": self.d2, "service_type": "video", "time_slots": ["11:00"], "is_available": True},
		]))

	def tearDown(self):
		frappe.set_user("Administrator")
		frappe.db.rollback()
		reset_scheduling_settings()

	def _book(self, slot_time="09:00"):
		frappe.set_user(self.patient)
		return book_appointment(self.doctor, "video", self.d1, slot_time)

	def test_get_free_slots(self):
		frappe.set_user("Guest")

		result = get_free_slots(self.doctor, "video", self.d1, self.d2)

		self.assertEqual(result, [
			{"date": self.d1, "time": "09:00"},
			{"date": self.d1, "time": "10:00"},
			{"date": self.d2, "time": "11:00"},
		])

	def test_get_free_slots_default_range(self):
		result = get_free_slots(self.doctor, "video", self.d1)
		self.assertEqual(len(result), 3)

	def test_get_free_slots_invalid_input(self):
		with self.assertRaises(frappe.ValidationError):
			get_free_slots(self.doctor, "phone", self.d1, self.d2)

		with self.assertRaises(frappe.ValidationError):
			get_free_slots(self.doctor, "video", "15/01/2026", self.d2)

		with self.assertRaises(frappe.ValidationError):
			get_free_slots(self.doctor, "video", self.d2, self.d1)

	def test_book_appointment(self):
		result = self._book()

		self.assertEqual(result["status"], "pending")
		self.assertEqual(result["patient"], self.patient)
		self.assertEqual(
			get_free_slots(self.doctor, "video", self.d1, self.d1),
			[{"date": self.d1, "time": "10:00"}],
		)

	def test_book_with_details_json(self):
		frappe.set_user(self.patient)
		result = book_appointment(
			self.doctor,
			"video",
			self.d1,
			"10:00",
			details=json.dumps({"patient_name": "Ana", "problem": "Dolor de cabeza", "consultation_fee": 30}),
		)

		self.assertEqual(result["patient_name"], "Ana")
		self.assertEqual(result["total_amount"], 30)

	def test_book_requires_login(self):
		frappe.set_user("Guest")

		with self.assertRaises(frappe.PermissionError):
			book_appointment(self.doctor, "video", self.d1, "09:00")

	def test_book_honeypot(self):
		frappe.set_user(self.patient)

		with self.assertRaises(frappe.ValidationError):
			book_appointment(self.doctor, "video", self.d1, "09:00", honeypot="filled")

	def test_book_taken_slot(self):
		self._book()

		frappe.set_user(self.stranger)
		with self.assertRaises(SlotUnavailableError):
			book_appointment(self.doctor, "video", self.d1, "09:00")

	def test_reschedule_appointment(self):
		booked = self._book()

		result = reschedule_appointment(booked["name"], self.d2, "11:00", reason="Cambio de agenda")

		self.assertEqual(result["previous"], {"date": self.d1, "time": "09:00"})
		self.assertEqual(result["current"], {"date": self.d2, "time": "11:00"})

	def test_reschedule_other_patients_appointment(self):
		booked = self._book()

		frappe.set_user(self.stranger)
		with self.assertRaises(frappe.PermissionError):
			reschedule_appointment(booked["name"], self.d2, "11:00")

	def test_patient_can_only_cancel(self):
		booked = self._book()

		with self.assertRaises(frappe.PermissionError):
			set_appointment_status(booked["name"], "confirmed")

		result = set_appointment_status(booked["name"], "cancelled")
		self.assertEqual(result["status"], "cancelled")

	def test_doctor_confirms(self):
		booked = self._book()

		frappe.set_user(self.doctor)
		self.assertEqual(set_appointment_status(booked["name"], "confirmed")["status"], "confirmed")

	def test_payment_status_requires_manager(self):
		booked = self._book()

		with self.assertRaises(frappe.PermissionError):
			set_payment_status(booked["name"], "paid")

		frappe.set_user("Administrator")
		self.assertEqual(set_payment_status(booked["name"], "paid")["payment_status"], "paid")

	def test_appointment_detail_and_list(self):
		booked = self._book()

		detail = get_appointment_detail(booked["name"])
		self.assertEqual(detail["name"], booked["name"])
		self.assertNotIn("occupancy_key", detail)

		mine = get_my_appointments()
		self.assertEqual([a.name for a in mine], [booked["name"]])

		frappe.set_user(self.doctor)
		self.assertEqual(len(get_my_appointments(role="doctor", status="pending")), 1)

		frappe.set_user(self.stranger)
		with self.assertRaises(frappe.PermissionError):
			get_appointment_detail(booked["name"])

	def test_book_rejects_non_object_attachments(self):
		frappe.set_user(self.patient)

		with self.assertRaises(frappe.ValidationError):
			book_appointment(self.doctor, "video", self.d1, "09:00", details={"attachments": ["x"]})

		with self.assertRaises(frappe.ValidationError):
			book_appointment(self.doctor, "video", self.d1, "09:00", details="{not json")

		self.assertEqual(len(get_free_slots(self.doctor, "video", self.d1, self.d1)), 2)

	def test_unknown_status_rejected(self):
		booked = self._book()

		frappe.set_user(self.doctor)
		with self.assertRaises(InvalidStateError):
			set_appointment_status(booked["name"], "foo")

	def test_doctor_schedules_follow_up(self):
		booked = self._book()

		frappe.set_user(self.doctor)
		result = schedule_follow_up(booked["name"], self.d2, "11:00", reason="Revisar resultados")

		self.assertEqual(result["status"], "confirmed")
		self.assertEqual(result["patient"], self.patient)
		self.assertEqual(result["follow_up_of"], booked["name"])
		self.assertEqual(get_free_slots(self.doctor, "video", self.d2, self.d2), [])

	def test_follow_up_only_by_doctor(self):
		booked = self._book()

		with self.assertRaises(frappe.PermissionError):
			schedule_follow_up(booked["name"], self.d2, "11:00")

		frappe.set_user(self.stranger)
		with self.assertRaises(frappe.PermissionError):
			schedule_follow_up(booked["name"], self.d2, "11:00")

	def test_follow_up_taken_slot(self):
		booked = self._book()
		frappe.set_user(self.stranger)
		book_appointment(self.doctor, "video", self.d1, "10:00")

		frappe.set_user(self.doctor)
		with self.assertRaises(SlotUnavailableError):
			schedule_follow_up(booked["name"], self.d1, "10:00")

	def test_re_exports(self):
		self.assertIs(appointments.get_free_slots, get_free_slots)
		self.assertIs(appointments.schedule_follow_up, schedule_follow_up)
		self.assertIs(appointments.update_availability, update_availability)


class TestCalendarAPI(unittest.TestCase):
	"""Tests for the doctor's calendar endpoints."""

	def setUp(self):
		self.doctor = make_user("dr.calendar@example.com", "Calendar")
		self.patient = make_user("patient.calendar@example.com", "Patient")
		set_scheduling_settings(booking_lead_time_minutes=0, allow_cross_service_overlap=0)
		self.date = future_date(80)
		frappe.set_user(self.doctor)

	def tearDown(self):
		frappe.set_user("Administrator")
		frappe.db.rollback()
		reset_scheduling_settings()

	def test_add_and_remove_slot(self):
		result = add_slot(self.doctor, "video", self.date, "09:00")
		self.assertEqual(result["offered_slots"], ["09:00"])

		result = remove_slot(self.doctor, "video", self.date, "09:00")
		self.assertEqual(result["offered_slots"], [])

	def test_booked_slot_locked(self):
		add_slot(self.doctor, "video", self.date, "09:00")

		frappe.set_user(self.patient)
		book_appointment(self.doctor, "video", self.date, "09:00")

		frappe.set_user(self.doctor)
		day = get_availability_day(self.doctor, "video", self.date)
		self.assertEqual(day["booked_slots"], ["09:00"])
		self.assertEqual(day["free_slots"], [])

		with self.assertRaises(ConflictError):
			remove_slot(self.doctor, "video", self.date, "09:00")

	def test_only_doctor_edits_calendar(self):
		frappe.set_user(self.patient)

		with self.assertRaises(frappe.PermissionError):
			add_slot(self.doctor, "video", self.date, "09:00")

	def test_invalid_time(self):
		with self.assertRaises(frappe.ValidationError):
			add_slot(self.doctor, "video", self.date, "9am")

	def test_doctor_calendar(self):
		add_slot(self.doctor, "video", self.date, "09:00")

		calendar = get_doctor_calendar(self.doctor, "video", self.date)
		self.assertEqual(len(calendar), 1)
		self.assertEqual(calendar[0]["calendar_date"], self.date)

	def test_missing_day(self):
		self.assertIsNone(get_availability_day(self.doctor, "video", future_date(500)))

	def test_rebuild_day_requires_manager(self):
		add_slot(self.doctor, "video", self.date, "09:00")

		with self.assertRaises(frappe.PermissionError):
			rebuild_day(self.doctor, "video", self.date)

		frappe.set_user("Administrator")
		self.assertEqual(rebuild_day(self.doctor, "video", self.date)["booked_slots"], [])
