"""
Tests for scheduling/slots.py

Tests free-slot resolution: ordering, disabled days, booked slots, lead time
and the restartable FreeSlots sequence.
"""

import unittest
from datetime import datetime

import frappe

from doctor_scheduling.doctor_scheduling.scheduling import scheduler
from doctor_scheduling.doctor_scheduling.scheduling.availability import upsert_day
from doctor_scheduling.doctor_scheduling.scheduling.calendar_editor import set_day_availability
from doctor_scheduling.doctor_scheduling.scheduling.slots import (
	FreeSlots,
	get_doctor_calendar,
	list_free_slots,
	resolve_free_slots,
)
from doctor_scheduling.doctor_scheduling.tests.helpers import (
	future_date,
	make_user,
	reset_scheduling_settings,
	set_scheduling_settings,
)


class TestResolveFreeSlots(unittest.TestCase):
	"""Tests for the pure projection (no database)."""

	def test_orders_by_date_then_time(self):
		days = [
			{
				"calendar_date": "2026-03-02",
				"is_available": 1,
				"slots": [{"slot_time": "10:00", "is_booked": 0}, {"slot_time": "08:00", "is_booked": 0}],
			},
			{
				"calendar_date": "2026-03-01",
				"is_available": 1,
				"slots": [{"slot_time": "11:00", "is_booked": 0}],
			},
		]

		result = list(resolve_free_slots(days))
		self.assertEqual(result, [
			("2026-03-01", "11:00"),
			("2026-03-02", "08:00"),
			("2026-03-02", "10:00"),
		])

	def test_skips_booked_and_disabled(self):
		days = [
			{
				"calendar_date": "2026-03-01",
				"is_available": 0,
				"slots": [{"slot_time": "09:00", "is_booked": 0}],
			},
			{
				"calendar_date": "2026-03-02",
				"is_available": 1,
				"slots": [{"slot_time": "09:00", "is_booked": 1}, {"slot_time": "09:30", "is_booked": 0}],
			},
			{
				"calendar_date": "2026-03-03",
				"is_available": 1,
				"slots": [{"slot_time": "09:00", "is_booked": 1}],
			},
		]

		self.assertEqual(list(resolve_free_slots(days)), [("2026-03-02", "09:30")])

	def test_not_before(self):
		days = [{
			"calendar_date": "2026-03-01",
			"is_available": 1,
			"slots": [{"slot_time": "09:00", "is_booked": 0}, {"slot_time": "12:00", "is_booked": 0}],
		}]

		result = list(resolve_free_slots(days, not_before=datetime(2026, 3, 1, 10, 0)))
		self.assertEqual(result, [("2026-03-01", "12:00")])

	def test_empty(self):
		self.assertEqual(list(resolve_free_slots([])), [])


class TestListFreeSlots(unittest.TestCase):
	"""Tests for free slots read from the availability store."""

	def setUp(self):
		self.doctor = make_user("dr.slots@example.com", "Slots")
		self.patient = make_user("patient.slots@example.com", "Patient")
		set_scheduling_settings(booking_lead_time_minutes=0, allow_cross_service_overlap=0)
		self.d1 = future_date(20)
		self.d2 = future_date(21)
		self.d3 = future_date(22)

	def tearDown(self):
		frappe.db.rollback()
		reset_scheduling_settings()

	def test_range_ordering_and_filters(self):
		upsert_day(self.doctor, "video", self.d2, ["10:00", "09:00"])
		upsert_day(self.doctor, "video", self.d1, ["14:00"])
		upsert_day(self.doctor, "video", self.d3, ["08:00"])
		upsert_day(self.doctor, "home-visit", self.d1, ["11:00"])

		result = list(list_free_slots(self.doctor, "video", self.d1, self.d2))

		self.assertEqual(result, [(self.d1, "14:00"), (self.d2, "09:00"), (self.d2, "10:00")])

	def test_disabled_day_contributes_nothing(self):
		upsert_day(self.doctor, "video", self.d1, ["09:00", "09:30"])
		set_day_availability(self.doctor, "video", self.d1, False)

		self.assertEqual(list(list_free_slots(self.doctor, "video", self.d1, self.d1)), [])

	def test_booked_slot_excluded(self):
		upsert_day(self.doctor, "video", self.d1, ["09:00", "09:30"])
		scheduler.book(self.doctor, self.patient, "video", self.d1, "09:00")

		self.assertEqual(
			list(list_free_slots(self.doctor, "video", self.d1, self.d1)),
			[(self.d1, "09:30")],
		)

	def test_sequence_is_restartable_and_live(self):
		"""Each iteration re-reads the current state."""
		upsert_day(self.doctor, "video", self.d1, ["09:00", "09:30"])
		free = list_free_slots(self.doctor, "video", self.d1, self.d1)

		self.assertIsInstance(free, FreeSlots)
		self.assertEqual(len(list(free)), 2)
		self.assertEqual(len(list(free)), 2)

		scheduler.book(self.doctor, self.patient, "video", self.d1, "09:30")
		self.assertEqual(list(free), [(self.d1, "09:00")])

	def test_as_list(self):
		upsert_day(self.doctor, "video", self.d1, ["09:00"])

		self.assertEqual(
			list_free_slots(self.doctor, "video", self.d1, self.d1).as_list(),
			[{"date": self.d1, "time": "09:00"}],
		)

	def test_lead_time_hides_near_slots(self):
		"""Slots starting before now + lead time are not listed."""
		# 25 horas de anticipacion: nada de hoy ni de manana esta disponible
		set_scheduling_settings(booking_lead_time_minutes=25 * 60)
		tomorrow = future_date(1)
		upsert_day(self.doctor, "video", tomorrow, ["00:00"])
		upsert_day(self.doctor, "video", self.d1, ["09:00"])

		result = list(list_free_slots(self.doctor, "video", tomorrow, self.d1))
		self.assertEqual(result, [(self.d1, "09:00")])

	def test_doctor_calendar_view(self):
		upsert_day(self.doctor, "video", self.d1, ["09:00", "09:30"])
		scheduler.book(self.doctor, self.patient, "video", self.d1, "09:00")

		calendar = get_doctor_calendar(self.doctor, "video", self.d1, self.d2)

		self.assertEqual(len(calendar), 1)
		self.assertEqual(calendar[0]["offered_slots"], ["09:00", "09:30"])
		self.assertEqual(calendar[0]["booked_slots"], ["09:00"])
		self.assertEqual(calendar[0]["free_slots"], ["09:30"])
		self.assertTrue(calendar[0]["is_available"])
