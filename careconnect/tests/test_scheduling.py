from datetime import datetime, time, timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase, override_settings
from django.utils import timezone

from careconnect.exceptions import BookingRuleViolation, SlotUnavailable
from careconnect.models import HireRequest, Notification
from careconnect.scheduling import (
    book_hire_request,
    generate_day_slots,
    get_day_slots,
    intervals_overlap,
    is_caregiver_available,
    validate_booking_window,
)

from .utils import booking_day, make_caregiver, make_client, make_request


class SlotGridTests(TestCase):
    def test_default_grid_is_hourly_from_eight_to_twenty(self):
        slots = generate_day_slots()
        self.assertEqual(len(slots), 12)
        self.assertEqual(slots[0], (time(8), time(9)))
        self.assertEqual(slots[-1], (time(19), time(20)))

    @override_settings(SLOT_DAY_START_HOUR=9, SLOT_DAY_END_HOUR=12)
    def test_grid_follows_settings(self):
        self.assertEqual(generate_day_slots(), [(time(9), time(10)), (time(10), time(11)), (time(11), time(12))])

    def test_overlap_is_half_open(self):
        self.assertTrue(intervals_overlap(time(10), time(12), time(11), time(13)))
        self.assertTrue(intervals_overlap(time(10), time(12), time(10), time(11)))
        self.assertFalse(intervals_overlap(time(10), time(12), time(12), time(13)))
        self.assertFalse(intervals_overlap(time(10), time(12), time(8), time(10)))


class AvailabilityTests(TestCase):
    def setUp(self):
        self.client_profile = make_client()
        self.caregiver = make_caregiver()
        self.day = booking_day()

    def test_available_inside_window(self):
        self.assertTrue(is_caregiver_available(self.caregiver, self.day, time(10), time(12)))

    def test_unavailable_on_other_weekday(self):
        self.assertFalse(is_caregiver_available(self.caregiver, self.day + timedelta(days=1), time(10), time(12)))

    def test_blocking_request_makes_window_unavailable(self):
        make_request(self.client_profile, self.caregiver, self.day, 11, 13)
        self.assertFalse(is_caregiver_available(self.caregiver, self.day, time(10), time(12)))
        self.assertTrue(is_caregiver_available(self.caregiver, self.day, time(13), time(15)))

    def test_cancelled_and_rejected_requests_free_the_slot(self):
        make_request(self.client_profile, self.caregiver, self.day, 10, 12, status=HireRequest.STATUS_CANCELLED)
        make_request(self.client_profile, self.caregiver, self.day, 10, 12, status=HireRequest.STATUS_REJECTED)
        self.assertTrue(is_caregiver_available(self.caregiver, self.day, time(10), time(12)))

    def test_completed_request_keeps_blocking(self):
        make_request(self.client_profile, self.caregiver, self.day, 10, 12, status=HireRequest.STATUS_COMPLETED)
        self.assertFalse(is_caregiver_available(self.caregiver, self.day, time(11), time(12)))

    def test_day_slots_mark_booked_and_uncovered_hours(self):
        self.caregiver.availabilities.update(start_time=time(9), end_time=time(17))
        make_request(self.client_profile, self.caregiver, self.day, 10, 12)

        slots = {slot.start_time.hour: slot.is_available for slot in get_day_slots(self.caregiver, self.day)}

        self.assertFalse(slots[8])
        self.assertTrue(slots[9])
        self.assertFalse(slots[10])
        self.assertFalse(slots[11])
        self.assertTrue(slots[12])
        self.assertFalse(slots[17])

    def test_past_slots_are_unavailable(self):
        now = timezone.make_aware(datetime.combine(self.day, time(13, 30)))
        slots = {slot.start_time.hour: slot.is_available for slot in get_day_slots(self.caregiver, self.day, now=now)}
        self.assertFalse(slots[13])
        self.assertTrue(slots[14])

    def test_caregiver_without_availability_has_no_slots(self):
        self.caregiver.availabilities.all().delete()
        self.assertFalse(any(slot.is_available for slot in get_day_slots(self.caregiver, self.day)))


class BookingRuleTests(TestCase):
    def setUp(self):
        self.caregiver = make_caregiver()
        self.day = booking_day()

    def assertViolation(self, start, end, day=None):
        with self.assertRaises(BookingRuleViolation):
            validate_booking_window(self.caregiver, day or self.day, start, end)

    def test_valid_window(self):
        validate_booking_window(self.caregiver, self.day, time(8), time(12))

    def test_times_must_be_on_the_hour(self):
        self.assertViolation(time(10, 30), time(12))

    def test_end_after_start(self):
        self.assertViolation(time(12), time(10))
        self.assertViolation(time(12), time(12))

    def test_outside_slot_day(self):
        self.assertViolation(time(7), time(9))
        self.assertViolation(time(19), time(21))

    def test_longer_than_max_hours(self):
        self.assertViolation(time(8), time(13))

    def test_past_date(self):
        self.assertViolation(time(10), time(11), day=booking_day(-7))

    def test_requires_hourly_rate(self):
        self.caregiver.hourly_rate = Decimal('0.00')
        self.assertViolation(time(10), time(11))

    def test_requires_availability(self):
        self.assertViolation(time(10), time(11), day=self.day + timedelta(days=1))


class BookHireRequestTests(TestCase):
    def setUp(self):
        self.client_profile = make_client()
        self.caregiver = make_caregiver(hourly_rate=Decimal('45.50'))
        self.day = booking_day()

    def test_creates_priced_pending_request(self):
        hire_request = book_hire_request(self.client_profile, self.caregiver, self.day, time(10), time(13), 'Bring snacks')

        self.assertEqual(hire_request.status, HireRequest.STATUS_PENDING)
        self.assertEqual(hire_request.duration_hours, 3)
        self.assertEqual(hire_request.hourly_rate, Decimal('45.50'))
        self.assertEqual(hire_request.total_amount, Decimal('136.50'))
        self.assertEqual(hire_request.notes, 'Bring snacks')

    def test_notifies_caregiver(self):
        hire_request = book_hire_request(self.client_profile, self.caregiver, self.day, time(10), time(11))
        notification = Notification.objects.get(recipient=self.caregiver.user)
        self.assertEqual(notification.type, Notification.TYPE_APPOINTMENT_REQUEST)
        self.assertEqual(notification.priority, Notification.PRIORITY_HIGH)
        self.assertEqual(notification.data['hire_request_id'], str(hire_request.pk))

    def test_overlapping_booking_is_rejected(self):
        book_hire_request(self.client_profile, self.caregiver, self.day, time(10), time(12))
        other_client = make_client('other')
        with self.assertRaises(SlotUnavailable):
            book_hire_request(other_client, self.caregiver, self.day, time(11), time(13))
        self.assertEqual(HireRequest.objects.count(), 1)

    def test_back_to_back_bookings_are_allowed(self):
        book_hire_request(self.client_profile, self.caregiver, self.day, time(10), time(12))
        book_hire_request(self.client_profile, self.caregiver, self.day, time(12), time(14))
        self.assertEqual(HireRequest.objects.count(), 2)

    def test_slot_freed_after_rejection(self):
        first = book_hire_request(self.client_profile, self.caregiver, self.day, time(10), time(12))
        first.change_status(HireRequest.STATUS_REJECTED)
        second = book_hire_request(self.client_profile, self.caregiver, self.day, time(10), time(12))
        self.assertEqual(second.status, HireRequest.STATUS_PENDING)

    def test_conflict_created_after_validation_is_caught_under_lock(self):
        other_client = make_client('other')

        def book_same_slot_first(caregiver, day, start, end):
            make_request(other_client, caregiver, day, 11, 12)

        with mock.patch('careconnect.scheduling.validate_booking_window', side_effect=book_same_slot_first):
            with self.assertRaises(SlotUnavailable):
                book_hire_request(self.client_profile, self.caregiver, self.day, time(10), time(12))

        self.assertEqual(HireRequest.objects.count(), 1)
        self.assertEqual(HireRequest.objects.get().client, other_client)

    def test_request_is_stored_before_caregiver_is_notified(self):
        with mock.patch('careconnect.scheduling.notify_new_request', side_effect=RuntimeError('mail down')):
            with self.assertRaises(RuntimeError):
                book_hire_request(self.client_profile, self.caregiver, self.day, time(10), time(11))
        self.assertTrue(HireRequest.objects.filter(caregiver=self.caregiver, start_time=time(10)).exists())


class SearchAvailabilityTests(TestCase):
    def setUp(self):
        self.caregiver = make_caregiver(weekday=booking_day(-7).weekday())

    def test_past_dates_are_not_available(self):
        self.assertFalse(is_caregiver_available(self.caregiver, booking_day(-7), time(10), time(11)))
        self.assertTrue(is_caregiver_available(self.caregiver, booking_day(), time(10), time(11)))

    def test_earlier_today_is_not_available(self):
        now = timezone.make_aware(datetime.combine(booking_day(), time(13, 30)))
        self.assertFalse(is_caregiver_available(self.caregiver, booking_day(), time(12), time(14), now=now))
        self.assertTrue(is_caregiver_available(self.caregiver, booking_day(), time(14), time(15), now=now))

    def test_off_grid_windows_are_not_available(self):
        self.caregiver.availabilities.update(start_time=time(0), end_time=time(23))
        day = booking_day()
        self.assertFalse(is_caregiver_available(self.caregiver, day, time(6), time(8)))
        self.assertFalse(is_caregiver_available(self.caregiver, day, time(19), time(21)))
        self.assertFalse(is_caregiver_available(self.caregiver, day, time(10, 30), time(11, 30)))
        self.assertFalse(is_caregiver_available(self.caregiver, day, time(8), time(14)))
