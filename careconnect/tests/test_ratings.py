from decimal import Decimal
from unittest import mock

from django.db.models.query import QuerySet
from django.test import TestCase

from careconnect.exceptions import AlreadyRated, RatingNotAllowed
from careconnect.models import HireRequest, Notification, Rating
from careconnect.ratings import rate_hire_request

from .utils import make_caregiver, make_client, make_request


class RateHireRequestTests(TestCase):
    def setUp(self):
        self.client_profile = make_client()
        self.caregiver = make_caregiver()
        self.hire_request = make_request(self.client_profile, self.caregiver, status=HireRequest.STATUS_COMPLETED)

    def test_rating_updates_caregiver_and_notifies(self):
        rating = rate_hire_request(self.hire_request, self.client_profile.user, 4, '  Very kind  ')

        self.assertEqual(rating.comment, 'Very kind')
        self.caregiver.refresh_from_db()
        self.assertEqual(self.caregiver.rating_average, Decimal('4.00'))
        self.assertEqual(self.caregiver.rating_count, 1)
        self.assertEqual(self.caregiver.rating_histogram['4'], 1)

        notification = Notification.objects.get(type=Notification.TYPE_NEW_RATING)
        self.assertEqual(notification.recipient, self.caregiver.user)
        self.assertIn('⭐⭐⭐⭐', notification.message)
        self.assertIn('Very kind', notification.message)
        self.assertTrue(self.hire_request.is_rated)

    def test_second_rating_is_rejected(self):
        rate_hire_request(self.hire_request, self.client_profile.user, 5)
        with self.assertRaises(AlreadyRated):
            rate_hire_request(self.hire_request, self.client_profile.user, 1)
        self.assertEqual(Rating.objects.count(), 1)
        self.caregiver.refresh_from_db()
        self.assertEqual(self.caregiver.rating_average, Decimal('5.00'))

    def test_concurrent_duplicate_hits_the_unique_constraint(self):
        rate_hire_request(self.hire_request, self.client_profile.user, 5)

        # The second submission passed its existence check before the first one committed.
        with mock.patch.object(QuerySet, 'exists', return_value=False):
            with self.assertRaises(AlreadyRated):
                rate_hire_request(self.hire_request, self.client_profile.user, 1)

        self.assertEqual(Rating.objects.filter(hire_request=self.hire_request).count(), 1)
        self.caregiver.refresh_from_db()
        self.assertEqual(self.caregiver.rating_count, 1)
        self.assertEqual(self.caregiver.rating_average, Decimal('5.00'))
        self.assertEqual(Notification.objects.filter(type=Notification.TYPE_NEW_RATING).count(), 1)

    def test_only_the_client_may_rate(self):
        with self.assertRaises(RatingNotAllowed):
            rate_hire_request(self.hire_request, self.caregiver.user, 5)

    def test_requires_completed_request(self):
        self.hire_request.status = HireRequest.STATUS_PAID
        self.hire_request.save()
        with self.assertRaises(RatingNotAllowed):
            rate_hire_request(self.hire_request, self.client_profile.user, 5)

    def test_rating_must_be_one_to_five(self):
        for value in (0, 6):
            with self.assertRaises(RatingNotAllowed):
                rate_hire_request(self.hire_request, self.client_profile.user, value)
        self.assertFalse(Rating.objects.exists())
