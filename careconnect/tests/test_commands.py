from io import StringIO

from django.core.management import CommandError, call_command
from django.test import TestCase

from careconnect.models import CaregiverProfile, HireRequest, Rating

from .utils import make_caregiver, make_client, make_request


class RecalcCaregiverRatingsTests(TestCase):
    def setUp(self):
        self.caregiver = make_caregiver()
        client = make_client()
        for value, start in ((5, 8), (3, 9)):
            hire_request = make_request(client, self.caregiver, start=start, end=start + 1,
                                        status=HireRequest.STATUS_COMPLETED)
            Rating.objects.create(hire_request=hire_request, author=client.user, caregiver=self.caregiver, rating=value)
        CaregiverProfile.objects.filter(pk=self.caregiver.pk).update(rating_count=0, rating_histogram={})

    def test_rebuilds_aggregates_for_one_caregiver(self):
        out = StringIO()
        call_command('recalc_caregiver_ratings', caregiver=self.caregiver.user.username, stdout=out)
        self.caregiver.refresh_from_db()
        self.assertEqual(self.caregiver.rating_count, 2)
        self.assertEqual(self.caregiver.rating_histogram['5'], 1)
        self.assertEqual(self.caregiver.rating_histogram['3'], 1)
        self.assertIn('Rebuilt ratings for 1 caregivers', out.getvalue())

    def test_unknown_caregiver(self):
        with self.assertRaises(CommandError):
            call_command('recalc_caregiver_ratings', caregiver='nobody', stdout=StringIO())
