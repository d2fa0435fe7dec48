from datetime import time, timedelta
from decimal import Decimal

from django.contrib.auth.models import User
from django.utils import timezone

from careconnect.models import CaregiverAvailability, CaregiverProfile, ClientProfile, HireRequest


def booking_day(days_ahead=7):
    return timezone.localdate() + timedelta(days=days_ahead)


def make_client(username='client', **profile):
    user = User.objects.create_user(
        username=username, password='pass12345', first_name='Ana', last_name='Souza', email=f'{username}@example.com'
    )
    profile.setdefault('phone_number', '+5511999990000')
    return ClientProfile.objects.create(user=user, **profile)


def make_caregiver(username='care', hourly_rate=Decimal('50.00'), weekday=None, **profile):
    user = User.objects.create_user(
        username=username, password='pass12345', first_name='Bruno', last_name='Lima', email=f'{username}@example.com'
    )
    profile.setdefault('phone_number', '+5511988880000')
    profile.setdefault('address', 'Rua A, 10')
    profile.setdefault('bio', 'Ten years caring for elderly people')
    caregiver = CaregiverProfile.objects.create(user=user, hourly_rate=hourly_rate, **profile)
    CaregiverAvailability.objects.create(
        caregiver=caregiver,
        weekday=booking_day().weekday() if weekday is None else weekday,
        start_time=time(8),
        end_time=time(20),
    )
    return caregiver


def make_request(client, caregiver, day=None, start=10, end=12, status=HireRequest.STATUS_PENDING):
    hours = end - start
    return HireRequest.objects.create(
        client=client,
        caregiver=caregiver,
        date=day or booking_day(),
        start_time=time(start),
        end_time=time(end),
        status=status,
        hourly_rate=caregiver.hourly_rate,
        total_amount=caregiver.hourly_rate * hours,
    )
