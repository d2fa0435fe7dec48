"""Hourly slot availability and conflict-safe creation of hire requests."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .exceptions import BookingRuleViolation, SlotUnavailable
from .models import CaregiverAvailability, CaregiverProfile, ClientProfile, HireRequest
from .notifications import notify_new_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSlot:
    start_time: time
    end_time: time
    is_available: bool


def generate_day_slots() -> list[tuple[time, time]]:
    """The fixed hourly grid every caregiver's day is divided into."""
    return [
        (time(hour), time(hour + 1))
        for hour in range(settings.SLOT_DAY_START_HOUR, settings.SLOT_DAY_END_HOUR)
    ]


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    # Half-open intervals: back-to-back bookings do not collide.
    return start1 < end2 and end1 > start2


def windows_cover(windows: Iterable[CaregiverAvailability], start: time, end: time) -> bool:
    """True when every hour of ``[start, end)`` lies inside one of the windows."""
    windows = list(windows)
    for hour in range(start.hour, end.hour):
        slot_start, slot_end = time(hour), time(hour + 1)
        if not any(w.start_time <= slot_start and w.end_time >= slot_end for w in windows):
            return False
    return True


def _blocking_requests(caregiver: CaregiverProfile, day: date):
    return HireRequest.objects.filter(
        caregiver=caregiver,
        date=day,
        status__in=HireRequest.BLOCKING_STATUSES,
    )


def is_caregiver_available(
    caregiver: CaregiverProfile,
    day: date,
    start: time,
    end: time,
    now: Optional[datetime] = None,
) -> bool:
    """Check the slot grid, weekly availability and overlapping hire requests."""
    try:
        check_slot_window(day, start, end, now)
    except BookingRuleViolation:
        return False
    if not windows_cover(caregiver.availabilities.filter(weekday=day.weekday()), start, end):
        return False
    overlapping = _blocking_requests(caregiver, day).filter(start_time__lt=end, end_time__gt=start).exists()
    return not overlapping


def get_day_slots(caregiver: CaregiverProfile, day: date, now: Optional[datetime] = None) -> list[TimeSlot]:
    now = timezone.localtime(now or timezone.now())
    windows = list(caregiver.availabilities.filter(weekday=day.weekday()))
    booked = list(_blocking_requests(caregiver, day).values_list('start_time', 'end_time'))

    slots = []
    for start, end in generate_day_slots():
        available = windows_cover(windows, start, end) and not any(
            intervals_overlap(start, end, booked_start, booked_end) for booked_start, booked_end in booked
        )
        if day < now.date() or (day == now.date() and start <= now.time()):
            available = False
        slots.append(TimeSlot(start_time=start, end_time=end, is_available=available))
    return slots


def validate_booking_window(
    caregiver: CaregiverProfile,
    day: date,
    start: time,
    end: time,
    now: Optional[datetime] = None,
) -> None:
    """Raise :class:`BookingRuleViolation` unless the requested window is bookable in principle."""
    check_slot_window(day, start, end, now)

    if caregiver.hourly_rate <= 0:
        raise BookingRuleViolation('Caregiver has not set an hourly rate')
    if not windows_cover(caregiver.availabilities.filter(weekday=day.weekday()), start, end):
        raise BookingRuleViolation('Caregiver is not available for the selected time')


def check_slot_window(day: date, start: time, end: time, now: Optional[datetime] = None) -> None:
    """Rules every bookable window obeys regardless of caregiver: whole hours on the grid, in the future."""
    if any(t.minute or t.second or t.microsecond for t in (start, end)):
        raise BookingRuleViolation('Bookings must start and end on the hour')
    if end <= start:
        raise BookingRuleViolation('End time must be after start time')
    if start.hour < settings.SLOT_DAY_START_HOUR or end.hour > settings.SLOT_DAY_END_HOUR:
        raise BookingRuleViolation(
            f'Bookings must fall between {settings.SLOT_DAY_START_HOUR:02d}:00 '
            f'and {settings.SLOT_DAY_END_HOUR:02d}:00'
        )
    if end.hour - start.hour > settings.MAX_BOOKING_HOURS:
        raise BookingRuleViolation(f'Bookings may last at most {settings.MAX_BOOKING_HOURS} hours')

    now = timezone.localtime(now or timezone.now())
    if timezone.make_aware(datetime.combine(day, start)) <= now:
        raise BookingRuleViolation('Start time must be in the future')


def book_hire_request(
    client: ClientProfile,
    caregiver: CaregiverProfile,
    day: date,
    start: time,
    end: time,
    notes: str = '',
) -> HireRequest:
    """Create a pending hire request, refusing any overlap with the caregiver's bookings."""
    validate_booking_window(caregiver, day, start, end)

    with transaction.atomic():
        # Row lock serialises concurrent bookings of one caregiver.
        caregiver = CaregiverProfile.objects.select_for_update().get(pk=caregiver.pk)
        conflict = _blocking_requests(caregiver, day).filter(start_time__lt=end, end_time__gt=start).exists()
        if conflict:
            logger.info('Slot conflict for caregiver %s on %s %s-%s', caregiver.pk, day, start, end)
            raise SlotUnavailable()

        hours = end.hour - start.hour
        hire_request = HireRequest.objects.create(
            client=client,
            caregiver=caregiver,
            date=day,
            start_time=start,
            end_time=end,
            notes=notes,
            hourly_rate=caregiver.hourly_rate,
            total_amount=(caregiver.hourly_rate * hours).quantize(Decimal('0.01')),
        )

    notify_new_request(hire_request)
    logger.info('Hire request %s created for caregiver %s', hire_request.pk, caregiver.pk)
    return hire_request
