"""Domain models for the caregiver marketplace."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.db.models import Avg, Count
from django.utils import timezone

from .exceptions import InvalidStatusTransition

logger = logging.getLogger(__name__)

RATING_VALUES = range(1, 6)


def empty_rating_histogram() -> dict:
    return {str(value): 0 for value in RATING_VALUES}


class BaseModel(models.Model):
    """Base model that uses UUID primary keys for consistency."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


class TimestampedModel(BaseModel):
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Specialty(BaseModel):
    code = models.SlugField(unique=True)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)

    class Meta:
        ordering = ['name']
        verbose_name_plural = 'specialties'

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class ClientProfile(BaseModel):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE)
    phone_number = models.CharField(max_length=20, blank=True)
    address = models.CharField(max_length=255, blank=True)
    cpf_cnpj = models.CharField(max_length=20, blank=True)
    asaas_customer_id = models.CharField(max_length=64, blank=True)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"ClientProfile({self.user.username})"

    @property
    def full_name(self) -> str:
        return self.user.get_full_name() or self.user.username


class CaregiverProfile(BaseModel):
    REQUIRED_PROFILE_FIELDS = ('phone_number', 'address', 'bio', 'hourly_rate')

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE)
    phone_number = models.CharField(max_length=20, blank=True)
    address = models.CharField(max_length=255, blank=True)
    bio = models.TextField(blank=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    specialties = models.ManyToManyField(Specialty, blank=True, related_name='caregivers')
    image_url = models.URLField(blank=True)
    verified = models.BooleanField(default=False)
    rating_average = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0.00'))
    rating_count = models.PositiveIntegerField(default=0)
    rating_histogram = models.JSONField(default=empty_rating_histogram)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"CaregiverProfile({self.user.username})"

    @property
    def full_name(self) -> str:
        return self.user.get_full_name() or self.user.username

    def missing_profile_fields(self) -> list[str]:
        """Names of the fields a caregiver must fill before being bookable."""
        missing = [] if self.user.get_full_name() else ['full_name']
        for field in self.REQUIRED_PROFILE_FIELDS:
            if not getattr(self, field):
                missing.append(field)
        return missing

    @transaction.atomic
    def recalc_ratings(self) -> None:
        """Recalculate rating aggregates and the star histogram from ratings."""
        ratings = Rating.objects.filter(caregiver=self)
        aggregates = ratings.aggregate(avg=Avg('rating'), count=Count('id'))
        histogram = empty_rating_histogram()
        for row in ratings.values('rating').annotate(total=Count('id')):
            histogram[str(row['rating'])] = row['total']
        self.rating_average = (
            Decimal(aggregates['avg']).quantize(Decimal('0.01')) if aggregates['avg'] else Decimal('0.00')
        )
        self.rating_count = aggregates['count'] or 0
        self.rating_histogram = histogram
        self.save(update_fields=['rating_average', 'rating_count', 'rating_histogram'])


class CaregiverAvailability(BaseModel):
    caregiver = models.ForeignKey(CaregiverProfile, on_delete=models.CASCADE, related_name='availabilities')
    weekday = models.PositiveSmallIntegerField(validators=[MinValueValidator(0), MaxValueValidator(6)])
    start_time = models.TimeField()
    end_time = models.TimeField()

    class Meta:
        ordering = ['weekday', 'start_time']
        verbose_name_plural = 'caregiver availabilities'


class HireRequest(TimestampedModel):
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'
    STATUS_PAID = 'paid'
    STATUS_CANCELLED = 'cancelled'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_PAID, 'Paid'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    # Requests in these states hold their time slot.
    BLOCKING_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED, STATUS_PAID, STATUS_COMPLETED)

    ALLOWED_TRANSITIONS = {
        STATUS_PENDING: {STATUS_ACCEPTED, STATUS_REJECTED, STATUS_CANCELLED},
        STATUS_ACCEPTED: {STATUS_PAID, STATUS_CANCELLED},
        STATUS_PAID: {STATUS_COMPLETED},
    }

    client = models.ForeignKey(ClientProfile, on_delete=models.CASCADE, related_name='hire_requests')
    caregiver = models.ForeignKey(CaregiverProfile, on_delete=models.CASCADE, related_name='hire_requests')
    date = models.DateField(db_index=True)
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    notes = models.TextField(blank=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    caregiver_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    platform_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['date', 'start_time']
        indexes = [models.Index(fields=['caregiver', 'date', 'status'], name='hirereq_caregiver_date_idx')]

    def __str__(self) -> str:  # pragma: no cover
        return f"HireRequest({self.date} {self.start_time:%H:%M}-{self.end_time:%H:%M}, {self.status})"

    @property
    def duration_hours(self) -> int:
        return self.end_time.hour - self.start_time.hour

    @property
    def start_datetime(self) -> datetime:
        return timezone.make_aware(datetime.combine(self.date, self.start_time))

    @property
    def end_datetime(self) -> datetime:
        return timezone.make_aware(datetime.combine(self.date, self.end_time))

    @property
    def is_rated(self) -> bool:
        return Rating.objects.filter(hire_request_id=self.pk).exists()

    def can_transition(self, new_status: str) -> bool:
        return new_status in self.ALLOWED_TRANSITIONS.get(self.status, set())

    def change_status(self, new_status: str, actor=None) -> None:
        """Enforce finite state machine for hire request statuses.

        The transition is checked against the stored status under a row lock,
        so an instance loaded before a concurrent change cannot overwrite it.
        """
        with transaction.atomic():
            locked = HireRequest.objects.select_for_update().get(pk=self.pk)
            if not locked.can_transition(new_status):
                self.status = locked.status
                raise InvalidStatusTransition(locked.status, new_status)
            previous = locked.status
            locked.status = new_status
            locked.save(update_fields=['status', 'updated_at'])
        self.status = locked.status
        self.updated_at = locked.updated_at
        logger.info('Hire request %s moved %s -> %s', self.pk, previous, new_status)

        from .notifications import notify_status_change

        notify_status_change(self, actor)

    @transaction.atomic
    def mark_paid(self) -> bool:
        """Record payment and the revenue split. Returns False if already paid."""
        locked = HireRequest.objects.select_for_update().get(pk=self.pk)
        if locked.status == self.STATUS_PAID or locked.paid_at is not None:
            self.refresh_from_db()
            return False
        if not locked.can_transition(self.STATUS_PAID):
            raise InvalidStatusTransition(locked.status, self.STATUS_PAID)

        platform_fee, caregiver_amount = compute_commission(locked.total_amount)
        locked.status = self.STATUS_PAID
        locked.platform_fee = platform_fee
        locked.caregiver_amount = caregiver_amount
        locked.paid_at = timezone.now()
        locked.save(update_fields=['status', 'platform_fee', 'caregiver_amount', 'paid_at', 'updated_at'])
        TransactionLog.objects.create(
            hire_request=locked,
            user=locked.client.user,
            direction=TransactionLog.DIRECTION_DEBIT,
            amount=locked.total_amount,
            description='Hire request payment',
        )
        TransactionLog.objects.create(
            hire_request=locked,
            user=locked.caregiver.user,
            direction=TransactionLog.DIRECTION_CREDIT,
            amount=caregiver_amount,
            description='Hire request payout',
        )
        self.refresh_from_db()
        logger.info('Hire request %s paid: total=%s fee=%s', self.pk, self.total_amount, self.platform_fee)
        return True


class Rating(TimestampedModel):
    hire_request = models.OneToOneField(HireRequest, on_delete=models.CASCADE, related_name='rating')
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='ratings_written')
    caregiver = models.ForeignKey(
        CaregiverProfile, on_delete=models.SET_NULL, null=True, blank=True, related_name='ratings'
    )
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True)

    class Meta:
        ordering = ['-created_at']

    def save(self, *args, **kwargs):
        is_new = self._state.adding
        super().save(*args, **kwargs)
        if is_new and self.caregiver:
            self.caregiver.recalc_ratings()


class Favorite(BaseModel):
    client = models.ForeignKey(ClientProfile, on_delete=models.CASCADE, related_name='favorites')
    caregiver = models.ForeignKey(CaregiverProfile, on_delete=models.CASCADE, related_name='favorited_by')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('client', 'caregiver')
        ordering = ['-created_at']


class Notification(BaseModel):
    TYPE_APPOINTMENT_REQUEST = 'appointment_request'
    TYPE_APPOINTMENT_ACCEPTED = 'appointment_accepted'
    TYPE_APPOINTMENT_REJECTED = 'appointment_rejected'
    TYPE_APPOINTMENT_CANCELLED = 'appointment_cancelled'
    TYPE_APPOINTMENT_COMPLETED = 'appointment_completed'
    TYPE_EVALUATION_REQUEST = 'evaluation_request'
    TYPE_PAYMENT_RECEIVED = 'payment_received'
    TYPE_NEW_RATING = 'new_rating'
    TYPE_SYSTEM = 'system'
    TYPE_CHOICES = [
        (TYPE_APPOINTMENT_REQUEST, 'Appointment request'),
        (TYPE_APPOINTMENT_ACCEPTED, 'Appointment accepted'),
        (TYPE_APPOINTMENT_REJECTED, 'Appointment rejected'),
        (TYPE_APPOINTMENT_CANCELLED, 'Appointment cancelled'),
        (TYPE_APPOINTMENT_COMPLETED, 'Appointment completed'),
        (TYPE_EVALUATION_REQUEST, 'Evaluation request'),
        (TYPE_PAYMENT_RECEIVED, 'Payment received'),
        (TYPE_NEW_RATING, 'New rating'),
        (TYPE_SYSTEM, 'System'),
    ]

    STATUS_UNREAD = 'unread'
    STATUS_READ = 'read'
    STATUS_CHOICES = [(STATUS_UNREAD, 'Unread'), (STATUS_READ, 'Read')]

    PRIORITY_LOW = 'low'
    PRIORITY_MEDIUM = 'medium'
    PRIORITY_HIGH = 'high'
    PRIORITY_CHOICES = [(PRIORITY_LOW, 'Low'), (PRIORITY_MEDIUM, 'Medium'), (PRIORITY_HIGH, 'High')]

    CHANNEL_IN_APP = 'in_app'
    CHANNEL_EMAIL = 'email'
    CHANNEL_CHOICES = [(CHANNEL_IN_APP, 'In app'), (CHANNEL_EMAIL, 'Email')]

    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=40, choices=TYPE_CHOICES)
    title = models.CharField(max_length=200)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_UNREAD)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=PRIORITY_MEDIUM)
    channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES, default=CHANNEL_IN_APP)
    created_at = models.DateTimeField(auto_now_add=True)
    read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [models.Index(fields=['recipient', 'status'], name='notif_recipient_status_idx')]

    def __str__(self) -> str:  # pragma: no cover
        return f"Notification({self.type} -> {self.recipient_id})"


class TransactionLog(TimestampedModel):
    DIRECTION_CREDIT = 'credit'
    DIRECTION_DEBIT = 'debit'
    DIRECTIONS = [
        (DIRECTION_CREDIT, 'Credit'),
        (DIRECTION_DEBIT, 'Debit'),
    ]

    hire_request = models.ForeignKey(
        HireRequest, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='transactions'
    )
    direction = models.CharField(max_length=10, choices=DIRECTIONS)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    description = models.TextField()

    class Meta:
        ordering = ['-created_at']


def compute_commission(amount: Decimal) -> tuple[Decimal, Decimal]:
    """Split ``amount`` into (platform_fee, caregiver_amount); the parts always sum to ``amount``."""
    platform_fee = (amount * settings.PLATFORM_FEE_PERCENT).quantize(Decimal('0.01'))
    caregiver_amount = amount - platform_fee
    return platform_fee, caregiver_amount
