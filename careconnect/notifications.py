"""In-app and email notifications for hire request lifecycle events."""
from __future__ import annotations

import logging
from smtplib import SMTPException
from typing import Any, Optional

from django.conf import settings
from django.core.mail import send_mail
from django.db.models import QuerySet
from django.utils import timezone

from .models import HireRequest, Notification, Rating

logger = logging.getLogger(__name__)


def create_notification(
    recipient,
    type: str,
    title: str,
    message: str,
    *,
    data: Optional[dict[str, Any]] = None,
    priority: str = Notification.PRIORITY_MEDIUM,
    channel: Optional[str] = None,
) -> Notification:
    """Store a notification and, for the email channel, deliver it by mail.

    When ``channel`` is omitted, high priority notifications go out by email
    if email delivery is enabled and the recipient has an address.
    """
    if channel is None:
        wants_email = settings.NOTIFICATIONS_EMAIL_ENABLED and priority == Notification.PRIORITY_HIGH
        channel = Notification.CHANNEL_EMAIL if wants_email and recipient.email else Notification.CHANNEL_IN_APP

    notification = Notification.objects.create(
        recipient=recipient,
        type=type,
        title=title,
        message=message,
        data=data or {},
        priority=priority,
        channel=channel,
    )
    logger.debug('Notification %s (%s) created for user %s', notification.pk, type, recipient.pk)

    if channel == Notification.CHANNEL_EMAIL:
        _deliver_email(notification)
    return notification


def _deliver_email(notification: Notification) -> None:
    # Delivery problems must not undo the booking or payment that triggered them.
    try:
        send_mail(
            subject=notification.title,
            message=notification.message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[notification.recipient.email],
        )
    except (SMTPException, OSError):
        logger.exception('Failed to email notification %s to user %s', notification.pk, notification.recipient_id)
    else:
        logger.info('Notification %s emailed to user %s', notification.pk, notification.recipient_id)


def mark_as_read(notification: Notification) -> Notification:
    if notification.status != Notification.STATUS_READ:
        notification.status = Notification.STATUS_READ
        notification.read_at = timezone.now()
        notification.save(update_fields=['status', 'read_at'])
    return notification


def mark_all_as_read(user) -> int:
    return unread_for(user).update(status=Notification.STATUS_READ, read_at=timezone.now())


def unread_for(user) -> QuerySet:
    return Notification.objects.filter(recipient=user, status=Notification.STATUS_UNREAD)


def _request_data(hire_request: HireRequest, **extra) -> dict[str, Any]:
    data = {
        'hire_request_id': str(hire_request.pk),
        'date': hire_request.date.isoformat(),
        'start_time': hire_request.start_time.strftime('%H:%M'),
        'end_time': hire_request.end_time.strftime('%H:%M'),
        'status': hire_request.status,
    }
    data.update(extra)
    return data


def _when(hire_request: HireRequest) -> str:
    return (
        f"{hire_request.date:%d/%m/%Y} from {hire_request.start_time:%H:%M} "
        f"to {hire_request.end_time:%H:%M}"
    )


def notify_new_request(hire_request: HireRequest) -> Notification:
    client_name = hire_request.client.full_name
    return create_notification(
        hire_request.caregiver.user,
        Notification.TYPE_APPOINTMENT_REQUEST,
        'New appointment request',
        f'{client_name} requested an appointment on {_when(hire_request)}',
        data=_request_data(hire_request, client_name=client_name, total_amount=str(hire_request.total_amount)),
        priority=Notification.PRIORITY_HIGH,
    )


def notify_status_change(hire_request: HireRequest, actor=None) -> list[Notification]:
    """Tell the other party that a hire request changed status."""
    caregiver_name = hire_request.caregiver.full_name
    client_user = hire_request.client.user
    sent = []

    if hire_request.status == HireRequest.STATUS_ACCEPTED:
        sent.append(
            create_notification(
                client_user,
                Notification.TYPE_APPOINTMENT_ACCEPTED,
                'Appointment confirmed',
                f'{caregiver_name} accepted your appointment on {_when(hire_request)}',
                data=_request_data(hire_request, caregiver_name=caregiver_name),
            )
        )
    elif hire_request.status == HireRequest.STATUS_REJECTED:
        sent.append(
            create_notification(
                client_user,
                Notification.TYPE_APPOINTMENT_REJECTED,
                'Appointment declined',
                f'{caregiver_name} declined your appointment on {_when(hire_request)}',
                data=_request_data(hire_request, caregiver_name=caregiver_name),
            )
        )
    elif hire_request.status == HireRequest.STATUS_CANCELLED:
        for user in (client_user, hire_request.caregiver.user):
            if actor is not None and user.pk == actor.pk:
                continue
            sent.append(
                create_notification(
                    user,
                    Notification.TYPE_APPOINTMENT_CANCELLED,
                    'Appointment cancelled',
                    f'The appointment on {_when(hire_request)} was cancelled',
                    data=_request_data(hire_request),
                    priority=Notification.PRIORITY_LOW,
                )
            )
    elif hire_request.status == HireRequest.STATUS_COMPLETED:
        sent.append(
            create_notification(
                client_user,
                Notification.TYPE_APPOINTMENT_COMPLETED,
                'Appointment completed',
                f'Your appointment with {caregiver_name} was completed',
                data=_request_data(hire_request, caregiver_name=caregiver_name),
                priority=Notification.PRIORITY_LOW,
            )
        )
        sent.append(
            create_notification(
                client_user,
                Notification.TYPE_EVALUATION_REQUEST,
                'Rate your appointment',
                f'How was your appointment on {hire_request.date:%d/%m/%Y}? Your rating helps other clients.',
                data={'hire_request_id': str(hire_request.pk)},
            )
        )
    return sent


def notify_payment_received(hire_request: HireRequest) -> Notification:
    return create_notification(
        hire_request.caregiver.user,
        Notification.TYPE_PAYMENT_RECEIVED,
        'Payment received',
        f'{hire_request.client.full_name} paid for the appointment on {_when(hire_request)}. '
        f'You will receive {hire_request.caregiver_amount}.',
        data=_request_data(
            hire_request,
            total_amount=str(hire_request.total_amount),
            caregiver_amount=str(hire_request.caregiver_amount),
        ),
        priority=Notification.PRIORITY_HIGH,
    )


def notify_new_rating(rating: Rating) -> Optional[Notification]:
    if rating.caregiver is None:
        return None
    stars = '⭐' * rating.rating
    message = f'You received a new rating: {stars}'
    if rating.comment:
        message = f'{message}\n{rating.comment}'
    return create_notification(
        rating.caregiver.user,
        Notification.TYPE_NEW_RATING,
        'New rating received',
        message,
        data={'hire_request_id': str(rating.hire_request_id), 'rating': rating.rating, 'comment': rating.comment},
    )
