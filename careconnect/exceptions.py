"""Domain errors and their mapping onto API responses."""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CareConnectError(Exception):
    """Base class for business-rule violations."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = 'careconnect_error'
    default_message = 'Request could not be processed'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidStatusTransition(CareConnectError, ValueError):
    status_code = status.HTTP_409_CONFLICT
    code = 'invalid_transition'

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f'Invalid transition from {current} to {requested}')


class SlotUnavailable(CareConnectError):
    status_code = status.HTTP_409_CONFLICT
    code = 'slot_unavailable'
    default_message = 'This time slot is no longer available'


class BookingRuleViolation(CareConnectError):
    code = 'booking_rule'


class RatingNotAllowed(CareConnectError):
    code = 'rating_not_allowed'


class AlreadyRated(CareConnectError):
    status_code = status.HTTP_409_CONFLICT
    code = 'already_rated'
    default_message = 'This service has already been rated'


class ProfileIncomplete(CareConnectError):
    code = 'profile_incomplete'


class PaymentGatewayError(CareConnectError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = 'payment_gateway_error'
    default_message = 'Payment provider request failed'


def api_exception_handler(exc, context):
    """DRF exception handler that understands :class:`CareConnectError`."""
    if isinstance(exc, CareConnectError):
        view = context.get('view')
        logger.warning('%s in %s: %s', exc.code, view.__class__.__name__ if view else '-', exc.message)
        return Response({'detail': exc.message, 'code': exc.code}, status=exc.status_code)
    return exception_handler(exc, context)
