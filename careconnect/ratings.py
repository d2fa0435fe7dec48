"""Rating of completed hire requests."""
from __future__ import annotations

import logging

from django.db import IntegrityError, transaction

from .exceptions import AlreadyRated, RatingNotAllowed
from .models import RATING_VALUES, HireRequest, Rating
from .notifications import notify_new_rating

logger = logging.getLogger(__name__)


def rate_hire_request(hire_request: HireRequest, author, rating: int, comment: str = '') -> Rating:
    """Store the single rating a completed hire request may receive."""
    if hire_request.client.user_id != author.pk:
        raise RatingNotAllowed('Only the client of this appointment can rate it')
    if hire_request.status != HireRequest.STATUS_COMPLETED:
        raise RatingNotAllowed('The service must be completed before it can be rated')
    if rating not in RATING_VALUES:
        raise RatingNotAllowed('Rating must be between 1 and 5')
    if Rating.objects.filter(hire_request=hire_request).exists():
        raise AlreadyRated()

    try:
        with transaction.atomic():
            created = Rating.objects.create(
                hire_request=hire_request,
                author=author,
                caregiver=hire_request.caregiver,
                rating=rating,
                comment=(comment or '').strip(),
            )
    except IntegrityError as exc:
        # A concurrent submission won the one-to-one constraint.
        logger.info('Duplicate rating rejected for hire request %s', hire_request.pk)
        raise AlreadyRated() from exc

    notify_new_rating(created)
    return created
