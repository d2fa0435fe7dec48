"""Payment of accepted hire requests."""
from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings

from .asaas import AsaasClient
from .exceptions import InvalidStatusTransition, ProfileIncomplete
from .models import ClientProfile, HireRequest
from .notifications import notify_payment_received

logger = logging.getLogger(__name__)


def ensure_asaas_customer(client: ClientProfile, gateway: AsaasClient) -> str:
    """Return the client's Asaas customer id, registering the client on first use."""
    if client.asaas_customer_id:
        return client.asaas_customer_id
    if not client.cpf_cnpj:
        raise ProfileIncomplete('A CPF or CNPJ is required before paying')

    customer = gateway.create_customer(
        name=client.full_name,
        cpf_cnpj=client.cpf_cnpj,
        email=client.user.email or None,
        mobile_phone=client.phone_number or None,
    )
    client.asaas_customer_id = customer['id']
    client.save(update_fields=['asaas_customer_id'])
    return client.asaas_customer_id


def _pay(hire_request: HireRequest, gateway: Optional[AsaasClient]) -> HireRequest:
    if hire_request.status not in (HireRequest.STATUS_ACCEPTED, HireRequest.STATUS_PAID):
        raise InvalidStatusTransition(hire_request.status, HireRequest.STATUS_PAID)
    if gateway is not None:
        ensure_asaas_customer(hire_request.client, gateway)
    if hire_request.mark_paid():
        notify_payment_received(hire_request)
    else:
        logger.info('Hire request %s was already paid', hire_request.pk)
    return hire_request


def pay_hire_request(hire_request: HireRequest, gateway: Optional[AsaasClient] = None) -> HireRequest:
    """Pay an accepted hire request.

    Without an explicit ``gateway`` the Asaas client is used only when
    ``ASAAS_API_KEY`` is configured; otherwise the payment is recorded
    locally.
    """
    if gateway is None and settings.ASAAS_API_KEY:
        with AsaasClient(settings.ASAAS_API_KEY) as owned:
            return _pay(hire_request, owned)
    return _pay(hire_request, gateway)
