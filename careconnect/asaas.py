"""Minimal client for the Asaas payments REST API."""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from django.conf import settings

from .exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    errors = body.get('errors') if isinstance(body, dict) else None
    if errors:
        return '; '.join(str(e.get('description') or e.get('code')) for e in errors)
    return str(body)


class AsaasClient:
    """Service for Asaas API operations.

    ``transport`` may be any ``httpx`` transport; tests pass an
    ``httpx.MockTransport``. By default connection failures are retried
    ``ASAAS_RETRIES`` times by the transport.
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not api_key:
            raise PaymentGatewayError('ASAAS_API_KEY is not configured')
        self.base_url = (base_url or settings.ASAAS_API_URL).rstrip('/')
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.ASAAS_TIMEOUT,
            transport=transport or httpx.HTTPTransport(retries=settings.ASAAS_RETRIES),
            headers={
                'accept': 'application/json',
                'content-type': 'application/json',
                'access_token': api_key,
            },
        )

    def __enter__(self) -> 'AsaasClient':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def create_customer(
        self,
        name: str,
        cpf_cnpj: str,
        email: Optional[str] = None,
        mobile_phone: Optional[str] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {'name': name, 'cpfCnpj': cpf_cnpj}
        if email:
            payload['email'] = email
        if mobile_phone:
            payload['mobilePhone'] = mobile_phone
        customer = self._post('/customers', payload)
        logger.info('Asaas customer %s created', customer.get('id'))
        return customer

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            logger.error('Asaas request to %s failed: %s', path, exc)
            raise PaymentGatewayError(f'Could not reach the payment provider: {exc}') from exc

        if response.is_error:
            detail = _error_detail(response)
            logger.error('Asaas rejected %s (%s): %s', path, response.status_code, detail)
            raise PaymentGatewayError(f'Payment provider rejected the request: {detail}')
        return response.json()
