import json
from decimal import Decimal

import httpx
from django.test import TestCase, override_settings

from careconnect.asaas import AsaasClient
from careconnect.exceptions import InvalidStatusTransition, PaymentGatewayError, ProfileIncomplete
from careconnect.models import HireRequest, Notification, TransactionLog
from careconnect.payments import ensure_asaas_customer, pay_hire_request

from .utils import make_caregiver, make_client, make_request

ASAAS_TEST_URL = 'https://asaas.test/api/v3'


def gateway_for(handler):
    return AsaasClient('test-key', base_url=ASAAS_TEST_URL, transport=httpx.MockTransport(handler))


class AsaasClientTests(TestCase):
    def test_create_customer_posts_payload(self):
        seen = {}

        def handler(request):
            seen['path'] = request.url.path
            seen['token'] = request.headers['access_token']
            seen['body'] = json.loads(request.content)
            return httpx.Response(200, json={'id': 'cus_000001', 'name': 'Ana Souza'})

        with gateway_for(handler) as gateway:
            customer = gateway.create_customer('Ana Souza', '12345678909', email='ana@example.com')

        self.assertEqual(customer['id'], 'cus_000001')
        self.assertEqual(seen['path'], '/api/v3/customers')
        self.assertEqual(seen['token'], 'test-key')
        self.assertEqual(seen['body'], {'name': 'Ana Souza', 'cpfCnpj': '12345678909', 'email': 'ana@example.com'})

    def test_error_response_raises_gateway_error(self):
        def handler(request):
            return httpx.Response(400, json={'errors': [{'code': 'invalid_cpfCnpj', 'description': 'CPF inválido'}]})

        with gateway_for(handler) as gateway:
            with self.assertRaises(PaymentGatewayError) as ctx:
                gateway.create_customer('Ana Souza', '000')
        self.assertIn('CPF inválido', ctx.exception.message)

    def test_transport_failure_raises_gateway_error(self):
        def handler(request):
            raise httpx.ConnectError('connection refused', request=request)

        with gateway_for(handler) as gateway:
            with self.assertRaises(PaymentGatewayError):
                gateway.create_customer('Ana Souza', '12345678909')

    def test_requires_api_key(self):
        with self.assertRaises(PaymentGatewayError):
            AsaasClient('')


class EnsureCustomerTests(TestCase):
    def test_registers_once(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={'id': 'cus_000002'})

        client = make_client(cpf_cnpj='12345678909')
        with gateway_for(handler) as gateway:
            self.assertEqual(ensure_asaas_customer(client, gateway), 'cus_000002')
            self.assertEqual(ensure_asaas_customer(client, gateway), 'cus_000002')

        self.assertEqual(len(calls), 1)
        client.refresh_from_db()
        self.assertEqual(client.asaas_customer_id, 'cus_000002')

    def test_requires_document(self):
        client = make_client()
        with gateway_for(lambda request: httpx.Response(200, json={'id': 'x'})) as gateway:
            with self.assertRaises(ProfileIncomplete):
                ensure_asaas_customer(client, gateway)


@override_settings(ASAAS_API_KEY=None)
class PayHireRequestTests(TestCase):
    def setUp(self):
        self.client_profile = make_client(cpf_cnpj='12345678909')
        self.caregiver = make_caregiver()
        self.hire_request = make_request(self.client_profile, self.caregiver, status=HireRequest.STATUS_ACCEPTED)

    def test_pay_without_gateway(self):
        pay_hire_request(self.hire_request)

        self.assertEqual(self.hire_request.status, HireRequest.STATUS_PAID)
        self.assertEqual(self.hire_request.caregiver_amount + self.hire_request.platform_fee, Decimal('100.00'))
        notification = Notification.objects.get(type=Notification.TYPE_PAYMENT_RECEIVED)
        self.assertEqual(notification.recipient, self.caregiver.user)

    def test_pay_with_gateway_registers_customer(self):
        def handler(request):
            return httpx.Response(200, json={'id': 'cus_000003'})

        with gateway_for(handler) as gateway:
            pay_hire_request(self.hire_request, gateway)

        self.client_profile.refresh_from_db()
        self.assertEqual(self.client_profile.asaas_customer_id, 'cus_000003')
        self.assertEqual(self.hire_request.status, HireRequest.STATUS_PAID)

    def test_gateway_failure_leaves_request_unpaid(self):
        def handler(request):
            return httpx.Response(500, text='boom')

        with gateway_for(handler) as gateway:
            with self.assertRaises(PaymentGatewayError):
                pay_hire_request(self.hire_request, gateway)

        self.hire_request.refresh_from_db()
        self.assertEqual(self.hire_request.status, HireRequest.STATUS_ACCEPTED)
        self.assertFalse(TransactionLog.objects.exists())

    def test_second_payment_does_not_duplicate_ledger(self):
        pay_hire_request(self.hire_request)
        pay_hire_request(self.hire_request)
        self.assertEqual(TransactionLog.objects.count(), 2)
        self.assertEqual(Notification.objects.filter(type=Notification.TYPE_PAYMENT_RECEIVED).count(), 1)

    def test_pending_request_cannot_be_paid(self):
        self.hire_request.status = HireRequest.STATUS_PENDING
        self.hire_request.save()
        with self.assertRaises(InvalidStatusTransition):
            pay_hire_request(self.hire_request)
