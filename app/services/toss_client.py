"""
Toss Payments REST client.

Covers the three calls the billing flows need: payment confirmation,
billing-key issuance and charging a stored billing key. Authentication
is HTTP Basic with the secret key as username and an empty password.
"""
import logging

import requests
from flask import current_app

from app.errors import PaymentConfigurationError

logger = logging.getLogger(__name__)


class TossPaymentsError(Exception):
    """Gateway rejected the request or could not be reached."""

    def __init__(self, code, message, status_code=None):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(f'{code}: {message}')


class TossPaymentsClient:
    """Thin wrapper over the Toss Payments v1 API."""

    def __init__(self, secret_key, api_base='https://api.tosspayments.com', timeout=30):
        if not secret_key:
            raise PaymentConfigurationError()
        self.secret_key = secret_key
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout

    @classmethod
    def from_config(cls, config=None):
        config = config or current_app.config
        return cls(
            secret_key=config.get('TOSS_SECRET_KEY'),
            api_base=config.get('TOSS_API_BASE') or 'https://api.tosspayments.com',
            timeout=config.get('TOSS_TIMEOUT_SECONDS') or 30,
        )

    def _post(self, path, payload):
        url = f'{self.api_base}{path}'
        try:
            response = requests.post(
                url,
                json=payload,
                auth=(self.secret_key, ''),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error('Toss Payments unreachable (%s): %s', path, e)
            raise TossPaymentsError('NETWORK_ERROR', '결제 서버에 연결할 수 없습니다')

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            code = data.get('code') or f'HTTP_{response.status_code}'
            message = data.get('message') or '결제 요청이 거절되었습니다'
            logger.warning('Toss Payments %s failed: %s %s', path, code, message)
            raise TossPaymentsError(code, message, status_code=response.status_code)

        return data

    def confirm_payment(self, payment_key, order_id, amount):
        """Approve a widget payment after the customer authorized it."""
        return self._post('/v1/payments/confirm', {
            'paymentKey': payment_key,
            'orderId': order_id,
            'amount': amount,
        })

    def issue_billing_key(self, auth_key, customer_key):
        """Exchange a card-registration auth key for a reusable billing key."""
        return self._post('/v1/billing/authorizations/issue', {
            'authKey': auth_key,
            'customerKey': customer_key,
        })

    def charge_billing_key(self, billing_key, customer_key, amount, order_id, order_name,
                           customer_email=None, customer_name=None):
        """Charge a stored billing key. ``order_id`` must be unique per attempt."""
        payload = {
            'customerKey': customer_key,
            'amount': amount,
            'orderId': order_id,
            'orderName': order_name,
        }
        if customer_email:
            payload['customerEmail'] = customer_email
        if customer_name:
            payload['customerName'] = customer_name
        return self._post(f'/v1/billing/{billing_key}', payload)
