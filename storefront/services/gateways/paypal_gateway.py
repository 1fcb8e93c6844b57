# storefront/services/gateways/paypal_gateway.py
from typing import Any, Dict

import requests

from storefront.services.gateways.base import (
    MALFORMED_BODY,
    PaymentGateway,
    PaymentIntent,
    check_response,
    require_str,
    unavailable,
)
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry

logger = get_logger(__name__)

PAYPAL_LIVE_URL = "https://api-m.paypal.com"
PAYPAL_SANDBOX_URL = "https://api-m.sandbox.paypal.com"


def _decimal_amount(amount: int) -> str:
    # paypal wants a decimal string, amounts here are in cents
    units, cents = divmod(max(0, amount), 100)
    return f"{units}.{cents:02d}"


class PaypalGateway(PaymentGateway):
    name = "paypal"

    def __init__(self, client_id: str, secret: str, sandbox: bool = True, timeout: float = 10):
        super().__init__(timeout)
        self.client_id = client_id
        self.secret = secret
        self.base_url = PAYPAL_SANDBOX_URL if sandbox else PAYPAL_LIVE_URL

    @http_retry()
    def _token(self) -> str:
        resp = requests.post(
            f"{self.base_url}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.secret),
            timeout=self.timeout,
        )
        return check_response(resp, self.name)["access_token"]

    @http_retry()
    def _create_order(self, token: str, body: Dict[str, Any]) -> Dict[str, Any]:
        resp = requests.post(
            f"{self.base_url}/v2/checkout/orders",
            json=body,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        return check_response(resp, self.name)

    def create_intent(self, amount, currency, metadata, return_url=None, cancel_url=None) -> PaymentIntent:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {"currency_code": currency.upper(), "value": _decimal_amount(amount)},
                    "custom_id": str(metadata.get("orderId", "")),
                    "invoice_id": str(metadata.get("orderNumber", "")),
                }
            ],
            "application_context": {"return_url": return_url, "cancel_url": cancel_url},
        }

        try:
            data = self._create_order(self._token(), body)
            order_id = require_str(data, "id")
            approval_url = next(
                (link["href"] for link in data.get("links") or [] if link.get("rel") == "approve"), None
            )
        except (requests.RequestException, *MALFORMED_BODY) as e:
            raise unavailable(self.name, e)

        logger.info(f"PayPal order {order_id} created for {amount} {currency}")
        return PaymentIntent(external_id=order_id, approval_url=approval_url)
