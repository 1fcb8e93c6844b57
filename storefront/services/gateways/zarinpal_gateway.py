# storefront/services/gateways/zarinpal_gateway.py
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

ZARINPAL_API_URL = "https://payment.zarinpal.com/pg/v4/payment"
ZARINPAL_SANDBOX_API_URL = "https://sandbox.zarinpal.com/pg/v4/payment"
ZARINPAL_START_URL = "https://payment.zarinpal.com/pg/StartPay"
ZARINPAL_SANDBOX_START_URL = "https://sandbox.zarinpal.com/pg/StartPay"

# request accepted, authority issued
_OK_CODE = 100


class ZarinpalGateway(PaymentGateway):
    name = "zarinpal"

    def __init__(self, merchant_id: str, sandbox: bool = False, timeout: float = 10):
        super().__init__(timeout)
        self.merchant_id = merchant_id
        self.api_url = ZARINPAL_SANDBOX_API_URL if sandbox else ZARINPAL_API_URL
        self.start_url = ZARINPAL_SANDBOX_START_URL if sandbox else ZARINPAL_START_URL

    @http_retry()
    def _request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = requests.post(f"{self.api_url}/request.json", json=payload, timeout=self.timeout)
        return check_response(resp, self.name)

    def create_intent(self, amount, currency, metadata, return_url=None, cancel_url=None) -> PaymentIntent:
        order_ref = metadata.get("orderNumber") or metadata.get("orderId") or ""
        payload = {
            "merchant_id": self.merchant_id,
            "amount": max(0, amount),
            "currency": "IRT" if currency.upper() == "IRT" else "IRR",
            "description": f"Order {order_ref}"[:255],
            "callback_url": return_url,
        }
        if metadata.get("mobile"):
            payload["mobile"] = metadata["mobile"]

        try:
            body = self._request(payload)
            data = body.get("data") or {}
            code = data.get("code")
            authority = require_str(data, "authority") if code == _OK_CODE else None
        except (requests.RequestException, *MALFORMED_BODY) as e:
            raise unavailable(self.name, e)

        if authority is None:
            raise unavailable(self.name, RuntimeError(f"zarinpal rejected request: {body.get('errors') or data}"))

        logger.info(f"Zarinpal authority {authority} issued for {amount} {currency}")
        return PaymentIntent(external_id=authority, approval_url=f"{self.start_url}/{authority}")
