# storefront/services/gateways/stripe_gateway.py
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

STRIPE_API_URL = "https://api.stripe.com"


class StripeGateway(PaymentGateway):
    name = "stripe"

    def __init__(self, secret_key: str, timeout: float = 10, base_url: str = STRIPE_API_URL):
        super().__init__(timeout)
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")

    @http_retry()
    def _post_intent(self, form: Dict[str, str], idempotency_key: str | None) -> Dict[str, Any]:
        headers = {}
        if idempotency_key:
            # retries after a dropped connection must not create a second intent
            headers["Idempotency-Key"] = idempotency_key
        resp = requests.post(
            f"{self.base_url}/v1/payment_intents",
            data=form,
            headers=headers,
            auth=(self.secret_key, ""),
            timeout=self.timeout,
        )
        return check_response(resp, self.name)

    def create_intent(self, amount, currency, metadata, return_url=None, cancel_url=None) -> PaymentIntent:
        form = {
            "amount": str(max(0, amount)),
            "currency": currency.lower(),
            "automatic_payment_methods[enabled]": "true",
        }
        for key in ("orderId", "orderNumber"):
            if key in metadata:
                form[f"metadata[{key}]"] = str(metadata[key])

        idempotency_key = f"order-{metadata['orderId']}" if "orderId" in metadata else None
        try:
            data = self._post_intent(form, idempotency_key)
            intent_id = require_str(data, "id")
        except (requests.RequestException, *MALFORMED_BODY) as e:
            raise unavailable(self.name, e)

        logger.info(f"Stripe PaymentIntent {intent_id} created for {amount} {currency}")
        return PaymentIntent(external_id=intent_id, client_secret=data.get("client_secret"))
