# storefront/services/gateways/base.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

import requests

from storefront.domain.errors import AppError
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PaymentIntent:
    """What a provider hands back; exactly one of client_secret / approval_url is usually set."""

    external_id: str
    client_secret: str | None = None
    approval_url: str | None = None


class PaymentGateway(ABC):
    name: str = "gateway"

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    @abstractmethod
    def create_intent(
        self,
        amount: int,
        currency: str,
        metadata: Dict[str, Any],
        return_url: str | None = None,
        cancel_url: str | None = None,
    ) -> PaymentIntent:
        ...


# what a 2xx body with the wrong shape raises while we read it
MALFORMED_BODY = (KeyError, IndexError, TypeError, ValueError, AttributeError)


def unavailable(provider: str, exc: Exception) -> AppError:
    logger.error(f"{provider} payment initialization failed: {exc!r}")
    return AppError.unavailable("Payment gateway is temporarily unavailable", provider=provider)


def check_response(resp: requests.Response, provider: str) -> Dict[str, Any]:
    resp.raise_for_status()
    try:
        body = resp.json()
    except ValueError as e:
        raise requests.RequestException(f"{provider} returned a non-JSON body") from e
    if not isinstance(body, dict):
        raise requests.RequestException(f"{provider} returned {type(body).__name__}, expected an object")
    return body


def require_str(data: Dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} is missing or empty")
    return value
