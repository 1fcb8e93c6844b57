# storefront/services/gateways/__init__.py
from storefront.domain.errors import ConfigError
from storefront.services.gateways.base import PaymentGateway, PaymentIntent
from storefront.services.gateways.paypal_gateway import PaypalGateway
from storefront.services.gateways.stripe_gateway import StripeGateway
from storefront.services.gateways.zarinpal_gateway import ZarinpalGateway
from storefront.utils import settings


def _stripe(timeout: float) -> PaymentGateway:
    if not settings.STRIPE_SECRET_KEY:
        raise ConfigError("STRIPE_SECRET_KEY is required when PAYMENT_PROVIDER=stripe")
    return StripeGateway(settings.STRIPE_SECRET_KEY, timeout=timeout)


def _paypal(timeout: float) -> PaymentGateway:
    if not (settings.PAYPAL_CLIENT_ID and settings.PAYPAL_SECRET):
        raise ConfigError("PAYPAL_CLIENT_ID and PAYPAL_SECRET are required when PAYMENT_PROVIDER=paypal")
    return PaypalGateway(
        settings.PAYPAL_CLIENT_ID,
        settings.PAYPAL_SECRET,
        sandbox=settings.PAYPAL_ENV != "live",
        timeout=timeout,
    )


def _zarinpal(timeout: float) -> PaymentGateway:
    if not settings.ZARINPAL_MERCHANT_ID:
        raise ConfigError("ZARINPAL_MERCHANT_ID is required when PAYMENT_PROVIDER=zarinpal")
    return ZarinpalGateway(settings.ZARINPAL_MERCHANT_ID, sandbox=settings.ZARINPAL_SANDBOX, timeout=timeout)


GATEWAY_FACTORIES = {
    "stripe": _stripe,
    "paypal": _paypal,
    "zarinpal": _zarinpal,
}


def build_gateway(provider: str | None = None) -> PaymentGateway:
    """Resolve the configured provider once at startup; misconfiguration raises ConfigError."""
    provider = (provider or settings.PAYMENT_PROVIDER).lower()
    factory = GATEWAY_FACTORIES.get(provider)
    if factory is None:
        raise ConfigError(f"Unknown payment provider {provider!r}")
    return factory(float(settings.PAYMENT_TIMEOUT_SECONDS))


__all__ = [
    "PaymentGateway",
    "PaymentIntent",
    "StripeGateway",
    "PaypalGateway",
    "ZarinpalGateway",
    "build_gateway",
]
