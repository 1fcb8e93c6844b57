# storefront/main.py
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.api import include_routers
from storefront.data.database import Base, engine
from storefront.domain.errors import AppError
from storefront.events.handlers import bind_order_created_handler
from storefront.services.event_bus import EventBus
from storefront.services.gateways import PaymentGateway, build_gateway
from storefront.services.pricing_service import PricingConfig
from storefront.utils import settings
from storefront.utils.logging import get_logger

# every model has to be registered on Base before create_all
import storefront.data.models  # noqa: F401

logger = get_logger(__name__)


async def app_error_handler(request: Request, exc: AppError):
    if exc.http_status >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.code}: {exc.message} {exc.meta}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.code}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def create_app(
    gateway: PaymentGateway | None = None,
    bus: EventBus | None = None,
    pricing_config: PricingConfig | None = None,
    init_db: bool = True,
) -> FastAPI:
    """
    Build the API. Configuration is validated and the payment gateway
    resolved here, once; a bad setting stops startup with ConfigError.
    """
    settings.validate()

    if init_db:
        logger.info(f"Creating tables: {list(Base.metadata.tables.keys())}")
        Base.metadata.create_all(bind=engine)

    app = FastAPI(title="Storefront Checkout", version="1.0.0")

    app.state.bus = bus or EventBus()
    app.state.gateway = gateway or build_gateway()
    app.state.pricing_config = pricing_config or PricingConfig.from_settings()
    bind_order_created_handler(app.state.bus)

    app.add_exception_handler(AppError, app_error_handler)
    include_routers(app)

    logger.info(f"Storefront ready, payment provider {app.state.gateway.name}")
    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
