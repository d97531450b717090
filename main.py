import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.logging import setup_logging
from config.settings import Settings, settings as default_settings
from core.services.payment_gateway import PaymentGateway
from infrastructure.db.sqlite import init_db
from infrastructure.payments.razorpay_gateway import RazorpayGateway
from infrastructure.payments.stub_gateway import StubPaymentGateway
from infrastructure.web.controllers.account_controller import router as account_router
from infrastructure.web.controllers.admin_controller import router as admin_router
from infrastructure.web.controllers.payment_controller import router as payment_router
from infrastructure.web.errors import register_error_handlers

logger = logging.getLogger(__name__)


def build_gateway(settings: Settings) -> PaymentGateway:
    if settings.GATEWAY_MODE == "stub":
        return StubPaymentGateway(
            key_secret=settings.GATEWAY_KEY_SECRET or "stub-secret",
            webhook_secret=settings.GATEWAY_WEBHOOK_SECRET or "stub-webhook-secret",
            checkout_base_url=f"{settings.PUBLIC_BASE_URL.rstrip('/')}/stub-checkout",
        )
    return RazorpayGateway(
        key_id=settings.GATEWAY_KEY_ID,
        key_secret=settings.GATEWAY_KEY_SECRET,
        webhook_secret=settings.GATEWAY_WEBHOOK_SECRET,
        api_url=settings.GATEWAY_API_URL,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )


def create_app(settings: Optional[Settings] = None, gateway: Optional[PaymentGateway] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Subscription billing")
    app.state.settings = settings
    app.state.gateway = gateway or build_gateway(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def on_startup():
        init_db(settings.DB_PATH)
        if not app.state.gateway.is_configured:
            logger.warning("Payment gateway is not configured; checkout will be unavailable")

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.gateway.close()

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok"}

    register_error_handlers(app)
    app.include_router(account_router)
    app.include_router(payment_router)
    app.include_router(admin_router)
    return app


app = create_app()
