from uuid import uuid4

from core.entities.payment import Payment
from core.services.payment_gateway import GatewayOrder, PaymentGateway, hmac_sha256_hex


class StubPaymentGateway(PaymentGateway):
    """Offline gateway for local runs: every order succeeds and is signed with the local secret."""

    def __init__(self, key_secret: str = "stub-secret", webhook_secret: str = "stub-webhook-secret",
                 checkout_base_url: str = "http://localhost:8000/stub-checkout"):
        super().__init__(key_secret=key_secret, webhook_secret=webhook_secret)
        self.checkout_base_url = checkout_base_url.rstrip("/")
        self.orders = {}

    def create_order(self, payment: Payment, callback_url: str) -> GatewayOrder:
        order_id = f"order_stub_{uuid4().hex[:14]}"
        self.orders[order_id] = {"payment_id": payment.id, "callback_url": callback_url}
        return GatewayOrder(order_id=order_id, payment_url=f"{self.checkout_base_url}/{order_id}")

    def sign_payment(self, order_id: str, payment_id: str) -> str:
        return hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}")

    def sign_callback(self, order_id: str, reference_id: str, status: str, payment_id: str) -> str:
        return hmac_sha256_hex(self.key_secret, f"{order_id}|{reference_id}|{status}|{payment_id}")

    def sign_webhook(self, body: bytes) -> str:
        return hmac_sha256_hex(self.webhook_secret, body)
