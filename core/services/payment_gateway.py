import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

from core.entities.payment import Payment


@dataclass
class GatewayOrder:
    order_id: str
    payment_url: str


def hmac_sha256_hex(secret: str, message: Union[str, bytes]) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signature_matches(expected: str, supplied: Optional[str]) -> bool:
    if not supplied:
        return False
    return hmac.compare_digest(expected, supplied)


class PaymentGateway(ABC):
    """External checkout provider.

    Signature checks are shared by every implementation: the client call is
    signed over "order|payment", the redirect over
    "order|reference|status|payment", both with the key secret; webhooks are
    signed over the raw body with the webhook secret.
    """

    def __init__(self, key_secret: str = "", webhook_secret: str = ""):
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret

    @property
    def is_configured(self) -> bool:
        return bool(self.key_secret)

    @abstractmethod
    def create_order(self, payment: Payment, callback_url: str) -> GatewayOrder: ...

    def close(self) -> None:
        pass

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        if not self.key_secret:
            return False
        expected = hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}")
        return signature_matches(expected, signature)

    def verify_callback_signature(self, order_id: str, reference_id: str, status: str,
                                  payment_id: str, signature: Optional[str]) -> bool:
        if not self.key_secret:
            return False
        expected = hmac_sha256_hex(self.key_secret, f"{order_id}|{reference_id}|{status}|{payment_id}")
        return signature_matches(expected, signature)

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        if not self.webhook_secret:
            return False
        return signature_matches(hmac_sha256_hex(self.webhook_secret, body), signature)
