import logging
from typing import Optional

import httpx

from core.entities.payment import Payment
from core.errors import GatewayNotConfiguredError, UpstreamGatewayError
from core.services.payment_gateway import GatewayOrder, PaymentGateway

logger = logging.getLogger(__name__)


class RazorpayGateway(PaymentGateway):
    """Creates hosted payment links; the link id is the gateway order id."""

    def __init__(self, key_id: str, key_secret: str, webhook_secret: str = "",
                 api_url: str = "https://api.razorpay.com/v1", timeout: float = 10.0,
                 client: Optional[httpx.Client] = None):
        super().__init__(key_secret=key_secret, webhook_secret=webhook_secret)
        self.key_id = key_id
        self._client = client or httpx.Client(
            base_url=api_url,
            auth=(key_id, key_secret),
            timeout=timeout,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def create_order(self, payment: Payment, callback_url: str) -> GatewayOrder:
        if not self.is_configured:
            raise GatewayNotConfiguredError()
        body = {
            "amount": payment.amount,
            "currency": payment.currency.value,
            "reference_id": payment.id,
            "description": f"{payment.plan.value} plan",
            "customer": {"email": payment.email},
            "callback_url": callback_url,
            "callback_method": "get",
            "notes": {"plan": payment.plan.value, "account_id": payment.account_id},
        }
        try:
            response = self._client.post("/payment_links", json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            logger.warning("Gateway timed out creating link for payment %s", payment.id)
            raise UpstreamGatewayError()
        except httpx.HTTPStatusError as e:
            logger.error("Gateway rejected link for payment %s with status %s",
                         payment.id, e.response.status_code)
            raise UpstreamGatewayError()
        except (httpx.HTTPError, ValueError):
            logger.error("Gateway call failed for payment %s", payment.id, exc_info=True)
            raise UpstreamGatewayError()

        if not data.get("id") or not data.get("short_url"):
            logger.error("Gateway response for payment %s missing link fields", payment.id)
            raise UpstreamGatewayError()
        return GatewayOrder(order_id=data["id"], payment_url=data["short_url"])

    def close(self) -> None:
        self._client.close()
