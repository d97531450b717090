from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.entities.account import Currency, Plan


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Payment:
    id: str
    account_id: str
    email: str
    amount: int                  # smallest currency unit (paise/cents)
    currency: Currency
    plan: Plan                   # target plan
    gateway_order_id: Optional[str]   # attached once the gateway answers
    status: PaymentStatus
    created_at: str
    gateway_payment_id: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status is PaymentStatus.PENDING
