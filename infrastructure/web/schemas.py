from typing import Optional, List

from pydantic import BaseModel, ConfigDict

from core.entities.account import AccountStatus, Currency, Plan, Role, SafeAccount
from core.entities.payment import Payment, PaymentStatus


# DTO without credential fields; built only from SafeAccount
class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    phone: str
    role: Role
    plan: Plan
    currency: Optional[Currency] = None
    status: AccountStatus
    disabled_reason: Optional[str] = None
    signup_origin: Optional[str] = None
    last_login_origin: Optional[str] = None
    created_at: str
    updated_at: str
    paid_at: Optional[str] = None


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    email: str
    amount: int
    currency: Currency
    plan: Plan
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    status: PaymentStatus
    created_at: str
    completed_at: Optional[str] = None


def account_out(account: SafeAccount) -> AccountOut:
    if not isinstance(account, SafeAccount):
        raise TypeError("only redacted accounts may be serialized")
    return AccountOut.model_validate(account)

def payments_out(payments: List[Payment]) -> List[PaymentOut]:
    return [PaymentOut.model_validate(p) for p in payments]
