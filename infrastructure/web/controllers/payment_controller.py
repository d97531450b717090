import logging
from typing import Callable, ContextManager, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from config.settings import Settings
from core.entities.account import Currency, Plan
from core.errors import AppError
from core.services.payment_gateway import PaymentGateway
from core.use_cases.payment_use_cases import (
    confirm_redirect_payment,
    confirm_signed_payment,
    handle_webhook,
    start_checkout,
)
from infrastructure.db.sqlite import SQLiteAccountRepository, SQLitePaymentRepository
from infrastructure.web.dependencies import (
    get_account_repo,
    get_gateway,
    get_payment_repo,
    get_settings,
    get_transaction,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


class OrderRequest(BaseModel):
    amount: int                      # smallest currency unit
    plan: Plan
    account_id: str
    email: str
    currency: Currency = Currency.INR

class OrderResponse(BaseModel):
    payment_url: str
    gateway_order_id: str
    payment_id: str

class VerifyRequest(BaseModel):
    gateway_payment_id: str
    gateway_order_id: str
    signature: str
    account_id: Optional[str] = None
    plan: Optional[Plan] = None      # informational; the ledger entry decides the plan

class VerifyResponse(BaseModel):
    success: bool = True
    plan: Plan
    payment_id: str
    order_id: str


@router.post("/orders", response_model=OrderResponse)
def create_order(
    payload: OrderRequest,
    accounts: SQLiteAccountRepository = Depends(get_account_repo),
    payments: SQLitePaymentRepository = Depends(get_payment_repo),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    query = urlencode({"account_id": payload.account_id, "plan": payload.plan.value})
    callback_url = f"{settings.PUBLIC_BASE_URL.rstrip('/')}/payments/callback?{query}"
    payment, order = start_checkout(
        accounts,
        payments,
        gateway,
        account_id=payload.account_id,
        email=payload.email,
        amount=payload.amount,
        currency=payload.currency,
        plan=payload.plan,
        callback_url=callback_url,
    )
    return OrderResponse(payment_url=order.payment_url, gateway_order_id=order.order_id, payment_id=payment.id)


@router.get("/callback")
def payment_callback(
    gateway_payment_id: Optional[str] = Query(None, alias="razorpay_payment_id"),
    gateway_order_id: Optional[str] = Query(None, alias="razorpay_payment_link_id"),
    reference_id: Optional[str] = Query(None, alias="razorpay_payment_link_reference_id"),
    status: Optional[str] = Query(None, alias="razorpay_payment_link_status"),
    signature: Optional[str] = Query(None, alias="razorpay_signature"),
    account_id: Optional[str] = None,
    plan: Optional[str] = None,
    accounts: SQLiteAccountRepository = Depends(get_account_repo),
    payments: SQLitePaymentRepository = Depends(get_payment_repo),
    gateway: PaymentGateway = Depends(get_gateway),
    transaction: Callable[[], ContextManager] = Depends(get_transaction),
    settings: Settings = Depends(get_settings),
):
    params = {}
    try:
        outcome, payment = confirm_redirect_payment(
            accounts,
            payments,
            gateway,
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            status=status,
            reference_id=reference_id,
            signature=signature,
            transaction=transaction,
        )
        params["payment"] = outcome
        if payment is not None and outcome != "failed":
            params["plan"] = payment.plan.value
    except AppError as e:
        logger.warning("Payment callback for order %s not verified: %s (account %s, plan %s)",
                       gateway_order_id, e.message, account_id, plan)
        params["payment"] = "error"
    return RedirectResponse(f"{settings.APP_URL.rstrip('/')}/dashboard?{urlencode(params)}", status_code=302)


@router.post("/verify", response_model=VerifyResponse)
def verify_payment(
    payload: VerifyRequest,
    accounts: SQLiteAccountRepository = Depends(get_account_repo),
    payments: SQLitePaymentRepository = Depends(get_payment_repo),
    gateway: PaymentGateway = Depends(get_gateway),
    transaction: Callable[[], ContextManager] = Depends(get_transaction),
):
    result = confirm_signed_payment(
        accounts,
        payments,
        gateway,
        gateway_order_id=payload.gateway_order_id,
        gateway_payment_id=payload.gateway_payment_id,
        signature=payload.signature,
        account_id=payload.account_id,
        transaction=transaction,
    )
    return VerifyResponse(
        plan=result.payment.plan,
        payment_id=result.payment.gateway_payment_id,
        order_id=result.payment.gateway_order_id,
    )


async def get_raw_body(request: Request) -> bytes:
    return await request.body()


@router.post("/webhook")
def payment_webhook(
    body: bytes = Depends(get_raw_body),
    signature: Optional[str] = Header(None, alias="X-Razorpay-Signature"),
    accounts: SQLiteAccountRepository = Depends(get_account_repo),
    payments: SQLitePaymentRepository = Depends(get_payment_repo),
    gateway: PaymentGateway = Depends(get_gateway),
    transaction: Callable[[], ContextManager] = Depends(get_transaction),
):
    outcome = handle_webhook(accounts, payments, gateway, body, signature, transaction=transaction)
    return {"status": "ok", "outcome": outcome}
