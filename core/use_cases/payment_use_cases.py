import json
import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Callable, ContextManager, Optional, Tuple

from core.entities.account import Account, AccountPatch, Currency, Plan
from core.entities.payment import Payment, PaymentStatus
from core.errors import (
    AlreadyCompletedError,
    ForbiddenError,
    GatewayNotConfiguredError,
    InvalidSignatureError,
    NotFoundError,
    UnknownOrderError,
    UpstreamGatewayError,
    ValidationError,
)
from core.repositories.account_repository import AccountRepository
from core.repositories.payment_repository import PaymentRepository
from core.services.payment_gateway import GatewayOrder, PaymentGateway
from core.use_cases.account_use_cases import get_account, normalize_email

logger = logging.getLogger(__name__)

TransactionFactory = Callable[[], ContextManager]

PAID_STATUS = "paid"


@dataclass
class ReconciliationResult:
    payment: Payment
    first_writer: bool
    account: Optional[Account] = None


def start_checkout(
    accounts: AccountRepository,
    payments: PaymentRepository,
    gateway: PaymentGateway,
    account_id: str,
    email: str,
    amount: int,
    currency: Currency,
    plan: Plan,
    callback_url: str,
) -> Tuple[Payment, GatewayOrder]:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError("Amount must be a positive integer in the smallest currency unit")
    if not plan.is_paid:
        raise ValidationError("Only paid plans can be purchased")
    account = get_account(accounts, account_id)
    if normalize_email(email) != account.email:
        raise ValidationError("Email does not match the account")
    if account.is_disabled:
        raise ForbiddenError("Account disabled")
    if not gateway.is_configured:
        raise GatewayNotConfiguredError()

    payment = payments.create_pending(account.id, account.email, amount, currency, plan)
    try:
        order = gateway.create_order(payment, callback_url)
    except UpstreamGatewayError:
        # the entry stays pending without an order id; nothing can complete it
        logger.warning("Gateway order creation failed for payment %s", payment.id)
        raise
    payment = payments.attach_gateway_order(payment.id, order.order_id)
    logger.info("Checkout started: payment %s order %s plan %s", payment.id, order.order_id, plan.value)
    return payment, order


def _find_payment(payments: PaymentRepository, gateway_order_id: Optional[str]) -> Payment:
    payment = payments.find_by_gateway_order_id(gateway_order_id) if gateway_order_id else None
    if payment is None:
        logger.warning("Confirmation for unknown order %s", gateway_order_id)
        raise UnknownOrderError()
    return payment


def _reconcile(
    accounts: AccountRepository,
    payments: PaymentRepository,
    gateway_order_id: str,
    gateway_payment_id: str,
    transaction: TransactionFactory,
) -> ReconciliationResult:
    with transaction():
        payment, first_writer = payments.complete(gateway_order_id, gateway_payment_id)
        if not first_writer:
            if payment.gateway_payment_id != gateway_payment_id:
                logger.warning("Order %s already completed with a different payment id", gateway_order_id)
            logger.info("Order %s already completed, skipping plan update", gateway_order_id)
            return ReconciliationResult(payment=payment, first_writer=False)

        try:
            account = accounts.mutate(
                payment.account_id,
                AccountPatch(plan=payment.plan, currency=payment.currency, mark_paid=True),
            )
        except NotFoundError:
            logger.error("Order %s completed but account %s no longer exists", gateway_order_id, payment.account_id)
            account = None

    logger.info("Order %s completed, account %s now on %s", gateway_order_id, payment.account_id, payment.plan.value)
    return ReconciliationResult(payment=payment, first_writer=True, account=account)


def confirm_signed_payment(
    accounts: AccountRepository,
    payments: PaymentRepository,
    gateway: PaymentGateway,
    gateway_order_id: str,
    gateway_payment_id: str,
    signature: str,
    account_id: Optional[str] = None,
    transaction: TransactionFactory = nullcontext,
) -> ReconciliationResult:
    if not gateway.is_configured:
        raise GatewayNotConfiguredError()
    payment = _find_payment(payments, gateway_order_id)
    if not gateway.verify_payment_signature(gateway_order_id, gateway_payment_id, signature):
        logger.warning("Invalid signature for order %s", gateway_order_id)
        raise InvalidSignatureError()
    if account_id and account_id != payment.account_id:
        logger.warning("Order %s confirmed for account %s but belongs to %s",
                       gateway_order_id, account_id, payment.account_id)
        raise ValidationError("Payment does not belong to this account")
    return _reconcile(accounts, payments, gateway_order_id, gateway_payment_id, transaction)


def confirm_redirect_payment(
    accounts: AccountRepository,
    payments: PaymentRepository,
    gateway: PaymentGateway,
    gateway_order_id: Optional[str],
    gateway_payment_id: Optional[str],
    status: Optional[str],
    reference_id: Optional[str] = None,
    signature: Optional[str] = None,
    transaction: TransactionFactory = nullcontext,
) -> Tuple[str, Optional[Payment]]:
    """Gateway redirect. Returns (outcome, payment), outcome in success|pending|failed.

    Plain redirect parameters only drive the UI; state changes only when the
    redirect carries a valid gateway signature.
    """
    if status != PAID_STATUS or not gateway_payment_id:
        return "failed", None

    payment = _find_payment(payments, gateway_order_id)
    signed = (
        reference_id == payment.id
        and gateway.verify_callback_signature(gateway_order_id, reference_id, status,
                                              gateway_payment_id, signature)
    )
    if signed:
        result = _reconcile(accounts, payments, gateway_order_id, gateway_payment_id, transaction)
        return "success", result.payment
    if payment.status is PaymentStatus.COMPLETED:
        return "success", payment

    logger.info("Unsigned redirect for order %s, awaiting signed confirmation", gateway_order_id)
    return "pending", payment


def handle_webhook(
    accounts: AccountRepository,
    payments: PaymentRepository,
    gateway: PaymentGateway,
    body: bytes,
    signature: Optional[str],
    transaction: TransactionFactory = nullcontext,
) -> str:
    if not gateway.webhook_secret:
        raise GatewayNotConfiguredError()
    if not gateway.verify_webhook_signature(body, signature):
        logger.warning("Webhook rejected: invalid signature")
        raise InvalidSignatureError()
    try:
        event = json.loads(body)
    except ValueError:
        raise ValidationError("Malformed webhook body")

    if not isinstance(event, dict):
        raise ValidationError("Malformed webhook body")

    event_type = event.get("event")
    payload = event.get("payload") or {}
    link = (payload.get("payment_link") or {}).get("entity") or {}
    gateway_payment = (payload.get("payment") or {}).get("entity") or {}
    gateway_order_id = link.get("id")

    if event_type == "payment_link.paid":
        if not gateway_payment.get("id"):
            raise ValidationError("Webhook missing payment id")
        _find_payment(payments, gateway_order_id)
        _reconcile(accounts, payments, gateway_order_id, gateway_payment["id"], transaction)
        return "completed"

    if event_type in ("payment_link.expired", "payment_link.cancelled"):
        if not gateway_order_id or payments.find_by_gateway_order_id(gateway_order_id) is None:
            logger.warning("Webhook %s for unknown order %s ignored", event_type, gateway_order_id)
            return "ignored"
        try:
            payments.fail(gateway_order_id)
        except AlreadyCompletedError:
            logger.warning("Webhook %s for completed order %s ignored", event_type, gateway_order_id)
            return "ignored"
        logger.info("Order %s marked failed (%s)", gateway_order_id, event_type)
        return "failed"

    logger.info("Webhook event %s ignored", event_type)
    return "ignored"
