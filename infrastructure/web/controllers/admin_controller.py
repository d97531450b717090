from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.use_cases.admin_use_cases import admin_dashboard, perform_admin_action
from infrastructure.db.sqlite import SQLiteAccountRepository, SQLitePaymentRepository
from infrastructure.web.dependencies import get_account_repo, get_caller_id, get_payment_repo
from infrastructure.web.schemas import AccountOut, PaymentOut, account_out, payments_out

router = APIRouter(prefix="/admin", tags=["admin"])


class DashboardResponse(BaseModel):
    accounts: List[AccountOut]
    payments: List[PaymentOut]
    statistics: Dict[str, Any]

class AdminActionRequest(BaseModel):
    action: Optional[str] = None
    target_account_id: Optional[str] = None
    plan: Optional[str] = None
    currency: Optional[str] = None
    reason: Optional[str] = None
    new_password: Optional[str] = None

class AdminActionResponse(BaseModel):
    success: bool = True
    message: str
    account: Optional[AccountOut] = None
    payments: List[PaymentOut] = []


@router.get("", response_model=DashboardResponse)
def dashboard(
    caller_id: str = Depends(get_caller_id),
    accounts: SQLiteAccountRepository = Depends(get_account_repo),
    payments: SQLitePaymentRepository = Depends(get_payment_repo),
):
    data = admin_dashboard(accounts, payments, caller_id)
    return DashboardResponse(
        accounts=[account_out(a) for a in data["accounts"]],
        payments=payments_out(data["payments"]),
        statistics=data["statistics"],
    )


@router.post("", response_model=AdminActionResponse)
def admin_action(
    payload: AdminActionRequest,
    caller_id: str = Depends(get_caller_id),
    accounts: SQLiteAccountRepository = Depends(get_account_repo),
    payments: SQLitePaymentRepository = Depends(get_payment_repo),
):
    result = perform_admin_action(
        accounts,
        payments,
        caller_id=caller_id,
        action=payload.action,
        target_account_id=payload.target_account_id,
        plan=payload.plan,
        currency=payload.currency,
        reason=payload.reason,
        new_password=payload.new_password,
    )
    return AdminActionResponse(
        message=result.message,
        account=account_out(result.account) if result.account else None,
        payments=payments_out(result.payments),
    )
