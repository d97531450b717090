import logging
from typing import List, Optional, Literal

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, EmailStr

from config.settings import Settings
from core.entities.account import Currency, Plan
from core.errors import ForbiddenError, ValidationError
from core.use_cases.account_use_cases import (
    account_exists,
    authenticate_account,
    get_account,
    record_login,
    register_account,
    update_account,
)
from core.use_cases.admin_use_cases import load_caller
from core.use_cases.query_use_cases import account_view
from infrastructure.db.sqlite import SQLiteAccountRepository, SQLitePaymentRepository
from infrastructure.web.dependencies import (
    client_origin,
    create_access_token,
    get_account_repo,
    get_caller_id,
    get_payment_repo,
    get_settings,
)
from infrastructure.web.schemas import AccountOut, PaymentOut, account_out, payments_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["accounts"])


class AccountActionRequest(BaseModel):
    action: Literal["signup", "login", "check"]
    email: EmailStr
    password: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None

class AccountResponse(BaseModel):
    account: AccountOut

class LoginResponse(BaseModel):
    account: AccountOut
    access_token: str
    token_type: str = "bearer"

class ExistsResponse(BaseModel):
    exists: bool

class AccountUpdateRequest(BaseModel):
    plan: Optional[Plan] = None
    currency: Optional[Currency] = None
    name: Optional[str] = None
    phone: Optional[str] = None

class PaymentListResponse(BaseModel):
    payments: List[PaymentOut]
    count: int


@router.post("")
def account_action(
    payload: AccountActionRequest,
    request: Request,
    response: Response,
    repo: SQLiteAccountRepository = Depends(get_account_repo),
    settings: Settings = Depends(get_settings),
):
    if payload.action == "check":
        return ExistsResponse(exists=account_exists(repo, payload.email))

    if not payload.password:
        raise ValidationError("Password is required")

    if payload.action == "signup":
        account = register_account(
            repo,
            email=payload.email,
            password=payload.password,
            name=payload.name,
            phone=payload.phone or "",
            origin=client_origin(request),
        )
        response.status_code = status.HTTP_201_CREATED
        return AccountResponse(account=account_out(account_view(account)))

    account = authenticate_account(repo, email=payload.email, password=payload.password)
    record_login(repo, account.id, client_origin(request))
    account = repo.get_by_id(account.id) or account
    logger.info("Account %s logged in", account.id)
    return LoginResponse(
        account=account_out(account_view(account)),
        access_token=create_access_token(settings, account.id),
    )


@router.get("/{account_id}", response_model=AccountResponse)
def get_profile(account_id: str, repo: SQLiteAccountRepository = Depends(get_account_repo)):
    return AccountResponse(account=account_out(account_view(get_account(repo, account_id))))


@router.patch("/{account_id}", response_model=AccountResponse)
def update_profile(
    account_id: str,
    payload: AccountUpdateRequest,
    caller_id: str = Depends(get_caller_id),
    repo: SQLiteAccountRepository = Depends(get_account_repo),
):
    caller = load_caller(repo, caller_id)
    updated = update_account(
        repo,
        caller,
        account_id,
        plan=payload.plan,
        currency=payload.currency,
        name=payload.name,
        phone=payload.phone,
    )
    return AccountResponse(account=account_out(updated))


@router.get("/{account_id}/payments", response_model=PaymentListResponse)
def get_account_payments(
    account_id: str,
    caller_id: str = Depends(get_caller_id),
    accounts: SQLiteAccountRepository = Depends(get_account_repo),
    payments: SQLitePaymentRepository = Depends(get_payment_repo),
):
    caller = load_caller(accounts, caller_id)
    if caller.id != account_id and not caller.is_admin:
        raise ForbiddenError()
    items = payments.list_by_account(account_id)
    return PaymentListResponse(payments=payments_out(items), count=len(items))
