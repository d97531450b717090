import logging
import re
from typing import Optional

from passlib.context import CryptContext

from config.settings import settings
from core.entities.account import Account, AccountPatch, Currency, Plan, SafeAccount
from core.errors import (
    AccountDisabledError,
    ForbiddenError,
    InvalidCredentialError,
    NotFoundError,
    ValidationError,
)
from core.repositories.account_repository import AccountRepository
from core.use_cases.query_use_cases import account_view

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)

# compared against when the email is unknown, so both failures cost one bcrypt verify
_DUMMY_HASH = pwd_context.hash("not-a-real-password")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)

def normalize_email(email: str) -> str:
    return (email or "").strip().lower()

def validate_password(password: str) -> None:
    if not password or len(password) < settings.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")

def validate_phone(phone: str) -> str:
    phone = (phone or "").strip()
    if not phone:
        raise ValidationError("Phone number is required")
    if len(re.sub(r"\D", "", phone)) < settings.MIN_PHONE_DIGITS:
        raise ValidationError(
            f"Please enter a valid phone number (at least {settings.MIN_PHONE_DIGITS} digits)"
        )
    return phone


def register_account(repo: AccountRepository, email: str, password: str, name: Optional[str],
                     phone: str, origin: Optional[str] = None) -> Account:
    email = normalize_email(email)
    if "@" not in email:
        raise ValidationError("Please enter a valid email address")
    validate_password(password)
    phone = validate_phone(phone)
    name = (name or "").strip() or email.split("@")[0]

    # uniqueness is enforced by the store's insert, not by a prior lookup
    account = repo.create_account(
        email=email,
        password_hash=get_password_hash(password),
        name=name,
        phone=phone,
        signup_origin=origin,
    )
    logger.info("Account %s created", account.id)
    return account


def authenticate_account(repo: AccountRepository, email: str, password: str) -> Account:
    account = repo.get_by_email(normalize_email(email))
    if account is None:
        verify_password(password or "", _DUMMY_HASH)
        raise InvalidCredentialError()
    if not verify_password(password or "", account.password_hash):
        raise InvalidCredentialError()
    if account.is_disabled:
        logger.info("Login rejected for disabled account %s", account.id)
        raise AccountDisabledError(account.disabled_reason)
    return account


def record_login(repo: AccountRepository, account_id: str, origin: Optional[str]) -> None:
    # best effort: a failed metadata write never fails the login
    try:
        repo.record_login(account_id, origin)
    except Exception:
        logger.warning("Could not record login for account %s", account_id, exc_info=True)


def get_account(repo: AccountRepository, account_id: str) -> Account:
    account = repo.get_by_id(account_id)
    if account is None:
        raise NotFoundError("Account not found")
    return account


def get_account_by_email(repo: AccountRepository, email: str) -> Account:
    account = repo.get_by_email(normalize_email(email))
    if account is None:
        raise NotFoundError("Account not found")
    return account


def account_exists(repo: AccountRepository, email: str) -> bool:
    return repo.get_by_email(normalize_email(email)) is not None


def update_account(repo: AccountRepository, caller: Account, account_id: str,
                   plan: Optional[Plan] = None, currency: Optional[Currency] = None,
                   name: Optional[str] = None, phone: Optional[str] = None) -> SafeAccount:
    """Owner or admin edit of profile fields and plan.

    Owners may only move themselves back to the free plan; paid plans come
    from a reconciled payment or an admin.
    """
    target = get_account(repo, account_id)
    if caller.id != target.id and not caller.is_admin:
        raise ForbiddenError()
    if plan is not None and plan.is_paid and not caller.is_admin:
        raise ForbiddenError("Paid plans are activated by a completed payment")
    if currency is not None and not (plan or target.plan).is_paid:
        raise ValidationError("Currency is only set for paid plans")

    patch = AccountPatch(
        plan=plan,
        currency=currency,
        name=name.strip() if name else None,
        phone=validate_phone(phone) if phone is not None else None,
    )
    updated = repo.mutate(target.id, patch)
    logger.info("Account %s updated by %s", target.id, caller.id)
    return account_view(updated)
