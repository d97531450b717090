import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.entities.account import Account, AccountPatch, AccountStatus, Currency, Plan, Role, SafeAccount
from core.entities.payment import Payment
from core.errors import (
    AdminAlreadyExistsError,
    AuthenticationRequiredError,
    ForbiddenError,
    ValidationError,
)
from core.repositories.account_repository import AccountRepository
from core.repositories.payment_repository import PaymentRepository
from core.use_cases.account_use_cases import get_account, get_password_hash, validate_password
from core.use_cases.query_use_cases import account_view, account_views, statistics

logger = logging.getLogger(__name__)

DEFAULT_DISABLED_REASON = "Disabled by an administrator"


class AdminAction(str, Enum):
    MAKE_ADMIN = "makeAdmin"
    REMOVE_ADMIN = "removeAdmin"
    CHANGE_PLAN = "changePlan"
    DISABLE_USER = "disableUser"
    ENABLE_USER = "enableUser"
    RESET_PASSWORD = "resetPassword"
    DELETE_USER = "deleteUser"
    GET_USER_DETAILS = "getUserDetails"


@dataclass
class AdminResult:
    message: str
    account: Optional[SafeAccount] = None
    payments: List[Payment] = field(default_factory=list)


def load_caller(accounts: AccountRepository, caller_id: Optional[str]) -> Account:
    # always read fresh; a token only names the caller
    caller = accounts.get_by_id(caller_id) if caller_id else None
    if caller is None:
        raise AuthenticationRequiredError()
    return caller


def require_admin(accounts: AccountRepository, caller_id: Optional[str]) -> Account:
    caller = load_caller(accounts, caller_id)
    if not caller.is_admin or caller.is_disabled:
        logger.warning("Admin access denied for account %s", caller.id)
        raise ForbiddenError()
    return caller


def _admin_exists(accounts: AccountRepository) -> bool:
    return any(a.is_admin for a in accounts.list_all())


def bootstrap_admin(accounts: AccountRepository, caller: Account, target_account_id: Optional[str]) -> Account:
    """Grants the first admin role; only possible while no admin exists.

    The grant is attempted before the target is looked up, so once an admin
    exists every attempt is refused the same way whatever the target.
    """
    if target_account_id and accounts.grant_admin_if_none_exists(target_account_id):
        logger.info("Bootstrap admin granted to %s by %s", target_account_id, caller.id)
        return get_account(accounts, target_account_id)
    if _admin_exists(accounts):
        logger.warning("Bootstrap admin attempt by %s rejected: an admin exists", caller.id)
        raise AdminAlreadyExistsError()
    if not target_account_id:
        raise ValidationError("Missing target_account_id")
    get_account(accounts, target_account_id)
    # target exists but lost the grant; an admin came and went in between
    raise AdminAlreadyExistsError()


def admin_dashboard(accounts: AccountRepository, payments: PaymentRepository,
                    caller_id: Optional[str]) -> Dict[str, Any]:
    require_admin(accounts, caller_id)
    all_accounts = accounts.list_all()
    all_payments = payments.list_all()
    return {
        "accounts": account_views(all_accounts),
        "payments": all_payments,
        "statistics": statistics(all_accounts, all_payments),
    }


def _parse_action(action: Optional[str]) -> AdminAction:
    if not action:
        raise ValidationError("Missing action")
    try:
        return AdminAction(action)
    except ValueError:
        raise ValidationError("Unknown action")


def _parse_plan(plan: Optional[str]) -> Plan:
    try:
        return Plan(plan)
    except ValueError:
        raise ValidationError("Invalid plan")


def _parse_currency(currency: Optional[str]) -> Optional[Currency]:
    if currency is None:
        return None
    try:
        return Currency(currency)
    except ValueError:
        raise ValidationError("Invalid currency. Use INR or USD.")


def perform_admin_action(
    accounts: AccountRepository,
    payments: PaymentRepository,
    caller_id: Optional[str],
    action: Optional[str],
    target_account_id: Optional[str],
    plan: Optional[str] = None,
    currency: Optional[str] = None,
    reason: Optional[str] = None,
    new_password: Optional[str] = None,
) -> AdminResult:
    # privilege first: a non-admin learns nothing about the action or target
    caller = load_caller(accounts, caller_id)
    if not caller.is_admin:
        if action != AdminAction.MAKE_ADMIN.value:
            logger.warning("Admin action denied for account %s", caller.id)
            raise ForbiddenError()
        target = bootstrap_admin(accounts, caller, target_account_id)
        return AdminResult("User promoted to admin", account_view(target))

    require_admin(accounts, caller.id)
    action = _parse_action(action)
    if not target_account_id:
        raise ValidationError("Missing target_account_id")
    target = get_account(accounts, target_account_id)

    if action is AdminAction.GET_USER_DETAILS:
        return AdminResult("User details", account_view(target), payments.list_by_account(target.id))

    if action is AdminAction.DELETE_USER:
        accounts.delete(target.id)
        logger.info("Admin %s deleted account %s", caller.id, target.id)
        return AdminResult("User deleted")

    if action is AdminAction.MAKE_ADMIN:
        patch, message = AccountPatch(role=Role.ADMIN), "User promoted to admin"
    elif action is AdminAction.REMOVE_ADMIN:
        patch, message = AccountPatch(role=Role.USER), "Admin role removed"
    elif action is AdminAction.CHANGE_PLAN:
        new_plan = _parse_plan(plan)
        patch = AccountPatch(plan=new_plan, currency=_parse_currency(currency) if new_plan.is_paid else None)
        message = f"Plan changed to {new_plan.value}"
    elif action is AdminAction.DISABLE_USER:
        patch = AccountPatch(status=AccountStatus.DISABLED,
                             disabled_reason=(reason or "").strip() or DEFAULT_DISABLED_REASON)
        message = "User disabled"
    elif action is AdminAction.ENABLE_USER:
        patch, message = AccountPatch(status=AccountStatus.ACTIVE), "User enabled"
    else:
        if not new_password:
            raise ValidationError("Missing new_password")
        validate_password(new_password)
        patch, message = AccountPatch(password_hash=get_password_hash(new_password)), "Password reset"

    updated = accounts.mutate(target.id, patch)
    logger.info("Admin %s performed %s on account %s", caller.id, action.value, target.id)
    return AdminResult(message, account_view(updated))
