from collections import Counter
from dataclasses import fields
from typing import Any, Dict, Iterable, List

from core.entities.account import Account, AccountStatus, Currency, Plan, Role, SafeAccount
from core.entities.payment import Payment, PaymentStatus

_SAFE_FIELDS = [f.name for f in fields(SafeAccount)]


def account_view(account: Account) -> SafeAccount:
    """Redacted projection; every outward account goes through here."""
    return SafeAccount(**{name: getattr(account, name) for name in _SAFE_FIELDS})


def account_views(accounts: Iterable[Account]) -> List[SafeAccount]:
    return [account_view(a) for a in accounts]


def _count_by(items: Iterable[Any], attr: str, keys: Iterable[Any]) -> Dict[str, int]:
    counts = Counter(getattr(item, attr) for item in items)
    return {key.value: counts.get(key, 0) for key in keys}


def statistics(accounts: List[Account], payments: List[Payment]) -> Dict[str, Any]:
    """Aggregates over full listings of both stores, recomputed per call."""
    revenue = {currency.value: 0 for currency in Currency}
    for payment in payments:
        if payment.status is PaymentStatus.COMPLETED:
            revenue[payment.currency.value] += payment.amount

    return {
        "accounts": {
            "total": len(accounts),
            "paid": sum(1 for a in accounts if a.plan.is_paid),
            "by_plan": _count_by(accounts, "plan", Plan),
            "by_role": _count_by(accounts, "role", Role),
            "by_status": _count_by(accounts, "status", AccountStatus),
        },
        "payments": {
            "total": len(payments),
            "by_status": _count_by(payments, "status", PaymentStatus),
        },
        # minor units, completed payments only
        "revenue": revenue,
    }
