from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Plan(str, Enum):
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @property
    def is_paid(self) -> bool:
        return self is not Plan.FREE


class Currency(str, Enum):
    USD = "USD"
    INR = "INR"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    DISABLED = "disabled"


@dataclass
class Account:
    id: str
    email: str              # normalized, immutable
    name: str
    phone: str
    password_hash: str = field(repr=False)
    role: Role = Role.USER
    plan: Plan = Plan.FREE
    currency: Optional[Currency] = None   # only for paid plans
    status: AccountStatus = AccountStatus.ACTIVE
    disabled_reason: Optional[str] = None
    signup_origin: Optional[str] = None
    last_login_origin: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    paid_at: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_disabled(self) -> bool:
        return self.status is AccountStatus.DISABLED


@dataclass
class AccountPatch:
    """Partial update applied by AccountRepository.mutate; None means unchanged."""
    name: Optional[str] = None
    phone: Optional[str] = None
    plan: Optional[Plan] = None
    currency: Optional[Currency] = None
    role: Optional[Role] = None
    status: Optional[AccountStatus] = None
    disabled_reason: Optional[str] = None
    password_hash: Optional[str] = field(default=None, repr=False)
    mark_paid: bool = False


@dataclass
class SafeAccount:
    """Account without credential material, the only shape that leaves the core."""
    id: str
    email: str
    name: str
    phone: str
    role: Role
    plan: Plan
    currency: Optional[Currency]
    status: AccountStatus
    disabled_reason: Optional[str]
    signup_origin: Optional[str]
    last_login_origin: Optional[str]
    created_at: str
    updated_at: str
    paid_at: Optional[str]
