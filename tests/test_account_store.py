import sqlite3
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.entities.account import AccountPatch, AccountStatus, Currency, Plan, Role, SafeAccount
from core.errors import (
    AccountDisabledError,
    DuplicateEmailError,
    ForbiddenError,
    InvalidCredentialError,
    NotFoundError,
    ValidationError,
)
from core.use_cases.account_use_cases import (
    account_exists,
    authenticate_account,
    get_account_by_email,
    record_login,
    register_account,
    update_account,
)
from infrastructure.db.sqlite import SQLiteAccountRepository, connect

from conftest import PASSWORD, PHONE


def test_signup_creates_free_user(make_account):
    account = make_account("a@x.com")

    assert account.plan is Plan.FREE
    assert account.role is Role.USER
    assert account.status is AccountStatus.ACTIVE
    assert account.currency is None
    assert account.name == "a"
    assert account.password_hash != PASSWORD


@pytest.mark.parametrize("email", ["a@x.com", "A@X.COM", "  a@X.com "])
def test_duplicate_email_is_rejected_in_any_case(make_account, email):
    make_account("a@x.com")
    with pytest.raises(DuplicateEmailError):
        make_account(email)


@pytest.mark.parametrize("kwargs, fragment", [
    ({"password": "abc"}, "Password"),
    ({"phone": ""}, "Phone"),
    ({"phone": "12-34"}, "phone"),
])
def test_signup_validation(make_account, kwargs, fragment):
    with pytest.raises(ValidationError) as exc:
        make_account("v@x.com", **kwargs)
    assert fragment in exc.value.message


def test_signup_requires_at_sign(accounts):
    with pytest.raises(ValidationError):
        register_account(accounts, email="not-an-email", password=PASSWORD, name=None, phone=PHONE)


def test_concurrent_signup_same_email_has_one_winner(db_path):
    def attempt(i):
        conn = connect(db_path)
        try:
            register_account(SQLiteAccountRepository(conn), email="Race@x.com" if i % 2 else "race@x.com",
                             password=PASSWORD, name=None, phone=PHONE)
            return "ok"
        except DuplicateEmailError:
            return "duplicate"
        finally:
            conn.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(8)))

    assert results.count("ok") == 1
    assert results.count("duplicate") == 7


def test_wrong_password_and_unknown_email_are_indistinguishable(accounts, make_account):
    make_account("known@x.com")

    with pytest.raises(InvalidCredentialError) as wrong:
        authenticate_account(accounts, "known@x.com", "wrong-secret")
    with pytest.raises(InvalidCredentialError) as unknown:
        authenticate_account(accounts, "nobody@x.com", PASSWORD)

    assert type(wrong.value) is type(unknown.value)
    assert wrong.value.message == unknown.value.message


def test_login_is_case_insensitive(accounts, make_account):
    created = make_account("Case@x.com")
    assert authenticate_account(accounts, "CASE@X.COM", PASSWORD).id == created.id
    assert account_exists(accounts, "case@x.com")
    assert get_account_by_email(accounts, " case@x.com").id == created.id


def test_disabled_account_login_reports_reason(accounts, make_account):
    created = make_account("d@x.com")
    accounts.mutate(created.id, AccountPatch(status=AccountStatus.DISABLED, disabled_reason="fraud"))

    with pytest.raises(AccountDisabledError) as exc:
        authenticate_account(accounts, "d@x.com", PASSWORD)
    assert exc.value.reason == "fraud"


def test_record_login_is_best_effort(conn, make_account):
    class BrokenRepo(SQLiteAccountRepository):
        def record_login(self, account_id, origin):
            raise sqlite3.OperationalError("database is locked")

    created = make_account("l@x.com")
    record_login(BrokenRepo(conn), created.id, "10.0.0.1")


def test_record_login_stores_origin(accounts, make_account):
    created = make_account("o@x.com")
    record_login(accounts, created.id, "10.0.0.9")
    assert accounts.get_by_id(created.id).last_login_origin == "10.0.0.9"


def test_mutate_bumps_updated_at_and_paid_at_is_set_once(accounts, make_account):
    created = make_account("m@x.com")

    first = accounts.mutate(created.id, AccountPatch(plan=Plan.PRO, currency=Currency.INR, mark_paid=True))
    assert first.plan is Plan.PRO
    assert first.currency is Currency.INR
    assert first.paid_at is not None
    assert first.updated_at >= created.updated_at

    second = accounts.mutate(created.id, AccountPatch(plan=Plan.ENTERPRISE, mark_paid=True))
    assert second.paid_at == first.paid_at
    assert second.currency is Currency.INR


def test_free_plan_clears_currency(accounts, make_account):
    created = make_account("f@x.com")
    accounts.mutate(created.id, AccountPatch(plan=Plan.STARTER, currency=Currency.USD))

    downgraded = accounts.mutate(created.id, AccountPatch(plan=Plan.FREE))
    assert downgraded.currency is None


def test_enable_clears_disabled_reason(accounts, make_account):
    created = make_account("e@x.com")
    accounts.mutate(created.id, AccountPatch(status=AccountStatus.DISABLED, disabled_reason="chargeback"))

    enabled = accounts.mutate(created.id, AccountPatch(status=AccountStatus.ACTIVE))
    assert enabled.status is AccountStatus.ACTIVE
    assert enabled.disabled_reason is None


def test_mutate_and_delete_unknown_account(accounts):
    with pytest.raises(NotFoundError):
        accounts.mutate("missing", AccountPatch(plan=Plan.PRO))
    with pytest.raises(NotFoundError):
        accounts.delete("missing")


def test_update_account_returns_view_without_hash(accounts, make_account):
    owner = make_account("own@x.com")

    updated = update_account(accounts, owner, owner.id, name="  Renamed  ")

    assert isinstance(updated, SafeAccount)
    assert not hasattr(updated, "password_hash")
    assert updated.name == "Renamed"


def test_owner_cannot_grant_self_paid_plan(accounts, make_account):
    owner = make_account("cheap@x.com")
    with pytest.raises(ForbiddenError):
        update_account(accounts, owner, owner.id, plan=Plan.PRO)
    assert accounts.get_by_id(owner.id).plan is Plan.FREE
