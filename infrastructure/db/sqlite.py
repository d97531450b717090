import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional, List, Tuple, Iterator
from pathlib import Path
from uuid import uuid4

from core.entities.account import Account, AccountPatch, AccountStatus, Currency, Plan, Role
from core.entities.payment import Payment, PaymentStatus
from core.errors import (
    AlreadyCompletedError,
    DuplicateEmailError,
    InvalidTransitionError,
    NotFoundError,
)
from core.repositories.account_repository import AccountRepository
from core.repositories.payment_repository import PaymentRepository


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db(db_path: str) -> None:
    if db_path != ":memory:" and not db_path.startswith("file:"):
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, check_same_thread=False)
    try:
        cur = conn.cursor()

        # email is stored normalized; the UNIQUE index is the signup race guard
        cur.execute("""
        CREATE TABLE IF NOT EXISTS accounts (
            id TEXT PRIMARY KEY,
            email TEXT UNIQUE NOT NULL,
            name TEXT NOT NULL,
            phone TEXT NOT NULL,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user',
            plan TEXT NOT NULL DEFAULT 'free',
            currency TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            disabled_reason TEXT,
            signup_origin TEXT,
            last_login_origin TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            paid_at TEXT
        );
        """)

        # payments outlive deleted accounts, so no foreign key here
        cur.execute("""
        CREATE TABLE IF NOT EXISTS payments (
            id TEXT PRIMARY KEY,
            account_id TEXT NOT NULL,
            email TEXT NOT NULL,
            amount INTEGER NOT NULL,
            currency TEXT NOT NULL,
            plan TEXT NOT NULL,
            gateway_order_id TEXT UNIQUE,
            gateway_payment_id TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            created_at TEXT NOT NULL,
            completed_at TEXT
        );
        """)
        cur.execute("CREATE INDEX IF NOT EXISTS idx_payments_account ON payments(account_id);")
        conn.commit()
    finally:
        conn.close()


def connect(db_path: str, timeout: float = 10.0) -> sqlite3.Connection:
    # autocommit; multi-statement units go through atomic()
    conn = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None, timeout=timeout)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def atomic(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Runs the enclosed repository writes as one IMMEDIATE transaction."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


class SQLiteAccountRepository(AccountRepository):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            phone=row["phone"],
            password_hash=row["password_hash"],
            role=Role(row["role"]),
            plan=Plan(row["plan"]),
            currency=Currency(row["currency"]) if row["currency"] else None,
            status=AccountStatus(row["status"]),
            disabled_reason=row["disabled_reason"],
            signup_origin=row["signup_origin"],
            last_login_origin=row["last_login_origin"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            paid_at=row["paid_at"],
        )

    def create_account(self, email: str, password_hash: str, name: str, phone: str,
                       signup_origin: Optional[str] = None) -> Account:
        account_id = uuid4().hex
        created_at = _now()
        try:
            self.conn.execute(
                "INSERT INTO accounts (id, email, name, phone, password_hash, role, plan, status, "
                "signup_origin, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (account_id, email, name, phone, password_hash, Role.USER.value, Plan.FREE.value,
                 AccountStatus.ACTIVE.value, signup_origin, created_at, created_at),
            )
        except sqlite3.IntegrityError:
            raise DuplicateEmailError()
        return Account(id=account_id, email=email, name=name, phone=phone, password_hash=password_hash,
                       signup_origin=signup_origin, created_at=created_at, updated_at=created_at)

    def get_by_email(self, email: str) -> Optional[Account]:
        row = self.conn.execute("SELECT * FROM accounts WHERE email = ?", (email,)).fetchone()
        return self._row_to_account(row) if row else None

    def get_by_id(self, account_id: str) -> Optional[Account]:
        row = self.conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
        return self._row_to_account(row) if row else None

    def list_all(self) -> List[Account]:
        rows = self.conn.execute("SELECT * FROM accounts ORDER BY created_at DESC").fetchall()
        return [self._row_to_account(r) for r in rows]

    def record_login(self, account_id: str, origin: Optional[str]) -> None:
        self.conn.execute(
            "UPDATE accounts SET last_login_origin = ?, updated_at = ? WHERE id = ?",
            (origin, _now(), account_id),
        )

    def mutate(self, account_id: str, patch: AccountPatch) -> Account:
        now = _now()
        assignments = ["updated_at = ?"]
        params: list = [now]

        for column in ("name", "phone", "password_hash"):
            value = getattr(patch, column)
            if value is not None:
                assignments.append(f"{column} = ?")
                params.append(value)
        if patch.role is not None:
            assignments.append("role = ?")
            params.append(patch.role.value)
        if patch.plan is not None:
            assignments.append("plan = ?")
            params.append(patch.plan.value)
            if not patch.plan.is_paid:
                assignments.append("currency = NULL")
        if patch.currency is not None and (patch.plan is None or patch.plan.is_paid):
            assignments.append("currency = ?")
            params.append(patch.currency.value)
        if patch.status is not None:
            assignments.append("status = ?")
            params.append(patch.status.value)
            assignments.append("disabled_reason = ?")
            params.append(patch.disabled_reason if patch.status is AccountStatus.DISABLED else None)
        if patch.mark_paid:
            assignments.append("paid_at = COALESCE(paid_at, ?)")
            params.append(now)

        params.append(account_id)
        cur = self.conn.execute(f"UPDATE accounts SET {', '.join(assignments)} WHERE id = ?", params)
        if cur.rowcount == 0:
            raise NotFoundError("Account not found")
        account = self.get_by_id(account_id)
        assert account is not None
        return account

    def grant_admin_if_none_exists(self, account_id: str) -> bool:
        # check and grant in one statement so concurrent bootstraps serialize on the write lock
        cur = self.conn.execute(
            "UPDATE accounts SET role = ?, updated_at = ? WHERE id = ? "
            "AND NOT EXISTS (SELECT 1 FROM accounts WHERE role = ?)",
            (Role.ADMIN.value, _now(), account_id, Role.ADMIN.value),
        )
        return cur.rowcount == 1

    def delete(self, account_id: str) -> None:
        cur = self.conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
        if cur.rowcount == 0:
            raise NotFoundError("Account not found")


class SQLitePaymentRepository(PaymentRepository):
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _row_to_payment(self, row: sqlite3.Row) -> Payment:
        return Payment(
            id=row["id"],
            account_id=row["account_id"],
            email=row["email"],
            amount=int(row["amount"]),
            currency=Currency(row["currency"]),
            plan=Plan(row["plan"]),
            gateway_order_id=row["gateway_order_id"],
            gateway_payment_id=row["gateway_payment_id"],
            status=PaymentStatus(row["status"]),
            created_at=row["created_at"],
            completed_at=row["completed_at"],
        )

    def _get(self, payment_id: str) -> Optional[Payment]:
        row = self.conn.execute("SELECT * FROM payments WHERE id = ?", (payment_id,)).fetchone()
        return self._row_to_payment(row) if row else None

    def create_pending(self, account_id: str, email: str, amount: int,
                       currency: Currency, plan: Plan) -> Payment:
        payment = Payment(
            id=uuid4().hex,
            account_id=account_id,
            email=email,
            amount=int(amount),
            currency=currency,
            plan=plan,
            gateway_order_id=None,
            status=PaymentStatus.PENDING,
            created_at=_now(),
        )
        self.conn.execute(
            "INSERT INTO payments (id, account_id, email, amount, currency, plan, status, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (payment.id, account_id, email, payment.amount, currency.value, plan.value,
             payment.status.value, payment.created_at),
        )
        return payment

    def attach_gateway_order(self, payment_id: str, gateway_order_id: str) -> Payment:
        cur = self.conn.execute(
            "UPDATE payments SET gateway_order_id = ? WHERE id = ? AND gateway_order_id IS NULL",
            (gateway_order_id, payment_id),
        )
        payment = self._get(payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        if cur.rowcount == 0 and payment.gateway_order_id != gateway_order_id:
            raise InvalidTransitionError("Payment already has a gateway order")
        return payment

    def find_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Payment]:
        row = self.conn.execute(
            "SELECT * FROM payments WHERE gateway_order_id = ?", (gateway_order_id,)
        ).fetchone()
        return self._row_to_payment(row) if row else None

    def complete(self, gateway_order_id: str, gateway_payment_id: str) -> Tuple[Payment, bool]:
        cur = self.conn.execute(
            "UPDATE payments SET status = ?, gateway_payment_id = ?, completed_at = ? "
            "WHERE gateway_order_id = ? AND status = ?",
            (PaymentStatus.COMPLETED.value, gateway_payment_id, _now(),
             gateway_order_id, PaymentStatus.PENDING.value),
        )
        first_writer = cur.rowcount == 1
        payment = self.find_by_gateway_order_id(gateway_order_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        if not first_writer and payment.status is PaymentStatus.FAILED:
            raise InvalidTransitionError("Payment already marked failed")
        return payment, first_writer

    def fail(self, gateway_order_id: str) -> Payment:
        self.conn.execute(
            "UPDATE payments SET status = ? WHERE gateway_order_id = ? AND status = ?",
            (PaymentStatus.FAILED.value, gateway_order_id, PaymentStatus.PENDING.value),
        )
        payment = self.find_by_gateway_order_id(gateway_order_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        if payment.status is PaymentStatus.COMPLETED:
            raise AlreadyCompletedError()
        return payment

    def list_all(self) -> List[Payment]:
        rows = self.conn.execute("SELECT * FROM payments ORDER BY created_at DESC").fetchall()
        return [self._row_to_payment(r) for r in rows]

    def list_by_account(self, account_id: str) -> List[Payment]:
        rows = self.conn.execute(
            "SELECT * FROM payments WHERE account_id = ? ORDER BY created_at DESC", (account_id,)
        ).fetchall()
        return [self._row_to_payment(r) for r in rows]
